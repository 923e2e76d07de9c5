"""
Shipping configuration loader (database)

Assembles the shipping document from the database:
- the newest ShippingConfigRecord (built-in defaults when there is none)
- active BoxCatalogEntry rows replace the document's boxes
- active CarrierAccount rows replace shipping.carrier_accounts

The assembled document is validated like a file would be; an invalid
document raises ShippingConfigError.
"""
import copy
import logging
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shipping_engine.models.shipping_records import BoxCatalogEntry, CarrierAccount, ShippingConfigRecord
from shipping_engine.schemas.shipping_config import (
    ShippingConfig,
    create_default_config,
    parse_shipping_config,
)

logger = logging.getLogger(__name__)


async def load_shipping_config_from_db(db: AsyncSession) -> ShippingConfig:
    """
    Load and validate the shipping document stored in the database.

    Raises:
        ShippingConfigError: the assembled document is invalid
    """
    result = await db.execute(
        select(ShippingConfigRecord)
        .order_by(ShippingConfigRecord.updated_at.desc(), ShippingConfigRecord.id.desc())
        .limit(1)
    )
    record = result.scalar_one_or_none()

    if record:
        data: Dict[str, Any] = copy.deepcopy(record.config_json or {})
        source = f"database:shipping_configs/{record.id}"
    else:
        logger.info("No stored shipping config, starting from built-in defaults")
        data = create_default_config().model_dump(mode="json", by_alias=True)
        source = "database:defaults"

    result = await db.execute(
        select(BoxCatalogEntry)
        .where(BoxCatalogEntry.is_active == True)
        .order_by(BoxCatalogEntry.sort_order, BoxCatalogEntry.id)
    )
    boxes = result.scalars().all()
    if boxes:
        data["boxes"] = [box.to_config() for box in boxes]
        logger.debug(f"Using {len(boxes)} boxes from box_catalog")

    result = await db.execute(
        select(CarrierAccount)
        .where(CarrierAccount.is_active == True)
        .order_by(CarrierAccount.id)
    )
    accounts = result.scalars().all()
    if accounts:
        shipping = data.setdefault("shipping", {})
        shipping["carrier_accounts"] = {account.easypost_id: account.origin for account in accounts}
        logger.debug(f"Using {len(accounts)} carrier accounts from carrier_accounts")

    config = parse_shipping_config(data, source=source)
    logger.info(f"Loaded shipping config from {source} ({len(config.boxes)} boxes)")
    return config
