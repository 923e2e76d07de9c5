"""
Mock Rate Source

Deterministic USPS/UPS/FedEx rates for local development when no EasyPost
key is configured. Prices grow with package weight and volume:

    base = 5.00 + weight_oz * 0.50 + L * W * H * 0.01

Labels and voids always succeed.
"""
import itertools
import logging
import zlib
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from shipping_engine.core.config import Settings
from shipping_engine.models.rates import AddressInput, Label, Package, Rate, VoidResult
from shipping_engine.modules.shipping.rate_sources import MOCK, register_rate_source
from shipping_engine.modules.shipping.rate_sources.base import RateSource

logger = logging.getLogger(__name__)

# carrier, mock account id, service code, service name, surcharge, delivery days
MOCK_SERVICES = (
    ("USPS", "ca_mock_usps", "GroundAdvantage", "USPS Ground Advantage", 0.00, 5),
    ("USPS", "ca_mock_usps", "Priority", "USPS Priority Mail", 4.50, 2),
    ("USPS", "ca_mock_usps", "Express", "USPS Priority Mail Express", 12.00, 1),
    ("UPS", "ca_mock_ups", "Ground", "UPS Ground", 2.50, 4),
    ("UPS", "ca_mock_ups", "3DaySelect", "UPS 3 Day Select", 6.00, 3),
    ("FedEx", "ca_mock_fedex", "FEDEX_GROUND", "FedEx Ground", 3.00, 3),
    ("FedEx", "ca_mock_fedex", "FEDEX_2_DAY", "FedEx 2Day", 8.00, 2),
    ("FedEx", "ca_mock_fedex", "STANDARD_OVERNIGHT", "FedEx Standard Overnight", 15.00, 1),
)


def mock_base_price(package: Package) -> float:
    return 5.0 + package.weight_oz * 0.5 + package.length * package.width * package.height * 0.01


@register_rate_source(MOCK)
class MockRateSource(RateSource):
    """Rate source that never leaves the process."""

    def __init__(self, source_settings: Optional[Settings] = None):
        super().__init__(source_settings)
        self._shipment_ids = itertools.count(1)

    @property
    def is_mock(self) -> bool:
        return True

    async def get_rates(
        self,
        from_address: AddressInput,
        to_address: AddressInput,
        package: Package,
        carrier_account_ids: Sequence[str] = (),
    ) -> List[Rate]:
        shipment_id = f"shp_mock_{next(self._shipment_ids)}"
        base = mock_base_price(package)
        accounts = set(carrier_account_ids)

        rates = []
        for carrier, account_id, service_code, service_name, surcharge, days in MOCK_SERVICES:
            if accounts and account_id not in accounts:
                continue
            rates.append(Rate(
                rate_id=f"rate_mock_{service_code.lower()}_{shipment_id}",
                carrier_name=carrier,
                service_name=service_name,
                price=round(base + surcharge, 2),
                shipment_id=shipment_id,
                carrier_id=account_id,
                carrier_code=carrier.lower(),
                service_code=service_code,
                delivery_days=days,
            ))

        logger.debug(f"Mock rates for {shipment_id}: {len(rates)} services, base ${base:.2f}")
        return rates

    async def buy_shipment(self, shipment_id: str, rate_id: str) -> Label:
        logger.info(f"Mock label purchased for {shipment_id} at {rate_id}")
        return Label(
            label_id=f"mock-label-{rate_id}",
            shipment_id=shipment_id,
            tracking_number=f"MOCK{zlib.crc32(f'{shipment_id}:{rate_id}'.encode()):010d}",
            price=10.50,
            label_url="https://example.com/mock-label.pdf",
            status="created",
            created_at=datetime.now(timezone.utc),
        )

    async def void_label(self, shipment_id: str) -> VoidResult:
        return VoidResult(approved=True, message="Mock refund approved")
