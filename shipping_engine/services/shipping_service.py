"""
Shipping Service

High-level service that coordinates:
- Packing an order into boxes
- Per-box rate quotes, one request per shipping origin
- Aggregating per-box rates into whole-order options
- Label purchase (single and multi-box) and voiding

The service holds an immutable ShippingConfig. Reloading configuration
means building a new service with with_config().
"""
import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from shipping_engine.core.exceptions import (
    LabelVoidError,
    MultiBoxLabelError,
    RateSourceError,
    ShippingLabelError,
    ShippingQuoteError,
)
from shipping_engine.models.packing import BoxSelection, ItemCounts
from shipping_engine.models.rates import (
    AddressInput,
    BoxRatesResult,
    Label,
    Package,
    Rate,
    ShippingQuoteResponse,
    VoidResult,
)
from shipping_engine.modules.shipping.aggregation import aggregate_rates
from shipping_engine.modules.shipping.packer import Packer
from shipping_engine.modules.shipping.rate_sources.base import RateSource
from shipping_engine.schemas.shipping_config import DEFAULT_ORIGIN, ShipFromAddress, ShippingConfig

logger = logging.getLogger(__name__)

ERROR_NO_OPTIONS = "No shipping options available"


def address_from_config(address: ShipFromAddress) -> AddressInput:
    """Convert a configured origin address to an AddressInput."""
    return AddressInput(
        address_line1=address.address_line1,
        address_line2=address.address_line2,
        city_locality=address.city_locality,
        state_province=address.state_province,
        postal_code=address.postal_code,
        country_code=address.country_code,
        name=address.name or None,
        company_name=address.company_name,
        phone=address.phone,
        residential=address.address_residential_indicator.lower() == "yes",
    )


class ShippingService:
    """
    Central service for quoting and label operations.
    """

    def __init__(self, config: ShippingConfig, rate_source: RateSource):
        self._config = config
        self._rate_source = rate_source
        self._packer = Packer(config)
        self._origins = self._build_origin_requests(config)

    @property
    def config(self) -> ShippingConfig:
        return self._config

    @property
    def packer(self) -> Packer:
        return self._packer

    @property
    def rate_source(self) -> RateSource:
        return self._rate_source

    @property
    def is_using_mock_data(self) -> bool:
        return self._rate_source.is_mock

    def with_config(self, config: ShippingConfig) -> "ShippingService":
        """New service over the same rate source with a replacement config."""
        rate_prefs = config.shipping.rate_preferences
        logger.info(
            f"Shipping configuration reloaded: {len(config.boxes)} boxes, "
            f"sort={rate_prefs.sort}, present_top_n={rate_prefs.present_top_n}"
        )
        return ShippingService(config, self._rate_source)

    async def close(self):
        await self._rate_source.close()

    # ==================== Origins ====================

    @staticmethod
    def _build_origin_requests(config: ShippingConfig) -> List[Tuple[str, AddressInput, List[str]]]:
        """
        (origin name, from address, carrier account ids) per rate request.

        Without a carrier account mapping, every box gets one request from
        ship_from with no account restriction.
        """
        shipping = config.shipping
        grouped = shipping.accounts_by_origin()
        if not grouped:
            return [(DEFAULT_ORIGIN, address_from_config(shipping.ship_from), [])]
        return [
            (origin, address_from_config(shipping.origin_address(origin)), accounts)
            for origin, accounts in grouped.items()
        ]

    # ==================== Quotes ====================

    async def _fetch_box_rates(
        self,
        index: int,
        selection: BoxSelection,
        ship_to: AddressInput,
    ) -> Optional[BoxRatesResult]:
        """Rates for one box from every origin. None when no origin returned rates."""
        package = Package.from_box_selection(selection)

        results = await asyncio.gather(
            *(
                self._rate_source.get_rates(from_address, ship_to, package, accounts)
                for _, from_address, accounts in self._origins
            ),
            return_exceptions=True,
        )

        rates: List[Rate] = []
        for (origin, _, _), result in zip(self._origins, results):
            if isinstance(result, Exception):
                logger.error(f"Rate fetch failed for box {index + 1} ({selection.box.sku}) from {origin}: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            rates.extend(result)

        if not rates:
            logger.warning(f"No rates for box {index + 1} ({selection.box.sku}), omitting from aggregation")
            return None

        logger.debug(f"Box {index + 1} ({selection.box.sku}): {len(rates)} rates")
        return BoxRatesResult(box_selection=selection, rates=tuple(rates))

    async def get_shipping_quote(self, item_counts: ItemCounts, ship_to: AddressInput) -> ShippingQuoteResponse:
        """
        Quote an order.

        Packing failures and zero coverage are reported in
        ShippingQuoteResponse.error, never raised.
        """
        logger.debug(f"Quote requested: items={item_counts.to_dict()} ship_to={ship_to.postal_code} {ship_to.state_province}")

        solution = self._packer.pack(item_counts)
        if not solution.valid:
            logger.debug(f"Packing failed: {solution.error}")
            return ShippingQuoteResponse(error=f"Unable to pack items: {solution.error}")

        results = await asyncio.gather(
            *(self._fetch_box_rates(i, selection, ship_to) for i, selection in enumerate(solution.boxes))
        )
        box_rates = [result for result in results if result is not None]

        sort_preference = self._config.shipping.rate_preferences.sort
        options = aggregate_rates(box_rates, solution, sort_preference)

        if not options:
            logger.warning(f"No fully covered shipping options for {solution.total_boxes} box(es)")
            return ShippingQuoteResponse(error=ERROR_NO_OPTIONS)

        logger.debug(f"Quote: {len(options)} options, sort={sort_preference}")
        return ShippingQuoteResponse(options=options, default_option=options[0])

    async def validate_address(self, address: AddressInput) -> None:
        """
        Check a destination by quoting a 1 oz, 1x1x1 in package from ship_from.

        Raises:
            ShippingQuoteError: the rate source rejected the address
        """
        package = Package(weight_oz=1.0, length=1.0, width=1.0, height=1.0)
        from_address = address_from_config(self._config.shipping.ship_from)
        try:
            await self._rate_source.get_rates(from_address, address, package, [])
        except RateSourceError as e:
            logger.warning(f"Address validation failed for {address.postal_code}: {e.message}")
            raise ShippingQuoteError(
                f"invalid address: {e.message}",
                details={"postal_code": address.postal_code, "country_code": address.country_code},
            ) from e

    # ==================== Labels ====================

    async def create_label(self, shipment_id: str, rate_id: str) -> Label:
        """Buy the label for one shipment."""
        try:
            return await self._rate_source.buy_shipment(shipment_id, rate_id)
        except RateSourceError as e:
            raise ShippingLabelError(
                f"failed to buy shipment: {e.message}",
                details={"shipment_id": shipment_id, "rate_id": rate_id},
            ) from e

    async def create_labels_for_multi_box(
        self,
        shipment_ids: Sequence[str],
        rate_ids: Sequence[str],
    ) -> List[Label]:
        """
        Buy one label per box, in order.

        Stops at the first failure. Labels bought before it are attached to
        the raised MultiBoxLabelError; they are not voided.

        Raises:
            ShippingLabelError: mismatched or empty inputs
            MultiBoxLabelError: a purchase failed partway through
        """
        if len(shipment_ids) != len(rate_ids):
            raise ShippingLabelError(
                f"shipment IDs and rate IDs must have same length: got {len(shipment_ids)} and {len(rate_ids)}"
            )
        if not shipment_ids:
            raise ShippingLabelError("no shipments provided")

        total = len(shipment_ids)
        labels: List[Label] = []
        for i, (shipment_id, rate_id) in enumerate(zip(shipment_ids, rate_ids)):
            try:
                label = await self._rate_source.buy_shipment(shipment_id, rate_id)
            except Exception as e:
                logger.error(
                    f"Failed to buy shipment {shipment_id} (rate {rate_id}), box {i + 1} of {total}, "
                    f"{len(labels)} label(s) already purchased: {e}"
                )
                raise MultiBoxLabelError(
                    f"failed to buy shipment {i + 1} of {total}: {e}",
                    purchased_labels=labels,
                    failed_index=i,
                    total_boxes=total,
                ) from e
            labels.append(label)

        logger.info(f"Created {len(labels)} labels for multi-box order: {list(shipment_ids)}")
        return labels

    async def void_label(self, shipment_id: str) -> VoidResult:
        """
        Void a purchased label.

        Raises:
            LabelVoidError: the request failed or the void was not approved
        """
        try:
            result = await self._rate_source.void_label(shipment_id)
        except RateSourceError as e:
            raise LabelVoidError(
                f"failed to void label: {e.message}",
                details={"shipment_id": shipment_id},
            ) from e

        if not result.approved:
            raise LabelVoidError(
                f"label void not approved: {result.message}",
                details={"shipment_id": shipment_id},
            )

        logger.info(f"Label voided for {shipment_id}: {result.message}")
        return result

    # ==================== Defaults ====================

    def default_item_weights(self) -> Dict[str, float]:
        """Configured average item weight (oz) per category."""
        return {
            category.value: weights.avg_oz
            for category, weights in self._config.packing.item_weights.items()
        }

    def default_dimensions(self) -> Dict[str, Dict[str, float]]:
        """Configured dimension guard (in) per category."""
        return {
            category.value: {"length": guard.length, "width": guard.width, "height": guard.height}
            for category, guard in self._config.packing.dimension_guard_in.items()
        }
