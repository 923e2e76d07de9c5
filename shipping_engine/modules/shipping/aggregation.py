"""
Rate Aggregation

Combines per-box carrier rates into whole-order shipping options.

A carrier/service is offered only if it quoted a rate for every box of the
packing solution. Missing even one box drops the whole carrier/service, so
a multi-box order is never undercharged.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from shipping_engine.models.packing import PackingSolution
from shipping_engine.models.rates import BoxRatesResult, Rate, ShippingOption
from shipping_engine.schemas.shipping_config import SORT_DAYS_THEN_PRICE, SORT_PRICE, SORT_PRICE_THEN_DAYS

logger = logging.getLogger(__name__)


@dataclass
class _Accumulator:
    carrier_name: str
    service_name: str
    currency: str
    box_sku: str
    rate_ids: List[str] = field(default_factory=list)
    shipment_ids: List[str] = field(default_factory=list)
    boxes_covered: int = 0
    price: float = 0.0
    box_cost: float = 0.0
    handling_cost: float = 0.0
    delivery_days: int = 0
    estimated_date: str = ""

    def add(self, rate: Rate, box_cost: float, handling_cost: float) -> None:
        self.rate_ids.append(rate.rate_id)
        self.shipment_ids.append(rate.shipment_id)
        self.boxes_covered += 1
        self.price += rate.price
        self.box_cost += box_cost
        self.handling_cost += handling_cost
        if self.boxes_covered == 1 or rate.delivery_days > self.delivery_days:
            self.delivery_days = rate.delivery_days
            self.estimated_date = rate.estimated_date

    def to_option(self, packing_solution: Optional[PackingSolution]) -> ShippingOption:
        return ShippingOption(
            rate_id=self.rate_ids[0],
            shipment_id=self.shipment_ids[0],
            all_rate_ids=tuple(self.rate_ids),
            all_shipment_ids=tuple(self.shipment_ids),
            carrier_name=self.carrier_name,
            service_name=self.service_name,
            price=self.price,
            currency=self.currency,
            delivery_days=self.delivery_days,
            estimated_date=self.estimated_date,
            box_sku=self.box_sku,
            box_cost=self.box_cost,
            handling_cost=self.handling_cost,
            total_cost=self.price + self.box_cost + self.handling_cost,
            box_count=self.boxes_covered,
            packing_solution=packing_solution,
        )


def _cheapest_per_service(rates: Sequence[Rate]) -> List[Rate]:
    """One rate per carrier/service for a single box; the cheaper quote wins, first on ties."""
    chosen: Dict[Tuple[str, str], Rate] = {}
    for rate in rates:
        key = (rate.carrier_name, rate.service_name)
        current = chosen.get(key)
        if current is None or rate.price < current.price:
            chosen[key] = rate
    return list(chosen.values())


def aggregate_rates(
    box_rates: Sequence[BoxRatesResult],
    packing_solution: Optional[PackingSolution] = None,
    sort_preference: str = SORT_PRICE_THEN_DAYS,
) -> List[ShippingOption]:
    """
    Aggregate per-box rates into fully covered whole-order options.

    Args:
        box_rates: One BoxRatesResult per box that returned rates, in box order
        packing_solution: The solution the boxes came from. Its total_boxes is
            the coverage every option must reach; without it, the number of
            box results is used.
        sort_preference: price_then_days, days_then_price, or anything else
            for price only

    Returns:
        Sorted options. Empty input yields an empty list.
    """
    if not box_rates:
        return []

    required_boxes = packing_solution.total_boxes if packing_solution is not None else len(box_rates)

    groups: Dict[Tuple[str, str], _Accumulator] = {}
    for box_result in box_rates:
        selection = box_result.box_selection
        for rate in _cheapest_per_service(box_result.rates):
            key = (rate.carrier_name, rate.service_name)
            acc = groups.get(key)
            if acc is None:
                acc = _Accumulator(
                    carrier_name=rate.carrier_name,
                    service_name=rate.service_name,
                    currency=rate.currency,
                    box_sku=selection.box.sku,
                )
                groups[key] = acc
            acc.add(rate, selection.box_cost, selection.packing_materials_cost)

    options = []
    for (carrier, service), acc in groups.items():
        if acc.boxes_covered != required_boxes:
            logger.debug(
                f"Dropping {carrier} {service}: rates for {acc.boxes_covered} of {required_boxes} boxes"
            )
            continue
        options.append(acc.to_option(packing_solution))

    return sort_shipping_options(options, sort_preference)


def _price_only(option: ShippingOption) -> float:
    return option.total_cost


_SORT_KEYS = {
    SORT_PRICE_THEN_DAYS: lambda o: (o.total_cost, o.delivery_days),
    SORT_DAYS_THEN_PRICE: lambda o: (o.delivery_days, o.total_cost),
    SORT_PRICE: _price_only,
}


def sort_shipping_options(options: Sequence[ShippingOption], preference: str) -> List[ShippingOption]:
    """Stable sort of shipping options by the given preference."""
    return sorted(options, key=_SORT_KEYS.get(preference, _price_only))
