"""
Rate, label and quote data classes.

Carrier-agnostic value objects exchanged between the ShippingService, the
rate aggregator and RateSource implementations. All are immutable.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from shipping_engine.models.packing import BoxSelection, PackingSolution


@dataclass(frozen=True)
class AddressInput:
    """A ship-from or ship-to address."""
    address_line1: str
    city_locality: str
    state_province: str
    postal_code: str
    country_code: str = "US"
    address_line2: Optional[str] = None
    name: Optional[str] = None
    company_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    residential: bool = True


@dataclass(frozen=True)
class Package:
    """One physical box as handed to a rate source."""
    weight_oz: float
    length: float
    width: float
    height: float

    @classmethod
    def from_box_selection(cls, selection: BoxSelection) -> "Package":
        return cls(
            weight_oz=selection.weight,
            length=selection.box.length,
            width=selection.box.width,
            height=selection.box.height,
        )


@dataclass(frozen=True)
class Rate:
    """One carrier/service quote for one box."""
    rate_id: str
    carrier_name: str
    service_name: str
    price: float
    currency: str = "USD"
    shipment_id: str = ""
    carrier_id: str = ""
    carrier_code: str = ""
    service_code: str = ""
    delivery_days: int = 0
    estimated_date: str = ""


@dataclass(frozen=True)
class BoxRatesResult:
    """Rates obtained for a single box of a packing solution."""
    box_selection: BoxSelection
    rates: Tuple[Rate, ...] = ()


@dataclass(frozen=True)
class ShippingOption:
    """
    A whole-order offer for one carrier/service.

    all_rate_ids and all_shipment_ids hold one entry per box in box order;
    both are needed to purchase every label of a multi-box order.
    """
    rate_id: str
    shipment_id: str
    all_rate_ids: Tuple[str, ...]
    all_shipment_ids: Tuple[str, ...]
    carrier_name: str
    service_name: str
    price: float
    currency: str
    delivery_days: int
    estimated_date: str
    box_sku: str
    box_cost: float
    handling_cost: float
    total_cost: float
    box_count: int
    packing_solution: Optional[PackingSolution] = field(default=None, compare=False, repr=False)

    def to_dict(self, include_packing: bool = False) -> Dict[str, Any]:
        data = {
            "rate_id": self.rate_id,
            "shipment_id": self.shipment_id,
            "all_rate_ids": list(self.all_rate_ids),
            "all_shipment_ids": list(self.all_shipment_ids),
            "carrier_name": self.carrier_name,
            "service_name": self.service_name,
            "price": round(self.price, 2),
            "currency": self.currency,
            "delivery_days": self.delivery_days,
            "estimated_date": self.estimated_date or None,
            "box_sku": self.box_sku,
            "box_cost": round(self.box_cost, 2),
            "handling_cost": round(self.handling_cost, 2),
            "total_cost": round(self.total_cost, 2),
            "box_count": self.box_count,
        }
        if include_packing and self.packing_solution is not None:
            data["packing_solution"] = self.packing_solution.to_dict()
        return data


@dataclass(frozen=True)
class Label:
    """A purchased shipping label."""
    label_id: str
    shipment_id: str
    tracking_number: str
    price: float = 0.0
    currency: str = "USD"
    carrier_name: str = ""
    service_name: str = ""
    label_url: Optional[str] = None
    status: str = "purchased"
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class VoidResult:
    """Result of voiding (refunding) a label."""
    approved: bool
    message: str = ""


@dataclass
class ShippingQuoteResponse:
    """Sorted shipping options for an order, or an error message."""
    options: List[ShippingOption] = field(default_factory=list)
    default_option: Optional[ShippingOption] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.error and bool(self.options)

    def presented_options(self, top_n: int) -> List[ShippingOption]:
        """The first top_n options, for display."""
        if top_n <= 0:
            return []
        return self.options[:top_n]

    def to_dict(self, top_n: Optional[int] = None) -> Dict[str, Any]:
        options = self.options if top_n is None else self.presented_options(top_n)
        return {
            "options": [o.to_dict() for o in options],
            "default_option": self.default_option.to_dict(include_packing=True) if self.default_option else None,
            "error": self.error,
        }
