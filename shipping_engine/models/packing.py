"""
Packing data classes.

ItemCounts is the packer's input; PackingSolution and BoxSelection are its
output. A PackingSolution is built fresh for every Packer.pack() call and is
never mutated afterwards.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from shipping_engine.models.size_category import SizeCategory
from shipping_engine.schemas.shipping_config import Box, DimensionGuard


@dataclass(frozen=True)
class ItemCounts:
    """
    Item counts per size category, plus optional per-order overrides.

    weight_overrides: ounces per item, replacing the configured average for
        that category for one call when positive.
    dimension_overrides: a DimensionGuard replacing the configured guard for
        that category when all three dimensions are positive.
    """
    small: int = 0
    medium: int = 0
    large: int = 0
    xlarge: int = 0
    weight_overrides: Mapping[SizeCategory, float] = field(default_factory=dict, hash=False)
    dimension_overrides: Mapping[SizeCategory, DimensionGuard] = field(default_factory=dict, hash=False)

    @classmethod
    def from_mapping(cls, counts: Mapping[Any, int], **overrides) -> "ItemCounts":
        """Build from {"small": 2, "xl": 1, ...}; unknown keys raise ValueError."""
        values = {c.value: 0 for c in SizeCategory}
        for key, count in counts.items():
            values[SizeCategory.parse(key).value] = int(count)
        return cls(**values, **overrides)

    def count(self, category: SizeCategory) -> int:
        return getattr(self, category.value)

    def as_dict(self) -> Dict[SizeCategory, int]:
        return {c: self.count(c) for c in SizeCategory}

    def key(self) -> Tuple[int, int, int, int]:
        return tuple(self.count(c) for c in SizeCategory)

    @property
    def total_items(self) -> int:
        return sum(max(self.count(c), 0) for c in SizeCategory)

    @property
    def is_empty(self) -> bool:
        return self.total_items == 0

    def with_counts(self, counts: Mapping[SizeCategory, int]) -> "ItemCounts":
        """Copy with new counts; overrides are carried over."""
        return replace(self, **{c.value: n for c, n in counts.items()})

    def weight_override(self, category: SizeCategory) -> float:
        return self.weight_overrides.get(category, 0.0) or 0.0

    def dimension_override(self, category: SizeCategory) -> Optional[DimensionGuard]:
        guard = self.dimension_overrides.get(category)
        if guard is not None and guard.is_complete:
            return guard
        return None

    def to_dict(self) -> Dict[str, int]:
        return {c.value: self.count(c) for c in SizeCategory}


@dataclass(frozen=True)
class BoxSelection:
    """One box instance and the items assigned to it."""
    box: Box
    item_counts: ItemCounts
    small_units: int
    weight: float  # ounces
    box_cost: float
    packing_materials_cost: float
    quantity: int = 1

    @property
    def total_cost(self) -> float:
        return self.box_cost + self.packing_materials_cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "box_sku": self.box.sku,
            "box_name": self.box.name,
            "dimensions_in": [self.box.length, self.box.width, self.box.height],
            "quantity": self.quantity,
            "small_units": self.small_units,
            "weight_oz": round(self.weight, 2),
            "box_cost": round(self.box_cost, 2),
            "packing_materials_cost": round(self.packing_materials_cost, 2),
            "item_counts": self.item_counts.to_dict(),
        }


@dataclass(frozen=True)
class PackingSolution:
    """Ordered box selections for an order, or the reason packing failed."""
    boxes: Tuple[BoxSelection, ...] = ()
    total_cost: float = 0.0
    total_boxes: int = 0
    valid: bool = False
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "PackingSolution":
        return cls(valid=False, error=error)

    @classmethod
    def from_boxes(cls, boxes) -> "PackingSolution":
        boxes = tuple(boxes)
        return cls(
            boxes=boxes,
            total_cost=sum(b.total_cost for b in boxes),
            total_boxes=len(boxes),
            valid=True,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "boxes": [b.to_dict() for b in self.boxes],
            "total_cost": round(self.total_cost, 2),
            "total_boxes": self.total_boxes,
            "valid": self.valid,
            "error": self.error,
        }
