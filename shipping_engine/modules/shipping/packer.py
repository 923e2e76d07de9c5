"""
Box Packer

Converts an order's item-size mix into one or more box selections.

Capacity is measured in "small units": every size category converts to an
integer number of small units through the equivalence table, and a box holds
floor(L * W * H * fill_ratio / unit_volume) of them. Dimension guards are a
coarse fit filter (sorted-dimension comparison), not 3D geometry.

Strategy:
1. One box: the cheapest (box cost + handling fee) box that fits everything.
2. Otherwise: greedily fill the highest-capacity box (XLarge first, Small
   last) and recurse on the remainder, never exceeding MAX_BOXES boxes.

The Packer owns an immutable ShippingConfig. Build a new Packer to change
configuration.
"""
import logging
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, List, Optional, Tuple

from shipping_engine.core.exceptions import ItemDimensionError
from shipping_engine.models.packing import BoxSelection, ItemCounts, PackingSolution
from shipping_engine.models.size_category import PACKING_ORDER, SizeCategory
from shipping_engine.schemas.shipping_config import Box, DimensionGuard, ShippingConfig

logger = logging.getLogger(__name__)

MAX_BOXES = 10

ERROR_NO_ITEMS = "no items to pack"
ERROR_NO_SINGLE_BOX = "no single box can fit all items"
ERROR_TOO_MANY_BOXES = f"too many boxes required (>{MAX_BOXES})"
ERROR_UNABLE_TO_PACK = "unable to pack items in available boxes"


def _decimal(value: float) -> Decimal:
    return Decimal(str(value))


class Packer:
    """Greedy box packer over a fixed box catalog."""

    def __init__(self, config: ShippingConfig):
        self._config = config
        self._packing = config.packing
        self._boxes: Tuple[Box, ...] = tuple(config.boxes)
        self._capacities: Dict[str, int] = {box.sku: self.capacity(box) for box in self._boxes}
        # Highest capacity first; equal capacities keep catalog order
        self._boxes_by_capacity: Tuple[Box, ...] = tuple(
            sorted(self._boxes, key=lambda b: self._capacities[b.sku], reverse=True)
        )

    @property
    def config(self) -> ShippingConfig:
        return self._config

    @property
    def handling_fee(self) -> float:
        return self._packing.packing_materials.handling_fee_per_box_usd

    # ==================== Sizing ====================

    def small_units(self, counts: ItemCounts) -> int:
        """Weighted sum of item counts via the equivalence table."""
        return sum(
            self._packing.equivalences[category] * counts.count(category)
            for category in SizeCategory
        )

    def capacity(self, box: Box) -> int:
        """Number of small units a box holds."""
        volume = _decimal(box.length) * _decimal(box.width) * _decimal(box.height)
        usable = volume * _decimal(self._packing.fill_ratio)
        units = (usable / _decimal(self._packing.unit_volume_in3)).to_integral_value(rounding=ROUND_FLOOR)
        return int(units)

    def _guard(self, category: SizeCategory, counts: ItemCounts) -> DimensionGuard:
        return counts.dimension_override(category) or self._packing.dimension_guard_in[category]

    def dimensions_ok(self, box: Box, counts: ItemCounts) -> bool:
        """True when every category present in counts fits the box, allowing rotation."""
        box_dims = box.sorted_dims()
        for category in SizeCategory:
            if counts.count(category) == 0:
                continue
            guard_dims = self._guard(category, counts).sorted_dims()
            if any(g > b for g, b in zip(guard_dims, box_dims)):
                return False
        return True

    def candidate_boxes(self, counts: ItemCounts) -> List[Box]:
        need = self.small_units(counts)
        return [
            box for box in self._boxes
            if self._capacities[box.sku] >= need and self.dimensions_ok(box, counts)
        ]

    # ==================== Weight ====================

    def _item_weight(self, category: SizeCategory, counts: ItemCounts) -> float:
        override = counts.weight_override(category)
        if override > 0:
            return override
        return self._packing.item_weights[category].avg_oz

    def estimate_weight(self, box: Box, counts: ItemCounts) -> float:
        """
        Shipped weight of a box in ounces.

        box weight + item weights + bubble wrap per item + paper, tape and air
        pillows per box. Non-positive counts contribute nothing.
        """
        materials = self._packing.packing_materials
        items_weight = 0.0
        for category in SizeCategory:
            count = counts.count(category)
            if count <= 0:
                continue
            items_weight += self._item_weight(category, counts) * count

        return (
            box.box_weight_oz
            + items_weight
            + materials.bubble_wrap_per_item_oz * counts.total_items
            + materials.per_box_oz
        )

    def _select(self, box: Box, counts: ItemCounts) -> BoxSelection:
        return BoxSelection(
            box=box,
            item_counts=counts,
            small_units=self.small_units(counts),
            weight=self.estimate_weight(box, counts),
            box_cost=box.unit_cost_usd,
            packing_materials_cost=self.handling_fee,
        )

    # ==================== Single Box ====================

    def pack_single_box(self, counts: ItemCounts) -> PackingSolution:
        """Cheapest single box holding everything; ties go to catalog order."""
        candidates = self.candidate_boxes(counts)
        if not candidates:
            return PackingSolution.failure(ERROR_NO_SINGLE_BOX)

        logger.debug(f"Single box: {len(candidates)} candidate(s) for {self.small_units(counts)} units")

        best: Optional[Box] = None
        best_cost = float("inf")
        for box in candidates:
            cost = box.unit_cost_usd + self.handling_fee
            if cost < best_cost:
                best, best_cost = box, cost

        return PackingSolution.from_boxes([self._select(best, counts)])

    # ==================== Multiple Boxes ====================

    def distribute_items_to_box(self, counts: ItemCounts, capacity: int) -> Tuple[ItemCounts, ItemCounts]:
        """
        Greedily fill one box, largest category first.

        Returns (packed, remaining). packed + remaining equals counts for
        every category. Overrides are carried onto both halves.
        """
        remaining_capacity = max(capacity, 0)
        packed: Dict[SizeCategory, int] = {}
        remaining: Dict[SizeCategory, int] = {}

        for category in PACKING_ORDER:
            count = counts.count(category)
            units = self._packing.equivalences[category]
            take = min(max(count, 0), remaining_capacity // units)
            remaining_capacity -= take * units
            packed[category] = take
            remaining[category] = count - take

        return counts.with_counts(packed), counts.with_counts(remaining)

    def _every_item_fits(self, counts: ItemCounts, max_capacity: int) -> bool:
        """False when some item present is larger than the biggest box holds."""
        return all(
            self._packing.equivalences[category] <= max_capacity
            for category in SizeCategory
            if counts.count(category) > 0
        )

    def pack_multiple_boxes(self, counts: ItemCounts) -> PackingSolution:
        if self.small_units(counts) <= 0:
            return PackingSolution.failure(ERROR_NO_ITEMS)
        return self._pack_recursively(counts, 0, {})

    def _pack_recursively(
        self,
        counts: ItemCounts,
        depth: int,
        failures: Dict[Tuple[Tuple[int, ...], int], PackingSolution],
    ) -> PackingSolution:
        if self.small_units(counts) <= 0:
            return PackingSolution(valid=True)

        if depth >= MAX_BOXES:
            return PackingSolution.failure(ERROR_TOO_MANY_BOXES)

        memo_key = (counts.key(), depth)
        if memo_key in failures:
            return failures[memo_key]

        single = self.pack_single_box(counts)
        if single.valid:
            return single

        max_capacity = self._capacities[self._boxes_by_capacity[0].sku]
        if not self._every_item_fits(counts, max_capacity):
            failure = PackingSolution.failure(ERROR_UNABLE_TO_PACK)
            failures[memo_key] = failure
            return failure

        if self.small_units(counts) > (MAX_BOXES - depth) * max_capacity:
            failure = PackingSolution.failure(ERROR_TOO_MANY_BOXES)
            failures[memo_key] = failure
            return failure

        hit_box_limit = False
        for box in self._boxes_by_capacity:
            capacity = self._capacities[box.sku]
            if capacity <= 0:
                continue

            packed, remaining = self.distribute_items_to_box(counts, capacity)
            if self.small_units(packed) <= 0:
                continue

            rest = self._pack_recursively(remaining, depth + 1, failures)
            if not rest.valid:
                hit_box_limit = hit_box_limit or rest.error == ERROR_TOO_MANY_BOXES
                logger.debug(f"Depth {depth}: {box.sku} remainder failed ({rest.error}), trying next box")
                continue

            return PackingSolution.from_boxes((self._select(box, packed),) + rest.boxes)

        failure = PackingSolution.failure(ERROR_TOO_MANY_BOXES if hit_box_limit else ERROR_UNABLE_TO_PACK)
        failures[memo_key] = failure
        return failure

    # ==================== Entry Point ====================

    def pack(self, counts: ItemCounts) -> PackingSolution:
        """
        Pack an order.

        Never raises for infeasible orders; returns PackingSolution with
        valid=False and a human-readable error instead.
        """
        units = self.small_units(counts)
        logger.debug(f"Packing {counts.to_dict()} ({units} small units)")

        if units <= 0:
            return PackingSolution.failure(ERROR_NO_ITEMS)

        single = self.pack_single_box(counts)
        if single.valid:
            selection = single.boxes[0]
            logger.debug(
                f"Single box solution: {selection.box.sku} "
                f"weight={selection.weight:.2f}oz cost=${single.total_cost:.2f}"
            )
            return single

        logger.debug("No single box fits, trying multi-box")
        solution = self.pack_multiple_boxes(counts)

        if solution.valid:
            logger.debug(f"Multi-box solution: {solution.total_boxes} boxes, cost=${solution.total_cost:.2f}")
            for i, selection in enumerate(solution.boxes):
                logger.debug(f"  box {i}: {selection.box.sku} {selection.item_counts.to_dict()} weight={selection.weight:.2f}oz")
        else:
            logger.debug(f"No packing solution: {solution.error}")

        return solution

    # ==================== Validation ====================

    def validate_item_dimensions(self, category, length: float, width: float, height: float) -> None:
        """
        Check an item against its category's dimension guard.

        Raises:
            ItemDimensionError: unknown category or dimensions exceed the guard
        """
        try:
            size = SizeCategory.parse(category)
        except ValueError:
            raise ItemDimensionError(f"unknown category: {category}", category=str(category))

        guard = self._packing.dimension_guard_in[size]
        if length > guard.length or width > guard.width or height > guard.height:
            raise ItemDimensionError(
                f"item dimensions ({length:g}x{width:g}x{height:g}) exceed {size.value} category limits "
                f"({guard.length:g}x{guard.width:g}x{guard.height:g})",
                category=size.value,
            )
