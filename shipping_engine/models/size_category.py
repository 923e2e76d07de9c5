"""
Item size categories.

Every sizing table (equivalences, weights, dimension guards) is keyed by
SizeCategory, so a missing category is a validation error at config load
rather than a lookup failure during packing.
"""
import enum
from typing import Tuple


class SizeCategory(str, enum.Enum):
    """The four fixed item size categories. Values match config keys."""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XLARGE = "xlarge"

    @classmethod
    def parse(cls, value) -> "SizeCategory":
        """Accept an enum member, its value, or the short alias "xl"."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized == "xl":
            normalized = "xlarge"
        return cls(normalized)


# Greedy fill order: largest equivalence first
PACKING_ORDER: Tuple[SizeCategory, ...] = (
    SizeCategory.XLARGE,
    SizeCategory.LARGE,
    SizeCategory.MEDIUM,
    SizeCategory.SMALL,
)
