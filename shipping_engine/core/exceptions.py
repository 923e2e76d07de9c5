"""
Shipping Engine Exception Hierarchy

All exceptions include code, message, and details for logging and
debugging. Packing infeasibility is NOT an exception: it is reported as an
invalid PackingSolution.

Exception Hierarchy:
    ShippingEngineError
    ├── ShippingConfigError
    └── ShippingError
        ├── ShippingQuoteError
        │   └── RateSourceError
        ├── ItemDimensionError
        ├── ShippingLabelError
        │   └── MultiBoxLabelError
        └── LabelVoidError
"""
import logging
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


class ShippingEngineError(Exception):
    """
    Base exception for all shipping engine errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
        severity: P0-P3 severity level
    """

    default_code: str = "SHIPPING_ENGINE_ERROR"
    default_severity: str = "P2"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ShippingConfigError(ShippingEngineError):
    """Shipping configuration failed validation. Fatal at load time."""
    default_code = "SHIPPING_CONFIG_INVALID"
    default_severity = "P0"

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        errors: Optional[List[str]] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "source": source,
            "errors": errors or [],
        })
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# SHIPPING ERRORS
# =============================================================================

class ShippingError(ShippingEngineError):
    """Base exception for shipping-related errors."""
    default_code = "SHIPPING_ERROR"
    default_severity = "P1"


class ShippingQuoteError(ShippingError):
    """Failed to get shipping quote."""
    default_code = "SHIPPING_QUOTE_FAILED"


class RateSourceError(ShippingQuoteError):
    """A rate source (carrier API) call failed."""
    default_code = "RATE_SOURCE_FAILED"
    default_severity = "P2"

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "source": source,
            "status_code": status_code,
        })
        super().__init__(message, details=details, **kwargs)


class ItemDimensionError(ShippingError):
    """Item dimensions do not fit the category's dimension guard."""
    default_code = "ITEM_DIMENSIONS_INVALID"
    default_severity = "P3"

    def __init__(
        self,
        message: str,
        category: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["category"] = category
        super().__init__(message, details=details, **kwargs)


class ShippingLabelError(ShippingError):
    """Failed to create shipping label."""
    default_code = "SHIPPING_LABEL_FAILED"


class MultiBoxLabelError(ShippingLabelError):
    """
    A label purchase failed partway through a multi-box order.

    Labels bought before the failure are returned in purchased_labels so the
    caller can void them. Nothing is rolled back automatically.
    """
    default_code = "MULTI_BOX_LABEL_FAILED"
    default_severity = "P0"

    def __init__(
        self,
        message: str,
        purchased_labels: Optional[list] = None,
        failed_index: Optional[int] = None,
        total_boxes: Optional[int] = None,
        **kwargs
    ):
        self.purchased_labels = list(purchased_labels or [])
        details = kwargs.pop("details", {})
        details.update({
            "failed_index": failed_index,
            "total_boxes": total_boxes,
            "labels_purchased": len(self.purchased_labels),
        })
        super().__init__(message, details=details, **kwargs)


class LabelVoidError(ShippingError):
    """Label void/refund was rejected or failed."""
    default_code = "LABEL_VOID_FAILED"
    default_severity = "P2"
