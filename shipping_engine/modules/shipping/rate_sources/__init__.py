"""
Rate Source Registry and Factory

- register_rate_source() registers an implementation under a name
- RateSourceFactory creates instances by name
- get_rate_source() picks EasyPost when an API key is configured, mock otherwise
"""
from typing import Dict, List, Optional, Type
import logging

from shipping_engine.core.config import Settings, settings as default_settings
from shipping_engine.core.exceptions import ShippingConfigError
from shipping_engine.modules.shipping.rate_sources.base import RateSource

logger = logging.getLogger(__name__)

EASYPOST = "easypost"
MOCK = "mock"

# Registry of rate source implementations
_RATE_SOURCE_REGISTRY: Dict[str, Type[RateSource]] = {}


def register_rate_source(name: str):
    """
    Decorator to register a rate source implementation.

    Usage:
        @register_rate_source("easypost")
        class EasyPostRateSource(RateSource):
            ...
    """
    def decorator(cls: Type[RateSource]):
        cls.source_name = name
        _RATE_SOURCE_REGISTRY[name] = cls
        logger.debug(f"Registered rate source: {name} -> {cls.__name__}")
        return cls
    return decorator


class RateSourceFactory:
    """Factory for creating rate source instances."""

    @classmethod
    def create(cls, name: str, source_settings: Optional[Settings] = None) -> RateSource:
        """
        Create a rate source by registered name.

        Raises:
            ShippingConfigError: no implementation is registered under name
        """
        source_cls = _RATE_SOURCE_REGISTRY.get(name)
        if not source_cls:
            raise ShippingConfigError(
                f"Unknown rate source: {name}",
                source="rate_source",
                errors=[f"registered: {', '.join(sorted(_RATE_SOURCE_REGISTRY))}"],
            )
        return source_cls(source_settings or default_settings)

    @classmethod
    def get_registered_sources(cls) -> List[str]:
        return list(_RATE_SOURCE_REGISTRY.keys())


def get_rate_source(source_settings: Optional[Settings] = None) -> RateSource:
    """EasyPost when EASYPOST_API_KEY is set, mock rates otherwise."""
    source_settings = source_settings or default_settings
    if source_settings.use_mock_rates:
        logger.info("EASYPOST_API_KEY not set, using mock rates")
        return RateSourceFactory.create(MOCK, source_settings)
    return RateSourceFactory.create(EASYPOST, source_settings)


# Import sources to trigger registration
# These imports must be at the bottom to avoid circular imports
from shipping_engine.modules.shipping.rate_sources.easypost import EasyPostRateSource  # noqa: E402, F401
from shipping_engine.modules.shipping.rate_sources.mock import MockRateSource  # noqa: E402, F401
