"""
Shipping Module

- Packer: packs an order's item mix into boxes
- aggregate_rates / sort_shipping_options: per-box rates to whole-order options
- RateSource implementations behind RateSourceFactory
"""
from shipping_engine.modules.shipping.aggregation import aggregate_rates, sort_shipping_options
from shipping_engine.modules.shipping.packer import MAX_BOXES, Packer
from shipping_engine.modules.shipping.rate_sources import RateSourceFactory, get_rate_source
from shipping_engine.modules.shipping.rate_sources.base import RateSource

__all__ = [
    "MAX_BOXES",
    "Packer",
    "aggregate_rates",
    "sort_shipping_options",
    "RateSource",
    "RateSourceFactory",
    "get_rate_source",
]
