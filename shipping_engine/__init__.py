"""Shipping cost engine: box packing and multi-box carrier rate aggregation."""

__version__ = "1.0.0"
