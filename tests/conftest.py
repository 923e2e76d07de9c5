"""
Pytest configuration and fixtures for shipping engine tests.
"""
import os
import pytest
from unittest.mock import MagicMock, AsyncMock

# Set test environment before importing engine modules
os.environ["ENVIRONMENT"] = "development"
os.environ["EASYPOST_API_KEY"] = ""
os.environ.pop("DATABASE_URL", None)

from shipping_engine.models.packing import BoxSelection, ItemCounts, PackingSolution
from shipping_engine.models.rates import AddressInput, Rate
from shipping_engine.schemas.shipping_config import Box, ShippingConfig, create_default_config


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create mock async database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture
def default_config() -> ShippingConfig:
    """Built-in shipping document (4 boxes, 27 in3 units, 0.80 fill)."""
    return create_default_config()


@pytest.fixture
def config_data(default_config) -> dict:
    """Default shipping document as plain JSON-compatible data."""
    return default_config.model_dump(mode="json", by_alias=True)


@pytest.fixture
def ship_to() -> AddressInput:
    return AddressInput(
        name="Test Customer",
        address_line1="1 Main Street",
        city_locality="Albany",
        state_province="NY",
        postal_code="12207",
    )


def make_box(sku: str, cost: float, dims=(10, 8, 6)) -> Box:
    length, width, height = dims
    return Box(sku=sku, name=sku, L=length, W=width, H=height, box_weight_oz=4.0, unit_cost_usd=cost)


def make_selection(sku: str = "BOX1", box_cost: float = 0.50, handling: float = 1.50) -> BoxSelection:
    """A one-item box selection with the given costs."""
    return BoxSelection(
        box=make_box(sku, box_cost),
        item_counts=ItemCounts(small=1),
        small_units=1,
        weight=12.0,
        box_cost=box_cost,
        packing_materials_cost=handling,
    )


def make_solution(*selections: BoxSelection) -> PackingSolution:
    return PackingSolution.from_boxes(selections)


def make_rate(
    carrier: str,
    service: str,
    price: float,
    days: int,
    rate_id: str = "",
    shipment_id: str = "",
    estimated_date: str = "",
) -> Rate:
    return Rate(
        rate_id=rate_id or f"rate_{carrier}_{service}_{price}",
        carrier_name=carrier,
        service_name=service,
        price=price,
        shipment_id=shipment_id or f"shp_{carrier}_{price}",
        delivery_days=days,
        estimated_date=estimated_date,
    )
