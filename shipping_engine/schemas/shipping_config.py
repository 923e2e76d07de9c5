"""
Shipping Configuration Schemas

Pydantic models for the shipping document: sizing model, packing
materials, box catalog, origins and rate preferences.

The document is validated eagerly when loaded (file or database). A config
that fails validation is never handed to the Packer; the loaders raise
ShippingConfigError instead.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from shipping_engine.core.exceptions import ShippingConfigError
from shipping_engine.models.size_category import SizeCategory

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "./config/shipping.json"

# Origin name that resolves to shipping.ship_from
DEFAULT_ORIGIN = "default"

SORT_PRICE_THEN_DAYS = "price_then_days"
SORT_DAYS_THEN_PRICE = "days_then_price"
SORT_PRICE = "price"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


# ==================== Sizing Model ====================


class DimensionGuard(_Frozen):
    """Minimum bounding box (inches) an item of a category requires."""
    length: float = Field(0.0, alias="L", ge=0)
    width: float = Field(0.0, alias="W", ge=0)
    height: float = Field(0.0, alias="H", ge=0)

    @property
    def is_complete(self) -> bool:
        return self.length > 0 and self.width > 0 and self.height > 0

    def sorted_dims(self) -> Tuple[float, float, float]:
        return tuple(sorted((self.length, self.width, self.height)))


class ItemWeights(_Frozen):
    """Weight statistics for one category. avg_oz drives estimation."""
    min_grams: float = Field(0.0, ge=0)
    max_grams: float = Field(0.0, ge=0)
    avg_grams: float = Field(0.0, ge=0)
    avg_oz: float = Field(..., gt=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.max_grams and self.min_grams > self.max_grams:
            raise ValueError("min_grams cannot exceed max_grams")
        return self


class PackingMaterials(_Frozen):
    bubble_wrap_per_item_oz: float = Field(0.0, ge=0)
    packing_paper_per_box_oz: float = Field(0.0, ge=0)
    tape_and_labels_per_box_oz: float = Field(0.0, ge=0)
    air_pillows_per_box_oz: float = Field(0.0, ge=0)
    handling_fee_per_box_usd: float = Field(0.0, ge=0)

    @property
    def per_box_oz(self) -> float:
        return self.packing_paper_per_box_oz + self.tape_and_labels_per_box_oz + self.air_pillows_per_box_oz


class PackingConfig(_Frozen):
    unit_volume_in3: float = Field(..., gt=0)
    fill_ratio: float = Field(..., gt=0, le=1)
    equivalences: Dict[SizeCategory, int]
    dimension_guard_in: Dict[SizeCategory, DimensionGuard]
    item_weights: Dict[SizeCategory, ItemWeights]
    packing_materials: PackingMaterials = PackingMaterials()

    @field_validator("equivalences")
    @classmethod
    def validate_equivalences(cls, v):
        for category, units in v.items():
            if units <= 0:
                raise ValueError(f"equivalences[{category.value}] must be positive")
        return v

    @field_validator("dimension_guard_in")
    @classmethod
    def validate_guards(cls, v):
        for category, guard in v.items():
            if not guard.is_complete:
                raise ValueError(f"dimension_guard_in[{category.value}] dimensions must be positive")
        return v

    @model_validator(mode="after")
    def require_all_categories(self):
        errors = []
        for table_name in ("equivalences", "item_weights", "dimension_guard_in"):
            table = getattr(self, table_name)
            for category in SizeCategory:
                if category not in table:
                    errors.append(f"{table_name} missing required category: {category.value}")
        if errors:
            raise ValueError("; ".join(errors))
        return self


# ==================== Box Catalog ====================


class Box(_Frozen):
    """A box catalog entry. Dimensions in inches."""
    sku: str = Field(..., min_length=1)
    name: str = ""
    length: float = Field(..., alias="L", gt=0)
    width: float = Field(..., alias="W", gt=0)
    height: float = Field(..., alias="H", gt=0)
    box_weight_oz: float = Field(0.0, ge=0)
    unit_cost_usd: float = Field(0.0, ge=0)

    @property
    def volume_in3(self) -> float:
        return self.length * self.width * self.height

    def sorted_dims(self) -> Tuple[float, float, float]:
        return tuple(sorted((self.length, self.width, self.height)))


# ==================== Shipping / Origins ====================


class ShipFromAddress(_Frozen):
    name: str = ""
    company_name: Optional[str] = None
    phone: Optional[str] = None
    address_line1: str = ""
    address_line2: Optional[str] = None
    city_locality: str = ""
    state_province: str = ""
    postal_code: str = ""
    country_code: str = Field("US", min_length=2, max_length=2)
    address_residential_indicator: str = "no"

    @field_validator("country_code")
    @classmethod
    def upper_country(cls, v):
        return v.upper()


class RatePreferences(_Frozen):
    present_top_n: int = Field(3, gt=0)
    sort: str = SORT_PRICE_THEN_DAYS


class ShippingSection(_Frozen):
    """
    Origins and rate preferences.

    carrier_accounts maps a carrier account id to the name of the origin it
    ships from. Each origin name must be declared in origins, or be
    "default" for ship_from.
    """
    ship_from: ShipFromAddress = ShipFromAddress()
    origins: Dict[str, ShipFromAddress] = Field(default_factory=dict)
    carrier_accounts: Dict[str, str] = Field(default_factory=dict)
    rate_preferences: RatePreferences = RatePreferences()

    @model_validator(mode="after")
    def validate_account_origins(self):
        unknown = sorted({
            origin for origin in self.carrier_accounts.values()
            if origin != DEFAULT_ORIGIN and origin not in self.origins
        })
        if unknown:
            raise ValueError(f"carrier_accounts reference undeclared origins: {', '.join(unknown)}")
        return self

    def origin_address(self, origin: str) -> ShipFromAddress:
        if origin == DEFAULT_ORIGIN:
            return self.ship_from
        return self.origins[origin]

    def accounts_by_origin(self) -> Dict[str, List[str]]:
        """Group carrier account ids by origin, preserving declaration order."""
        grouped: Dict[str, List[str]] = {}
        for account_id, origin in self.carrier_accounts.items():
            grouped.setdefault(origin, []).append(account_id)
        return grouped


class ShippingConfig(_Frozen):
    packing: PackingConfig
    boxes: List[Box] = Field(..., min_length=1)
    shipping: ShippingSection = ShippingSection()

    @field_validator("boxes")
    @classmethod
    def unique_skus(cls, v):
        seen = set()
        for box in v:
            if box.sku in seen:
                raise ValueError(f"duplicate box sku: {box.sku}")
            seen.add(box.sku)
        return v


# ==================== Loading ====================


def _format_errors(exc: ValidationError) -> List[str]:
    formatted = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        formatted.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return formatted


def parse_shipping_config(data: Union[Dict[str, Any], str], source: str = "<memory>") -> ShippingConfig:
    """
    Validate a shipping document.

    Args:
        data: Parsed JSON dict or a JSON string
        source: Where the document came from, for error reporting

    Raises:
        ShippingConfigError: if the document is malformed or invalid
    """
    try:
        if isinstance(data, str):
            return ShippingConfig.model_validate_json(data)
        return ShippingConfig.model_validate(data)
    except ValidationError as e:
        errors = _format_errors(e)
        logger.error(f"Invalid shipping config from {source}: {errors}")
        raise ShippingConfigError(
            f"invalid shipping config: {errors[0] if errors else e}",
            source=source,
            errors=errors,
        ) from e


def load_shipping_config(path: Optional[Union[str, Path]] = None) -> ShippingConfig:
    """Load and validate the shipping document from a JSON file."""
    config_path = Path(path or DEFAULT_CONFIG_PATH)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ShippingConfigError(
            f"failed to read shipping config: {e}",
            source=str(config_path),
        ) from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ShippingConfigError(
            f"failed to parse shipping config: {e}",
            source=str(config_path),
        ) from e

    config = parse_shipping_config(data, source=str(config_path))
    logger.info(f"Loaded shipping config from {config_path} ({len(config.boxes)} boxes)")
    return config


def save_shipping_config(config: ShippingConfig, path: Union[str, Path]) -> None:
    """Write the shipping document as indented JSON."""
    Path(path).write_text(config.model_dump_json(by_alias=True, indent=2), encoding="utf-8")


def create_default_config() -> ShippingConfig:
    """Built-in configuration used when no file or database record exists."""
    return parse_shipping_config({
        "packing": {
            "unit_volume_in3": 27.0,
            "fill_ratio": 0.80,
            "equivalences": {"small": 1, "medium": 3, "large": 6, "xlarge": 18},
            "dimension_guard_in": {
                "small": {"L": 4, "W": 4, "H": 4},
                "medium": {"L": 8, "W": 5, "H": 5},
                "large": {"L": 20, "W": 10, "H": 6},
                "xlarge": {"L": 24, "W": 12, "H": 10},
            },
            "item_weights": {
                "small": {"min_grams": 70, "max_grams": 100, "avg_grams": 85, "avg_oz": 3.0},
                "medium": {"min_grams": 180, "max_grams": 220, "avg_grams": 200, "avg_oz": 7.05},
                "large": {"min_grams": 350, "max_grams": 500, "avg_grams": 425, "avg_oz": 15.0},
                "xlarge": {"min_grams": 800, "max_grams": 1200, "avg_grams": 1000, "avg_oz": 35.3},
            },
            "packing_materials": {
                "bubble_wrap_per_item_oz": 0.2,
                "packing_paper_per_box_oz": 1.0,
                "tape_and_labels_per_box_oz": 0.5,
                "air_pillows_per_box_oz": 0.8,
                "handling_fee_per_box_usd": 1.50,
            },
        },
        "boxes": [
            {"sku": "CXBSS21", "name": "8x6x4", "L": 8, "W": 6, "H": 4, "box_weight_oz": 4.0, "unit_cost_usd": 0.38},
            {"sku": "CXBSS24", "name": "10x8x6", "L": 10, "W": 8, "H": 6, "box_weight_oz": 6.0, "unit_cost_usd": 0.54},
            {"sku": "CXBSM1294", "name": "12x9x4", "L": 12, "W": 9, "H": 4, "box_weight_oz": 6.0, "unit_cost_usd": 0.62},
            {"sku": "MD12126", "name": "12x12x6 (MD)", "L": 12, "W": 12, "H": 6, "box_weight_oz": 8.0, "unit_cost_usd": 0.70},
        ],
        "shipping": {
            "ship_from": {
                "name": "Fulfillment",
                "address_line1": "100 Main Street",
                "city_locality": "Cadott",
                "state_province": "WI",
                "postal_code": "54727",
                "country_code": "US",
            },
            "origins": {
                "post_office": {
                    "name": "Fulfillment",
                    "address_line1": "100 Main Street",
                    "city_locality": "Cadott",
                    "state_province": "WI",
                    "postal_code": "54727",
                    "country_code": "US",
                },
                "warehouse": {
                    "name": "Fulfillment Warehouse",
                    "address_line1": "200 Commerce Drive",
                    "city_locality": "Eau Claire",
                    "state_province": "WI",
                    "postal_code": "54701",
                    "country_code": "US",
                },
            },
            "rate_preferences": {"present_top_n": 3, "sort": SORT_PRICE_THEN_DAYS},
        },
    }, source="defaults")
