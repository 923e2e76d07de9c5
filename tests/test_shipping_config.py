"""
Tests for shipping document validation and loading.
"""
import json

import pytest

from shipping_engine.core.exceptions import ShippingConfigError
from shipping_engine.models.size_category import SizeCategory
from shipping_engine.schemas.shipping_config import (
    create_default_config,
    load_shipping_config,
    parse_shipping_config,
    save_shipping_config,
)


class TestDefaultConfig:
    """Test the built-in shipping document."""

    def test_values(self, default_config):
        packing = default_config.packing
        assert packing.unit_volume_in3 == 27.0
        assert packing.fill_ratio == 0.80
        assert packing.equivalences == {
            SizeCategory.SMALL: 1,
            SizeCategory.MEDIUM: 3,
            SizeCategory.LARGE: 6,
            SizeCategory.XLARGE: 18,
        }
        assert packing.item_weights[SizeCategory.MEDIUM].avg_oz == 7.05
        assert packing.packing_materials.handling_fee_per_box_usd == 1.50
        assert [b.sku for b in default_config.boxes] == ["CXBSS21", "CXBSS24", "CXBSM1294", "MD12126"]

    def test_rate_preferences(self, default_config):
        prefs = default_config.shipping.rate_preferences
        assert prefs.present_top_n == 3
        assert prefs.sort == "price_then_days"

    def test_box_aliases(self, default_config):
        box = default_config.boxes[0]
        assert (box.length, box.width, box.height) == (8, 6, 4)

    def test_immutable(self, default_config):
        with pytest.raises(Exception):
            default_config.packing.fill_ratio = 0.5


class TestValidation:
    """Test eager validation of the shipping document."""

    def test_round_trip_data(self, config_data):
        config = parse_shipping_config(config_data)
        assert config == create_default_config()

    def test_json_string(self, config_data):
        config = parse_shipping_config(json.dumps(config_data))
        assert len(config.boxes) == 4

    @pytest.mark.parametrize("table", ["equivalences", "item_weights", "dimension_guard_in"])
    def test_missing_category(self, config_data, table):
        del config_data["packing"][table]["large"]

        with pytest.raises(ShippingConfigError) as exc_info:
            parse_shipping_config(config_data, source="test")

        assert f"{table} missing required category: large" in " ".join(exc_info.value.details["errors"])
        assert exc_info.value.details["source"] == "test"

    @pytest.mark.parametrize("fill_ratio", [0, -0.5, 1.01])
    def test_fill_ratio_range(self, config_data, fill_ratio):
        config_data["packing"]["fill_ratio"] = fill_ratio
        with pytest.raises(ShippingConfigError):
            parse_shipping_config(config_data)

    def test_fill_ratio_one_allowed(self, config_data):
        config_data["packing"]["fill_ratio"] = 1
        assert parse_shipping_config(config_data).packing.fill_ratio == 1

    def test_unit_volume_positive(self, config_data):
        config_data["packing"]["unit_volume_in3"] = 0
        with pytest.raises(ShippingConfigError):
            parse_shipping_config(config_data)

    def test_equivalence_positive(self, config_data):
        config_data["packing"]["equivalences"]["medium"] = 0
        with pytest.raises(ShippingConfigError, match="equivalences"):
            parse_shipping_config(config_data)

    def test_guard_dimensions_positive(self, config_data):
        config_data["packing"]["dimension_guard_in"]["small"]["H"] = 0
        with pytest.raises(ShippingConfigError):
            parse_shipping_config(config_data)

    def test_avg_weight_positive(self, config_data):
        config_data["packing"]["item_weights"]["small"]["avg_oz"] = 0
        with pytest.raises(ShippingConfigError):
            parse_shipping_config(config_data)

    def test_unknown_category_key(self, config_data):
        config_data["packing"]["equivalences"]["jumbo"] = 40
        with pytest.raises(ShippingConfigError):
            parse_shipping_config(config_data)

    def test_empty_catalog(self, config_data):
        config_data["boxes"] = []
        with pytest.raises(ShippingConfigError):
            parse_shipping_config(config_data)

    @pytest.mark.parametrize("field,value", [
        ("L", 0),
        ("box_weight_oz", -1),
        ("unit_cost_usd", -0.01),
    ])
    def test_box_numbers(self, config_data, field, value):
        config_data["boxes"][0][field] = value
        with pytest.raises(ShippingConfigError):
            parse_shipping_config(config_data)

    def test_duplicate_sku(self, config_data):
        config_data["boxes"].append(dict(config_data["boxes"][0]))
        with pytest.raises(ShippingConfigError, match="duplicate box sku"):
            parse_shipping_config(config_data)

    def test_present_top_n_positive(self, config_data):
        config_data["shipping"]["rate_preferences"]["present_top_n"] = 0
        with pytest.raises(ShippingConfigError):
            parse_shipping_config(config_data)

    def test_carrier_accounts_must_reference_origins(self, config_data):
        config_data["shipping"]["carrier_accounts"] = {"ca_usps": "post_office", "ca_ups": "garage"}
        with pytest.raises(ShippingConfigError, match="garage"):
            parse_shipping_config(config_data)

    def test_unused_shipping_keys_ignored(self, config_data):
        config_data["shipping"]["dim_divisors"] = {"usps": 166}
        config_data["shipping"]["labels"] = {"format": "pdf"}

        config = parse_shipping_config(config_data)

        assert config == create_default_config()
        assert "labels" not in config.model_dump()["shipping"]

    def test_carrier_accounts_default_origin(self, config_data):
        config_data["shipping"]["carrier_accounts"] = {"ca_usps": "default", "ca_ups": "warehouse"}
        config = parse_shipping_config(config_data)
        assert config.shipping.accounts_by_origin() == {"default": ["ca_usps"], "warehouse": ["ca_ups"]}
        assert config.shipping.origin_address("default") == config.shipping.ship_from


class TestLoading:
    """Test loading from and saving to JSON files."""

    def test_save_and_load(self, tmp_path, default_config):
        path = tmp_path / "shipping.json"
        save_shipping_config(default_config, path)

        loaded = load_shipping_config(path)

        assert loaded == default_config
        assert json.loads(path.read_text())["boxes"][0]["L"] == 8

    def test_missing_file(self, tmp_path):
        with pytest.raises(ShippingConfigError, match="failed to read"):
            load_shipping_config(tmp_path / "missing.json")

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "shipping.json"
        path.write_text("{not json")
        with pytest.raises(ShippingConfigError, match="failed to parse"):
            load_shipping_config(path)

    def test_invalid_document(self, tmp_path, config_data):
        config_data["packing"]["fill_ratio"] = 2
        path = tmp_path / "shipping.json"
        path.write_text(json.dumps(config_data))

        with pytest.raises(ShippingConfigError) as exc_info:
            load_shipping_config(path)

        assert exc_info.value.code == "SHIPPING_CONFIG_INVALID"
        assert exc_info.value.details["source"] == str(path)
