"""
Tests for per-box rate aggregation and option sorting.
"""
import pytest

from shipping_engine.models.rates import BoxRatesResult, ShippingOption
from shipping_engine.modules.shipping.aggregation import aggregate_rates, sort_shipping_options
from shipping_engine.schemas.shipping_config import SORT_PRICE

from conftest import make_rate, make_selection, make_solution


def option(carrier, total_cost, days):
    return ShippingOption(
        rate_id=f"rate_{carrier}",
        shipment_id=f"shp_{carrier}",
        all_rate_ids=(f"rate_{carrier}",),
        all_shipment_ids=(f"shp_{carrier}",),
        carrier_name=carrier,
        service_name="Ground",
        price=total_cost,
        currency="USD",
        delivery_days=days,
        estimated_date="",
        box_sku="BOX1",
        box_cost=0.0,
        handling_cost=0.0,
        total_cost=total_cost,
        box_count=1,
    )


@pytest.fixture
def two_boxes():
    return make_selection("BOX1", box_cost=0.50), make_selection("BOX2", box_cost=0.60)


class TestAggregateRates:
    """Test whole-order option aggregation."""

    def test_single_box(self):
        """Scenario A: three carriers, one box."""
        box = make_selection("BOX1", box_cost=0.50, handling=1.50)
        solution = make_solution(box)
        box_rates = [BoxRatesResult(box, (
            make_rate("USPS", "Ground Advantage", 5.00, 5),
            make_rate("UPS", "Ground", 6.00, 4),
            make_rate("FedEx", "Ground", 5.50, 3),
        ))]

        options = aggregate_rates(box_rates, solution, "price_then_days")

        assert len(options) == 3
        for opt in options:
            assert opt.total_cost == pytest.approx(opt.price + 2.00)
            assert opt.box_count == 1
        assert [o.carrier_name for o in options] == ["USPS", "FedEx", "UPS"]

    def test_multi_box_full_coverage(self, two_boxes):
        """Scenario B: USPS quotes both boxes."""
        box1, box2 = two_boxes
        solution = make_solution(box1, box2)
        box_rates = [
            BoxRatesResult(box1, (make_rate("USPS", "Ground Advantage", 5.00, 5, rate_id="r1", shipment_id="s1"),)),
            BoxRatesResult(box2, (make_rate("USPS", "Ground Advantage", 5.50, 5, rate_id="r2", shipment_id="s2"),)),
        ]

        options = aggregate_rates(box_rates, solution, "price_then_days")

        assert len(options) == 1
        usps = options[0]
        assert usps.price == pytest.approx(10.50)
        assert usps.box_cost == pytest.approx(1.10)
        assert usps.handling_cost == pytest.approx(3.00)
        assert usps.total_cost == pytest.approx(14.60)
        assert usps.all_rate_ids == ("r1", "r2")
        assert usps.all_shipment_ids == ("s1", "s2")
        assert usps.rate_id == "r1"
        assert usps.box_sku == "BOX1"
        assert usps.box_count == 2
        assert usps.packing_solution is solution

    def test_partial_coverage_excluded(self, two_boxes):
        """Scenario C: UPS has no rate for box 2."""
        box1, box2 = two_boxes
        solution = make_solution(box1, box2)
        box_rates = [
            BoxRatesResult(box1, (
                make_rate("USPS", "Ground Advantage", 5.00, 5),
                make_rate("UPS", "Ground", 4.00, 4),
            )),
            BoxRatesResult(box2, (make_rate("USPS", "Ground Advantage", 5.50, 5),)),
        ]

        options = aggregate_rates(box_rates, solution, "price_then_days")

        assert [o.carrier_name for o in options] == ["USPS"]

    def test_no_coverage(self, two_boxes):
        """Scenario D: each carrier covers only one box."""
        box1, box2 = two_boxes
        solution = make_solution(box1, box2)
        box_rates = [
            BoxRatesResult(box1, (make_rate("USPS", "Ground Advantage", 5.00, 5),)),
            BoxRatesResult(box2, (make_rate("UPS", "Ground", 6.00, 4),)),
        ]

        assert aggregate_rates(box_rates, solution, "price_then_days") == []

    def test_missing_box_result_drops_everything(self, two_boxes):
        """A box whose fetch failed reduces coverage for every carrier."""
        box1, box2 = two_boxes
        solution = make_solution(box1, box2)
        box_rates = [BoxRatesResult(box1, (make_rate("USPS", "Ground Advantage", 5.00, 5),))]

        assert aggregate_rates(box_rates, solution, "price_then_days") == []

    @pytest.mark.parametrize("box_rates", [[], None])
    def test_empty_input(self, box_rates):
        assert aggregate_rates(box_rates, make_solution(make_selection()), "price_then_days") == []

    def test_without_solution_uses_box_result_count(self, two_boxes):
        box1, box2 = two_boxes
        box_rates = [
            BoxRatesResult(box1, (make_rate("USPS", "Ground Advantage", 5.00, 5),)),
            BoxRatesResult(box2, (make_rate("USPS", "Ground Advantage", 5.50, 5),)),
        ]

        options = aggregate_rates(box_rates, None, "price_then_days")

        assert len(options) == 1
        assert options[0].packing_solution is None

    def test_every_option_covers_every_box(self, two_boxes):
        box1, box2 = two_boxes
        box3 = make_selection("BOX3", box_cost=0.70)
        solution = make_solution(box1, box2, box3)
        services = [("USPS", "Priority"), ("UPS", "Ground"), ("FedEx", "2Day")]
        box_rates = [
            BoxRatesResult(box1, tuple(make_rate(c, s, 5.0, 2) for c, s in services)),
            BoxRatesResult(box2, tuple(make_rate(c, s, 6.0, 3) for c, s in services[:2])),
            BoxRatesResult(box3, tuple(make_rate(c, s, 7.0, 4) for c, s in services[::2])),
        ]

        options = aggregate_rates(box_rates, solution, "price_then_days")

        assert [o.carrier_name for o in options] == ["USPS"]
        for opt in options:
            assert opt.box_count == solution.total_boxes
            assert len(opt.all_rate_ids) == solution.total_boxes

    def test_delivery_days_is_max(self, two_boxes):
        box1, box2 = two_boxes
        box_rates = [
            BoxRatesResult(box1, (make_rate("UPS", "Ground", 6.00, 2, estimated_date="2026-01-02"),)),
            BoxRatesResult(box2, (make_rate("UPS", "Ground", 6.00, 4, estimated_date="2026-01-04"),)),
        ]

        ups = aggregate_rates(box_rates, make_solution(box1, box2), "price")[0]

        assert ups.delivery_days == 4
        assert ups.estimated_date == "2026-01-04"

    def test_delivery_days_tie_keeps_first_date(self, two_boxes):
        box1, box2 = two_boxes
        box_rates = [
            BoxRatesResult(box1, (make_rate("UPS", "Ground", 6.00, 3, estimated_date="2026-01-03"),)),
            BoxRatesResult(box2, (make_rate("UPS", "Ground", 6.00, 3, estimated_date="2026-01-05"),)),
        ]

        ups = aggregate_rates(box_rates, make_solution(box1, box2), "price")[0]

        assert ups.estimated_date == "2026-01-03"

    def test_duplicate_service_in_one_box_counted_once(self, two_boxes):
        """Two quotes for the same service on one box (two origins) keep the cheaper."""
        box1, box2 = two_boxes
        box_rates = [
            BoxRatesResult(box1, (
                make_rate("USPS", "Priority", 9.00, 2, rate_id="expensive"),
                make_rate("USPS", "Priority", 8.00, 2, rate_id="cheap"),
            )),
        ]

        # one box result for a two-box solution: duplicates must not fake coverage
        assert aggregate_rates(box_rates, make_solution(box1, box2), "price") == []

        options = aggregate_rates(box_rates, make_solution(box1), "price")
        assert options[0].all_rate_ids == ("cheap",)
        assert options[0].price == pytest.approx(8.00)

    def test_carrier_and_service_both_key(self):
        box = make_selection()
        box_rates = [BoxRatesResult(box, (
            make_rate("USPS", "Ground Advantage", 5.00, 5),
            make_rate("USPS", "Priority", 9.50, 2),
        ))]

        options = aggregate_rates(box_rates, make_solution(box), "price")

        assert [(o.carrier_name, o.service_name) for o in options] == [
            ("USPS", "Ground Advantage"),
            ("USPS", "Priority"),
        ]


class TestSortShippingOptions:
    """Test option ordering."""

    @pytest.fixture
    def options(self):
        return [
            option("A", 10.0, 5),
            option("B", 8.0, 3),
            option("C", 8.0, 2),
            option("D", 12.0, 1),
        ]

    def test_price_then_days(self, options):
        result = sort_shipping_options(options, "price_then_days")
        assert [o.carrier_name for o in result] == ["C", "B", "A", "D"]

    def test_days_then_price(self, options):
        result = sort_shipping_options(options, "days_then_price")
        assert [o.carrier_name for o in result] == ["D", "C", "B", "A"]

    def test_days_then_price_tie_on_days(self):
        options = [option("A", 9.0, 2), option("B", 7.0, 2)]
        result = sort_shipping_options(options, "days_then_price")
        assert [o.carrier_name for o in result] == ["B", "A"]

    @pytest.mark.parametrize("preference", [SORT_PRICE, "", "unknown"])
    def test_default_is_price_only(self, options, preference):
        result = sort_shipping_options(options, preference)
        assert [o.total_cost for o in result] == [8.0, 8.0, 10.0, 12.0]
        # equal prices keep input order
        assert [o.carrier_name for o in result[:2]] == ["B", "C"]

    def test_stable_on_full_ties(self):
        options = [option(name, 5.0, 3) for name in "WXYZ"]
        for preference in ("price_then_days", "days_then_price", "price"):
            result = sort_shipping_options(options, preference)
            assert [o.carrier_name for o in result] == list("WXYZ")

    def test_does_not_mutate_input(self, options):
        original = list(options)
        sort_shipping_options(options, "price_then_days")
        assert options == original
