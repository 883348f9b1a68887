"""
Calculation Library Tests

Covers refrigerant impact (single and multi-group), thermal control,
linear reduction, tiered point lookup and locale-free number parsing.

Example usage:
    pytest tests/test_calculations.py -v
"""

import pytest

from core.calculations import (
    MAINTENANCE_FACTOR,
    ODP_WEIGHT,
    RefrigerantImpactAccumulator,
    equipment_group_impact,
    is_empty,
    linear_reduction_percentage,
    minimum_tier_threshold,
    parse_number,
    refrigerant_impact,
    refrigerant_threshold,
    thermal_control_percentage,
    tiered_point_lookup,
)
from core.errors import InvalidInputError
from core.models import Tier, UnitSystem


class TestRefrigerantImpact:
    """Test LCODP / LCGWP and the weighted average."""

    def test_r410a_exceeds_imperial_threshold(self):
        """R-410A split systems are far above the 100 limit."""
        impact = refrigerant_impact(gwp=2088, odp=0, refrigerant_charge=8,
                                    leakage_rate_percent=15, equipment_life=15,
                                    cooling_capacity=25, quantity=10, unit_system="IP")

        # (0.15 * 15 + 1) * 8 / 15 = 1.7333...
        assert impact.lcgwp == pytest.approx(2088 * 3.25 * 8 / 15)
        assert impact.lcodp == 0
        assert impact.weighted_average == pytest.approx(3619.2)
        assert impact.threshold == 100
        assert impact.compliant is False

    def test_low_gwp_is_compliant(self):
        """GWP 4 refrigerant stays under the limit."""
        impact = refrigerant_impact(gwp=4, odp=0, refrigerant_charge=45,
                                    leakage_rate_percent=7, equipment_life=20,
                                    cooling_capacity=120, quantity=3)

        assert impact.weighted_average == pytest.approx(21.6)
        assert impact.compliant is True
        assert impact.unit_system == "IP"

    def test_odp_is_weighted(self):
        """ODP contributes 100,000x its life-cycle value."""
        impact = refrigerant_impact(gwp=0, odp=0.05, refrigerant_charge=10,
                                    leakage_rate_percent=2, equipment_life=10,
                                    cooling_capacity=50)

        expected_lcodp = 0.05 * (0.02 * 10 + MAINTENANCE_FACTOR) * 10 / 10
        assert impact.lcodp == pytest.approx(expected_lcodp)
        assert impact.unit_impact == pytest.approx(expected_lcodp * ODP_WEIGHT)

    def test_single_group_weighted_average_equals_unit_impact(self):
        """With one group the weighting cancels out."""
        impact = refrigerant_impact(gwp=675, odp=0, refrigerant_charge=45,
                                    leakage_rate_percent=7, equipment_life=20,
                                    cooling_capacity=120, quantity=1)

        assert impact.weighted_average == pytest.approx(impact.unit_impact)
        assert impact.total_capacity == 120

    def test_metric_threshold(self):
        """SI limit is 13."""
        impact = refrigerant_impact(gwp=4, odp=0, refrigerant_charge=45,
                                    leakage_rate_percent=7, equipment_life=20,
                                    cooling_capacity=120, unit_system="SI")

        assert impact.threshold == 13
        assert impact.compliant is False
        assert refrigerant_threshold(UnitSystem.SI) == 13
        assert refrigerant_threshold("ip") == 100

    def test_unknown_unit_system(self):
        """Unit systems other than IP and SI are rejected."""
        with pytest.raises(InvalidInputError, match="Unknown unit system"):
            refrigerant_impact(gwp=4, odp=0, refrigerant_charge=1, leakage_rate_percent=1,
                               equipment_life=1, cooling_capacity=1, unit_system="metric")

    @pytest.mark.parametrize("field,kwargs", [
        ("life", {"equipment_life": 0}),
        ("capacity", {"cooling_capacity": 0}),
        ("quantity", {"quantity": -1}),
    ])
    def test_non_positive_inputs(self, field, kwargs):
        """Life, capacity and quantity must be positive."""
        params = dict(gwp=4, odp=0, refrigerant_charge=1, leakage_rate_percent=1,
                      equipment_life=10, cooling_capacity=10, quantity=1)
        params.update(kwargs)

        with pytest.raises(InvalidInputError, match=field):
            refrigerant_impact(**params)


class TestRefrigerantImpactAccumulator:
    """Test capacity-weighted aggregation across equipment groups."""

    def test_two_groups_weighted_by_capacity(self):
        """The larger group dominates the average."""
        acc = RefrigerantImpactAccumulator(UnitSystem.IP)
        small = acc.add_group(gwp=675, odp=0, refrigerant_charge=20, leakage_rate_percent=2,
                              equipment_life=20, cooling_capacity=10, quantity=1)
        large = acc.add_group(gwp=4, odp=0, refrigerant_charge=20, leakage_rate_percent=2,
                              equipment_life=20, cooling_capacity=90, quantity=1)

        result = acc.result()

        expected = (small.unit_impact * 10 + large.unit_impact * 90) / 100
        assert result.weighted_average == pytest.approx(expected)
        assert result.total_capacity == 100
        assert result.groups == 2
        # Differs from a plain mean of the two unit impacts
        assert result.weighted_average != pytest.approx((small.unit_impact + large.unit_impact) / 2)

    def test_empty_accumulator(self):
        """At least one group is required."""
        with pytest.raises(InvalidInputError):
            RefrigerantImpactAccumulator().result()

    def test_group_totals(self):
        """Group totals scale with quantity."""
        group = equipment_group_impact(gwp=10, odp=0, refrigerant_charge=1, leakage_rate_percent=0,
                                       equipment_life=1, cooling_capacity=5, quantity=4)

        assert group.total_capacity == 20
        assert group.total_impact == pytest.approx(group.unit_impact * 20)


class TestThermalControlPercentage:
    """Test individually controlled space percentage."""

    def test_example_spaces(self):
        """85 of 200 spaces is 42.5%."""
        assert thermal_control_percentage(200, 85) == pytest.approx(42.5)

    @pytest.mark.parametrize("total", [0, -5])
    def test_non_positive_total(self, total):
        """Zero or negative totals are invalid input."""
        with pytest.raises(InvalidInputError):
            thermal_control_percentage(total, 10)

    def test_not_clamped(self):
        """More controlled than total spaces is returned as computed."""
        assert thermal_control_percentage(10, 15) == pytest.approx(150.0)
        assert thermal_control_percentage(10, -1) == pytest.approx(-10.0)


class TestLinearReductionPercentage:
    """Test energy / water reduction against a baseline."""

    def test_reduction(self):
        assert linear_reduction_percentage(1000, 600) == pytest.approx(40.0)

    def test_string_values(self):
        """Numeric strings are parsed."""
        assert linear_reduction_percentage("200", "150") == pytest.approx(25.0)

    def test_increase_is_negative(self):
        assert linear_reduction_percentage(100, 110) == pytest.approx(-10.0)

    @pytest.mark.parametrize("baseline", [0, None, "", "n/a"])
    def test_invalid_baseline(self, baseline):
        """Zero, missing and non-numeric baselines are rejected."""
        with pytest.raises(InvalidInputError, match="Baseline"):
            linear_reduction_percentage(baseline, 10)

    def test_invalid_design(self):
        with pytest.raises(InvalidInputError, match="Design"):
            linear_reduction_percentage(100, "unknown")


class TestTieredPointLookup:
    """Test point table lookup."""

    TABLE = [(6, 1), (8, 2), (10, 3)]

    @pytest.mark.parametrize("percentage,points", [
        (0, 0),
        (5.99, 0),
        (6, 1),
        (9.5, 2),
        (10, 3),
        (50, 3),
    ])
    def test_lookup(self, percentage, points):
        assert tiered_point_lookup(percentage, self.TABLE) == points

    def test_unsorted_table(self):
        """Every entry is scanned; order does not matter."""
        table = [(10, 3), (6, 1), (8, 2)]
        assert tiered_point_lookup(9, table) == 2

    def test_tier_objects(self):
        """Tier models work as table entries."""
        table = [Tier(threshold=30, points=1), Tier(threshold=50, points=2)]
        assert tiered_point_lookup(55, table) == 2
        assert minimum_tier_threshold(table) == 30

    def test_minimum_threshold_empty(self):
        assert minimum_tier_threshold([]) is None


class TestNumberParsing:
    """Test locale-free parsing and the empty check."""

    @pytest.mark.parametrize("raw,expected", [
        (7, 7.0),
        ("7", 7.0),
        (" -0.25 ", -0.25),
        ("1e3", 1000.0),
        ("15%", 15.0),
        (".5", 0.5),
    ])
    def test_numeric(self, raw, expected):
        assert parse_number(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", "1,000", "0,5", True, "nan", float("inf"), [1]])
    def test_not_numeric(self, raw):
        assert parse_number(raw) is None

    @pytest.mark.parametrize("raw,empty", [
        (None, True),
        ("", True),
        ("   ", True),
        (0, False),
        ("0", False),
        (False, False),
    ])
    def test_is_empty(self, raw, empty):
        assert is_empty(raw) is empty
