"""
CreditKit Calculation Library

Pure numeric functions used by credit rules:
- Refrigerant life-cycle impact (LCODP / LCGWP) with capacity-weighted
  averaging across equipment groups
- Thermal control percentage (individually controlled spaces)
- Linear reduction percentage (energy and water use against a baseline)
- Tiered point lookup for percentage-based credits

All functions are deterministic and side-effect free. Out-of-domain input
raises InvalidInputError.

Example usage:
    from core.calculations import refrigerant_impact

    impact = refrigerant_impact(gwp=675, odp=0, refrigerant_charge=45,
                                leakage_rate_percent=7, equipment_life=20,
                                cooling_capacity=120, quantity=3, unit_system="IP")
    print(f"Weighted average: {impact.weighted_average:.2f} (limit {impact.threshold})")
"""

import math
import re
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from core.errors import InvalidInputError
from core.models import UnitSystem

# End-of-life refrigerant loss factor (Mr); full charge assumed lost at disposal
MAINTENANCE_FACTOR = 1.0

# ODP is weighted 100,000x relative to GWP
ODP_WEIGHT = 10 ** 5

REFRIGERANT_THRESHOLDS: Dict[UnitSystem, float] = {
    UnitSystem.IP: 100.0,
    UnitSystem.SI: 13.0,
}

_DECIMAL_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")

Number = Union[int, float]


def is_empty(value: Any) -> bool:
    """
    Check whether a parameter value is absent.

    None, an empty string and a whitespace-only string are all the same
    absent state. Zero is a value.
    """
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a scalar into a float using locale-free decimal syntax.

    Accepts ints, floats and strings such as "7", "-0.25", "1e3" or "15%".
    Thousands separators, decimal commas, booleans, NaN and infinity are
    rejected.

    Args:
        value: Raw parameter value

    Returns:
        Parsed float, or None when the value is absent or not numeric
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("%"):
            text = text[:-1].rstrip()
        if not _DECIMAL_PATTERN.match(text):
            return None
        number = float(text)
    else:
        return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def coerce_unit_system(unit_system: Union[str, UnitSystem]) -> UnitSystem:
    """
    Normalize "ip"/"SI"/UnitSystem into a UnitSystem.

    Raises:
        InvalidInputError: If the unit system is unknown
    """
    if isinstance(unit_system, UnitSystem):
        return unit_system
    try:
        return UnitSystem(str(unit_system).strip().upper())
    except ValueError:
        raise InvalidInputError(f"Unknown unit system '{unit_system}' (expected IP or SI)")


def refrigerant_threshold(unit_system: Union[str, UnitSystem]) -> float:
    """Return the weighted-average impact limit: 100 (IP) or 13 (SI)."""
    return REFRIGERANT_THRESHOLDS[coerce_unit_system(unit_system)]


@dataclass(frozen=True)
class EquipmentGroupImpact:
    """Life-cycle impact of one group of identical refrigerant equipment."""
    lcodp: float
    lcgwp: float
    unit_impact: float
    cooling_capacity: float
    quantity: float

    @property
    def total_capacity(self) -> float:
        return self.cooling_capacity * self.quantity

    @property
    def total_impact(self) -> float:
        return self.unit_impact * self.total_capacity


@dataclass(frozen=True)
class RefrigerantImpact:
    """Aggregated refrigerant impact across one or more equipment groups."""
    lcodp: float
    lcgwp: float
    unit_impact: float
    total_impact: float
    total_capacity: float
    weighted_average: float
    threshold: float
    unit_system: str
    compliant: bool
    groups: int = 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to plain dictionary for serialization."""
        return asdict(self)


def equipment_group_impact(gwp: Number, odp: Number, refrigerant_charge: Number,
                           leakage_rate_percent: Number, equipment_life: Number,
                           cooling_capacity: Number, quantity: Number = 1) -> EquipmentGroupImpact:
    """
    Calculate LCODP, LCGWP and per-unit impact for one equipment group.

    LCODP = ODP x (Lr x Life + Mr) x Rc / Life
    LCGWP = GWP x (Lr x Life + Mr) x Rc / Life
    Impact = LCGWP + LCODP x 10^5

    Args:
        gwp: Global warming potential of the refrigerant
        odp: Ozone depletion potential of the refrigerant
        refrigerant_charge: Refrigerant charge per unit
        leakage_rate_percent: Annual leakage rate in percent (e.g. 7 for 7%)
        equipment_life: Equipment life in years (> 0)
        cooling_capacity: Cooling capacity per unit (> 0)
        quantity: Number of identical units (> 0)

    Raises:
        InvalidInputError: If life, capacity or quantity are not positive
    """
    if equipment_life <= 0:
        raise InvalidInputError(f"Equipment life must be greater than 0 (got {equipment_life})")
    if cooling_capacity <= 0:
        raise InvalidInputError(f"Equipment cooling capacity must be greater than 0 (got {cooling_capacity})")
    if quantity <= 0:
        raise InvalidInputError(f"Equipment quantity must be greater than 0 (got {quantity})")

    leakage_rate = leakage_rate_percent / 100.0
    lifetime_loss = leakage_rate * equipment_life + MAINTENANCE_FACTOR

    lcodp = odp * lifetime_loss * refrigerant_charge / equipment_life
    lcgwp = gwp * lifetime_loss * refrigerant_charge / equipment_life

    return EquipmentGroupImpact(
        lcodp=lcodp,
        lcgwp=lcgwp,
        unit_impact=lcgwp + lcodp * ODP_WEIGHT,
        cooling_capacity=float(cooling_capacity),
        quantity=float(quantity),
    )


@dataclass
class RefrigerantImpactAccumulator:
    """
    Accumulates equipment groups before dividing by total capacity.

    The weighted average is sum(impact_i x capacity_i x qty_i) divided by
    sum(capacity_i x qty_i); for a single group it equals the unit impact.

    Example:
        acc = RefrigerantImpactAccumulator("SI")
        acc.add_group(gwp=675, odp=0, refrigerant_charge=20, leakage_rate_percent=2,
                      equipment_life=20, cooling_capacity=350, quantity=2)
        acc.add_group(gwp=4, odp=0, refrigerant_charge=60, leakage_rate_percent=2,
                      equipment_life=25, cooling_capacity=900)
        result = acc.result()
    """
    unit_system: Union[str, UnitSystem] = UnitSystem.IP
    groups: List[EquipmentGroupImpact] = field(default_factory=list)

    def add_group(self, **kwargs) -> EquipmentGroupImpact:
        group = equipment_group_impact(**kwargs)
        self.groups.append(group)
        return group

    def result(self) -> RefrigerantImpact:
        """
        Combine all groups into a capacity-weighted result.

        Raises:
            InvalidInputError: If no group was added
        """
        if not self.groups:
            raise InvalidInputError("At least one equipment group is required")

        units = coerce_unit_system(self.unit_system)
        threshold = REFRIGERANT_THRESHOLDS[units]

        total_capacity = sum(g.total_capacity for g in self.groups)
        total_impact = sum(g.total_impact for g in self.groups)
        weighted_average = total_impact / total_capacity

        lcodp = sum(g.lcodp * g.total_capacity for g in self.groups) / total_capacity
        lcgwp = sum(g.lcgwp * g.total_capacity for g in self.groups) / total_capacity

        return RefrigerantImpact(
            lcodp=lcodp,
            lcgwp=lcgwp,
            unit_impact=lcgwp + lcodp * ODP_WEIGHT,
            total_impact=total_impact,
            total_capacity=total_capacity,
            weighted_average=weighted_average,
            threshold=threshold,
            unit_system=units.value,
            compliant=weighted_average <= threshold,
            groups=len(self.groups),
        )


def refrigerant_impact(gwp: Number, odp: Number, refrigerant_charge: Number,
                       leakage_rate_percent: Number, equipment_life: Number,
                       cooling_capacity: Number, quantity: Number = 1,
                       unit_system: Union[str, UnitSystem] = UnitSystem.IP) -> RefrigerantImpact:
    """
    Calculate refrigerant impact for a single equipment group.

    Returns:
        RefrigerantImpact; ``compliant`` is weighted_average <= threshold
        (100 for IP, 13 for SI)
    """
    accumulator = RefrigerantImpactAccumulator(unit_system)
    accumulator.add_group(
        gwp=gwp,
        odp=odp,
        refrigerant_charge=refrigerant_charge,
        leakage_rate_percent=leakage_rate_percent,
        equipment_life=equipment_life,
        cooling_capacity=cooling_capacity,
        quantity=quantity,
    )
    return accumulator.result()


def thermal_control_percentage(total_spaces: Number, controlled_spaces: Number) -> float:
    """
    Percentage of individual occupant spaces with thermal controls.

    The result is not clamped: more controlled than total spaces yields a
    value above 100.

    Raises:
        InvalidInputError: If total_spaces <= 0
    """
    if total_spaces <= 0:
        raise InvalidInputError("Total spaces must be greater than 0")
    return controlled_spaces / total_spaces * 100.0


def linear_reduction_percentage(baseline: Any, design: Any) -> float:
    """
    Percentage reduction of a design value against a baseline.

    Used identically for energy and water use: (baseline - design) / baseline x 100.

    Raises:
        InvalidInputError: If baseline or design is missing, non-numeric, or baseline is zero
    """
    baseline_value = parse_number(baseline)
    if baseline_value is None:
        raise InvalidInputError(f"Baseline must be numeric (got {baseline!r})")
    if baseline_value == 0:
        raise InvalidInputError("Baseline must not be zero")

    design_value = parse_number(design)
    if design_value is None:
        raise InvalidInputError(f"Design value must be numeric (got {design!r})")

    return (baseline_value - design_value) / baseline_value * 100.0


def tiered_point_lookup(percentage: Number,
                        threshold_table: Iterable[Union[Tuple[Number, int], Any]]) -> int:
    """
    Return the highest points whose threshold is met by the percentage.

    Every entry is considered since tables are not guaranteed to be sorted.
    Entries may be ``(threshold, points)`` tuples or objects with
    ``threshold`` and ``points`` attributes.

    Returns:
        Points awarded, 0 when no threshold is met
    """
    best = 0
    for entry in threshold_table:
        if isinstance(entry, (tuple, list)):
            threshold, points = entry
        else:
            threshold, points = entry.threshold, entry.points
        if threshold <= percentage and points > best:
            best = points
    return best


def minimum_tier_threshold(threshold_table: Iterable[Union[Tuple[Number, int], Any]]) -> Optional[float]:
    """Lowest threshold of a point table that awards any points."""
    thresholds = []
    for entry in threshold_table:
        if isinstance(entry, (tuple, list)):
            threshold, points = entry
        else:
            threshold, points = entry.threshold, entry.points
        if points > 0:
            thresholds.append(float(threshold))
    return min(thresholds) if thresholds else None
