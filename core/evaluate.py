"""
CreditKit Rule Evaluator

Walks the declarative requirement groups of a credit against a flat
parameter map and produces an AssessmentResult. Two strategies:

- options: groups are tried in declared order; the first fully compliant
  group wins and the credit is awarded its points. A failed load-bearing
  node abandons the option. When no option passes, the gaps and
  non-compliance of the last evaluated option are reported.
- parts: every group is evaluated; gaps and non-compliance are concatenated
  in declared order and points are awarded only if every part passes.

Missing data is a gap, never a non-compliance; supplied data that fails a
condition is a non-compliance, never a gap.

Example usage:
    from core.catalog import default_catalog
    from core.evaluate import evaluate_credit

    result = evaluate_credit(default_catalog().get("EACr6"), {
        "Refrigerant Used": "R-1234ze(E)", "ODP": 0, "GWP": 4,
        "Confirmation Statement": "Yes",
    }, unit_system="IP")
    print(f"{result.credit_id}: {result.status.value} ({result.points}/{result.max_points})")
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from core.calculations import (
    is_empty,
    linear_reduction_percentage,
    minimum_tier_threshold,
    parse_number,
    refrigerant_impact,
    thermal_control_percentage,
    tiered_point_lookup,
    coerce_unit_system,
)
from core.errors import InvalidInputError
from core.models import (
    AllPresentNode,
    AssessmentResult,
    AssessmentStatus,
    CalculateNode,
    CreditDefinition,
    EqualsNode,
    EvaluationStrategy,
    GroupOutcome,
    LessThanNode,
    PresenceNode,
    RangeNode,
    RequirementGroup,
    UnitSystem,
)
from core.policy import get_default_unit_system

logger = logging.getLogger(__name__)


class EvaluationError(Exception):
    """Raised when a calculation fails in a way that is not a domain failure."""
    pass


class OptionAbandoned(Exception):
    """Raised by a failed load-bearing node to abandon the current option."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass
class CalculationOutcome:
    """Result of a calculation handler."""
    compliant: bool
    results: Dict[str, Any] = field(default_factory=dict)
    message: Optional[str] = None
    points: Optional[int] = None


CalculationHandler = Callable[[Dict[str, float], CalculateNode, Mapping[str, Any], UnitSystem], CalculationOutcome]


def _format_number(value: float) -> str:
    return f"{value:g}"


# ---------------------------------------------------------------------------
# Calculation handlers
# ---------------------------------------------------------------------------

def calculate_refrigerant_impact(values: Dict[str, float], node: CalculateNode,
                                 parameters: Mapping[str, Any], unit_system: UnitSystem) -> CalculationOutcome:
    """
    Refrigerant impact for one equipment group.

    Required parameters, in order: GWP, refrigerant charge, leakage rate (%),
    equipment life, cooling capacity, quantity. The first optional parameter
    is ODP; absent ODP counts as 0.
    """
    gwp, charge, leakage, life, capacity, quantity = (values[p] for p in node.parameters)
    odp = 0.0
    if node.optional_parameters:
        odp = values.get(node.optional_parameters[0], 0.0)

    impact = refrigerant_impact(
        gwp=gwp,
        odp=odp,
        refrigerant_charge=charge,
        leakage_rate_percent=leakage,
        equipment_life=life,
        cooling_capacity=capacity,
        quantity=quantity,
        unit_system=unit_system,
    )
    threshold = node.threshold if node.threshold is not None else impact.threshold
    compliant = impact.weighted_average <= threshold

    message = None
    if not compliant:
        message = f"Weighted average ({impact.weighted_average:.2f}) exceeds threshold ({_format_number(threshold)})"

    return CalculationOutcome(compliant=compliant, results=impact.to_dict(), message=message)


def calculate_thermal_control(values: Dict[str, float], node: CalculateNode,
                              parameters: Mapping[str, Any], unit_system: UnitSystem) -> CalculationOutcome:
    """Share of individually controlled spaces; must exceed the threshold (50% by default)."""
    total_param, controlled_param = node.parameters
    percentage = thermal_control_percentage(values[total_param], values[controlled_param])
    threshold = node.threshold if node.threshold is not None else 50.0

    compliant = percentage > threshold
    message = None
    if not compliant:
        message = (
            f"Controlled spaces percentage ({percentage:.1f}%) is not greater than "
            f"{_format_number(threshold)}%"
        )
    return CalculationOutcome(
        compliant=compliant,
        results={"thermal_control_percentage": percentage, "threshold": threshold},
        message=message,
    )


def _select_tier_table(node: CalculateNode, parameters: Mapping[str, Any]):
    name = node.default_tier
    if node.tier_parameter:
        raw = parameters.get(node.tier_parameter)
        if not is_empty(raw):
            key = str(raw).strip().lower().replace(" ", "_").replace("-", "_")
            for candidate in node.tiers:
                if candidate == key or candidate.startswith(key):
                    name = candidate
                    break
            else:
                logger.debug(f"No tier table matches {node.tier_parameter}={raw!r}; using {name}")
    return name, node.tiers[name]


def _reduction_handler(label: str, result_key: str) -> CalculationHandler:
    def handler(values: Dict[str, float], node: CalculateNode,
                parameters: Mapping[str, Any], unit_system: UnitSystem) -> CalculationOutcome:
        baseline_param, design_param = node.parameters
        percentage = linear_reduction_percentage(values[baseline_param], values[design_param])
        results: Dict[str, Any] = {result_key: percentage}

        if node.tiers:
            tier_name, table = _select_tier_table(node, parameters)
            points = tiered_point_lookup(percentage, table)
            results.update({"tier_table": tier_name, "tier_points": points})
            if points > 0:
                return CalculationOutcome(compliant=True, results=results, points=points)
            minimum = minimum_tier_threshold(table)
            return CalculationOutcome(
                compliant=False,
                results=results,
                points=0,
                message=(
                    f"{label} ({percentage:.1f}%) is below the minimum of "
                    f"{_format_number(minimum or 0)}% required for any points"
                ),
            )

        threshold = node.threshold if node.threshold is not None else 0.0
        compliant = percentage >= threshold
        message = None
        if not compliant:
            message = f"{label} ({percentage:.1f}%) is below the required {_format_number(threshold)}%"
        return CalculationOutcome(compliant=compliant, results=results, message=message)

    handler.__name__ = f"calculate_{result_key}"
    handler.__doc__ = f"{label} against a baseline, with optional tiered points."
    return handler


# Calculation dispatch table
CALCULATIONS: Dict[str, CalculationHandler] = {
    "refrigerant_impact": calculate_refrigerant_impact,
    "thermal_control_percentage": calculate_thermal_control,
    "water_reduction": _reduction_handler("Water use reduction", "water_reduction_percentage"),
    "energy_reduction": _reduction_handler("Energy performance improvement", "energy_reduction_percentage"),
}


# ---------------------------------------------------------------------------
# Node evaluation
# ---------------------------------------------------------------------------

def _add_gap(outcome: GroupOutcome, parameter: str) -> None:
    if parameter not in outcome.gaps:
        outcome.gaps.append(parameter)


def _fail(outcome: GroupOutcome, message: str, load_bearing: bool) -> None:
    if load_bearing:
        raise OptionAbandoned(message)
    outcome.non_compliant.append(message)


def _guard_allows(node, parameters: Mapping[str, Any]) -> bool:
    if node.when is None:
        return True
    value = parameters.get(node.when.parameter)
    if is_empty(value):
        return False
    return node.when.contains.lower() in str(value).lower()


def _check_presence(node: PresenceNode, parameters, outcome: GroupOutcome) -> None:
    if is_empty(parameters.get(node.parameter)):
        _add_gap(outcome, node.parameter)


def _check_all_present(node: AllPresentNode, parameters, outcome: GroupOutcome) -> None:
    for parameter in node.parameters:
        if is_empty(parameters.get(parameter)):
            _add_gap(outcome, parameter)


def _check_equals(node: EqualsNode, parameters, outcome: GroupOutcome) -> None:
    raw = parameters.get(node.parameter)
    if is_empty(raw):
        _add_gap(outcome, node.parameter)
        return

    if isinstance(node.value, str):
        if str(raw).strip().lower() != node.value.strip().lower():
            _fail(outcome, f"{node.parameter} ({raw}) must be {node.value}", node.load_bearing)
        return

    number = parse_number(raw)
    if number is None:
        _add_gap(outcome, node.parameter)
        return
    if number != node.value:
        _fail(
            outcome,
            f"{node.parameter} ({_format_number(number)}) must equal {_format_number(node.value)}",
            node.load_bearing,
        )


def _check_less_than(node: LessThanNode, parameters, outcome: GroupOutcome) -> None:
    number = parse_number(parameters.get(node.parameter))
    if number is None:
        _add_gap(outcome, node.parameter)
        return
    if not number < node.value:
        _fail(
            outcome,
            f"{node.parameter} ({_format_number(number)}{node.unit}) is not less than "
            f"{_format_number(node.value)}{node.unit}",
            node.load_bearing,
        )


def _check_range(node: RangeNode, parameters, outcome: GroupOutcome) -> None:
    number = parse_number(parameters.get(node.parameter))
    if number is None:
        _add_gap(outcome, node.parameter)
        return

    below = node.min is not None and number < node.min
    above = node.max is not None and number > node.max
    if not (below or above):
        return

    shown = f"{_format_number(number)}{node.unit}"
    if node.min is not None and node.max is not None:
        message = (
            f"{node.parameter} ({shown}) is outside acceptable range "
            f"({_format_number(node.min)} to {_format_number(node.max)})"
        )
    elif below:
        message = f"{node.parameter} ({shown}) is below the minimum of {_format_number(node.min)}{node.unit}"
    else:
        message = f"{node.parameter} ({shown}) is above the maximum of {_format_number(node.max)}{node.unit}"
    _fail(outcome, message, node.load_bearing)


def _check_calculation(node: CalculateNode, parameters, outcome: GroupOutcome,
                       unit_system: UnitSystem) -> Optional[CalculationOutcome]:
    values: Dict[str, float] = {}
    missing = False
    for parameter in node.parameters:
        number = parse_number(parameters.get(parameter))
        if number is None:
            _add_gap(outcome, parameter)
            missing = True
        else:
            values[parameter] = number

    if missing:
        logger.debug(f"Skipping {node.calculation}: required parameters missing")
        return None

    for parameter in node.optional_parameters:
        number = parse_number(parameters.get(parameter))
        if number is not None:
            values[parameter] = number

    handler = CALCULATIONS.get(node.calculation)
    if handler is None:
        raise EvaluationError(f"Unknown calculation '{node.calculation}'")

    try:
        result = handler(values, node, parameters, unit_system)
    except InvalidInputError as e:
        outcome.non_compliant.append(f"Calculation error ({node.calculation}): {e}")
        return None
    except Exception as e:
        logger.error(f"Calculation {node.calculation} failed unexpectedly: {e}", exc_info=True)
        raise EvaluationError(f"Calculation {node.calculation} failed: {e}") from e

    outcome.calculations.update(result.results)
    if not result.compliant and result.message:
        outcome.non_compliant.append(result.message)
    return result


def evaluate_group(group: RequirementGroup, index: int, parameters: Mapping[str, Any],
                   unit_system: UnitSystem, max_points: int) -> GroupOutcome:
    """
    Evaluate one option or part.

    Returns:
        GroupOutcome with gaps, non-compliance, calculations and awarded points

    Raises:
        EvaluationError: If a calculation fails unexpectedly
    """
    outcome = GroupOutcome(label=group.label, index=index)
    tiered_points: Optional[int] = None

    try:
        for node in group.requirements:
            if not _guard_allows(node, parameters):
                logger.debug(f"{group.label}: skipping guarded {node.kind} node")
                continue

            if isinstance(node, PresenceNode):
                _check_presence(node, parameters, outcome)
            elif isinstance(node, AllPresentNode):
                _check_all_present(node, parameters, outcome)
            elif isinstance(node, EqualsNode):
                _check_equals(node, parameters, outcome)
            elif isinstance(node, LessThanNode):
                _check_less_than(node, parameters, outcome)
            elif isinstance(node, RangeNode):
                _check_range(node, parameters, outcome)
            elif isinstance(node, CalculateNode):
                calc = _check_calculation(node, parameters, outcome, unit_system)
                if calc is not None and calc.points is not None:
                    tiered_points = calc.points
            else:
                raise EvaluationError(f"Unsupported requirement node: {node!r}")
    except OptionAbandoned as abandoned:
        logger.debug(f"{group.label} abandoned: {abandoned.message}")
        outcome.abandoned = True
        outcome.non_compliant.append(abandoned.message)

    outcome.compliant = not (outcome.abandoned or outcome.gaps or outcome.non_compliant)
    if outcome.compliant:
        points = group.points if group.points is not None else max_points
        if tiered_points is not None:
            points = min(points, tiered_points)
        outcome.points = points

    return outcome


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def _status_for(gaps: List[str], non_compliant: List[str]) -> AssessmentStatus:
    if non_compliant:
        return AssessmentStatus.NON_COMPLIANT
    if gaps:
        return AssessmentStatus.GAPS
    return AssessmentStatus.NON_COMPLIANT


def _evaluate_options(definition: CreditDefinition, parameters, unit_system: UnitSystem) -> Dict[str, Any]:
    outcomes: List[GroupOutcome] = []
    for index, group in enumerate(definition.groups, start=1):
        outcome = evaluate_group(group, index, parameters, unit_system, definition.max_points)
        outcomes.append(outcome)
        if outcome.compliant:
            return {
                "awarded": True,
                "points": outcome.points,
                "status": AssessmentStatus.COMPLIANT,
                "option": index,
                "gaps": [],
                "non_compliant": [],
                "calculations": dict(outcome.calculations),
                "groups": outcomes,
            }

    last = outcomes[-1]
    return {
        "awarded": False,
        "points": 0,
        "status": _status_for(last.gaps, last.non_compliant),
        "option": last.index,
        "gaps": list(last.gaps),
        "non_compliant": list(last.non_compliant),
        "calculations": dict(last.calculations),
        "groups": outcomes,
    }


def _evaluate_parts(definition: CreditDefinition, parameters, unit_system: UnitSystem) -> Dict[str, Any]:
    outcomes: List[GroupOutcome] = []
    gaps: List[str] = []
    non_compliant: List[str] = []
    calculations: Dict[str, Any] = {}

    for index, group in enumerate(definition.groups, start=1):
        outcome = evaluate_group(group, index, parameters, unit_system, definition.max_points)
        outcomes.append(outcome)
        gaps.extend(outcome.gaps)
        non_compliant.extend(outcome.non_compliant)
        calculations.update(outcome.calculations)

    awarded = all(o.compliant for o in outcomes) and not gaps and not non_compliant
    return {
        "awarded": awarded,
        "points": definition.max_points if awarded else 0,
        "status": AssessmentStatus.COMPLIANT if awarded else _status_for(gaps, non_compliant),
        "option": None,
        "gaps": gaps,
        "non_compliant": non_compliant,
        "calculations": calculations,
        "groups": outcomes,
    }


STRATEGIES = {
    EvaluationStrategy.OPTIONS: _evaluate_options,
    EvaluationStrategy.PARTS: _evaluate_parts,
}


class RuleEvaluator:
    """
    Evaluates credit definitions against flat parameter maps.

    Stateless; a single instance may be shared across threads.
    """

    def evaluate(self, definition: CreditDefinition, parameters: Mapping[str, Any],
                 unit_system: Union[str, UnitSystem, None] = None) -> AssessmentResult:
        """
        Produce the assessment result for one credit.

        Args:
            definition: Credit definition from the catalog
            parameters: Flat parameter name to scalar map
            unit_system: "IP" or "SI"; defaults to CREDITKIT_UNIT_SYSTEM

        Returns:
            AssessmentResult with status compliant, non_compliant, gaps or error

        Raises:
            InvalidInputError: If the unit system is unknown
        """
        units = coerce_unit_system(unit_system or get_default_unit_system())
        parameters = dict(parameters or {})

        try:
            verdict = STRATEGIES[definition.strategy](definition, parameters, units)
        except EvaluationError as e:
            logger.error(f"Evaluation of {definition.credit_id} failed: {e}")
            return AssessmentResult(
                credit_id=definition.credit_id,
                credit_name=definition.name,
                max_points=definition.max_points,
                status=AssessmentStatus.ERROR,
                unit_system=units,
                error=str(e),
            )

        result = AssessmentResult(
            credit_id=definition.credit_id,
            credit_name=definition.name,
            max_points=definition.max_points,
            unit_system=units,
            **verdict,
        )

        logger.info(
            f"Evaluated {definition.credit_id}: {result.status.value} "
            f"({result.points}/{result.max_points} points)",
            extra={"credit_id": definition.credit_id, "gaps": len(result.gaps),
                   "non_compliant": len(result.non_compliant)},
        )
        return result


_DEFAULT_EVALUATOR = RuleEvaluator()


def evaluate_credit(definition: CreditDefinition, parameters: Mapping[str, Any],
                    unit_system: Union[str, UnitSystem, None] = None) -> AssessmentResult:
    """Evaluate a credit with the shared stateless evaluator."""
    return _DEFAULT_EVALUATOR.evaluate(definition, parameters, unit_system)
