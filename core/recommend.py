"""
Recommendation Generator

Turns an assessment result and the consolidation metadata behind it into
ordered advisory records. Every applicable record type is emitted:

1. missing_data (high)     - the result has gaps
2. non_compliance (high)   - the result has non-compliance messages
3. data_conflicts (medium) - the dataset recorded conflicting sources
4. success (low)           - the credit was awarded

Example usage:
    from core.recommend import generate_recommendations

    for rec in generate_recommendations(result, dataset):
        print(f"[{rec.priority}] {rec.message} -> {rec.action}")
"""

from typing import List, Optional

from core.models import (
    AssessmentResult,
    AssessmentStatus,
    ConsolidatedDataset,
    Recommendation,
    RecommendationType,
)


def _join(items: List[str], limit: int = 5) -> str:
    shown = ", ".join(items[:limit])
    if len(items) > limit:
        shown += f" and {len(items) - limit} more"
    return shown


def generate_recommendations(result: AssessmentResult,
                             dataset: Optional[ConsolidatedDataset] = None) -> List[Recommendation]:
    """
    Build the advisory records for one credit.

    Args:
        result: Evaluator output
        dataset: Consolidated data the result was computed from; conflicts
            are only reported when it is given

    Returns:
        Recommendations in fixed type order
    """
    recommendations: List[Recommendation] = []
    credit = f"{result.credit_name} ({result.credit_id})"

    if result.status == AssessmentStatus.ERROR:
        recommendations.append(Recommendation(
            type=RecommendationType.NON_COMPLIANCE,
            priority="high",
            message=f"Assessment of {credit} could not be completed: {result.error}",
            action="Check the submitted values for the failing calculation and re-run the assessment",
        ))

    if result.gaps:
        # parts may report the same parameter more than once
        missing = list(dict.fromkeys(result.gaps))
        recommendations.append(Recommendation(
            type=RecommendationType.MISSING_DATA,
            priority="high",
            message=f"{len(missing)} required parameter(s) missing for {credit}: {_join(missing)}",
            action="Upload documentation that states the missing parameters",
            parameters=missing,
        ))

    if result.non_compliant:
        recommendations.append(Recommendation(
            type=RecommendationType.NON_COMPLIANCE,
            priority="high",
            message=f"{credit} does not meet {len(result.non_compliant)} requirement(s): "
                    f"{'; '.join(result.non_compliant)}",
            action="Revise the design or select a compliant option, then resubmit the affected values",
        ))

    if dataset is not None and dataset.conflicts:
        differing = [c.parameter for c in dataset.conflicts if c.values_differ]
        unresolved = [c.parameter for c in dataset.unresolved_conflicts]
        parameters = [c.parameter for c in dataset.conflicts]

        message = f"{len(parameters)} parameter(s) were supplied by more than one document: {_join(parameters)}"
        if differing:
            message += f" ({len(differing)} with differing values)"
        if unresolved:
            action = f"Choose a source document for {_join(unresolved)}"
        else:
            action = "Review the resolution log and confirm the selected sources"

        recommendations.append(Recommendation(
            type=RecommendationType.DATA_CONFLICTS,
            priority="medium",
            message=message,
            action=action,
            parameters=parameters,
        ))

    if result.awarded:
        via = f" via option {result.option}" if result.option else ""
        recommendations.append(Recommendation(
            type=RecommendationType.SUCCESS,
            priority="low",
            message=f"{credit} achieved {result.points}/{result.max_points} point(s){via}",
            action="Keep the supporting documentation for submission",
        ))

    return recommendations


class Recommender:
    """Stateless wrapper around generate_recommendations."""

    def generate(self, result: AssessmentResult,
                 dataset: Optional[ConsolidatedDataset] = None) -> List[Recommendation]:
        return generate_recommendations(result, dataset)
