"""
CreditKit Report Assembly

Combines assessment, consolidation and recommendations into report
dictionaries and plain-text blocks, and runs the whole
consolidate -> evaluate -> recommend pipeline for one credit.

Example usage:
    from core.report import assess_credit, format_assessment_report

    report = assess_credit(documents, "EACr6", policy={"strategy": "latest"})
    print(report["assessment"]["status"])
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from core.catalog import CreditCatalog, default_catalog
from core.consolidate import DocumentsInput, PolicyInput, consolidate
from core.evaluate import evaluate_credit
from core.models import AssessmentResult, ConsolidatedDataset, Recommendation, UnitSystem
from core.recommend import generate_recommendations

logger = logging.getLogger(__name__)

OVERALL_ALL_PASSED = "ALL_PASSED"
OVERALL_PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
OVERALL_ALL_FAILED = "ALL_FAILED"


def format_assessment_report(result: AssessmentResult) -> str:
    """
    Render one assessment as a plain-text block.

    Example:
        === Enhanced Refrigerant Management (EACr6) Assessment ===
        Points Awarded: 1/1
        Status: PASSED

        Assessment Option: 1
    """
    lines = [
        f"=== {result.credit_name} ({result.credit_id}) Assessment ===",
        f"Points Awarded: {result.points}/{result.max_points}",
        f"Status: {'PASSED' if result.awarded else 'FAILED'}",
        "",
    ]

    if result.error:
        lines.extend([f"Error: {result.error}", ""])

    if result.gaps:
        lines.append("Gaps (Missing Information):")
        lines.extend(f"  - {gap}" for gap in result.gaps)
        lines.append("")

    if result.non_compliant:
        lines.append("Non-Compliant Issues:")
        lines.extend(f"  - {issue}" for issue in result.non_compliant)
        lines.append("")

    if result.option:
        lines.append(f"Assessment Option: {result.option}")

    return "\n".join(lines) + "\n"


def summarize_assessments(results: Iterable[AssessmentResult]) -> Dict[str, Any]:
    """
    Totals across several assessments.

    Returns:
        Dict with total_credits_assessed, total_points_earned,
        total_possible_points, success_rate (percent, one decimal) and
        overall_status (ALL_PASSED, PARTIAL_SUCCESS or ALL_FAILED)
    """
    results = list(results)
    earned = sum(r.points for r in results)
    possible = sum(r.max_points for r in results)

    success_rate = round(earned / possible * 100, 1) if possible else 0.0

    if results and earned == possible:
        overall = OVERALL_ALL_PASSED
    elif earned > 0:
        overall = OVERALL_PARTIAL_SUCCESS
    else:
        overall = OVERALL_ALL_FAILED

    return {
        "total_credits_assessed": len(results),
        "total_points_earned": earned,
        "total_possible_points": possible,
        "success_rate": success_rate,
        "overall_status": overall,
    }


def build_credit_report(result: AssessmentResult, dataset: Optional[ConsolidatedDataset] = None,
                        recommendations: Optional[List[Recommendation]] = None) -> Dict[str, Any]:
    """Assemble the JSON-ready report for one credit."""
    report: Dict[str, Any] = {
        "credit_id": result.credit_id,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "assessment": result.model_dump(mode="json"),
    }

    if dataset is not None:
        report["consolidation"] = {
            "documents": list(dataset.documents),
            "values": dict(dataset.values),
            "sources": dict(dataset.sources),
            "conflicts": [c.model_dump(mode="json") for c in dataset.conflicts],
            "unresolved_conflicts": [c.parameter for c in dataset.unresolved_conflicts],
            "resolution_log": [e.model_dump(mode="json") for e in dataset.resolution_log],
            "structural_errors": [s.model_dump(mode="json") for s in dataset.structural_errors],
        }

    if recommendations is None:
        recommendations = generate_recommendations(result, dataset)
    report["recommendations"] = [r.model_dump(mode="json") for r in recommendations]
    return report


def assess_credit(documents: DocumentsInput, credit_id: str, policy: PolicyInput = None,
                  unit_system: Union[str, UnitSystem, None] = None,
                  catalog: Optional[CreditCatalog] = None) -> Dict[str, Any]:
    """
    Consolidate documents, evaluate the credit and attach recommendations.

    Raises:
        CreditNotFoundError: If the credit is not in the catalog
        StructuralError: If the document collection itself is malformed
        InvalidInputError: If the policy or unit system is invalid
    """
    catalog = catalog or default_catalog()
    definition = catalog.get(credit_id)

    dataset = consolidate(documents, credit_id, policy)
    result = evaluate_credit(definition, dataset.values, unit_system)
    recommendations = generate_recommendations(result, dataset)

    logger.info(
        f"Assessed {credit_id} from {len(dataset.documents)} documents: {result.status.value}",
        extra={"credit_id": credit_id, "conflicts": len(dataset.conflicts)},
    )
    return build_credit_report(result, dataset, recommendations)
