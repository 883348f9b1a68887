"""
Recommendation Generator Tests

Example usage:
    pytest tests/test_recommend.py -v
"""

from core.consolidate import consolidate, merge_documents
from core.evaluate import evaluate_credit
from core.models import AssessmentResult, AssessmentStatus, RecommendationType
from core.recommend import Recommender, generate_recommendations


def _types(recommendations):
    return [r.type for r in recommendations]


class TestGenerateRecommendations:
    """Test record selection and order."""

    def test_success_only(self, catalog, eacr6_option1_pass):
        result = evaluate_credit(catalog.get("EACr6"), eacr6_option1_pass)

        recs = generate_recommendations(result)

        assert _types(recs) == [RecommendationType.SUCCESS.value]
        assert recs[0].priority == "low"
        assert "via option 1" in recs[0].message

    def test_non_compliance(self, catalog, eacr6_fail):
        result = evaluate_credit(catalog.get("EACr6"), eacr6_fail)

        recs = generate_recommendations(result)

        assert _types(recs) == ["non_compliance"]
        assert recs[0].priority == "high"
        assert "3619.20" in recs[0].message

    def test_all_applicable_types_emitted(self, catalog, ieqcr5_pass, gwp_conflict_documents):
        """Gaps, non-compliance and conflicts are reported together, in order."""
        params = dict(ieqcr5_pass, **{"PMV": None, "Controlled Spaces": 10})
        result = evaluate_credit(catalog.get("IEQCr5"), params)
        dataset = merge_documents(gwp_conflict_documents, "EACr6")

        recs = generate_recommendations(result, dataset)

        assert _types(recs) == ["missing_data", "non_compliance", "data_conflicts"]
        assert recs[0].parameters == ["PMV"]
        assert [r.priority for r in recs] == ["high", "high", "medium"]

    def test_conflicts_with_success(self, catalog, eacr6_option1_pass):
        documents = {
            "Submittal": {"EACr6": {"declaredParameters": list(eacr6_option1_pass),
                                    "values": eacr6_option1_pass}},
            "Schedule": {"EACr6": {"declaredParameters": ["GWP"], "values": {"GWP": 4}}},
        }
        dataset = consolidate(documents, "EACr6", "priority")
        result = evaluate_credit(catalog.get("EACr6"), dataset.values)

        recs = generate_recommendations(result, dataset)

        assert _types(recs) == ["data_conflicts", "success"]
        assert recs[0].parameters == ["GWP"]
        assert "differing" not in recs[0].message
        assert recs[0].action.startswith("Review the resolution log")

    def test_unresolved_conflict_action(self, gwp_conflict_documents, catalog):
        dataset = consolidate(gwp_conflict_documents, "EACr6", {
            "strategy": "manual", "manualChoices": {"GWP": "Elsewhere"},
        })
        result = evaluate_credit(catalog.get("EACr6"), dataset.values)

        recs = generate_recommendations(result, dataset)

        conflict_rec = [r for r in recs if r.type == "data_conflicts"][0]
        assert conflict_rec.action == "Choose a source document for GWP"
        assert "1 with differing values" in conflict_rec.message

    def test_error_result(self):
        result = AssessmentResult(
            credit_id="XXCr1",
            credit_name="Broken",
            max_points=1,
            status=AssessmentStatus.ERROR,
            error="Unknown calculation 'x'",
        )

        recs = Recommender().generate(result)

        assert len(recs) == 1
        assert "could not be completed" in recs[0].message

    def test_many_gaps_truncated(self, catalog):
        result = evaluate_credit(catalog.get("IEQCr5"), {})

        rec = generate_recommendations(result)[0]

        assert rec.type == "missing_data"
        assert "more" in rec.message
        assert len(rec.parameters) == len(result.gaps)

    def test_repeated_gaps_listed_once(self):
        result = AssessmentResult(
            credit_id="XXCr2",
            credit_name="Shared Parameter",
            max_points=1,
            status=AssessmentStatus.GAPS,
            gaps=["Site Plan", "Site Plan", "Narrative"],
        )

        rec = generate_recommendations(result)[0]

        assert rec.parameters == ["Site Plan", "Narrative"]
        assert rec.message.startswith("2 required parameter(s) missing")
