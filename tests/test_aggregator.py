"""
Tests for finding aggregation and the merge decision.
"""

import pytest

from diff_reviewer.aggregator import AggregationPolicy, FindingAggregator, count_severities, mean_score
from diff_reviewer.models import (
    DiffUnit, Finding, FindingCategory, Recommendation, Severity, UnitReview,
)


def _review(score, *severities, can_merge=True, path="a.py"):
    findings = [
        Finding(index + 1, severity, FindingCategory.BUG, f"issue {index}")
        for index, severity in enumerate(severities)
    ]
    return UnitReview(DiffUnit(file_path=path), score, can_merge, "", findings)


class TestHelpers:
    """Test score and severity helpers."""

    def test_count_severities_has_every_level(self):
        counts = count_severities([_review(80, Severity.HIGH, Severity.HIGH, Severity.INFO)])
        assert counts == {"info": 1, "low": 0, "medium": 0, "high": 2, "critical": 0}

    def test_mean_score_rounds_half_up(self):
        assert mean_score([_review(80), _review(85)]) == 83
        assert mean_score([_review(70), _review(71), _review(71)]) == 71
        assert mean_score([]) == 100


class TestAggregationPolicy:
    """Test policy validation."""

    def test_defaults(self):
        policy = AggregationPolicy()
        assert (policy.request_changes_below, policy.approve_at_or_above, policy.max_high_findings) == (60, 80, 3)

    def test_invalid_thresholds(self):
        with pytest.raises(ValueError):
            AggregationPolicy(request_changes_below=101)
        with pytest.raises(ValueError):
            AggregationPolicy(request_changes_below=80, approve_at_or_above=70)
        with pytest.raises(ValueError):
            AggregationPolicy(max_high_findings=-1)


class TestFindingAggregator:
    """Test cases for FindingAggregator."""

    def setup_method(self):
        self.aggregator = FindingAggregator()

    def test_empty_input_approves(self):
        review = self.aggregator.aggregate([])

        assert review.overall_score == 100
        assert review.can_merge is True
        assert review.recommendation == Recommendation.APPROVE
        assert review.reasons == ["no reviewable changes"]
        assert review.severity_counts["critical"] == 0

    def test_critical_finding_requests_changes(self):
        review = self.aggregator.aggregate([_review(95, Severity.CRITICAL)])

        assert review.recommendation == Recommendation.REQUEST_CHANGES
        assert review.reasons == ["1 critical issues found"]

    def test_low_score_requests_changes(self):
        review = self.aggregator.aggregate([_review(50)])

        assert review.recommendation == Recommendation.REQUEST_CHANGES
        assert review.reasons == ["overall score below 60"]

    def test_too_many_high_findings(self):
        review = self.aggregator.aggregate([_review(85, *[Severity.HIGH] * 4)])

        assert review.recommendation == Recommendation.REQUEST_CHANGES
        assert review.reasons == ["too many high-severity issues"]

    def test_high_score_approves(self):
        review = self.aggregator.aggregate([_review(90, Severity.HIGH, Severity.LOW)])

        assert review.recommendation == Recommendation.APPROVE
        assert review.reasons == ["high score"]

    def test_moderate_score_comments(self):
        review = self.aggregator.aggregate([_review(70), _review(75)])

        assert review.overall_score == 73
        assert review.recommendation == Recommendation.COMMENT
        assert review.reasons == ["moderate quality, review recommended"]

    def test_boundaries(self):
        assert self.aggregator.aggregate([_review(60)]).recommendation == Recommendation.COMMENT
        assert self.aggregator.aggregate([_review(59)]).recommendation == Recommendation.REQUEST_CHANGES
        assert self.aggregator.aggregate([_review(80)]).recommendation == Recommendation.APPROVE
        three_high = _review(85, Severity.HIGH, Severity.HIGH, Severity.HIGH)
        assert self.aggregator.aggregate([three_high]).recommendation == Recommendation.APPROVE

    def test_can_merge_requires_every_unit(self):
        review = self.aggregator.aggregate([_review(95), _review(95, can_merge=False)])

        assert review.can_merge is False
        assert review.recommendation == Recommendation.APPROVE

    def test_custom_policy(self):
        aggregator = FindingAggregator(AggregationPolicy(request_changes_below=70, approve_at_or_above=95))

        review = aggregator.aggregate([_review(65)])

        assert review.reasons == ["overall score below 70"]
        assert aggregator.aggregate([_review(90)]).recommendation == Recommendation.COMMENT

    def test_unit_order_is_kept(self):
        reviews = [_review(80, path="z.py"), _review(80, path="a.py")]
        assert [r.unit.file_path for r in self.aggregator.aggregate(reviews).unit_reviews] == ["z.py", "a.py"]

    def test_summary_text(self):
        assert "Excellent" in self.aggregator.aggregate([_review(95)]).summary
        assert "Critical" in self.aggregator.aggregate([_review(40, Severity.CRITICAL)]).summary
        assert "significant improvement" in self.aggregator.aggregate([_review(40)]).summary
