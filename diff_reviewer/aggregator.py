"""
Finding aggregation for the Diff Reviewer.

Combines per-unit reviews into one score, a severity histogram and a merge
recommendation. The decision rules are evaluated in a fixed priority order;
the first matching rule wins.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .models import AggregateReview, Recommendation, Severity, UnitReview
from .validators import validate_range


logger = logging.getLogger(__name__)

EMPTY_REVIEW_SCORE = 100


@dataclass
class AggregationPolicy:
    """Score and severity thresholds of the merge decision."""
    request_changes_below: int = 60
    approve_at_or_above: int = 80
    max_high_findings: int = 3

    def __post_init__(self):
        """Validate aggregation thresholds."""
        validate_range(self.request_changes_below, 0, 100, "request_changes_below")
        validate_range(self.approve_at_or_above, 0, 100, "approve_at_or_above")
        if self.max_high_findings < 0:
            raise ValueError("max_high_findings must not be negative")
        if self.approve_at_or_above < self.request_changes_below:
            raise ValueError("approve_at_or_above must not be lower than request_changes_below")


def count_severities(unit_reviews: List[UnitReview]) -> Dict[str, int]:
    """Histogram of finding severities across all unit reviews."""
    counts = {severity.value: 0 for severity in Severity}
    for review in unit_reviews:
        for finding in review.findings:
            counts[finding.severity.value] += 1
    return counts


def mean_score(unit_reviews: List[UnitReview]) -> int:
    """Arithmetic mean of unit scores, rounded half up."""
    if not unit_reviews:
        return EMPTY_REVIEW_SCORE
    total = sum(review.score for review in unit_reviews)
    # half up, unlike round()
    return int((2 * total + len(unit_reviews)) // (2 * len(unit_reviews)))


class FindingAggregator:
    """Deterministic reducer from ``UnitReview`` list to ``AggregateReview``."""

    def __init__(self, policy: Optional[AggregationPolicy] = None):
        self.policy = policy or AggregationPolicy()

    def aggregate(self, unit_reviews: List[UnitReview]) -> AggregateReview:
        """Aggregate unit reviews into a single review and recommendation.

        Args:
            unit_reviews: Reviews in diff order

        Returns:
            The aggregate review; an empty input approves with score 100
        """
        unit_reviews = list(unit_reviews)
        severity_counts = count_severities(unit_reviews)

        if not unit_reviews:
            logger.info("No unit reviews to aggregate; approving empty change")
            return AggregateReview(
                overall_score=EMPTY_REVIEW_SCORE,
                can_merge=True,
                summary="No code changes to review.",
                unit_reviews=[],
                recommendation=Recommendation.APPROVE,
                reasons=["no reviewable changes"],
                severity_counts=severity_counts,
            )

        overall_score = mean_score(unit_reviews)
        can_merge = all(review.can_merge for review in unit_reviews)
        recommendation, reasons = self.decide(overall_score, severity_counts)

        logger.info(
            f"Aggregated {len(unit_reviews)} unit reviews: score={overall_score} "
            f"recommendation={recommendation.value} can_merge={can_merge}"
        )

        return AggregateReview(
            overall_score=overall_score,
            can_merge=can_merge,
            summary=self.summarize(overall_score, severity_counts),
            unit_reviews=unit_reviews,
            recommendation=recommendation,
            reasons=reasons,
            severity_counts=severity_counts,
        )

    def decide(self, overall_score: int, severity_counts: Dict[str, int]) -> Tuple[Recommendation, List[str]]:
        critical = severity_counts.get(Severity.CRITICAL.value, 0)
        high = severity_counts.get(Severity.HIGH.value, 0)

        if critical > 0:
            return Recommendation.REQUEST_CHANGES, [f"{critical} critical issues found"]
        if overall_score < self.policy.request_changes_below:
            return Recommendation.REQUEST_CHANGES, [f"overall score below {self.policy.request_changes_below}"]
        if high > self.policy.max_high_findings:
            return Recommendation.REQUEST_CHANGES, ["too many high-severity issues"]
        if overall_score >= self.policy.approve_at_or_above:
            return Recommendation.APPROVE, ["high score"]
        return Recommendation.COMMENT, ["moderate quality, review recommended"]

    @staticmethod
    def summarize(overall_score: int, severity_counts: Dict[str, int]) -> str:
        if overall_score >= 90:
            return f"Excellent code quality! Score: {overall_score}/100. Ready to merge."
        if overall_score >= 80:
            return f"Good code quality with minor improvements needed. Score: {overall_score}/100."
        if overall_score >= 70:
            return f"Acceptable code quality but several issues should be addressed. Score: {overall_score}/100."
        if severity_counts.get(Severity.CRITICAL.value, 0) > 0:
            return f"Critical security or logic issues found. Score: {overall_score}/100. Must fix before merge."
        return f"Code quality needs significant improvement. Score: {overall_score}/100."
