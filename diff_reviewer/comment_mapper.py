"""
Comment mapping for the Diff Reviewer.

This module converts reviewer findings into positioned comments anchored on a
file path and line number. Findings whose line does not exist in the unit's
diff are dropped and counted, never moved to another line.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .config import ReviewConfig
from .models import (
    AggregateReview, DiffUnit, Finding, LineRef, LineType, PositionedComment,
    Severity
)


logger = logging.getLogger(__name__)

_LINE_PREFERENCE = {LineType.ADDED: 0, LineType.CONTEXT: 1, LineType.REMOVED: 2}


@dataclass
class _Candidate:
    unit_index: int
    sequence: int
    path: str
    finding: Finding
    line: LineRef

    @property
    def diff_position(self):
        return (self.unit_index, self.line.physical_line_number, self.sequence)


def index_unit_lines(unit: DiffUnit) -> Dict[int, LineRef]:
    """Map each source line number to its preferred diff line.

    Added lines win over context lines, which win over removed lines; within
    one kind the first occurrence in the diff is kept.
    """
    index: Dict[int, LineRef] = {}
    for chunk in unit.chunks:
        for line in chunk.lines:
            number = line.source_line_number
            if number is None:
                continue
            current = index.get(number)
            if current is None or _LINE_PREFERENCE[line.line_type] < _LINE_PREFERENCE[current.line_type]:
                index[number] = line
    return index


def format_comment_body(finding: Finding, line: Optional[LineRef] = None) -> str:
    """Render the markdown body of one inline comment."""
    parts = [f"**{finding.severity.value.upper()} - {finding.category.value.upper()}**"]

    quote = finding.quote or (line.content.strip() if line is not None else "")
    if quote:
        parts.append(f"> `{quote}`")

    parts.append(f"**Issue:** {finding.message}")
    if finding.suggestion:
        parts.append(f"**Recommendation:** {finding.suggestion}")

    return "\n\n".join(parts)


class CommentMapper:
    """Turns an ``AggregateReview`` into positioned comments in diff order."""

    def __init__(
        self,
        min_severity: Optional[Severity] = None,
        max_comments_total: int = 0,
        max_comments_per_file: int = 0,
    ):
        self.min_severity = min_severity
        self.max_comments_total = max_comments_total
        self.max_comments_per_file = max_comments_per_file
        self.reset_statistics()

    @classmethod
    def from_review_config(cls, review_config: ReviewConfig) -> 'CommentMapper':
        return cls(
            min_severity=review_config.min_severity,
            max_comments_total=review_config.max_comments_total,
            max_comments_per_file=review_config.max_comments_per_file,
        )

    def map_comments(self, review: AggregateReview) -> List[PositionedComment]:
        """Convert every anchorable finding into a ``PositionedComment``.

        Args:
            review: The aggregate review

        Returns:
            Comments ordered by unit, then by position in the diff
        """
        candidates: List[_Candidate] = []
        sequence = 0

        for unit_index, unit_review in enumerate(review.unit_reviews):
            line_index = index_unit_lines(unit_review.unit)
            for finding in unit_review.findings:
                sequence += 1
                line = line_index.get(finding.line_number)
                if line is None:
                    self._stats['dropped_unresolved'] += 1
                    logger.warning(
                        f"Dropping finding on {unit_review.unit.file_path}:{finding.line_number}; "
                        f"line is not part of the diff"
                    )
                    continue
                if self.min_severity is not None and finding.severity.rank < self.min_severity.rank:
                    self._stats['dropped_by_threshold'] += 1
                    continue
                candidates.append(_Candidate(unit_index, sequence, unit_review.unit.file_path, finding, line))

        candidates.sort(key=lambda candidate: candidate.diff_position)
        candidates = self._apply_limits(candidates)

        comments = [
            PositionedComment(
                path=candidate.path,
                line=candidate.line.source_line_number,
                body=format_comment_body(candidate.finding, candidate.line),
                side="LEFT" if candidate.line.line_type == LineType.REMOVED else "RIGHT",
            )
            for candidate in candidates
        ]

        self._stats['mapped'] += len(comments)
        logger.info(f"Mapped {len(comments)} comments ({self.dropped_count} findings dropped)")
        return comments

    def _apply_limits(self, candidates: List[_Candidate]) -> List[_Candidate]:
        def most_severe_first(candidate: _Candidate):
            return (-candidate.finding.severity.rank, candidate.diff_position)

        kept = candidates
        if self.max_comments_per_file > 0:
            by_path: Dict[str, List[_Candidate]] = {}
            for candidate in kept:
                by_path.setdefault(candidate.path, []).append(candidate)
            selected = []
            for group in by_path.values():
                selected.extend(sorted(group, key=most_severe_first)[:self.max_comments_per_file])
            kept = selected

        if self.max_comments_total > 0:
            kept = sorted(kept, key=most_severe_first)[:self.max_comments_total]

        self._stats['dropped_by_limits'] += len(candidates) - len(kept)
        return sorted(kept, key=lambda candidate: candidate.diff_position)

    @property
    def dropped_count(self) -> int:
        return (
            self._stats['dropped_unresolved']
            + self._stats['dropped_by_threshold']
            + self._stats['dropped_by_limits']
        )

    def format_summary(self, review: AggregateReview) -> str:
        """Render the top-level review comment."""
        counts = review.severity_counts
        merge_state = "Ready to Merge" if review.can_merge else "Changes Requested"
        recommendation = review.recommendation.value.upper().replace("_", " ")

        lines = [
            "## AI Code Review",
            "",
            f"**Overall Score: {review.overall_score}/100** | **{merge_state}**",
            "",
            "### Summary",
            review.summary,
            "",
            "### Issues Found",
        ]
        for severity in (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW):
            lines.append(f"- {severity.value.capitalize()}: {counts.get(severity.value, 0)}")

        lines.extend(["", f"### Units Reviewed: {len(review.unit_reviews)}"])
        for unit_review in review.unit_reviews:
            merge_mark = "mergeable" if unit_review.can_merge else "blocking"
            line = (
                f"- **{unit_review.unit.file_path}** ({unit_review.unit.language}): "
                f"{unit_review.score}/100, {merge_mark}"
            )
            if unit_review.is_degraded:
                line += f" ({unit_review.status.value.replace('_', ' ')})"
            lines.append(line)

        lines.extend(["", f"### Recommendation: {recommendation}"])
        lines.extend(f"- {reason}" for reason in review.reasons)
        lines.extend(["", "---", "*Generated by Gemini Diff Reviewer*"])
        return "\n".join(lines)

    def get_statistics(self) -> Dict[str, int]:
        return dict(self._stats)

    def reset_statistics(self) -> None:
        self._stats = {
            'mapped': 0,
            'dropped_unresolved': 0,
            'dropped_by_threshold': 0,
            'dropped_by_limits': 0,
        }
