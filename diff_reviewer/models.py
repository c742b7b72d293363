"""
Data models for the Diff Reviewer.

This module contains the dataclasses and enums passed between the pipeline
stages: parsed diff units, reviewer findings, per-unit and aggregate reviews,
and the positioned comments handed to a posting collaborator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .utils import get_file_language, is_binary_file


class LineType(Enum):
    """Classification of a single line inside a diff hunk."""
    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"

    @property
    def prefix(self) -> str:
        return {LineType.ADDED: "+", LineType.REMOVED: "-"}.get(self, " ")


class ReviewGranularity(Enum):
    """Size of the unit sent to the reviewer in one call."""
    FILE = "file"
    CHUNK = "chunk"


class Severity(Enum):
    """Severity levels a reviewer may attach to a finding."""
    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANKS[self]


_SEVERITY_RANKS = {
    Severity.INFO: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class FindingCategory(Enum):
    """Categories of reviewer findings."""
    BUG = "bug"
    SECURITY = "security"
    PERFORMANCE = "performance"
    STYLE = "style"
    MAINTAINABILITY = "maintainability"


class Recommendation(Enum):
    """Merge recommendation for the whole diff."""
    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"
    COMMENT = "comment"


class ReviewStatus(Enum):
    """How a unit review was obtained."""
    REVIEWED = "reviewed"
    MALFORMED_RESPONSE = "malformed_response"
    REVIEWER_ERROR = "reviewer_error"


@dataclass(frozen=True)
class LineRef:
    """One physical line of a hunk and the file line it maps to.

    ``source_line_number`` is the new-file line number for added and context
    lines, and the old-file line number for removed lines.
    """
    physical_line_number: int
    source_line_number: Optional[int]
    content: str
    line_type: LineType = LineType.CONTEXT

    @property
    def is_new_side(self) -> bool:
        return self.line_type in (LineType.ADDED, LineType.CONTEXT)


@dataclass(frozen=True)
class Chunk:
    """A single hunk of a file diff."""
    raw_text: str
    lines: Tuple[LineRef, ...] = ()
    source_start: int = 0
    source_length: int = 0
    target_start: int = 0
    target_length: int = 0
    header: str = ""

    @property
    def additions(self) -> int:
        return sum(1 for line in self.lines if line.line_type == LineType.ADDED)

    @property
    def deletions(self) -> int:
        return sum(1 for line in self.lines if line.line_type == LineType.REMOVED)


@dataclass(frozen=True)
class DiffUnit:
    """One file touched by the diff, with its hunks in diff order."""
    file_path: str
    chunks: Tuple[Chunk, ...] = ()
    is_deletion: bool = False
    old_path: Optional[str] = None
    is_new_file: bool = False
    is_binary: bool = False

    @property
    def language(self) -> str:
        return get_file_language(self.file_path)

    @property
    def total_additions(self) -> int:
        return sum(chunk.additions for chunk in self.chunks)

    @property
    def total_deletions(self) -> int:
        return sum(chunk.deletions for chunk in self.chunks)

    @property
    def line_numbers(self) -> List[int]:
        """All source line numbers present in this unit, in diff order."""
        return [
            line.source_line_number
            for chunk in self.chunks
            for line in chunk.lines
            if line.source_line_number is not None
        ]

    @property
    def looks_binary(self) -> bool:
        return self.is_binary or is_binary_file(self.file_path)


@dataclass
class Finding:
    """A single issue reported by the reviewer."""
    line_number: int
    severity: Severity
    category: FindingCategory
    message: str
    suggestion: Optional[str] = None
    quote: Optional[str] = None


@dataclass
class ReviewCost:
    """Token and latency accounting for one reviewer call."""
    input_tokens: int = 0
    output_tokens: int = 0
    elapsed_seconds: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class UnitReview:
    """Normalized reviewer verdict for one dispatched unit."""
    unit: DiffUnit
    score: int
    can_merge: bool
    summary: str
    findings: List[Finding] = field(default_factory=list)
    status: ReviewStatus = ReviewStatus.REVIEWED
    cost: ReviewCost = field(default_factory=ReviewCost)

    @property
    def is_degraded(self) -> bool:
        return self.status != ReviewStatus.REVIEWED


@dataclass
class AggregateReview:
    """Combined review of every dispatched unit."""
    overall_score: int
    can_merge: bool
    summary: str
    unit_reviews: List[UnitReview] = field(default_factory=list)
    recommendation: Recommendation = Recommendation.COMMENT
    reasons: List[str] = field(default_factory=list)
    severity_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def findings(self) -> List[Finding]:
        return [finding for review in self.unit_reviews for finding in review.findings]

    @property
    def total_cost(self) -> ReviewCost:
        total = ReviewCost()
        for review in self.unit_reviews:
            total.input_tokens += review.cost.input_tokens
            total.output_tokens += review.cost.output_tokens
            total.elapsed_seconds += review.cost.elapsed_seconds
        return total


@dataclass(frozen=True)
class PositionedComment:
    """A comment anchored to a file line, ready for a posting collaborator."""
    path: str
    line: int
    body: str
    side: str = "RIGHT"


@dataclass
class PRDetails:
    """Pull request identification."""
    owner: str
    repo: str
    pull_number: int
    title: str
    description: str
    head_sha: Optional[str] = None
    base_sha: Optional[str] = None

    @property
    def repo_full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class ProcessingStats:
    """Counters collected during one pipeline run."""
    start_time: float
    end_time: Optional[float] = None
    files_parsed: int = 0
    files_filtered_out: int = 0
    units_dispatched: int = 0
    reviewer_calls: int = 0
    degraded_reviews: int = 0
    findings_total: int = 0
    comments_mapped: int = 0
    comments_dropped: int = 0

    @property
    def duration(self) -> float:
        if self.end_time is None:
            return 0.0
        return self.end_time - self.start_time
