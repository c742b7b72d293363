"""
Review dispatching for the Diff Reviewer.

Each reviewable unit (a whole file or a single hunk) is turned into one
request, sent to the reviewer exactly once, and its response normalized into
a ``UnitReview``. Units are processed sequentially in diff order.
"""

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Protocol

from .guidelines import GuidelinesProvider
from .models import (
    DiffUnit, Finding, FindingCategory, ReviewCost, ReviewGranularity,
    ReviewStatus, Severity, UnitReview
)
from .prompts import ReviewMode, build_review_request, get_review_prompt_template
from .response_parser import ReviewResponseParser
from .utils import estimate_tokens


logger = logging.getLogger(__name__)

REVIEWER_ERROR_SCORE = 50
PLACEHOLDER_MESSAGE = "AI review failed, manual review required"


class DispatchCancelledError(Exception):
    """Raised when a run is cancelled before every unit was reviewed."""
    pass


class Reviewer(Protocol):
    """External capability that reviews one request and returns raw text."""

    def review(self, request_text: str) -> str:
        ...


def first_new_side_line(unit: DiffUnit) -> int:
    """First added or context line of a unit, falling back to any line, then 1."""
    fallback = None
    for chunk in unit.chunks:
        for line in chunk.lines:
            if line.source_line_number is None:
                continue
            if line.is_new_side:
                return line.source_line_number
            if fallback is None:
                fallback = line.source_line_number
    return fallback if fallback is not None else 1


def split_units(units: List[DiffUnit], granularity: ReviewGranularity) -> List[DiffUnit]:
    """Expand file units into reviewable units for the given granularity.

    Units without hunks (pure renames) and binary files are skipped.
    """
    reviewable = []
    for unit in units:
        if not unit.chunks:
            logger.debug(f"Skipping {unit.file_path}: no hunks to review")
            continue
        if unit.looks_binary:
            logger.debug(f"Skipping {unit.file_path}: binary content")
            continue
        if granularity == ReviewGranularity.CHUNK:
            for chunk in unit.chunks:
                reviewable.append(DiffUnit(
                    file_path=unit.file_path,
                    chunks=(chunk,),
                    is_deletion=unit.is_deletion,
                    old_path=unit.old_path,
                    is_new_file=unit.is_new_file,
                    is_binary=unit.is_binary,
                ))
        else:
            reviewable.append(unit)
    return reviewable


class ReviewDispatcher:
    """Sends each unit to the reviewer once and normalizes the result."""

    def __init__(
        self,
        reviewer: Reviewer,
        guidelines_provider: Optional[GuidelinesProvider] = None,
        granularity: ReviewGranularity = ReviewGranularity.FILE,
        prompt_template: Optional[str] = None,
        response_parser: Optional[ReviewResponseParser] = None,
    ):
        self.reviewer = reviewer
        self.guidelines_provider = guidelines_provider
        self.granularity = granularity
        self.prompt_template = prompt_template or get_review_prompt_template(ReviewMode.STANDARD)
        self.response_parser = response_parser or ReviewResponseParser()
        self.pr_title: Optional[str] = None
        self.pr_description: Optional[str] = None

        self._stats = {
            'units_dispatched': 0,
            'reviewer_calls': 0,
            'malformed_responses': 0,
            'reviewer_errors': 0,
            'findings': 0,
        }

    def set_pr_context(self, title: Optional[str], description: Optional[str]) -> None:
        self.pr_title = title
        self.pr_description = description

    def build_request(self, unit: DiffUnit) -> str:
        guidelines = ""
        if self.guidelines_provider is not None:
            guidelines = self.guidelines_provider.get_guidelines_for_language(unit.language)
        return build_review_request(
            self.prompt_template,
            unit,
            guidelines=guidelines,
            title=self.pr_title,
            description=self.pr_description,
        )

    def dispatch(
        self,
        units: List[DiffUnit],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[UnitReview]:
        """Review every unit sequentially; the result follows diff order.

        Args:
            units: Filtered diff units
            cancel_event: Checked before each unit; once set, no further
                unit is sent to the reviewer

        Returns:
            One ``UnitReview`` per reviewable unit

        Raises:
            DispatchCancelledError: If ``cancel_event`` is set mid-run
        """
        reviewable = split_units(units, self.granularity)
        logger.info(
            f"Dispatching {len(reviewable)} units ({self.granularity.value} granularity) "
            f"from {len(units)} files"
        )

        reviews = []
        for index, unit in enumerate(reviewable, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"Dispatch cancelled after {index - 1}/{len(reviewable)} units")
                raise DispatchCancelledError(f"Cancelled after {index - 1} of {len(reviewable)} units")
            logger.debug(f"Reviewing unit {index}/{len(reviewable)}: {unit.file_path}")
            reviews.append(self.review_unit(unit))
        return reviews

    def review_unit(self, unit: DiffUnit) -> UnitReview:
        self._stats['units_dispatched'] += 1
        request_text = self.build_request(unit)

        start = time.monotonic()
        self._stats['reviewer_calls'] += 1
        try:
            response_text = self.reviewer.review(request_text)
        except Exception as e:
            elapsed = time.monotonic() - start
            self._stats['reviewer_errors'] += 1
            logger.warning(f"Reviewer failed for {unit.file_path}: {e}")
            return self._placeholder_review(unit, e, ReviewCost(
                input_tokens=estimate_tokens(request_text),
                output_tokens=0,
                elapsed_seconds=elapsed,
            ))
        elapsed = time.monotonic() - start

        decoded = self.response_parser.decode(response_text)
        status = ReviewStatus.REVIEWED
        if not decoded.is_structured:
            self._stats['malformed_responses'] += 1
            status = ReviewStatus.MALFORMED_RESPONSE

        self._stats['findings'] += len(decoded.findings)
        cost = self._measure_cost(request_text, response_text, elapsed)
        logger.debug(
            f"Unit {unit.file_path}: score={decoded.score} findings={len(decoded.findings)} "
            f"status={status.value} tokens={cost.total_tokens}"
        )

        return UnitReview(
            unit=unit,
            score=decoded.score,
            can_merge=decoded.can_merge,
            summary=decoded.summary,
            findings=decoded.findings,
            status=status,
            cost=cost,
        )

    def _measure_cost(self, request_text: str, response_text: Any, elapsed: float) -> ReviewCost:
        usage = getattr(self.reviewer, 'last_usage', None)
        if isinstance(usage, dict) and 'input_tokens' in usage:
            return ReviewCost(
                input_tokens=int(usage.get('input_tokens') or 0),
                output_tokens=int(usage.get('output_tokens') or 0),
                elapsed_seconds=elapsed,
            )
        return ReviewCost(
            input_tokens=estimate_tokens(request_text),
            output_tokens=estimate_tokens(response_text if isinstance(response_text, str) else ""),
            elapsed_seconds=elapsed,
        )

    def _placeholder_review(self, unit: DiffUnit, error: Exception, cost: ReviewCost) -> UnitReview:
        finding = Finding(
            line_number=first_new_side_line(unit),
            severity=Severity.HIGH,
            category=FindingCategory.MAINTAINABILITY,
            message=PLACEHOLDER_MESSAGE,
            suggestion="Review this change manually",
        )
        return UnitReview(
            unit=unit,
            score=REVIEWER_ERROR_SCORE,
            can_merge=False,
            summary=f"AI review failed: {error}",
            findings=[finding],
            status=ReviewStatus.REVIEWER_ERROR,
            cost=cost,
        )

    def get_statistics(self) -> Dict[str, int]:
        return dict(self._stats)
