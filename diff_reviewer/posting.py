"""
Posting contract for the Diff Reviewer.

A poster receives positioned comments one at a time, then the summary and
the recommendation. Each comment post is attempted once; failures are
recorded per comment and never roll back earlier posts.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol

from .models import AggregateReview, PositionedComment, Recommendation


logger = logging.getLogger(__name__)


class PostingError(Exception):
    """Raised by a poster when a comment or summary cannot be delivered."""
    pass


class PostingStatus(Enum):
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"


class ReviewPoster(Protocol):
    """Destination for review output (pull request, chat channel, ...)."""

    def post_comment(self, comment: PositionedComment) -> None:
        ...

    def post_summary(self, body: str, recommendation: Recommendation) -> None:
        ...


@dataclass
class CommentFailure:
    comment: PositionedComment
    error: str


@dataclass
class PostingReport:
    """Result of publishing one review."""
    posted: List[PositionedComment] = field(default_factory=list)
    failures: List[CommentFailure] = field(default_factory=list)
    summary_posted: bool = False
    summary_error: Optional[str] = None

    @property
    def status(self) -> PostingStatus:
        if not self.failures and self.summary_posted:
            return PostingStatus.COMPLETED
        if not self.posted and not self.summary_posted:
            return PostingStatus.FAILED
        return PostingStatus.PARTIALLY_COMPLETED


def publish_review(
    review: AggregateReview,
    comments: List[PositionedComment],
    summary: str,
    poster: ReviewPoster,
) -> PostingReport:
    """Post every comment, then the summary with the recommendation.

    Args:
        review: Aggregate review supplying the recommendation
        comments: Comments in diff order
        summary: Top-level review body
        poster: Destination

    Returns:
        A report of what was and was not posted
    """
    report = PostingReport()

    for index, comment in enumerate(comments, start=1):
        try:
            poster.post_comment(comment)
        except Exception as e:
            logger.warning(f"Failed to post comment {index}/{len(comments)} on {comment.path}:{comment.line}: {e}")
            report.failures.append(CommentFailure(comment=comment, error=str(e)))
            continue
        report.posted.append(comment)

    try:
        poster.post_summary(summary, review.recommendation)
        report.summary_posted = True
    except Exception as e:
        logger.error(f"Failed to post review summary: {e}")
        report.summary_error = str(e)

    logger.info(
        f"Posting {report.status.value}: {len(report.posted)} comments posted, "
        f"{len(report.failures)} failed, summary posted={report.summary_posted}"
    )
    return report
