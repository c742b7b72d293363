"""
Main code reviewer orchestrator for the Diff Reviewer.

This module contains the CodeReviewer class that runs the pipeline
parse -> filter -> dispatch -> aggregate -> map, and hands the result to a
posting collaborator.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .aggregator import FindingAggregator
from .comment_mapper import CommentMapper
from .config import Config
from .diff_parser import DiffParser, DiffParsingError
from .github_client import GitHubClient, GitHubClientError
from .guidelines import DirectoryGuidanceStore, GuidanceStore, GuidelinesProvider
from .models import AggregateReview, PositionedComment, PRDetails, ProcessingStats
from .path_filter import PathFilter
from .posting import PostingReport, ReviewPoster, publish_review
from .review_dispatcher import Reviewer, ReviewDispatcher


logger = logging.getLogger(__name__)


class CodeReviewerError(Exception):
    """Base exception for code reviewer errors."""
    pass


def _run_in_daemon_thread(func, *args) -> asyncio.Future:
    """Run ``func`` on a daemon thread and expose its result as a future."""
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def settle(result, error):
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def worker():
        result, error = None, None
        try:
            result = func(*args)
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(settle, result, error)
        except RuntimeError:
            logger.debug("Event loop closed before the review worker finished")

    threading.Thread(target=worker, name="diff-review-worker", daemon=True).start()
    return future


@dataclass
class ReviewOutcome:
    """Everything one pipeline run produced."""
    review: AggregateReview
    comments: List[PositionedComment] = field(default_factory=list)
    dropped_findings: int = 0
    summary: str = ""
    posting: Optional[PostingReport] = None

    def to_dict(self) -> Dict[str, Any]:
        review = self.review
        cost = review.total_cost
        data = {
            "overall_score": review.overall_score,
            "can_merge": review.can_merge,
            "recommendation": review.recommendation.value,
            "reasons": list(review.reasons),
            "summary": review.summary,
            "severity_counts": dict(review.severity_counts),
            "units": [
                {
                    "file_path": unit_review.unit.file_path,
                    "score": unit_review.score,
                    "can_merge": unit_review.can_merge,
                    "status": unit_review.status.value,
                    "findings": len(unit_review.findings),
                    "input_tokens": unit_review.cost.input_tokens,
                    "output_tokens": unit_review.cost.output_tokens,
                    "elapsed_seconds": round(unit_review.cost.elapsed_seconds, 3),
                }
                for unit_review in review.unit_reviews
            ],
            "comments": [
                {"path": comment.path, "line": comment.line, "side": comment.side, "body": comment.body}
                for comment in self.comments
            ],
            "dropped_findings": self.dropped_findings,
            "total_tokens": cost.total_tokens,
        }
        if self.posting is not None:
            data["posting"] = {
                "status": self.posting.status.value,
                "posted": len(self.posting.posted),
                "failed": len(self.posting.failures),
                "summary_posted": self.posting.summary_posted,
            }
        return data


class CodeReviewer:
    """Main orchestrator class for the code review process."""

    def __init__(
        self,
        config: Config,
        reviewer: Optional[Reviewer] = None,
        guidance_store: Optional[GuidanceStore] = None,
        github_client: Optional[GitHubClient] = None,
    ):
        """Initialize the code reviewer with configuration.

        Args:
            config: Full configuration
            reviewer: Reviewer capability; a ``GeminiReviewer`` by default
            guidance_store: Guidance source; the configured directory by default
            github_client: Client for pull request mode; built on demand
        """
        self.config = config

        if reviewer is None:
            from .gemini_client import GeminiReviewer
            reviewer = GeminiReviewer(config.gemini)
        self.reviewer = reviewer

        self.github_client = github_client
        self.diff_parser = DiffParser()
        self.path_filter = PathFilter(config.review.exclude_patterns)
        self.guidelines_provider = GuidelinesProvider(
            guidance_store or DirectoryGuidanceStore(config.review.guidelines_dir)
        )
        self.dispatcher = ReviewDispatcher(
            reviewer=self.reviewer,
            guidelines_provider=self.guidelines_provider,
            granularity=config.review.granularity,
            prompt_template=config.get_review_prompt_template(),
        )
        self.aggregator = FindingAggregator(config.policy)
        self.comment_mapper = CommentMapper.from_review_config(config.review)

        self.stats = ProcessingStats(start_time=time.time())

        logger.info("Initialized CodeReviewer with all components")

    def review_diff(
        self,
        diff_text: str,
        pr_details: Optional[PRDetails] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReviewOutcome:
        """Run the review pipeline over unified-diff text.

        Args:
            diff_text: Raw unified diff
            pr_details: Optional pull request whose title and description
                are added to each request
            cancel_event: Once set, no further unit is sent to the reviewer

        Returns:
            The aggregate review and its positioned comments

        Raises:
            DiffParsingError: If the diff is structurally malformed
            DispatchCancelledError: If ``cancel_event`` was set mid-run
        """
        logger.info("=== Starting Diff Review ===")
        self.stats = ProcessingStats(start_time=time.time())

        try:
            units = self.diff_parser.parse_diff(diff_text)
        except DiffParsingError as e:
            logger.error(f"Failed to parse diff: {str(e)}")
            raise
        self.stats.files_parsed = len(units)

        reviewable = self.path_filter.filter_units(units)
        self.stats.files_filtered_out = len(units) - len(reviewable)

        if pr_details is not None:
            self.dispatcher.set_pr_context(pr_details.title, pr_details.description)
        unit_reviews = self.dispatcher.dispatch(reviewable, cancel_event=cancel_event)
        self.stats.units_dispatched = len(unit_reviews)
        self.stats.reviewer_calls = len(unit_reviews)
        self.stats.degraded_reviews = sum(1 for review in unit_reviews if review.is_degraded)
        self.stats.findings_total = sum(len(review.findings) for review in unit_reviews)

        review = self.aggregator.aggregate(unit_reviews)

        self.comment_mapper.reset_statistics()
        comments = self.comment_mapper.map_comments(review)
        dropped = self.comment_mapper.dropped_count
        self.stats.comments_mapped = len(comments)
        self.stats.comments_dropped = dropped
        self.stats.end_time = time.time()

        logger.info(
            f"Review finished in {self.stats.duration:.2f}s: score {review.overall_score}, "
            f"{review.recommendation.value}, {len(comments)} comments, {dropped} findings dropped"
        )

        return ReviewOutcome(
            review=review,
            comments=comments,
            dropped_findings=dropped,
            summary=self.comment_mapper.format_summary(review),
        )

    async def review_diff_with_timeout(
        self,
        diff_text: str,
        timeout: Optional[float] = None,
        pr_details: Optional[PRDetails] = None,
    ) -> ReviewOutcome:
        """Run ``review_diff`` in a worker thread, bounded by one overall timeout.

        On timeout no further unit is sent to the reviewer. The worker is a
        daemon thread, so a reviewer call already in flight does not hold up
        the event loop's shutdown.

        Raises:
            asyncio.TimeoutError: If the whole run exceeds ``timeout`` seconds
        """
        if timeout is None:
            timeout = self.config.review.review_timeout or None

        cancel_event = threading.Event()
        task = _run_in_daemon_thread(self.review_diff, diff_text, pr_details, cancel_event)
        if not timeout:
            return await task
        try:
            return await asyncio.wait_for(task, timeout=timeout)
        except asyncio.TimeoutError:
            cancel_event.set()
            logger.error(f"Review did not finish within {timeout} seconds")
            raise

    def publish(self, outcome: ReviewOutcome, poster: ReviewPoster) -> PostingReport:
        """Post the outcome's comments one by one, then its summary."""
        report = publish_review(outcome.review, outcome.comments, outcome.summary, poster)
        outcome.posting = report
        return report

    async def review_pull_request(self, event_path: str) -> ReviewOutcome:
        """Review a pull request from a GitHub Actions event and post the result."""
        logger.info("=== Starting Pull Request Review ===")
        github_client = self._get_github_client()

        try:
            pr_details = github_client.get_pr_details_from_event(event_path)
            logger.info(f"Reviewing PR #{pr_details.pull_number}: {pr_details.title}")
            diff_text = github_client.get_pr_diff(pr_details.owner, pr_details.repo, pr_details.pull_number)
        except GitHubClientError as e:
            logger.error(f"Failed to load pull request: {str(e)}")
            raise CodeReviewerError(f"Failed to load pull request: {str(e)}") from e

        outcome = await self.review_diff_with_timeout(diff_text, pr_details=pr_details)
        self.publish(outcome, github_client.bind(pr_details))
        return outcome

    def _get_github_client(self) -> GitHubClient:
        if self.github_client is None:
            if self.config.github is None:
                raise CodeReviewerError("GITHUB_TOKEN is required to review a pull request")
            self.github_client = GitHubClient(self.config.github)
        return self.github_client

    def get_statistics(self) -> Dict[str, Any]:
        """Get comprehensive processing statistics."""
        reviewer_stats = {}
        if hasattr(self.reviewer, 'get_statistics'):
            reviewer_stats = self.reviewer.get_statistics()

        return {
            'processing': {
                'duration': self.stats.duration,
                'files_parsed': self.stats.files_parsed,
                'files_filtered_out': self.stats.files_filtered_out,
                'units_dispatched': self.stats.units_dispatched,
                'degraded_reviews': self.stats.degraded_reviews,
                'findings_total': self.stats.findings_total,
                'comments_mapped': self.stats.comments_mapped,
                'comments_dropped': self.stats.comments_dropped,
            },
            'parsing': self.diff_parser.get_parsing_statistics(),
            'dispatch': self.dispatcher.get_statistics(),
            'guidelines': self.guidelines_provider.get_statistics(),
            'comments': self.comment_mapper.get_statistics(),
            'reviewer': reviewer_stats,
        }

    def close(self):
        """Clean up resources."""
        if self.github_client is not None:
            self.github_client.close()
        logger.info("CodeReviewer cleanup completed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
