"""
Command-line entry point for the Diff Reviewer.

Reviews a local diff (file, stdin or ``GIT_DIFF``) and prints the result, or,
with ``--event-path``, reviews a GitHub pull request and posts to it.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from .code_reviewer import CodeReviewer, CodeReviewerError, ReviewOutcome
from .config import Config, LoggingConfig
from .diff_parser import DiffParsingError
from .gemini_client import ReviewerError
from .models import ReviewGranularity
from .posting import PostingStatus
from .utils import parse_patterns


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL = 2


def setup_logging(logging_config: LoggingConfig) -> None:
    """Configure the root logger from the logging section."""
    level = getattr(logging, logging_config.level.value)
    logging.basicConfig(level=level, format=logging_config.format, force=True)

    if logging_config.enable_file_logging:
        handler = RotatingFileHandler(
            logging_config.log_file_path,
            maxBytes=logging_config.max_log_size,
            backupCount=logging_config.backup_count,
        )
        handler.setFormatter(logging.Formatter(logging_config.format))
        logging.getLogger().addHandler(handler)

    # Third-party clients are noisy at DEBUG
    for noisy in ("urllib3", "github"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="diff_reviewer",
        description="Review a unified diff with Gemini and produce positioned comments.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--diff-file",
        help="Path to a unified diff, or '-' for stdin (default: the GIT_DIFF environment variable)",
    )
    source.add_argument(
        "--event-path",
        help="GitHub Actions event payload; reviews the pull request and posts the result",
    )
    parser.add_argument(
        "--granularity",
        choices=[granularity.value for granularity in ReviewGranularity],
        help="Send whole files or single hunks to the reviewer",
    )
    parser.add_argument(
        "--exclude",
        help="Comma-separated glob patterns to skip (overrides EXCLUDE)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the outcome as JSON instead of the markdown summary",
    )
    return parser.parse_args(argv)


def read_diff(diff_file: Optional[str]) -> str:
    """Read diff text from a path, stdin, or the GIT_DIFF variable."""
    if diff_file == "-":
        return sys.stdin.read()
    if diff_file:
        with open(diff_file, "r", encoding="utf-8") as f:
            return f.read()
    return os.environ.get("GIT_DIFF", "")


def print_outcome(outcome: ReviewOutcome, as_json: bool) -> None:
    if as_json:
        print(json.dumps(outcome.to_dict(), indent=2))
        return
    print(outcome.summary)
    for comment in outcome.comments:
        print(f"\n{comment.path}:{comment.line} ({comment.side})\n{comment.body}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = Config.from_environment(require_github=bool(args.event_path))
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.granularity:
        config.review.granularity = ReviewGranularity(args.granularity)
    if args.exclude is not None:
        config.review.exclude_patterns = parse_patterns(args.exclude)

    setup_logging(config.logging)
    logger.debug(f"Configuration: {config.to_dict()}")

    try:
        with CodeReviewer(config) as reviewer:
            if args.event_path:
                outcome = asyncio.run(reviewer.review_pull_request(args.event_path))
            else:
                diff_text = read_diff(args.diff_file)
                outcome = asyncio.run(reviewer.review_diff_with_timeout(diff_text))
    except DiffParsingError as e:
        logger.error(f"Diff could not be parsed: {e}")
        return EXIT_ERROR
    except (CodeReviewerError, ReviewerError, OSError) as e:
        logger.error(f"Review failed: {e}")
        return EXIT_ERROR
    except asyncio.TimeoutError:
        logger.error("Review timed out")
        return EXIT_ERROR

    print_outcome(outcome, args.json)

    if outcome.posting is not None:
        if outcome.posting.status == PostingStatus.FAILED:
            return EXIT_ERROR
        if outcome.posting.status == PostingStatus.PARTIALLY_COMPLETED:
            logger.warning("Posting only partially completed")
            return EXIT_PARTIAL
    return EXIT_OK
