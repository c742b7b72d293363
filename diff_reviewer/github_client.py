"""
GitHub API client for the Diff Reviewer.

Reads (pull request details, diffs) are retried with exponential backoff.
Writes (inline comments, the review summary) are attempted once so every
comment is posted at most once.
"""

import json
import logging
from typing import Dict, Optional

import requests
from github import Github, GithubException, UnknownObjectException
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import GitHubConfig
from .models import PositionedComment, PRDetails, Recommendation
from .posting import PostingError
from .utils import sanitize_code_content


logger = logging.getLogger(__name__)

_REVIEW_EVENTS = {
    Recommendation.APPROVE: "APPROVE",
    Recommendation.REQUEST_CHANGES: "REQUEST_CHANGES",
    Recommendation.COMMENT: "COMMENT",
}


class GitHubClientError(Exception):
    """Base exception for GitHub client errors."""
    pass


class PRNotFoundError(GitHubClientError):
    """Exception raised when PR is not found."""
    pass


class RateLimitError(GitHubClientError):
    """Exception raised when GitHub API rate limit is exceeded."""
    pass


class PullRequestPoster:
    """``ReviewPoster`` bound to a single pull request."""

    def __init__(self, client: 'GitHubClient', pr_details: PRDetails):
        self.client = client
        self.pr_details = pr_details

    def post_comment(self, comment: PositionedComment) -> None:
        self.client.post_comment(self.pr_details, comment)

    def post_summary(self, body: str, recommendation: Recommendation) -> None:
        self.client.post_summary(self.pr_details, body, recommendation)


class GitHubClient:
    """GitHub API client with retry logic on reads."""

    def __init__(self, config: GitHubConfig):
        """Initialize GitHub client with configuration."""
        self.config = config
        self._client = Github(config.token, base_url=config.api_base_url, timeout=config.timeout)
        self._session = requests.Session()
        self._session.headers.update({
            'Authorization': f'Bearer {config.token}',
            'User-Agent': 'Gemini-Diff-Reviewer/1.0',
            'Accept': 'application/vnd.github.v3+json'
        })
        self._pulls: Dict[str, object] = {}

        logger.info("Initialized GitHub client")

    def get_pr_details_from_event(self, event_path: str) -> PRDetails:
        """Extract PR details from GitHub Actions event payload."""
        try:
            with open(event_path, "r", encoding="utf-8") as f:
                event_data = json.load(f)
            logger.info("Successfully loaded GitHub event data")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load GitHub event data: {str(e)}")
            raise GitHubClientError(f"Failed to load event data: {str(e)}") from e

        try:
            # Comment triggers carry the PR number on the issue
            if "issue" in event_data and "pull_request" in event_data["issue"]:
                pull_number = event_data["issue"]["number"]
            else:
                pull_number = event_data["number"]
            repo_full_name = event_data["repository"]["full_name"]
        except (KeyError, TypeError) as e:
            raise GitHubClientError(f"Event payload is missing pull request data: {e}") from e

        if not repo_full_name or "/" not in repo_full_name:
            raise GitHubClientError(f"Invalid repository name: {repo_full_name}")

        owner, repo = repo_full_name.split("/", 1)
        logger.info(f"Processing PR #{pull_number} in repository {repo_full_name}")

        try:
            return self.get_pr_details(owner, repo, int(pull_number))
        except GitHubClientError:
            raise
        except Exception as e:
            logger.error(f"Failed to get PR details: {str(e)}")
            raise GitHubClientError(f"Failed to get PR details: {str(e)}") from e

    def get_pr_details(self, owner: str, repo: str, pull_number: int) -> PRDetails:
        """Get pull request details."""
        logger.debug(f"Fetching PR details for {owner}/{repo}#{pull_number}")

        pr = self._get_pull(f"{owner}/{repo}", pull_number)
        title = self._sanitize_input(pr.title or "")
        description = self._sanitize_input(pr.body or "")

        pr_details = PRDetails(
            owner=owner,
            repo=repo,
            pull_number=pull_number,
            title=title,
            description=description,
            head_sha=pr.head.sha,
            base_sha=pr.base.sha
        )
        logger.debug(f"Retrieved PR details: {title}")
        return pr_details

    def _get_pull(self, repo_name: str, pull_number: int):
        key = f"{repo_name}#{pull_number}"
        if key not in self._pulls:
            repo_obj = self._get_repo_with_retry(repo_name)
            self._pulls[key] = self._get_pr_with_retry(repo_obj, pull_number)
        return self._pulls[key]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception_type((requests.exceptions.RequestException, GithubException)),
        reraise=True
    )
    def _get_repo_with_retry(self, repo_name: str):
        """Get repository with retry logic."""
        logger.debug(f"Attempting to get repository: {repo_name}")
        try:
            return self._client.get_repo(repo_name)
        except UnknownObjectException as e:
            raise GitHubClientError(f"Repository {repo_name} not found") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception_type((requests.exceptions.RequestException, GithubException)),
        reraise=True
    )
    def _get_pr_with_retry(self, repo, pull_number: int):
        """Get pull request with retry logic."""
        logger.debug(f"Attempting to get PR #{pull_number}")
        try:
            return repo.get_pull(pull_number)
        except UnknownObjectException as e:
            raise PRNotFoundError(f"PR #{pull_number} not found") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception_type((requests.exceptions.RequestException,)),
        reraise=True
    )
    def get_pr_diff(self, owner: str, repo: str, pull_number: int) -> str:
        """Fetch the diff of a pull request with retry logic."""
        if not all([owner, repo, pull_number]):
            logger.error("Invalid parameters provided to get_pr_diff")
            raise GitHubClientError("Invalid parameters")

        if not isinstance(pull_number, int) or pull_number <= 0:
            logger.error(f"Invalid pull request number: {pull_number}")
            raise GitHubClientError(f"Invalid pull request number: {pull_number}")

        repo_name = f"{self._sanitize_input(owner)}/{self._sanitize_input(repo)}"
        api_url = f"{self.config.api_base_url}/repos/{repo_name}/pulls/{pull_number}"
        logger.info(f"Fetching diff for: {repo_name} PR#{pull_number}")

        response = self._session.get(
            api_url,
            headers={'Accept': 'application/vnd.github.v3.diff'},
            timeout=self.config.timeout
        )

        if response.status_code == 200:
            logger.info(f"Successfully retrieved diff (length: {len(response.text)} characters)")
            return response.text
        if response.status_code == 404:
            raise PRNotFoundError(f"PR #{pull_number} not found in {repo_name}")
        if response.status_code == 403:
            if "rate limit" in response.text.lower():
                raise RateLimitError("GitHub API rate limit exceeded")
            raise GitHubClientError("Access forbidden - check GitHub token permissions")

        logger.error(f"Failed to get diff. Status code: {response.status_code}")
        logger.debug(f"Response content: {response.text[:500]}...")
        # 5xx responses raise a RequestException and are retried
        response.raise_for_status()
        raise GitHubClientError(f"Unexpected status code {response.status_code} fetching diff")

    def post_comment(self, pr_details: PRDetails, comment: PositionedComment) -> None:
        """Post one inline review comment on the head commit.

        Raises:
            PostingError: If GitHub rejects the comment
        """
        if not comment.path or not comment.body or comment.line <= 0:
            raise PostingError(f"Invalid comment for {comment.path}:{comment.line}")

        try:
            pr = self._get_pull(pr_details.repo_full_name, pr_details.pull_number)
            commit = self._get_head_commit(pr, pr_details)
            pr.create_review_comment(
                body=self._sanitize_input(comment.body),
                commit=commit,
                path=comment.path,
                line=comment.line,
                side=comment.side,
            )
        except (GithubException, GitHubClientError, requests.exceptions.RequestException) as e:
            raise PostingError(f"Failed to post comment on {comment.path}:{comment.line}: {e}") from e

        logger.debug(f"Posted comment on {comment.path}:{comment.line} ({comment.side})")

    def _get_head_commit(self, pr, pr_details: PRDetails):
        if pr_details.head_sha:
            return pr.base.repo.get_commit(pr_details.head_sha)
        return pr.head.repo.get_commit(pr.head.sha)

    def post_summary(self, pr_details: PRDetails, body: str, recommendation: Recommendation) -> None:
        """Submit the top-level review with the event matching the recommendation.

        An ``APPROVE`` the token is not allowed to give is retried once as
        ``COMMENT``.

        Raises:
            PostingError: If the review cannot be created
        """
        event = _REVIEW_EVENTS[recommendation]
        logger.info(f"Creating review for PR #{pr_details.pull_number} (event: {event})")

        try:
            pr = self._get_pull(pr_details.repo_full_name, pr_details.pull_number)
        except (GithubException, GitHubClientError, requests.exceptions.RequestException) as e:
            raise PostingError(f"Failed to load PR #{pr_details.pull_number}: {e}") from e

        review_body = self._sanitize_input(body)
        try:
            review = pr.create_review(body=review_body, event=event)
        except GithubException as e:
            if event != "APPROVE":
                raise PostingError(f"Failed to create review: {e}") from e
            logger.warning(f"APPROVE review failed ({e}); falling back to COMMENT event.")
            try:
                review = pr.create_review(body=review_body, event="COMMENT")
            except GithubException as e2:
                logger.error(f"Fallback to COMMENT also failed: {e2}")
                raise PostingError(f"Failed to create review: {e2}") from e2

        logger.info(f"Review created successfully with ID: {review.id}")

    def bind(self, pr_details: PRDetails) -> PullRequestPoster:
        """Return a poster that publishes to one pull request."""
        return PullRequestPoster(self, pr_details)

    @staticmethod
    def _sanitize_input(text: str) -> str:
        """Remove null bytes; GitHub escapes HTML in Markdown itself."""
        if not text:
            return ""
        return sanitize_code_content(str(text)).strip()

    def close(self):
        """Clean up resources."""
        self._session.close()
        logger.debug("GitHub client closed")
