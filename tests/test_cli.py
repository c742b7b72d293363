"""
Tests for the command-line entry point.
"""

import io
import json
import logging
from unittest.mock import patch

import pytest

from diff_reviewer import cli
from diff_reviewer.config import LoggingConfig, LogLevel
from diff_reviewer.posting import CommentFailure, PostingReport


SECRET_RESPONSE = json.dumps({
    "score": 40, "canMerge": False, "summary": "Hardcoded credential",
    "findings": [{"lineNumber": 2, "severity": "critical", "category": "security",
                  "message": "Hardcoded secret"}],
})


@pytest.fixture
def gemini_env(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-api-key")
    monkeypatch.setenv("GUIDELINES_DIR", "/nonexistent/guidelines")


@pytest.fixture
def fake_gemini(scripted_reviewer):
    """Replace the Gemini reviewer with a scripted one."""
    reviewer = scripted_reviewer(SECRET_RESPONSE)
    with patch('diff_reviewer.gemini_client.GeminiReviewer', return_value=reviewer):
        yield reviewer


class TestParseArgs:
    """Test argument parsing."""

    def test_defaults(self):
        args = cli.parse_args([])
        assert args.diff_file is None
        assert args.event_path is None
        assert args.json is False

    def test_sources_are_exclusive(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--diff-file", "a.diff", "--event-path", "event.json"])

    def test_invalid_granularity(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--granularity", "line"])


class TestReadDiff:
    """Test diff input sources."""

    def test_reads_file(self, tmp_path):
        diff_file = tmp_path / "change.diff"
        diff_file.write_text("diff text", encoding="utf-8")
        assert cli.read_diff(str(diff_file)) == "diff text"

    def test_reads_git_diff_variable(self, monkeypatch):
        monkeypatch.setenv("GIT_DIFF", "from env")
        assert cli.read_diff(None) == "from env"

    def test_reads_stdin(self, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("from stdin"))
        assert cli.read_diff("-") == "from stdin"


class TestMain:
    """Test the main entry point."""

    def test_missing_api_key(self, capsys):
        assert cli.main([]) == cli.EXIT_ERROR
        assert "Configuration error" in capsys.readouterr().err

    def test_reviews_diff_file(self, gemini_env, fake_gemini, tmp_path, secret_diff_content, capsys):
        diff_file = tmp_path / "change.diff"
        diff_file.write_text(secret_diff_content, encoding="utf-8")

        exit_code = cli.main(["--diff-file", str(diff_file)])

        assert exit_code == cli.EXIT_OK
        out = capsys.readouterr().out
        assert "## AI Code Review" in out
        assert "src/auth.ts:2 (RIGHT)" in out
        assert len(fake_gemini.requests) == 1

    def test_json_output(self, gemini_env, fake_gemini, monkeypatch, secret_diff_content, capsys):
        monkeypatch.setenv("GIT_DIFF", secret_diff_content)

        assert cli.main(["--json"]) == cli.EXIT_OK

        data = json.loads(capsys.readouterr().out)
        assert data["recommendation"] == "request_changes"
        assert data["comments"][0]["path"] == "src/auth.ts"

    def test_exclude_override(self, gemini_env, fake_gemini, monkeypatch, secret_diff_content, capsys):
        monkeypatch.setenv("GIT_DIFF", secret_diff_content)

        assert cli.main(["--exclude", "**/*.ts", "--json"]) == cli.EXIT_OK

        data = json.loads(capsys.readouterr().out)
        assert data["units"] == []
        assert fake_gemini.requests == []

    def test_malformed_diff(self, gemini_env, fake_gemini, monkeypatch):
        monkeypatch.setenv("GIT_DIFF", "--- a/x\n+++ b/x\n@@ broken @@\n")
        assert cli.main([]) == cli.EXIT_ERROR

    def test_missing_diff_file(self, gemini_env, fake_gemini, tmp_path):
        assert cli.main(["--diff-file", str(tmp_path / "missing.diff")]) == cli.EXIT_ERROR

    def test_event_mode_requires_github_token(self, gemini_env, capsys):
        assert cli.main(["--event-path", "event.json"]) == cli.EXIT_ERROR
        assert "GITHUB_TOKEN" in capsys.readouterr().err

    def test_partial_posting_exit_code(self, gemini_env, fake_gemini, monkeypatch, secret_diff_content):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_" + "a" * 36)

        async def fake_review_pull_request(self, event_path):
            outcome = self.review_diff(secret_diff_content)
            failures = [CommentFailure(comment, "rejected") for comment in outcome.comments]
            outcome.posting = PostingReport(posted=[], failures=failures, summary_posted=True)
            return outcome

        with patch('diff_reviewer.cli.CodeReviewer.review_pull_request', fake_review_pull_request):
            assert cli.main(["--event-path", "event.json"]) == cli.EXIT_PARTIAL


class TestSetupLogging:
    """Test logging configuration."""

    def test_sets_root_level(self):
        cli.setup_logging(LoggingConfig(level=LogLevel.DEBUG))

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_file_logging(self, tmp_path):
        log_file = tmp_path / "review.log"

        cli.setup_logging(LoggingConfig(enable_file_logging=True, log_file_path=str(log_file)))

        handlers = [h for h in logging.getLogger().handlers if getattr(h, "baseFilename", None) == str(log_file)]
        assert len(handlers) == 1
        logging.getLogger().removeHandler(handlers[0])
        handlers[0].close()
