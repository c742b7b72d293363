"""
Comprehensive tests for configuration management.
"""

import pytest

from diff_reviewer.config import (
    DEFAULT_EXCLUDE_PATTERNS, Config, GeminiConfig, GitHubConfig, LogLevel, ReviewConfig,
)
from diff_reviewer.models import ReviewGranularity, Severity
from diff_reviewer.prompts import ReviewMode


VALID_GITHUB_TOKEN = "ghp_" + "a" * 36


class TestGitHubConfig:
    """Test cases for GitHubConfig."""

    def test_valid_config(self):
        config = GitHubConfig(token=VALID_GITHUB_TOKEN)
        assert config.api_base_url == "https://api.github.com"
        assert config.timeout == 30

    def test_empty_token(self):
        with pytest.raises(ValueError, match="GitHub token is required"):
            GitHubConfig(token="")

    def test_invalid_token_format(self):
        with pytest.raises(ValueError, match="Invalid GitHub token format"):
            GitHubConfig(token="short")

    def test_invalid_timeout(self):
        with pytest.raises(ValueError):
            GitHubConfig(token=VALID_GITHUB_TOKEN, timeout=0)


class TestGeminiConfig:
    """Test cases for GeminiConfig."""

    def test_defaults(self):
        config = GeminiConfig(api_key="test-gemini-api-key")
        assert config.model_name == "gemini-2.5-flash"
        assert config.max_output_tokens == 8192

    def test_invalid_api_key(self):
        with pytest.raises(ValueError, match="Invalid Gemini API key format"):
            GeminiConfig(api_key="short")

    def test_invalid_temperature(self):
        with pytest.raises(ValueError, match="Temperature"):
            GeminiConfig(api_key="test-gemini-api-key", temperature=3.0)

    def test_invalid_top_p(self):
        with pytest.raises(ValueError, match="Top_p"):
            GeminiConfig(api_key="test-gemini-api-key", top_p=1.5)


class TestReviewConfig:
    """Test cases for ReviewConfig."""

    def test_default_exclude_patterns(self):
        assert ReviewConfig().exclude_patterns == DEFAULT_EXCLUDE_PATTERNS

    def test_custom_patterns_replace_defaults(self):
        assert ReviewConfig(exclude_patterns=["dist/**"]).exclude_patterns == ["dist/**"]

    def test_defaults_are_not_shared(self):
        first = ReviewConfig()
        first.exclude_patterns.append("*.txt")
        assert "*.txt" not in ReviewConfig().exclude_patterns

    def test_negative_limits_rejected(self):
        with pytest.raises(ValueError):
            ReviewConfig(max_comments_total=-1)
        with pytest.raises(ValueError):
            ReviewConfig(review_timeout=-1)


class TestConfigFromEnvironment:
    """Test loading configuration from environment variables."""

    def test_requires_gemini_key(self):
        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            Config.from_environment()

    def test_minimal_environment(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-api-key")

        config = Config.from_environment()

        assert config.github is None
        assert config.review.granularity == ReviewGranularity.FILE
        assert config.review.review_mode == ReviewMode.STANDARD
        assert config.review.exclude_patterns == DEFAULT_EXCLUDE_PATTERNS
        assert config.policy.request_changes_below == 60
        assert config.logging.level == LogLevel.INFO

    def test_requires_github_when_asked(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-api-key")
        with pytest.raises(ValueError, match="GITHUB_TOKEN"):
            Config.from_environment(require_github=True)

    def test_full_environment(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-api-key")
        monkeypatch.setenv("GITHUB_TOKEN", VALID_GITHUB_TOKEN)
        monkeypatch.setenv("GITHUB_API_URL", "https://github.example.com/api/v3")
        monkeypatch.setenv("GEMINI_MODEL", "gemini-2.5-pro")
        monkeypatch.setenv("GEMINI_TEMPERATURE", "0.4")
        monkeypatch.setenv("EXCLUDE", "dist/**, *.min.js")
        monkeypatch.setenv("REVIEW_GRANULARITY", "CHUNK")
        monkeypatch.setenv("REVIEW_MODE", "strict")
        monkeypatch.setenv("REVIEW_MIN_SEVERITY", "High")
        monkeypatch.setenv("MAX_COMMENTS_TOTAL", "10")
        monkeypatch.setenv("REVIEW_TIMEOUT", "120")
        monkeypatch.setenv("REVIEW_REQUEST_CHANGES_BELOW", "50")
        monkeypatch.setenv("REVIEW_APPROVE_AT", "90")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("SYSTEM_PROMPT", "Check SQL")

        config = Config.from_environment()

        assert config.github.api_base_url == "https://github.example.com/api/v3"
        assert config.gemini.model_name == "gemini-2.5-pro"
        assert config.gemini.temperature == 0.4
        assert config.review.exclude_patterns == ["dist/**", "*.min.js"]
        assert config.review.granularity == ReviewGranularity.CHUNK
        assert config.review.review_mode == ReviewMode.STRICT
        assert config.review.min_severity == Severity.HIGH
        assert config.review.max_comments_total == 10
        assert config.review.review_timeout == 120.0
        assert config.policy.request_changes_below == 50
        assert config.policy.approve_at_or_above == 90
        assert config.logging.level == LogLevel.DEBUG
        assert "Check SQL" in config.get_review_prompt_template()

    def test_action_input_spelling(self, monkeypatch):
        """GitHub Actions exposes inputs as INPUT_<NAME>."""
        monkeypatch.setenv("INPUT_GEMINI_API_KEY", "test-gemini-api-key")
        monkeypatch.setenv("INPUT_EXCLUDE", "*.txt")

        config = Config.from_environment()

        assert config.review.exclude_patterns == ["*.txt"]

    def test_invalid_min_severity(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-api-key")
        monkeypatch.setenv("REVIEW_MIN_SEVERITY", "urgent")
        with pytest.raises(ValueError, match="REVIEW_MIN_SEVERITY"):
            Config.from_environment()

    def test_invalid_policy(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-api-key")
        monkeypatch.setenv("REVIEW_REQUEST_CHANGES_BELOW", "95")
        with pytest.raises(ValueError):
            Config.from_environment()

    def test_unknown_enum_values_use_defaults(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-api-key")
        monkeypatch.setenv("REVIEW_GRANULARITY", "line")
        monkeypatch.setenv("REVIEW_MODE", "paranoid")

        config = Config.from_environment()

        assert config.review.granularity == ReviewGranularity.FILE
        assert config.review.review_mode == ReviewMode.STANDARD


class TestConfigToDict:
    """Test configuration serialization."""

    def test_secrets_are_omitted(self):
        config = Config(
            gemini=GeminiConfig(api_key="test-gemini-api-key"),
            github=GitHubConfig(token=VALID_GITHUB_TOKEN),
        )

        data = config.to_dict()
        rendered = repr(data)

        assert "test-gemini-api-key" not in rendered
        assert VALID_GITHUB_TOKEN not in rendered
        assert data["github"]["enabled"] is True
        assert data["review"]["granularity"] == "file"
        assert data["policy"]["approve_at_or_above"] == 80
