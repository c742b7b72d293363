"""
Configuration management for the Diff Reviewer.

This module handles all configuration aspects including environment variables,
validation, and default settings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .aggregator import AggregationPolicy
from .env_reader import get_env_bool, get_env_enum, get_env_float, get_env_int, get_env_list, get_env_str
from .models import ReviewGranularity, Severity
from .prompts import ReviewMode, get_review_prompt_template as get_prompt_template
from .validators import (
    validate_gemini_api_key_format, validate_github_token_format,
    validate_non_negative_int, validate_positive_int, validate_range,
    validate_required_string
)


DEFAULT_EXCLUDE_PATTERNS = ["**/*.md", "**/*.json", "**/*.lock"]


class LogLevel(Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass
class GitHubConfig:
    """Configuration for GitHub integration."""
    token: str
    api_base_url: str = "https://api.github.com"
    timeout: int = 30

    def __post_init__(self):
        """Validate GitHub configuration."""
        validate_required_string(self.token, "GitHub token")
        if not validate_github_token_format(self.token):
            raise ValueError("Invalid GitHub token format")
        validate_positive_int(self.timeout, "GitHub timeout")


@dataclass
class GeminiConfig:
    """Configuration for Gemini AI integration."""
    api_key: str
    model_name: str = "gemini-2.5-flash"
    max_output_tokens: int = 8192
    temperature: float = 0.1
    top_p: float = 0.9
    max_prompt_length: int = 100000

    def __post_init__(self):
        """Validate Gemini configuration."""
        validate_required_string(self.api_key, "Gemini API key")
        if not validate_gemini_api_key_format(self.api_key):
            raise ValueError("Invalid Gemini API key format")
        validate_range(self.temperature, 0.0, 2.0, "Temperature")
        validate_range(self.top_p, 0.0, 1.0, "Top_p")
        validate_positive_int(self.max_output_tokens, "max_output_tokens")
        validate_positive_int(self.max_prompt_length, "max_prompt_length")


@dataclass
class ReviewConfig:
    """Configuration for code review behavior."""
    exclude_patterns: List[str] = field(default_factory=list)
    granularity: ReviewGranularity = ReviewGranularity.FILE
    review_mode: ReviewMode = ReviewMode.STANDARD
    custom_prompt_template: Optional[str] = None
    guidelines_dir: str = "./guidelines"
    min_severity: Optional[Severity] = None
    # Comment caps; 0 disables the limit.
    max_comments_total: int = 0
    max_comments_per_file: int = 0
    # Whole-run timeout in seconds; 0 disables it.
    review_timeout: float = 0.0

    def __post_init__(self):
        """Validate review configuration."""
        validate_non_negative_int(self.max_comments_total, "max_comments_total")
        validate_non_negative_int(self.max_comments_per_file, "max_comments_per_file")
        if self.review_timeout < 0:
            raise ValueError("review_timeout must not be negative")

        if not self.exclude_patterns:
            self.exclude_patterns = list(DEFAULT_EXCLUDE_PATTERNS)


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: LogLevel = LogLevel.INFO
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
    enable_file_logging: bool = False
    log_file_path: str = "diff_reviewer.log"
    max_log_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 3


@dataclass
class Config:
    """Main configuration class that combines all configuration sections."""
    gemini: GeminiConfig
    github: Optional[GitHubConfig] = None
    review: ReviewConfig = field(default_factory=ReviewConfig)
    policy: AggregationPolicy = field(default_factory=AggregationPolicy)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_environment(cls, require_github: bool = False) -> 'Config':
        """Create configuration from environment variables.

        Args:
            require_github: Fail when ``GITHUB_TOKEN`` is missing

        Raises:
            ValueError: If a required variable is missing or a value is invalid
        """
        gemini_api_key = get_env_str("GEMINI_API_KEY")
        github_token = get_env_str("GITHUB_TOKEN")

        if not gemini_api_key:
            raise ValueError("GEMINI_API_KEY environment variable is required")
        if require_github and not github_token:
            raise ValueError("GITHUB_TOKEN environment variable is required")

        gemini_config = GeminiConfig(
            api_key=gemini_api_key,
            model_name=get_env_str("GEMINI_MODEL", "gemini-2.5-flash"),
            temperature=get_env_float("GEMINI_TEMPERATURE", 0.1),
            top_p=get_env_float("GEMINI_TOP_P", 0.9),
            max_output_tokens=get_env_int("GEMINI_MAX_TOKENS", 8192)
        )

        github_config = None
        if github_token:
            github_config = GitHubConfig(
                token=github_token,
                api_base_url=get_env_str("GITHUB_API_URL", "https://api.github.com"),
                timeout=get_env_int("GITHUB_TIMEOUT", 30)
            )

        min_severity = None
        min_severity_value = get_env_str("REVIEW_MIN_SEVERITY").strip().lower()
        if min_severity_value:
            try:
                min_severity = Severity(min_severity_value)
            except ValueError:
                raise ValueError(f"Invalid REVIEW_MIN_SEVERITY: {min_severity_value}")

        custom_prompt = get_env_str("SYSTEM_PROMPT")
        review_config = ReviewConfig(
            exclude_patterns=get_env_list("EXCLUDE", ","),
            granularity=get_env_enum("REVIEW_GRANULARITY", ReviewGranularity, ReviewGranularity.FILE),
            review_mode=get_env_enum("REVIEW_MODE", ReviewMode, ReviewMode.STANDARD),
            custom_prompt_template=custom_prompt if custom_prompt else None,
            guidelines_dir=get_env_str("GUIDELINES_DIR", "./guidelines"),
            min_severity=min_severity,
            max_comments_total=get_env_int("MAX_COMMENTS_TOTAL", 0),
            max_comments_per_file=get_env_int("MAX_COMMENTS_PER_FILE", 0),
            review_timeout=get_env_float("REVIEW_TIMEOUT", 0.0)
        )

        policy = AggregationPolicy(
            request_changes_below=get_env_int("REVIEW_REQUEST_CHANGES_BELOW", 60),
            approve_at_or_above=get_env_int("REVIEW_APPROVE_AT", 80),
            max_high_findings=get_env_int("REVIEW_MAX_HIGH_FINDINGS", 3)
        )

        logging_config = LoggingConfig(
            level=get_env_enum("LOG_LEVEL", LogLevel, LogLevel.INFO),
            enable_file_logging=get_env_bool("ENABLE_FILE_LOGGING", False)
        )

        return cls(
            gemini=gemini_config,
            github=github_config,
            review=review_config,
            policy=policy,
            logging=logging_config
        )

    def get_review_prompt_template(self) -> str:
        """Get the prompt template based on review mode and custom instructions."""
        return get_prompt_template(
            self.review.review_mode,
            self.review.custom_prompt_template or ""
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary (secrets omitted)."""
        return {
            "github": {
                "enabled": self.github is not None,
                "api_base_url": self.github.api_base_url if self.github else None,
            },
            "gemini": {
                "model_name": self.gemini.model_name,
                "temperature": self.gemini.temperature,
                "top_p": self.gemini.top_p,
                "max_output_tokens": self.gemini.max_output_tokens,
            },
            "review": {
                "exclude_patterns": self.review.exclude_patterns,
                "granularity": self.review.granularity.value,
                "review_mode": self.review.review_mode.value,
                "guidelines_dir": self.review.guidelines_dir,
                "min_severity": self.review.min_severity.value if self.review.min_severity else None,
                "max_comments_total": self.review.max_comments_total,
                "max_comments_per_file": self.review.max_comments_per_file,
                "review_timeout": self.review.review_timeout,
            },
            "policy": {
                "request_changes_below": self.policy.request_changes_below,
                "approve_at_or_above": self.policy.approve_at_or_above,
                "max_high_findings": self.policy.max_high_findings,
            },
            "logging": {
                "level": self.logging.level.value,
                "enable_file_logging": self.logging.enable_file_logging,
            }
        }
