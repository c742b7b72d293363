"""
Validation utilities for the Diff Reviewer.

Small checks shared by the configuration dataclasses and the aggregation
policy.
"""


def validate_required_string(value: str, field_name: str) -> None:
    """Validate that a required string field is not empty.

    Args:
        value: The string value to validate
        field_name: Name of the field for error messages

    Raises:
        ValueError: If the value is empty
    """
    if not value or not str(value).strip():
        raise ValueError(f"{field_name} is required")


def validate_positive_int(value: int, field_name: str) -> None:
    """Validate that an integer value is positive.

    Raises:
        ValueError: If the value is not positive
    """
    if value <= 0:
        raise ValueError(f"{field_name} must be positive")


def validate_non_negative_int(value: int, field_name: str) -> None:
    if value < 0:
        raise ValueError(f"{field_name} must not be negative")


def validate_range(value: float, min_val: float, max_val: float, field_name: str) -> None:
    """Validate that a value is within a specified range.

    Args:
        value: The value to validate
        min_val: Minimum allowed value (inclusive)
        max_val: Maximum allowed value (inclusive)
        field_name: Name of the field for error messages

    Raises:
        ValueError: If the value is outside the range
    """
    if not min_val <= value <= max_val:
        raise ValueError(f"{field_name} must be between {min_val} and {max_val}")


def validate_github_token_format(token: str) -> bool:
    """Check that a GitHub token looks like a classic or prefixed token."""
    if not token or not isinstance(token, str):
        return False
    return len(token) == 40 or token.startswith(('ghp_', 'ghs_', 'gho_', 'ghu_', 'github_pat_'))


def validate_gemini_api_key_format(api_key: str) -> bool:
    if not api_key or not isinstance(api_key, str):
        return False
    return len(api_key) > 10
