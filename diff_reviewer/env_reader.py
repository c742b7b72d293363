"""
Environment variable reading utilities for the Diff Reviewer.

Every reader also looks at the GitHub Actions spelling of a key
(``INPUT_<KEY>``) after the explicit fallback keys.
"""

import os
from enum import Enum
from typing import List, Type, TypeVar


E = TypeVar('E', bound=Enum)


def _candidate_keys(key: str, fallback_keys) -> List[str]:
    keys = [key, *fallback_keys]
    action_key = f"INPUT_{key}"
    if not key.startswith("INPUT_") and action_key not in keys:
        keys.append(action_key)
    return keys


def get_env_str(key: str, default: str = "", *fallback_keys: str) -> str:
    """Get string value from environment with fallback keys.

    Args:
        key: Primary environment variable key
        default: Default value if not found
        *fallback_keys: Additional keys to try if primary is not found

    Returns:
        The environment variable value or default
    """
    for candidate in _candidate_keys(key, fallback_keys):
        value = os.environ.get(candidate, "")
        if value:
            return value
    return default


def get_env_int(key: str, default: int, *fallback_keys: str) -> int:
    """Get integer value from environment; unparsable values give the default."""
    value = get_env_str(key, "", *fallback_keys)
    if value:
        try:
            return int(value.strip())
        except ValueError:
            pass
    return default


def get_env_float(key: str, default: float, *fallback_keys: str) -> float:
    value = get_env_str(key, "", *fallback_keys)
    if value:
        try:
            return float(value.strip())
        except ValueError:
            pass
    return default


def get_env_bool(key: str, default: bool, *fallback_keys: str) -> bool:
    """Get boolean value from environment with fallback keys.

    Recognizes 'true', 'yes', '1' as True (case-insensitive).
    """
    value = get_env_str(key, "", *fallback_keys)
    if value:
        return value.strip().lower() in ('true', 'yes', '1')
    return default


def get_env_list(key: str, separator: str = ",", *fallback_keys: str) -> List[str]:
    """Get list of strings from environment with fallback keys."""
    value = get_env_str(key, "", *fallback_keys)
    if value:
        return [item.strip() for item in value.split(separator) if item.strip()]
    return []


def get_env_enum(key: str, enum_class: Type[E], default: E, *fallback_keys: str) -> E:
    """Get enum value from environment with fallback keys.

    Args:
        key: Primary environment variable key
        enum_class: The enum class to convert to
        default: Default enum value if not found or conversion fails
        *fallback_keys: Additional keys to try if primary is not found

    Returns:
        The environment variable value as enum or default
    """
    value = get_env_str(key, "", *fallback_keys)
    if value:
        value = value.strip()
        for candidate in (value, value.lower(), value.upper()):
            try:
                return enum_class(candidate)
            except ValueError:
                continue
    return default
