"""
Shared utility functions for the Diff Reviewer.

Path matching, language detection and text sanitizing helpers used by
several pipeline stages.
"""

import fnmatch
import re
from functools import lru_cache
from typing import Iterable, List, Sequence, Set, Tuple, Union


_BRACE_PATTERN = re.compile(r"\{([^{}]*,[^{}]*)\}")


def parse_patterns(patterns: Union[str, Iterable[str], None]) -> List[str]:
    """Normalize a comma-separated string (or a list) of glob patterns.

    Args:
        patterns: ``"**/*.md, **/*.json"`` or ``["**/*.md", "**/*.json"]``

    Returns:
        List of stripped, non-empty patterns in their original order
    """
    if not patterns:
        return []
    if isinstance(patterns, str):
        patterns = patterns.split(",")
    return [pattern.strip() for pattern in patterns if pattern and pattern.strip()]


def expand_braces(pattern: str) -> List[str]:
    """Expand ``{a,b}`` alternatives, innermost first.

    ``src/*.{js,ts}`` becomes ``["src/*.js", "src/*.ts"]``. Braces without a
    comma are kept literally.
    """
    match = _BRACE_PATTERN.search(pattern)
    if not match:
        return [pattern]

    expanded: List[str] = []
    for option in match.group(1).split(","):
        candidate = pattern[:match.start()] + option + pattern[match.end():]
        for item in expand_braces(candidate):
            if item not in expanded:
                expanded.append(item)
    return expanded


def _match_segments(path_parts: Sequence[str], pattern_parts: Sequence[str]) -> bool:
    if not pattern_parts:
        return not path_parts

    head = pattern_parts[0]
    if head == "**":
        # globstar spans zero or more whole segments
        return any(
            _match_segments(path_parts[index:], pattern_parts[1:])
            for index in range(len(path_parts) + 1)
        )

    if not path_parts:
        return False

    return (
        fnmatch.fnmatchcase(path_parts[0], head)
        and _match_segments(path_parts[1:], pattern_parts[1:])
    )


@lru_cache(maxsize=256)
def _split_pattern(pattern: str) -> Tuple[Tuple[str, ...], ...]:
    return tuple(
        tuple(part for part in expanded.strip("/").split("/") if part)
        for expanded in expand_braces(pattern)
    )


def matches_pattern(file_path: str, pattern: str) -> bool:
    """Check if file path matches a glob pattern.

    ``*`` and ``?`` stay within one path segment, ``**`` spans any number of
    segments and ``{a,b}`` lists alternatives. Patterns without a ``/`` are
    matched against the file's basename.

    Args:
        file_path: The file path to check
        pattern: The pattern to match against

    Returns:
        True if the file path matches the pattern, False otherwise
    """
    if not file_path or not pattern:
        return False

    normalized = file_path.replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    path_parts = [part for part in normalized.split("/") if part]

    if "/" not in pattern:
        basename = path_parts[-1] if path_parts else ""
        return any(
            fnmatch.fnmatchcase(basename, expanded)
            for expanded in expand_braces(pattern)
        )

    return any(
        _match_segments(path_parts, pattern_parts)
        for pattern_parts in _split_pattern(pattern)
    )


def matches_any_pattern(file_path: str, patterns: Iterable[str]) -> bool:
    return any(matches_pattern(file_path, pattern) for pattern in patterns)


_LANGUAGE_MAP = {
    'py': 'python',
    'js': 'javascript',
    'ts': 'typescript',
    'jsx': 'javascript',
    'tsx': 'typescript',
    'mjs': 'javascript',
    'cjs': 'javascript',
    'java': 'java',
    'kt': 'kotlin',
    'go': 'go',
    'rs': 'rust',
    'cpp': 'c++',
    'cc': 'c++',
    'cxx': 'c++',
    'c': 'c',
    'h': 'c',
    'hpp': 'c++',
    'cs': 'c#',
    'rb': 'ruby',
    'php': 'php',
    'swift': 'swift',
    'scala': 'scala',
    'sql': 'sql',
    'sh': 'shell',
    'bash': 'shell',
    'yaml': 'yaml',
    'yml': 'yaml',
    'json': 'json',
    'html': 'html',
    'css': 'css',
    'scss': 'scss',
    'vue': 'vue',
    'dart': 'dart',
    'lua': 'lua',
    'ex': 'elixir',
    'exs': 'elixir',
}


def get_file_extension(file_path: str) -> str:
    """Return the lowercased extension of a path without the dot."""
    basename = file_path.replace("\\", "/").rsplit("/", 1)[-1]
    return basename.rsplit('.', 1)[-1].lower() if '.' in basename else ''


def get_file_language(file_path: str) -> str:
    """Detect programming language from file extension.

    Args:
        file_path: The file path to analyze

    Returns:
        The detected language name or 'unknown'
    """
    return _LANGUAGE_MAP.get(get_file_extension(file_path), 'unknown')


def sanitize_text(text: str) -> str:
    """Remove control characters and collapse runaway whitespace."""
    if not text:
        return ""

    text = ''.join(char for char in text if ord(char) >= 32 or char in '\n\t')
    text = re.sub(r'\n{4,}', '\n\n\n', text)
    text = re.sub(r'[ \t]{10,}', ' ' * 8, text)

    return text.strip()


def sanitize_code_content(content: str) -> str:
    """Only null bytes are removed from code so formatting survives."""
    if not content:
        return ""
    return content.replace('\x00', '')


def estimate_tokens(text: str) -> int:
    """Rough token estimate (about four characters per token)."""
    return len(text or "") // 4


def is_binary_file(file_path: str) -> bool:
    """Check if the file is likely binary based on extension."""
    binary_extensions: Set[str] = {
        'png', 'jpg', 'jpeg', 'gif', 'pdf', 'zip',
        'tar', 'gz', 'exe', 'dll', 'so', 'dylib',
        'bin', 'dat', 'pyc', 'pyo', 'class', 'woff', 'woff2',
    }
    return get_file_extension(file_path) in binary_extensions
