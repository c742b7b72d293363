"""
Review guidelines for the Diff Reviewer.

Guidance documents live in a store grouped by category (``python``,
``security``, ...). The provider selects the categories relevant to a
language, concatenates their documents and caches the result for the life of
the process.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple


logger = logging.getLogger(__name__)

ALWAYS_APPLICABLE_CATEGORIES = ("security", "performance")

LANGUAGE_ALIASES = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "py": "python",
}

GUIDELINES_HEADER = "# CODE REVIEW GUIDELINES"
SECTION_SEPARATOR = "\n\n---\n\n"

FALLBACK_GUIDELINES = """# Default Guidelines

- Follow clean code principles
- Use meaningful variable names
- Add proper error handling
- Include unit tests for new features"""


class GuidanceUnavailableError(Exception):
    """Raised by a guidance store that cannot be read."""
    pass


class GuidanceStore(Protocol):
    """Source of categorized guidance documents."""

    def list_categories(self) -> List[str]:
        ...

    def read_documents(self, category: str) -> List[str]:
        ...


class DirectoryGuidanceStore:
    """Guidance store backed by ``<directory>/<category>/*.md`` files."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def list_categories(self) -> List[str]:
        try:
            entries = sorted(os.scandir(self.directory), key=lambda entry: entry.name)
        except OSError as e:
            raise GuidanceUnavailableError(
                f"Cannot read guidelines directory {self.directory}: {e}"
            ) from e
        return [entry.name for entry in entries if entry.is_dir()]

    def read_documents(self, category: str) -> List[str]:
        category_path = self.directory / category
        try:
            files = sorted(
                path for path in category_path.iterdir()
                if path.suffix == ".md" and path.is_file()
            )
        except OSError as e:
            raise GuidanceUnavailableError(
                f"Cannot read guidelines category {category_path}: {e}"
            ) from e

        documents = []
        for path in files:
            try:
                documents.append(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Failed to read guideline file {path}: {e}")
        return documents


class GuidelinesCache:
    """Process-scoped cache of formatted guidance text."""

    def __init__(self):
        self._entries: Dict[str, str] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[str]:
        value = self._entries.get(key)
        if value is None:
            self._misses += 1
        else:
            self._hits += 1
        return value

    def put(self, key: str, value: str) -> None:
        # Same key always computes the same value, so overwriting is harmless.
        self._entries[key] = value

    def invalidate(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get_statistics(self) -> Dict[str, int]:
        return {'entries': len(self._entries), 'hits': self._hits, 'misses': self._misses}


def category_matches_language(category: str, language: str) -> bool:
    """Check whether a guidance category applies to a language query."""
    category = category.lower()
    language = language.lower()
    return (
        category == language
        or category in ALWAYS_APPLICABLE_CATEGORIES
        or LANGUAGE_ALIASES.get(language) == category
    )


def format_guidelines(sections: List[Tuple[str, str]]) -> str:
    """Render ``(category, document)`` pairs under a single heading."""
    if not sections:
        return ""
    rendered = [f"## {category.upper()}\n\n{document.strip()}" for category, document in sections]
    return f"{GUIDELINES_HEADER}\n\n" + SECTION_SEPARATOR.join(rendered)


class GuidelinesProvider:
    """Selects and caches guidance text by language or category."""

    def __init__(self, store: GuidanceStore, cache: Optional[GuidelinesCache] = None):
        self.store = store
        self.cache = cache if cache is not None else GuidelinesCache()
        self._fallback_count = 0

    def get_guidelines_for_language(self, language: str) -> str:
        """Return guidance for a language (or file extension) query.

        Args:
            language: Canonical language name (``python``) or alias (``py``)

        Returns:
            Formatted guidance, ``""`` when no category matches, or the fixed
            fallback text when the store cannot be read
        """
        key = (language or "").lower()
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Using cached guidelines for '{key}'")
            return cached

        try:
            categories = [
                category for category in self.store.list_categories()
                if category_matches_language(category, key)
            ]
            text = self._collect(categories)
        except GuidanceUnavailableError as e:
            return self._fallback(e)

        logger.debug(f"Loaded guidelines for '{key}' from categories {categories}")
        self.cache.put(key, text)
        return text

    def get_guidelines_by_category(self, category: str) -> str:
        key = f"category:{(category or '').lower()}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            categories = [
                name for name in self.store.list_categories()
                if name.lower() == category.lower()
            ]
            text = self._collect(categories)
        except GuidanceUnavailableError as e:
            return self._fallback(e)

        self.cache.put(key, text)
        return text

    def invalidate(self) -> None:
        """Drop every cached entry so the next query re-scans the store."""
        logger.debug("Clearing guidelines cache")
        self.cache.invalidate()

    def _collect(self, categories: List[str]) -> str:
        sections = []
        for category in categories:
            for document in self.store.read_documents(category):
                if document.strip():
                    sections.append((category, document))
        return format_guidelines(sections)

    def _fallback(self, error: Exception) -> str:
        self._fallback_count += 1
        logger.warning(f"Guidelines unavailable, using default guidelines: {error}")
        return FALLBACK_GUIDELINES

    def get_statistics(self) -> Dict[str, int]:
        stats = self.cache.get_statistics()
        stats['fallbacks'] = self._fallback_count
        return stats
