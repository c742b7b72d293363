"""
Path filtering for the Diff Reviewer.

Removes deleted files and files whose target path matches an exclusion glob.
"""

import logging
from typing import Iterable, List, Optional, Union

from .models import DiffUnit
from .utils import matches_any_pattern, parse_patterns


logger = logging.getLogger(__name__)


class PathFilter:
    """Pure, order-preserving filter over parsed diff units."""

    def __init__(self, exclude_patterns: Union[str, Iterable[str], None] = None):
        self.exclude_patterns: List[str] = parse_patterns(exclude_patterns)
        self._excluded_count = 0
        self._deleted_count = 0

    def is_excluded(self, file_path: str) -> bool:
        return matches_any_pattern(file_path, self.exclude_patterns)

    def filter_units(
        self,
        units: List[DiffUnit],
        exclude_patterns: Optional[Union[str, Iterable[str]]] = None,
    ) -> List[DiffUnit]:
        """Drop deletions and excluded paths, keeping the input order.

        Args:
            units: Parsed diff units
            exclude_patterns: Overrides the patterns given at construction

        Returns:
            The surviving units in their original order
        """
        patterns = (
            parse_patterns(exclude_patterns)
            if exclude_patterns is not None
            else self.exclude_patterns
        )

        kept = []
        for unit in units:
            if unit.is_deletion:
                logger.debug(f"Skipping deleted file: {unit.file_path}")
                self._deleted_count += 1
                continue
            if matches_any_pattern(unit.file_path, patterns):
                logger.debug(f"Excluding file by pattern: {unit.file_path}")
                self._excluded_count += 1
                continue
            kept.append(unit)

        logger.info(f"Path filter kept {len(kept)} of {len(units)} files")
        return kept

    def get_statistics(self):
        return {
            'excluded_by_pattern': self._excluded_count,
            'deleted_files': self._deleted_count,
            'patterns': list(self.exclude_patterns),
        }
