"""
Diff parser for the Diff Reviewer.

This module turns unified-diff text into ordered ``DiffUnit`` objects. Each
hunk line is mapped to the file line number a review comment can be anchored
on: the new-file counter for added and context lines, the old-file counter
for removed lines.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

from .models import Chunk, DiffUnit, LineRef, LineType


logger = logging.getLogger(__name__)

DEV_NULL = "/dev/null"

HUNK_HEADER_PATTERN = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$")
GIT_HEADER_PATTERN = re.compile(r"^diff --git a/(.+?) b/(.+)$")


class DiffParsingError(Exception):
    """Raised when the diff text is structurally malformed."""
    pass


@dataclass
class _HunkBuilder:
    """Mutable hunk state used by the manual parser."""
    header: str
    source_start: int
    source_length: int
    target_start: int
    target_length: int
    lines: List[LineRef] = field(default_factory=list)
    raw_lines: List[str] = field(default_factory=list)
    remaining_source: int = 0
    remaining_target: int = 0

    def __post_init__(self):
        self.remaining_source = self.source_length
        self.remaining_target = self.target_length
        self._next_source = self.source_start
        self._next_target = self.target_start

    def expects_more(self) -> bool:
        return self.remaining_source > 0 or self.remaining_target > 0

    def add_line(self, physical_line_number: int, raw_line: str) -> bool:
        """Consume one body line; returns False when it is not a hunk line."""
        marker = raw_line[:1]
        content = raw_line[1:]
        if marker == "+":
            line = LineRef(physical_line_number, self._next_target, content, LineType.ADDED)
            self._next_target += 1
            self.remaining_target -= 1
        elif marker == "-":
            line = LineRef(physical_line_number, self._next_source, content, LineType.REMOVED)
            self._next_source += 1
            self.remaining_source -= 1
        elif marker in (" ", ""):
            line = LineRef(physical_line_number, self._next_target, content, LineType.CONTEXT)
            self._next_source += 1
            self._next_target += 1
            self.remaining_source -= 1
            self.remaining_target -= 1
        else:
            return False

        self.lines.append(line)
        self.raw_lines.append(raw_line)
        return True

    def build(self) -> Chunk:
        return Chunk(
            raw_text="\n".join([self.header] + self.raw_lines) + "\n",
            lines=tuple(self.lines),
            source_start=self.source_start,
            source_length=self.source_length,
            target_start=self.target_start,
            target_length=self.target_length,
            header=self.header,
        )


@dataclass
class _FileBuilder:
    """Mutable file state used by the manual parser."""
    source_path: Optional[str] = None
    target_path: Optional[str] = None
    is_new_file: bool = False
    is_deleted_file: bool = False
    is_binary: bool = False
    saw_file_headers: bool = False
    hunks: List[_HunkBuilder] = field(default_factory=list)

    def build(self) -> Optional[DiffUnit]:
        source = self.source_path
        target = self.target_path
        if not source and not target:
            return None

        is_deletion = self.is_deleted_file or target == DEV_NULL
        is_new_file = self.is_new_file or source == DEV_NULL
        path = source if (not target or target == DEV_NULL) else target
        old_path = source if source and source not in (DEV_NULL, path) else None

        return DiffUnit(
            file_path=path,
            chunks=tuple(hunk.build() for hunk in self.hunks),
            is_deletion=is_deletion,
            old_path=old_path,
            is_new_file=is_new_file,
            is_binary=self.is_binary,
        )


def _diff_lines(diff_text: str) -> List[str]:
    """Split on newlines only, the way unidiff reads its input."""
    lines = diff_text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _strip_path_prefix(path: Optional[str]) -> Optional[str]:
    """Drop git's ``a/`` / ``b/`` prefixes and trailing timestamps."""
    if path is None:
        return None
    path = path.split("\t", 1)[0].strip()
    if path == DEV_NULL:
        return path
    if path.startswith(("a/", "b/")):
        return path[2:]
    return path


class DiffParser:
    """Parses unified diffs into ``DiffUnit`` objects."""

    def __init__(self):
        self._stats: Dict[str, int] = {}
        self.reset_statistics()

    def parse_diff(self, diff_text: str) -> List[DiffUnit]:
        """Parse unified-diff text into diff units, preserving file order.

        Args:
            diff_text: Raw unified diff

        Returns:
            One ``DiffUnit`` per file; an empty list for empty input

        Raises:
            DiffParsingError: If a hunk header is malformed
        """
        if not isinstance(diff_text, str) or not diff_text.strip():
            logger.info("Empty diff provided; nothing to parse")
            return []

        self._validate_hunk_headers(diff_text)

        try:
            units = self._parse_with_unidiff(diff_text)
        except UnidiffParseError as e:
            logger.warning(f"unidiff could not parse the diff ({e}); using manual parser")
            units = self._parse_manually(diff_text)

        self._record_statistics(units)
        logger.info(f"Parsed {len(units)} files from diff")
        return units

    def _validate_hunk_headers(self, diff_text: str) -> None:
        for line_number, line in enumerate(_diff_lines(diff_text), start=1):
            if line.startswith("@@") and self._parse_hunk_header(line) is None:
                logger.error(f"Malformed hunk header at diff line {line_number}: {line[:80]}")
                raise DiffParsingError(f"Malformed hunk header at line {line_number}: {line}")

    @staticmethod
    def _parse_hunk_header(header: str) -> Optional[Tuple[int, int, int, int, str]]:
        """Parse ``@@ -a[,b] +c[,d] @@`` into its numbers; None if invalid."""
        match = HUNK_HEADER_PATTERN.match(header.rstrip("\r\n"))
        if not match:
            return None
        source_start = int(match.group(1))
        source_length = int(match.group(2)) if match.group(2) is not None else 1
        target_start = int(match.group(3))
        target_length = int(match.group(4)) if match.group(4) is not None else 1
        return source_start, source_length, target_start, target_length, match.group(5).strip()

    def _parse_with_unidiff(self, diff_text: str) -> List[DiffUnit]:
        patch_set = PatchSet(diff_text)
        units = []
        for patched_file in patch_set:
            unit = self._convert_patched_file(patched_file)
            if unit is not None:
                units.append(unit)
        return units

    def _convert_patched_file(self, patched_file: Any) -> Optional[DiffUnit]:
        source = _strip_path_prefix(patched_file.source_file)
        target = _strip_path_prefix(patched_file.target_file)
        if not source and not target:
            logger.warning("Skipping diff entry without source or target path")
            return None

        is_deletion = bool(patched_file.is_removed_file) or target == DEV_NULL
        is_new_file = bool(patched_file.is_added_file) or source == DEV_NULL
        path = source if (not target or target == DEV_NULL) else target
        old_path = source if source and source not in (DEV_NULL, path) else None

        chunks = tuple(self._convert_hunk(hunk) for hunk in patched_file)
        return DiffUnit(
            file_path=path,
            chunks=chunks,
            is_deletion=is_deletion,
            old_path=old_path,
            is_new_file=is_new_file,
            is_binary=bool(getattr(patched_file, "is_binary_file", False)),
        )

    def _convert_hunk(self, hunk: Any) -> Chunk:
        lines = []
        for line in hunk:
            if line.is_added:
                line_type, number = LineType.ADDED, line.target_line_no
            elif line.is_removed:
                line_type, number = LineType.REMOVED, line.source_line_no
            elif line.is_context:
                line_type, number = LineType.CONTEXT, line.target_line_no
            else:
                # "\ No newline at end of file"
                continue
            lines.append(LineRef(
                physical_line_number=line.diff_line_no,
                source_line_number=number,
                content=line.value.rstrip("\r\n"),
                line_type=line_type,
            ))

        header = (
            f"@@ -{hunk.source_start},{hunk.source_length} "
            f"+{hunk.target_start},{hunk.target_length} @@"
        )
        if hunk.section_header:
            header += f" {hunk.section_header}"

        return Chunk(
            raw_text=str(hunk),
            lines=tuple(lines),
            source_start=hunk.source_start,
            source_length=hunk.source_length,
            target_start=hunk.target_start,
            target_length=hunk.target_length,
            header=header,
        )

    def _parse_manually(self, diff_text: str) -> List[DiffUnit]:
        """Line-by-line parser used when unidiff rejects the input."""
        files: List[_FileBuilder] = []
        current: Optional[_FileBuilder] = None
        hunk: Optional[_HunkBuilder] = None

        for physical_line_number, raw_line in enumerate(_diff_lines(diff_text), start=1):
            if hunk is not None and hunk.expects_more():
                if raw_line.startswith("\\"):
                    continue
                if hunk.add_line(physical_line_number, raw_line):
                    continue
            hunk = None

            if raw_line.startswith("diff --git "):
                current = self._parse_file_header(raw_line)
                files.append(current)
            elif raw_line.startswith("--- "):
                if current is None or current.hunks or current.saw_file_headers:
                    current = _FileBuilder()
                    files.append(current)
                current.source_path = _strip_path_prefix(raw_line[4:])
            elif raw_line.startswith("+++ "):
                if current is None:
                    current = _FileBuilder()
                    files.append(current)
                current.target_path = _strip_path_prefix(raw_line[4:])
                current.saw_file_headers = True
            elif raw_line.startswith("@@"):
                if current is None:
                    raise DiffParsingError(f"Hunk found before any file header at line {physical_line_number}")
                parsed = self._parse_hunk_header(raw_line)
                if parsed is None:
                    raise DiffParsingError(f"Malformed hunk header at line {physical_line_number}: {raw_line}")
                source_start, source_length, target_start, target_length, _ = parsed
                hunk = _HunkBuilder(raw_line, source_start, source_length, target_start, target_length)
                current.hunks.append(hunk)
            elif current is not None:
                self._apply_extended_header(current, raw_line)

        units = []
        for builder in files:
            unit = builder.build()
            if unit is not None:
                units.append(unit)
        return units

    @staticmethod
    def _parse_file_header(header_line: str) -> _FileBuilder:
        match = GIT_HEADER_PATTERN.match(header_line)
        if not match:
            raise DiffParsingError(f"Invalid file header: {header_line}")
        return _FileBuilder(source_path=match.group(1), target_path=match.group(2))

    @staticmethod
    def _apply_extended_header(current: _FileBuilder, line: str) -> None:
        if line.startswith("new file mode"):
            current.is_new_file = True
            current.source_path = DEV_NULL
        elif line.startswith("deleted file mode"):
            current.is_deleted_file = True
            current.target_path = DEV_NULL
        elif line.startswith("rename from "):
            current.source_path = line[len("rename from "):].strip()
        elif line.startswith("rename to "):
            current.target_path = line[len("rename to "):].strip()
        elif line.startswith("Binary files ") or line.startswith("GIT binary patch"):
            current.is_binary = True

    def _record_statistics(self, units: List[DiffUnit]) -> None:
        for unit in units:
            self._stats["parsed_files"] += 1
            self._stats["total_hunks"] += len(unit.chunks)
            self._stats["total_additions"] += unit.total_additions
            self._stats["total_deletions"] += unit.total_deletions
            if unit.is_deletion:
                self._stats["deleted_files"] += 1
            if unit.is_binary:
                self._stats["binary_files"] += 1

    def get_parsing_statistics(self) -> Dict[str, int]:
        """Get parsing statistics accumulated since the last reset."""
        return dict(self._stats)

    def reset_statistics(self) -> None:
        """Reset parsing statistics."""
        self._stats = {
            "parsed_files": 0,
            "deleted_files": 0,
            "binary_files": 0,
            "total_hunks": 0,
            "total_additions": 0,
            "total_deletions": 0,
        }
