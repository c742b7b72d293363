"""
Reviewer response decoding for the Diff Reviewer.

Reviewer output is untrusted text. ``ReviewResponseParser.decode`` always
returns a tagged result: ``STRUCTURED`` when a JSON object could be decoded,
``DEGRADED`` otherwise. It never raises.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .models import Finding, FindingCategory, Severity


logger = logging.getLogger(__name__)

DEFAULT_SCORE = 75

SCORE_PATTERN = re.compile(r"\bscore\b\**\s*[\"']?\s*[:=]\s*\**\s*(\d{1,3})", re.IGNORECASE)
GREEDY_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")

SCORE_KEYS = ("score", "overallScore", "overall_score", "qualityScore")
CAN_MERGE_KEYS = ("canMerge", "can_merge", "mergeable")
SUMMARY_KEYS = ("summary", "generalComments", "general_comments")
FINDING_LIST_KEYS = ("findings", "issues", "inlineComments", "inline_comments", "reviews", "comments")
LINE_KEYS = ("lineNumber", "line", "line_number", "ln", "position")
SEVERITY_KEYS = ("severity", "priority", "level")
CATEGORY_KEYS = ("category", "type", "tag", "area")
MESSAGE_KEYS = ("message", "issue", "explanation", "reviewComment", "comment", "description")
SUGGESTION_KEYS = ("suggestion", "recommendation", "fix", "fixCode")
QUOTE_KEYS = ("quote", "anchorSnippet", "code", "snippet")

SEVERITY_ALIASES = {
    "info": Severity.INFO,
    "low": Severity.LOW,
    "minor": Severity.LOW,
    "medium": Severity.MEDIUM,
    "warning": Severity.MEDIUM,
    "high": Severity.HIGH,
    "major": Severity.HIGH,
    "error": Severity.HIGH,
    "critical": Severity.CRITICAL,
    "blocker": Severity.CRITICAL,
}

CATEGORY_ALIASES = {
    "bug": FindingCategory.BUG,
    "logic": FindingCategory.BUG,
    "correctness": FindingCategory.BUG,
    "security": FindingCategory.SECURITY,
    "performance": FindingCategory.PERFORMANCE,
    "style": FindingCategory.STYLE,
    "maintainability": FindingCategory.MAINTAINABILITY,
    "readability": FindingCategory.MAINTAINABILITY,
}


class ResponseKind(Enum):
    """Outcome tag of a decode attempt."""
    STRUCTURED = "structured"
    DEGRADED = "degraded"


@dataclass
class DecodedResponse:
    """Normalized content of one reviewer response."""
    kind: ResponseKind
    score: int
    can_merge: bool
    summary: str
    findings: List[Finding] = field(default_factory=list)
    skipped_findings: int = 0

    @property
    def is_structured(self) -> bool:
        return self.kind == ResponseKind.STRUCTURED


def _first_present(data: Dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _clamp_score(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    score = int(round(number))
    return max(0, min(100, score))


def _has_review_keys(data: Dict[str, Any]) -> bool:
    return any(key in data for key in SCORE_KEYS + SUMMARY_KEYS + FINDING_LIST_KEYS)


def _parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return None


def _parse_line_number(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        line_number = int(value)
    else:
        try:
            line_number = int(str(value).strip())
        except (TypeError, ValueError):
            return None
    return line_number if line_number > 0 else None


def parse_severity(value: Any) -> Severity:
    """Map a reviewer severity label to ``Severity``; unknown labels are medium."""
    if not value:
        return Severity.MEDIUM
    return SEVERITY_ALIASES.get(str(value).strip().lower(), Severity.MEDIUM)


def parse_category(value: Any) -> FindingCategory:
    """Map a reviewer category label to ``FindingCategory``."""
    if not value:
        return FindingCategory.MAINTAINABILITY
    return CATEGORY_ALIASES.get(str(value).strip().lower(), FindingCategory.MAINTAINABILITY)


def extract_score(text: str, default: int = DEFAULT_SCORE) -> int:
    """Pull a ``score: n`` / ``**SCORE: n**`` value out of free text."""
    match = SCORE_PATTERN.search(text or "")
    if match:
        score = _clamp_score(match.group(1))
        if score is not None:
            return score
    return default


class ReviewResponseParser:
    """Decodes raw reviewer text into a ``DecodedResponse``."""

    def __init__(self, default_score: int = DEFAULT_SCORE):
        self.default_score = default_score

    def decode(self, response_text: Any) -> DecodedResponse:
        text = response_text if isinstance(response_text, str) else ""
        data = self._decode_json(text)
        if data is not None and not _has_review_keys(data):
            logger.debug("Decoded JSON object carries no review keys; treating response as free text")
            data = None
        if data is None:
            logger.warning(f"Reviewer response is not valid JSON; using degraded review (length {len(text)})")
            return self._degraded(text)
        return self._structured(data)

    def _clean_response_text(self, response_text: str) -> str:
        """Strip surrounding markdown code fences."""
        cleaned = response_text.strip()
        if cleaned.startswith("```"):
            first_newline = cleaned.find("\n")
            cleaned = cleaned[first_newline + 1:] if first_newline != -1 else cleaned[3:]
            if cleaned.rstrip().endswith("```"):
                cleaned = cleaned.rstrip()[:-3]
        return cleaned.strip()

    def _decode_json(self, response_text: str) -> Optional[Dict[str, Any]]:
        cleaned = self._clean_response_text(response_text)
        if not cleaned:
            return None

        # A bare JSON array is read as the findings list.
        if cleaned.startswith("["):
            try:
                data = json.loads(cleaned)
            except (json.JSONDecodeError, RecursionError):
                data = None
            if isinstance(data, list):
                return {"findings": data}

        start_idx = cleaned.find("{")
        if start_idx == -1:
            return None

        try:
            data, end_offset = json.JSONDecoder().raw_decode(cleaned[start_idx:])
            if isinstance(data, dict):
                trailing = cleaned[start_idx + end_offset:].strip()
                if start_idx > 0 or trailing:
                    logger.debug("Stripped conversational text around reviewer JSON")
                return data
        except (json.JSONDecodeError, RecursionError) as e:
            logger.debug(f"raw_decode failed on reviewer response: {e}")

        match = GREEDY_OBJECT_PATTERN.search(response_text)
        if match:
            try:
                data = json.loads(match.group(0))
            except (json.JSONDecodeError, RecursionError):
                return None
            if isinstance(data, dict):
                logger.info("Recovered reviewer JSON from greedy object match")
                return data
        return None

    def _structured(self, data: Dict[str, Any]) -> DecodedResponse:
        findings: List[Finding] = []
        skipped = 0
        seen = set()

        for key in FINDING_LIST_KEYS:
            items = data.get(key)
            if not isinstance(items, list):
                continue
            for item in items:
                finding = self._parse_finding(item)
                if finding is None:
                    skipped += 1
                    continue
                signature = (finding.line_number, finding.message)
                if signature in seen:
                    continue
                seen.add(signature)
                findings.append(finding)

        if skipped:
            logger.warning(f"Skipped {skipped} reviewer findings without a usable line number or message")

        score = _clamp_score(_first_present(data, SCORE_KEYS))
        if score is None:
            score = self.default_score

        can_merge = _parse_bool(_first_present(data, CAN_MERGE_KEYS))
        if can_merge is None:
            can_merge = not any(finding.severity == Severity.CRITICAL for finding in findings)

        summary = _first_present(data, SUMMARY_KEYS)
        return DecodedResponse(
            kind=ResponseKind.STRUCTURED,
            score=score,
            can_merge=can_merge,
            summary=str(summary) if summary is not None else "",
            findings=findings,
            skipped_findings=skipped,
        )

    def _parse_finding(self, item: Any) -> Optional[Finding]:
        if not isinstance(item, dict):
            return None

        line_number = _parse_line_number(_first_present(item, LINE_KEYS))
        message = _first_present(item, MESSAGE_KEYS)
        if line_number is None or not isinstance(message, str) or not message.strip():
            return None

        suggestion = _first_present(item, SUGGESTION_KEYS)
        quote = _first_present(item, QUOTE_KEYS)
        return Finding(
            line_number=line_number,
            severity=parse_severity(_first_present(item, SEVERITY_KEYS)),
            category=parse_category(_first_present(item, CATEGORY_KEYS)),
            message=message.strip(),
            suggestion=str(suggestion).strip() if suggestion is not None else None,
            quote=str(quote).strip() if quote is not None else None,
        )

    def _degraded(self, text: str) -> DecodedResponse:
        return DecodedResponse(
            kind=ResponseKind.DEGRADED,
            score=extract_score(text, self.default_score),
            can_merge=True,
            summary=text,
            findings=[],
        )
