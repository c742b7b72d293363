"""
Tests for review dispatching.
"""

import threading
from unittest.mock import Mock

import pytest

from diff_reviewer.diff_parser import DiffParser
from diff_reviewer.guidelines import GuidelinesProvider
from diff_reviewer.models import (
    Chunk, DiffUnit, FindingCategory, LineRef, LineType, ReviewGranularity,
    ReviewStatus, Severity,
)
from diff_reviewer.review_dispatcher import (
    PLACEHOLDER_MESSAGE, REVIEWER_ERROR_SCORE, DispatchCancelledError, ReviewDispatcher,
    first_new_side_line, split_units,
)


MULTI_FILE_DIFF = """diff --git a/a.py b/a.py
index 1111111..2222222 100644
--- a/a.py
+++ b/a.py
@@ -1,1 +1,2 @@
 x = 1
+y = 2
@@ -10,1 +11,2 @@
 z = 3
+w = 4
diff --git a/b.ts b/b.ts
index 3333333..4444444 100644
--- a/b.ts
+++ b/b.ts
@@ -1,1 +1,1 @@
-let a = 1;
+const a = 1;
"""

GOOD_RESPONSE = {"score": 90, "canMerge": True, "summary": "fine", "findings": []}


def _parse(diff_text=MULTI_FILE_DIFF):
    return DiffParser().parse_diff(diff_text)


class TestSplitUnits:
    """Test granularity expansion."""

    def test_file_granularity_keeps_units(self):
        units = _parse()
        assert split_units(units, ReviewGranularity.FILE) == units

    def test_chunk_granularity_splits_hunks(self):
        reviewable = split_units(_parse(), ReviewGranularity.CHUNK)

        assert [(unit.file_path, len(unit.chunks)) for unit in reviewable] == [
            ("a.py", 1), ("a.py", 1), ("b.ts", 1),
        ]
        assert reviewable[1].chunks[0].target_start == 11

    def test_units_without_hunks_are_skipped(self):
        units = [DiffUnit(file_path="image.png", is_binary=True)] + _parse()
        assert [unit.file_path for unit in split_units(units, ReviewGranularity.FILE)] == ["a.py", "b.ts"]

    def test_binary_files_with_hunks_are_skipped(self):
        chunk = Chunk(raw_text="", lines=(LineRef(5, 1, "PNG", LineType.ADDED),))
        units = [DiffUnit(file_path="assets/logo.png", chunks=(chunk,))] + _parse()

        assert [unit.file_path for unit in split_units(units, ReviewGranularity.CHUNK)] == ["a.py", "a.py", "b.ts"]


class TestFirstNewSideLine:
    """Test anchor selection for placeholder findings."""

    def test_prefers_new_side(self):
        chunk = Chunk(raw_text="", lines=(
            LineRef(5, 3, "old", LineType.REMOVED),
            LineRef(6, 4, "new", LineType.ADDED),
        ))
        assert first_new_side_line(DiffUnit("a.py", (chunk,))) == 4

    def test_falls_back_to_removed_line(self):
        chunk = Chunk(raw_text="", lines=(LineRef(5, 3, "old", LineType.REMOVED),))
        assert first_new_side_line(DiffUnit("a.py", (chunk,))) == 3

    def test_empty_unit(self):
        assert first_new_side_line(DiffUnit("a.py")) == 1


class TestReviewDispatcher:
    """Test cases for ReviewDispatcher."""

    def test_one_call_per_file(self, scripted_reviewer):
        reviewer = scripted_reviewer(GOOD_RESPONSE)
        dispatcher = ReviewDispatcher(reviewer)

        reviews = dispatcher.dispatch(_parse())

        assert len(reviewer.requests) == 2
        assert [review.unit.file_path for review in reviews] == ["a.py", "b.ts"]
        assert all(review.status == ReviewStatus.REVIEWED for review in reviews)

    def test_one_call_per_chunk(self, scripted_reviewer):
        reviewer = scripted_reviewer(GOOD_RESPONSE)
        dispatcher = ReviewDispatcher(reviewer, granularity=ReviewGranularity.CHUNK)

        reviews = dispatcher.dispatch(_parse())

        assert len(reviewer.requests) == 3
        assert len(reviews) == 3
        assert dispatcher.get_statistics()["reviewer_calls"] == 3

    def test_request_contains_guidelines_and_numbered_diff(self, scripted_reviewer, memory_store):
        reviewer = scripted_reviewer(GOOD_RESPONSE)
        provider = GuidelinesProvider(memory_store({"python": ["Prefer f-strings."]}))
        dispatcher = ReviewDispatcher(reviewer, guidelines_provider=provider, prompt_template="PROMPT")
        dispatcher.set_pr_context("Title", "Body")

        dispatcher.dispatch(_parse()[:1])

        request = reviewer.requests[0]
        assert request.startswith("PROMPT")
        assert "Prefer f-strings." in request
        assert "Title: Title" in request
        assert "2 +y = 2" in request

    def test_findings_are_normalized(self, scripted_reviewer):
        reviewer = scripted_reviewer({
            "score": 65, "canMerge": False, "summary": "Mutable const",
            "findings": [{"lineNumber": 1, "severity": "high", "category": "bug", "message": "Check this"}],
        })
        review = ReviewDispatcher(reviewer).dispatch(_parse()[1:])[0]

        assert review.score == 65
        assert review.can_merge is False
        assert review.findings[0].severity == Severity.HIGH
        assert review.cost.input_tokens > 0

    def test_malformed_response_is_degraded(self, scripted_reviewer):
        reviewer = scripted_reviewer("Looks fine overall. Score: 82")
        dispatcher = ReviewDispatcher(reviewer)

        review = dispatcher.dispatch(_parse()[:1])[0]

        assert review.status == ReviewStatus.MALFORMED_RESPONSE
        assert review.score == 82
        assert review.can_merge is True
        assert review.findings == []
        assert dispatcher.get_statistics()["malformed_responses"] == 1

    def test_reviewer_error_yields_placeholder(self, scripted_reviewer):
        reviewer = scripted_reviewer(RuntimeError("quota exceeded"))
        dispatcher = ReviewDispatcher(reviewer)

        review = dispatcher.dispatch(_parse()[:1])[0]

        assert review.status == ReviewStatus.REVIEWER_ERROR
        assert review.score == REVIEWER_ERROR_SCORE
        assert review.can_merge is False
        assert "quota exceeded" in review.summary
        finding = review.findings[0]
        assert finding.message == PLACEHOLDER_MESSAGE
        assert finding.severity == Severity.HIGH
        assert finding.category == FindingCategory.MAINTAINABILITY
        assert finding.line_number == 1
        assert dispatcher.get_statistics()["reviewer_errors"] == 1

    def test_one_failure_does_not_stop_other_units(self, scripted_reviewer):
        reviewer = scripted_reviewer(RuntimeError("boom"), GOOD_RESPONSE)

        reviews = ReviewDispatcher(reviewer).dispatch(_parse())

        assert [review.status for review in reviews] == [ReviewStatus.REVIEWER_ERROR, ReviewStatus.REVIEWED]

    def test_cost_uses_reported_usage(self):
        reviewer = Mock()
        reviewer.review.return_value = '{"score": 90}'
        reviewer.last_usage = {"input_tokens": 120, "output_tokens": 30}

        review = ReviewDispatcher(reviewer).dispatch(_parse()[:1])[0]

        assert review.cost.input_tokens == 120
        assert review.cost.output_tokens == 30

    def test_empty_input(self, scripted_reviewer):
        reviewer = scripted_reviewer()
        assert ReviewDispatcher(reviewer).dispatch([]) == []
        assert reviewer.requests == []

    def test_cancel_event_stops_remaining_units(self, scripted_reviewer):
        cancel_event = threading.Event()

        def cancel_after_first(_request):
            cancel_event.set()
            return '{"score": 90}'

        reviewer = scripted_reviewer(cancel_after_first)

        with pytest.raises(DispatchCancelledError, match="1 of 2"):
            ReviewDispatcher(reviewer).dispatch(_parse(), cancel_event=cancel_event)

        assert len(reviewer.requests) == 1

    def test_unset_cancel_event_reviews_everything(self, scripted_reviewer):
        reviewer = scripted_reviewer(GOOD_RESPONSE)

        reviews = ReviewDispatcher(reviewer).dispatch(_parse(), cancel_event=threading.Event())

        assert len(reviews) == 2
