"""
Pytest configuration and fixtures for diff_reviewer tests.
"""

import json
import os
import sys

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from diff_reviewer.config import Config, GeminiConfig, ReviewConfig  # noqa: E402


class ScriptedReviewer:
    """Reviewer stand-in that replays canned responses and records requests.

    Each response is either a string, a dict (serialized to JSON), an
    exception instance (raised), or a callable taking the request text.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def review(self, request_text):
        self.requests.append(request_text)
        if not self.responses:
            return json.dumps({"score": 90, "canMerge": True, "summary": "ok", "findings": []})
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request_text)
        if isinstance(response, dict):
            return json.dumps(response)
        return response


class MemoryGuidanceStore:
    """Guidance store holding documents in a dict."""

    def __init__(self, documents=None, fail=False):
        self.documents = documents or {}
        self.fail = fail
        self.list_calls = 0

    def list_categories(self):
        from diff_reviewer.guidelines import GuidanceUnavailableError
        self.list_calls += 1
        if self.fail:
            raise GuidanceUnavailableError("store offline")
        return list(self.documents)

    def read_documents(self, category):
        return list(self.documents.get(category, []))


@pytest.fixture
def sample_diff_content():
    """Provide sample diff content for tests."""
    return """diff --git a/main.py b/main.py
index 1234567..abcdefg 100644
--- a/main.py
+++ b/main.py
@@ -1,3 +1,4 @@
 import os
+import sys
 def main():
     pass
"""


@pytest.fixture
def secret_diff_content():
    """One TypeScript file with a hardcoded token on new line 2."""
    return """diff --git a/src/auth.ts b/src/auth.ts
index 1111111..2222222 100644
--- a/src/auth.ts
+++ b/src/auth.ts
@@ -1,2 +1,3 @@
 import { api } from "./api";
+const token = "abc123";
 export default api;
"""


@pytest.fixture
def two_file_diff_content():
    """A Python change and a Markdown change."""
    return """diff --git a/app.py b/app.py
index 1111111..2222222 100644
--- a/app.py
+++ b/app.py
@@ -1,2 +1,3 @@
 def run():
+    print("running")
     return 0
diff --git a/docs/README.md b/docs/README.md
index 3333333..4444444 100644
--- a/docs/README.md
+++ b/docs/README.md
@@ -1 +1,2 @@
 # Title
+More text
"""


@pytest.fixture
def scripted_reviewer():
    """Factory for scripted reviewers."""
    return ScriptedReviewer


@pytest.fixture
def memory_store():
    """Factory for in-memory guidance stores."""
    return MemoryGuidanceStore


@pytest.fixture
def make_config():
    """Factory for a Config with test credentials."""
    def _make(**review_kwargs):
        return Config(
            gemini=GeminiConfig(api_key="test-gemini-api-key"),
            review=ReviewConfig(**review_kwargs),
        )
    return _make


@pytest.fixture
def sample_event_data():
    """Provide sample GitHub event data."""
    return {
        "number": 123,
        "repository": {"full_name": "owner/repo"},
        "pull_request": {
            "title": "Test PR",
            "body": "Description",
            "head": {"sha": "abc123"},
            "base": {"sha": "def456"},
        },
    }


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch):
    """Reset environment variables for each test."""
    prefixes = ("GITHUB_", "GEMINI_", "INPUT_", "REVIEW_", "MAX_COMMENTS_")
    names = {"EXCLUDE", "SYSTEM_PROMPT", "GUIDELINES_DIR", "LOG_LEVEL", "ENABLE_FILE_LOGGING", "GIT_DIFF"}
    for key in list(os.environ.keys()):
        if key.startswith(prefixes) or key in names:
            monkeypatch.delenv(key, raising=False)
