"""Pytest configuration for IssueLink tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install, and provides in-memory fakes for the
tracker session.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from issuelink import logging as issuelink_logging  # noqa: E402
from issuelink.logging import BuildConsole  # noqa: E402
from issuelink.tracker import IssueAccessError, TrackerError, TrackerSite  # noqa: E402


class FakeTrackerSession:
    """Tracker with a fixed set of issues that records every call."""

    def __init__(
        self,
        issues: Iterable[str] = (),
        *,
        denied: Iterable[str] = (),
        broken: Iterable[str] = (),
        flaky: Iterable[str] = (),
    ) -> None:
        self.issues = {i: {"key": i, "fields": {"summary": f"Summary of {i}", "status": {"name": "Open"}}} for i in issues}
        self.denied = set(denied)
        self.broken = set(broken)
        # writes fail, reads succeed
        self.flaky = set(flaky)
        self.calls: list[tuple[Any, ...]] = []
        self.comments: dict[str, list[str]] = {}
        self.fields: dict[str, dict[str, Any]] = {}

    def _check(self, issue_id: str) -> None:
        if issue_id in self.broken or issue_id in self.flaky:
            raise TrackerError(f"connection reset while talking about {issue_id}", status=503)
        if issue_id in self.denied:
            raise IssueAccessError(f"no permission for {issue_id}", status=403)

    def exists_issue(self, issue_id: str) -> bool:
        self.calls.append(("exists", issue_id))
        if issue_id in self.broken:
            raise TrackerError("tracker unreachable", status=503)
        return issue_id in self.issues

    def get_issue(self, issue_id: str) -> dict[str, Any]:
        self.calls.append(("get", issue_id))
        return self.issues[issue_id]

    def add_comment(
        self,
        issue_id: str,
        body: str,
        group_visibility: str | None = None,
        role_visibility: str | None = None,
    ) -> None:
        self.calls.append(("comment", issue_id, group_visibility, role_visibility))
        self._check(issue_id)
        self.comments.setdefault(issue_id, []).append(body)

    def update_custom_field(self, issue_id: str, field_id: str, value: str | None) -> None:
        self.calls.append(("field", issue_id, field_id, value))
        self._check(issue_id)
        self.fields.setdefault(issue_id, {})[field_id] = value

    def remote_calls(self, kind: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == kind]


@pytest.fixture
def console() -> BuildConsole:
    return BuildConsole()


@pytest.fixture
def make_site():
    def _make(session: FakeTrackerSession | None = None, **kwargs: Any) -> TrackerSite:
        if session is None:
            return TrackerSite(url="https://jira.example.com", **kwargs)
        return TrackerSite(url="https://jira.example.com", session_factory=lambda _site: session, **kwargs)

    return _make


@pytest.fixture
def fake_session():
    def _make(issues: Iterable[str] = (), **kwargs: Any) -> FakeTrackerSession:
        return FakeTrackerSession(issues, **kwargs)

    return _make


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    # CLI runs and logging tests install a global logger bound to captured stdout
    issuelink_logging._GLOBAL = None
