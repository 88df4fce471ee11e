"""Issue-tracker collaborator: site configuration, session protocol and errors.

The session is the only thing in IssueLink that talks to the tracker. Its
failures come in two flavours that callers must keep apart:

- ``IssueAccessError``: the tracker answered and said "no such issue" or "you
  may not touch it". Permanent for the issue in question.
- ``TrackerError`` (any other): communication broke down. Transient.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

DEFAULT_ISSUE_PATTERN = r"([a-zA-Z][a-zA-Z0-9_]+-[1-9][0-9]*)([^.]|\.[^0-9]|\.$|$)"


class TrackerError(RuntimeError):
    """Raised when communication with the tracker fails."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
        retry_after: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text
        self.retry_after = retry_after


class IssueAccessError(TrackerError):
    """The tracker reports the issue as missing or not writable."""


class SessionUnavailableError(TrackerError):
    """No working session could be opened for the configured site."""


class TrackerSession(Protocol):
    def exists_issue(self, issue_id: str) -> bool: ...

    def get_issue(self, issue_id: str) -> Mapping[str, Any]: ...

    def add_comment(
        self,
        issue_id: str,
        body: str,
        group_visibility: str | None = None,
        role_visibility: str | None = None,
    ) -> None: ...

    def update_custom_field(self, issue_id: str, field_id: str, value: str | None) -> None: ...


SessionFactory = Callable[["TrackerSite"], TrackerSession]


@dataclass
class TrackerSite:
    """A configured tracker instance.

    ``create_session`` opens the remote session lazily and reuses it for the
    rest of the process; a failed attempt is not cached.
    """

    url: str
    issue_pattern: re.Pattern[str] = field(default_factory=lambda: re.compile(DEFAULT_ISSUE_PATTERN))
    group_visibility: str | None = None
    role_visibility: str | None = None
    username: str | None = None
    token: str | None = None
    session_factory: SessionFactory | None = None
    _session: TrackerSession | None = field(default=None, init=False, repr=False)

    def create_session(self) -> TrackerSession:
        if self._session is not None:
            return self._session
        factory = self.session_factory
        if factory is None:
            if not self.username or not self.token:
                raise SessionUnavailableError(
                    f"Remote access to {self.url} is not configured (missing credentials)"
                )
            from .jira_rest import JiraRestSession

            factory = JiraRestSession.connect
        try:
            self._session = factory(self)
        except SessionUnavailableError:
            raise
        except TrackerError as exc:
            raise SessionUnavailableError(
                f"Could not open a session to {self.url}: {exc}", status=exc.status
            ) from exc
        return self._session


def compile_issue_pattern(pattern: str | re.Pattern[str] | None) -> re.Pattern[str]:
    if pattern is None or pattern == "":
        return re.compile(DEFAULT_ISSUE_PATTERN)
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern)


__all__ = [
    "DEFAULT_ISSUE_PATTERN",
    "TrackerError",
    "IssueAccessError",
    "SessionUnavailableError",
    "TrackerSession",
    "TrackerSite",
    "compile_issue_pattern",
]
