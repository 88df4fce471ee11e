from __future__ import annotations

import enum
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any


class Outcome(enum.Enum):
    """Build outcome with a total order; lower ordinal is better."""

    SUCCESS = (0, "blue.png")
    UNSTABLE = (1, "yellow.png")
    FAILURE = (2, "red.png")
    NOT_BUILT = (3, "nobuilt.png")
    ABORTED = (4, "aborted.png")

    def __init__(self, ordinal: int, icon: str) -> None:
        self.ordinal = ordinal
        self.icon = icon

    def __str__(self) -> str:
        return self.name

    def is_better_or_equal_to(self, other: Outcome) -> bool:
        return self.ordinal <= other.ordinal

    def is_worse_than(self, other: Outcome) -> bool:
        return self.ordinal > other.ordinal

    def worst(self, other: Outcome) -> Outcome:
        return self if self.ordinal >= other.ordinal else other

    @classmethod
    def from_string(cls, value: str) -> Outcome:
        key = value.strip().upper().replace("-", "_")
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown build outcome: {value!r}") from None


@dataclass(frozen=True)
class AffectedFile:
    path: str
    edit_type: str = "edit"


@dataclass
class ChangeEntry:
    """One source-control change as recorded in a build's change set."""

    message: str
    author: str = ""
    commit_id: str | None = None
    affected_paths: Sequence[str] = ()
    # None when the SCM cannot enumerate affected files as structured data
    affected_files: Sequence[AffectedFile] | None = None


@dataclass
class LegacyChangeEntry(ChangeEntry):
    """Change recorded by an SCM that only exposes a bare ``revision``."""

    revision: str | None = None


@dataclass(frozen=True)
class ParameterValue:
    name: str
    value: Any


@dataclass(frozen=True)
class IssueReferenceParameter(ParameterValue):
    """Build parameter naming an issue directly, bypassing pattern matching."""

    @property
    def issue(self) -> str:
        if self.value is None:
            return ""
        return str(self.value).strip().upper()


@dataclass(frozen=True)
class ResolvedIssue:
    id: str
    summary: str = ""
    status: str | None = None
    assignee: str | None = None
    url: str | None = None
    fields: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, issue_id: str, payload: Mapping[str, Any]) -> ResolvedIssue:
        """Build from a Jira-style issue payload (``key`` plus ``fields``)."""
        fields_any = payload.get("fields")
        fields: Mapping[str, Any] = fields_any if isinstance(fields_any, Mapping) else {}
        status = fields.get("status")
        assignee = fields.get("assignee")
        return cls(
            id=str(payload.get("key") or issue_id).upper(),
            summary=str(fields.get("summary") or ""),
            status=_named(status, "name"),
            assignee=_named(assignee, "displayName"),
            url=payload.get("self") if isinstance(payload.get("self"), str) else None,
            fields=dict(fields),
        )


def _named(value: Any, key: str) -> str | None:
    if isinstance(value, Mapping):
        name = value.get(key) or value.get("name")
        return str(name) if name else None
    if isinstance(value, str):
        return value
    return None


@dataclass(frozen=True)
class BuildUpdateResult:
    """Resolved issues attached once to a build."""

    issues: tuple[ResolvedIssue, ...] = ()

    @property
    def ids(self) -> list[str]:
        return [issue.id for issue in self.issues]


@dataclass(frozen=True)
class CarryForwardSet:
    """Issue ids handed from one build to the next."""

    ids: frozenset[str] = frozenset()


@dataclass
class DroppedIssues:
    """Issues the tracker rejected as missing or not writable during this build.

    Attached once; later submissions add to ``ids`` so every consumer of the
    build's resolved issues skips them.
    """

    ids: set[str] = field(default_factory=set)


@dataclass
class DependencyChange:
    """Builds of an upstream project newly reachable from the current build."""

    project: str
    builds: Sequence[Any] = ()


__all__ = [
    "Outcome",
    "AffectedFile",
    "ChangeEntry",
    "LegacyChangeEntry",
    "ParameterValue",
    "IssueReferenceParameter",
    "ResolvedIssue",
    "BuildUpdateResult",
    "CarryForwardSet",
    "DroppedIssues",
    "DependencyChange",
]
