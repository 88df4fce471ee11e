"""Candidate issue discovery for one build.

Collection never talks to the tracker: every string that looks like an issue
key is a candidate, and the resolver decides later which ones are real. This
keeps collection working for tracker projects that do not exist yet.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from .build import Build
from .extractor import extract_issue_ids
from .logging import BuildConsole, get_logger
from .models import CarryForwardSet, DependencyChange, IssueReferenceParameter
from .tracker import TrackerSite


class IssueSelector(Protocol):
    """Strategy deciding which issue ids a completed build should update."""

    def find_issue_ids(self, build: Build, site: TrackerSite, console: BuildConsole) -> set[str]: ...


def _scan_build(
    build: Build,
    ids: set[str],
    pattern: re.Pattern[str],
    console: BuildConsole | None,
) -> None:
    for change in build.change_set:
        get_logger().debug(f"Looking for issue ids in {change.message!r}")
        ids |= extract_issue_ids(change.message, pattern, console)
    for param in build.parameters:
        if isinstance(param, IssueReferenceParameter) and param.issue:
            ids.add(param.issue)


def collect(
    build: Build,
    previous: Build | None,
    dependency_changes: Iterable[DependencyChange],
    pattern: re.Pattern[str],
    console: BuildConsole | None = None,
) -> set[str]:
    """Aggregate candidate ids: carried over, own changes, then new dependencies."""
    ids: set[str] = set()

    if previous is not None:
        carried = previous.get_attached(CarryForwardSet)
        if carried is not None:
            ids |= carried.ids

    _scan_build(build, ids, pattern, console)

    for dependency in dependency_changes:
        for upstream in dependency.builds:
            _scan_build(upstream, ids, pattern, console)
    return ids


class DefaultIssueSelector:
    """Carry-forward plus pattern scan of the build and its new dependencies."""

    def find_issue_ids(self, build: Build, site: TrackerSite, console: BuildConsole) -> set[str]:
        previous = build.previous_build
        return collect(
            build,
            previous,
            build.get_dependency_changes(previous),
            site.issue_pattern,
            console,
        )


@dataclass(frozen=True)
class ExplicitIssueSelector:
    """Updates a fixed list of issues regardless of the change log."""

    issue_ids: Sequence[str]

    def find_issue_ids(self, build: Build, site: TrackerSite, console: BuildConsole) -> set[str]:
        return {issue_id.strip().upper() for issue_id in self.issue_ids if issue_id.strip()}


__all__ = ["IssueSelector", "DefaultIssueSelector", "ExplicitIssueSelector", "collect"]
