"""Turn candidate issue ids into resolved issues attached to a build.

Resolution runs at most once per build. The first successful run attaches a
``BuildUpdateResult``; every later consumer (comment updater, custom field
updater) reuses it through :func:`get_or_resolve`. Issues the tracker later
rejects are recorded with :func:`record_dropped` and filtered out by
:func:`live_issues`.
"""

from __future__ import annotations

from collections.abc import Iterable

from .build import Build
from .collector import DefaultIssueSelector, IssueSelector
from .errors import describe_error
from .logging import BuildConsole, get_logger
from .models import BuildUpdateResult, CarryForwardSet, DroppedIssues, Outcome, ResolvedIssue
from .tracker import SessionUnavailableError, TrackerError, TrackerSession, TrackerSite

debug = False


def resolve_issues(
    ids: Iterable[str],
    session: TrackerSession,
    console: BuildConsole | None = None,
) -> list[ResolvedIssue]:
    """Return the ids that exist in the tracker, in input order.

    Ids the tracker does not know are dropped silently. Communication errors
    (``TrackerError``) propagate and fail the whole batch.
    """
    issues: list[ResolvedIssue] = []
    for issue_id in ids:
        if not session.exists_issue(issue_id):
            if debug and console is not None:
                console.println(f"{issue_id} looked like an issue but it wasn't")
            continue
        issues.append(ResolvedIssue.from_payload(issue_id, session.get_issue(issue_id)))
    return issues


def carry_forward(build: Build, ids: Iterable[str]) -> None:
    """Hand ``ids`` to the next build; the first call for a build wins."""
    if build.get_attached(CarryForwardSet) is None:
        build.attach(CarryForwardSet(frozenset(ids)))


def record_build_issues(
    build: Build,
    site: TrackerSite | None,
    console: BuildConsole,
    selector: IssueSelector | None = None,
    threshold: Outcome = Outcome.FAILURE,
) -> bool:
    """Find, resolve and attach the issues related to ``build``.

    ``threshold`` is the outcome recorded on the build when the tracker fails
    mid-resolution. Returns ``True`` once a ``BuildUpdateResult`` is attached.
    """
    if build.get_attached(BuildUpdateResult) is not None:
        return True
    if site is None:
        console.println("No issue tracker site is configured for this project.")
        build.set_outcome(Outcome.FAILURE)
        return False

    selector = selector or DefaultIssueSelector()
    ids: set[str] = set()
    log = get_logger()
    try:
        ids = selector.find_issue_ids(build, site, console)
        if not ids:
            log.debug("no issue candidates", build=build.display_name)
            if debug:
                console.println("No issues found.")
            return False

        try:
            session = site.create_session()
        except SessionUnavailableError as exc:
            console.println("Failed to connect to the issue tracker.")
            console.println(describe_error(exc))
            carry_forward(build, ids)
            return False

        with log.timed_operation("resolve_issues", build=build.display_name, candidates=len(ids)):
            issues = resolve_issues(sorted(ids), session, console)
    except TrackerError as exc:
        console.println("Error communicating with the issue tracker.\n" + describe_error(exc))
        carry_forward(build, ids)
        build.set_outcome(threshold)
        return False
    except Exception as exc:  # noqa: BLE001 - a link-tracking bug must not pass as a clean build
        console.println("Error looking for issues.\n" + describe_error(exc))
        log.log_error("issue lookup failed", error=repr(exc), build=build.display_name)
        build.set_outcome(Outcome.FAILURE)
        return False

    build.attach(BuildUpdateResult(tuple(issues)))
    for issue in issues:
        log.log_issue_action("resolved", issue.id, build=build.display_name)
    return True


def get_or_resolve(
    build: Build,
    site: TrackerSite | None,
    console: BuildConsole,
    threshold: Outcome = Outcome.FAILURE,
) -> BuildUpdateResult | None:
    """Reuse the build's resolved issues, resolving with the default selector if needed."""
    result = build.get_attached(BuildUpdateResult)
    if result is None:
        record_build_issues(build, site, console, DefaultIssueSelector(), threshold)
        result = build.get_attached(BuildUpdateResult)
    return result


def record_dropped(build: Build, issues: Iterable[ResolvedIssue]) -> None:
    """Mark ``issues`` as rejected by the tracker for the rest of this build."""
    ids = {issue.id for issue in issues}
    if not ids:
        return
    dropped = build.get_attached(DroppedIssues)
    if dropped is None:
        dropped = DroppedIssues()
        build.attach(dropped)
    dropped.ids.update(ids)


def live_issues(build: Build) -> list[ResolvedIssue]:
    """The build's resolved issues minus any the tracker has rejected."""
    result = build.get_attached(BuildUpdateResult)
    if result is None:
        return []
    dropped = build.get_attached(DroppedIssues)
    skip = dropped.ids if dropped is not None else set()
    return [issue for issue in result.issues if issue.id not in skip]


__all__ = [
    "resolve_issues",
    "record_build_issues",
    "get_or_resolve",
    "carry_forward",
    "record_dropped",
    "live_issues",
]
