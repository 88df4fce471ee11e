"""Push comments and custom-field values to the tracker, one issue at a time.

A failure for one issue never stops the batch. The two submitters react
differently to failures:

- comments: an ``IssueAccessError`` (missing issue or no permission) removes
  the issue from the caller's list so it is not retried forever; any other
  ``TrackerError`` is logged and the issue stays;
- custom fields: any ``TrackerError`` is logged and the issue is skipped, but
  it stays in the list.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .build import Build
from .errors import describe_error
from .logging import BuildConsole, get_logger
from .models import Outcome, ResolvedIssue
from .resolver import get_or_resolve, live_issues
from .substitution import build_bindings, substitute
from .tracker import IssueAccessError, SessionUnavailableError, TrackerError, TrackerSession, TrackerSite


def submit_comments(
    issues: list[ResolvedIssue],
    session: TrackerSession,
    console: BuildConsole,
    compose: Callable[[ResolvedIssue], str],
    group_visibility: str | None = None,
    role_visibility: str | None = None,
) -> list[ResolvedIssue]:
    """Comment on every issue; returns the issues dropped as invalid."""
    dropped: list[ResolvedIssue] = []
    for issue in list(issues):
        console.println(f"Updating {issue.id}")
        try:
            session.add_comment(issue.id, compose(issue), group_visibility, role_visibility)
        except IssueAccessError as exc:
            # The tracker uses the same answer for "no permission" and "no such issue".
            console.println(
                f"Looks like {issue.id} is no valid issue or you don't have permission to update it.\n"
                f"Issue will not be updated.\n{describe_error(exc)}"
            )
            issues.remove(issue)
            dropped.append(issue)
            continue
        except TrackerError as exc:
            console.println(f"Couldn't update issue {issue.id}.\n{describe_error(exc)}")
            get_logger().log_error("comment failed", error=describe_error(exc), issue_id=issue.id)
            continue
        get_logger().log_issue_action("commented", issue.id)
    return dropped


def submit_custom_field(
    issues: list[ResolvedIssue],
    session: TrackerSession,
    console: BuildConsole,
    field_id: str,
    value: str | None,
) -> list[ResolvedIssue]:
    """Set ``field_id`` on every issue; returns the issues that failed."""
    failed: list[ResolvedIssue] = []
    for issue in list(issues):
        try:
            console.println(
                f"Submitting custom field with id {field_id} to issue {issue.id} with value: {value}"
            )
            session.update_custom_field(issue.id, field_id, value)
        except TrackerError as exc:
            console.println(
                f"Couldn't update issue {issue.id} with new custom field [{field_id}, {value}].\n"
                f"{describe_error(exc)}"
            )
            failed.append(issue)
            continue
        get_logger().log_issue_action("field_updated", issue.id, field_id=field_id)
    return failed


@dataclass
class CustomFieldUpdater:
    """Sets a custom field on every issue related to a build.

    ``field_value`` may contain ``$NAME`` placeholders, expanded from the
    build environment and build variables.
    """

    field_id: str
    field_value: str | None
    minimum_outcome: Outcome = Outcome.SUCCESS
    real_field_value: str | None = None

    def perform(self, build: Build, site: TrackerSite | None, console: BuildConsole) -> bool:
        if site is None:
            console.println(f"Issue tracker site needs to be configured in the project {build.display_name}")
            build.set_outcome(Outcome.FAILURE)
            return True
        try:
            session = site.create_session()
        except SessionUnavailableError as exc:
            console.println("Couldn't obtain issue tracker session.\n" + describe_error(exc))
            return True

        if not build.outcome.is_better_or_equal_to(self.minimum_outcome):
            return True
        get_or_resolve(build, site, console, self.minimum_outcome)
        issues = live_issues(build)
        if not issues:
            return True

        bindings = build_bindings(build.environment, build.build_variables())
        self.real_field_value = substitute(self.field_value, bindings)
        submit_custom_field(issues, session, console, self.field_id, self.real_field_value)
        return True


__all__ = ["submit_comments", "submit_custom_field", "CustomFieldUpdater"]
