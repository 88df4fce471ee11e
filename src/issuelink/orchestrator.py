"""Decide whether a finished build updates the tracker, and run the update."""

from __future__ import annotations

from dataclasses import dataclass, field

from .build import Build
from .collector import IssueSelector
from .comments import compose_build_comment
from .errors import describe_error
from .logging import BuildConsole, get_logger
from .models import BuildUpdateResult, Outcome, ResolvedIssue
from .resolver import carry_forward, live_issues, record_build_issues, record_dropped
from .submitters import submit_comments
from .tracker import SessionUnavailableError, TrackerError, TrackerSite


@dataclass(frozen=True)
class UpdatePolicy:
    """When to update the tracker.

    ``update_for_all_outcomes`` updates whatever the outcome and records
    FAILURE when the tracker fails; otherwise the build must be at least
    ``minimum_outcome`` and that minimum is the recorded outcome.
    """

    update_for_all_outcomes: bool = False
    minimum_outcome: Outcome = Outcome.UNSTABLE

    def should_update(self, outcome: Outcome) -> bool:
        if self.update_for_all_outcomes:
            return True
        return outcome.is_better_or_equal_to(self.minimum_outcome)

    def threshold_outcome(self) -> Outcome:
        if self.update_for_all_outcomes:
            return Outcome.FAILURE
        return self.minimum_outcome


def should_update(outcome: Outcome, policy: UpdatePolicy) -> bool:
    return policy.should_update(outcome)


def threshold_outcome(policy: UpdatePolicy) -> Outcome:
    return policy.threshold_outcome()


@dataclass
class IssueUpdater:
    """Comments on the issues referenced by a build's change log."""

    policy: UpdatePolicy = field(default_factory=UpdatePolicy)
    wiki_style_comments: bool = False
    record_scm_changes: bool = False
    selector: IssueSelector | None = None

    def perform(
        self,
        build: Build,
        site: TrackerSite | None,
        console: BuildConsole,
        root_url: str | None,
    ) -> bool:
        # Matrix children are covered by their aggregate parent.
        if build.is_matrix_run:
            return True
        return self._update(build, site, console, root_url)

    def end_matrix_build(
        self,
        build: Build,
        site: TrackerSite | None,
        console: BuildConsole,
        root_url: str | None,
    ) -> bool:
        console.println("End of matrix build. Updating issue tracker.")
        return self._update(build, site, console, root_url)

    def _update(
        self,
        build: Build,
        site: TrackerSite | None,
        console: BuildConsole,
        root_url: str | None,
    ) -> bool:
        if not self.policy.should_update(build.outcome):
            return True
        if not root_url:
            console.println("The CI root URL is not configured; cannot link builds from issues.")
            build.set_outcome(Outcome.FAILURE)
            return True
        if site is None:
            console.println(f"Issue tracker site needs to be configured in the project {build.display_name}")
            build.set_outcome(Outcome.FAILURE)
            return True
        try:
            session = site.create_session()
        except SessionUnavailableError as exc:
            console.println("Couldn't obtain issue tracker session.\n" + describe_error(exc))
            return True

        threshold = self.policy.threshold_outcome()
        if build.get_attached(BuildUpdateResult) is None:
            record_build_issues(build, site, console, self.selector, threshold)
        issues = live_issues(build)
        if not issues:
            return True

        base_url: str = root_url

        def compose(issue: ResolvedIssue) -> str:
            return compose_build_comment(
                build,
                issue,
                base_url,
                wiki_style=self.wiki_style_comments,
                record_scm_changes=self.record_scm_changes,
            )

        submitted = list(issues)
        try:
            with get_logger().timed_operation("submit_comments", build=build.display_name, issues=len(issues)):
                submit_comments(
                    issues,
                    session,
                    console,
                    compose,
                    site.group_visibility,
                    site.role_visibility,
                )
        except TrackerError as exc:
            console.println("Error communicating with the issue tracker.\n" + describe_error(exc))
            build.set_outcome(threshold)
        # submit_comments removes rejected issues from the list in place
        dropped = [issue for issue in submitted if issue not in issues]
        if dropped:
            record_dropped(build, dropped)
            get_logger().info(
                f"dropped {len(dropped)} invalid issue(s)",
                build=build.display_name,
                dropped=[issue.id for issue in dropped],
            )
        if build.outcome.is_worse_than(threshold):
            # Hand the surviving issues to the next build.
            carry_forward(build, (issue.id for issue in issues))
        return True


__all__ = ["UpdatePolicy", "IssueUpdater", "should_update", "threshold_outcome"]
