from __future__ import annotations

import re

import pytest

from issuelink.build import BuildRecord
from issuelink.models import BuildUpdateResult, CarryForwardSet, ChangeEntry, DroppedIssues, Outcome, ResolvedIssue
from issuelink.resolver import get_or_resolve, live_issues, record_build_issues, record_dropped, resolve_issues
from issuelink.tracker import TrackerError

PATTERN = re.compile(r"([A-Z]+-\d+)")


def _build(*messages: str, outcome: Outcome = Outcome.SUCCESS, previous: BuildRecord | None = None) -> BuildRecord:
    return BuildRecord(
        display_name="Foo #12",
        url="job/Foo/12/",
        outcome=outcome,
        change_set=[ChangeEntry(m, author="alice") for m in messages],
        previous=previous,
    )


def test_resolve_drops_unknown_ids_without_error(fake_session):
    session = fake_session(["PROJ-1"])
    issues = resolve_issues(["PROJ-1", "V-1"], session)
    assert [i.id for i in issues] == ["PROJ-1"]
    assert issues[0].summary == "Summary of PROJ-1"
    assert issues[0].status == "Open"
    assert ("get", "V-1") not in session.calls


def test_resolve_is_idempotent_and_order_stable(fake_session):
    session = fake_session(["B-2", "A-1", "C-3"])
    first = resolve_issues(["C-3", "A-1", "B-2"], session)
    second = resolve_issues(["C-3", "A-1", "B-2"], session)
    assert first == second
    assert [i.id for i in first] == ["C-3", "A-1", "B-2"]


def test_communication_failure_propagates(fake_session):
    session = fake_session(["A-1"], broken=["A-1"])
    with pytest.raises(TrackerError):
        resolve_issues(["A-1"], session)


def test_record_attaches_result_once(fake_session, make_site, console):
    session = fake_session(["PROJ-1"])
    site = make_site(session, issue_pattern=PATTERN)
    build = _build("PROJ-1: fix bug", "NOPE-9 is a tag")

    assert record_build_issues(build, site, console) is True
    result = build.get_attached(BuildUpdateResult)
    assert result is not None and result.ids == ["PROJ-1"]

    calls_before = len(session.calls)
    assert record_build_issues(build, site, console) is True
    assert len(session.calls) == calls_before


def test_get_or_resolve_reuses_existing_result(fake_session, make_site, console):
    session = fake_session(["PROJ-1"])
    site = make_site(session, issue_pattern=PATTERN)
    build = _build("PROJ-1: fix bug")

    first = get_or_resolve(build, site, console)
    calls = len(session.calls)
    second = get_or_resolve(build, site, console)
    assert first is second
    assert len(session.calls) == calls


def test_missing_site_fails_build(console):
    build = _build("PROJ-1")
    assert record_build_issues(build, None, console) is False
    assert build.outcome is Outcome.FAILURE
    assert "No issue tracker site" in console.text


def test_no_candidates_makes_no_remote_calls(fake_session, make_site, console):
    session = fake_session(["PROJ-1"])
    build = _build("cleanup")
    assert record_build_issues(build, make_site(session, issue_pattern=PATTERN), console) is False
    assert session.calls == []
    assert build.get_attached(BuildUpdateResult) is None


def test_session_failure_carries_candidates_forward(make_site, console):
    site = make_site(issue_pattern=PATTERN)  # no credentials: session cannot be opened
    build = _build("PROJ-1 and PROJ-2")

    assert record_build_issues(build, site, console) is False
    assert build.outcome is Outcome.SUCCESS
    carried = build.get_attached(CarryForwardSet)
    assert carried is not None and carried.ids == {"PROJ-1", "PROJ-2"}

    nxt = _build(previous=build)
    assert record_build_issues(nxt, site, console) is False
    assert nxt.get_attached(CarryForwardSet).ids == {"PROJ-1", "PROJ-2"}


def test_tracker_error_marks_threshold_outcome(fake_session, make_site, console):
    session = fake_session(["PROJ-1"], broken=["PROJ-1"])
    build = _build("PROJ-1")
    assert record_build_issues(build, make_site(session, issue_pattern=PATTERN), console, threshold=Outcome.UNSTABLE) is False
    assert build.outcome is Outcome.UNSTABLE
    assert "Error communicating" in console.text
    assert build.get_attached(CarryForwardSet).ids == {"PROJ-1"}


def test_unexpected_error_fails_build(make_site, console):
    class _Exploding:
        def find_issue_ids(self, build, site, console):
            raise KeyError("boom")

    build = _build("PROJ-1")
    assert record_build_issues(build, make_site(issue_pattern=PATTERN), console, _Exploding()) is False
    assert build.outcome is Outcome.FAILURE
    assert "Error looking for issues" in console.text


def test_resolution_leaves_carry_forward_to_the_updater(fake_session, make_site, console):
    session = fake_session(["PROJ-1"])
    build = _build("PROJ-1", outcome=Outcome.FAILURE)
    record_build_issues(build, make_site(session, issue_pattern=PATTERN), console, threshold=Outcome.UNSTABLE)
    assert build.get_attached(BuildUpdateResult).ids == ["PROJ-1"]
    assert build.get_attached(CarryForwardSet) is None


def test_live_issues_skip_dropped_ids():
    build = _build("PROJ-1 PROJ-2")
    assert live_issues(build) == []
    build.attach(BuildUpdateResult((ResolvedIssue("PROJ-1"), ResolvedIssue("PROJ-2"))))
    record_dropped(build, [ResolvedIssue("PROJ-2")])
    record_dropped(build, [])
    assert [issue.id for issue in live_issues(build)] == ["PROJ-1"]
    assert build.get_attached(DroppedIssues).ids == {"PROJ-2"}
