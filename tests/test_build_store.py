import json

import pytest

from issuelink.build import BuildRecord
from issuelink.build_store import (
    BuildDocumentError,
    BuildState,
    load_build_document,
    load_build_state,
    parse_build,
    persist_build_state,
    previous_build_from_state,
    state_from_build,
)
from issuelink.models import (
    BuildUpdateResult,
    CarryForwardSet,
    IssueReferenceParameter,
    LegacyChangeEntry,
    Outcome,
    ResolvedIssue,
)

DOCUMENT = {
    "display_name": "Foo #12",
    "url": "job/Foo/12/",
    "outcome": "unstable",
    "changes": [
        {"message": "PROJ-1: fix", "author": "alice", "commit_id": "9af8e4c", "files": ["a.py", {"path": "b.py", "edit_type": "add"}]},
        {"message": "PROJ-2 legacy", "revision": "r77", "paths": ["c.txt"]},
    ],
    "parameters": [
        {"name": "ISSUE", "value": "ops-3", "type": "issue"},
        {"name": "BRANCH", "value": "main"},
    ],
    "environment": {"BUILD_NUMBER": 12},
    "dependencies": [{"project": "lib", "builds": [{"display_name": "lib #3", "changes": [{"message": "LIB-9"}]}]}],
    "matrix_run": False,
}


def test_parse_build_document():
    build = parse_build(DOCUMENT)

    assert build.display_name == "Foo #12"
    assert build.outcome is Outcome.UNSTABLE
    first, second = build.change_set
    assert first.commit_id == "9af8e4c"
    assert [f.path for f in first.affected_files] == ["a.py", "b.py"]
    assert first.affected_files[1].edit_type == "add"
    assert isinstance(second, LegacyChangeEntry)
    assert second.revision == "r77"
    assert second.affected_files is None
    assert list(second.affected_paths) == ["c.txt"]
    assert isinstance(build.parameters[0], IssueReferenceParameter)
    assert build.parameters[0].issue == "OPS-3"
    assert build.environment == {"BUILD_NUMBER": "12"}
    assert build.build_variables() == {"ISSUE": "ops-3", "BRANCH": "main"}
    deps = build.get_dependency_changes(None)
    assert deps[0].project == "lib"
    assert deps[0].builds[0].change_set[0].message == "LIB-9"


def test_parse_build_rejects_bad_documents():
    with pytest.raises(BuildDocumentError):
        parse_build({"outcome": "SUCCESS"})
    with pytest.raises(BuildDocumentError):
        parse_build({"display_name": "x", "outcome": "PURPLE"})
    with pytest.raises(BuildDocumentError):
        parse_build({"display_name": "x", "changes": ["not an object"]})


def test_load_build_document_errors(tmp_path):
    path = tmp_path / "build.json"
    path.write_text("[1, 2]")
    with pytest.raises(BuildDocumentError):
        load_build_document(path)
    with pytest.raises(BuildDocumentError):
        load_build_document(tmp_path / "missing.json")


def test_state_persistence_round_trip(tmp_path):
    build = BuildRecord(display_name="Foo #12", outcome=Outcome.FAILURE)
    build.attach(BuildUpdateResult((ResolvedIssue("PROJ-1"),)))
    build.attach(CarryForwardSet(frozenset({"PROJ-1", "PROJ-0"})))
    path = tmp_path / "state" / "issuelink.json"

    persist_build_state(path, state_from_build(build))
    loaded = load_build_state(path)

    assert loaded.build == "Foo #12"
    assert loaded.outcome == "FAILURE"
    assert loaded.carry_forward == ["PROJ-0", "PROJ-1"]
    assert loaded.resolved == ["PROJ-1"]
    raw = json.loads(path.read_text())
    assert raw["signature"] == loaded.signature

    previous = previous_build_from_state(loaded)
    assert previous is not None
    assert previous.outcome is Outcome.FAILURE
    assert previous.get_attached(CarryForwardSet).ids == {"PROJ-0", "PROJ-1"}


def test_state_signature_mismatch_is_ignored(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({
        "version": 1,
        "generated_at": "2024-01-01T00:00:00Z",
        "build": "Foo #1",
        "carry_forward": ["A-1"],
        "resolved": [],
        "signature": "deadbeef",
    }))

    loaded = load_build_state(path)
    assert loaded.carry_forward == []
    assert previous_build_from_state(loaded) is None


def test_missing_or_corrupt_state_starts_fresh(tmp_path):
    absent = load_build_state(tmp_path / "absent.json")
    assert absent.build is None
    assert absent.carry_forward == []
    assert absent.version == BuildState().version
    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("{not json")
    assert load_build_state(corrupt).build is None
