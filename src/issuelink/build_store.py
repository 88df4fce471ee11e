"""JSON build documents and the carry-forward state file.

A build document describes one finished build for the ``update`` command::

    {
      "display_name": "Foo #12",
      "url": "job/Foo/12/",
      "outcome": "SUCCESS",
      "changes": [{"message": "PROJ-1: fix", "author": "alice", "commit_id": "9af8e4c"}],
      "parameters": [{"name": "ISSUE", "value": "PROJ-2", "type": "issue"}],
      "environment": {"BRANCH": "main"},
      "dependencies": [{"project": "lib", "builds": [{"display_name": "lib #3", "changes": []}]}]
    }

The state file keeps what one build hands to the next (carry-forward ids) plus
the ids it resolved, guarded by a signature.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .build import BuildRecord
from .models import (
    AffectedFile,
    CarryForwardSet,
    ChangeEntry,
    DependencyChange,
    IssueReferenceParameter,
    LegacyChangeEntry,
    Outcome,
    ParameterValue,
)
from .resolver import live_issues

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class BuildDocumentError(ValueError):
    pass


def compute_signature(entries: Mapping[str, Any]) -> str:
    canonical = json.dumps(entries, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(canonical).hexdigest()


# ---- build documents ----------------------------------------------------


def _parse_change(raw: Any) -> ChangeEntry:
    if not isinstance(raw, dict):
        raise BuildDocumentError(f"change entries must be objects, got {raw!r}")
    files_raw = raw.get("files")
    files: list[AffectedFile] | None = None
    if isinstance(files_raw, list):
        files = [
            AffectedFile(path=str(f.get("path", "")), edit_type=str(f.get("edit_type", "edit")))
            if isinstance(f, dict)
            else AffectedFile(path=str(f))
            for f in files_raw
        ]
    common: dict[str, Any] = {
        "message": str(raw.get("message") or ""),
        "author": str(raw.get("author") or ""),
        "commit_id": raw.get("commit_id"),
        "affected_paths": tuple(str(p) for p in raw.get("paths") or ()),
        "affected_files": files,
    }
    if "revision" in raw:
        return LegacyChangeEntry(revision=raw.get("revision"), **common)
    return ChangeEntry(**common)


def _parse_parameter(raw: Any) -> ParameterValue:
    if not isinstance(raw, dict) or "name" not in raw:
        raise BuildDocumentError(f"parameters need a name, got {raw!r}")
    if raw.get("type") == "issue":
        return IssueReferenceParameter(name=str(raw["name"]), value=raw.get("value"))
    return ParameterValue(name=str(raw["name"]), value=raw.get("value"))


def parse_build(raw: Mapping[str, Any], previous: BuildRecord | None = None) -> BuildRecord:
    name = raw.get("display_name")
    if not isinstance(name, str) or not name.strip():
        raise BuildDocumentError("build document is missing display_name")
    try:
        outcome = Outcome.from_string(str(raw.get("outcome") or "SUCCESS"))
    except ValueError as exc:
        raise BuildDocumentError(str(exc)) from exc
    env_raw = raw.get("environment") or {}
    if not isinstance(env_raw, dict):
        raise BuildDocumentError("environment must be an object")
    dependencies: list[DependencyChange] = []
    for dep in raw.get("dependencies") or ():
        if not isinstance(dep, dict):
            raise BuildDocumentError(f"dependencies must be objects, got {dep!r}")
        dependencies.append(
            DependencyChange(
                project=str(dep.get("project") or ""),
                builds=[parse_build(b) for b in dep.get("builds") or ()],
            )
        )
    return BuildRecord(
        display_name=name,
        url=str(raw.get("url") or ""),
        outcome=outcome,
        change_set=[_parse_change(c) for c in raw.get("changes") or ()],
        parameters=[_parse_parameter(p) for p in raw.get("parameters") or ()],
        environment={str(k): str(v) for k, v in env_raw.items()},
        previous=previous,
        dependency_changes=dependencies,
        is_matrix_run=bool(raw.get("matrix_run", False)),
    )


def load_build_document(path: Path, previous: BuildRecord | None = None) -> BuildRecord:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise BuildDocumentError(f"Cannot read build document {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise BuildDocumentError(f"Build document {path} must be a JSON object")
    return parse_build(raw, previous)


# ---- state file ---------------------------------------------------------


@dataclass
class BuildState:
    build: str | None = None
    outcome: str | None = None
    carry_forward: list[str] = field(default_factory=list)
    resolved: list[str] = field(default_factory=list)
    version: int = STATE_VERSION
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    signature: str = ""

    def entries(self) -> dict[str, Any]:
        return {
            "build": self.build,
            "outcome": self.outcome,
            "carry_forward": sorted(self.carry_forward),
            "resolved": list(self.resolved),
        }

    def ensure_signature(self) -> None:
        self.signature = compute_signature(self.entries())


def state_from_build(build: BuildRecord) -> BuildState:
    carried = build.get_attached(CarryForwardSet)
    return BuildState(
        build=build.display_name,
        outcome=build.outcome.name,
        carry_forward=sorted(carried.ids) if carried else [],
        resolved=[issue.id for issue in live_issues(build)],
    )


def persist_build_state(path: Path, state: BuildState) -> None:
    state.ensure_signature()
    payload = {
        "version": state.version,
        "generated_at": state.generated_at,
        **state.entries(),
        "signature": state.signature,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)


def load_build_state(path: Path) -> BuildState:
    if not path.exists():
        return BuildState()
    try:
        raw: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Failed to read build state %s: %s", path, exc)
        return BuildState()
    if not isinstance(raw, dict):
        return BuildState()
    state = BuildState(
        build=raw.get("build") if isinstance(raw.get("build"), str) else None,
        outcome=raw.get("outcome") if isinstance(raw.get("outcome"), str) else None,
        carry_forward=[str(i) for i in raw.get("carry_forward") or () if i],
        resolved=[str(i) for i in raw.get("resolved") or () if i],
        version=int(raw.get("version") or STATE_VERSION),
        generated_at=str(raw.get("generated_at") or ""),
        signature=str(raw.get("signature") or ""),
    )
    if state.signature and state.signature != compute_signature(state.entries()):
        logger.warning("Build state signature mismatch detected at %s; ignoring it", path)
        return BuildState()
    return state


def previous_build_from_state(state: BuildState) -> BuildRecord | None:
    """Rebuild the previous build as far as the next build needs to see it."""
    if state.build is None:
        return None
    try:
        outcome = Outcome.from_string(state.outcome or "SUCCESS")
    except ValueError:
        outcome = Outcome.SUCCESS
    previous = BuildRecord(display_name=state.build, outcome=outcome)
    if state.carry_forward:
        previous.attach(CarryForwardSet(frozenset(state.carry_forward)))
    return previous


__all__ = [
    "BuildDocumentError",
    "BuildState",
    "compute_signature",
    "load_build_document",
    "load_build_state",
    "parse_build",
    "persist_build_state",
    "previous_build_from_state",
    "state_from_build",
]
