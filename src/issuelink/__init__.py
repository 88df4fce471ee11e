"""IssueLink - link CI builds to the issues their changes mention.

High-level public API (stable):

from issuelink import BuildRecord, BuildConsole, IssueUpdater, load_config

cfg = load_config('issuelink.config.yaml')
console = BuildConsole(sys.stdout)
updater = cfg.build_issue_updater()
updater.perform(build, cfg.build_site(), console, cfg.root_url)

``build`` is anything implementing :class:`issuelink.build.Build`; the
bundled :class:`BuildRecord` covers builds described as plain data.
"""

from __future__ import annotations

from .build import Build, BuildRecord
from .collector import DefaultIssueSelector, ExplicitIssueSelector, IssueSelector, collect
from .comments import compose_comment
from .config import LinkConfig, load_config
from .extractor import extract_issue_ids
from .logging import BuildConsole
from .models import (
    BuildUpdateResult,
    CarryForwardSet,
    ChangeEntry,
    DependencyChange,
    DroppedIssues,
    IssueReferenceParameter,
    Outcome,
    ResolvedIssue,
)
from .orchestrator import IssueUpdater, UpdatePolicy
from .resolver import get_or_resolve, live_issues, record_build_issues, resolve_issues
from .submitters import CustomFieldUpdater, submit_comments, submit_custom_field
from .substitution import substitute
from .tracker import IssueAccessError, SessionUnavailableError, TrackerError, TrackerSite

__version__ = "0.1.0"

__all__ = [
    "Build",
    "BuildRecord",
    "BuildConsole",
    "BuildUpdateResult",
    "CarryForwardSet",
    "ChangeEntry",
    "CustomFieldUpdater",
    "DefaultIssueSelector",
    "DependencyChange",
    "DroppedIssues",
    "ExplicitIssueSelector",
    "IssueAccessError",
    "IssueReferenceParameter",
    "IssueSelector",
    "IssueUpdater",
    "LinkConfig",
    "Outcome",
    "ResolvedIssue",
    "SessionUnavailableError",
    "TrackerError",
    "TrackerSite",
    "UpdatePolicy",
    "collect",
    "compose_comment",
    "extract_issue_ids",
    "get_or_resolve",
    "live_issues",
    "load_config",
    "record_build_issues",
    "resolve_issues",
    "submit_comments",
    "submit_custom_field",
    "substitute",
    "__version__",
]
