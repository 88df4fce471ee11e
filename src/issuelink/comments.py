"""Comment rendering for build notifications.

Example (plain text)::

    SUCCESS: Integrated in Foo #12 (See [http://ci/job/Foo/12/])
    PROJ-1: fix bug (alice: [https://git.example.com/commit/9af8e4c])

Each issue gets its own comment body: only the changes whose message mentions
that issue are listed.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import quote

from .browsers import LinkResolutionError, RepositoryBrowser, revision_of
from .build import Build
from .logging import get_logger
from .models import ChangeEntry, Outcome, ResolvedIssue

WIKI_TEMPLATE = "{outcome}: Integrated in !{root}images/16x16/{icon}! [{name}|{url}]\n{changes}"
PLAIN_TEMPLATE = "{outcome}: Integrated in {name} (See [{url}])\n{changes}"

_URL_SAFE = ":/?#[]@!$&'()*+,;=%~"


def encode_url(url: str) -> str:
    return quote(url, safe=_URL_SAFE)


def _change_link(entry: ChangeEntry, browser: RepositoryBrowser | None) -> str | None:
    if browser is None:
        return None
    try:
        return browser.changeset_link(entry)
    except LinkResolutionError as exc:
        get_logger().warning(f"Failed to calculate repository browser link: {exc}")
        return None


def _affected_paths(entry: ChangeEntry) -> list[str]:
    if entry.affected_files is None:
        get_logger().warning("Change does not list affected files; falling back to affected paths.")
        return [str(path) for path in entry.affected_paths]
    return [affected.path for affected in entry.affected_files]


def _mention_pattern(issue_id: str) -> re.Pattern[str]:
    # PROJ-1 must not match inside PROJ-10 or SUBPROJ-1
    return re.compile(rf"(?<![A-Za-z0-9-]){re.escape(issue_id)}(?![A-Za-z0-9])", re.IGNORECASE)


def render_change_log(
    changes: Iterable[ChangeEntry],
    issue_id: str | None,
    *,
    wiki_style: bool,
    record_scm_changes: bool,
    browser: RepositoryBrowser | None = None,
) -> str:
    """Render the changes mentioning ``issue_id`` (all changes when ``None``)."""
    lines: list[str] = []
    mention = _mention_pattern(issue_id) if issue_id else None
    for change in changes:
        message = change.message or ""
        if mention is not None and not mention.search(message):
            continue
        line = message
        revision = revision_of(change)
        if revision is not None:
            url = _change_link(change, browser)
            attribution = f"{change.author}: " if change.author and change.author.strip() else ""
            if url and url.strip():
                link = f"[{revision}|{url}]" if wiki_style else f"[{url}]"
            else:
                link = f"rev {revision}"
            line += f" ({attribution}{link})"
        lines.append(line + "\n")
        if record_scm_changes:
            lines.extend(f"* {path}\n" for path in _affected_paths(change))
    return "".join(lines)


def compose_comment(
    *,
    root_url: str,
    build_name: str,
    build_url: str,
    outcome: Outcome,
    changes: Iterable[ChangeEntry],
    issue_id: str | None,
    wiki_style: bool = False,
    record_scm_changes: bool = False,
    browser: RepositoryBrowser | None = None,
) -> str:
    template = WIKI_TEMPLATE if wiki_style else PLAIN_TEMPLATE
    return template.format(
        outcome=outcome.name,
        root=root_url,
        icon=outcome.icon,
        name=build_name,
        url=encode_url(build_url),
        changes=render_change_log(
            changes,
            issue_id,
            wiki_style=wiki_style,
            record_scm_changes=record_scm_changes,
            browser=browser,
        ),
    )


def absolute_build_url(root_url: str, build: Build) -> str:
    if build.url.startswith(("http://", "https://")):
        return build.url
    return root_url.rstrip("/") + "/" + build.url.lstrip("/")


def compose_build_comment(
    build: Build,
    issue: ResolvedIssue,
    root_url: str,
    *,
    wiki_style: bool = False,
    record_scm_changes: bool = False,
) -> str:
    """Comment for ``issue`` describing ``build``."""
    if not root_url.endswith("/"):
        root_url += "/"
    return compose_comment(
        root_url=root_url,
        build_name=build.display_name,
        build_url=absolute_build_url(root_url, build),
        outcome=build.outcome,
        changes=build.change_set,
        issue_id=issue.id,
        wiki_style=wiki_style,
        record_scm_changes=record_scm_changes,
        browser=build.repository_browser,
    )


__all__ = [
    "compose_comment",
    "compose_build_comment",
    "render_change_log",
    "absolute_build_url",
    "encode_url",
]
