"""Repository browsers turn a change into a browsable URL."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .models import ChangeEntry


class LinkResolutionError(RuntimeError):
    """The browser could not compute a link for a change."""


class RepositoryBrowser(Protocol):
    def changeset_link(self, entry: ChangeEntry) -> str | None: ...


def revision_of(entry: ChangeEntry) -> str | None:
    """Return the commit id, falling back to a legacy ``revision`` attribute."""
    if entry.commit_id is not None:
        return entry.commit_id
    revision = getattr(entry, "revision", None)
    return str(revision) if revision is not None else None


@dataclass(frozen=True)
class TemplateRepositoryBrowser:
    """Formats ``{revision}`` and ``{author}`` into a fixed URL template.

    Example: ``https://github.com/acme/widgets/commit/{revision}``.
    """

    url_template: str

    def changeset_link(self, entry: ChangeEntry) -> str | None:
        revision = revision_of(entry)
        if revision is None:
            return None
        try:
            return self.url_template.format(revision=revision, author=entry.author)
        except (KeyError, IndexError, ValueError) as exc:
            raise LinkResolutionError(
                f"Cannot format {self.url_template!r} for revision {revision}: {exc}"
            ) from exc


__all__ = [
    "LinkResolutionError",
    "RepositoryBrowser",
    "TemplateRepositoryBrowser",
    "revision_of",
]
