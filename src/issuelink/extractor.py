from __future__ import annotations

import re

from .logging import BuildConsole, get_logger
from .tracker import compile_issue_pattern


def extract_issue_ids(
    text: str | None,
    pattern: str | re.Pattern[str],
    console: BuildConsole | None = None,
) -> set[str]:
    """Return the upper-cased first capture group of every match in ``text``.

    A pattern without a capturing group is a configuration error: one warning
    is written to ``console`` and nothing is extracted.
    """
    compiled = compile_issue_pattern(pattern)
    if compiled.groups < 1:
        message = f"Warning: The issue pattern {compiled.pattern} doesn't define a capturing group!"
        if console is not None:
            console.println(message)
        else:
            get_logger().warning(message)
        return set()
    if not text:
        return set()
    ids: set[str] = set()
    for match in compiled.finditer(text):
        token = match.group(1)
        if token:
            ids.add(token.upper())
    return ids


__all__ = ["extract_issue_ids"]
