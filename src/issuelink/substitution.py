from __future__ import annotations

import re
from collections.abc import Mapping

PLACEHOLDER_SIGIL = "$"


def substitute(template: str | None, bindings: Mapping[str, str]) -> str | None:
    """Replace ``$NAME`` with ``bindings[NAME]`` in a single pass.

    Replacement text is inserted literally and never expanded again. When two
    names share a prefix the longest one wins (``$BRANCH_NAME`` before
    ``$BRANCH``). Placeholders without a binding are left as they are.
    """
    if not template or not bindings:
        return template
    names = sorted((name for name in bindings if name), key=len, reverse=True)
    if not names:
        return template
    pattern = re.compile(
        re.escape(PLACEHOLDER_SIGIL) + "(" + "|".join(re.escape(name) for name in names) + ")"
    )
    return pattern.sub(lambda m: str(bindings[m.group(1)]), template)


def build_bindings(environment: Mapping[str, str], variables: Mapping[str, str]) -> dict[str, str]:
    """Merge environment and build variables; build variables win on collision."""
    merged: dict[str, str] = dict(environment)
    merged.update(variables)
    return merged


__all__ = ["substitute", "build_bindings", "PLACEHOLDER_SIGIL"]
