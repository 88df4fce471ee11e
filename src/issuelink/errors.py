"""Error taxonomy & redaction helpers.

Remote tracker errors are echoed to build consoles, which are often visible to
anyone with read access to the CI server. Everything that leaves this package
as a console line should pass through :func:`redact` first.

Public API:
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ATATT[A-Za-z0-9_\-=]{20,}"),  # Atlassian API tokens
    # Basic/Bearer credentials; the lookahead keeps plain prose like "basic configuration" intact
    re.compile(r"(?i)\b(basic|bearer)\s+(?=[A-Za-z0-9+/=._\-]*[0-9+/=])[A-Za-z0-9+/=._\-]{12,}"),
    re.compile(r"(?i)(token|password)=([^\s&]+)"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace credential-looking substrings with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    Tracker errors carrying an HTTP status are classified by status first;
    everything else falls back to keyword matching on the message.
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__
    status = getattr(exc, "status", None)

    if status == 404:  # noqa: PLR2004
        return ErrorInfo("tracker.not_found", redact(msg), name, details={"status": status})
    if status in (401, 403):
        return ErrorInfo("tracker.permission", redact(msg), name, details={"status": status})
    if status == 429 or "rate limit" in low:  # noqa: PLR2004
        return ErrorInfo("tracker.rate_limit", redact(msg), name, transient=True)
    if isinstance(status, int) and status >= 500:  # noqa: PLR2004
        return ErrorInfo("network", redact(msg), name, transient=True, details={"status": status})
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg), name, transient=True)
    if name == "ConfigError" or "yaml" in low:
        return ErrorInfo("config", redact(msg), name)
    return ErrorInfo("generic", redact(msg), name)


def describe_error(exc: BaseException) -> str:
    """One-line, redacted description suitable for a build console."""
    info = classify_error(exc)
    return f"{info.original_type} [{info.category}]: {info.message}"


__all__ = ["ErrorInfo", "classify_error", "redact", "describe_error"]
