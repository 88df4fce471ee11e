"""Centralized retry / backoff helpers.

Provides ``run_with_retries`` which encapsulates exponential backoff with
jitter for transient tracker failures (rate limiting, gateway errors, dropped
connections).

Environment overrides:
  ISSUELINK_RETRY_ATTEMPTS (default 3)
  ISSUELINK_RETRY_BASE (seconds base, default 0.5)
  ISSUELINK_RETRY_MAX_SLEEP (cap in seconds, unset = no cap)

The caller supplies a thunk returning the desired result or raising
:class:`~issuelink.tracker.TrackerError`. Only transient errors trigger a
retry; other failures propagate immediately.
"""

from __future__ import annotations

import os
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

import requests

from .logging import get_logger
from .tracker import IssueAccessError, TrackerError

T = TypeVar("T")

TRANSIENT_STATUSES = frozenset({429, 502, 503, 504})
TRANSIENT_TOKENS = (
    "rate limit",
    "connection aborted",
    "connection reset",
    "timed out",
)

_JITTER = random.SystemRandom()


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


@dataclass
class RetryConfig:
    attempts: int = field(default_factory=lambda: _env_int("ISSUELINK_RETRY_ATTEMPTS", 3))
    base_sleep: float = field(default_factory=lambda: _env_float("ISSUELINK_RETRY_BASE", 0.5))


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, IssueAccessError):
        return False
    if isinstance(exc.__cause__, (requests.ConnectionError, requests.Timeout)):
        return True
    status = getattr(exc, "status", None)
    if status in TRANSIENT_STATUSES:
        return True
    low = str(exc).lower()
    return any(tok in low for tok in TRANSIENT_TOKENS)


def _parse_retry_after(exc: TrackerError) -> float | None:
    hint = exc.retry_after
    if hint is None:
        return None
    try:
        val = float(hint)
    except (TypeError, ValueError):
        return None
    return val if val > 0 else None


def _compute_sleep(attempt: int, cfg: RetryConfig, exc: TrackerError) -> float:
    explicit = _parse_retry_after(exc)
    backoff = cfg.base_sleep * (2 ** (attempt - 1)) + _JITTER.uniform(0, 0.25)
    sleep_for: float = explicit if explicit is not None else backoff
    max_cap_env = os.environ.get("ISSUELINK_RETRY_MAX_SLEEP")
    if max_cap_env:
        try:
            cap = float(max_cap_env)
        except ValueError:
            return sleep_for
        if cap >= 0:
            sleep_for = min(sleep_for, cap)
    return sleep_for


def run_with_retries(fn: Callable[[], T], *, cfg: RetryConfig | None = None) -> T:
    cfg = cfg or RetryConfig()
    attempts = max(1, cfg.attempts)
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except TrackerError as exc:
            if attempt >= attempts or not is_transient(exc):
                raise
            sleep_for = _compute_sleep(attempt, cfg, exc)
            get_logger().warning(
                f"[retry] transient error, attempt {attempt}/{attempts}, sleeping {sleep_for:.2f}s",
                error=str(exc),
            )
            time.sleep(sleep_for)
    raise RuntimeError("retry logic exited unexpectedly")  # pragma: no cover


__all__ = ["RetryConfig", "run_with_retries", "is_transient"]
