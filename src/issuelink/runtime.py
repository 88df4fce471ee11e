"""Runtime helpers for IssueLink CLI orchestration."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from issuelink.config import LinkConfig, load_config
from issuelink.logging import configure_logging, get_logger

# Commands that only read the config when --config is given explicitly.
CONFIG_OPTIONAL = {"extract", "substitute"}


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def prepare_config(
    args: Any, *, loader: Callable[[str], LinkConfig] = load_config
) -> LinkConfig | None:
    """Load LinkConfig for the given argparse namespace and apply logging settings."""
    config_path = getattr(args, "config", None)
    if getattr(args, "cmd", None) in CONFIG_OPTIONAL and (
        config_path is None or not Path(config_path).exists()
    ):
        return None
    if config_path is None:
        raise AttributeError("Command namespace is missing 'config' attribute")
    cfg = loader(config_path)
    root_override = getattr(args, "root_url", None)
    if root_override:
        cfg.root_url = root_override
    level = "DEBUG" if getattr(args, "verbose", False) else cfg.logging_level
    configure_logging(json_logging=cfg.logging_json_enabled, level=level)
    return cfg


def execute_command(
    handler: _HandlerCallable, args: Any, cfg: LinkConfig | None, command: str
) -> int:
    """Execute a command handler, logging its duration and exit code."""
    start = time.monotonic()
    try:
        result = handler()
        exit_code = int(result) if result is not None else 0
    except Exception as exc:
        get_logger().log_error(f"command {command} failed", error=str(exc))
        raise
    duration_ms = max(0.0, time.monotonic() - start) * 1000
    get_logger().log_performance(f"cli_{command}", duration_ms, exit_code=exit_code)
    return exit_code


__all__ = ["prepare_config", "execute_command"]
