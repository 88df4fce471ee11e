"""IssueLink CLI.

Subcommands:
  extract     -> print issue ids found in commit messages (no tracker access)
  substitute  -> expand $NAME placeholders in a field value template
  validate    -> load the config, compile the issue pattern, check credentials
  update      -> link a finished build (JSON document) to its tracker issues
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Any

from issuelink.build_store import (
    BuildDocumentError,
    load_build_document,
    load_build_state,
    persist_build_state,
    previous_build_from_state,
    state_from_build,
)
from issuelink.collector import ExplicitIssueSelector
from issuelink.config import CONFIG_DEFAULT, ConfigError, LinkConfig
from issuelink.env_auth import EnvAuthConfig, create_env_auth_manager
from issuelink.extractor import extract_issue_ids
from issuelink.logging import BuildConsole
from issuelink.resolver import live_issues
from issuelink.runtime import execute_command, prepare_config
from issuelink.substitution import build_bindings, substitute
from issuelink.tracker import DEFAULT_ISSUE_PATTERN, compile_issue_pattern

STATE_DEFAULT = ".issuelink_state.json"

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="issuelink", description="Link CI builds to issue tracker issues"
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    pe = sub.add_parser("extract", help="Print issue ids found in commit messages")
    pe.add_argument("--config", help=f"Config file providing the issue pattern (default {CONFIG_DEFAULT})")
    pe.add_argument("--pattern", help="Issue pattern with one capturing group")
    pe.add_argument("messages", nargs="*", help="Messages to scan (default: read stdin)")

    ps = sub.add_parser("substitute", help="Expand $NAME placeholders in a template")
    ps.add_argument("template")
    ps.add_argument("--config", help=argparse.SUPPRESS)
    ps.add_argument(
        "--var",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Binding (repeatable); wins over environment variables",
    )
    ps.add_argument("--env", action="store_true", help="Also bind the process environment")

    pv = sub.add_parser("validate", help="Validate configuration and credentials")
    pv.add_argument("--config", default=CONFIG_DEFAULT)

    pu = sub.add_parser("update", help="Update tracker issues for a finished build")
    pu.add_argument("--config", default=CONFIG_DEFAULT)
    pu.add_argument("--build", required=True, help="JSON build document")
    pu.add_argument("--state", help=f"Carry-forward state file (default {STATE_DEFAULT} next to config)")
    pu.add_argument("--root-url", help="Override ci.root_url")
    pu.add_argument("--issues", help="Comma-separated issue ids to update instead of scanning")
    return p


def _read_messages(args: argparse.Namespace) -> list[str]:
    if args.messages:
        return list(args.messages)
    return [sys.stdin.read()]


def _cmd_extract(cfg: LinkConfig | None, args: argparse.Namespace) -> int:
    pattern = args.pattern or (cfg.issue_pattern if cfg else DEFAULT_ISSUE_PATTERN)
    console = BuildConsole(sys.stderr)
    ids: set[str] = set()
    for message in _read_messages(args):
        ids |= extract_issue_ids(message, compile_issue_pattern(pattern), console)
    for issue_id in sorted(ids):
        print(issue_id)
    return 0


def _parse_vars(pairs: list[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise SystemExit(f"[substitute] invalid --var {pair!r}; expected NAME=VALUE")
        out[name] = value
    return out


def _cmd_substitute(args: argparse.Namespace) -> int:
    environment = dict(os.environ) if args.env else {}
    bindings = build_bindings(environment, _parse_vars(args.var))
    print(substitute(args.template, bindings) or "")
    return 0


def _cmd_validate(cfg: LinkConfig) -> int:
    print(f"[validate] issue pattern: {cfg.issue_pattern}")
    problems: list[str] = []
    if compile_issue_pattern(cfg.issue_pattern).groups < 1:
        problems.append("tracker.issue_pattern must define a capturing group")
    if not cfg.tracker_url:
        problems.append("tracker.url is not configured")
    if not cfg.root_url:
        problems.append("ci.root_url is not configured")
    auth = create_env_auth_manager(
        EnvAuthConfig(load_dotenv=cfg.env_auth_load_dotenv, dotenv_path=cfg.env_auth_dotenv_path)
    )
    warnings: list[str] = []
    if not cfg.tracker_username or not cfg.tracker_token:
        warnings.extend(auth.get_authentication_recommendations())
    for warning in warnings:
        print(f"[validate] warning: {warning}")
    if problems:
        for problem in problems:
            print(f"[validate] {problem}", file=sys.stderr)
        return 1
    print("[validate] ok")
    return 0


def _state_path(cfg: LinkConfig, args: argparse.Namespace) -> Path:
    if args.state:
        return Path(args.state)
    return cfg.source_file.parent / STATE_DEFAULT


def _cmd_update(cfg: LinkConfig, args: argparse.Namespace) -> int:
    state_path = _state_path(cfg, args)
    previous = previous_build_from_state(load_build_state(state_path))
    build = load_build_document(Path(args.build), previous)
    build.repository_browser = cfg.build_repository_browser()
    initial_outcome = build.outcome

    console = BuildConsole(sys.stdout, build.display_name)
    site = cfg.build_site()
    updater = cfg.build_issue_updater()
    if args.issues:
        updater.selector = ExplicitIssueSelector([i for i in args.issues.split(",") if i.strip()])
    updater.perform(build, site, console, cfg.root_url)

    field_updater = cfg.build_custom_field_updater()
    if field_updater is not None:
        field_updater.perform(build, site, console)

    persist_build_state(state_path, state_from_build(build))
    live = [issue.id for issue in live_issues(build)]
    resolved = ", ".join(live) if live else "none"
    print(f"[update] {build.display_name}: resolved issues: {resolved}; outcome {build.outcome.name}")
    return 0 if build.outcome == initial_outcome else 1


def _require_cfg(cfg: LinkConfig | None) -> LinkConfig:
    if cfg is None:  # pragma: no cover - defensive guard
        raise RuntimeError("Configuration not loaded")
    return cfg


def _build_handlers(args: argparse.Namespace, cfg: LinkConfig | None) -> dict[str, Any]:
    return {
        "extract": lambda: _cmd_extract(cfg, args),
        "substitute": lambda: _cmd_substitute(args),
        "validate": lambda: _cmd_validate(_require_cfg(cfg)),
        "update": lambda: _cmd_update(_require_cfg(cfg), args),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        cfg = prepare_config(args)
        handler = _build_handlers(args, cfg).get(args.cmd)
        if handler is None:  # pragma: no cover - argparse enforces valid choices
            parser.print_help()
            return 1
        return execute_command(handler, args, cfg, args.cmd)
    except (ConfigError, BuildDocumentError) as exc:
        print(f"[{args.cmd}] {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
