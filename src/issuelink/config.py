from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml

from .browsers import TemplateRepositoryBrowser
from .env_auth import EnvAuthConfig, create_env_auth_manager
from .models import Outcome
from .orchestrator import IssueUpdater, UpdatePolicy
from .submitters import CustomFieldUpdater
from .tracker import DEFAULT_ISSUE_PATTERN, TrackerSite

CONFIG_DEFAULT = "issuelink.config.yaml"


class ConfigError(RuntimeError):
    pass


@dataclass
class LinkConfig:
    version: int
    source_file: Path
    # CI
    root_url: str | None
    # Tracker site
    tracker_url: str | None
    issue_pattern: str
    group_visibility: str | None
    role_visibility: str | None
    tracker_username: str | None
    tracker_token: str | None
    # Comment updater
    update_for_all_outcomes: bool
    minimum_outcome: Outcome
    wiki_style_comments: bool
    record_scm_changes: bool
    # Custom field updater
    custom_field_id: str | None
    custom_field_value: str | None
    custom_field_minimum_outcome: Outcome
    # Repository browser
    changeset_url: str | None
    # Logging configuration
    logging_json_enabled: bool
    logging_level: str
    # Environment authentication configuration
    env_auth_load_dotenv: bool
    env_auth_dotenv_path: str | None

    def build_site(self) -> TrackerSite | None:
        if not self.tracker_url:
            return None
        return TrackerSite(
            url=self.tracker_url,
            issue_pattern=re.compile(self.issue_pattern),
            group_visibility=self.group_visibility,
            role_visibility=self.role_visibility,
            username=self.tracker_username,
            token=self.tracker_token,
        )

    def build_issue_updater(self) -> IssueUpdater:
        return IssueUpdater(
            policy=UpdatePolicy(
                update_for_all_outcomes=self.update_for_all_outcomes,
                minimum_outcome=self.minimum_outcome,
            ),
            wiki_style_comments=self.wiki_style_comments,
            record_scm_changes=self.record_scm_changes,
        )

    def build_custom_field_updater(self) -> CustomFieldUpdater | None:
        if not self.custom_field_id:
            return None
        return CustomFieldUpdater(
            field_id=self.custom_field_id,
            field_value=self.custom_field_value,
            minimum_outcome=self.custom_field_minimum_outcome,
        )

    def build_repository_browser(self) -> TemplateRepositoryBrowser | None:
        if not self.changeset_url:
            return None
        return TemplateRepositoryBrowser(self.changeset_url)


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        return os.getenv(value[1:], None)
    return value


def _outcome(value: Any, default: Outcome, key: str) -> Outcome:
    if value is None:
        return default
    try:
        return Outcome.from_string(str(value))
    except ValueError as exc:
        raise ConfigError(f"Invalid outcome for {key}: {value!r}") from exc


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {}) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return cast(dict[str, Any], value)


def load_config(path: str | Path) -> LinkConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        loaded = yaml.safe_load(p.read_text(encoding='utf-8'))
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if loaded is not None and not isinstance(loaded, dict):
        raise ConfigError(f'Configuration root must be a mapping: {p}')
    raw = cast(dict[str, Any], loaded or {})
    ci = _section(raw, 'ci')
    tracker = _section(raw, 'tracker')
    updater = _section(raw, 'updater')
    custom_field = _section(raw, 'custom_field')
    browser = _section(raw, 'repository_browser')
    logging_config = _section(raw, 'logging')
    env_auth = _section(raw, 'environment')

    pattern = tracker.get('issue_pattern') or DEFAULT_ISSUE_PATTERN
    try:
        re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f'Invalid tracker.issue_pattern {pattern!r}: {exc}') from exc

    auth = create_env_auth_manager(
        EnvAuthConfig(
            load_dotenv=bool(env_auth.get('load_dotenv', True)),
            dotenv_path=env_auth.get('dotenv_path'),
        )
    )
    username = _resolve_env_var(tracker.get('username')) or auth.get_username()
    token = _resolve_env_var(tracker.get('token')) or auth.get_token()

    return LinkConfig(
        version=int(raw.get('version', 1)),
        source_file=p,
        root_url=_resolve_env_var(ci.get('root_url')),
        tracker_url=_resolve_env_var(tracker.get('url')),
        issue_pattern=pattern,
        group_visibility=tracker.get('group_visibility') or None,
        role_visibility=tracker.get('role_visibility') or None,
        tracker_username=username,
        tracker_token=token,
        update_for_all_outcomes=bool(updater.get('update_for_all_outcomes', False)),
        minimum_outcome=_outcome(updater.get('minimum_outcome'), Outcome.UNSTABLE, 'updater.minimum_outcome'),
        wiki_style_comments=bool(updater.get('wiki_style_comments', False)),
        record_scm_changes=bool(updater.get('record_scm_changes', False)),
        custom_field_id=custom_field.get('field_id') or None,
        custom_field_value=custom_field.get('value'),
        custom_field_minimum_outcome=_outcome(
            custom_field.get('minimum_outcome'), Outcome.SUCCESS, 'custom_field.minimum_outcome'
        ),
        changeset_url=browser.get('changeset_url') or None,
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=logging_config.get('level', 'INFO'),
        env_auth_load_dotenv=bool(env_auth.get('load_dotenv', True)),
        env_auth_dotenv_path=env_auth.get('dotenv_path'),
    )


__all__ = ["ConfigError", "LinkConfig", "load_config", "CONFIG_DEFAULT"]
