"""Environment-based tracker credentials.

Credentials are read from environment variables, optionally seeded from a
``.env`` file via python-dotenv.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

DOTENV_FALLBACKS = (".env", ".env.local")


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    username_var: str = "ISSUELINK_TRACKER_USER"
    token_var: str = "ISSUELINK_TRACKER_TOKEN"


class EnvironmentAuthManager:
    """Looks up tracker credentials in the environment and .env files."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self._dotenv_loaded = False
        if config.load_dotenv:
            self._load_dotenv()

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def _load_dotenv(self) -> None:
        candidates = [self.config.dotenv_path] if self.config.dotenv_path else list(DOTENV_FALLBACKS)
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                # Existing process variables win over the file.
                load_dotenv(str(env_path), override=False)
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                return

    def get_username(self) -> str | None:
        return self._lookup(self.config.username_var, ("JIRA_USER", "JIRA_EMAIL"))

    def get_token(self) -> str | None:
        return self._lookup(self.config.token_var, ("JIRA_API_TOKEN", "JIRA_TOKEN"))

    def _lookup(self, primary: str, alternatives: tuple[str, ...]) -> str | None:
        for name in (primary, *alternatives):
            raw = os.getenv(name)
            if raw is None:
                continue
            value = raw.strip()
            if value:
                self.logger.debug(f"Found tracker credential in {name}")
                return value
        return None

    def get_authentication_recommendations(self) -> list[str]:
        recommendations: list[str] = []
        if not self.get_username():
            recommendations.append(f"Set {self.config.username_var} (or JIRA_USER) to the tracker account")
        if not self.get_token():
            recommendations.append(
                f"Set {self.config.token_var} (or JIRA_API_TOKEN), or add it to a .env file"
            )
        return recommendations


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    """Factory function to create environment authentication manager."""
    if config is None:
        config = EnvAuthConfig()
    return EnvironmentAuthManager(config)


__all__ = ["EnvAuthConfig", "EnvironmentAuthManager", "create_env_auth_manager"]
