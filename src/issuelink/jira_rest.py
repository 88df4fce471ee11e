"""Jira REST (v2) implementation of the tracker session."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import requests

from .retry import RetryConfig, run_with_retries
from .tracker import IssueAccessError, SessionUnavailableError, TrackerError

if TYPE_CHECKING:
    from .tracker import TrackerSite

API_PREFIX = "/rest/api/2"
USER_AGENT = "issuelink-rest/0.1.0"
HTTP_ERROR_STATUS = 400
ACCESS_DENIED_STATUSES = frozenset({401, 403, 404})
REQUEST_TIMEOUT = 30


@dataclass
class JiraRestSession:
    """Thin wrapper over the Jira REST API using HTTP basic auth."""

    base_url: str
    username: str
    token: str
    session: requests.Session | None = None
    retry: RetryConfig | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        self._session.auth = (self.username, self.token)
        self._session.headers.setdefault("Accept", "application/json")
        self._session.headers.setdefault("Content-Type", "application/json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    @classmethod
    def connect(cls, site: TrackerSite) -> JiraRestSession:
        """Open a session for ``site`` and verify the credentials are accepted."""
        if not site.username or not site.token:
            raise SessionUnavailableError(f"Remote access to {site.url} is not configured")
        client = cls(base_url=site.url, username=site.username, token=site.token)
        try:
            client._request("GET", "/myself")
        except TrackerError as exc:
            raise SessionUnavailableError(
                f"Jira at {site.url} rejected the session: {exc}", status=exc.status
            ) from exc
        return client

    # ---- REST helpers -------------------------------------------------
    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{API_PREFIX}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = self._url(path)

        def _run() -> Any:
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    timeout=REQUEST_TIMEOUT,
                )
            except requests.RequestException as exc:
                raise TrackerError(f"Jira API {method} {url} failed: {exc}") from exc
            if response.status_code >= HTTP_ERROR_STATUS:
                error_cls = (
                    IssueAccessError if response.status_code in ACCESS_DENIED_STATUSES else TrackerError
                )
                raise error_cls(
                    f"Jira API {method} {url} failed with {response.status_code}",
                    status=response.status_code,
                    response_text=response.text,
                    retry_after=response.headers.get("Retry-After"),
                )
            return response

        response = run_with_retries(_run, cfg=self.retry)
        if response.text:
            try:
                return response.json()
            except ValueError:
                return response.text
        return None

    # ---- session operations -----------------------------------------
    def exists_issue(self, issue_id: str) -> bool:
        try:
            self._request("GET", f"/issue/{issue_id}", params={"fields": "summary"})
        except IssueAccessError as exc:
            if exc.status == 404:  # noqa: PLR2004
                return False
            raise
        return True

    def get_issue(self, issue_id: str) -> Mapping[str, Any]:
        data = self._request("GET", f"/issue/{issue_id}")
        if not isinstance(data, dict):
            raise TrackerError(f"Unexpected payload for issue {issue_id}")
        return data

    def add_comment(
        self,
        issue_id: str,
        body: str,
        group_visibility: str | None = None,
        role_visibility: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {"body": body}
        if group_visibility:
            payload["visibility"] = {"type": "group", "value": group_visibility}
        elif role_visibility:
            payload["visibility"] = {"type": "role", "value": role_visibility}
        self._request("POST", f"/issue/{issue_id}/comment", json_body=payload)

    def update_custom_field(self, issue_id: str, field_id: str, value: str | None) -> None:
        self._request("PUT", f"/issue/{issue_id}", json_body={"fields": {field_id: value}})


__all__ = ["JiraRestSession"]
