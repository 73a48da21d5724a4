"""Jira Cloud integration (REST API v3, basic auth with an API token)."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

import requests

from step_orchestrator.integrations.base import (
    ActionSpec,
    Integration,
    IntegrationHealth,
    IntegrationResult,
)

logger = logging.getLogger(__name__)

JIRA_ID = "jira"


def _adf(text: str) -> dict[str, object]:
    """Wrap plain text in an Atlassian Document Format paragraph."""

    return {
        "type": "doc",
        "version": 1,
        "content": [{"type": "paragraph", "content": [{"type": "text", "text": text}]}],
    }


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class JiraIntegration(Integration):
    def __init__(
        self,
        *,
        url: str,
        email: str,
        token: str,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.auth = (email, token)
        self._session.headers.update({"Accept": "application/json"})
        self._token = token

    @property
    def id(self) -> str:
        return JIRA_ID

    @property
    def name(self) -> str:
        return "Atlassian Jira"

    def is_configured(self) -> bool:
        return bool(self._url and self._token)

    def health_check(self) -> IntegrationHealth:
        if not self.is_configured():
            return IntegrationHealth.down(self.id, "Not configured")
        start = time.monotonic()
        try:
            resp = self._session.get(f"{self._url}/rest/api/3/myself", timeout=self._timeout)
        except requests.RequestException as e:
            logger.error("Jira health check failed", extra={"error": str(e)})
            return IntegrationHealth.down(self.id, str(e))
        if resp.ok:
            return IntegrationHealth.up(self.id, _elapsed_ms(start))
        return IntegrationHealth.down(self.id, f"Unexpected response: {resp.status_code}")

    def actions(self) -> Mapping[str, ActionSpec]:
        return {
            "getIssue": ActionSpec("getIssue", self.get_issue, {"issueKey": str}),
            "createIssue": ActionSpec(
                "createIssue",
                self.create_issue,
                {"projectKey": str, "issueType": str, "summary": str, "description": str},
            ),
            "transitionIssue": ActionSpec(
                "transitionIssue",
                self.transition_issue,
                {"issueKey": str, "transitionName": str},
            ),
            "addComment": ActionSpec(
                "addComment", self.add_comment, {"issueKey": str, "comment": str}
            ),
            "searchIssues": ActionSpec(
                "searchIssues", self.search_issues, {"jql": str, "maxResults": int}
            ),
        }

    def close(self) -> None:
        self._session.close()

    def _api(self, path: str) -> str:
        return f"{self._url}/rest/api/3/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        resp = self._session.request(method, self._api(path), timeout=self._timeout, **kwargs)
        resp.raise_for_status()
        return resp

    def get_issue(self, params: Mapping[str, Any]) -> IntegrationResult:
        issue_key = params.get("issueKey")
        start = time.monotonic()
        try:
            body = self._request("GET", f"issue/{issue_key}").json()
        except requests.RequestException as e:
            logger.error("Failed to get issue", extra={"issue_key": issue_key, "error": str(e)})
            return IntegrationResult.failure(self.id, "getIssue", str(e))
        return IntegrationResult.ok(
            self.id, "getIssue", f"Retrieved issue {issue_key}", body, _elapsed_ms(start)
        )

    def create_issue(self, params: Mapping[str, Any]) -> IntegrationResult:
        start = time.monotonic()
        fields = {
            "project": {"key": params.get("projectKey")},
            "issuetype": {"name": params.get("issueType") or "Task"},
            "summary": params.get("summary") or "",
            "description": _adf(str(params.get("description") or "")),
        }
        try:
            body = self._request("POST", "issue", json={"fields": fields}).json()
        except requests.RequestException as e:
            logger.error("Failed to create issue", extra={"error": str(e)})
            return IntegrationResult.failure(self.id, "createIssue", str(e))
        return IntegrationResult.ok(
            self.id, "createIssue", f"Created issue {body.get('key')}", body, _elapsed_ms(start)
        )

    def transition_issue(self, params: Mapping[str, Any]) -> IntegrationResult:
        issue_key = params.get("issueKey")
        transition_name = str(params.get("transitionName") or "")
        start = time.monotonic()
        try:
            available = self._request("GET", f"issue/{issue_key}/transitions").json()
            target = next(
                (
                    t
                    for t in available.get("transitions", [])
                    if str(t.get("name", "")).lower() == transition_name.lower()
                ),
                None,
            )
            if target is None:
                return IntegrationResult.failure(
                    self.id,
                    "transitionIssue",
                    f"Transition '{transition_name}' not available for {issue_key}",
                )
            self._request(
                "POST",
                f"issue/{issue_key}/transitions",
                json={"transition": {"id": target.get("id")}},
            )
        except requests.RequestException as e:
            logger.error(
                "Failed to transition issue", extra={"issue_key": issue_key, "error": str(e)}
            )
            return IntegrationResult.failure(self.id, "transitionIssue", str(e))
        return IntegrationResult.ok(
            self.id,
            "transitionIssue",
            f"Transitioned {issue_key} to {transition_name}",
            {"issueKey": issue_key, "newStatus": transition_name},
            _elapsed_ms(start),
        )

    def add_comment(self, params: Mapping[str, Any]) -> IntegrationResult:
        issue_key = params.get("issueKey")
        start = time.monotonic()
        try:
            self._request(
                "POST",
                f"issue/{issue_key}/comment",
                json={"body": _adf(str(params.get("comment") or ""))},
            )
        except requests.RequestException as e:
            logger.error("Failed to add comment", extra={"issue_key": issue_key, "error": str(e)})
            return IntegrationResult.failure(self.id, "addComment", str(e))
        return IntegrationResult.ok(
            self.id,
            "addComment",
            f"Added comment to {issue_key}",
            {"issueKey": issue_key},
            _elapsed_ms(start),
        )

    def search_issues(self, params: Mapping[str, Any]) -> IntegrationResult:
        jql = params.get("jql") or ""
        max_results = params.get("maxResults")
        if not isinstance(max_results, int):
            max_results = 20
        start = time.monotonic()
        try:
            body = self._request(
                "GET", "search", params={"jql": jql, "maxResults": max_results}
            ).json()
        except requests.RequestException as e:
            logger.error("Failed to search issues", extra={"jql": jql, "error": str(e)})
            return IntegrationResult.failure(self.id, "searchIssues", str(e))
        issues = body.get("issues", [])
        return IntegrationResult.ok(
            self.id, "searchIssues", f"Found {len(issues)} issues", body, _elapsed_ms(start)
        )
