"""GitHub integration built on PyGithub.

Every action takes a ``repository`` parameter ("owner/repo") so one integration
instance can serve workflows targeting different repositories.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping
from typing import Any

from github import Auth, Github, GithubException
from github.PullRequest import PullRequest
from github.Repository import Repository

from step_orchestrator.integrations.base import (
    ActionSpec,
    Integration,
    IntegrationHealth,
    IntegrationResult,
)

logger = logging.getLogger(__name__)

GITHUB_ID = "github"


def _pull_request_data(pr: PullRequest) -> dict[str, Any]:
    return {
        "number": pr.number,
        "title": pr.title,
        "state": pr.state,
        "draft": bool(pr.draft),
        "merged": bool(pr.merged),
        "head": pr.head.ref,
        "base": pr.base.ref,
        "url": pr.html_url,
        "links": {"html": {"href": pr.html_url}},
    }


def _error_message(e: GithubException) -> str:
    data = e.data if isinstance(e.data, dict) else {}
    message = data.get("message") if isinstance(data.get("message"), str) else None
    return f"GitHub API error {e.status}: {message or e}"


class GitHubIntegration(Integration):
    def __init__(
        self,
        *,
        token: str,
        base_url: str = "https://api.github.com",
        github_api: Github | None = None,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._github = github_api
        self._lock = threading.Lock()

    @property
    def id(self) -> str:
        return GITHUB_ID

    @property
    def name(self) -> str:
        return "GitHub"

    def is_configured(self) -> bool:
        return bool(self._token.strip()) or self._github is not None

    def _api(self) -> Github:
        with self._lock:
            if self._github is None:
                self._github = Github(auth=Auth.Token(self._token), base_url=self._base_url)
            return self._github

    def _repo(self, params: Mapping[str, Any]) -> Repository:
        repository = str(params.get("repository") or "").strip()
        if not repository:
            raise ValueError("repository parameter is required ('owner/repo')")
        return self._api().get_repo(repository)

    def health_check(self) -> IntegrationHealth:
        if not self.is_configured():
            return IntegrationHealth.down(self.id, "Not configured")
        start = time.monotonic()
        try:
            login = self._api().get_user().login
        except GithubException as e:
            logger.error("GitHub health check failed", extra={"status": e.status})
            return IntegrationHealth.down(self.id, _error_message(e))
        logger.debug("GitHub health check ok", extra={"login": login})
        return IntegrationHealth.up(self.id, int((time.monotonic() - start) * 1000))

    def actions(self) -> Mapping[str, ActionSpec]:
        return {
            "getIssue": ActionSpec(
                "getIssue", self.get_issue, {"repository": str, "issueNumber": int}
            ),
            "addComment": ActionSpec(
                "addComment",
                self.add_comment,
                {"repository": str, "issueNumber": int, "comment": str},
            ),
            "createPullRequest": ActionSpec(
                "createPullRequest",
                self.create_pull_request,
                {
                    "repository": str,
                    "title": str,
                    "head": str,
                    "base": str,
                    "body": str,
                    "draft": bool,
                },
            ),
            "getPullRequest": ActionSpec(
                "getPullRequest",
                self.get_pull_request,
                {"repository": str, "pullNumber": int},
            ),
            "listBranches": ActionSpec("listBranches", self.list_branches, {"repository": str}),
        }

    def get_issue(self, params: Mapping[str, Any]) -> IntegrationResult:
        number = params.get("issueNumber")
        try:
            issue = self._repo(params).get_issue(number)
        except GithubException as e:
            return IntegrationResult.failure(self.id, "getIssue", _error_message(e))
        return IntegrationResult.ok(
            self.id,
            "getIssue",
            f"Retrieved issue #{issue.number}",
            {
                "number": issue.number,
                "title": issue.title,
                "state": issue.state,
                "body": issue.body or "",
                "assignees": [a.login for a in issue.assignees],
                "url": issue.html_url,
            },
        )

    def add_comment(self, params: Mapping[str, Any]) -> IntegrationResult:
        number = params.get("issueNumber")
        try:
            comment = self._repo(params).get_issue(number).create_comment(
                str(params.get("comment") or "")
            )
        except GithubException as e:
            return IntegrationResult.failure(self.id, "addComment", _error_message(e))
        return IntegrationResult.ok(
            self.id,
            "addComment",
            f"Added comment to #{number}",
            {"issueNumber": number, "commentId": comment.id, "url": comment.html_url},
        )

    def create_pull_request(self, params: Mapping[str, Any]) -> IntegrationResult:
        title = str(params.get("title") or "")
        logger.info("Creating pull request", extra={"title": title})
        try:
            pr = self._repo(params).create_pull(
                title=title,
                body=str(params.get("body") or ""),
                head=str(params.get("head") or ""),
                base=str(params.get("base") or "main"),
                draft=bool(params.get("draft") or False),
            )
        except GithubException as e:
            return IntegrationResult.failure(self.id, "createPullRequest", _error_message(e))
        logger.info("Pull request created", extra={"pull_number": pr.number})
        return IntegrationResult.ok(
            self.id,
            "createPullRequest",
            f"Created pull request #{pr.number}",
            _pull_request_data(pr),
        )

    def get_pull_request(self, params: Mapping[str, Any]) -> IntegrationResult:
        number = params.get("pullNumber")
        try:
            pr = self._repo(params).get_pull(number)
        except GithubException as e:
            return IntegrationResult.failure(self.id, "getPullRequest", _error_message(e))
        return IntegrationResult.ok(
            self.id,
            "getPullRequest",
            f"Retrieved pull request #{pr.number}",
            _pull_request_data(pr),
        )

    def list_branches(self, params: Mapping[str, Any]) -> IntegrationResult:
        try:
            names = [b.name for b in self._repo(params).get_branches()]
        except GithubException as e:
            return IntegrationResult.failure(self.id, "listBranches", _error_message(e))
        return IntegrationResult.ok(
            self.id, "listBranches", f"Found {len(names)} branches", {"branches": names}
        )

    def close(self) -> None:
        with self._lock:
            if self._github is not None:
                self._github.close()
                self._github = None
