from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import requests

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "issuesteward-rest/0.1.0"
HTTP_ERROR_STATUS = 400
REQUEST_TIMEOUT_SECONDS = 30


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub REST API returns an error or is unreachable."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


@dataclass
class GitHubRestClient:
    """Lightweight synchronous REST client for the issue endpoints we use.

    Requests are made exactly once; failures surface as ``GitHubAPIError``
    and callers decide whether they are fatal.
    """

    token: str
    repo: str
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("X-GitHub-Api-Version", "2022-11-28")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._session.headers,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise GitHubAPIError(f"GitHub API {method} {url} failed: {exc}") from exc
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if response.text:
            try:
                return response.json()
            except ValueError:
                return response.text
        return None

    def _expect_dict(self, data: Any, what: str) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise GitHubAPIError(f"Unexpected {what} response shape: {type(data).__name__}")
        return data

    # ---- Issue operations --------------------------------------------
    def search_issues(
        self,
        query: str,
        *,
        sort: str = "updated",
        order: str = "desc",
        per_page: int = 50,
    ) -> list[dict[str, Any]]:
        params = {"q": query, "sort": sort, "order": order, "per_page": per_page}
        data = self._request("GET", "/search/issues", params=params)
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []
        return [entry for entry in items if isinstance(entry, dict)]

    def create_issue(
        self,
        *,
        title: str,
        body: str,
        labels: Iterable[str] | None = None,
        assignees: Iterable[str] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": title, "body": body}
        if labels is not None:
            payload["labels"] = list(labels)
        assignee_list = list(assignees or [])
        if assignee_list:
            payload["assignees"] = assignee_list
        data = self._request("POST", f"/repos/{self.repo}/issues", json_body=payload)
        return self._expect_dict(data, "create issue")

    def update_issue(
        self,
        *,
        number: int,
        title: str | None = None,
        body: str | None = None,
        labels: Iterable[str] | None = None,
        assignees: Iterable[str] | None = None,
        state: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if title is not None:
            payload["title"] = title
        if body is not None:
            payload["body"] = body
        if labels is not None:
            payload["labels"] = list(labels)
        if assignees is not None:
            payload["assignees"] = list(assignees)
        if state is not None:
            payload["state"] = state
        data = self._request(
            "PATCH", f"/repos/{self.repo}/issues/{number}", json_body=payload
        )
        return self._expect_dict(data, "update issue")

    def create_comment(self, *, number: int, body: str) -> dict[str, Any]:
        data = self._request(
            "POST",
            f"/repos/{self.repo}/issues/{number}/comments",
            json_body={"body": body},
        )
        return self._expect_dict(data, "create comment")


__all__ = [
    "DEFAULT_API_URL",
    "GitHubAPIError",
    "GitHubRestClient",
]
