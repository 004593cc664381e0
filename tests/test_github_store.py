from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import pytest

from issuesteward.errors import SearchError, WriteError
from issuesteward.github_rest import GitHubAPIError, GitHubRestClient
from issuesteward.models import IssueState
from issuesteward.store import GitHubIssueStore, issue_from_api


def _payload(number: int, **overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "number": number,
        "title": f"Issue {number}",
        "body": "text",
        "labels": [{"name": "ci"}, {"name": "bug"}],
        "state": "open",
        "updated_at": "2026-10-17T11:59:00Z",
        "assignees": [{"login": "octocat"}],
        "html_url": f"https://github.com/acme/infra/issues/{number}",
        "user": {"login": "github-actions[bot]"},
    }
    data.update(overrides)
    return data


class _FakeRestClient(GitHubRestClient):
    def __init__(self, *, items: list[dict[str, Any]] | None = None, fail: bool = False):
        self.items = items or []
        self.fail = fail
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def _maybe_fail(self) -> None:
        if self.fail:
            raise GitHubAPIError("API rate limit exceeded", status=403)

    def search_issues(self, query: str, **kwargs: Any) -> list[dict[str, Any]]:  # type: ignore[override]
        self.calls.append(("search", {"query": query, **kwargs}))
        self._maybe_fail()
        return self.items

    def create_issue(self, **kwargs: Any) -> dict[str, Any]:  # type: ignore[override]
        self.calls.append(("create", kwargs))
        self._maybe_fail()
        return _payload(7, title=kwargs["title"], body=kwargs["body"])

    def update_issue(self, **kwargs: Any) -> dict[str, Any]:  # type: ignore[override]
        self.calls.append(("update", kwargs))
        self._maybe_fail()
        return _payload(kwargs["number"], state=kwargs.get("state") or "open")

    def create_comment(self, **kwargs: Any) -> dict[str, Any]:  # type: ignore[override]
        self.calls.append(("comment", kwargs))
        self._maybe_fail()
        return {"id": 55, "body": kwargs["body"]}


def test_issue_from_api_normalizes_payload():
    issue = issue_from_api(_payload(3))
    assert issue.number == 3
    assert issue.labels == frozenset({"ci", "bug"})
    assert issue.state is IssueState.OPEN
    assert issue.updated_at == datetime(2026, 10, 17, 11, 59, tzinfo=timezone.utc)
    assert issue.assignees == ("octocat",)
    assert issue.author == "github-actions[bot]"


def test_issue_from_api_tolerates_missing_fields():
    issue = issue_from_api({"number": "4", "body": None, "labels": ["raw"], "state": "CLOSED"})
    assert issue.number == 4
    assert issue.body == ""
    assert issue.labels == frozenset({"raw"})
    assert issue.state is IssueState.CLOSED
    assert issue.html_url is None


def test_search_drops_pull_requests():
    client = _FakeRestClient(items=[_payload(1), _payload(2, pull_request={"url": "x"})])
    store = GitHubIssueStore(client)
    found = asyncio.run(store.search("is:issue", per_page=20))
    assert [issue.number for issue in found] == [1]
    assert client.calls[0][1]["per_page"] == 20


def test_search_error_is_translated():
    store = GitHubIssueStore(_FakeRestClient(fail=True))
    with pytest.raises(SearchError) as excinfo:
        asyncio.run(store.search("repo:acme/infra is:issue"))
    assert excinfo.value.query == "repo:acme/infra is:issue"
    assert isinstance(excinfo.value.__cause__, GitHubAPIError)


@pytest.mark.parametrize("operation", ["create", "update", "comment"])
def test_write_errors_are_translated(operation: str):
    store = GitHubIssueStore(_FakeRestClient(fail=True))
    calls = {
        "create": lambda: store.create(title="t", body="b", labels=["x"]),
        "update": lambda: store.update(3, body="b"),
        "comment": lambda: store.create_comment(3, "hi"),
    }
    with pytest.raises(WriteError) as excinfo:
        asyncio.run(calls[operation]())
    assert excinfo.value.operation == operation


def test_update_passes_state_value():
    client = _FakeRestClient()
    store = GitHubIssueStore(client)
    issue = asyncio.run(store.update(3, state=IssueState.CLOSED))
    assert client.calls[0] == (
        "update",
        {"number": 3, "title": None, "body": None, "labels": None, "assignees": None, "state": "closed"},
    )
    assert issue.state is IssueState.CLOSED


def test_create_and_comment_round_trip():
    client = _FakeRestClient()
    store = GitHubIssueStore(client)
    issue = asyncio.run(store.create(title="New", body="Body", labels=["b", "a"], assignees=None))
    assert issue.number == 7
    assert client.calls[0][1]["labels"] == ["b", "a"]
    assert client.calls[0][1]["assignees"] == []
    comment = asyncio.run(store.create_comment(7, "hello"))
    assert comment.id == 55
    assert comment.issue_number == 7
