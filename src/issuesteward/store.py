"""Searchable issue store abstraction.

The remote tracker is the only shared mutable resource. Everything above
this module talks to it through ``SearchableIssueStore``: a search-only
lookup (there is no exact-key read) plus create / update / comment writes.

Two implementations:
 - ``GitHubIssueStore`` drives the synchronous REST client from an executor
   so callers stay on the event loop.
 - ``InMemoryIssueStore`` reproduces the search qualifiers we emit
   (``repo:``, ``is:``, ``state:``, ``label:``, ``author:``) with label-set
   containment semantics, for tests and local dry runs.
"""

from __future__ import annotations

import asyncio
import functools
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Protocol, TypeVar

from .errors import SearchError, WriteError
from .github_rest import GitHubAPIError, GitHubRestClient
from .models import Comment, Issue, IssueState, utcnow

T = TypeVar("T")


class SearchableIssueStore(Protocol):
    async def search(
        self, query: str, *, sort: str = "updated", order: str = "desc", per_page: int = 50
    ) -> list[Issue]: ...

    async def create(
        self,
        *,
        title: str,
        body: str,
        labels: Iterable[str],
        assignees: Iterable[str] | None = None,
    ) -> Issue: ...

    async def update(
        self,
        number: int,
        *,
        title: str | None = None,
        body: str | None = None,
        labels: Iterable[str] | None = None,
        assignees: Iterable[str] | None = None,
        state: IssueState | None = None,
    ) -> Issue: ...

    async def create_comment(self, number: int, body: str) -> Comment: ...


def _parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, str) and raw:
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            pass
    return utcnow()


def _names(raw: Any, key: str) -> list[str]:
    names: list[str] = []
    if isinstance(raw, list):
        for entry in raw:
            if isinstance(entry, dict):
                value = entry.get(key)
                if isinstance(value, str):
                    names.append(value)
            elif isinstance(entry, str):
                names.append(entry)
    return names


def issue_from_api(entry: dict[str, Any]) -> Issue:
    """Normalize a REST issue payload into an ``Issue``."""
    user = entry.get("user")
    author = user.get("login") if isinstance(user, dict) else None
    state_raw = str(entry.get("state") or "open").lower()
    return Issue(
        number=int(entry["number"]),
        title=str(entry.get("title") or ""),
        body=entry.get("body") or "",
        labels=frozenset(_names(entry.get("labels"), "name")),
        state=IssueState.CLOSED if state_raw == "closed" else IssueState.OPEN,
        updated_at=_parse_timestamp(entry.get("updated_at")),
        assignees=tuple(_names(entry.get("assignees"), "login")),
        html_url=entry.get("html_url") if isinstance(entry.get("html_url"), str) else None,
        author=author if isinstance(author, str) else None,
    )


def comment_from_api(number: int, entry: dict[str, Any]) -> Comment:
    return Comment(
        id=int(entry.get("id") or 0),
        issue_number=number,
        body=str(entry.get("body") or ""),
        html_url=entry.get("html_url") if isinstance(entry.get("html_url"), str) else None,
    )


class GitHubIssueStore:
    """``SearchableIssueStore`` backed by the GitHub REST API."""

    def __init__(self, client: GitHubRestClient):
        self.client = client

    async def _call(self, fn: Callable[..., T], /, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, **kwargs))

    async def search(
        self, query: str, *, sort: str = "updated", order: str = "desc", per_page: int = 50
    ) -> list[Issue]:
        try:
            items = await self._call(
                self.client.search_issues, query=query, sort=sort, order=order, per_page=per_page
            )
        except GitHubAPIError as exc:
            raise SearchError(str(exc), query=query) from exc
        # The search endpoint also returns pull requests.
        return [issue_from_api(item) for item in items if "pull_request" not in item]

    async def create(
        self,
        *,
        title: str,
        body: str,
        labels: Iterable[str],
        assignees: Iterable[str] | None = None,
    ) -> Issue:
        try:
            data = await self._call(
                self.client.create_issue,
                title=title,
                body=body,
                labels=list(labels),
                assignees=list(assignees or []),
            )
        except GitHubAPIError as exc:
            raise WriteError(str(exc), operation="create") from exc
        return issue_from_api(data)

    async def update(
        self,
        number: int,
        *,
        title: str | None = None,
        body: str | None = None,
        labels: Iterable[str] | None = None,
        assignees: Iterable[str] | None = None,
        state: IssueState | None = None,
    ) -> Issue:
        try:
            data = await self._call(
                self.client.update_issue,
                number=number,
                title=title,
                body=body,
                labels=list(labels) if labels is not None else None,
                assignees=list(assignees) if assignees is not None else None,
                state=state.value if state is not None else None,
            )
        except GitHubAPIError as exc:
            raise WriteError(str(exc), operation="update", issue_number=number) from exc
        return issue_from_api(data)

    async def create_comment(self, number: int, body: str) -> Comment:
        try:
            data = await self._call(self.client.create_comment, number=number, body=body)
        except GitHubAPIError as exc:
            raise WriteError(str(exc), operation="comment", issue_number=number) from exc
        return comment_from_api(number, data)


# --- in-memory fake -----------------------------------------------------

_QUERY_TOKEN = re.compile(r'(\w+):"([^"]*)"|(\w+):(\S+)|"([^"]*)"|(\S+)')


@dataclass
class ParsedQuery:
    repo: str | None = None
    kind: str | None = None
    state: str | None = None
    labels: set[str] = field(default_factory=set)
    author: str | None = None
    terms: list[str] = field(default_factory=list)


def parse_query(query: str) -> ParsedQuery:
    parsed = ParsedQuery()
    for m in _QUERY_TOKEN.finditer(query):
        key = m.group(1) or m.group(3)
        value = m.group(2) if m.group(1) else m.group(4)
        if key is None:
            term = m.group(5) if m.group(5) is not None else m.group(6)
            if term:
                parsed.terms.append(term)
            continue
        key = key.lower()
        if key == "repo":
            parsed.repo = value
        elif key == "is":
            parsed.kind = value.lower()
        elif key == "state":
            parsed.state = value.lower()
        elif key == "label":
            parsed.labels.add(value)
        elif key == "author":
            parsed.author = value
        else:
            parsed.terms.append(m.group(0))
    return parsed


@dataclass(frozen=True)
class StoreCall:
    operation: str
    number: int | None = None
    payload: dict[str, Any] = field(default_factory=dict)


def _ticking_clock(start: datetime | None = None) -> Callable[[], datetime]:
    base = start or utcnow()
    counter = {"tick": 0}

    def _now() -> datetime:
        counter["tick"] += 1
        return base + timedelta(seconds=counter["tick"])

    return _now


class InMemoryIssueStore:
    """In-memory ``SearchableIssueStore`` with GitHub-like search semantics.

    Every call is appended to ``calls``. Each call yields to the event loop
    once before touching state, so concurrent callers interleave like they
    would against the network. ``inject_failure`` makes a given
    operation (optionally for one issue number) raise until cleared.
    """

    def __init__(
        self,
        repo: str | None = None,
        *,
        author: str = "github-actions[bot]",
        clock: Callable[[], datetime] | None = None,
    ):
        self.repo = repo
        self.author = author
        self.issues: dict[int, Issue] = {}
        self.comments: dict[int, list[Comment]] = {}
        self.calls: list[StoreCall] = []
        self._clock = clock or _ticking_clock()
        self._next_number = 1
        self._next_comment_id = 1
        self._failures: dict[tuple[str, int | None], Exception] = {}

    # --- test helpers -------------------------------------------------
    def seed(
        self,
        *,
        title: str,
        body: str = "",
        labels: Iterable[str] = (),
        state: IssueState = IssueState.OPEN,
        author: str | None = None,
        number: int | None = None,
    ) -> Issue:
        num = number if number is not None else self._next_number
        self._next_number = max(self._next_number, num + 1)
        issue = Issue(
            number=num,
            title=title,
            body=body,
            labels=frozenset(labels),
            state=state,
            updated_at=self._clock(),
            author=author or self.author,
        )
        self.issues[num] = issue
        return issue

    def inject_failure(
        self, operation: str, number: int | None = None, error: Exception | None = None
    ) -> None:
        self._failures[(operation, number)] = error or self._default_error(operation, number)

    def clear_failures(self) -> None:
        self._failures.clear()

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call.operation == operation)

    def writes(self) -> list[StoreCall]:
        return [call for call in self.calls if call.operation != "search"]

    @staticmethod
    def _default_error(operation: str, number: int | None) -> Exception:
        if operation == "search":
            return SearchError("injected search failure")
        return WriteError(f"injected {operation} failure", operation=operation, issue_number=number)

    def _maybe_fail(self, operation: str, number: int | None = None) -> None:
        error = self._failures.get((operation, number)) or self._failures.get((operation, None))
        if error is not None:
            raise error

    def _matches(self, issue: Issue, parsed: ParsedQuery) -> bool:
        if parsed.repo and self.repo and parsed.repo.lower() != self.repo.lower():
            return False
        if parsed.kind and parsed.kind != "issue":
            return False
        if parsed.state in ("open", "closed") and issue.state.value != parsed.state:
            return False
        if not parsed.labels <= issue.labels:
            return False
        if parsed.author and parsed.author != issue.author:
            return False
        haystack = f"{issue.title}\n{issue.body}".lower()
        return all(term.lower() in haystack for term in parsed.terms)

    # --- SearchableIssueStore -------------------------------------------
    async def search(
        self, query: str, *, sort: str = "updated", order: str = "desc", per_page: int = 50
    ) -> list[Issue]:
        await asyncio.sleep(0)
        self.calls.append(
            StoreCall("search", payload={"query": query, "sort": sort, "order": order, "per_page": per_page})
        )
        self._maybe_fail("search")
        parsed = parse_query(query)
        found = [issue for issue in self.issues.values() if self._matches(issue, parsed)]
        if sort == "created":
            found.sort(key=lambda i: i.number, reverse=order == "desc")
        else:
            found.sort(key=lambda i: (i.updated_at, i.number), reverse=order == "desc")
        return found[:per_page]

    async def create(
        self,
        *,
        title: str,
        body: str,
        labels: Iterable[str],
        assignees: Iterable[str] | None = None,
    ) -> Issue:
        await asyncio.sleep(0)
        label_set = frozenset(labels)
        assignee_tuple = tuple(assignees or ())
        self.calls.append(
            StoreCall(
                "create",
                payload={"title": title, "body": body, "labels": label_set, "assignees": assignee_tuple},
            )
        )
        self._maybe_fail("create")
        number = self._next_number
        self._next_number += 1
        issue = Issue(
            number=number,
            title=title,
            body=body,
            labels=label_set,
            state=IssueState.OPEN,
            updated_at=self._clock(),
            assignees=assignee_tuple,
            author=self.author,
        )
        self.issues[number] = issue
        return issue

    async def update(
        self,
        number: int,
        *,
        title: str | None = None,
        body: str | None = None,
        labels: Iterable[str] | None = None,
        assignees: Iterable[str] | None = None,
        state: IssueState | None = None,
    ) -> Issue:
        await asyncio.sleep(0)
        changes: dict[str, Any] = {}
        if title is not None:
            changes["title"] = title
        if body is not None:
            changes["body"] = body
        if labels is not None:
            changes["labels"] = frozenset(labels)
        if assignees is not None:
            changes["assignees"] = tuple(assignees)
        if state is not None:
            changes["state"] = IssueState(state)
        self.calls.append(StoreCall("update", number=number, payload=dict(changes)))
        self._maybe_fail("update", number)
        current = self.issues.get(number)
        if current is None:
            raise WriteError(f"issue #{number} not found", operation="update", issue_number=number)
        updated = replace(current, updated_at=self._clock(), **changes)
        self.issues[number] = updated
        return updated

    async def create_comment(self, number: int, body: str) -> Comment:
        await asyncio.sleep(0)
        self.calls.append(StoreCall("comment", number=number, payload={"body": body}))
        self._maybe_fail("comment", number)
        if number not in self.issues:
            raise WriteError(f"issue #{number} not found", operation="comment", issue_number=number)
        comment = Comment(id=self._next_comment_id, issue_number=number, body=body)
        self._next_comment_id += 1
        self.comments.setdefault(number, []).append(comment)
        # Commenting bumps the issue's updated_at like the real tracker.
        self.issues[number] = replace(self.issues[number], updated_at=self._clock())
        return comment


__all__ = [
    "GitHubIssueStore",
    "InMemoryIssueStore",
    "ParsedQuery",
    "SearchableIssueStore",
    "StoreCall",
    "comment_from_api",
    "issue_from_api",
    "parse_query",
]
