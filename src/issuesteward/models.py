from __future__ import annotations

import os
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

DEFAULT_SERVER_URL = "https://github.com"


class IssueState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class SearchState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    ALL = "all"


@dataclass(frozen=True)
class Issue:
    """Snapshot of a tracker issue as returned by a store.

    Identity is ``number``; every other field may change between reads.
    """

    number: int
    title: str
    body: str
    labels: frozenset[str]
    state: IssueState
    updated_at: datetime
    assignees: tuple[str, ...] = ()
    html_url: str | None = None
    author: str | None = None


@dataclass(frozen=True)
class Comment:
    id: int
    issue_number: int
    body: str
    html_url: str | None = None


@dataclass(frozen=True)
class IssueDraft:
    """Desired state of a canonical issue."""

    title: str
    body: str
    labels: frozenset[str] = field(default_factory=frozenset)
    assignees: tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        *,
        title: str,
        body: str,
        labels: Iterable[str] = (),
        assignees: Iterable[str] = (),
    ) -> IssueDraft:
        return cls(title=title, body=body, labels=frozenset(labels), assignees=tuple(assignees))


TitlePattern = str | re.Pattern[str]


@dataclass(frozen=True)
class SearchCriteria:
    """Filters used to look up candidate issues.

    ``title_pattern`` is either a literal string (escaped before matching) or
    a compiled regular expression used as-is. Matching is case-insensitive.
    """

    title_pattern: TitlePattern | None = None
    labels: frozenset[str] = field(default_factory=frozenset)
    state: SearchState = SearchState.OPEN
    author: str | None = None

    @classmethod
    def build(
        cls,
        *,
        title_pattern: TitlePattern | None = None,
        labels: Iterable[str] = (),
        state: SearchState | str = SearchState.OPEN,
        author: str | None = None,
    ) -> SearchCriteria:
        return cls(
            title_pattern=title_pattern,
            labels=frozenset(labels),
            state=SearchState(state),
            author=author,
        )

    @classmethod
    def for_draft(cls, draft: IssueDraft) -> SearchCriteria:
        return cls(title_pattern=draft.title, labels=draft.labels, state=SearchState.OPEN)

    def with_draft_defaults(self, draft: IssueDraft) -> SearchCriteria:
        # Empty title pattern / labels fall back to the draft's own values.
        return SearchCriteria(
            title_pattern=self.title_pattern or draft.title,
            labels=self.labels or draft.labels,
            state=self.state,
            author=self.author,
        )

    def describe(self) -> dict[str, Any]:
        pattern = self.title_pattern
        return {
            "title_pattern": pattern.pattern if isinstance(pattern, re.Pattern) else pattern,
            "labels": sorted(self.labels),
            "state": self.state.value,
            "author": self.author,
        }


@dataclass(frozen=True)
class RepoRef:
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @classmethod
    def parse(cls, value: str) -> RepoRef:
        owner, sep, repo = value.strip().partition("/")
        if not sep or not owner or not repo or "/" in repo:
            raise ValueError(f"Repository must look like 'owner/repo': {value!r}")
        return cls(owner=owner, repo=repo)


@dataclass(frozen=True)
class RunContext:
    """Identifies the automation run on whose behalf issues are written."""

    repo: RepoRef
    server_url: str
    run_id: str

    @property
    def run_url(self) -> str:
        return (
            f"{self.server_url.rstrip('/')}/{self.repo.owner}/{self.repo.repo}"
            f"/actions/runs/{self.run_id}"
        )

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        repo: str | None = None,
        server_url: str | None = None,
    ) -> RunContext:
        """Read the Actions run from the environment; explicit arguments win."""
        env = os.environ if environ is None else environ
        repository = repo or env.get("GITHUB_REPOSITORY", "")
        if not repository:
            raise ValueError("GITHUB_REPOSITORY is not set")
        return cls(
            repo=RepoRef.parse(repository),
            server_url=server_url or env.get("GITHUB_SERVER_URL") or DEFAULT_SERVER_URL,
            run_id=env.get("GITHUB_RUN_ID", ""),
        )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


__all__ = [
    "Comment",
    "Issue",
    "IssueDraft",
    "IssueState",
    "RepoRef",
    "RunContext",
    "SearchCriteria",
    "SearchState",
    "TitlePattern",
    "utcnow",
]
