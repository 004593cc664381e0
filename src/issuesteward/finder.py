"""Locate existing issues through the tracker's search API.

There is no exact-key lookup: candidates come back from a bounded search
(most recently updated first, at most ``per_page`` results) and are then
filtered client-side by title.

Search failures never raise out of ``IssueFinder.search``; they come back
inside a ``SearchResult`` which the caller must unwrap with an explicit
policy:

* ``or_empty()``  - fail-open. An outage looks exactly like "no existing
  issue", so a subsequent create may duplicate an issue that already exists.
* ``unwrap()``    - fail-closed. The ``SearchError`` is raised.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .errors import SearchError, classify_error
from .logging import StructuredLogger, get_logger
from .models import Issue, RepoRef, SearchCriteria, SearchState, TitlePattern
from .store import SearchableIssueStore

DEFAULT_PER_PAGE = 50


@dataclass(frozen=True)
class SearchResult:
    issues: list[Issue] = field(default_factory=list)
    error: SearchError | None = None
    query: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def or_empty(self) -> list[Issue]:
        if self.error is not None:
            return []
        return list(self.issues)

    def unwrap(self) -> list[Issue]:
        if self.error is not None:
            raise self.error
        return list(self.issues)


def build_query(repo: RepoRef, criteria: SearchCriteria) -> str:
    parts = [f"repo:{repo.full_name}", "is:issue"]
    # The search API has no "all" value; omitting the qualifier searches both states.
    if criteria.state is not SearchState.ALL:
        parts.append(f"state:{criteria.state.value}")
    parts.extend(f'label:"{label}"' for label in sorted(criteria.labels))
    if criteria.author:
        parts.append(f"author:{criteria.author}")
    return " ".join(parts)


def compile_title_pattern(pattern: TitlePattern) -> re.Pattern[str]:
    if isinstance(pattern, re.Pattern):
        return re.compile(pattern.pattern, pattern.flags | re.IGNORECASE)
    return re.compile(re.escape(pattern), re.IGNORECASE)


def filter_by_title(issues: list[Issue], pattern: TitlePattern | None) -> list[Issue]:
    if not pattern:
        return list(issues)
    regex = compile_title_pattern(pattern)
    return [issue for issue in issues if regex.search(issue.title)]


class IssueFinder:
    def __init__(
        self,
        store: SearchableIssueStore,
        repo: RepoRef,
        *,
        per_page: int = DEFAULT_PER_PAGE,
        fail_closed: bool = False,
        logger: StructuredLogger | None = None,
    ):
        self.store = store
        self.repo = repo
        self.per_page = per_page
        self.fail_closed = fail_closed
        self.logger = logger or get_logger()

    async def search(self, criteria: SearchCriteria) -> SearchResult:
        query = build_query(self.repo, criteria)
        self.logger.log_operation("search", query=query, criteria=criteria.describe())
        try:
            found = await self.store.search(
                query, sort="updated", order="desc", per_page=self.per_page
            )
        except Exception as exc:
            info = classify_error(exc)
            error = exc if isinstance(exc, SearchError) else SearchError(info.message, query=query)
            if error is not exc:
                error.__cause__ = exc
            self.logger.log_error(
                "issue search failed",
                error=info.message,
                operation="search_failed",
                query=query,
                category=info.category,
                transient=info.transient,
            )
            return SearchResult(error=error, query=query)
        matching = filter_by_title(found, criteria.title_pattern)
        self.logger.info(
            f"Found {len(matching)} matching issues",
            operation="search_complete",
            query=query,
            candidates=len(found),
            matches=[issue.number for issue in matching],
        )
        return SearchResult(issues=matching, query=query)

    async def find(self, criteria: SearchCriteria) -> list[Issue]:
        """Search and unwrap with this finder's policy (fail-open unless configured)."""
        result = await self.search(criteria)
        if self.fail_closed:
            return result.unwrap()
        return result.or_empty()


__all__ = [
    "DEFAULT_PER_PAGE",
    "IssueFinder",
    "SearchResult",
    "build_query",
    "compile_title_pattern",
    "filter_by_title",
]
