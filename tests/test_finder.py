from __future__ import annotations

import asyncio
import re

import pytest

from issuesteward.errors import SearchError
from issuesteward.finder import IssueFinder, SearchResult, build_query, filter_by_title
from issuesteward.logging import StructuredLogger
from issuesteward.models import RepoRef, SearchCriteria, SearchState
from issuesteward.store import InMemoryIssueStore

REPO = RepoRef("acme", "infra")


def test_build_query_orders_labels_and_adds_author():
    criteria = SearchCriteria.build(labels=["security", "critical"], author="ci-bot")
    assert build_query(REPO, criteria) == (
        'repo:acme/infra is:issue state:open label:"critical" label:"security" author:ci-bot'
    )


def test_build_query_all_state_omits_qualifier():
    criteria = SearchCriteria.build(state=SearchState.ALL)
    assert build_query(REPO, criteria) == "repo:acme/infra is:issue"


def test_literal_title_pattern_is_escaped(store: InMemoryIssueStore):
    a = store.seed(title="Deploy (prod) failed")
    b = store.seed(title="Deploy prod failed")
    matched = filter_by_title([a, b], "deploy (PROD)")
    assert [i.number for i in matched] == [a.number]


def test_regex_title_pattern_is_case_insensitive(store: InMemoryIssueStore):
    a = store.seed(title="Deployment Failed: staging environment")
    b = store.seed(title="Something else")
    matched = filter_by_title([a, b], re.compile(r"deployment failed.*STAGING"))
    assert [i.number for i in matched] == [a.number]


def test_search_applies_labels_then_title(store: InMemoryIssueStore, logger: StructuredLogger):
    store.seed(title="Template Validation Failure: Critical Issues Detected", labels=["template-validation"])
    store.seed(title="Template Validation Failure: Critical Issues Detected", labels=["other"])
    store.seed(title="Unrelated", labels=["template-validation"])
    finder = IssueFinder(store, REPO, logger=logger)

    result = asyncio.run(
        finder.search(
            SearchCriteria.build(
                title_pattern="Template Validation Failure: Critical Issues Detected",
                labels=["template-validation"],
            )
        )
    )
    assert result.ok
    assert [i.number for i in result.unwrap()] == [1]
    search_call = store.calls[0]
    assert search_call.payload["sort"] == "updated"
    assert search_call.payload["order"] == "desc"
    assert search_call.payload["per_page"] == 50


def test_search_failure_is_fail_open_by_default(capsys, store: InMemoryIssueStore):
    logger = StructuredLogger(name="issuesteward.finder.tests", level="DEBUG")
    store.seed(title="Existing")
    store.inject_failure("search", error=RuntimeError("API rate limit exceeded"))
    finder = IssueFinder(store, REPO, logger=logger)

    result = asyncio.run(finder.search(SearchCriteria.build(title_pattern="Existing")))
    assert not result.ok
    assert isinstance(result.error, SearchError)
    assert result.or_empty() == []
    assert asyncio.run(finder.find(SearchCriteria.build(title_pattern="Existing"))) == []
    assert "issue search failed" in capsys.readouterr().out


def test_search_failure_fail_closed_raises(store: InMemoryIssueStore, logger: StructuredLogger):
    store.inject_failure("search")
    finder = IssueFinder(store, REPO, fail_closed=True, logger=logger)
    with pytest.raises(SearchError):
        asyncio.run(finder.find(SearchCriteria.build()))


def test_search_result_unwrap_and_or_empty():
    err = SearchError("boom")
    failed = SearchResult(error=err)
    assert failed.or_empty() == []
    with pytest.raises(SearchError):
        failed.unwrap()
    assert SearchResult(issues=[]).unwrap() == []
