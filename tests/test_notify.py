from __future__ import annotations

import asyncio

import pytest

from issuesteward.errors import WriteError
from issuesteward.logging import StructuredLogger
from issuesteward.notify import CommentNotifier
from issuesteward.store import InMemoryIssueStore


def test_add_issue_comment(capsys, store: InMemoryIssueStore):
    logger = StructuredLogger(name="issuesteward.notify.tests")
    issue = store.seed(title="A")
    notifier = CommentNotifier(store, logger=logger)

    comment = asyncio.run(notifier.add_issue_comment(issue.number, "Deployment recovered"))

    assert comment.issue_number == issue.number
    assert store.comments[issue.number][0].body == "Deployment recovered"
    assert "comment_added" in capsys.readouterr().out


def test_add_issue_comment_failure_propagates(capsys, store: InMemoryIssueStore):
    logger = StructuredLogger(name="issuesteward.notify.tests")
    issue = store.seed(title="A")
    store.inject_failure("comment", issue.number)
    notifier = CommentNotifier(store, logger=logger)

    with pytest.raises(WriteError) as excinfo:
        asyncio.run(notifier.add_issue_comment(issue.number, "hello"))

    assert excinfo.value.operation == "comment"
    assert f"Failed to add comment to issue #{issue.number}" in capsys.readouterr().out
