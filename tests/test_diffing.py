from __future__ import annotations

from datetime import datetime, timezone

from issuesteward.diffing import MAX_BODY_DIFF_LINES, compute_diff, labels_equal, should_update
from issuesteward.models import Issue, IssueDraft, IssueState


def _issue(body: str = "body", labels=("a", "b"), title: str = "T") -> Issue:
    return Issue(
        number=1,
        title=title,
        body=body,
        labels=frozenset(labels),
        state=IssueState.OPEN,
        updated_at=datetime(2026, 10, 17, tzinfo=timezone.utc),
    )


def test_labels_equal_ignores_order():
    assert labels_equal(["b", "a"], ("a", "b"))
    assert not labels_equal(["a"], ["a", "b"])


def test_should_update_ignores_surrounding_whitespace():
    draft = IssueDraft.build(title="T", body="body", labels=["b", "a"])
    assert not should_update(_issue(body="\n body \n"), draft)


def test_should_update_reasons():
    draft = IssueDraft.build(title="T", body="body", labels=["a", "b"])
    assert should_update(_issue(body=""), draft)
    assert should_update(_issue(body="other"), draft)
    assert should_update(_issue(labels=("a",)), draft)
    assert should_update(_issue(), draft, always_update=True)


def test_title_change_alone_does_not_trigger_update():
    draft = IssueDraft.build(title="New title", body="body", labels=["a", "b"])
    assert not should_update(_issue(title="Old title"), draft)


def test_compute_diff_labels_and_title():
    draft = IssueDraft.build(title="New", body="body", labels=["b", "c"])
    diff = compute_diff(_issue(), draft)
    assert diff["title_from"] == "T"
    assert diff["title_to"] == "New"
    assert diff["labels_added"] == ["c"]
    assert diff["labels_removed"] == ["a"]
    assert "body_changed" not in diff


def test_compute_diff_truncates_body_diff():
    old = "\n".join(f"old {i}" for i in range(200))
    new = "\n".join(f"new {i}" for i in range(200))
    diff = compute_diff(_issue(body=old), IssueDraft.build(title="T", body=new, labels=["a", "b"]))
    assert diff["body_changed"] is True
    assert len(diff["body_diff"]) == MAX_BODY_DIFF_LINES + 1
    assert diff["body_diff"][-1] == "... (truncated)"
