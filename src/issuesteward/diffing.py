from __future__ import annotations

import difflib
from collections.abc import Iterable
from typing import Any

from .models import Issue, IssueDraft

MAX_BODY_DIFF_LINES = 120


def sorted_labels(labels: Iterable[str]) -> list[str]:
    return sorted(labels)


def labels_equal(a: Iterable[str], b: Iterable[str]) -> bool:
    return sorted_labels(a) == sorted_labels(b)


def should_update(issue: Issue, draft: IssueDraft, *, always_update: bool = False) -> bool:
    """Decide whether the existing candidate needs rewriting.

    The stored body is compared as-is: it carries the provenance header written
    by the previous run, which the draft never has, so after the first write
    this check reports a change on every run.
    """
    if always_update:
        return True
    if not issue.body:
        return True
    if issue.body.strip() != draft.body.strip():
        return True
    return not labels_equal(issue.labels, draft.labels)


def compute_diff(issue: Issue, draft: IssueDraft) -> dict[str, Any]:
    d: dict[str, Any] = {}
    if issue.title != draft.title:
        d["title_from"] = issue.title
        d["title_to"] = draft.title
    if not labels_equal(issue.labels, draft.labels):
        d["labels_added"] = sorted(draft.labels - issue.labels)
        d["labels_removed"] = sorted(issue.labels - draft.labels)
    old_body = (issue.body or "").strip().splitlines()
    new_body = draft.body.strip().splitlines()
    if old_body != new_body:
        diff_lines = list(difflib.unified_diff(old_body, new_body, lineterm="", n=3))
        if len(diff_lines) > MAX_BODY_DIFF_LINES:
            diff_lines = diff_lines[:MAX_BODY_DIFF_LINES] + ["... (truncated)"]
        d["body_changed"] = True
        d["body_diff"] = diff_lines
    return d


__all__ = [
    "MAX_BODY_DIFF_LINES",
    "compute_diff",
    "labels_equal",
    "should_update",
    "sorted_labels",
]
