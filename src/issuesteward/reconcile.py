"""Create-or-update reconciliation of a canonical issue.

Given a desired ``IssueDraft`` the engine searches for candidates, then:

* ``create`` - nothing matched; the draft is created with a "Created"
  provenance header.
* ``update`` - the most recently updated candidate differs (or
  ``always_update`` is set); it is rewritten with an "Updated" header.
* ``skip``   - the candidate already matches; no write call is made.

Search runs fail-open (see ``finder``), so an outage degrades to ``create``.
Create / update failures propagate unchanged and are not retried.

Concurrency: there is no locking around search-then-write. Two runs
reconciling the same criteria at the same time can both see no candidate and
both create an issue; ``DuplicateCloser`` is the cleanup path for that.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from .diffing import compute_diff, should_update
from .finder import IssueFinder
from .logging import StructuredLogger, get_logger
from .models import Issue, IssueDraft, RunContext, SearchCriteria, utcnow
from .store import SearchableIssueStore

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_SKIP = "skip"


def format_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def provenance_header(verb: str, context: RunContext, moment: datetime) -> str:
    return (
        f"> **{verb}:** {format_timestamp(moment)}\n"
        f"> **Workflow Run:** {context.run_url}\n\n"
    )


@dataclass(frozen=True)
class ReconcileOutcome:
    action: str  # create | update | skip
    issue: Issue


class ReconciliationEngine:
    def __init__(
        self,
        store: SearchableIssueStore,
        context: RunContext,
        *,
        finder: IssueFinder | None = None,
        clock: Callable[[], datetime] = utcnow,
        logger: StructuredLogger | None = None,
    ):
        self.store = store
        self.context = context
        self.logger = logger or get_logger()
        self.finder = finder or IssueFinder(store, context.repo, logger=self.logger)
        self._clock = clock

    async def reconcile(
        self,
        draft: IssueDraft,
        criteria: SearchCriteria | None = None,
        *,
        always_update: bool = False,
    ) -> ReconcileOutcome:
        match = (
            SearchCriteria.for_draft(draft)
            if criteria is None
            else criteria.with_draft_defaults(draft)
        )
        candidates = await self.finder.find(match)
        if not candidates:
            return ReconcileOutcome(ACTION_CREATE, await self._create(draft))

        existing = candidates[0]
        self.logger.log_issue_action(
            "found", existing.number, existing.title, candidates=len(candidates)
        )
        if not should_update(existing, draft, always_update=always_update):
            self.logger.log_issue_action(
                "skip", existing.number, existing.title, reason="content unchanged"
            )
            return ReconcileOutcome(ACTION_SKIP, existing)
        return ReconcileOutcome(ACTION_UPDATE, await self._update(existing, draft))

    async def create_or_update_issue(
        self,
        draft: IssueDraft,
        criteria: SearchCriteria | None = None,
        *,
        always_update: bool = False,
    ) -> Issue:
        outcome = await self.reconcile(draft, criteria, always_update=always_update)
        return outcome.issue

    async def _create(self, draft: IssueDraft) -> Issue:
        body = provenance_header("Created", self.context, self._clock()) + draft.body
        try:
            issue = await self.store.create(
                title=draft.title,
                body=body,
                labels=sorted(draft.labels),
                assignees=list(draft.assignees) or None,
            )
        except Exception as exc:
            self.logger.log_error("issue create failed", error=str(exc), title=draft.title)
            raise
        self.logger.log_issue_action("create", issue.number, issue.title)
        return issue

    async def _update(self, existing: Issue, draft: IssueDraft) -> Issue:
        changes = compute_diff(existing, draft)
        body = provenance_header("Updated", self.context, self._clock()) + draft.body
        try:
            issue = await self.store.update(
                existing.number,
                title=draft.title,
                body=body,
                labels=sorted(draft.labels),
                assignees=list(draft.assignees) or None,
            )
        except Exception as exc:
            self.logger.log_error(
                "issue update failed", error=str(exc), issue_number=existing.number
            )
            raise
        self.logger.log_issue_action(
            "update",
            issue.number,
            issue.title,
            changed=sorted(k for k in changes if k != "body_diff"),
        )
        return issue


__all__ = [
    "ACTION_CREATE",
    "ACTION_SKIP",
    "ACTION_UPDATE",
    "ReconcileOutcome",
    "ReconciliationEngine",
    "format_timestamp",
    "provenance_header",
]
