"""Close duplicate issues while keeping one canonical issue open.

Each candidate is handled on its own: a comment pointing at the canonical
issue, then a state change to closed. A failure on one candidate is logged
and the batch moves on. Candidates are processed one at a time with a pacing
delay between them. The initial search follows the finder's failure policy.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from .finder import IssueFinder
from .logging import StructuredLogger, get_logger
from .models import IssueState, RunContext, SearchCriteria
from .notify import CommentNotifier
from .pacing import FixedDelay, PacingPolicy
from .store import SearchableIssueStore

DEFAULT_REASON = "Duplicate issue"


def closure_comment(keep_issue_number: int, reason: str) -> str:
    return (
        f"🔗 **{reason}**\n"
        "\n"
        f"This issue is a duplicate of #{keep_issue_number}.\n"
        "\n"
        f"Please refer to #{keep_issue_number} for the most up-to-date information "
        "and continue any discussions there.\n"
        "\n"
        "_This issue was automatically closed by the issue management system._"
    )


class DuplicateCloser:
    def __init__(
        self,
        store: SearchableIssueStore,
        context: RunContext,
        *,
        finder: IssueFinder | None = None,
        notifier: CommentNotifier | None = None,
        pacing: PacingPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: StructuredLogger | None = None,
    ):
        self.store = store
        self.context = context
        self.logger = logger or get_logger()
        self.finder = finder or IssueFinder(store, context.repo, logger=self.logger)
        self.notifier = notifier or CommentNotifier(store, logger=self.logger)
        self.pacing: PacingPolicy = pacing or FixedDelay()
        self._sleep = sleep

    async def close_duplicate_issues(
        self,
        criteria: SearchCriteria,
        keep_issue_number: int,
        reason: str = DEFAULT_REASON,
    ) -> list[int]:
        """Close every match except ``keep_issue_number``; return the numbers closed."""
        matches = await self.finder.find(criteria)
        duplicates = [issue for issue in matches if issue.number != keep_issue_number]
        self.logger.log_operation(
            "duplicate_scan",
            keep_issue_number=keep_issue_number,
            duplicates=[issue.number for issue in duplicates],
        )

        comment = closure_comment(keep_issue_number, reason)
        closed: list[int] = []
        for step, duplicate in enumerate(duplicates):
            delay = self.pacing.delay_for(step)
            if delay > 0:
                await self._sleep(delay)
            try:
                await self.notifier.add_issue_comment(duplicate.number, comment)
                await self.store.update(duplicate.number, state=IssueState.CLOSED)
            except Exception as exc:
                self.logger.log_error(
                    f"Failed to close issue #{duplicate.number}",
                    error=str(exc),
                    operation="duplicate_close_failed",
                    issue_number=duplicate.number,
                    keep_issue_number=keep_issue_number,
                )
                continue
            self.logger.log_issue_action(
                "close", duplicate.number, duplicate.title, duplicate_of=keep_issue_number
            )
            closed.append(duplicate.number)
        return closed


__all__ = ["DEFAULT_REASON", "DuplicateCloser", "closure_comment"]
