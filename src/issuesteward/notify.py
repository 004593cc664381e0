from __future__ import annotations

from .logging import StructuredLogger, get_logger
from .models import Comment
from .store import SearchableIssueStore


class CommentNotifier:
    """Posts a single comment to an issue. Failures propagate."""

    def __init__(self, store: SearchableIssueStore, *, logger: StructuredLogger | None = None):
        self.store = store
        self.logger = logger or get_logger()

    async def add_issue_comment(self, issue_number: int, body: str) -> Comment:
        try:
            comment = await self.store.create_comment(issue_number, body)
        except Exception as exc:
            self.logger.log_error(
                f"Failed to add comment to issue #{issue_number}",
                error=str(exc),
                operation="comment_failed",
                issue_number=issue_number,
            )
            raise
        self.logger.log_operation("comment_added", issue_number=issue_number, comment_id=comment.id)
        return comment


__all__ = ["CommentNotifier"]
