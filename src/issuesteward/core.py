from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from .config import ConfigError, StewardConfig, config_from_env, load_config, resolve_token
from .duplicates import DEFAULT_REASON, DuplicateCloser
from .finder import IssueFinder, SearchResult
from .formatters import AutomationEvent, handle_event
from .github_rest import GitHubRestClient
from .logging import StructuredLogger, configure_logging
from .models import Comment, Issue, IssueDraft, RunContext, SearchCriteria
from .notify import CommentNotifier
from .reconcile import ReconcileOutcome, ReconciliationEngine
from .store import GitHubIssueStore, SearchableIssueStore


class IssueSteward:
    """Wires the finder, engine, notifier and duplicate closer around one store."""

    def __init__(
        self,
        store: SearchableIssueStore,
        context: RunContext,
        cfg: StewardConfig | None = None,
        *,
        logger: StructuredLogger | None = None,
    ):
        self.cfg = cfg or StewardConfig()
        self.store = store
        self.context = context
        self.logger = logger or configure_logging(
            json_logging=self.cfg.logging_json_enabled, level=self.cfg.logging_level
        )
        self.finder = IssueFinder(
            store,
            context.repo,
            per_page=self.cfg.search_per_page,
            fail_closed=self.cfg.search_fail_closed,
            logger=self.logger,
        )
        self.engine = ReconciliationEngine(store, context, finder=self.finder, logger=self.logger)
        self.notifier = CommentNotifier(store, logger=self.logger)
        self.closer = DuplicateCloser(
            store,
            context,
            finder=self.finder,
            notifier=self.notifier,
            pacing=self.cfg.pacing_policy(),
            logger=self.logger,
        )

    @classmethod
    def from_env(
        cls,
        config_path: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> IssueSteward:
        """Build a steward talking to GitHub, configured for the current Actions run."""
        cfg = load_config(config_path, environ) if config_path else config_from_env(environ)
        token = resolve_token(cfg, environ)
        if not token:
            raise ConfigError("No GitHub token found; set GITHUB_TOKEN or GH_TOKEN")
        if not cfg.github_repo:
            raise ConfigError("No repository configured; set github.repo or GITHUB_REPOSITORY")
        context = RunContext.from_env(environ, repo=cfg.github_repo, server_url=cfg.server_url)
        client = GitHubRestClient(token=token, repo=cfg.github_repo, base_url=cfg.api_url)
        return cls(GitHubIssueStore(client), context, cfg)

    async def search(self, criteria: SearchCriteria) -> SearchResult:
        return await self.finder.search(criteria)

    async def find_existing_issues(self, criteria: SearchCriteria) -> list[Issue]:
        return await self.finder.find(criteria)

    async def reconcile(
        self,
        draft: IssueDraft,
        criteria: SearchCriteria | None = None,
        *,
        always_update: bool = False,
    ) -> ReconcileOutcome:
        return await self.engine.reconcile(draft, criteria, always_update=always_update)

    async def create_or_update_issue(
        self,
        draft: IssueDraft,
        criteria: SearchCriteria | None = None,
        *,
        always_update: bool = False,
    ) -> Issue:
        return await self.engine.create_or_update_issue(
            draft, criteria, always_update=always_update
        )

    async def close_duplicate_issues(
        self, criteria: SearchCriteria, keep_issue_number: int, reason: str = DEFAULT_REASON
    ) -> list[int]:
        return await self.closer.close_duplicate_issues(criteria, keep_issue_number, reason)

    async def add_issue_comment(self, issue_number: int, body: str) -> Comment:
        return await self.notifier.add_issue_comment(issue_number, body)

    async def handle(self, event: AutomationEvent) -> Issue:
        with self.logger.timed_operation("handle_event", event=type(event).__name__):
            return await handle_event(self.engine, event)


__all__ = ["IssueSteward"]
