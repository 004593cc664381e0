"""Pytest configuration for issuesteward tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install, and provides in-memory store fixtures
so no test ever talks to GitHub.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from issuesteward.logging import StructuredLogger  # noqa: E402
from issuesteward.models import RepoRef, RunContext  # noqa: E402
from issuesteward.reconcile import ReconciliationEngine  # noqa: E402
from issuesteward.store import InMemoryIssueStore  # noqa: E402

FIXED_NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def context() -> RunContext:
    return RunContext(repo=RepoRef("acme", "infra"), server_url="https://github.com", run_id="12345")


@pytest.fixture
def store() -> InMemoryIssueStore:
    return InMemoryIssueStore(repo="acme/infra")


@pytest.fixture
def logger(capsys: pytest.CaptureFixture[str]) -> StructuredLogger:
    # Built after capsys so the handler binds to the captured stdout.
    return StructuredLogger(name="issuesteward.tests", level="DEBUG")


@pytest.fixture
def engine(
    store: InMemoryIssueStore, context: RunContext, logger: StructuredLogger
) -> ReconciliationEngine:
    return ReconciliationEngine(store, context, clock=lambda: FIXED_NOW, logger=logger)
