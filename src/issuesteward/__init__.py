"""issuesteward - idempotent status-issue management for CI/CD automation.

High-level public API:

from issuesteward import IssueSteward, SecurityScanFinding

steward = IssueSteward.from_env()          # GitHub Actions: token + repo from env
issue = await steward.handle(SecurityScanFinding(...))
await steward.close_duplicate_issues(criteria, keep_issue_number=issue.number)

For tests and dry runs pass an ``InMemoryIssueStore`` and a ``RunContext``
to ``IssueSteward`` directly.
"""

from __future__ import annotations

from .config import ConfigError, StewardConfig, load_config
from .core import IssueSteward
from .errors import IssueStewardError, SearchError, WriteError
from .formatters import (
    AutomationEvent,
    DeploymentFailure,
    InfrastructureFailure,
    SecurityScanFinding,
    TemplateValidationFailure,
    event_from_payload,
)
from .models import (
    Issue,
    IssueDraft,
    IssueState,
    RepoRef,
    RunContext,
    SearchCriteria,
    SearchState,
)
from .store import GitHubIssueStore, InMemoryIssueStore, SearchableIssueStore

__version__ = "0.1.0"

__all__ = [
    "AutomationEvent",
    "ConfigError",
    "DeploymentFailure",
    "GitHubIssueStore",
    "InMemoryIssueStore",
    "InfrastructureFailure",
    "Issue",
    "IssueDraft",
    "IssueState",
    "IssueSteward",
    "IssueStewardError",
    "RepoRef",
    "RunContext",
    "SearchCriteria",
    "SearchError",
    "SearchState",
    "SearchableIssueStore",
    "SecurityScanFinding",
    "StewardConfig",
    "TemplateValidationFailure",
    "WriteError",
    "event_from_payload",
    "load_config",
    "__version__",
]
