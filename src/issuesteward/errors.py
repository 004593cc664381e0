"""Error taxonomy & redaction.

Errors fall into two families with deliberately asymmetric handling:

- ``SearchError``: read-path failure. Tolerated by default (fail-open): the
  finder degrades to an empty result so a run never aborts on a search
  outage. Callers can opt into fail-closed and receive the exception.
- ``WriteError``: create / update / comment failure. Always propagated to
  the invoking automation, except inside the duplicate-closing batch where
  each candidate is isolated.

``classify_error`` and ``redact`` prepare exceptions for logging.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"ghs_[A-Za-z0-9]{20,40}"),  # Actions installation tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"(?i)bearer\s+[A-Za-z0-9_\-.]{20,}"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


class IssueStewardError(RuntimeError):
    """Base class for errors raised by issuesteward."""


class SearchError(IssueStewardError):
    """Searching the tracker failed."""

    def __init__(self, message: str, *, query: str | None = None):
        super().__init__(message)
        self.query = query


class WriteError(IssueStewardError):
    """A mutating tracker call (create / update / comment) failed."""

    def __init__(self, message: str, *, operation: str, issue_number: int | None = None):
        super().__init__(message)
        self.operation = operation
        self.issue_number = issue_number


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace token-looking substrings with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    - rate limit wording -> 'github.rate_limit', transient
    - abuse detection -> 'github.abuse', transient
    - network-y keywords -> 'network', transient
    - anything else -> 'generic'
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    status = getattr(exc, "status", None)
    details = {"status": status} if status is not None else None

    if "rate limit" in low or "secondary rate" in low or status == 429:
        return ErrorInfo(
            "github.rate_limit", redact(msg), exc.__class__.__name__, transient=True, details=details
        )
    if "abuse" in low:
        return ErrorInfo("github.abuse", redact(msg), exc.__class__.__name__, transient=True, details=details)
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg), exc.__class__.__name__, transient=True, details=details)
    return ErrorInfo("generic", redact(msg), exc.__class__.__name__, details=details)


__all__ = [
    "ErrorInfo",
    "IssueStewardError",
    "SearchError",
    "WriteError",
    "classify_error",
    "redact",
]
