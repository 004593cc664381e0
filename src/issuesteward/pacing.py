"""Pacing policies for sequential API batches.

The duplicate closer waits between candidates as simple rate-limit
mitigation. The default is a fixed half-second delay; ``ExponentialBackoff``
grows the delay per step with a little jitter and an upper cap.

Environment override:
  ISSUESTEWARD_DUPLICATE_DELAY (seconds, applied by ``config_from_env``)
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Protocol

DEFAULT_DELAY_SECONDS = 0.5

_JITTER = random.SystemRandom()


class PacingPolicy(Protocol):
    def delay_for(self, step: int) -> float:
        """Seconds to wait before step ``step`` (1-based, step 0 never waits)."""
        ...  # pragma: no cover


@dataclass(frozen=True)
class FixedDelay:
    seconds: float = DEFAULT_DELAY_SECONDS

    def delay_for(self, step: int) -> float:
        if step <= 0:
            return 0.0
        return max(0.0, self.seconds)


@dataclass(frozen=True)
class ExponentialBackoff:
    base_seconds: float = DEFAULT_DELAY_SECONDS
    max_seconds: float = 30.0
    jitter_seconds: float = 0.25

    def delay_for(self, step: int) -> float:
        if step <= 0:
            return 0.0
        backoff = self.base_seconds * (2 ** (step - 1))
        if self.jitter_seconds > 0:
            backoff += _JITTER.uniform(0, self.jitter_seconds)
        return max(0.0, min(backoff, self.max_seconds))


__all__ = ["DEFAULT_DELAY_SECONDS", "ExponentialBackoff", "FixedDelay", "PacingPolicy"]
