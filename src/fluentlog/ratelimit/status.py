"""
Status protocol which lets several rate limiters cooperate on one log statement.

Each stateful rate limiter returns a status for a log statement:

- None if it is not active for the statement.
- DISALLOW if it is in its limiting state.
- A pending status (whose reset() moves the limiter back to its limiting
  state) once its condition is met, e.g. enough time has passed.

Statuses are combined, and logging only happens when every active limiter
is pending. Only then are all of them reset, by exactly one thread. Because
limiters stay pending until reset, none of them can "miss" their condition
while another limiter is still holding the statement back.
"""

from abc import ABC, abstractmethod
from typing import Hashable, Optional

from ..core.metadata import Metadata
from .atomic import AtomicBoolean, AtomicInteger
from .log_site import LogSiteMap


class RateLimitStatus(ABC):
    """Status of one or more rate limiters for a single log statement."""

    __slots__ = ()

    @abstractmethod
    def reset(self) -> None:
        """
        Move the rate limiter(s) back to the limiting state.

        Only ever called by the single thread that won the right to log.
        """

    @staticmethod
    def combine(a: Optional["RateLimitStatus"], b: Optional["RateLimitStatus"]) -> Optional["RateLimitStatus"]:
        """
        Combine two statuses.

        - A None status is ignored and the other is returned.
        - DISALLOW wins over anything else.
        - ALLOW yields to the other status.
        - Two pending statuses produce one which resets both.
        """
        if a is None:
            return b
        if b is None:
            return a
        if a is DISALLOW or b is ALLOW:
            return a
        if b is DISALLOW or a is ALLOW:
            return b
        return _CombinedStatus(a, b)

    @staticmethod
    def check_status(status: "RateLimitStatus", log_site_key: Hashable, metadata: Metadata) -> int:
        """
        Decide whether a rate limited log statement is emitted.

        Every call (including DISALLOW ones) counts towards the pending log
        count for the log site, which is how skipped statements are counted.

        Args:
            status: Combined status of all active rate limiters
            log_site_key: Key of the log statement, possibly specialized
            metadata: Log-site metadata of the statement

        Returns:
            -1 if the statement must not be logged, otherwise the number of
            statements skipped since the last one logged
        """
        guard = _guards.get(log_site_key, metadata)
        pending_count = guard.pending_log_count.increment_and_get()
        if status is DISALLOW or not guard.should_reset.compare_and_set(False, True):
            return -1
        # Only one thread can get here at a time for a given log site.
        try:
            status.reset()
            # Other threads may have incremented the count since, so subtract
            # rather than set to zero. Done before the claim is released, so
            # the next claimer never sees statements already reported here.
            guard.pending_log_count.add_and_get(-pending_count)
        finally:
            guard.should_reset.set(False)
        return pending_count - 1


class _Sentinel(RateLimitStatus):
    __slots__ = ("_name",)

    def __init__(self, name: str):
        self._name = name

    def reset(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"RateLimitStatus.{self._name}"


# Logging is disallowed for the current statement.
DISALLOW = _Sentinel("DISALLOW")

# Logging is allowed; for rate limiters which are never pending.
ALLOW = _Sentinel("ALLOW")

RateLimitStatus.DISALLOW = DISALLOW
RateLimitStatus.ALLOW = ALLOW


class _CombinedStatus(RateLimitStatus):
    __slots__ = ("_a", "_b")

    def __init__(self, a: RateLimitStatus, b: RateLimitStatus):
        self._a = a
        self._b = b

    def reset(self) -> None:
        try:
            self._a.reset()
        finally:
            self._b.reset()


class LogGuard:
    """Per log-site pending count and reset claim."""

    __slots__ = ("should_reset", "pending_log_count")

    def __init__(self):
        self.should_reset = AtomicBoolean()
        self.pending_log_count = AtomicInteger()


_guards: LogSiteMap[LogGuard] = LogSiteMap(LogGuard)
