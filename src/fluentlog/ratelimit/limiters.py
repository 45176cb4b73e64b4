"""
Counting, duration and sampling rate limiters.

Each limiter reads its setting from the log-site metadata and keeps its
state per log-site key. A limiter which finds no setting returns None and
has no effect on the statement.
"""

import random
import threading
from typing import Hashable, Optional

from ..core.checks import check_argument
from ..core.keys import LOG_AT_MOST_EVERY, LOG_EVERY_N, LOG_SAMPLE_EVERY_N, RateLimitPeriod
from ..core.metadata import Metadata
from .atomic import AtomicInteger
from .log_site import LogSiteMap
from .status import DISALLOW, RateLimitStatus

# Larger than any valid count, so the first invocation is always pending.
_INITIAL_INVOCATION_COUNT = 2**31 - 1


class CountingRateLimiter(RateLimitStatus):
    """Pending once every N invocations of a log site (set by every(n))."""

    __slots__ = ("invocation_count",)

    def __init__(self):
        self.invocation_count = AtomicInteger(_INITIAL_INVOCATION_COUNT)

    @staticmethod
    def check(metadata: Metadata, log_site_key: Hashable) -> Optional[RateLimitStatus]:
        rate_limit_count = metadata.find_value(LOG_EVERY_N)
        if rate_limit_count is None:
            return None
        return _counting.get(log_site_key, metadata).increment_and_check_log_count(rate_limit_count)

    def increment_and_check_log_count(self, rate_limit_count: int) -> RateLimitStatus:
        return self if self.invocation_count.increment_and_get() >= rate_limit_count else DISALLOW

    def reset(self) -> None:
        self.invocation_count.set(0)


class DurationRateLimiter(RateLimitStatus):
    """
    Pending once a minimum period has passed since the last logged statement.

    The last timestamp is negated while pending, and restored to a positive
    value by reset().
    """

    __slots__ = ("last_timestamp_nanos",)

    def __init__(self):
        self.last_timestamp_nanos = AtomicInteger(-1)

    @staticmethod
    def check(metadata: Metadata, log_site_key: Hashable, timestamp_nanos: int) -> Optional[RateLimitStatus]:
        period = metadata.find_value(LOG_AT_MOST_EVERY)
        if period is None:
            return None
        return _duration.get(log_site_key, metadata).check_last_timestamp(timestamp_nanos, period)

    def check_last_timestamp(self, timestamp_nanos: int, period: RateLimitPeriod) -> RateLimitStatus:
        """
        Raises:
            ValueError: If timestamp_nanos is negative
        """
        check_argument(timestamp_nanos >= 0, "timestamp cannot be negative")
        last_nanos = self.last_timestamp_nanos.get()
        if last_nanos >= 0:
            deadline_nanos = last_nanos + period.to_nanos()
            if deadline_nanos < 0 or timestamp_nanos < deadline_nanos:
                return DISALLOW
        # Must not overwrite a timestamp set by a concurrent reset().
        self.last_timestamp_nanos.compare_and_set(last_nanos, -timestamp_nanos)
        return self

    def reset(self) -> None:
        self.last_timestamp_nanos.set(max(-self.last_timestamp_nanos.get(), 0))


class _ThreadRandom(threading.local):
    def __init__(self):
        self.rng = random.Random()


_random = _ThreadRandom()


class SamplingRateLimiter(RateLimitStatus):
    """
    Pending on average once every N invocations (set by on_average_every(n)).

    The die is rolled on every invocation, even while already pending, so
    over time the number of logged statements stays close to 1 in N.
    """

    __slots__ = ("pending_count",)

    def __init__(self):
        self.pending_count = AtomicInteger()

    @staticmethod
    def check(metadata: Metadata, log_site_key: Hashable) -> Optional[RateLimitStatus]:
        rate_limit_count = metadata.find_value(LOG_SAMPLE_EVERY_N)
        if rate_limit_count is None or rate_limit_count <= 0:
            return None
        return _sampling.get(log_site_key, metadata).sample_one_in(rate_limit_count)

    def sample_one_in(self, rate_limit_count: int) -> RateLimitStatus:
        if _random.rng.randrange(rate_limit_count) == 0:
            pending = self.pending_count.increment_and_get()
        else:
            pending = self.pending_count.get()
        return self if pending > 0 else DISALLOW

    def reset(self) -> None:
        self.pending_count.decrement_and_get()


_counting: LogSiteMap[CountingRateLimiter] = LogSiteMap(CountingRateLimiter)
_duration: LogSiteMap[DurationRateLimiter] = LogSiteMap(DurationRateLimiter)
_sampling: LogSiteMap[SamplingRateLimiter] = LogSiteMap(SamplingRateLimiter)
