"""
Standard metadata keys used by the fluent API and the rate limiters.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .metadata_key import KeyValueHandler, MetadataKey
from .tags import Tags


class TimeUnit(Enum):
    """Time units for at_most_every(), valued in nanoseconds."""

    NANOSECONDS = 1
    MICROSECONDS = 1_000
    MILLISECONDS = 1_000_000
    SECONDS = 1_000_000_000
    MINUTES = 60 * 1_000_000_000
    HOURS = 60 * 60 * 1_000_000_000
    DAYS = 24 * 60 * 60 * 1_000_000_000


@dataclass(frozen=True)
class RateLimitPeriod:
    """Minimum period between emitted log statements at a log site."""

    n: int
    unit: TimeUnit

    def __post_init__(self):
        if not isinstance(self.unit, TimeUnit):
            raise TypeError(f"unit must be a TimeUnit: {self.unit!r}")
        if self.n <= 0:
            raise ValueError(f"time period must be positive: {self.n}")

    def to_nanos(self) -> int:
        return self.n * self.unit.value

    def __str__(self) -> str:
        return f"{self.n} {self.unit.name}"


class _GroupingKey(MetadataKey):
    """Emits several grouping values as a single "[a,b,c]" value."""

    __slots__ = ()

    def emit_repeated(self, values: Iterable[object], out: KeyValueHandler) -> None:
        collected = [str(v) for v in values]
        if not collected:
            return
        if len(collected) == 1:
            out.handle(self.label, collected[0])
        else:
            out.handle(self.label, "[" + ",".join(collected) + "]")


class _TagsKey(MetadataKey):
    """Emits each tag as its own key/value pair; bare tags have a None value."""

    __slots__ = ()

    def emit(self, value: Tags, out: KeyValueHandler) -> None:
        for name, values in value.as_map().items():
            if not values:
                out.handle(name, None)
            else:
                for v in values:
                    out.handle(name, v)


# Cause of a log statement, set by with_cause().
LOG_CAUSE: MetadataKey[BaseException] = MetadataKey.single("cause", BaseException)

# Log every N invocations, set by every().
LOG_EVERY_N: MetadataKey[int] = MetadataKey.single("ratelimit_count", int)

# Log on average once every N invocations, set by on_average_every().
LOG_SAMPLE_EVERY_N: MetadataKey[int] = MetadataKey.single("sampling_count", int)

# Log at most once per period, set by at_most_every().
LOG_AT_MOST_EVERY: MetadataKey[RateLimitPeriod] = MetadataKey.single("ratelimit_period", RateLimitPeriod)

# Number of statements skipped by rate limiting since the last emitted one.
SKIPPED_LOG_COUNT: MetadataKey[int] = MetadataKey.single("skipped", int)

# Values which specialize the log site for rate limiting, set by per().
LOG_SITE_GROUPING_KEY: MetadataKey[object] = _GroupingKey("group_by", object, True)

# Set when a statement was logged only because scoped forcing applied.
WAS_FORCED: MetadataKey[bool] = MetadataKey.single("forced", bool)

# Tags from the current logging context.
TAGS: MetadataKey[Tags] = _TagsKey("tags", Tags)

# Settings read by the rate limiters; not normally worth formatting.
RATE_LIMIT_KEYS = (LOG_EVERY_N, LOG_SAMPLE_EVERY_N, LOG_AT_MOST_EVERY)
