"""Rate limiting, log sites and per-log-site state."""

from .atomic import AtomicBoolean, AtomicInteger
from .bucketing import LogPerBucketingStrategy
from .limiters import CountingRateLimiter, DurationRateLimiter, SamplingRateLimiter
from .log_site import LoggingScope, LogSite, LogSiteMap, SpecializedLogSiteKey
from .status import ALLOW, DISALLOW, RateLimitStatus

__all__ = [
    "ALLOW",
    "DISALLOW",
    "AtomicBoolean",
    "AtomicInteger",
    "CountingRateLimiter",
    "DurationRateLimiter",
    "LogPerBucketingStrategy",
    "LogSite",
    "LogSiteMap",
    "LoggingScope",
    "RateLimitStatus",
    "SamplingRateLimiter",
    "SpecializedLogSiteKey",
]
