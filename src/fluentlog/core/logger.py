"""
Fluent logging API.

    logger = FluentLogger.for_enclosing_module()

    logger.at_info().log("Request %s took %dms", request_id, elapsed)
    logger.at_warning().with_cause(error).every(100).log("Backend unavailable")
    logger.at_fine().per(error, LogPerBucketingStrategy.by_class()).at_most_every(30, TimeUnit.SECONDS).log("Retrying")
"""

import sys
import time
from typing import Any, Hashable, Optional, Sequence

from ..context.scoped import current_metadata, current_scope, current_tags, should_force_logging
from ..processing.backends import LoggerBackend, report_error
from ..processing.data import LogData
from ..ratelimit.bucketing import LogPerBucketingStrategy
from ..ratelimit.limiters import CountingRateLimiter, DurationRateLimiter, SamplingRateLimiter
from ..ratelimit.log_site import LoggingScope, LogSite, SpecializedLogSiteKey
from ..ratelimit.status import DISALLOW, RateLimitStatus
from . import recursion
from .checks import check_argument, check_not_none
from .config import LoggerConfig
from .errors import LoggingError
from .keys import (
    LOG_AT_MOST_EVERY,
    LOG_CAUSE,
    LOG_EVERY_N,
    LOG_SAMPLE_EVERY_N,
    LOG_SITE_GROUPING_KEY,
    SKIPPED_LOG_COUNT,
    TAGS,
    WAS_FORCED,
    RateLimitPeriod,
    TimeUnit,
)
from .lazy import evaluate_lazy_args
from .level import Level
from .metadata import Metadata, MutableMetadata
from .metadata_key import MetadataKey

# Reentrant logging deeper than this is dropped (and reported) rather than emitted.
MAX_ALLOWED_RECURSION_DEPTH = 100


class FluentLogger:
    """
    Logger with a fluent API for building log statements.

    Level selection (at_info() etc.) returns a LogContext, or a no-op API
    when the level is disabled and the current logging context does not
    force it. Disabled statements cost almost nothing.
    """

    __slots__ = ("_name", "_backend", "_config", "_owns_backend")

    def __init__(
        self,
        name: str,
        backend: Optional[LoggerBackend] = None,
        config: Optional[LoggerConfig] = None,
    ):
        """
        Initialize logger.

        Args:
            name: Logger name, usually the module name
            backend: Backend to emit to; built from config when omitted
            config: Logger configuration (defaults to LoggerConfig())
        """
        self._name = check_not_none(name, "name")
        self._config = config if config is not None else LoggerConfig()
        self._owns_backend = backend is None
        self._backend = backend if backend is not None else self._config.create_backend(name)

    @staticmethod
    def for_enclosing_module(config: Optional[LoggerConfig] = None) -> "FluentLogger":
        """Return a logger named after the calling module."""
        frame = sys._getframe(1)
        return FluentLogger(frame.f_globals.get("__name__", "root"), config=config)

    @property
    def name(self) -> str:
        return self._name

    @property
    def backend(self) -> LoggerBackend:
        return self._backend

    @property
    def config(self) -> LoggerConfig:
        return self._config

    def is_loggable(self, level: int) -> bool:
        return self._config.enabled and self._backend.is_loggable(level)

    def at(self, level: int) -> "LogContext":
        """Return the fluent API for a log statement at level."""
        level = int(level)
        is_loggable = self.is_loggable(level)
        is_forced = not is_loggable and self._config.enabled and should_force_logging(self._name, level)
        if is_loggable or is_forced:
            return LogContext(self, level, is_forced)
        return _NO_OP

    def at_severe(self) -> "LogContext":
        return self.at(Level.SEVERE)

    def at_warning(self) -> "LogContext":
        return self.at(Level.WARNING)

    def at_info(self) -> "LogContext":
        return self.at(Level.INFO)

    def at_config(self) -> "LogContext":
        return self.at(Level.CONFIG)

    def at_fine(self) -> "LogContext":
        return self.at(Level.FINE)

    def at_finer(self) -> "LogContext":
        return self.at(Level.FINER)

    def at_finest(self) -> "LogContext":
        return self.at(Level.FINEST)

    def at_debug(self) -> "LogContext":
        """Same as at_fine()."""
        return self.at(Level.FINE)

    def write(self, data: LogData) -> None:
        """
        Emit a log statement through the backend.

        Backend errors go to backend.handle_error(); if that raises as well,
        a LoggingError is raised to the caller.
        """
        with recursion.enter_log_statement() as depth:
            if depth > MAX_ALLOWED_RECURSION_DEPTH:
                report_error(RecursionError(f"unbounded recursion in log statement (depth {depth})"), data)
                return
            try:
                self._backend.log(data)
            except Exception as error:
                try:
                    self._backend.handle_error(error, data)
                except Exception:
                    raise LoggingError(f"logging error in {data.log_site}") from error

    def close(self) -> None:
        """
        Release the backend built from the config, closing any file it opened.

        A backend passed to the constructor is left for its owner to close.
        """
        if self._owns_backend:
            self._backend.close()

    def __repr__(self) -> str:
        return f"FluentLogger({self._name!r})"


def specialize_log_site_key_from_metadata(log_site_key: Hashable, metadata: Metadata) -> Hashable:
    """Specialize a log-site key by every grouping value in metadata, in order."""
    for n in range(metadata.size()):
        if metadata.get_key(n) is LOG_SITE_GROUPING_KEY:
            qualifier = metadata.get_value(n)
            # Scopes specialize with a part that lets closing them evict state.
            if isinstance(qualifier, LoggingScope):
                log_site_key = qualifier.specialize(log_site_key)
            else:
                log_site_key = SpecializedLogSiteKey.of(log_site_key, qualifier)
    return log_site_key


class LogContext:
    """
    State of a single log statement being built.

    Created by FluentLogger.at() and discarded once log() is called. Not
    thread safe and not reusable.
    """

    __slots__ = ("_logger", "_level", "_timestamp_nanos", "_metadata", "_log_site", "_rate_limit_status", "_was_forced")

    def __init__(self, logger: FluentLogger, level: int, is_forced: bool = False):
        self._logger = logger
        self._level = level
        self._timestamp_nanos = time.time_ns()
        self._metadata: Optional[MutableMetadata] = None
        self._log_site: Optional[LogSite] = None
        self._rate_limit_status: Optional[RateLimitStatus] = None
        self._was_forced = is_forced
        if is_forced:
            self.add_metadata(WAS_FORCED, True)

    @property
    def level(self) -> int:
        return self._level

    @property
    def timestamp_nanos(self) -> int:
        return self._timestamp_nanos

    @property
    def metadata(self) -> Metadata:
        return self._metadata if self._metadata is not None else Metadata.empty()

    @property
    def log_site(self) -> Optional[LogSite]:
        return self._log_site

    @property
    def was_forced(self) -> bool:
        """Whether the logging context forced this statement past the logger's level."""
        return self._was_forced

    def add_metadata(self, key: MetadataKey, value: Any) -> None:
        if self._metadata is None:
            self._metadata = MutableMetadata()
        self._metadata.add_value(key, value)

    def remove_metadata(self, key: MetadataKey) -> None:
        if self._metadata is not None:
            self._metadata.remove_all_values(key)

    # ---- Fluent API ----

    def with_(self, key: MetadataKey, value: Any) -> "LogContext":
        """
        Add a metadata value. A None value is ignored.

        Raises:
            ValueError: If key is None
            TypeError: If value is not of the key's type
        """
        check_not_none(key, "metadata key")
        if value is not None:
            self.add_metadata(key, key.cast(value))
        return self

    def with_flag(self, key: MetadataKey) -> "LogContext":
        """Set a boolean key to True."""
        return self.with_(key, True)

    def with_cause(self, cause: Optional[BaseException]) -> "LogContext":
        return self.with_(LOG_CAUSE, cause)

    def every(self, n: int) -> "LogContext":
        """
        Log the first statement and then every n-th one after it.

        Raises:
            ValueError: If n is not positive
        """
        return self._every_impl(LOG_EVERY_N, n, "rate limit")

    def on_average_every(self, n: int) -> "LogContext":
        """
        Log each statement with probability 1/n.

        Raises:
            ValueError: If n is not positive
        """
        return self._every_impl(LOG_SAMPLE_EVERY_N, n, "sampling")

    def _every_impl(self, key: MetadataKey, n: int, label: str) -> "LogContext":
        # Forced statements are never rate limited, whatever the arguments.
        if self._was_forced:
            return self
        check_argument(n > 0, f"{label} count must be positive: {n}")
        # A count of 1 is a no-op rather than a rate limit.
        if n > 1:
            self.add_metadata(key, n)
        return self

    def at_most_every(self, n: int, unit: TimeUnit) -> "LogContext":
        """
        Log at most once per period of n units.

        Raises:
            ValueError: If n is negative
        """
        if self._was_forced:
            return self
        check_argument(n >= 0, f"rate limit period cannot be negative: {n}")
        check_not_none(unit, "time unit")
        if n > 0:
            self.add_metadata(LOG_AT_MOST_EVERY, RateLimitPeriod(n, unit))
        return self

    def per(self, key: Any, strategy: Optional[LogPerBucketingStrategy] = None) -> "LogContext":
        """
        Keep separate rate limiting state for each value of key.

        Without a strategy the key itself is used, so it must come from a
        small, bounded set (e.g. an Enum). A None key is ignored.

        Raises:
            ValueError: If the key (or the strategy's bucket for it) is not hashable
        """
        if key is None:
            return self
        bucket = strategy.apply(key) if strategy is not None else key
        try:
            hash(bucket)
        except TypeError:
            raise ValueError(
                f"per() needs a hashable key, got {type(bucket).__name__}; "
                "use a LogPerBucketingStrategy such as by_class() or by_class_name()"
            ) from None
        return self.with_(LOG_SITE_GROUPING_KEY, bucket)

    def per_scope(self, scope: Optional[LoggingScope] = None) -> "LogContext":
        """Keep separate rate limiting state per logging scope (the current one by default)."""
        return self.with_(LOG_SITE_GROUPING_KEY, scope if scope is not None else current_scope())

    def with_injected_log_site(self, log_site: LogSite) -> "LogContext":
        """Use a known log site instead of inspecting the caller. The first call wins."""
        if self._log_site is None:
            self._log_site = check_not_none(log_site, "log site")
        return self

    def is_enabled(self) -> bool:
        return True

    def update_rate_limiter_status(self, status: Optional[RateLimitStatus]) -> bool:
        """
        Combine an additional rate limiter status into this statement.

        For subclasses adding rate limiters in post_process().

        Returns:
            Whether logging can still occur
        """
        self._rate_limit_status = RateLimitStatus.combine(self._rate_limit_status, status)
        return self._rate_limit_status is not DISALLOW

    def post_process(self, log_site_key: Optional[Hashable]) -> bool:
        """
        Apply the built-in rate limiters.

        Without a log-site key (log site unknown) rate limiting is skipped,
        as if the fluent methods had not been called.

        Returns:
            False if logging is disallowed
        """
        if self._metadata is not None and log_site_key is not None:
            status = DurationRateLimiter.check(self._metadata, log_site_key, self._timestamp_nanos)
            status = RateLimitStatus.combine(status, CountingRateLimiter.check(self._metadata, log_site_key))
            status = RateLimitStatus.combine(status, SamplingRateLimiter.check(self._metadata, log_site_key))
            self._rate_limit_status = status
            if status is DISALLOW:
                return False
        return True

    def _should_log(self) -> bool:
        if self._log_site is None:
            # Frames: for_caller, _should_log, log/log_var_args, user code.
            self._log_site = LogSite.for_caller(2)
        log_site_key: Optional[Hashable] = None
        if self._log_site != LogSite.INVALID:
            log_site_key = self._log_site
            if self._metadata is not None and self._metadata.size() > 0:
                log_site_key = specialize_log_site_key_from_metadata(log_site_key, self._metadata)
        should_log = self.post_process(log_site_key)
        if self._rate_limit_status is not None:
            # Checked even when disallowed, so the skipped count stays accurate.
            skipped = RateLimitStatus.check_status(self._rate_limit_status, log_site_key, self.metadata)
            if should_log and skipped > 0:
                self.add_metadata(SKIPPED_LOG_COUNT, skipped)
            # -1 when disallowed, or when another thread won the race to reset.
            should_log &= skipped >= 0
        return should_log

    def log(self, msg: Any = None, *args: Any) -> None:
        """
        Log a message, formatted with args using the % operator.

        Without args the message is logged as is.
        """
        if self._should_log():
            self._log_impl(msg, args)

    def log_var_args(self, msg: Any, args: Optional[Sequence[Any]]) -> None:
        """Like log(), but with arguments from a sequence."""
        if self._should_log():
            self._log_impl(msg, tuple(args) if args is not None else ())

    def _log_impl(self, msg: Any, args: Sequence[Any]) -> None:
        tags = current_tags()
        if not tags.is_empty():
            log_site_tags = self.metadata.find_value(TAGS)
            self.add_metadata(TAGS, tags.merge(log_site_tags) if log_site_tags is not None else tags)
        data = LogData(
            level=self._level,
            message=msg,
            args=evaluate_lazy_args(tuple(args)),
            logger_name=self._logger.name,
            log_site=self._log_site,
            timestamp_nanos=self._timestamp_nanos,
            metadata=self.metadata,
            scope_metadata=current_metadata(),
        )
        self._logger.write(data)


class _NoOp(LogContext):
    """Fluent API for disabled statements; every call does nothing."""

    __slots__ = ()

    def __init__(self):
        pass

    def with_(self, key: MetadataKey, value: Any) -> "LogContext":
        return self

    def with_flag(self, key: MetadataKey) -> "LogContext":
        return self

    def with_cause(self, cause: Optional[BaseException]) -> "LogContext":
        return self

    def every(self, n: int) -> "LogContext":
        return self

    def on_average_every(self, n: int) -> "LogContext":
        return self

    def at_most_every(self, n: int, unit: TimeUnit) -> "LogContext":
        return self

    def per(self, key: Any, strategy: Optional[LogPerBucketingStrategy] = None) -> "LogContext":
        return self

    def per_scope(self, scope: Optional[LoggingScope] = None) -> "LogContext":
        return self

    def with_injected_log_site(self, log_site: LogSite) -> "LogContext":
        return self

    @property
    def was_forced(self) -> bool:
        return False

    def is_enabled(self) -> bool:
        return False

    def log(self, msg: Any = None, *args: Any) -> None:
        pass

    def log_var_args(self, msg: Any, args: Optional[Sequence[Any]]) -> None:
        pass

    def __repr__(self) -> str:
        return "LogContext.NO_OP"


_NO_OP = _NoOp()
