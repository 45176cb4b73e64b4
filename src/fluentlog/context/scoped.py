"""
Scoped logging contexts carrying tags, metadata and log level overrides.

Context state lives in a ContextVar, so it follows the code that installed
it across threads started with contextvars.copy_context() and across
asyncio tasks (which copy the context when created).

Usage:
    with ScopedLoggingContext.new_context().with_tags(Tags.of("request_id", rid)).install():
        logger.at_info().log("Handling request")  # includes request_id
"""

import functools
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, TypeVar, Union

from ..core.checks import check_not_none
from ..core.metadata import ContextMetadata
from ..core.metadata_key import MetadataKey
from ..core.tags import Tags
from ..ratelimit.log_site import LoggingScope
from .level_map import LogLevelMap

R = TypeVar("R")


@dataclass(frozen=True)
class ContextState:
    """Snapshot of the logging context active at some point."""

    tags: Tags
    metadata: ContextMetadata
    level_map: Optional[LogLevelMap] = None
    scope: Optional[LoggingScope] = None


_EMPTY_STATE = ContextState(Tags.empty(), ContextMetadata.none())

_context_state: ContextVar[ContextState] = ContextVar("fluentlog_context", default=_EMPTY_STATE)


def current_state() -> ContextState:
    return _context_state.get()


def current_tags() -> Tags:
    """Tags of all contexts enclosing the caller, merged."""
    return _context_state.get().tags


def current_metadata() -> ContextMetadata:
    """Metadata of all contexts enclosing the caller, outermost first."""
    return _context_state.get().metadata


def current_scope() -> Optional[LoggingScope]:
    """Innermost logging scope, if any context created one."""
    return _context_state.get().scope


def should_force_logging(logger_name: str, level: int) -> bool:
    """Whether the current context forces statements at level on the named logger."""
    level_map = _context_state.get().level_map
    if level_map is None:
        return False
    force_level = level_map.get_level(logger_name)
    return force_level is not None and level >= force_level


class ScopedLoggingContext:
    """Entry point for creating logging contexts."""

    @staticmethod
    def new_context() -> "ScopedLoggingContext.Builder":
        return ScopedLoggingContext.Builder()

    class Builder:
        """Collects the state of a new context, which is applied on install()."""

        __slots__ = ("_tags", "_metadata", "_level_map", "_scope", "_scope_label")

        def __init__(self):
            self._tags = Tags.empty()
            self._metadata = ContextMetadata.builder()
            self._level_map: Optional[LogLevelMap] = None
            self._scope: Optional[LoggingScope] = None
            self._scope_label: Optional[str] = None

        def with_tags(self, tags: Tags) -> "ScopedLoggingContext.Builder":
            """Add tags, merged with those of any enclosing context."""
            self._tags = self._tags.merge(check_not_none(tags, "tags"))
            return self

        def with_metadata(self, key: MetadataKey, value: Any) -> "ScopedLoggingContext.Builder":
            """Add a metadata value, appended after that of any enclosing context."""
            self._metadata.add(key, value)
            return self

        def with_scope(self, scope: Union[LoggingScope, str]) -> "ScopedLoggingContext.Builder":
            """
            Attach a logging scope for per_scope() rate limiting.

            Passing a label creates a new scope each time the context is
            installed, closed (discarding its rate limiting state) when the
            context exits. A scope object passed in is left open.
            """
            check_not_none(scope, "scope")
            if isinstance(scope, str):
                self._scope, self._scope_label = None, scope
            else:
                self._scope, self._scope_label = scope, None
            return self

        def with_log_level(self, level: int) -> "ScopedLoggingContext.Builder":
            """Force logging of statements at or above level on every logger, even where loggers disable them."""
            return self.with_log_level_map(LogLevelMap.of_default(level))

        def with_log_level_map(self, level_map: LogLevelMap) -> "ScopedLoggingContext.Builder":
            """
            Force logging per logger name, with levels looked up in level_map.

            Maps given to this and enclosing contexts are merged, keeping the
            most verbose level for each logger.
            """
            check_not_none(level_map, "log level map")
            self._level_map = level_map if self._level_map is None else self._level_map.merge(level_map)
            return self

        def _state_within(self, parent: ContextState, scope: Optional[LoggingScope]) -> ContextState:
            level_map = parent.level_map
            if self._level_map is not None:
                level_map = self._level_map if level_map is None else level_map.merge(self._level_map)
            return ContextState(
                tags=parent.tags.merge(self._tags),
                metadata=parent.metadata.concatenate(self._metadata.build()),
                level_map=level_map,
                scope=scope if scope is not None else parent.scope,
            )

        @contextmanager
        def install(self) -> Iterator[ContextState]:
            """
            Install the context for the duration of a with block.

            The enclosing context is always restored on exit.
            """
            owned = LoggingScope.create(self._scope_label) if self._scope_label is not None else None
            state = self._state_within(_context_state.get(), owned or self._scope)
            token = _context_state.set(state)
            try:
                yield state
            finally:
                _context_state.reset(token)
                if owned is not None:
                    owned.close()

        def run(self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
            """Call fn inside the context and return its result."""
            with self.install():
                return fn(*args, **kwargs)

        def wrap(self, fn: Callable[..., R]) -> Callable[..., R]:
            """Return a function which runs fn inside the context on every call."""

            @functools.wraps(fn)
            def wrapper(*args: Any, **kwargs: Any) -> R:
                return self.run(fn, *args, **kwargs)

            return wrapper
