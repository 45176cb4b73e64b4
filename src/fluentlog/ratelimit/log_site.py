"""
Log site identity and per-log-site state.

A log-site key is any hashable object identifying a log statement; usually a
LogSite, optionally specialized by one or more qualifiers (see per()).
"""

import sys
import threading
import weakref
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, TypeVar

from ..core.checks import check_not_none
from ..core.keys import LOG_SITE_GROUPING_KEY
from ..core.metadata import Metadata

V = TypeVar("V")

UNKNOWN_LINE = 0


@dataclass(frozen=True)
class LogSite:
    """
    Source location of a log statement.

    Equality ignores the file name, which is informational only.
    """

    module: str
    function: str
    line: int
    file: Optional[str] = None

    # Assigned below the class body.
    INVALID = None  # type: LogSite

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LogSite):
            return NotImplemented
        return (self.module, self.function, self.line) == (other.module, other.function, other.line)

    def __hash__(self) -> int:
        return hash((self.module, self.function, self.line))

    def __str__(self) -> str:
        text = f"LogSite{{ module={self.module}, function={self.function}, line={self.line}"
        if self.file is not None:
            text += f", file={self.file}"
        return text + " }"

    @staticmethod
    def injected(module: str, function: str, line: int, file: Optional[str] = None) -> "LogSite":
        """Create a log site for code which knows its own location."""
        return LogSite(check_not_none(module, "module"), check_not_none(function, "function"), line, file)

    @staticmethod
    def for_caller(depth: int = 1) -> "LogSite":
        """
        Return the log site of a caller on the current stack.

        Args:
            depth: Frames to skip above the function calling this method

        Returns:
            The caller's log site, or LogSite.INVALID if the stack is too shallow
        """
        try:
            frame = sys._getframe(depth + 1)
        except ValueError:
            return LogSite.INVALID
        code = frame.f_code
        return LogSite(frame.f_globals.get("__name__", "<unknown module>"), code.co_name, frame.f_lineno, code.co_filename)


LogSite.INVALID = LogSite("<unknown module>", "<unknown function>", UNKNOWN_LINE)


class SpecializedLogSiteKey:
    """A log-site key qualified by an additional grouping value."""

    __slots__ = ("_delegate", "_qualifier")

    def __init__(self, delegate: Hashable, qualifier: Hashable):
        self._delegate = check_not_none(delegate, "log site key")
        self._qualifier = check_not_none(qualifier, "log site qualifier")

    @staticmethod
    def of(key: Hashable, qualifier: Hashable) -> "SpecializedLogSiteKey":
        return SpecializedLogSiteKey(key, qualifier)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SpecializedLogSiteKey):
            return NotImplemented
        return self._delegate == other._delegate and self._qualifier == other._qualifier

    def __hash__(self) -> int:
        # XOR makes the hash independent of the order qualifiers were applied in.
        return hash(self._delegate) ^ hash(self._qualifier)

    def __repr__(self) -> str:
        return f"SpecializedLogSiteKey{{ delegate='{self._delegate}', qualifier='{self._qualifier}' }}"


class _KeyPart:
    """
    Qualifier standing in for a scope in specialized keys.

    Keys hold this rather than the scope so map entries never keep a scope
    alive; the hooks also run if the scope is garbage collected unclosed.
    """

    __slots__ = ("_hooks", "_lock", "_closed", "__weakref__")

    def __init__(self):
        self._hooks: List[Callable[[], None]] = []
        self._lock = threading.Lock()
        self._closed = False

    def add_hook(self, hook: Callable[[], None]) -> None:
        with self._lock:
            if not self._closed:
                self._hooks.append(hook)
                return
        hook()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            hooks, self._hooks = self._hooks, []
        for hook in hooks:
            hook()


class LoggingScope:
    """
    Scope for grouping log-site state by some unit of work (e.g. a request).

    Per-scope rate limiting state is discarded when the scope is closed.
    Scopes are compared by identity.
    """

    __slots__ = ("_label", "_key_part", "_finalizer", "__weakref__")

    def __init__(self, label: str):
        self._label = check_not_none(label, "label")
        self._key_part = _KeyPart()
        self._finalizer = weakref.finalize(self, self._key_part.close)

    @staticmethod
    def create(label: str) -> "LoggingScope":
        return LoggingScope(label)

    @property
    def label(self) -> str:
        return self._label

    def specialize(self, key: Hashable) -> SpecializedLogSiteKey:
        """Return key specialized to this scope."""
        return SpecializedLogSiteKey.of(key, self._key_part)

    def on_close(self, hook: Callable[[], None]) -> None:
        """Register a hook to run once when this scope closes (immediately if already closed)."""
        self._key_part.add_hook(check_not_none(hook, "hook"))

    def close(self) -> None:
        """Run the registered hooks. Closing more than once has no further effect."""
        self._finalizer()

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def __str__(self) -> str:
        return self._label

    def __repr__(self) -> str:
        return f"LoggingScope({self._label!r})"


class LogSiteMap(Generic[V]):
    """
    Lazily populated map from log-site key to per-log-site state.

    Values are created by the factory on first access. Racing threads all
    receive the same value. Entries specialized by a LoggingScope are removed
    when that scope is closed.
    """

    __slots__ = ("_factory", "_map")

    def __init__(self, factory: Callable[[], V]):
        self._factory = check_not_none(factory, "factory")
        self._map: Dict[Hashable, V] = {}

    def get(self, key: Hashable, metadata: Metadata) -> V:
        """
        Return the state for key, creating it on first use.

        Args:
            key: Log-site key, possibly specialized
            metadata: Log-site metadata used to find any scopes for key
        """
        value = self._map.get(key)
        if value is not None:
            return value
        created = check_not_none(self._factory(), "initial map value")
        # dict.setdefault is atomic, so exactly one caller wins the insert.
        value = self._map.setdefault(key, created)
        if value is created:
            self._add_removal_hook(key, metadata)
        return value

    def contains(self, key: Hashable) -> bool:
        return key in self._map

    __contains__ = contains

    def __len__(self) -> int:
        return len(self._map)

    def _add_removal_hook(self, key: Hashable, metadata: Metadata) -> None:
        hook: Optional[Callable[[], None]] = None
        for i in range(metadata.size()):
            if metadata.get_key(i) is not LOG_SITE_GROUPING_KEY:
                continue
            scope: Any = metadata.get_value(i)
            if not isinstance(scope, LoggingScope):
                continue
            if hook is None:
                hook = self._remover(key)
            scope.on_close(hook)

    def _remover(self, key: Hashable) -> Callable[[], None]:
        def remove() -> None:
            self._map.pop(key, None)

        return remove
