"""
Per logger-name log levels for forcing statements in a logging context.

A map entry for "app.db" applies to the logger "app.db" and to every logger
below it ("app.db.pool"), but not to "app.dbx". The longest matching entry
wins; loggers matching no entry get the default level, which is None (off)
unless set.
"""

from types import MappingProxyType
from typing import Dict, Mapping, Optional

from ..core.checks import check_argument, check_not_none


def _more_verbose(a: Optional[int], b: Optional[int]) -> Optional[int]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


class LogLevelMap:
    """
    Immutable mapping from logger name prefixes to log levels.

    Usage:
        level_map = LogLevelMap.builder().add(Level.FINE, "app.db").set_default(Level.INFO).build()
        level_map.get_level("app.db.pool")  # Level.FINE
    """

    __slots__ = ("_levels", "_default_level")

    def __init__(self, levels: Mapping[str, int], default_level: Optional[int] = None):
        """
        Initialize the map.

        Args:
            levels: Log levels keyed by dotted logger name prefix
            default_level: Level for loggers matching no entry; None disables forcing

        Raises:
            ValueError: If a name is empty, starts or ends with "." or contains ".."
        """
        for name, level in levels.items():
            check_argument(
                bool(name) and not name.startswith(".") and not name.endswith(".") and ".." not in name,
                f"invalid logger name: {name!r}",
            )
            check_not_none(level, f"log level for {name}")
        self._levels: Mapping[str, int] = MappingProxyType({name: int(level) for name, level in levels.items()})
        self._default_level = int(default_level) if default_level is not None else None

    @staticmethod
    def create(levels: Mapping[str, int], default_level: Optional[int] = None) -> "LogLevelMap":
        return LogLevelMap(levels, default_level)

    @staticmethod
    def of_default(level: int) -> "LogLevelMap":
        """Return a map applying one level to every logger."""
        return LogLevelMap({}, check_not_none(level, "level"))

    @staticmethod
    def builder() -> "LogLevelMap.Builder":
        return LogLevelMap.Builder()

    @property
    def levels(self) -> Mapping[str, int]:
        return self._levels

    @property
    def default_level(self) -> Optional[int]:
        return self._default_level

    def get_level(self, logger_name: str) -> Optional[int]:
        """Return the level of the longest entry matching logger_name, or the default."""
        name = logger_name
        while True:
            level = self._levels.get(name)
            if level is not None:
                return level
            dot = name.rfind(".")
            if dot < 0:
                return self._default_level
            name = name[:dot]

    def merge(self, other: "LogLevelMap") -> "LogLevelMap":
        """Return the union of both maps, taking the more verbose level where both set one."""
        merged: Dict[str, int] = dict(self._levels)
        for name, level in other.levels.items():
            merged[name] = min(merged[name], level) if name in merged else level
        return LogLevelMap(merged, _more_verbose(self._default_level, other.default_level))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LogLevelMap):
            return NotImplemented
        return dict(self._levels) == dict(other.levels) and self._default_level == other.default_level

    def __hash__(self) -> int:
        return hash((frozenset(self._levels.items()), self._default_level))

    def __repr__(self) -> str:
        return f"LogLevelMap({dict(self._levels)!r}, default={self._default_level!r})"

    class Builder:
        """Collects entries for a LogLevelMap."""

        __slots__ = ("_levels", "_default_level")

        def __init__(self):
            self._levels: Dict[str, int] = {}
            self._default_level: Optional[int] = None

        def add(self, level: int, *names: str) -> "LogLevelMap.Builder":
            """
            Set level for each logger name prefix.

            Raises:
                ValueError: If a name was already added
            """
            check_not_none(level, "level")
            for name in names:
                check_argument(name not in self._levels, f"duplicate entry for logger: {name}")
                self._levels[name] = int(level)
            return self

        def set_default(self, level: Optional[int]) -> "LogLevelMap.Builder":
            self._default_level = level
            return self

        def build(self) -> "LogLevelMap":
            return LogLevelMap(self._levels, self._default_level)
