"""
Ordered key/value metadata for log statements and logging scopes.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple, TypeVar

from .checks import check_argument, check_not_none
from .metadata_key import MetadataKey

T = TypeVar("T")


class Metadata(ABC):
    """
    Sequence of metadata key/value pairs.

    Keys may appear more than once and occur in the order they were added.
    Values are never None; absent metadata is simply not present. Combining
    scope and log-site metadata (and resolving repeated keys) is the job of
    MetadataProcessor, not of this class.
    """

    __slots__ = ()

    @staticmethod
    def empty() -> "Metadata":
        """Return the immutable metadata instance with no entries."""
        return _EMPTY

    @abstractmethod
    def size(self) -> int:
        """Number of key/value pairs."""

    @abstractmethod
    def get_key(self, n: int) -> MetadataKey:
        """
        Return the key of the n-th entry.

        Raises:
            IndexError: If n < 0 or n >= size()
        """

    @abstractmethod
    def get_value(self, n: int) -> Any:
        """
        Return the (non-None) value of the n-th entry.

        Raises:
            IndexError: If n < 0 or n >= size()
        """

    def find_value(self, key: MetadataKey[T]) -> Optional[T]:
        """Return the value of the first entry for key, or None."""
        for n in range(self.size()):
            if self.get_key(n) is key:
                return key.cast(self.get_value(n))
        return None

    def __len__(self) -> int:
        return self.size()

    def __repr__(self) -> str:
        entries = " ".join(f"'{self.get_key(n).label}': {self.get_value(n)!r}" for n in range(self.size()))
        return f"{type(self).__name__}{{ {entries} }}"


class _EmptyMetadata(Metadata):
    __slots__ = ()

    def size(self) -> int:
        return 0

    def get_key(self, n: int) -> MetadataKey:
        raise IndexError("cannot read from empty metadata")

    def get_value(self, n: int) -> Any:
        raise IndexError("cannot read from empty metadata")

    def find_value(self, key: MetadataKey[T]) -> Optional[T]:
        return None


_EMPTY = _EmptyMetadata()


def _check_index(n: int, size: int) -> None:
    if n < 0 or n >= size:
        raise IndexError(f"metadata index out of range: {n} (size {size})")


class MutableMetadata(Metadata):
    """
    Metadata built up while constructing a single log statement.

    Adding a value for a single-valued key that is already present replaces
    the value in place; repeated keys always append.
    """

    __slots__ = ("_keys", "_values")

    def __init__(self):
        self._keys: List[MetadataKey] = []
        self._values: List[Any] = []

    def size(self) -> int:
        return len(self._keys)

    def get_key(self, n: int) -> MetadataKey:
        _check_index(n, len(self._keys))
        return self._keys[n]

    def get_value(self, n: int) -> Any:
        _check_index(n, len(self._values))
        return self._values[n]

    def _index_of(self, key: MetadataKey) -> int:
        for index, k in enumerate(self._keys):
            if k is key:
                return index
        return -1

    def find_value(self, key: MetadataKey[T]) -> Optional[T]:
        index = self._index_of(key)
        return key.cast(self._values[index]) if index != -1 else None

    def add_value(self, key: MetadataKey[T], value: T) -> None:
        """
        Add a key/value pair.

        Raises:
            ValueError: If key or value is None
        """
        check_not_none(key, "metadata key")
        check_not_none(value, "metadata value")
        if not key.can_repeat:
            index = self._index_of(key)
            if index != -1:
                self._values[index] = value
                return
        self._keys.append(key)
        self._values.append(value)

    def remove_all_values(self, key: MetadataKey) -> None:
        """Remove every entry for key, keeping the relative order of the rest."""
        if self._index_of(key) == -1:
            return
        kept = [(k, v) for k, v in zip(self._keys, self._values) if k is not key]
        self._keys = [k for k, _ in kept]
        self._values = [v for _, v in kept]


class ContextMetadata(Metadata):
    """
    Immutable metadata attached to a logging scope.

    Scope metadata is shared read-only by every log statement in the scope.
    Unlike log-site metadata, find_value() returns the last value for a key
    (later scopes override earlier ones) and is only defined for single keys.
    """

    __slots__ = ("_entries",)

    class Builder:
        """Collects entries for a ContextMetadata instance."""

        __slots__ = ("_entries",)

        def __init__(self):
            self._entries: List[Tuple[MetadataKey, Any]] = []

        def add(self, key: MetadataKey[T], value: T) -> "ContextMetadata.Builder":
            check_not_none(key, "key")
            check_not_none(value, "value")
            self._entries.append((key, value))
            return self

        def build(self) -> "ContextMetadata":
            if not self._entries:
                return _NO_CONTEXT
            return ContextMetadata(tuple(self._entries))

    def __init__(self, entries: Tuple[Tuple[MetadataKey, Any], ...] = ()):
        self._entries = entries

    @staticmethod
    def builder() -> "ContextMetadata.Builder":
        return ContextMetadata.Builder()

    @staticmethod
    def singleton(key: MetadataKey[T], value: T) -> "ContextMetadata":
        check_not_none(key, "key")
        check_not_none(value, "value")
        return ContextMetadata(((key, value),))

    @staticmethod
    def none() -> "ContextMetadata":
        return _NO_CONTEXT

    def size(self) -> int:
        return len(self._entries)

    def get_key(self, n: int) -> MetadataKey:
        _check_index(n, len(self._entries))
        return self._entries[n][0]

    def get_value(self, n: int) -> Any:
        _check_index(n, len(self._entries))
        return self._entries[n][1]

    def find_value(self, key: MetadataKey[T]) -> Optional[T]:
        check_argument(not key.can_repeat, "metadata key must be single valued")
        for k, v in reversed(self._entries):
            if k is key:
                return key.cast(v)
        return None

    def concatenate(self, metadata: "ContextMetadata") -> "ContextMetadata":
        """Return metadata with the given entries appended after these."""
        if metadata.size() == 0:
            return self
        if self.size() == 0:
            return metadata
        return ContextMetadata(self._entries + metadata._entries)


_NO_CONTEXT = ContextMetadata()
