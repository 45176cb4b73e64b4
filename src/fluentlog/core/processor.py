"""
Unified, read-only view of scope and log-site metadata.

Backends are expected to:

1. Create one or more stateless MetadataHandler instances as module constants.
2. For each log statement, create a MetadataProcessor in the logging thread
   from the current scope metadata and the log-site metadata.
3. Dispatch the processor to one or more handlers, possibly with different
   mutable context objects.

Keeping those life-cycles separate keeps per-statement work small. Processors
are reusable but not thread safe, and read directly from the metadata they
were built from, so that metadata must not be modified while in use.
"""

from abc import ABC, abstractmethod
from collections.abc import Set as AbstractSet
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, TypeVar

from .checks import check_argument, check_not_none
from .metadata import Metadata
from .metadata_key import MetadataKey

if TYPE_CHECKING:
    from .handler import MetadataHandler

T = TypeVar("T")
C = TypeVar("C")


class MetadataProcessor(ABC):
    """
    Combined view of scope and log-site metadata.

    Merge rules:

    - Distinct keys are visited in the order they were first seen, scope keys
      before log-site keys.
    - For single-valued keys, a log-site value replaces any scope value.
    - For repeated keys, all values are kept in order, scope values first.
      Equal values are not de-duplicated.
    """

    __slots__ = ()

    @staticmethod
    def for_scope_and_log_site(scope: Metadata, logged: Metadata) -> "MetadataProcessor":
        """
        Return a processor for the combined scope and log-site metadata.

        Args:
            scope: Metadata of the current logging scope
            logged: Metadata collected by the log statement itself

        Returns:
            A processor over a unified view of both
        """
        total_size = scope.size() + logged.size()
        if total_size == 0:
            return _EMPTY_PROCESSOR
        if total_size <= LightweightProcessor.MAX_LIGHTWEIGHT_ELEMENTS:
            return LightweightProcessor(scope, logged)
        return SimpleProcessor(scope, logged)

    @abstractmethod
    def process(self, handler: "MetadataHandler[C]", context: C) -> None:
        """
        Invoke the handler once for each distinct key.

        Single-valued keys are passed to handler.handle() and repeated keys
        to handler.handle_repeated() with a single-pass iterator of values.
        """

    @abstractmethod
    def handle(self, key: MetadataKey, handler: "MetadataHandler[C]", context: C) -> None:
        """Like process(), but only for the given key. Does nothing if it is absent."""

    @abstractmethod
    def get_single_value(self, key: MetadataKey[T]) -> Optional[T]:
        """
        Return the resolved value of a single-valued key, or None.

        Raises:
            ValueError: If key is repeatable (even if it has only one value)
        """

    @abstractmethod
    def key_count(self) -> int:
        """Number of distinct keys, without building the key set."""

    @abstractmethod
    def key_set(self) -> AbstractSet:
        """Distinct keys in processing order. Containment tests are linear."""


class _EmptyProcessor(MetadataProcessor):
    __slots__ = ()

    def process(self, handler, context) -> None:
        pass

    def handle(self, key, handler, context) -> None:
        pass

    def get_single_value(self, key: MetadataKey[T]) -> Optional[T]:
        check_argument(not key.can_repeat, "key must be single valued")
        return None

    def key_count(self) -> int:
        return 0

    def key_set(self) -> AbstractSet:
        return frozenset()


_EMPTY_PROCESSOR = _EmptyProcessor()


def _trailing_zeros(mask: int) -> int:
    return (mask & -mask).bit_length() - 1


class _KeySet(AbstractSet):
    __slots__ = ("_processor",)

    def __init__(self, processor: "LightweightProcessor"):
        self._processor = processor

    def __len__(self) -> int:
        return self._processor._key_count

    def __iter__(self) -> Iterator[MetadataKey]:
        p = self._processor
        for i in range(p._key_count):
            yield p._get_key(p._key_map[i] & 0x1F)

    def __contains__(self, key: object) -> bool:
        return any(k is key for k in self)


class LightweightProcessor(MetadataProcessor):
    """
    Allocation-light processor for small amounts of metadata.

    Each entry of the key map describes one distinct key:

        [ bits 31-5: mask of additional repeated indices | bits 4-0: first index ]

    Index 0 can never be an "additional" value, so bit 5 encodes index 1,
    which gives room for 1 + 27 = 28 indices in total. The bloom filter is
    only efficient up to 10-15 keys anyway, beyond which SimpleProcessor is
    the better choice.
    """

    MAX_LIGHTWEIGHT_ELEMENTS = 28

    __slots__ = ("_scope", "_logged", "_key_map", "_key_count")

    def __init__(self, scope: Metadata, logged: Metadata):
        self._scope = check_not_none(scope, "scope metadata")
        self._logged = check_not_none(logged, "logged metadata")
        # There can never be more distinct keys than elements, so this is never resized.
        max_key_count = scope.size() + logged.size()
        check_argument(max_key_count <= self.MAX_LIGHTWEIGHT_ELEMENTS, "metadata size too large")
        self._key_map: List[int] = [0] * max_key_count
        self._key_count = self._prepare_key_map(self._key_map)

    def process(self, handler, context) -> None:
        for i in range(self._key_count):
            n = self._key_map[i]
            self._dispatch(self._get_key(n & 0x1F), n, handler, context)

    def handle(self, key, handler, context) -> None:
        index = self._index_of(key, self._key_count)
        if index >= 0:
            self._dispatch(key, self._key_map[index], handler, context)

    def get_single_value(self, key: MetadataKey[T]) -> Optional[T]:
        check_argument(not key.can_repeat, "key must be single valued")
        index = self._index_of(key, self._key_count)
        # For single keys the key map entry is just the value index.
        return key.cast(self._get_value(self._key_map[index])) if index >= 0 else None

    def key_count(self) -> int:
        return self._key_count

    def key_set(self) -> AbstractSet:
        return _KeySet(self)

    def _dispatch(self, key: MetadataKey, n: int, handler, context) -> None:
        if not key.can_repeat:
            handler.handle(key, key.cast(self._get_value(n)), context)
        else:
            handler.handle_repeated(key, self._iter_values(key, n), context)

    def _iter_values(self, key: MetadataKey[T], value_indices: int) -> Iterator[T]:
        index = value_indices & 0x1F
        # Shift so that bit 0 of the mask is the index after the first value.
        mask = value_indices >> (5 + index)
        while True:
            yield key.cast(self._get_value(index))
            if not mask:
                return
            skip = 1 + _trailing_zeros(mask)
            mask >>= skip
            index += skip

    def _prepare_key_map(self, key_map: List[int]) -> int:
        """Fill key_map in encounter order and return the number of distinct keys."""
        bloom_filter_mask = 0
        count = 0
        for n in range(len(key_map)):
            key = self._get_key(n)
            old_mask = bloom_filter_mask
            bloom_filter_mask |= key.bloom_filter_mask
            if bloom_filter_mask == old_mask:
                # Probably a duplicate. Never true for n == 0 since masks are non-zero.
                i = self._index_of(key, count)
                if i != -1:
                    # Single keys take the latest index; repeated keys add a mask bit.
                    # Index 1 lives at bit 5, hence "n + 4".
                    key_map[i] = (key_map[i] | (1 << (n + 4))) if key.can_repeat else n
                    continue
                # Bloom filter false positive.
            key_map[count] = n
            count += 1
        return count

    def _index_of(self, key: MetadataKey, count: int) -> int:
        for i in range(count):
            # The low 5 bits always index a valid key.
            if self._get_key(self._key_map[i] & 0x1F) is key:
                return i
        return -1

    def _get_key(self, n: int) -> MetadataKey:
        scope_size = self._scope.size()
        return self._logged.get_key(n - scope_size) if n >= scope_size else self._scope.get_key(n)

    def _get_value(self, n: int) -> Any:
        scope_size = self._scope.size()
        return self._logged.get_value(n - scope_size) if n >= scope_size else self._scope.get_value(n)


class SimpleProcessor(MetadataProcessor):
    """
    Map based processor for large amounts of metadata.

    Behaves exactly like LightweightProcessor for well behaved metadata.
    Values are copied (and cast to their key types) eagerly.
    """

    __slots__ = ("_map",)

    def __init__(self, scope: Metadata, logged: Metadata):
        values: Dict[MetadataKey, Any] = {}
        self._add_to(values, check_not_none(scope, "scope metadata"))
        self._add_to(values, check_not_none(logged, "logged metadata"))
        for key, value in values.items():
            if key.can_repeat:
                values[key] = tuple(value)
        self._map = values

    @staticmethod
    def _add_to(values: Dict[MetadataKey, Any], metadata: Metadata) -> None:
        for i in range(metadata.size()):
            key = metadata.get_key(i)
            value = key.cast(metadata.get_value(i))
            if key.can_repeat:
                values.setdefault(key, []).append(value)
            else:
                # Re-assigning an existing key keeps its original position.
                values[key] = value

    def process(self, handler, context) -> None:
        for key, value in self._map.items():
            self._dispatch(key, value, handler, context)

    def handle(self, key, handler, context) -> None:
        value = self._map.get(key)
        if value is not None:
            self._dispatch(key, value, handler, context)

    def get_single_value(self, key: MetadataKey[T]) -> Optional[T]:
        check_argument(not key.can_repeat, "key must be single valued")
        return self._map.get(key)

    def key_count(self) -> int:
        return len(self._map)

    def key_set(self) -> AbstractSet:
        return self._map.keys()

    @staticmethod
    def _dispatch(key: MetadataKey, value: Any, handler, context) -> None:
        if key.can_repeat:
            handler.handle_repeated(key, iter(value), context)
        else:
            handler.handle(key, value, context)
