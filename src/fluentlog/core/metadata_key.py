"""
Typed, identity-based keys for log statement metadata.
"""

import itertools
from typing import Any, Generic, Iterable, Iterator, Protocol, Tuple, Type, TypeVar, Union, runtime_checkable

from .checks import check_metadata_identifier, check_not_none
from . import recursion

T = TypeVar("T")

# Custom emit() code which logs reentrantly is bypassed above this depth.
MAX_CUSTOM_METADATAKEY_RECURSION_DEPTH = 20

_MASK64 = (1 << 64) - 1
_SEALED_METHODS = ("__eq__", "__hash__", "__repr__", "__str__")

# Allocation order of keys, used as the identity seed for bloom filter masks.
_key_sequence = itertools.count(1)


@runtime_checkable
class KeyValueHandler(Protocol):
    """Receives the key/value pairs emitted for metadata."""

    def handle(self, label: str, value: Any) -> None:
        """Handle a single key/value pair."""
        ...


def _mix64(h: int) -> int:
    # splitmix64 finaliser
    h = ((h ^ (h >> 30)) * 0xBF58476D1CE4E5B9) & _MASK64
    h = ((h ^ (h >> 27)) * 0x94D049BB133111EB) & _MASK64
    return h ^ (h >> 31)


def _create_bloom_filter_mask(seed: int) -> int:
    """
    Build a 64-bit mask with exactly 5 bits set from a per-key seed.

    For 64 bits and the ~10 distinct keys normally seen per log statement,
    k = (M / N) ln(2) gives roughly 5 bits per mask. Bit indices are taken
    from successive 6-bit chunks of the mixed seed.
    """
    state = _mix64(seed)
    h = state
    chunks = 0
    bloom = 0
    bits = 0
    while bits < 5:
        if chunks == 10:
            state = _mix64(state + 0x9E3779B97F4A7C15)
            h = state
            chunks = 0
        bit = 1 << (h & 0x3F)
        if not bloom & bit:
            bloom |= bit
            bits += 1
        h >>= 6
        chunks += 1
    return bloom


class MetadataKey(Generic[T]):
    """
    Key for a piece of metadata attached to a log statement.

    Keys behave like singletons: two keys with the same label are still
    distinct, and equality is identity. Keys should be created once and held
    in module level constants.

    Subclasses may override emit() and emit_repeated() to control how values
    are rendered, but cannot change equality, hashing or repr.
    """

    __slots__ = ("_label", "_value_type", "_can_repeat", "_bloom_filter_mask")

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        for name in _SEALED_METHODS:
            if name in cls.__dict__:
                raise TypeError(f"{cls.__name__} must not override {name}")

    def __init__(
        self,
        label: str,
        value_type: Union[Type[T], Tuple[type, ...]],
        can_repeat: bool = False,
    ):
        """
        Constructor for custom key subclasses.

        Most code should use MetadataKey.single() or MetadataKey.repeated().
        Keys are immutable once created; subclasses holding extra state must
        set it with object.__setattr__().

        Args:
            label: Identifier used when the metadata is formatted
            value_type: Type (or tuple of types) that values must be instances of
            can_repeat: Whether more than one value may be held for this key
        """
        object.__setattr__(self, "_label", check_metadata_identifier(label))
        object.__setattr__(self, "_value_type", check_not_none(value_type, "value_type"))
        object.__setattr__(self, "_can_repeat", bool(can_repeat))
        object.__setattr__(self, "_bloom_filter_mask", _create_bloom_filter_mask(next(_key_sequence)))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"cannot set {name!r}: metadata keys are immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"cannot delete {name!r}: metadata keys are immutable")

    @staticmethod
    def single(label: str, value_type: Union[Type[T], Tuple[type, ...]]) -> "MetadataKey[T]":
        """
        Create a key for a single piece of metadata.

        If a value is set more than once for the same log statement, the last
        value is used.
        """
        return MetadataKey(label, value_type, False)

    @staticmethod
    def repeated(label: str, value_type: Union[Type[T], Tuple[type, ...]]) -> "MetadataKey[T]":
        """
        Create a key for repeated metadata.

        All values added with this key are kept, in the order they were added.
        """
        return MetadataKey(label, value_type, True)

    @property
    def label(self) -> str:
        """Short, human readable label used when formatting the metadata."""
        return self._label

    @property
    def value_type(self) -> Union[Type[T], Tuple[type, ...]]:
        return self._value_type

    @property
    def can_repeat(self) -> bool:
        """Whether this key can be used to set more than one value."""
        return self._can_repeat

    @property
    def bloom_filter_mask(self) -> int:
        """
        64-bit mask with 5 bits set, derived from this key's identity.

        Used by metadata processing for a fast "definitely not seen yet" test.
        False positives are possible, false negatives are not.
        """
        return self._bloom_filter_mask

    @property
    def is_custom(self) -> bool:
        """Whether this key is an instance of a MetadataKey subclass."""
        return type(self) is not MetadataKey

    def cast(self, value: Any) -> T:
        """
        Cast an arbitrary value to the type of this key.

        Raises:
            TypeError: If the value is not an instance of the key's type
        """
        if not isinstance(value, self._value_type):
            raise TypeError(
                f"cannot cast {type(value).__name__} to {self._type_name()} for key '{self._label}'"
            )
        return value

    def emit(self, value: T, out: KeyValueHandler) -> None:
        """
        Emit one or more key/value pairs for a value of this key.

        Overrides emitting several pairs should use keys of the form
        "<label>.<suffix>" with lower case ASCII suffixes.
        """
        out.handle(self._label, value)

    def emit_repeated(self, values: Iterable[T], out: KeyValueHandler) -> None:
        """Emit the values of a repeated key; by default calls emit() once per value."""
        for value in values:
            self.emit(value, out)

    def safe_emit(self, value: T, out: KeyValueHandler) -> None:
        """
        Emit a value, bypassing custom emit() code under deep reentrant logging.
        """
        if self.is_custom and recursion.current_depth() > MAX_CUSTOM_METADATAKEY_RECURSION_DEPTH:
            out.handle(self._label, value)
        else:
            self.emit(value, out)

    def safe_emit_repeated(self, values: Iterator[T], out: KeyValueHandler) -> None:
        """Repeated-value version of safe_emit()."""
        if self.is_custom and recursion.current_depth() > MAX_CUSTOM_METADATAKEY_RECURSION_DEPTH:
            for value in values:
                out.handle(self._label, value)
        else:
            self.emit_repeated(values, out)

    def _type_name(self) -> str:
        if isinstance(self._value_type, tuple):
            return "|".join(t.__name__ for t in self._value_type)
        return self._value_type.__name__

    # Identity semantics are inherited from object; these are sealed above.
    def __eq__(self, other: object) -> bool:
        return self is other

    def __hash__(self) -> int:
        return object.__hash__(self)

    def __repr__(self) -> str:
        cls = type(self)
        return f"{cls.__module__}.{cls.__qualname__}/{self._label}[{self._type_name()}]"

    __str__ = __repr__
