"""
Immutable, canonical tags for logging scopes.
"""

from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .checks import check_metadata_identifier, check_not_none

TagValue = Union[bool, str, int, float]

# bool sorts before str, str before int, int before float.
_TYPE_ORDER = {bool: 0, str: 1, int: 2, float: 3}


def _value_sort_key(value: TagValue) -> Tuple[int, Any]:
    type_rank = _TYPE_ORDER.get(type(value))
    if type_rank is None:
        raise TypeError(f"invalid tag type: {type(value).__name__}")
    return type_rank, value


class Tags:
    """
    Mapping of tag names to sorted, de-duplicated sets of values.

    A tag may also be present with no value at all (a "label" tag), in which
    case its value set is empty. Tags are ordered by name, and values by type
    then natural order, so equal tags always format identically.
    """

    __slots__ = ("_map",)

    class Builder:
        __slots__ = ("_pairs",)

        def __init__(self):
            self._pairs: List[Tuple[str, Optional[TagValue]]] = []

        def add_tag(self, name: str, value: Optional[TagValue] = None) -> "Tags.Builder":
            """Add a tag, or a bare label tag when value is omitted."""
            check_metadata_identifier(name)
            if value is not None:
                _value_sort_key(value)
            self._pairs.append((name, value))
            return self

        def build(self) -> "Tags":
            if not self._pairs:
                return _EMPTY_TAGS
            return Tags._from_pairs(self._pairs)

        def __repr__(self) -> str:
            return repr(self.build())

    def __init__(self, mapping: Mapping[str, Tuple[TagValue, ...]]):
        self._map = MappingProxyType(dict(mapping))

    @staticmethod
    def builder() -> "Tags.Builder":
        return Tags.Builder()

    @staticmethod
    def empty() -> "Tags":
        return _EMPTY_TAGS

    @staticmethod
    def of(name: str, value: TagValue) -> "Tags":
        """Create tags holding a single name/value pair."""
        check_not_none(value, "value")
        return Tags.builder().add_tag(name, value).build()

    @staticmethod
    def _from_pairs(pairs: Iterable[Tuple[str, Optional[TagValue]]]) -> "Tags":
        collected: Dict[str, set] = {}
        for name, value in pairs:
            values = collected.setdefault(name, set())
            if value is not None:
                # True == 1 for sets, so keep the type alongside the value.
                values.add((type(value), value))
        mapping = {}
        for name in sorted(collected):
            typed = sorted(collected[name], key=lambda tv: _value_sort_key(tv[1]))
            mapping[name] = tuple(v for _, v in typed)
        return Tags(mapping)

    def as_map(self) -> Mapping[str, Tuple[TagValue, ...]]:
        """Read-only view of tag names to their sorted values."""
        return self._map

    def is_empty(self) -> bool:
        return not self._map

    def merge(self, other: "Tags") -> "Tags":
        """Return the union of these tags and other."""
        if other.is_empty():
            return self
        if self.is_empty():
            return other
        return Tags._from_pairs(self._pairs() + other._pairs())

    def _pairs(self) -> List[Tuple[str, Optional[TagValue]]]:
        pairs: List[Tuple[str, Optional[TagValue]]] = []
        for name, values in self._map.items():
            if values:
                pairs.extend((name, v) for v in values)
            else:
                pairs.append((name, None))
        return pairs

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tags):
            return NotImplemented
        return self._pairs_typed() == other._pairs_typed()

    def __hash__(self) -> int:
        return ~hash(tuple(self._pairs_typed()))

    def _pairs_typed(self) -> List[Tuple[str, Any]]:
        return [(name, tuple((type(v), v) for v in values)) for name, values in self._map.items()]

    def __repr__(self) -> str:
        parts = []
        for name, values in self._map.items():
            parts.append(f"{name}=[{', '.join(str(v) for v in values)}]")
        return "{" + ", ".join(parts) + "}"


_EMPTY_TAGS = Tags({})
