"""
Strategies mapping arbitrary per() keys onto a bounded set of buckets.

Rate limiting state is kept per bucket, so a strategy must only ever
produce a small number of distinct values, or memory use grows without
bound.
"""

from typing import Any, Callable, Dict, Hashable, Iterable, Optional

from ..core.checks import check_argument, check_not_none


class LogPerBucketingStrategy:
    """
    Maps a key passed to per() to the value used to specialize the log site.

    Returned values must be hashable and have value semantics. Returning
    None means no specialization is applied.
    """

    __slots__ = ("_name", "_apply")

    def __init__(self, name: str, apply: Callable[[Any], Optional[Hashable]]):
        self._name = check_not_none(name, "name")
        self._apply = check_not_none(apply, "apply")

    def apply(self, key: Any) -> Optional[Hashable]:
        return self._apply(key)

    def __repr__(self) -> str:
        return f"LogPerBucketingStrategy[{self._name}]"

    @staticmethod
    def known_bounded() -> "LogPerBucketingStrategy":
        """Use the key itself. Only for keys drawn from a small, fixed set."""
        return _KNOWN_BOUNDED

    @staticmethod
    def by_class() -> "LogPerBucketingStrategy":
        """Bucket by the key's class, e.g. one bucket per exception type."""
        return _BY_CLASS

    @staticmethod
    def by_class_name() -> "LogPerBucketingStrategy":
        """Like by_class(), but holds the qualified class name rather than the class."""
        return _BY_CLASS_NAME

    @staticmethod
    def for_known_keys(known_keys: Iterable[Hashable]) -> "LogPerBucketingStrategy":
        """
        Bucket only the given keys, each by its index; other keys are ignored.

        Raises:
            ValueError: If known_keys is empty or contains None
        """
        key_map: Dict[Hashable, int] = {}
        for key in known_keys:
            check_not_none(key, "key")
            if key not in key_map:
                key_map[key] = len(key_map)
        check_argument(bool(key_map), "known_keys must not be empty")
        name = "ForKnownKeys(" + ", ".join(str(k) for k in key_map) + ")"
        return LogPerBucketingStrategy(name, key_map.get)

    @staticmethod
    def by_hash_code(max_buckets: int) -> "LogPerBucketingStrategy":
        """
        Bucket keys by hash, modulo max_buckets.

        Raises:
            ValueError: If max_buckets is not positive
        """
        check_argument(max_buckets > 0, "max_buckets must be positive")
        return LogPerBucketingStrategy(f"ByHashCode({max_buckets})", lambda key: hash(key) % max_buckets)


def _qualified_name(key: Any) -> str:
    cls = type(key)
    return f"{cls.__module__}.{cls.__qualname__}"


_KNOWN_BOUNDED = LogPerBucketingStrategy("KnownBounded", lambda key: key)
_BY_CLASS = LogPerBucketingStrategy("ByClass", type)
_BY_CLASS_NAME = LogPerBucketingStrategy("ByClassName", _qualified_name)
