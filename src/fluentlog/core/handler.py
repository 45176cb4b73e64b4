"""
Callbacks for processing resolved metadata.
"""

from typing import Any, Callable, Dict, Generic, Iterator, Optional, TypeVar

from .checks import check_argument, check_not_none
from .metadata_key import MetadataKey

C = TypeVar("C")

ValueHandler = Callable[[MetadataKey, Any, C], None]
RepeatedValueHandler = Callable[[MetadataKey, Iterator[Any], C], None]


class MetadataHandler(Generic[C]):
    """
    Callback API for processing metadata, typically to format it.

    Handlers are stateless and long lived; per statement state lives in the
    context object passed to each call. Either subclass and override
    handle() (and optionally handle_repeated()), or use builder().
    """

    __slots__ = ()

    @staticmethod
    def builder(default_handler: ValueHandler) -> "MetadataHandler.Builder":
        """
        Return a builder whose handlers fall back to default_handler.

        Args:
            default_handler: Called for any value without a more specific handler
        """
        return MetadataHandler.Builder(default_handler)

    def handle(self, key: MetadataKey, value: Any, context: C) -> None:
        """Handle a single value of a key."""
        raise NotImplementedError

    def handle_repeated(self, key: MetadataKey, values: Iterator[Any], context: C) -> None:
        """
        Handle every value of a repeated key.

        The iterator is single pass and must not be kept beyond this call. The
        default calls handle() once per value.
        """
        for value in values:
            self.handle(key, value, context)

    class Builder:
        """Builds a MetadataHandler from per-key callbacks."""

        __slots__ = ("_single", "_repeated", "_default_handler", "_default_repeated_handler")

        def __init__(self, default_handler: ValueHandler):
            self._single: Dict[MetadataKey, ValueHandler] = {}
            self._repeated: Dict[MetadataKey, RepeatedValueHandler] = {}
            self._default_handler = check_not_none(default_handler, "default handler")
            self._default_repeated_handler: Optional[RepeatedValueHandler] = None

        def set_default_repeated_handler(self, handler: RepeatedValueHandler) -> "MetadataHandler.Builder":
            """
            Set the fallback for repeated keys with no specific handler.

            Repeated keys that have a single value handler keep using it once
            per value.
            """
            self._default_repeated_handler = check_not_none(handler, "handler")
            return self

        def add_handler(self, key: MetadataKey, handler: ValueHandler) -> "MetadataHandler.Builder":
            """Set the handler for a key, replacing any repeated handler for it."""
            check_not_none(key, "key")
            check_not_none(handler, "handler")
            self._repeated.pop(key, None)
            self._single[key] = handler
            return self

        def add_repeated_handler(self, key: MetadataKey, handler: RepeatedValueHandler) -> "MetadataHandler.Builder":
            """
            Set the handler for all values of a repeated key at once.

            Raises:
                ValueError: If the key is not repeatable
            """
            check_not_none(key, "key")
            check_not_none(handler, "handler")
            check_argument(key.can_repeat, "key must be repeating")
            self._single.pop(key, None)
            self._repeated[key] = handler
            return self

        def ignoring(self, *keys: MetadataKey) -> "MetadataHandler.Builder":
            """Register handlers which discard every value of the given keys."""
            for key in keys:
                if key.can_repeat:
                    self.add_repeated_handler(key, _ignore_repeated)
                else:
                    self.add_handler(key, _ignore)
            return self

        def remove_handlers(self, *keys: MetadataKey) -> "MetadataHandler.Builder":
            """Remove any handlers for the given keys, restoring the defaults."""
            for key in keys:
                check_not_none(key, "key")
                self._single.pop(key, None)
                self._repeated.pop(key, None)
            return self

        def build(self) -> "MetadataHandler":
            return _MapBasedHandler(self)


def _ignore(key: MetadataKey, value: Any, context: Any) -> None:
    pass


def _ignore_repeated(key: MetadataKey, values: Iterator[Any], context: Any) -> None:
    pass


class _MapBasedHandler(MetadataHandler[C]):
    __slots__ = ("_single", "_repeated", "_default_handler", "_default_repeated_handler")

    def __init__(self, builder: MetadataHandler.Builder):
        self._single = dict(builder._single)
        self._repeated = dict(builder._repeated)
        self._default_handler = builder._default_handler
        self._default_repeated_handler = builder._default_repeated_handler

    def handle(self, key: MetadataKey, value: Any, context: C) -> None:
        handler = self._single.get(key)
        if handler is not None:
            handler(key, value, context)
        else:
            self._default_handler(key, value, context)

    def handle_repeated(self, key: MetadataKey, values: Iterator[Any], context: C) -> None:
        handler = self._repeated.get(key)
        if handler is not None:
            handler(key, values, context)
        elif self._default_repeated_handler is not None and key not in self._single:
            self._default_repeated_handler(key, values, context)
        else:
            super().handle_repeated(key, values, context)
