"""
Formatting of processed metadata as "key=value" pairs.
"""

import re
from io import StringIO
from typing import Any, Dict, Iterable, Iterator, Optional, TextIO

from ..core.handler import MetadataHandler
from ..core.keys import LOG_CAUSE, RATE_LIMIT_KEYS
from ..core.metadata_key import KeyValueHandler, MetadataKey
from ..core.processor import MetadataProcessor
from .data import LogData

# Messages longer than this start their context on a new line, without
# scanning the whole message for newlines.
NEWLINE_LIMIT = 1000

DEFAULT_CONTEXT_PREFIX = "[CONTEXT "
DEFAULT_CONTEXT_SUFFIX = " ]"

DEFAULT_KEYS_TO_IGNORE = (LOG_CAUSE,) + RATE_LIMIT_KEYS

# Values written without quotes. Exact types only, so subclasses such as
# IntEnum (whose str() differs) are quoted.
_BARE_TYPES = (bool, int, float)

_ESCAPABLE = re.compile(r'["\\\x00-\x1f]')
_ESCAPES = {'"': '\\"', "\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _escape(match: "re.Match") -> str:
    # Other control characters are replaced with U+FFFD.
    return _ESCAPES.get(match.group(0), "\ufffd")


def append_key_value(label: str, value: Any, out: TextIO) -> None:
    """
    Append "label=value" to out.

    None is written as "true" (presence without a value), booleans and
    numbers are written bare, and anything else is quoted and escaped.
    """
    out.write(label)
    out.write("=")
    if value is None:
        out.write("true")
    elif type(value) in _BARE_TYPES:
        out.write("true" if value is True else "false" if value is False else str(value))
    else:
        out.write('"')
        out.write(_ESCAPABLE.sub(_escape, str(value)))
        out.write('"')


class KeyValueFormatter:
    """
    KeyValueHandler appending "key=value" pairs after a log message.

    The first pair writes the separator and prefix, and done() writes the
    suffix if any pair was written at all.
    """

    __slots__ = ("_prefix", "_suffix", "_out", "_have_seen_values")

    def __init__(self, prefix: str, suffix: str, out: StringIO):
        self._prefix = prefix
        self._suffix = suffix
        self._out = out
        self._have_seen_values = False

    def handle(self, label: str, value: Any) -> None:
        if self._have_seen_values:
            self._out.write(" ")
        else:
            # At this point out only holds the log message.
            message = self._out.getvalue()
            if message:
                self._out.write("\n" if len(message) > NEWLINE_LIMIT or "\n" in message else " ")
            self._out.write(self._prefix)
            self._have_seen_values = True
        append_key_value(label, value, self._out)

    def done(self) -> None:
        if self._have_seen_values:
            self._out.write(self._suffix)


class MetadataCollector:
    """KeyValueHandler collecting pairs into a dict; repeated labels become lists."""

    __slots__ = ("values",)

    def __init__(self):
        self.values: Dict[str, Any] = {}

    def handle(self, label: str, value: Any) -> None:
        if label not in self.values:
            self.values[label] = value
            return
        existing = self.values[label]
        if isinstance(existing, list):
            existing.append(value)
        else:
            self.values[label] = [existing, value]


def _emit(key: MetadataKey, value: Any, out: KeyValueHandler) -> None:
    key.safe_emit(value, out)


def _emit_repeated(key: MetadataKey, values: Iterator[Any], out: KeyValueHandler) -> None:
    key.safe_emit_repeated(values, out)


def default_metadata_handler(ignored_keys: Iterable[MetadataKey] = ()) -> MetadataHandler:
    """
    Return a handler which emits every key to a KeyValueHandler context.

    LOG_CAUSE and the rate limiter settings are always ignored, in addition
    to ignored_keys.
    """
    return (
        MetadataHandler.builder(_emit)
        .set_default_repeated_handler(_emit_repeated)
        .ignoring(*DEFAULT_KEYS_TO_IGNORE)
        .ignoring(*ignored_keys)
        .build()
    )


_DEFAULT_HANDLER = default_metadata_handler()


def processor_for(data: LogData) -> MetadataProcessor:
    return MetadataProcessor.for_scope_and_log_site(data.scope_metadata, data.metadata)


def format_message_with_context(
    data: LogData,
    handler: Optional[MetadataHandler] = None,
    prefix: str = DEFAULT_CONTEXT_PREFIX,
    suffix: str = DEFAULT_CONTEXT_SUFFIX,
) -> str:
    """
    Return the formatted message followed by its metadata.

    Example: 'Request failed [CONTEXT request_id="abc" retries=3 ]'
    """
    out = StringIO()
    out.write(data.formatted_message())
    formatter = KeyValueFormatter(prefix, suffix, out)
    processor_for(data).process(handler or _DEFAULT_HANDLER, formatter)
    formatter.done()
    return out.getvalue()


def collect_metadata(data: LogData, handler: Optional[MetadataHandler] = None) -> Dict[str, Any]:
    """Return the processed metadata of data as a label -> value dict."""
    collector = MetadataCollector()
    processor_for(data).process(handler or _DEFAULT_HANDLER, collector)
    return collector.values
