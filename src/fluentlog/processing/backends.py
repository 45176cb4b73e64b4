"""
Backends which emit log statements.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Protocol, TextIO, Union, runtime_checkable

from ..core.level import Level
from ..core.metadata_key import MetadataKey
from .data import LogData
from .formatter import (
    DEFAULT_CONTEXT_PREFIX,
    DEFAULT_CONTEXT_SUFFIX,
    collect_metadata,
    default_metadata_handler,
    format_message_with_context,
)
from .serializers import LogEncoder, MsgSpecEncoder


@runtime_checkable
class LoggerBackend(Protocol):
    """Protocol for logger backends."""

    @property
    def name(self) -> str:
        """Name of the logger this backend writes for."""
        ...

    def is_loggable(self, level: int) -> bool:
        """Whether statements at level are emitted by default."""
        ...

    def log(self, data: LogData) -> None:
        """Emit a log statement."""
        ...

    def handle_error(self, error: Exception, data: LogData) -> None:
        """Handle an error raised by log(); may re-raise."""
        ...


def report_error(error: Exception, data: LogData, stream: Optional[TextIO] = None) -> None:
    """Write a one line report of a failed log statement to stderr."""
    out = stream or sys.stderr
    timestamp = datetime.fromtimestamp(data.timestamp_nanos / 1e9, tz=timezone.utc).isoformat()
    out.write(f"{timestamp}: logging error in {data.log_site}: {error!r}\n")
    out.flush()


def _release_stream(stream: TextIO, owned: bool) -> None:
    if stream.closed:
        return
    stream.flush()
    if owned:
        stream.close()


class StreamBackend:
    """
    Writes one line per statement to a text stream.

    Format: "<LEVEL> <logger>: <message> [CONTEXT key=value ... ]"
    """

    __slots__ = ("_name", "_stream", "_level", "_handler", "_prefix", "_suffix", "_auto_flush", "_close_stream")

    def __init__(
        self,
        name: str,
        stream: Optional[TextIO] = None,
        level: int = Level.INFO,
        ignored_keys: Iterable[MetadataKey] = (),
        context_prefix: str = DEFAULT_CONTEXT_PREFIX,
        context_suffix: str = DEFAULT_CONTEXT_SUFFIX,
        auto_flush: bool = True,
        close_stream: bool = False,
    ):
        """
        Initialize stream backend.

        Args:
            name: Logger name
            stream: Output stream, sys.stderr by default
            level: Minimum level emitted
            ignored_keys: Metadata keys left out of the context block
            context_prefix: Text before the key/value pairs
            context_suffix: Text after the key/value pairs
            auto_flush: Flush the stream after every statement
            close_stream: Close the stream in close(), for streams opened for this backend
        """
        self._name = name
        self._stream = stream if stream is not None else sys.stderr
        self._level = int(level)
        self._handler = default_metadata_handler(ignored_keys)
        self._prefix = context_prefix
        self._suffix = context_suffix
        self._auto_flush = auto_flush
        self._close_stream = close_stream

    @property
    def name(self) -> str:
        return self._name

    def is_loggable(self, level: int) -> bool:
        return level >= self._level

    def log(self, data: LogData) -> None:
        message = format_message_with_context(data, self._handler, self._prefix, self._suffix)
        self._stream.write(f"{data.level_name} {data.logger_name}: {message}\n")
        if self._auto_flush:
            self._stream.flush()

    def handle_error(self, error: Exception, data: LogData) -> None:
        report_error(error, data)

    def close(self) -> None:
        """Flush the stream, and close it if it was opened for this backend."""
        _release_stream(self._stream, self._close_stream)


class StdlibBackend:
    """
    Forwards statements to a standard library logging.Logger.

    The message carries the context block; the processed metadata is also
    attached to the record as record.metadata for structured handlers.
    Records use the log site as their source location.
    """

    __slots__ = ("_logger", "_handler", "_prefix", "_suffix")

    def __init__(
        self,
        logger: Union[str, logging.Logger],
        ignored_keys: Iterable[MetadataKey] = (),
        context_prefix: str = DEFAULT_CONTEXT_PREFIX,
        context_suffix: str = DEFAULT_CONTEXT_SUFFIX,
    ):
        self._logger = logging.getLogger(logger) if isinstance(logger, str) else logger
        self._handler = default_metadata_handler(ignored_keys)
        self._prefix = context_prefix
        self._suffix = context_suffix

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def is_loggable(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def log(self, data: LogData) -> None:
        message = format_message_with_context(data, self._handler, self._prefix, self._suffix)
        cause = data.cause
        exc_info = (type(cause), cause, cause.__traceback__) if cause is not None else None
        site = data.log_site
        record = self._logger.makeRecord(
            self._logger.name,
            data.level,
            site.file or site.module,
            site.line,
            message,
            (),
            exc_info,
            func=site.function,
            extra={"metadata": collect_metadata(data, self._handler)},
        )
        record.created = data.timestamp_nanos / 1e9
        # handle() applies filters but not the level check, so forced statements get through.
        self._logger.handle(record)

    def handle_error(self, error: Exception, data: LogData) -> None:
        report_error(error, data)

    def close(self) -> None:
        """Nothing to release: the logging module owns the handlers."""


class JsonBackend:
    """Writes one JSON object per statement to a text stream."""

    __slots__ = ("_name", "_stream", "_level", "_encoder", "_handler", "_close_stream")

    def __init__(
        self,
        name: str,
        stream: Optional[TextIO] = None,
        level: int = Level.INFO,
        encoder: Optional[LogEncoder] = None,
        ignored_keys: Iterable[MetadataKey] = (),
        close_stream: bool = False,
    ):
        self._name = name
        self._stream = stream if stream is not None else sys.stdout
        self._close_stream = close_stream
        self._level = int(level)
        self._encoder = encoder or MsgSpecEncoder()
        self._handler = default_metadata_handler(ignored_keys)

    @property
    def name(self) -> str:
        return self._name

    def is_loggable(self, level: int) -> bool:
        return level >= self._level

    def to_event(self, data: LogData) -> Dict[str, Any]:
        site = data.log_site
        event: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(data.timestamp_nanos / 1e9, tz=timezone.utc).isoformat(),
            "level": data.level_name,
            "logger": data.logger_name,
            "message": data.formatted_message(),
            "log_site": {"module": site.module, "function": site.function, "line": site.line},
        }
        context = collect_metadata(data, self._handler)
        if context:
            event["context"] = context
        cause = data.cause
        if cause is not None:
            event["cause"] = {"type": type(cause).__name__, "message": str(cause)}
        return event

    def log(self, data: LogData) -> None:
        line = self._encoder.encode(self.to_event(data))
        self._stream.write(line.decode("utf-8") + "\n")
        self._stream.flush()

    def handle_error(self, error: Exception, data: LogData) -> None:
        report_error(error, data)

    def close(self) -> None:
        _release_stream(self._stream, self._close_stream)
