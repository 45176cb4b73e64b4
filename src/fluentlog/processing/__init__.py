"""Log data, formatting, encoders and backends."""

from .backends import JsonBackend, LoggerBackend, StdlibBackend, StreamBackend
from .data import LogData
from .formatter import KeyValueFormatter, default_metadata_handler, format_message_with_context
from .serializers import FastJSONEncoder, LogEncoder, MsgSpecEncoder

__all__ = [
    "FastJSONEncoder",
    "JsonBackend",
    "KeyValueFormatter",
    "LogData",
    "LogEncoder",
    "LoggerBackend",
    "MsgSpecEncoder",
    "StdlibBackend",
    "StreamBackend",
    "default_metadata_handler",
    "format_message_with_context",
]
