"""
fluentlog - fluent, structured logging for Python applications.

Log statements are built through a fluent API (level, message, metadata,
rate limiting) and handed to a pluggable backend, which merges scoped
context metadata with the statement's own metadata for output.
"""

# Core functionality
from .core import (
    ContextMetadata,
    FluentLogger,
    LazyArg,
    Level,
    LogContext,
    LoggerConfig,
    LoggingError,
    Metadata,
    MetadataHandler,
    MetadataKey,
    MetadataProcessor,
    MutableMetadata,
    Tags,
    TimeUnit,
    lazy,
)

# Rate limiting
from .ratelimit import LogPerBucketingStrategy, LoggingScope, LogSite, RateLimitStatus

# Context
from .context import LogLevelMap, ScopedLoggingContext

# Processing
from .processing import (
    FastJSONEncoder,
    JsonBackend,
    LogData,
    LoggerBackend,
    MsgSpecEncoder,
    StdlibBackend,
    StreamBackend,
)

# Integrations
from .integrations import is_otel_available, trace_context_metadata

__version__ = "0.1.0"
__all__ = [
    # Logger
    "FluentLogger",
    "LogContext",
    "LazyArg",
    "lazy",
    "Level",
    "TimeUnit",
    "LoggerConfig",
    "LoggingError",
    # Metadata
    "ContextMetadata",
    "Metadata",
    "MetadataHandler",
    "MetadataKey",
    "MetadataProcessor",
    "MutableMetadata",
    "Tags",
    # Rate limiting
    "LogPerBucketingStrategy",
    "LoggingScope",
    "LogSite",
    "RateLimitStatus",
    # Context
    "LogLevelMap",
    "ScopedLoggingContext",
    # Processing
    "FastJSONEncoder",
    "JsonBackend",
    "LogData",
    "LoggerBackend",
    "MsgSpecEncoder",
    "StdlibBackend",
    "StreamBackend",
    # Integrations
    "is_otel_available",
    "trace_context_metadata",
]
