"""Core fluentlog functionality."""

# Leaf modules first: the ratelimit, context and processing packages import
# from these while core.logger is being imported.
from .checks import check_argument, check_metadata_identifier, check_not_none, check_state
from .errors import LoggingError
from .handler import MetadataHandler
from .lazy import LazyArg, lazy
from .keys import (
    LOG_AT_MOST_EVERY,
    LOG_CAUSE,
    LOG_EVERY_N,
    LOG_SAMPLE_EVERY_N,
    LOG_SITE_GROUPING_KEY,
    SKIPPED_LOG_COUNT,
    TAGS,
    WAS_FORCED,
    RateLimitPeriod,
    TimeUnit,
)
from .level import Level
from .metadata import ContextMetadata, Metadata, MutableMetadata
from .metadata_key import KeyValueHandler, MetadataKey
from .processor import MetadataProcessor
from .tags import Tags
from .config import LoggerConfig
from .logger import FluentLogger, LogContext

__all__ = [
    "LOG_AT_MOST_EVERY",
    "LOG_CAUSE",
    "LOG_EVERY_N",
    "LOG_SAMPLE_EVERY_N",
    "LOG_SITE_GROUPING_KEY",
    "SKIPPED_LOG_COUNT",
    "TAGS",
    "WAS_FORCED",
    "ContextMetadata",
    "FluentLogger",
    "KeyValueHandler",
    "LazyArg",
    "Level",
    "LogContext",
    "LoggerConfig",
    "LoggingError",
    "Metadata",
    "MetadataHandler",
    "MetadataKey",
    "MetadataProcessor",
    "MutableMetadata",
    "RateLimitPeriod",
    "Tags",
    "TimeUnit",
    "check_argument",
    "check_metadata_identifier",
    "check_not_none",
    "check_state",
    "lazy",
]
