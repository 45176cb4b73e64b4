"""Scoped logging contexts."""

from .level_map import LogLevelMap
from .scoped import (
    ContextState,
    ScopedLoggingContext,
    current_metadata,
    current_scope,
    current_tags,
    should_force_logging,
)

__all__ = [
    "ContextState",
    "LogLevelMap",
    "ScopedLoggingContext",
    "current_metadata",
    "current_scope",
    "current_tags",
    "should_force_logging",
]
