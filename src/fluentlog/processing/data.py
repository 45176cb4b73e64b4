"""
Immutable record of a single log statement, as passed to backends.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from ..core.keys import LOG_CAUSE, WAS_FORCED
from ..core.level import level_name
from ..core.metadata import Metadata
from ..ratelimit.log_site import LogSite


@dataclass(frozen=True)
class LogData:
    """
    Everything a backend needs to emit a log statement.

    Attributes:
        level: Numeric log level
        message: Message template, or the literal value when args is empty
        args: Arguments for the template, applied with the % operator
        logger_name: Name of the logger the statement was made on
        log_site: Source location of the statement
        timestamp_nanos: Wall clock time of the statement
        metadata: Log-site metadata
        scope_metadata: Metadata of the logging context the statement ran in
    """

    level: int
    message: Any
    args: Tuple[Any, ...]
    logger_name: str
    log_site: LogSite
    timestamp_nanos: int
    metadata: Metadata = field(default_factory=Metadata.empty)
    scope_metadata: Metadata = field(default_factory=Metadata.empty)

    @property
    def level_name(self) -> str:
        return level_name(self.level)

    @property
    def was_forced(self) -> bool:
        return self.metadata.find_value(WAS_FORCED) is True

    @property
    def cause(self) -> Optional[BaseException]:
        return self.metadata.find_value(LOG_CAUSE)

    def formatted_message(self) -> str:
        """
        Return the message with its arguments applied.

        Uses the same rule as logging.LogRecord.getMessage(): without
        arguments the message is used as is.

        Raises:
            TypeError: If the arguments do not match the template
        """
        if self.message is None:
            return ""
        text = str(self.message)
        args: Any = self.args
        if not args:
            return text
        if len(args) == 1 and isinstance(args[0], Mapping) and args[0]:
            args = args[0]
        return text % args
