"""
Log levels, numerically compatible with the standard logging module.
"""

import logging
from enum import IntEnum
from typing import Union


class Level(IntEnum):
    SEVERE = logging.ERROR
    WARNING = logging.WARNING
    INFO = logging.INFO
    CONFIG = 15
    FINE = logging.DEBUG
    FINER = 7
    FINEST = 5


def level_name(level: int) -> str:
    """Return the name of a level, falling back to the stdlib name for other values."""
    try:
        return Level(level).name
    except ValueError:
        return logging.getLevelName(level)


def parse_level(value: Union[str, int]) -> int:
    """
    Convert a level name or number to a numeric level.

    Both fluentlog names (e.g. "FINE") and stdlib names (e.g. "DEBUG") are
    accepted, case-insensitively.

    Raises:
        ValueError: If the name is unknown
    """
    if isinstance(value, int):
        return int(value)
    name = value.strip().upper()
    if name in Level.__members__:
        return int(Level[name])
    numeric = logging.getLevelName(name)
    if isinstance(numeric, int):
        return numeric
    raise ValueError(f"unknown log level: {value}")
