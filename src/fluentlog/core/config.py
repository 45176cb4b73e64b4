"""
Logger configuration.
"""

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional, TextIO, Tuple, Union

from .level import parse_level
from .metadata_key import MetadataKey

if TYPE_CHECKING:
    from ..processing.backends import LoggerBackend

_ENCODERS = ("msgspec", "json")
_FORMATS = ("text", "json", "stdlib")
_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass
class LoggerConfig:
    """
    Configuration for FluentLogger and the backend it writes to.

    Attributes:
        enabled: Whether logging is enabled at all
        level: Minimum level, as a number or a name such as "INFO" or "FINE"
        output: "stderr", "stdout", a file path or a text stream
        encoder: JSON encoder for the json format ("msgspec" or "json")
        format: "text", "json" or "stdlib"
        context_prefix: Text before formatted metadata
        context_suffix: Text after formatted metadata
        ignored_keys: Metadata keys left out of formatted output
    """

    enabled: bool = True
    level: Union[str, int] = "INFO"
    output: Union[str, Path, TextIO] = "stderr"
    encoder: str = "msgspec"
    format: str = "text"
    context_prefix: str = "[CONTEXT "
    context_suffix: str = " ]"
    ignored_keys: Tuple[MetadataKey, ...] = ()

    def __post_init__(self):
        self.level = parse_level(self.level)
        if self.encoder not in _ENCODERS:
            raise ValueError(f"encoder must be one of {_ENCODERS}: {self.encoder!r}")
        if self.format not in _FORMATS:
            raise ValueError(f"format must be one of {_FORMATS}: {self.format!r}")
        self.ignored_keys = tuple(self.ignored_keys)

    @classmethod
    def from_env(cls, prefix: str = "FLUENTLOG_", **overrides) -> "LoggerConfig":
        """
        Build a config from environment variables.

        Reads <prefix>ENABLED, LEVEL, OUTPUT, ENCODER and FORMAT. Keyword
        overrides take precedence over the environment.

        Raises:
            ValueError: If a variable holds an invalid value
        """
        values = {}
        enabled = os.getenv(prefix + "ENABLED")
        if enabled is not None:
            values["enabled"] = _parse_bool(prefix + "ENABLED", enabled)
        for field_name in ("level", "output", "encoder", "format"):
            raw = os.getenv(prefix + field_name.upper())
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()
        for field_name in ("encoder", "format"):
            if field_name in values:
                values[field_name] = values[field_name].lower()
        values.update(overrides)
        return cls(**values)

    def opens_file(self) -> bool:
        """Whether output names a file, which open_output() opens anew on every call."""
        return isinstance(self.output, (str, Path)) and self.output not in ("stderr", "stdout")

    def open_output(self) -> TextIO:
        if not isinstance(self.output, (str, Path)):
            return self.output
        if self.output == "stderr":
            return sys.stderr
        if self.output == "stdout":
            return sys.stdout
        return open(self.output, "a", encoding="utf-8")

    def create_backend(self, name: str, stream: Optional[TextIO] = None) -> "LoggerBackend":
        """
        Create the backend this config describes for a logger.

        A file opened for the backend is closed by its close() method.

        Args:
            name: Logger name
            stream: Stream to use instead of opening output
        """
        from ..processing.backends import JsonBackend, StdlibBackend, StreamBackend
        from ..processing.serializers import create_encoder

        if self.format == "stdlib":
            return StdlibBackend(
                name,
                ignored_keys=self.ignored_keys,
                context_prefix=self.context_prefix,
                context_suffix=self.context_suffix,
            )
        out = stream if stream is not None else self.open_output()
        owned = stream is None and self.opens_file()
        if self.format == "json":
            return JsonBackend(
                name,
                out,
                level=self.level,
                encoder=create_encoder(self.encoder),
                ignored_keys=self.ignored_keys,
                close_stream=owned,
            )
        return StreamBackend(
            name,
            out,
            level=self.level,
            ignored_keys=self.ignored_keys,
            context_prefix=self.context_prefix,
            context_suffix=self.context_suffix,
            close_stream=owned,
        )


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean: {value!r}")
