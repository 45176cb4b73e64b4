"""
Encoders turning structured log events into JSON bytes.
"""

import json
from typing import Any, Dict, Protocol, runtime_checkable

import msgspec


@runtime_checkable
class LogEncoder(Protocol):
    """Protocol for log event encoders."""

    def encode(self, event: Dict[str, Any]) -> bytes:
        """Encode an event to bytes."""
        ...


def _fallback(obj: Any) -> str:
    # Exceptions, log sites, scopes and other values without a JSON form.
    return str(obj)


class MsgSpecEncoder:
    """JSON encoder backed by msgspec."""

    __slots__ = ("_encoder",)

    def __init__(self):
        self._encoder = msgspec.json.Encoder(enc_hook=_fallback)

    def encode(self, event: Dict[str, Any]) -> bytes:
        return self._encoder.encode(event)


class FastJSONEncoder:
    """JSON encoder using the standard library, for environments without msgspec wheels."""

    __slots__ = ()

    def encode(self, event: Dict[str, Any]) -> bytes:
        return json.dumps(event, default=_fallback, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def create_encoder(name: str) -> LogEncoder:
    """
    Return the encoder registered under name.

    Raises:
        ValueError: If name is not "msgspec" or "json"
    """
    if name == "msgspec":
        return MsgSpecEncoder()
    if name == "json":
        return FastJSONEncoder()
    raise ValueError(f"unknown encoder: {name}")
