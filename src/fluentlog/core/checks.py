"""
Argument and state checks shared by the core classes.
"""

from typing import Any, TypeVar

T = TypeVar("T")


def check_not_none(value: T, name: str) -> T:
    """Return value, or raise ValueError if it is None."""
    if value is None:
        raise ValueError(f"{name} must not be None")
    return value


def check_argument(condition: bool, message: str) -> None:
    """Raise ValueError with the given message unless condition holds."""
    if not condition:
        raise ValueError(message)


def check_state(condition: bool, message: str) -> None:
    """Raise RuntimeError with the given message unless condition holds."""
    if not condition:
        raise RuntimeError(message)


def _is_ascii_letter(c: str) -> bool:
    return ("a" <= c <= "z") or ("A" <= c <= "Z")


def check_metadata_identifier(s: Any) -> str:
    """
    Check that a string is a valid metadata identifier.

    Identifiers start with an ASCII letter and contain only ASCII letters,
    digits and underscore. str.isalpha() is not used since it accepts
    non-ASCII letters.

    Args:
        s: Candidate identifier

    Returns:
        The identifier, unchanged

    Raises:
        ValueError: If the identifier is empty or contains illegal characters
    """
    if not isinstance(s, str):
        raise ValueError(f"identifier must be a string: {s!r}")
    if not s:
        raise ValueError("identifier must not be empty")
    if not _is_ascii_letter(s[0]):
        raise ValueError(f"identifier must start with an ASCII letter: {s}")
    for c in s[1:]:
        if not _is_ascii_letter(c) and not ("0" <= c <= "9") and c != "_":
            raise ValueError(
                f"identifier must contain only ASCII letters, digits or underscore: {s}"
            )
    return s
