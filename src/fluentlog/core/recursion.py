"""
Thread-local tracking of reentrant logging.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class _Depth(threading.local):
    value = 0


_holder = _Depth()


def current_depth() -> int:
    """
    Return how many log statements are being emitted on this thread.

    A value greater than 1 means logging was triggered from inside another
    log statement (e.g. by the string conversion of a logged argument).
    """
    return _holder.value


@contextmanager
def enter_log_statement() -> Iterator[int]:
    """
    Mark the current thread as emitting a log statement.

    Yields:
        The recursion depth including this statement
    """
    _holder.value += 1
    try:
        yield _holder.value
    finally:
        if _holder.value <= 0:
            raise RuntimeError("mismatched recursion depth (possible error in core library)")
        _holder.value -= 1
