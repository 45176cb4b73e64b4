"""
Minimal atomic primitives for per-log-site rate limiting state.

Neither class ever holds its lock while calling user code, and nothing here
blocks on another thread's logging work.
"""

import threading


class AtomicInteger:
    """Integer supporting atomic read-modify-write operations."""

    __slots__ = ("_value", "_lock")

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = threading.Lock()

    def get(self) -> int:
        return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = value

    def increment_and_get(self) -> int:
        return self.add_and_get(1)

    def get_and_increment(self) -> int:
        with self._lock:
            value = self._value
            self._value = value + 1
            return value

    def add_and_get(self, delta: int) -> int:
        with self._lock:
            self._value += delta
            return self._value

    def decrement_and_get(self) -> int:
        return self.add_and_get(-1)

    def compare_and_set(self, expected: int, value: int) -> bool:
        """Set value only if the current value equals expected."""
        with self._lock:
            if self._value != expected:
                return False
            self._value = value
            return True

    def __repr__(self) -> str:
        return f"AtomicInteger({self._value})"


class AtomicBoolean:
    """
    Boolean flag with a non-blocking compare-and-set.

    The flag is "set" while its lock is held, so claiming it can never wait
    for another thread.
    """

    __slots__ = ("_lock",)

    def __init__(self, value: bool = False):
        self._lock = threading.Lock()
        if value:
            self._lock.acquire()

    def get(self) -> bool:
        return self._lock.locked()

    def compare_and_set(self, expected: bool, value: bool) -> bool:
        if expected == value:
            return self.get() == expected
        if not expected:
            # False -> True
            return self._lock.acquire(blocking=False)
        # True -> False
        try:
            self._lock.release()
        except RuntimeError:
            return False
        return True

    def set(self, value: bool) -> None:
        if value:
            self._lock.acquire(blocking=False)
        elif self._lock.locked():
            try:
                self._lock.release()
            except RuntimeError:
                # Released concurrently; the flag is already clear.
                pass

    def __repr__(self) -> str:
        return f"AtomicBoolean({self.get()})"
