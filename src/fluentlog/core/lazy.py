"""
Deferred evaluation of log statement arguments.

    logger.at_fine().log("state: %s", lazy(lambda: expensive_dump(state)))

The function is only called once the statement passes its level check and
rate limiting, so disabled or skipped statements never pay for it.
"""

from typing import Callable, Generic, Tuple, TypeVar

from .checks import check_not_none

T = TypeVar("T")


class LazyArg(Generic[T]):
    """Log statement argument whose value is computed when the statement is emitted."""

    __slots__ = ("_fn",)

    def __init__(self, fn: Callable[[], T]):
        self._fn = check_not_none(fn, "lazy argument function")

    def evaluate(self) -> T:
        return self._fn()

    def __repr__(self) -> str:
        return f"LazyArg({self._fn!r})"


def lazy(fn: Callable[[], T]) -> LazyArg[T]:
    """Wrap a zero-argument callable as a lazily evaluated log argument."""
    return LazyArg(fn)


def evaluate_lazy_args(args: Tuple) -> Tuple:
    """
    Return args with every LazyArg replaced by its value.

    Exceptions raised by the functions propagate to the caller, as they
    would have had the arguments been computed at the call site.
    """
    if not any(isinstance(arg, LazyArg) for arg in args):
        return args
    return tuple(arg.evaluate() if isinstance(arg, LazyArg) else arg for arg in args)
