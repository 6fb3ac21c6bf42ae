"""Async programming utilities and helpers."""

from __future__ import annotations

import asyncio
import logging
import traceback
from collections import abc
from functools import wraps
from typing import Any, Generic, ParamSpec, TypeVar

from fetchcache.config import LOGGER_NAME


_T = TypeVar("_T")  # type
_P = ParamSpec("_P")  # params

logger = logging.getLogger(LOGGER_NAME)


def format_traceback(exc: BaseException, **kwargs: Any) -> str:
    """
    Like `traceback.print_exc` but returns a string. Uses the passed-in exception.
    Any additional `**kwargs` are passed to the underlaying `traceback.format_exception`.
    """
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__, **kwargs))


def task_wrapper(
    afunc: abc.Callable[_P, abc.Coroutine[Any, Any, _T]],
) -> abc.Callable[_P, abc.Coroutine[Any, Any, _T]]:
    """
    Decorator for coroutines that run as detached background tasks.

    Cancellation passes through untouched, every other exception is logged
    with the wrapped function's name and raised up to the wrapping task.
    """

    @wraps(afunc)
    async def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _T:
        try:
            return await afunc(*args, **kwargs)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Exception in {afunc.__name__} task")
            raise

    return wrapper


class AwaitableValue(Generic[_T]):
    """
    A value that can be set once and awaited by multiple consumers.

    The setter has to run on the event loop the waiters are awaiting on.
    """

    def __init__(self):
        self._value: _T
        self._event = asyncio.Event()

    async def get(self) -> _T:
        """Wait for and return the value."""
        await self._event.wait()
        return self._value

    def set(self, value: _T) -> None:
        """Set the value and notify all waiters."""
        self._value = value
        self._event.set()
