"""Availability policy for repository operations.

Every repository method is classified once, by decorator:

- ``best_effort(fallback)``: when the store is unavailable or a query fails,
  log and return the fallback instead of raising.
- ``safety_critical(message)``: when the store is unavailable or a query
  fails, raise ``ChatError("bad_request:database", message)``.

The decorated method receives an ``AsyncSession`` as its first argument
after ``self``; the decorator opens one transaction per call. Domain errors
raised by the method itself pass through untouched.
"""

import copy
import functools
import inspect
import logging
from typing import Any, Callable, Dict

from chatledger.domain.errors import ChatError

from .database import STORE_ERRORS, ConnectionManager

logger = logging.getLogger(__name__)


class BaseRepository:
    """Holds the injected connection manager."""

    def __init__(self, connections: ConnectionManager):
        self.connections = connections


def _call_arguments(func: Callable, self, args, kwargs) -> Dict[str, Any]:
    """Bind caller arguments against the method, minus ``self`` and the session."""
    signature = inspect.signature(func)
    bound = signature.bind(self, None, *args, **kwargs)
    bound.apply_defaults()
    hidden = list(signature.parameters)[:2]
    return {k: v for k, v in bound.arguments.items() if k not in hidden}


def _resolve_fallback(fallback: Any, call_arguments: Dict[str, Any]) -> Any:
    if callable(fallback):
        return fallback(**call_arguments)
    return copy.copy(fallback)


def best_effort(fallback: Any = None):
    """Degrade to ``fallback`` instead of raising store errors.

    ``fallback`` is either a value (copied per call) or a callable invoked
    with the operation's keyword arguments.
    """

    def decorator(func):
        name = func.__qualname__

        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            call_arguments = _call_arguments(func, self, args, kwargs)
            handle = await self.connections.acquire()
            if handle is None:
                logger.warning("%s skipped: database unavailable", name)
                return _resolve_fallback(fallback, call_arguments)
            try:
                async with handle.transaction() as session:
                    return await func(self, session, **call_arguments)
            except STORE_ERRORS as e:
                logger.error("%s failed, returning degraded result: %s", name, e, exc_info=True)
                return _resolve_fallback(fallback, call_arguments)

        return wrapper

    return decorator


def safety_critical(message: str):
    """Raise ``bad_request:database`` instead of degrading."""

    def decorator(func):
        name = func.__qualname__

        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            call_arguments = _call_arguments(func, self, args, kwargs)
            handle = await self.connections.acquire()
            if handle is None:
                logger.error("%s refused: database unavailable", name)
                raise ChatError("bad_request:database", message)
            try:
                async with handle.transaction() as session:
                    return await func(self, session, **call_arguments)
            except STORE_ERRORS as e:
                logger.error("%s failed: %s", name, e, exc_info=True)
                raise ChatError("bad_request:database", message) from e

        return wrapper

    return decorator
