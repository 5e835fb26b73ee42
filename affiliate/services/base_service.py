"""
Base service class.

Services own the unit of work: repositories only flush, services commit or
roll back. The decorators here wrap a service coroutine in that policy.
"""

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


class BaseService:
    """
    Session holder with a logger bound to the concrete service name.

    Subclasses call ``super().__init__(session)`` and then build their
    repositories on ``self.session``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Run a service method as one transaction.

    The session is committed when the method returns and rolled back when
    it raises; the exception is re-raised unchanged, so callers see the
    domain error (DataIntegrityError, CommissionNotFoundError, ...).

    Usage:
        @transaction
        async def mark_paid(self, commission_id: int, paid_by: str):
            ...

    Args:
        func: Async method of a BaseService subclass

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        try:
            result = await func(self, *args, **kwargs)
            await self.commit()
        except Exception as e:
            await self.rollback()
            self.logger.warning(
                f"{func.__name__} rolled back: {e}",
                extra={
                    "function": func.__name__,
                    "error_type": type(e).__name__,
                },
            )
            raise
        return result

    return wrapper


def log_operation(func: Callable[..., T]) -> Callable[..., T]:
    """
    Log start, end and duration of a long-running service method.

    Args:
        func: Async method of a BaseService subclass

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        started = time.monotonic()
        self.logger.info(f"{func.__name__} started")

        try:
            result = await func(self, *args, **kwargs)
        except Exception as e:
            self.logger.error(
                f"{func.__name__} failed after "
                f"{time.monotonic() - started:.3f}s: {e}",
                extra={"function": func.__name__, "success": False},
            )
            raise

        self.logger.info(
            f"{func.__name__} finished in {time.monotonic() - started:.3f}s",
            extra={"function": func.__name__, "success": True},
        )
        return result

    return wrapper
