"""
Running async services from dramatiq actors.

Dramatiq calls actors synchronously on worker threads. Each thread keeps
one event loop for its lifetime, and each task opens its own NullPool
engine, so asyncpg connections are never shared between loops.
"""

import asyncio
import threading
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from affiliate.config.settings import settings


T = TypeVar("T")

_thread_state = threading.local()


def get_event_loop() -> asyncio.AbstractEventLoop:
    """Event loop owned by the calling worker thread, created on first use."""
    loop = getattr(_thread_state, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _thread_state.loop = loop
        logger.debug(
            f"Event loop created for worker thread {threading.current_thread().name}"
        )
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run a coroutine to completion on the worker thread's loop.

    Args:
        coro: Coroutine built by the actor

    Returns:
        Coroutine result (exceptions propagate to dramatiq)
    """
    return get_event_loop().run_until_complete(coro)


@asynccontextmanager
async def create_local_session() -> AsyncIterator[AsyncSession]:
    """
    Session on a throwaway engine for one task.

    Yields:
        AsyncSession; the engine is disposed when the block exits
    """
    task_engine = create_async_engine(
        settings.async_database_url,
        echo=settings.database_echo,
        poolclass=NullPool,
    )
    session_factory = async_sessionmaker(
        task_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    try:
        async with session_factory() as session:
            yield session
    finally:
        await task_engine.dispose()
