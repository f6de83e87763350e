"""
Helpers for running async service code inside synchronous Celery tasks.

Usage:
    from squadron.core.async_helpers import run_async_with_db

    async def sweep(db: AsyncSession):
        return await resource_service.reconcile_stuck_resources(db)

    count = run_async_with_db(sweep)
"""
import asyncio
import logging
from typing import TypeVar, Callable, Awaitable

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

_POOL_LOGGERS = ("sqlalchemy.pool", "sqlalchemy.pool.impl")


def _dispose_engine(loop: asyncio.AbstractEventLoop) -> None:
    """
    Drop pooled connections created on a previous event loop.

    asyncpg connections are bound to the loop that opened them; disposing may log
    or raise "Event loop is closed" for those, which is harmless here.
    """
    from squadron.core.database import engine

    pool_loggers = [logging.getLogger(name) for name in _POOL_LOGGERS]
    previous_levels = [pl.level for pl in pool_loggers]
    for pl in pool_loggers:
        pl.setLevel(logging.CRITICAL)
    try:
        loop.run_until_complete(engine.dispose())
    except RuntimeError as e:
        if "Event loop is closed" not in str(e):
            raise
    finally:
        for pl, level in zip(pool_loggers, previous_levels):
            pl.setLevel(level)


def run_async(coro: Awaitable[T]) -> T:
    """
    Run a coroutine to completion on a fresh event loop.

    Args:
        coro: The coroutine to execute

    Returns:
        The result of the coroutine

    Raises:
        Any exception raised by the coroutine
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        _dispose_engine(loop)
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()


def run_async_with_db(
    func: Callable[[AsyncSession], Awaitable[T]],
    *,
    commit: bool = False,
) -> T:
    """
    Run ``func`` with a fresh database session on a fresh event loop.

    Args:
        func: Async function that takes a session and returns a result
        commit: Commit the session after ``func`` returns

    Returns:
        The result of ``func``
    """
    async def wrapper():
        from squadron.core.database import async_session_maker
        async with async_session_maker() as db:
            result = await func(db)
            if commit:
                await db.commit()
            return result

    return run_async(wrapper())
