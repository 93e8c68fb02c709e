"""Async utilities for running blocking file I/O off the event loop."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        await run_sync(write_file, path, content)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    semaphore: asyncio.Semaphore | None,
    func: Callable[..., T],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Run a synchronous function in a thread pool, bounded by *semaphore*.

    Falls back to unbounded if no semaphore is given.
    """
    if semaphore is None:
        return await asyncio.to_thread(func, *args, **kwargs)
    async with semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)


async def gather_limited(
    calls: Sequence[tuple[Callable[..., T], tuple]],
    max_parallel: int,
) -> list[T]:
    """Run blocking calls concurrently, at most *max_parallel* at a time.

    Each item of *calls* is ``(func, args)``. Results come back in input
    order. Exceptions propagate from the first failure.

    Args:
        calls: Sequence of ``(func, args)`` pairs.
        max_parallel: Upper bound on concurrently running threads.

    Returns:
        List of results in the same order as *calls*.
    """
    if not calls:
        return []
    semaphore = asyncio.Semaphore(max(1, max_parallel))
    logger.debug(
        "Running %d blocking calls, max_parallel=%d",
        len(calls),
        max_parallel,
    )
    coros: list[Awaitable[T]] = [
        run_sync_limited(semaphore, func, *args) for func, args in calls
    ]
    return list(await asyncio.gather(*coros))
