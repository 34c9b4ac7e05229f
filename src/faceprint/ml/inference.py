"""Worker pool for extraction calls and comparison chunks.

Architecture:
    caller (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> native / numpy work

Work waiting for a slot longer than the queue timeout fails with TimeoutError.
Cancelling a caller before its work starts means the work never starts; work
already running in a thread completes. Once the pool is shut down, callers
still waiting for a slot fail with ClosedEngineError.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

from faceprint.errors import ClosedEngineError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InferencePool:
    """Bounds concurrent work and runs it on a thread pool."""

    def __init__(self, max_concurrent: int, queue_timeout: float | None = None) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrent,
            thread_name_prefix="faceprint-worker",
        )
        self._queue_timeout = queue_timeout
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()
        self._closed = False

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run a synchronous function on the pool once a slot is free.

        Raises:
            TimeoutError: If no slot frees up within the queue timeout.
            ClosedEngineError: If the pool is shut down before the work starts.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._queue_timeout)
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        try:
            if self._closed:
                raise ClosedEngineError("Worker pool is shut down")
            loop = asyncio.get_running_loop()
            try:
                future = loop.run_in_executor(self._executor, func, *args)
            except RuntimeError as exc:
                # shutdown() ran on another thread after the flag check
                raise ClosedEngineError("Worker pool is shut down") from exc
            return await future
        finally:
            self._semaphore.release()
            with self._counter_lock:
                self._active_count -= 1

    @property
    def active_count(self) -> int:
        """Number of currently running tasks."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of tasks waiting for a slot."""
        with self._counter_lock:
            return self._queue_depth

    @property
    def closed(self) -> bool:
        return self._closed

    def shutdown(self) -> None:
        """Shut down the thread pool, waiting for work already handed to it.

        Callers still waiting for a slot fail with ClosedEngineError once they get one.
        Submitted work is bounded by the semaphore, so nothing is cancelled here:
        a cancelled executor future would surface as CancelledError in the caller.
        """
        self._closed = True
        self._executor.shutdown(wait=True)
        logger.debug("Worker pool shut down")
