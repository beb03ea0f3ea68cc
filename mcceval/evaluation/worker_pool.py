"""Shared thread pool for CPU-bound work (genome decoding) started from the event loop."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
import os
from typing import Any, Callable, TypeVar

from loguru import logger

__all__ = ["WorkerPool"]

T = TypeVar("T")


class WorkerPool:
    _executor: ThreadPoolExecutor | None = None

    @classmethod
    def get_executor(cls) -> ThreadPoolExecutor:
        if cls._executor is None:
            cls._executor = ThreadPoolExecutor(
                max_workers=max(4, (os.cpu_count() or 4) * 2),
                thread_name_prefix="mcceval-decode",
            )
            logger.debug(
                "[WorkerPool] created shared executor with {} workers",
                cls._executor._max_workers,  # type: ignore[attr-defined]
            )
        return cls._executor

    @classmethod
    async def run(cls, fn: Callable[..., T], *args: Any) -> T:
        """Off-load ``fn(*args)`` to the shared pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(cls.get_executor(), fn, *args)

    @classmethod
    def shutdown(cls) -> None:
        if cls._executor is not None:
            cls._executor.shutdown(wait=True)
            cls._executor = None
