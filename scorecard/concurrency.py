"""Execution adapters for per-show resolution fan-out.

Shows are independent units of resolution work, so the orchestrator maps a
pure task over them through a small execution port. Three adapters are
provided: inline execution, a thread pool, and an interpreter pool that is
capability-gated on the running Python.
"""

from __future__ import annotations

import asyncio
import concurrent.futures as cf
import enum
import os
import threading
import typing as typ
from abc import ABC, abstractmethod

from scorecard.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

_InputT = typ.TypeVar("_InputT")
_OutputT = typ.TypeVar("_OutputT")

EXECUTOR_KIND_ENV = "SCORECARD_RESOLUTION_EXECUTOR"
MAX_WORKERS_ENV = "SCORECARD_RESOLUTION_MAX_WORKERS"

logger = get_logger(__name__)


class ExecutorKind(enum.StrEnum):
    """Supported execution adapters."""

    INLINE = "inline"
    THREADS = "threads"
    INTERPRETERS = "interpreters"


class ShowTaskExecutor(typ.Protocol):
    """Port for deterministic mapping of independent per-show tasks."""

    async def map_ordered(
        self,
        task: cabc.Callable[[_InputT], _OutputT],
        items: tuple[_InputT, ...],
    ) -> list[_OutputT]:
        """Apply ``task`` to ``items`` and preserve input ordering."""
        ...

    def shutdown(self) -> None:
        """Release any worker resources."""
        ...


def _parse_optional_positive_int(value: str | None) -> int | None:
    """Parse a positive integer environment value.

    Invalid values return ``None`` so callers fall back to runtime defaults.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    try:
        parsed = int(text)
    except ValueError:
        return None
    if parsed <= 0:
        return None
    return parsed


def interpreter_pool_supported() -> bool:
    """Return True when interpreter pools are available in this runtime."""
    return hasattr(cf, "InterpreterPoolExecutor")


class InlineShowTaskExecutor(ShowTaskExecutor):
    """Run every task sequentially in the calling thread."""

    @typ.override
    async def map_ordered(
        self,
        task: cabc.Callable[[_InputT], _OutputT],
        items: tuple[_InputT, ...],
    ) -> list[_OutputT]:
        """Apply ``task`` sequentially and preserve input ordering."""
        return [task(item) for item in items]

    @typ.override
    def shutdown(self) -> None:
        """Nothing to release."""


class _PooledShowTaskExecutor(ShowTaskExecutor, ABC):
    """Shared lazy-pool behaviour for the pooled adapters."""

    def __init__(self, *, max_workers: int | None = None) -> None:
        self._max_workers = max_workers
        self._executor: cf.Executor | None = None
        self._executor_lock = threading.Lock()

    @abstractmethod
    def _create_executor(self) -> cf.Executor:
        """Return the pool that backs this adapter."""

    def _get_executor(self) -> cf.Executor:
        """Create the pool lazily and reuse it for subsequent calls."""
        with self._executor_lock:
            if self._executor is None:
                self._executor = self._create_executor()
            return self._executor

    @typ.override
    def shutdown(self) -> None:
        """Shut down the pool if it has been created."""
        with self._executor_lock:
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=True)

    @typ.override
    async def map_ordered(
        self,
        task: cabc.Callable[[_InputT], _OutputT],
        items: tuple[_InputT, ...],
    ) -> list[_OutputT]:
        """Dispatch ``task`` across pool workers and preserve order."""
        if not items:
            return []
        executor = self._get_executor()

        def map_ordered_sync() -> list[_OutputT]:
            return list(executor.map(task, items))

        return await asyncio.to_thread(map_ordered_sync)


class ThreadPoolShowTaskExecutor(_PooledShowTaskExecutor):
    """Adapter backed by ``ThreadPoolExecutor``.

    Parameters
    ----------
    max_workers : int | None
        Optional explicit worker count.
    """

    @typ.override
    def _create_executor(self) -> cf.Executor:
        return cf.ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="scorecard-show",
        )


class InterpreterPoolShowTaskExecutor(_PooledShowTaskExecutor):
    """Adapter backed by ``InterpreterPoolExecutor``.

    Tasks and items must be shareable between interpreters, which in practice
    means module-level callables and picklable frozen dataclasses.
    """

    @typ.override
    def _create_executor(self) -> cf.Executor:
        try:
            interpreter_pool_executor = cf.InterpreterPoolExecutor
        except AttributeError as err:
            msg = "InterpreterPoolExecutor is not available in this Python runtime."
            raise RuntimeError(msg) from err
        return interpreter_pool_executor(max_workers=self._max_workers)


def build_show_task_executor(
    kind: str | None,
    *,
    max_workers: int | None = None,
) -> ShowTaskExecutor:
    """Build the adapter named by ``kind``.

    Unknown names select inline execution. Interpreter pools fall back to
    inline execution when the runtime lacks them.
    """
    selected = (kind or "").strip().lower()
    if selected == ExecutorKind.THREADS:
        return ThreadPoolShowTaskExecutor(max_workers=max_workers)
    if selected == ExecutorKind.INTERPRETERS:
        if interpreter_pool_supported():
            return InterpreterPoolShowTaskExecutor(max_workers=max_workers)
        log_info(
            logger,
            "Interpreter pools unavailable in this runtime; resolving inline.",
        )
    return InlineShowTaskExecutor()


def build_show_task_executor_from_environment() -> ShowTaskExecutor:
    """Select the execution adapter from ``SCORECARD_RESOLUTION_*`` settings."""
    return build_show_task_executor(
        os.getenv(EXECUTOR_KIND_ENV),
        max_workers=_parse_optional_positive_int(os.getenv(MAX_WORKERS_ENV)),
    )


__all__ = [
    "ExecutorKind",
    "InlineShowTaskExecutor",
    "InterpreterPoolShowTaskExecutor",
    "ShowTaskExecutor",
    "ThreadPoolShowTaskExecutor",
    "build_show_task_executor",
    "build_show_task_executor_from_environment",
    "interpreter_pool_supported",
]
