"""
core/executor.py
Bounded FIFO task executor shared by both scan stages.

  • At most `limit` tasks run at once; the rest wait in submission order
  • A task's exception lands on its own future, never on the pump
  • A shared CancelFlag is checked when a task is admitted: once set,
    queued work is refused with ScanAborted while running tasks finish
"""

from __future__ import annotations

import asyncio
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Optional, Set

TaskFn = Callable[[], Awaitable[Any]]


class ScanAborted(RuntimeError):
    """Set on futures of tasks refused after the cancel flag was raised."""


class CancelFlag:
    """
    Abort signal shared between the engine and its controller.
    Backed by threading.Event so another thread (CLI signal handler,
    dashboard request) may raise it.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def clear(self) -> None:
        self._event.clear()


@dataclass
class _Job:
    fn:     TaskFn
    future: asyncio.Future


class BoundedExecutor:
    """Concurrency-limited task runner. Must be used inside one event loop."""

    def __init__(self, limit: int, cancel: Optional[CancelFlag] = None):
        if limit < 1:
            raise ValueError(f"Executor limit must be >= 1, got {limit}")
        self.limit = limit
        self.cancel = cancel or CancelFlag()
        self._queue: Deque[_Job] = deque()
        self._active = 0
        self._peak = 0
        self._tasks: Set[asyncio.Task] = set()

    # ── Public API ────────────────────────────────────────────────────────────

    def submit(self, fn: TaskFn) -> asyncio.Future:
        """Queue fn (a zero-argument coroutine function); return its future."""
        future = asyncio.get_running_loop().create_future()
        self._queue.append(_Job(fn, future))
        self._pump()
        return future

    @property
    def active(self) -> int:
        return self._active

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def peak(self) -> int:
        """Highest number of tasks ever running simultaneously."""
        return self._peak

    # ── Internals ─────────────────────────────────────────────────────────────

    def _pump(self) -> None:
        if self.cancel.is_set():
            self._refuse_queued()
            return
        while self._active < self.limit and self._queue:
            job = self._queue.popleft()
            if job.future.cancelled():
                continue
            self._active += 1
            self._peak = max(self._peak, self._active)
            task = asyncio.ensure_future(self._run(job))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def _refuse_queued(self) -> None:
        while self._queue:
            job = self._queue.popleft()
            if not job.future.done():
                job.future.set_exception(ScanAborted("scan aborted before task start"))

    async def _run(self, job: _Job) -> None:
        try:
            result = await job.fn()
        except asyncio.CancelledError:
            job.future.cancel()
            raise
        except Exception as exc:
            if not job.future.done():
                job.future.set_exception(exc)
        else:
            if not job.future.done():
                job.future.set_result(result)
        finally:
            self._active -= 1
            self._pump()
