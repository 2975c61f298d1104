from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Deque, Protocol, Set

from .orchestrator import ResultSink, Task

logger = logging.getLogger(__name__)


class Runner(Protocol):
    async def run(self, task: Task) -> object: ...


class WorkQueue:
    """
    FIFO queue with at most `max_concurrent` tasks running at once.

    submit() never blocks and never rejects; admission happens right away
    and again whenever a running task finishes. Counters are only touched
    from the event loop thread, so no lock is needed.
    """

    def __init__(self, max_concurrent: int, runner: Runner) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self._max = int(max_concurrent)
        self._runner = runner
        self._pending: Deque[Task] = deque()
        self._active = 0
        self._running: Set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()

        self.submitted = 0
        self.dispatched = 0
        self.completed = 0
        self.peak_active = 0

    @property
    def max_concurrent(self) -> int:
        return self._max

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def submit(self, address: str, sink: ResultSink) -> Task:
        """Queue `address`; `sink` receives its terminal Status exactly once."""
        task = Task(address=address, sink=sink)
        self._pending.append(task)
        self.submitted += 1
        self._idle.clear()
        self._process_queue()
        return task

    def _process_queue(self) -> None:
        loop = asyncio.get_running_loop()
        while self._active < self._max and self._pending:
            task = self._pending.popleft()
            self._active += 1
            self.dispatched += 1
            self.peak_active = max(self.peak_active, self._active)
            logger.debug(
                "Dispatch %s active=%d/%d pending=%d",
                task.address, self._active, self._max, len(self._pending),
            )
            t = loop.create_task(self._runner.run(task), name=f"resolve:{task.address}")
            self._running.add(t)
            t.add_done_callback(self._on_done)

    def _on_done(self, t: asyncio.Task) -> None:
        self._running.discard(t)
        self._active -= 1
        self.completed += 1
        if t.cancelled():
            logger.warning("Resolution task %s was cancelled", t.get_name())
        elif t.exception() is not None:
            logger.error("Resolution task %s failed: %r", t.get_name(), t.exception())
        self._process_queue()
        if self._active == 0 and not self._pending:
            self._idle.set()

    async def join(self) -> None:
        """Wait until every submitted task has finished."""
        await self._idle.wait()
