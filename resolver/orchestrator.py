from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from extensions.logging import candidate_context

from .config import Config
from .fetcher import DirectFetchStrategy
from .policy import OriginPolicy
from .render import IsolatedRenderStrategy
from .status import Status, BLOCKED, LOADING, NOT_FOUND, PENDING
from .utils import PolicyViolation, hostname_of

logger = logging.getLogger(__name__)

ResultSink = Callable[[Status], None]


@dataclass(frozen=True)
class Task:
    address: str
    sink: ResultSink


class TaskState(str, Enum):
    START = "start"
    DIRECT_FETCH = "direct_fetch"
    ISOLATED_RENDER = "isolated_render"
    DONE = "done"


# Allowed transitions of the per-task state machine.
_TRANSITIONS = {
    TaskState.START: {TaskState.DIRECT_FETCH, TaskState.DONE},
    TaskState.DIRECT_FETCH: {TaskState.ISOLATED_RENDER, TaskState.DONE},
    TaskState.ISOLATED_RENDER: {TaskState.DONE},
    TaskState.DONE: set(),
}


@dataclass
class TaskRecord:
    task: Task
    state: TaskState = TaskState.START
    status: Status = PENDING
    history: List[TaskState] = field(default_factory=lambda: [TaskState.START])

    def advance(self, state: TaskState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal transition {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    @property
    def delivered(self) -> bool:
        return self.state is TaskState.DONE


class TaskOrchestrator:
    """
    Runs one task to its single terminal status:

      START --not permitted--> Blocked
      START -> DIRECT_FETCH --terminal--> done
      DIRECT_FETCH --inconclusive--> ISOLATED_RENDER --> Found | NotFound | TimedOut

    Every attempt is followed by cfg.inter_attempt_delay_ms before the next
    attempt starts or run() returns (which frees the queue slot).
    """

    def __init__(
        self,
        cfg: Config,
        policy: OriginPolicy,
        fetcher: DirectFetchStrategy,
        renderer: Optional[IsolatedRenderStrategy] = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.cfg = cfg
        self.policy = policy
        self.fetcher = fetcher
        self.renderer = renderer
        self._sleep = sleep
        self._delay_s = max(0.0, cfg.inter_attempt_delay_ms / 1000.0)

    async def run(self, task: Task) -> TaskRecord:
        record = TaskRecord(task)
        with candidate_context(task.address):
            try:
                await self._resolve(record)
            except Exception:
                logger.exception("Unexpected failure resolving %s", task.address)
                if not record.delivered:
                    # failed attempts are paced too
                    attempted = record.state is not TaskState.START
                    self._deliver(record, BLOCKED)
                    if attempted:
                        await self._pause()
        return record

    async def _resolve(self, record: TaskRecord) -> None:
        url = record.task.address
        try:
            self._check_policy(url)
        except PolicyViolation as e:
            logger.info("Not permitted: %s", e)
            self._deliver(record, BLOCKED)
            return

        record.advance(TaskState.DIRECT_FETCH)
        record.status = LOADING
        status = await self.fetcher.fetch(url)
        if status is not None:
            self._deliver(record, status)
            await self._pause()
            return

        await self._pause()
        if self.renderer is None:
            logger.debug("Static fetch inconclusive and rendering disabled: %s", url)
            self._deliver(record, NOT_FOUND)
            return

        logger.debug("Static fetch inconclusive, escalating to isolated render: %s", url)
        record.advance(TaskState.ISOLATED_RENDER)
        status = await self.renderer.render(url)
        self._deliver(record, status)
        await self._pause()

    def _check_policy(self, url: str) -> None:
        host = hostname_of(url)
        if not self.policy.is_permitted(host):
            raise PolicyViolation(f"host {host or '?'} of {url}")

    async def _pause(self) -> None:
        if self._delay_s > 0:
            await self._sleep(self._delay_s)

    def _deliver(self, record: TaskRecord, status: Status) -> None:
        if record.delivered:
            logger.warning("Dropping second status %s for %s", status, record.task.address)
            return
        if not status.terminal:
            raise ValueError(f"Non-terminal status {status} cannot end a task")
        record.advance(TaskState.DONE)
        record.status = status
        logger.info("Resolved %s -> %s", record.task.address, status)
        try:
            record.task.sink(status)
        except Exception:
            logger.exception("Result sink failed for %s", record.task.address)
