from dataclasses import replace

import pytest

from resolver.classifier import IndicatorSet
from resolver.config import load_config
from resolver.orchestrator import Task, TaskOrchestrator, TaskState
from resolver.policy import OriginPolicy
from resolver.status import BLOCKED, NOT_FOUND, TIMED_OUT, UNSUPPORTED, Status

URL = "https://uindex.org/details/7"


class FakeFetcher:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def fetch(self, url):
        self.calls.append(url)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeRenderer:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def render(self, url):
        self.calls.append(url)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class Sleeps:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def _orchestrator(fetch_result, render_result=NOT_FOUND, *, renderer=True):
    cfg = replace(load_config(), inter_attempt_delay_ms=1000)
    policy = OriginPolicy(observable=frozenset({"uindex.org", "radarr.intra"}),
                          contactable=frozenset({"uindex.org"}))
    fetcher = FakeFetcher(fetch_result)
    rend = FakeRenderer(render_result) if renderer else None
    sleeps = Sleeps()
    orch = TaskOrchestrator(cfg, policy, fetcher, rend, sleep=sleeps)
    return orch, fetcher, rend, sleeps


def _task(url=URL):
    got = []
    return Task(url, got.append), got


@pytest.mark.asyncio
async def test_policy_violation_is_blocked_without_network():
    orch, fetcher, rend, sleeps = _orchestrator(Status.found(IndicatorSet({"english"})))
    task, got = _task("https://radarr.intra/movie/1")
    record = await orch.run(task)
    assert got == [BLOCKED]
    assert fetcher.calls == [] and rend.calls == []
    assert sleeps.calls == []
    assert record.history == [TaskState.START, TaskState.DONE]


@pytest.mark.asyncio
async def test_found_on_direct_fetch_is_terminal():
    found = Status.found(IndicatorSet({"swedish"}))
    orch, fetcher, rend, sleeps = _orchestrator(found)
    task, got = _task()
    record = await orch.run(task)
    assert got == [found]
    assert rend.calls == []
    assert sleeps.calls == [1.0]
    assert record.history == [TaskState.START, TaskState.DIRECT_FETCH, TaskState.DONE]


@pytest.mark.asyncio
async def test_http_404_does_not_escalate():
    orch, fetcher, rend, _ = _orchestrator(Status.http_error(404))
    task, got = _task()
    await orch.run(task)
    assert got == [Status.http_error(404)]
    assert rend.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", [BLOCKED, TIMED_OUT, UNSUPPORTED])
async def test_fetch_errors_are_trusted_as_final(terminal):
    orch, fetcher, rend, _ = _orchestrator(terminal)
    task, got = _task()
    await orch.run(task)
    assert got == [terminal]
    assert rend.calls == []


@pytest.mark.asyncio
async def test_inconclusive_fetch_escalates_to_render():
    found = Status.found(IndicatorSet({"english", "swedish"}))
    orch, fetcher, rend, sleeps = _orchestrator(None, found)
    task, got = _task()
    record = await orch.run(task)
    assert got == [found]
    assert rend.calls == [URL]
    # one pause after each attempt
    assert sleeps.calls == [1.0, 1.0]
    assert record.history == [
        TaskState.START, TaskState.DIRECT_FETCH, TaskState.ISOLATED_RENDER, TaskState.DONE,
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("render_result", [NOT_FOUND, TIMED_OUT])
async def test_render_outcomes_are_terminal(render_result):
    orch, _, rend, _ = _orchestrator(None, render_result)
    task, got = _task()
    await orch.run(task)
    assert got == [render_result]


@pytest.mark.asyncio
async def test_inconclusive_without_renderer_is_not_found():
    orch, _, _, _ = _orchestrator(None, renderer=False)
    task, got = _task()
    await orch.run(task)
    assert got == [NOT_FOUND]


@pytest.mark.asyncio
async def test_unexpected_error_still_reports_once():
    orch, _, _, sleeps = _orchestrator(RuntimeError("bug"))
    task, got = _task()
    record = await orch.run(task)
    assert got == [BLOCKED]
    assert record.status == BLOCKED
    assert sleeps.calls == [1.0]


@pytest.mark.asyncio
async def test_crashing_renderer_is_blocked_and_still_paced():
    orch, _, rend, sleeps = _orchestrator(None, RuntimeError("new_context failed"))
    task, got = _task()
    record = await orch.run(task)
    assert got == [BLOCKED]
    assert rend.calls == [URL]
    assert sleeps.calls == [1.0, 1.0]
    assert record.history == [
        TaskState.START, TaskState.DIRECT_FETCH, TaskState.ISOLATED_RENDER, TaskState.DONE,
    ]


@pytest.mark.asyncio
async def test_sink_failure_does_not_escape():
    orch, _, _, _ = _orchestrator(Status.http_error(500))
    calls = []

    def sink(status):
        calls.append(status)
        raise ValueError("renderer broke")

    record = await orch.run(Task(URL, sink))
    assert calls == [Status.http_error(500)]
    assert record.state is TaskState.DONE
