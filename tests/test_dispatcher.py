"""Tests for docbot.agent.dispatcher."""

import asyncio

import pytest
from langchain_core.tools import tool

from docbot.agent.dispatcher import ToolDispatcher, run_cancellable
from docbot.agent.errors import SessionCancelled
from docbot.agent.tools import ToolRegistry
from docbot.core.config.schema import RetryConfig

FAST_RETRY = RetryConfig(max_attempts=3, base_timeout_s=0.05, backoff_base_s=0.0, backoff_max_s=0.0)


def dispatcher_with(*tools, retry=FAST_RETRY):
    registry = ToolRegistry()
    registry.register_group("test", list(tools))
    return ToolDispatcher(registry, retry)


def test_attempt_timeout_doubles():
    d = ToolDispatcher(ToolRegistry(), RetryConfig(base_timeout_s=10))
    assert [d.attempt_timeout(n) for n in (1, 2, 3)] == [10, 20, 40]


def test_backoff_is_capped():
    d = ToolDispatcher(ToolRegistry(), RetryConfig(backoff_base_s=1, backoff_max_s=3))
    assert [d.backoff_delay(n) for n in (1, 2, 3, 4)] == [1, 2, 3, 3]


@pytest.mark.asyncio
async def test_success_first_attempt():
    @tool
    def echo(text: str) -> str:
        """Echo text."""
        return text

    outcome = await dispatcher_with(echo).execute("echo", {"text": "hi"})
    assert outcome.succeeded is True
    assert outcome.result_text == "hi"
    assert outcome.attempts_used == 1
    assert len(outcome.result_hash) == 64


@pytest.mark.asyncio
async def test_succeeds_on_third_attempt():
    calls = []

    @tool
    async def flaky() -> str:
        """Slow twice, then fast."""
        calls.append(1)
        if len(calls) < 3:
            await asyncio.sleep(5)
        return "ok"

    outcome = await dispatcher_with(flaky).execute("flaky", {})
    assert outcome.succeeded is True
    assert outcome.result_text == "ok"
    assert outcome.attempts_used == 3


@pytest.mark.asyncio
async def test_fails_after_all_attempts_time_out():
    @tool
    async def hang() -> str:
        """Never finishes in time."""
        await asyncio.sleep(5)
        return "never"

    outcome = await dispatcher_with(hang).execute("hang", {})
    assert outcome.succeeded is False
    assert outcome.attempts_used == 3
    assert "hang" in outcome.result_text
    assert "3 attempts" in outcome.result_text


@pytest.mark.asyncio
async def test_unknown_tool():
    outcome = await dispatcher_with().execute("nope", {})
    assert outcome.succeeded is False
    assert outcome.attempts_used == 0
    assert outcome.result_text == "Unknown tool: nope"


@pytest.mark.asyncio
async def test_tool_exception_not_retried():
    calls = []

    @tool
    def broken() -> str:
        """Always raises."""
        calls.append(1)
        raise ValueError("bad input")

    outcome = await dispatcher_with(broken).execute("broken", {})
    assert outcome.succeeded is False
    assert outcome.result_text.startswith("Tool error (broken)")
    assert "bad input" in outcome.result_text
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_cancel_propagates():
    cancel = asyncio.Event()

    @tool
    async def slow() -> str:
        """Sets the cancel event and waits."""
        cancel.set()
        await asyncio.sleep(5)
        return "late"

    with pytest.raises(SessionCancelled):
        await dispatcher_with(slow, retry=RetryConfig()).execute("slow", {}, cancel)


@pytest.mark.asyncio
async def test_run_cancellable_passthrough_and_timeout():
    async def value():
        return 42

    assert await run_cancellable(value(), asyncio.Event()) == 42
    assert await run_cancellable(value(), None) == 42
    with pytest.raises(asyncio.TimeoutError):
        await run_cancellable(asyncio.sleep(5), asyncio.Event(), timeout=0.01)


@pytest.mark.asyncio
async def test_caller_cancellation_cancels_inner_work():
    started, stopped = asyncio.Event(), asyncio.Event()

    async def work():
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            stopped.set()
            raise

    outer = asyncio.ensure_future(run_cancellable(work(), asyncio.Event()))
    await started.wait()
    outer.cancel()
    with pytest.raises(asyncio.CancelledError):
        await outer
    await asyncio.wait_for(stopped.wait(), timeout=1)
