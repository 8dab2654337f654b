"""Tests for docbot.agent.events."""

import asyncio

import pytest

from docbot.agent.events import CallbackListener, EventChannel
from docbot.agent.state import Step


@pytest.mark.asyncio
async def test_sync_and_async_callbacks():
    seen = []

    async def on_change(n):
        seen.append(("change", n))

    channel = EventChannel(CallbackListener(
        on_step=lambda s: seen.append(("step", s.step_number)),
        on_document_change=on_change,
    ))
    channel.step(Step(step_number=1, description="x"))
    channel.document_change(2)
    channel.status_check("DONE")  # no callback registered
    await channel.drain()
    assert sorted(seen) == [("change", 2), ("step", 1)]


@pytest.mark.asyncio
async def test_failing_callback_is_logged_not_raised():
    def boom(_):
        raise RuntimeError("bad listener")

    channel = EventChannel(CallbackListener(on_status_check=boom))
    channel.status_check("CONTINUE")
    await channel.drain()


@pytest.mark.asyncio
async def test_drain_is_bounded():
    async def slow(_):
        await asyncio.sleep(5)

    channel = EventChannel(CallbackListener(on_step=slow))
    channel.step(Step(step_number=1, description="x"))
    await asyncio.wait_for(channel.drain(timeout=0.05), timeout=1)


@pytest.mark.asyncio
async def test_no_listener():
    channel = EventChannel()
    channel.step(Step(step_number=1, description="x"))
    await channel.drain()


def test_step_to_dict():
    d = Step(step_number=3, description="Final answer", result_text="ok").to_dict()
    assert d == {"step_number": 3, "description": "Final answer", "tool_calls": [], "result_text": "ok"}


class RaisingListener:
    """Plain (non-async) methods that raise."""

    def on_step(self, step):
        raise RuntimeError("sync listener bug")

    def on_document_change(self, change_count):
        raise RuntimeError("sync listener bug")


@pytest.mark.asyncio
async def test_sync_listener_errors_stay_inside_channel():
    channel = EventChannel(RaisingListener())
    channel.step(Step(step_number=1, description="x"))
    channel.document_change(1)
    channel.status_check("DONE")  # method missing on the listener
    await channel.drain()
