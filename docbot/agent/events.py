"""Progress events — listener interface and fire-and-forget delivery."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Protocol

from loguru import logger

from docbot.agent.state import Step


class AgentListener(Protocol):
    """Receives progress from a running session."""

    async def on_step(self, step: Step) -> None: ...

    async def on_document_change(self, change_count: int) -> None: ...

    async def on_status_check(self, text: str) -> None: ...


class CallbackListener:
    """AgentListener built from optional plain callbacks (sync or async)."""

    def __init__(
        self,
        on_step: Callable[[Step], Any] | None = None,
        on_document_change: Callable[[int], Any] | None = None,
        on_status_check: Callable[[str], Any] | None = None,
    ):
        self._on_step = on_step
        self._on_document_change = on_document_change
        self._on_status_check = on_status_check

    async def on_step(self, step: Step) -> None:
        await _call(self._on_step, step)

    async def on_document_change(self, change_count: int) -> None:
        await _call(self._on_document_change, change_count)

    async def on_status_check(self, text: str) -> None:
        await _call(self._on_status_check, text)


async def _call(fn: Callable[..., Any] | None, *args: Any) -> None:
    if fn is None:
        return
    result = fn(*args)
    if asyncio.iscoroutine(result):
        await result


class EventChannel:
    """Schedules listener calls as tasks so they never block the loop.

    Failures are logged and ignored. ``drain`` waits (bounded) for pending
    deliveries before the session returns.
    """

    def __init__(self, listener: AgentListener | None = None):
        self.listener = listener
        self._pending: set[asyncio.Task] = set()

    def step(self, step: Step) -> None:
        self._schedule("on_step", step)

    def document_change(self, change_count: int) -> None:
        self._schedule("on_document_change", change_count)

    def status_check(self, text: str) -> None:
        self._schedule("on_status_check", text)

    def _schedule(self, name: str, *args: Any) -> None:
        if self.listener is None:
            return
        task = asyncio.ensure_future(self._deliver(name, *args))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, name: str, *args: Any) -> None:
        # The listener method runs inside the try: it may be a plain function.
        try:
            await _call(getattr(self.listener, name, None), *args)
        except Exception as e:
            logger.warning(f"Listener {name} failed: {e}")

    async def drain(self, timeout: float = 5.0) -> None:
        if not self._pending:
            return
        done, pending = await asyncio.wait(set(self._pending), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} listener deliveries still pending after {timeout}s")
