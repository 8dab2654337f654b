"""ToolDispatcher — executes one tool call with bounded retries.

Attempt n runs with a timeout of ``base_timeout_s * 2**(n-1)``. A timeout
is retried after a short exponential backoff; any other exception is
returned as an error string. The caller always receives an outcome, never
an exception, except ``SessionCancelled`` when the parent signal fires.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, TypeVar

from langchain_core.tools import BaseTool
from loguru import logger

from docbot.agent.errors import SessionCancelled, ToolTimeoutError, UnknownToolError
from docbot.agent.guards import content_hash
from docbot.agent.state import ToolExecutionOutcome
from docbot.agent.tools import ToolRegistry
from docbot.core.config.schema import RetryConfig

T = TypeVar("T")


async def run_cancellable(
    aw: Awaitable[T],
    cancel_event: asyncio.Event | None,
    timeout: float | None = None,
) -> T:
    """Await ``aw`` unless ``cancel_event`` fires or ``timeout`` elapses first.

    Raises
    ------
    SessionCancelled
        The cancel event was set before ``aw`` finished.
    asyncio.TimeoutError
        ``timeout`` elapsed first.
    """
    task = asyncio.ensure_future(aw)
    if cancel_event is None:
        return await asyncio.wait_for(task, timeout)

    if cancel_event.is_set():
        task.cancel()
        raise SessionCancelled("cancelled by caller")

    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        # Also reached when the caller itself is cancelled mid-wait.
        waiter.cancel()
        if not task.done():
            task.cancel()

    if task in done:
        return task.result()
    if waiter in done:
        raise SessionCancelled("cancelled by caller")
    raise asyncio.TimeoutError()


class ToolDispatcher:
    """Look up and execute tools from a ToolRegistry with retry/backoff."""

    def __init__(self, registry: ToolRegistry, retry: RetryConfig | None = None):
        self.registry = registry
        self.retry = retry or RetryConfig()

    def attempt_timeout(self, attempt: int) -> float:
        """Timeout for the 1-based ``attempt``."""
        return self.retry.base_timeout_s * 2 ** (attempt - 1)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after the 1-based ``attempt`` timed out."""
        return min(self.retry.backoff_base_s * 2 ** (attempt - 1), self.retry.backoff_max_s)

    async def execute(
        self,
        tool_name: str,
        args: dict[str, Any],
        cancel_event: asyncio.Event | None = None,
    ) -> ToolExecutionOutcome:
        started = time.monotonic()
        tool = self.registry.get(tool_name)
        if tool is None:
            err = UnknownToolError(tool_name)
            logger.warning(str(err))
            return self._outcome(str(err), False, 0, started)

        max_attempts = max(self.retry.max_attempts, 1)
        for attempt in range(1, max_attempts + 1):
            timeout = self.attempt_timeout(attempt)
            try:
                result = await self._invoke(tool, args, timeout, cancel_event)
            except ToolTimeoutError as e:
                logger.warning(f"{e} (attempt {attempt}/{max_attempts})")
                if attempt < max_attempts:
                    await run_cancellable(
                        asyncio.sleep(self.backoff_delay(attempt)), cancel_event
                    )
                continue
            except SessionCancelled:
                raise
            except Exception as e:
                logger.error(f"Tool error: {tool_name} → {e}")
                return self._outcome(
                    f"Tool error ({tool_name}): {e}", False, attempt, started
                )

            logger.debug(f"Tool result: {tool_name} → {result[:100]}")
            return self._outcome(result, True, attempt, started)

        text = (
            f"Tool '{tool_name}' timed out after {max_attempts} attempts "
            f"(last timeout {self.attempt_timeout(max_attempts):.1f}s)"
        )
        return self._outcome(text, False, max_attempts, started)

    async def _invoke(
        self,
        tool: BaseTool,
        args: dict[str, Any],
        timeout: float,
        cancel_event: asyncio.Event | None,
    ) -> str:
        try:
            result = await run_cancellable(tool.ainvoke(args), cancel_event, timeout)
        except asyncio.TimeoutError as e:
            raise ToolTimeoutError(tool.name, timeout) from e
        return str(result)

    @staticmethod
    def _outcome(
        text: str, succeeded: bool, attempts: int, started: float
    ) -> ToolExecutionOutcome:
        return ToolExecutionOutcome(
            result_text=text,
            succeeded=succeeded,
            attempts_used=attempts,
            elapsed=time.monotonic() - started,
            result_hash=content_hash(text),
        )
