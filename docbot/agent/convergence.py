"""ConvergenceChecker — secondary LLM call asking whether the task is done."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal

from loguru import logger

from docbot.agent.errors import ConvergenceCheckError
from docbot.agent.prompts import STATUS_CHECK_PROMPT
from docbot.core.config.schema import Config, FallbackCheckpoint
from docbot.core.providers.base import BaseLLMProvider

Verdict = Literal["DONE", "CONTINUE"]


@dataclass
class StatusVerdict:
    verdict: Verdict
    reason: str = ""

    @property
    def done(self) -> bool:
        return self.verdict == "DONE"

    def as_text(self) -> str:
        return f"{self.verdict}: {self.reason}" if self.reason else self.verdict


def parse_verdict(text: str) -> StatusVerdict:
    """Parse "verdict on line one, reason on line two".

    Missing or unrecognised lines default to CONTINUE with an empty reason.
    """
    lines = [ln.strip() for ln in (text or "").strip().splitlines() if ln.strip()]
    if not lines:
        return StatusVerdict("CONTINUE")
    head = lines[0].strip("*#`\"' ").upper()
    verdict: Verdict = "DONE" if head.startswith("DONE") else "CONTINUE"
    reason = lines[1] if len(lines) > 1 else ""
    return StatusVerdict(verdict, reason)


def fallback_should_stop(
    iteration: int,
    change_count: int,
    checkpoints: Iterable[FallbackCheckpoint],
    hard_stop: int = 20,
) -> bool:
    """Static stop rule used when the status check itself fails.

    The latest checkpoint reached by ``iteration`` sets the minimum number of
    confirmed changes; below it the session stops. At ``hard_stop`` and
    beyond the session always stops.
    """
    if iteration >= hard_stop:
        return True
    reached = [cp for cp in checkpoints if iteration >= cp.iteration]
    if not reached:
        return False
    latest = max(reached, key=lambda cp: cp.iteration)
    return change_count < latest.min_changes


class ConvergenceChecker:
    """Ask the model for a binary DONE/CONTINUE verdict plus a one-line reason."""

    def __init__(self, config: Config, provider: BaseLLMProvider):
        self.config = config
        self.provider = provider

    async def check_status(
        self, goal: str, context_summary: str, recent_text: str = ""
    ) -> StatusVerdict:
        """Run the status check.

        Raises
        ------
        ConvergenceCheckError
            The provider call failed; the caller applies the static fallback.
        """
        user = (
            f"Goal:\n{goal}\n\n"
            f"Recent progress:\n{context_summary or '(none)'}\n\n"
            f"Latest assistant message:\n{recent_text or '(none)'}\n\n"
            "Is the goal fully achieved?"
        )
        messages = [
            {"role": "system", "content": STATUS_CHECK_PROMPT},
            {"role": "user", "content": user},
        ]
        try:
            response = await self.provider.achat(
                messages=messages,
                model=self.config.agent.model,
                temperature=0.0,
                max_tokens=100,
                api_base=self.config.get_api_base(),
            )
        except Exception as e:
            raise ConvergenceCheckError(f"status check failed: {e}") from e

        verdict = parse_verdict(str(response.content or ""))
        logger.debug(f"Status check: {verdict.as_text()}")
        return verdict
