"""PlanBuilder — one-shot, best-effort ordered plan for the session."""

from __future__ import annotations

import json
import re

from loguru import logger

from docbot.agent.prompts import PLAN_PROMPT
from docbot.core.config.schema import Config
from docbot.core.providers.base import BaseLLMProvider

_LIST_ITEM_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s+(.+?)\s*$")


def parse_json_plan(text: str) -> list[str]:
    """Parse a JSON plan.

    Accepts an array of strings, an array of objects with an "action" (or
    "step"/"description") field, or an object with a "steps" array.

    Raises
    ------
    ValueError
        Text is not a JSON plan of a recognised shape.
    """
    clean = text.strip()
    # Handle markdown code blocks
    if "```" in clean:
        clean = clean.split("```")[1]
        if clean.startswith("json"):
            clean = clean[4:]
    data = json.loads(clean.strip())

    if isinstance(data, dict):
        data = data.get("steps")
    if not isinstance(data, list):
        raise ValueError("plan JSON is not a list of steps")

    steps = []
    for item in data:
        if isinstance(item, str):
            desc = item
        elif isinstance(item, dict):
            desc = item.get("action") or item.get("step") or item.get("description") or ""
        else:
            continue
        desc = str(desc).strip()
        if desc:
            steps.append(desc)
    return steps


def parse_list_plan(text: str) -> list[str]:
    """Extract steps from "1. ..." / "- ..." lines."""
    steps = []
    for line in text.splitlines():
        m = _LIST_ITEM_RE.match(line)
        if m:
            steps.append(m.group(1))
    return steps


class PlanBuilder:
    """Ask the model for a short plan; an empty list means "no plan"."""

    def __init__(self, config: Config, provider: BaseLLMProvider):
        self.config = config
        self.provider = provider
        self.max_steps = config.agent.max_plan_steps

    async def build_plan(self, goal: str, analysis_text: str = "") -> list[str]:
        try:
            messages = [
                {"role": "system", "content": PLAN_PROMPT.format(max_steps=self.max_steps)},
                {
                    "role": "user",
                    "content": f"Goal: {goal}\n\nAgent analysis:\n{analysis_text or '(none)'}",
                },
            ]
            response = await self.provider.achat(
                messages=messages,
                model=self.config.agent.model,
                temperature=0.2,
                max_tokens=512,
                api_base=self.config.get_api_base(),
            )
            plan = self.parse(str(response.content or ""))
        except Exception as e:
            logger.warning(f"PlanBuilder: plan unavailable ({e})")
            return []
        logger.debug(f"PlanBuilder: {len(plan)} steps")
        return plan

    def parse(self, text: str) -> list[str]:
        """JSON first, then numbered/bulleted list; capped at max_steps."""
        try:
            steps = parse_json_plan(text)
        except (ValueError, IndexError):
            steps = parse_list_plan(text)
        return steps[: self.max_steps]
