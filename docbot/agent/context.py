"""ContextBuilder — assembles the prompt and compact summaries for the loop."""

from __future__ import annotations

import json
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from docbot.agent.prompts import SYSTEM_PROMPT
from docbot.core.config.schema import Config


class ContextBuilder:
    """
    Builds the layered system prompt sent with every model call.

    Layers:
      1. Identity (agent.system_prompt > built-in prompt)
      2. Goal restatement
      3. Tool catalog
      4. Running summary (iteration, confirmed changes, document size)
      5. Plan with the current step marked
    """

    def __init__(self, config: Config, tool_catalog: str):
        self.config = config
        self.tool_catalog = tool_catalog

    def build(self, state: dict[str, Any]) -> str:
        agent = self.config.agent
        parts = [agent.system_prompt or SYSTEM_PROMPT]

        parts.append(f"# Goal\n\n{state['goal']}")

        if self.tool_catalog:
            parts.append(f"# Tools\n\n{self.tool_catalog}")

        line_count = len(state["snapshot"].split("\n")) if state["snapshot"] else 0
        parts.append(
            "# Progress\n\n"
            f"- Iteration: {state['iteration']} of {agent.max_iterations}\n"
            f"- Confirmed document changes: {state['change_count']}\n"
            f"- Document lines: {line_count}"
        )

        plan = state.get("plan") or []
        if plan:
            cursor = state.get("plan_cursor", 0)
            lines = []
            for i, desc in enumerate(plan):
                mark = "x" if i < cursor else (">" if i == cursor else " ")
                lines.append(f"[{mark}] {i + 1}. {desc}")
            parts.append("# Plan\n\n" + "\n".join(lines))

        return "\n\n---\n\n".join(parts)

    def build_messages(self, state: dict[str, Any]) -> list[dict[str, Any]]:
        """System prompt + full history in litellm dict format."""
        messages = [{"role": "system", "content": self.build(state)}]
        for msg in state["messages"]:
            messages.append(langchain_to_dict(msg))
        return messages

    def summarize(self, state: dict[str, Any]) -> str:
        """Compact recent history for the status check."""
        agent = self.config.agent
        limit = agent.summary_chars
        lines = [
            f"Iteration {state['iteration']}, confirmed document changes: {state['change_count']}.",
        ]
        for msg in state["messages"][-agent.summary_messages:]:
            role = _role(msg)
            text = _truncate(str(msg.content or ""), limit)
            if isinstance(msg, AIMessage) and msg.tool_calls:
                names = ", ".join(tc["name"] for tc in msg.tool_calls)
                text = f"{text} [tool calls: {names}]".strip()
            if text:
                lines.append(f"{role}: {text}")
        outputs = state.get("tool_outputs") or []
        for out in outputs[-3:]:
            lines.append(f"tool output: {_truncate(out, limit)}")
        return "\n".join(lines)


def langchain_to_dict(msg: BaseMessage) -> dict[str, Any]:
    """Convert LangChain message to dict for litellm."""
    if isinstance(msg, HumanMessage):
        return {"role": "user", "content": msg.content}
    elif isinstance(msg, AIMessage):
        d: dict[str, Any] = {"role": "assistant", "content": msg.content}
        if msg.tool_calls:
            d["tool_calls"] = [
                {
                    "id": tc["id"],
                    "type": "function",
                    "function": {"name": tc["name"], "arguments": _json(tc["args"])},
                }
                for tc in msg.tool_calls
            ]
        return d
    elif isinstance(msg, ToolMessage):
        return {
            "role": "tool",
            "tool_call_id": msg.tool_call_id,
            "content": msg.content,
        }
    elif isinstance(msg, SystemMessage):
        return {"role": "system", "content": msg.content}
    else:
        return {"role": "user", "content": str(msg.content)}


def _json(args: Any) -> str:
    return json.dumps(args, ensure_ascii=False)


def _role(msg: BaseMessage) -> str:
    if isinstance(msg, HumanMessage):
        return "user"
    if isinstance(msg, AIMessage):
        return "assistant"
    if isinstance(msg, ToolMessage):
        return "tool"
    return "system"


def _truncate(text: str, limit: int) -> str:
    text = text.strip()
    return text if len(text) <= limit else text[:limit] + "..."
