"""Shared fixtures — scripted LLM provider and a seeded document store."""

from __future__ import annotations

import itertools

import pytest
from langchain_core.messages import AIMessage

from docbot.core.config import Config
from docbot.core.providers.base import BaseLLMProvider
from docbot.memory.store import DocumentStore

DOC_ID = "doc-1"
USER_ID = "u1"
DOC_CONTENT = "# Report\n\nIntro paragraph.\n\n## Findings\n\nSome findings."

_ids = itertools.count(1)


def tool_call(name: str, args: dict | None = None, content: str = "") -> AIMessage:
    """AIMessage requesting a single tool call."""
    return tool_calls([(name, args or {})], content)


def tool_calls(calls: list[tuple[str, dict]], content: str = "") -> AIMessage:
    """AIMessage requesting several tool calls in one batch."""
    return AIMessage(
        content=content,
        tool_calls=[
            {"id": f"call_{next(_ids)}", "name": name, "args": args}
            for name, args in calls
        ],
    )


class ScriptedProvider(BaseLLMProvider):
    """Replays scripted responses.

    Calls with ``tools`` are main-loop generations and pop ``responses``
    (an Exception entry is raised). Calls without tools are status checks
    (system prompt asks for DONE/CONTINUE) or plan requests.
    """

    def __init__(
        self,
        responses: list | None = None,
        status: str | Exception | list = "CONTINUE\nStill working.",
        plan: str | Exception = "[]",
        default: str = "All done.",
    ):
        self.responses = list(responses or [])
        self.status = status
        self.plan = plan
        self.default = default
        self.calls: list[list[dict]] = []
        self.status_calls: list[list[dict]] = []
        self.plan_calls: list[list[dict]] = []

    async def achat(
        self,
        messages,
        model,
        tools=None,
        temperature=0.7,
        max_tokens=4096,
        api_base=None,
    ) -> AIMessage:
        if tools is None:
            if "DONE or CONTINUE" in messages[0]["content"]:
                self.status_calls.append(messages)
                return AIMessage(content=self._next_status())
            self.plan_calls.append(messages)
            if isinstance(self.plan, Exception):
                raise self.plan
            return AIMessage(content=self.plan)

        self.calls.append(messages)
        if not self.responses:
            return AIMessage(content=self.default)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def _next_status(self) -> str:
        status = self.status
        if isinstance(status, list):
            status = status.pop(0) if len(status) > 1 else status[0]
        if isinstance(status, Exception):
            raise status
        return status


def user_texts(messages: list[dict]) -> list[str]:
    return [m["content"] for m in messages if m["role"] == "user"]


@pytest.fixture
def cfg():
    return Config(agent={"use_plan": False})


@pytest.fixture
def store(tmp_path):
    s = DocumentStore(str(tmp_path / "test.db"))
    s.create_document(USER_ID, title="Report", content=DOC_CONTENT, document_id=DOC_ID)
    return s
