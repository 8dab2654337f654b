"""Tests for docbot.core.providers.litellm."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from docbot.agent.errors import ModelCallError
from docbot.core.config import Config
from docbot.core.providers.litellm import LiteLLMProvider


def _make_response(content="hello", tool_calls=None):
    """Build a mock litellm response."""
    msg = SimpleNamespace(content=content, tool_calls=tool_calls)
    choice = SimpleNamespace(finish_reason="stop", message=msg)
    usage = SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15)
    return SimpleNamespace(choices=[choice], usage=usage)


def _tool_call(name, arguments, call_id="call_1"):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


@pytest.mark.asyncio
async def test_achat_plain_text():
    provider = LiteLLMProvider(Config())
    with patch("litellm.acompletion", new_callable=AsyncMock, return_value=_make_response("hi")) as mock:
        msg = await provider.achat([{"role": "user", "content": "x"}], model="openai/gpt-4o-mini")
    assert msg.content == "hi"
    assert msg.tool_calls == []
    assert "tools" not in mock.call_args.kwargs


@pytest.mark.asyncio
async def test_achat_parses_tool_calls():
    provider = LiteLLMProvider(Config())
    response = _make_response("", [_tool_call("insert", '{"id": 1, "content": "x"}')])
    tools = [{"type": "function", "function": {"name": "insert", "parameters": {}}}]
    with patch("litellm.acompletion", new_callable=AsyncMock, return_value=response) as mock:
        msg = await provider.achat([], model="m", tools=tools)
    assert msg.tool_calls[0]["name"] == "insert"
    assert msg.tool_calls[0]["args"] == {"id": 1, "content": "x"}
    assert mock.call_args.kwargs["tool_choice"] == "auto"
    assert msg.response_metadata["usage"]["total_tokens"] == 15


@pytest.mark.asyncio
async def test_achat_bad_arguments_kept_raw():
    provider = LiteLLMProvider(Config())
    response = _make_response("", [_tool_call("grep", "{not json")])
    with patch("litellm.acompletion", new_callable=AsyncMock, return_value=response):
        msg = await provider.achat([], model="m", tools=[{}])
    assert msg.tool_calls[0]["args"] == {"raw": "{not json"}


@pytest.mark.asyncio
async def test_achat_error_raises_model_call_error():
    provider = LiteLLMProvider(Config())
    with patch("litellm.acompletion", new_callable=AsyncMock, side_effect=RuntimeError("429")):
        with pytest.raises(ModelCallError):
            await provider.achat([], model="m")
