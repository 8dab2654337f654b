"""Base LLM provider — strategy pattern interface."""

from __future__ import annotations

import abc
from typing import Any

from langchain_core.messages import AIMessage


class BaseLLMProvider(abc.ABC):
    """Abstract base for LLM providers.

    ``achat`` with ``tools`` is the tool-calling completion used by the main
    loop; without ``tools`` it is the plain-text variant used for status
    checks and planning. Implementations raise ``ModelCallError`` when no
    response could be produced.
    """

    @abc.abstractmethod
    async def achat(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        api_base: str | None = None,
    ) -> AIMessage:
        """Send a chat completion request and return an AIMessage."""
        ...
