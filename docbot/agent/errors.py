"""Error taxonomy for the document agent.

Only ``ModelCallError`` at the main generation step ends a session
abnormally. The others are folded into tool results, warnings or fallback
decisions by the component that catches them.
"""

from __future__ import annotations


class DocbotError(Exception):
    """Base class for docbot errors."""


class DocumentNotFoundError(DocbotError):
    """Document does not exist or belongs to another user."""

    def __init__(self, document_id: str):
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


class UnknownToolError(DocbotError):
    """The model asked for a tool that is not registered."""

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class ToolTimeoutError(DocbotError):
    """A single tool attempt exceeded its timeout."""

    def __init__(self, tool_name: str, timeout_s: float):
        super().__init__(f"Tool '{tool_name}' timed out after {timeout_s:.1f}s")
        self.tool_name = tool_name
        self.timeout_s = timeout_s


class VerificationReadError(DocbotError):
    """Document could not be re-read after a mutating tool call."""


class ConvergenceCheckError(DocbotError):
    """The status-check LLM call failed."""


class ModelCallError(DocbotError):
    """The LLM provider could not produce a response."""


class SessionCancelled(DocbotError):
    """The caller requested the session to stop."""
