"""Read-only document tools — read_document, grep, get_header."""

from __future__ import annotations

import re

from langchain_core.tools import tool

from docbot.agent.errors import DocumentNotFoundError
from docbot.core.config.schema import Config
from docbot.memory.store import DocumentStore

_REGEX_CHARS = frozenset(".*+?()[]{}|\\^$")


def split_lines(content: str) -> list[str]:
    """Split content into lines; an empty document has no lines."""
    return content.split("\n") if content else []


def make_document_tools(store: DocumentStore, config: Config) -> list:
    """Create read-only document tools closed over the store."""
    max_matches = config.tools.grep_max_matches
    max_chars = config.tools.read_max_chars

    @tool
    def read_document(
        document_id: str,
        user_id: str,
        start_line: int | None = None,
        end_line: int | None = None,
    ) -> str:
        """Read the document (or a 1-based inclusive line range) with line numbers."""
        try:
            lines = split_lines(store.read_content(document_id, user_id))
        except DocumentNotFoundError as e:
            return f"Error: {e}"
        if not lines:
            return "Document is empty."

        start = max(start_line or 1, 1)
        end = min(end_line or len(lines), len(lines))
        if start > end:
            return f"Error: empty range {start}-{end} (document has {len(lines)} lines)"

        text = "\n".join(f"{i}: {lines[i - 1]}" for i in range(start, end + 1))
        if len(text) > max_chars:
            return text[:max_chars] + f"\n\n... truncated ({len(lines)} lines total)"
        return text

    @tool
    def grep(document_id: str, user_id: str, content: str) -> str:
        """Search the whole document for keywords, phrases or a regex; returns matching lines with numbers."""
        query = content
        if not query or not query.strip():
            return "Error: search query must not be empty"
        try:
            lines = split_lines(store.read_content(document_id, user_id))
        except DocumentNotFoundError as e:
            return f"Error: {e}"

        pattern = None
        if any(ch in _REGEX_CHARS for ch in query):
            try:
                pattern = re.compile(query, re.IGNORECASE)
            except re.error:
                pattern = None

        needle = query.lower()
        matches = []
        for i, line in enumerate(lines, start=1):
            hit = pattern.search(line) if pattern else needle in line.lower()
            if hit:
                matches.append(f"{i}: {line}")

        if not matches:
            return "No matches found"
        text = "\n".join(matches[:max_matches])
        if len(matches) > max_matches:
            text += f"\n... and {len(matches) - max_matches} more matches"
        return text

    @tool
    def get_header(document_id: str, user_id: str) -> str:
        """Return the document header: the first H1 heading, or the document title."""
        doc = store.get_document(document_id, user_id)
        if doc is None:
            return f"Error: Document not found: {document_id}"
        for line in split_lines(doc["content"] or ""):
            stripped = line.strip()
            if stripped.startswith("# "):
                return stripped[2:].strip()
        return doc["title"] or "Header not found"

    return [read_document, grep, get_header]
