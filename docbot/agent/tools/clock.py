"""Metadata tool — current date and time."""

from __future__ import annotations

from datetime import datetime

from langchain_core.tools import tool


def make_clock_tools() -> list:
    """Create the get_datetime tool."""

    @tool
    def get_datetime() -> str:
        """Return the current date and time in ISO and human-readable formats."""
        now = datetime.now().astimezone()
        return f"ISO: {now.isoformat(timespec='seconds')}\nReadable: {now.strftime('%A, %d %B %Y %H:%M')}"

    return [get_datetime]
