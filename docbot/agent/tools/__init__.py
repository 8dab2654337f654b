"""Tool system — ToolRegistry and factory that creates all agent tools."""

from __future__ import annotations

from dataclasses import dataclass

from langchain_core.tools import BaseTool
from loguru import logger

from docbot.agent.tools.clock import make_clock_tools
from docbot.agent.tools.document import make_document_tools
from docbot.agent.tools.editing import make_editing_tools
from docbot.core.config.schema import Config
from docbot.memory.store import DocumentStore


@dataclass
class ToolInfo:
    """Metadata for a registered tool."""

    tool: BaseTool
    group: str


class ToolRegistry:
    """Central tool registry — maps tool names to executable tools.

    Each factory function (make_*_tools) registers its tools under a group
    name. The registry holds no per-call state.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolInfo] = {}
        self._groups: dict[str, list[str]] = {}

    def register_group(self, group: str, tools: list) -> None:
        """Register a list of tools under a group name.

        Re-registering a group replaces its previous tools.
        """
        for name in self._groups.get(group, []):
            self._tools.pop(name, None)
        self._groups[group] = []

        for t in tools:
            if t.name in self._tools:
                logger.warning(
                    f"Tool '{t.name}' re-registered by group '{group}' "
                    f"(was '{self._tools[t.name].group}')"
                )
            self._tools[t.name] = ToolInfo(tool=t, group=group)
            self._groups[group].append(t.name)

    def get(self, name: str) -> BaseTool | None:
        """Return the tool registered under ``name``, if any."""
        info = self._tools.get(name)
        return info.tool if info else None

    def get_all_tools(self) -> list[BaseTool]:
        """Return all tool objects."""
        return [info.tool for info in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)


def make_tools(config: Config, store: DocumentStore) -> ToolRegistry:
    """Create all agent tools and return a ToolRegistry.

    Parameters
    ----------
    config : Config
        Application config.
    store : DocumentStore
        Document storage the tools read from and write to.

    Returns
    -------
    ToolRegistry
        Registry with all tools registered under their groups.
    """
    registry = ToolRegistry()
    registry.register_group("document", make_document_tools(store, config))
    registry.register_group("editing", make_editing_tools(store))
    registry.register_group("metadata", make_clock_tools())
    return registry


__all__ = ["ToolRegistry", "ToolInfo", "make_tools"]
