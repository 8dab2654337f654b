"""Tool catalog helpers — model-facing definitions and trusted argument injection."""

from __future__ import annotations

from typing import Any, Iterable

from langchain_core.tools import BaseTool

# Arguments the loop supplies itself; never taken from the model.
TRUSTED_ARGS = ("document_id", "user_id")


def build_tool_definitions(
    tools: Iterable[BaseTool],
    scoped_tools: Iterable[str] = (),
) -> list[dict[str, Any]]:
    """Convert LangChain tools to OpenAI function format.

    For tools in ``scoped_tools`` the trusted arguments are removed from the
    schema so the model never sees (or sets) them.
    """
    scoped = set(scoped_tools)
    defs = []
    for tool in tools:
        schema = tool.args_schema.model_json_schema() if tool.args_schema else {}
        if tool.name in scoped and schema:
            schema = _strip_trusted(schema)
        defs.append(
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description or "",
                    "parameters": schema,
                },
            }
        )
    return defs


def _strip_trusted(schema: dict[str, Any]) -> dict[str, Any]:
    props = {
        k: v for k, v in schema.get("properties", {}).items() if k not in TRUSTED_ARGS
    }
    stripped = {**schema, "properties": props}
    if "required" in schema:
        stripped["required"] = [r for r in schema["required"] if r not in TRUSTED_ARGS]
    return stripped


def inject_trusted_args(
    tool_name: str,
    args: dict[str, Any],
    document_id: str,
    user_id: str,
    scoped_tools: Iterable[str],
) -> dict[str, Any]:
    """Return a copy of ``args`` with document_id/user_id forced for scoped tools.

    Values the model supplied for these keys are overwritten, so a tool call
    can never address another user's document. Tools outside the allow-list
    get the arguments unchanged.
    """
    result = dict(args)
    if tool_name in set(scoped_tools):
        result["document_id"] = document_id
        result["user_id"] = user_id
    return result


def get_tool_catalog(tools: Iterable[BaseTool]) -> str:
    """Build human-readable tool catalog for prompts.

    Returns
    -------
    str
        Tool name + description (up to 300 chars), one per line.
    """
    lines = []
    for t in tools:
        desc = (t.description or "").strip()
        if len(desc) > 300:
            desc = desc[:300] + "..."
        lines.append(f"- {t.name}: {desc}")
    return "\n".join(lines)
