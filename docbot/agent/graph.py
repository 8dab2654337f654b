"""LangGraph StateGraph — compile the document agent loop."""

from __future__ import annotations

from langgraph.graph import END, START, StateGraph

from docbot.agent.nodes import (
    SessionRuntime,
    make_nodes,
    route_after_begin,
    route_after_reason,
    route_after_step,
)
from docbot.agent.state import AgentState


def create_graph(runtime: SessionRuntime):
    """
    Build and compile the agent graph for one session.

    Graph flow:
        START → begin_iteration → reason → execute_tools ─┐
                      ↑              │   → handle_idle ───┤
                      └── retry ─────┘                    │
                      └───────────── next ────────────────┘
        any "stop" route → finish → END
    """
    nodes = make_nodes(runtime)

    graph = StateGraph(AgentState)

    # Add nodes
    for name, fn in nodes.items():
        graph.add_node(name, fn)

    # Edges
    graph.add_edge(START, "begin_iteration")
    graph.add_conditional_edges(
        "begin_iteration",
        route_after_begin,
        {"reason": "reason", "stop": "finish"},
    )
    graph.add_conditional_edges(
        "reason",
        route_after_reason,
        {
            "tools": "execute_tools",
            "idle": "handle_idle",
            "retry": "begin_iteration",
            "stop": "finish",
        },
    )
    for source in ("execute_tools", "handle_idle"):
        graph.add_conditional_edges(
            source,
            route_after_step,
            {"next": "begin_iteration", "stop": "finish"},
        )
    graph.add_edge("finish", END)
    return graph.compile()


def recursion_limit(max_iterations: int) -> int:
    """Node visits needed for ``max_iterations`` full iterations plus finish."""
    return max_iterations * 3 + 10
