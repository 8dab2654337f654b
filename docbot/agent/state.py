"""Session data model — LangGraph state plus the records returned to callers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from langgraph.graph import MessagesState

from docbot.agent.guards import RepetitionDetector

AgentStatus = Literal[
    "running", "converged", "answered", "stalled", "cancelled", "exhausted", "failed",
]

# Where the graph goes after a node; read by the conditional edges.
Route = Literal["reason", "retry", "tools", "idle", "next", "stop"]


@dataclass
class ToolExecutionOutcome:
    """Result of dispatching one tool call (after retries)."""

    result_text: str
    succeeded: bool
    attempts_used: int
    elapsed: float
    result_hash: str


@dataclass
class ToolCallRecord:
    """One tool call as requested by the model plus how it went."""

    name: str
    arguments: dict[str, Any]
    result_text: str
    succeeded: bool
    attempts_used: int = 0
    elapsed: float = 0.0
    result_hash: str = ""
    mutating: bool = False
    confirmed_change: bool = False


@dataclass
class Step:
    """One loop iteration or terminal event in the audit trail."""

    step_number: int
    description: str
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    result_text: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AgentResult:
    """Terminal result of one session; produced exactly once."""

    final_message: str
    steps: list[Step]
    complete: bool
    status: AgentStatus = "answered"
    iterations: int = 0
    change_count: int = 0


class AgentState(MessagesState):
    """
    Extends MessagesState (messages: Annotated[list[BaseMessage], add_messages]).

    Owned by a single ``process_request`` call; nothing here outlives it.
    The two detectors are mutated in place by the nodes.
    """

    goal: str
    document_id: str
    user_id: str

    iteration: int
    step_number: int
    steps: list[Step]

    snapshot: str
    change_count: int
    tool_outputs: list[str]
    seen_hashes: list[str]

    response_guard: RepetitionDetector
    stall_guard: RepetitionDetector
    no_tool_calls: int

    plan: list[str]
    plan_cursor: int
    plan_built: bool
    plan_announced: bool

    route: Route
    status: AgentStatus
    final_message: str
    complete: bool
