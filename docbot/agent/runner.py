"""DocumentAgent — orchestrator between the document store and LangGraph."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable

from langchain_core.messages import HumanMessage
from loguru import logger

from docbot.agent.context import ContextBuilder
from docbot.agent.convergence import ConvergenceChecker
from docbot.agent.dispatcher import ToolDispatcher
from docbot.agent.errors import VerificationReadError
from docbot.agent.events import AgentListener, CallbackListener, EventChannel
from docbot.agent.graph import create_graph, recursion_limit
from docbot.agent.guards import KeywordNarrationClassifier, NarrationClassifier, RepetitionDetector
from docbot.agent.nodes import SessionRuntime
from docbot.agent.planning import PlanBuilder
from docbot.agent.state import AgentResult, Step
from docbot.agent.tools import ToolRegistry, make_tools
from docbot.agent.tools.registry import build_tool_definitions, get_tool_catalog
from docbot.agent.verifier import MutationVerifier
from docbot.core.config import Config, load_config
from docbot.core.providers.base import BaseLLMProvider
from docbot.core.providers.litellm import LiteLLMProvider
from docbot.memory.store import DocumentStore


class DocumentAgent:
    """
    Runs editing sessions against documents in a DocumentStore.

    Shared collaborators (provider, tools, verifier, checker, planner) are
    built once; everything mutable lives in the per-request graph state.

    Flow per request:
        1. Read the initial document snapshot
        2. Seed guards, build the initial state
        3. graph.ainvoke(state) — stateless, no checkpoint
        4. Drain listener deliveries, write the audit log
        5. Return the AgentResult
    """

    def __init__(
        self,
        config: Config,
        store: DocumentStore,
        provider: BaseLLMProvider | None = None,
        tools: ToolRegistry | None = None,
        narration: NarrationClassifier | None = None,
    ):
        self.config = config
        self.store = store
        self.registry = tools if tools is not None else make_tools(config, store)
        self.provider = provider or LiteLLMProvider(config)
        self.narration = narration or KeywordNarrationClassifier(config.agent.narration_markers)

        agent = config.agent
        self.dispatcher = ToolDispatcher(self.registry, config.tools.retry)
        self.verifier = MutationVerifier(
            store, agent.mutating_tools, agent.change_stop_threshold
        )
        self.checker = ConvergenceChecker(config, self.provider)
        self.planner = PlanBuilder(config, self.provider)

        all_tools = self.registry.get_all_tools()
        self.tool_defs = build_tool_definitions(all_tools, agent.document_scoped_tools)
        self.context = ContextBuilder(config, get_tool_catalog(all_tools))
        logger.info(f"DocumentAgent ready: model={agent.model}, {len(self.registry)} tools")

    @classmethod
    def from_config(
        cls,
        config_path: str | Path | None = None,
        provider: BaseLLMProvider | None = None,
        **overrides: Any,
    ) -> DocumentAgent:
        """Build an agent from a YAML config file.

        The document store is opened at ``database.path``; ``overrides`` are
        merged over the file (see ``load_config``).
        """
        config = load_config(config_path, **overrides)
        return cls(config, DocumentStore(str(config.db_path)), provider=provider)

    async def process_request(
        self,
        goal: str,
        document_id: str,
        user_id: str,
        listener: AgentListener | None = None,
        cancel_event: asyncio.Event | None = None,
        on_step: Callable[[Step], Any] | None = None,
        on_document_change: Callable[[int], Any] | None = None,
        on_status_check: Callable[[str], Any] | None = None,
    ) -> AgentResult:
        """Run one editing session and return its terminal result.

        Parameters
        ----------
        goal : str
            The user's request in natural language.
        document_id : str
            Document the session operates on.
        user_id : str
            Identity the document is scoped to.
        listener : AgentListener, optional
            Progress receiver. Plain ``on_*`` callbacks are used when omitted.
        cancel_event : asyncio.Event, optional
            Set by the caller to stop the session at the next boundary.

        Returns
        -------
        AgentResult
            Produced exactly once; never raises for model or tool faults.
        """
        if listener is None and (on_step or on_document_change or on_status_check):
            listener = CallbackListener(on_step, on_document_change, on_status_check)
        events = EventChannel(listener)

        runtime = SessionRuntime(
            config=self.config,
            provider=self.provider,
            dispatcher=self.dispatcher,
            verifier=self.verifier,
            checker=self.checker,
            planner=self.planner,
            context=self.context,
            narration=self.narration,
            tool_defs=self.tool_defs,
            events=events,
            cancel_event=cancel_event,
        )
        graph = create_graph(runtime)

        logger.info(f"Session start: document={document_id} user={user_id} goal={goal[:80]!r}")
        self._log(document_id, user_id, "goal", goal)

        try:
            state = await graph.ainvoke(
                self._initial_state(goal, document_id, user_id),
                config={"recursion_limit": recursion_limit(self.config.agent.max_iterations)},
            )
            result = AgentResult(
                final_message=state["final_message"],
                steps=state["steps"],
                complete=state["complete"],
                status=state["status"],
                iterations=state["iteration"],
                change_count=state["change_count"],
            )
        except Exception as e:
            logger.exception(f"Session failed: {e}")
            message = f"Agent failed: {e}"
            steps = list(runtime.trail)
            steps.append(
                Step(step_number=len(steps) + 1, description="Failed", result_text=message)
            )
            result = AgentResult(
                final_message=message,
                steps=steps,
                complete=False,
                status="failed",
            )
        finally:
            await events.drain(self.config.agent.callback_drain_timeout_s)

        for step in result.steps:
            self._log(
                document_id, user_id, "step", step.result_text or step.description,
                step_number=step.step_number,
                tool_calls=step.to_dict()["tool_calls"],
            )
        self._log(document_id, user_id, "final", result.final_message)
        return result

    def _initial_state(self, goal: str, document_id: str, user_id: str) -> dict[str, Any]:
        agent = self.config.agent
        try:
            snapshot = self.verifier.read_snapshot(document_id, user_id)
        except VerificationReadError as e:
            logger.warning(f"Initial snapshot unavailable: {e}")
            snapshot = ""

        response_guard = RepetitionDetector(
            agent.repeat_threshold, count_first=True, name="response_guard"
        )
        stall_guard = RepetitionDetector(
            agent.stall_threshold, count_first=False, name="stall_guard"
        )
        stall_guard.seed("")

        return {
            "messages": [HumanMessage(content=goal)],
            "goal": goal,
            "document_id": document_id,
            "user_id": user_id,
            "iteration": 0,
            "step_number": 0,
            "steps": [],
            "snapshot": snapshot,
            "change_count": 0,
            "tool_outputs": [],
            "seen_hashes": [],
            "response_guard": response_guard,
            "stall_guard": stall_guard,
            "no_tool_calls": 0,
            "plan": [],
            "plan_cursor": 0,
            "plan_built": False,
            "plan_announced": False,
            "route": "reason",
            "status": "running",
            "final_message": "",
            "complete": False,
        }

    def _log(self, document_id: str, user_id: str, kind: str, content: str, **kwargs: Any) -> None:
        try:
            self.store.add_agent_log(document_id, user_id, kind, content, **kwargs)
        except Exception as e:
            logger.warning(f"Agent log write failed ({kind}): {e}")
