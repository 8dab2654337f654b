"""Graph nodes — begin_iteration, reason, execute_tools, handle_idle, finish."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

from langchain_core.messages import AIMessage, HumanMessage, ToolMessage
from loguru import logger

from docbot.agent.context import ContextBuilder
from docbot.agent.convergence import ConvergenceChecker, StatusVerdict, fallback_should_stop
from docbot.agent.dispatcher import ToolDispatcher, run_cancellable
from docbot.agent.errors import ConvergenceCheckError, SessionCancelled
from docbot.agent.events import EventChannel
from docbot.agent.guards import NarrationClassifier, has_unresolved_images
from docbot.agent.planning import PlanBuilder
from docbot.agent.prompts import (
    IMAGE_CORRECTION,
    NARRATION_CORRECTION,
    PLAN_STEP,
    REPEAT_CORRECTION,
    TOOL_RESULTS_FOOTER,
)
from docbot.agent.state import AgentState, AgentStatus, Step, ToolCallRecord
from docbot.agent.tools.registry import inject_trusted_args
from docbot.agent.verifier import MutationVerifier
from docbot.core.config.schema import Config
from docbot.core.providers.base import BaseLLMProvider

STOPPED_MESSAGE = "Stopped by user request."

_TERMINAL_LABELS: dict[str, str] = {
    "converged": "Task complete",
    "answered": "Final answer",
    "stalled": "Stopped: no progress",
    "cancelled": "Stopped by user",
    "exhausted": "Stopped: max iterations reached",
    "failed": "Failed",
}


@dataclass
class SessionRuntime:
    """Collaborators for one session; shared ones come from DocumentAgent."""

    config: Config
    provider: BaseLLMProvider
    dispatcher: ToolDispatcher
    verifier: MutationVerifier
    checker: ConvergenceChecker
    planner: PlanBuilder
    context: ContextBuilder
    narration: NarrationClassifier
    tool_defs: list[dict[str, Any]]
    events: EventChannel
    cancel_event: asyncio.Event | None = None
    # Every step recorded so far; survives a graph fault.
    trail: list[Step] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


def make_nodes(rt: SessionRuntime):
    """
    Create node functions closed over the session runtime.

    Returns dict of {node_name: callable} for graph registration.
    """
    agent = rt.config.agent

    def _stop(status: AgentStatus, message: str, complete: bool = True) -> dict[str, Any]:
        return {
            "route": "stop",
            "status": status,
            "final_message": message,
            "complete": complete,
        }

    def _record(
        state: AgentState,
        description: str,
        tool_calls: list[ToolCallRecord] | None = None,
        result_text: str = "",
    ) -> dict[str, Any]:
        step = Step(
            step_number=state["step_number"] + 1,
            description=description,
            tool_calls=tool_calls or [],
            result_text=result_text,
        )
        rt.trail.append(step)
        rt.events.step(step)
        return {"steps": state["steps"] + [step], "step_number": step.step_number}

    async def _status_check(state: dict[str, Any], recent_text: str) -> StatusVerdict:
        summary = rt.context.summarize(state)
        verdict = await run_cancellable(
            rt.checker.check_status(state["goal"], summary, recent_text),
            rt.cancel_event,
        )
        rt.events.status_check(verdict.as_text())
        return verdict

    async def begin_iteration(state: AgentState) -> dict[str, Any]:
        """Cancellation, exhaustion and the periodic status check."""
        if rt.cancelled:
            return _stop("cancelled", STOPPED_MESSAGE)

        if state["iteration"] >= agent.max_iterations:
            logger.warning(f"Max iterations reached ({agent.max_iterations})")
            return _stop(
                "exhausted",
                f"Max iterations reached ({agent.max_iterations}); the task may be incomplete.",
            )

        iteration = state["iteration"] + 1
        update: dict[str, Any] = {"iteration": iteration, "route": "reason"}
        interval = agent.status_check_interval
        if interval <= 0 or iteration % interval != 0:
            return update

        upcoming = {**state, "iteration": iteration}
        try:
            verdict = await _status_check(upcoming, _last_ai_text(state))
        except SessionCancelled:
            return {**update, **_stop("cancelled", STOPPED_MESSAGE)}
        except ConvergenceCheckError as e:
            logger.warning(f"{e}; applying fallback thresholds")
            changes = state["change_count"]
            if fallback_should_stop(
                iteration, changes, agent.fallback_checkpoints, agent.fallback_hard_stop
            ):
                return {
                    **update,
                    **_stop(
                        "stalled",
                        f"Stopped at iteration {iteration} with {changes} confirmed "
                        "change(s); progress could not be verified.",
                    ),
                }
            return update

        if verdict.done:
            return {**update, **_stop("converged", verdict.reason or "Task complete.")}
        return update

    async def reason(state: AgentState) -> dict[str, Any]:
        """Call the LLM with system prompt + context + history + tools."""
        messages = rt.context.build_messages(state)
        try:
            ai_message = await run_cancellable(
                rt.provider.achat(
                    messages=messages,
                    model=agent.model,
                    tools=rt.tool_defs or None,
                    temperature=agent.temperature,
                    max_tokens=agent.max_tokens,
                    api_base=rt.config.get_api_base(),
                ),
                rt.cancel_event,
            )
        except SessionCancelled:
            return _stop("cancelled", STOPPED_MESSAGE)
        except Exception as e:
            logger.error(f"Model call failed at iteration {state['iteration']}: {e}")
            return _stop("failed", f"Model call failed: {e}", complete=False)

        if ai_message.tool_calls:
            names = [tc["name"] for tc in ai_message.tool_calls]
            logger.debug(f"LLM tool calls: {names}")
        else:
            snippet = (ai_message.content or "")[:80]
            logger.debug(f"LLM response (no tools): {snippet!r}")

        if state["response_guard"].observe(_raw_response(ai_message)):
            # Tool calls are dropped: they will not be answered.
            return {
                **_record(state, "Repeated response, corrected", result_text=REPEAT_CORRECTION),
                "messages": [
                    AIMessage(content=ai_message.content or ""),
                    HumanMessage(content=REPEAT_CORRECTION),
                ],
                "route": "retry",
            }

        return {
            "messages": [ai_message],
            "route": "tools" if ai_message.tool_calls else "idle",
        }

    async def execute_tools(state: AgentState) -> dict[str, Any]:
        """Dispatch the batch sequentially, verify edits, check for stalls."""
        last_msg = state["messages"][-1]
        document_id, user_id = state["document_id"], state["user_id"]
        snapshot, change_count = state["snapshot"], state["change_count"]
        tool_outputs = list(state["tool_outputs"])
        seen = list(state["seen_hashes"])
        records: list[ToolCallRecord] = []
        tool_messages: list[ToolMessage] = []
        stop_requested = False
        cancelled = False

        for call in last_msg.tool_calls:
            if rt.cancelled:
                cancelled = True
                break
            name = call["name"]
            args = inject_trusted_args(
                name, call.get("args") or {}, document_id, user_id,
                agent.document_scoped_tools,
            )
            logger.debug(f"Executing tool: {name}({args})")
            try:
                outcome = await rt.dispatcher.execute(name, args, rt.cancel_event)
            except SessionCancelled:
                cancelled = True
                break

            text = outcome.result_text
            record = ToolCallRecord(
                name=name,
                arguments=args,
                result_text=text,
                succeeded=outcome.succeeded,
                attempts_used=outcome.attempts_used,
                elapsed=outcome.elapsed,
                result_hash=outcome.result_hash,
                mutating=rt.verifier.is_mutating(name),
            )
            if record.mutating and outcome.succeeded:
                check = rt.verifier.verify_change(
                    document_id, user_id, snapshot, name, change_count
                )
                if check.confirmed:
                    snapshot, change_count = check.snapshot, check.change_count
                    record.confirmed_change = True
                    tool_outputs.append(f"[{name}] {text}")
                    rt.events.document_change(change_count)
                    stop_requested = stop_requested or check.stop_requested
                else:
                    text += check.warning
            elif outcome.succeeded and outcome.result_hash not in seen:
                seen.append(outcome.result_hash)
                tool_outputs.append(f"[{name}] {text}")

            record.result_text = text
            records.append(record)
            tool_messages.append(ToolMessage(content=text, tool_call_id=call["id"]))

        update: dict[str, Any] = {
            **_record(
                state,
                _describe(records, last_msg),
                records,
                "\n\n".join(f"[{r.name}] {r.result_text}" for r in records),
            ),
            "snapshot": snapshot,
            "change_count": change_count,
            "tool_outputs": tool_outputs,
            "seen_hashes": seen,
            "no_tool_calls": 0,
        }
        if cancelled:
            logger.info("Cancellation requested during tool execution")
            return {**update, "messages": tool_messages, **_stop("cancelled", STOPPED_MESSAGE)}

        plan = state["plan"]
        cursor = min(state["plan_cursor"] + 1, len(plan)) if plan else 0
        update["plan_cursor"] = cursor
        update["messages"] = tool_messages + [
            HumanMessage(content=_results_summary(records, plan, cursor))
        ]

        if state["stall_guard"].observe("\n".join(tool_outputs)):
            return {**update, **_stop("stalled", _stuck_message(agent.stall_threshold))}

        if stop_requested:
            try:
                verdict = await _status_check({**state, **update}, "")
            except SessionCancelled:
                return {**update, **_stop("cancelled", STOPPED_MESSAGE)}
            except ConvergenceCheckError as e:
                logger.warning(f"{e}; stopping after {change_count} confirmed changes")
                return {
                    **update,
                    **_stop("converged", f"Document updated with {change_count} confirmed changes."),
                }
            if verdict.done:
                return {**update, **_stop("converged", verdict.reason or "Task complete.")}

        update["route"] = "next"
        return update

    async def handle_idle(state: AgentState) -> dict[str, Any]:
        """The model answered without tool calls: finish, correct, or follow the plan."""
        text = str(state["messages"][-1].content or "").strip()
        no_tool_calls = state["no_tool_calls"] + 1

        if state["stall_guard"].observe("\n".join(state["tool_outputs"])):
            return {
                "no_tool_calls": no_tool_calls,
                **_stop("stalled", _stuck_message(agent.stall_threshold)),
            }

        try:
            verdict = await _status_check(state, text)
        except SessionCancelled:
            return _stop("cancelled", STOPPED_MESSAGE)
        except ConvergenceCheckError as e:
            logger.warning(f"{e}; treating as CONTINUE")
            verdict = StatusVerdict("CONTINUE")
        if verdict.done:
            return {
                "no_tool_calls": no_tool_calls,
                **_stop("converged", text or verdict.reason or "Task complete."),
            }

        if rt.narration.is_narrating_not_acting(text):
            logger.info("Model narrated an edit without a tool call, correcting")
            return {
                **_record(state, "Narration without a tool call, corrected", result_text=text),
                "no_tool_calls": 0,
                "messages": [HumanMessage(content=NARRATION_CORRECTION)],
                "route": "next",
            }
        if has_unresolved_images(
            text, state["tool_outputs"], agent.image_tools, state["snapshot"]
        ):
            logger.info("Model left image results unplaced, correcting")
            return {
                **_record(state, "Image results not placed, corrected", result_text=text),
                "no_tool_calls": 0,
                "messages": [HumanMessage(content=IMAGE_CORRECTION)],
                "route": "next",
            }

        if no_tool_calls > agent.no_tool_call_limit:
            logger.info(f"{no_tool_calls} iterations without tool calls, finishing")
            return {"no_tool_calls": no_tool_calls, **_stop("answered", text or "Done.")}

        update: dict[str, Any] = {"no_tool_calls": no_tool_calls}
        plan, cursor = state["plan"], state["plan_cursor"]
        if agent.use_plan and not state["plan_built"]:
            try:
                plan = await run_cancellable(
                    rt.planner.build_plan(state["goal"], text), rt.cancel_event
                )
            except SessionCancelled:
                return _stop("cancelled", STOPPED_MESSAGE)
            cursor = 0
            update.update(plan=plan, plan_cursor=0, plan_built=True)

        # Announced once; later steps ride along with the tool results.
        if plan and cursor < len(plan) and not state["plan_announced"]:
            prompt = PLAN_STEP.format(
                number=cursor + 1, total=len(plan), description=plan[cursor]
            )
            logger.debug(f"Announcing plan step {cursor + 1}/{len(plan)}")
            return {
                **update,
                **_record(state, f"Plan of {len(plan)} step(s) announced", result_text="\n".join(plan)),
                "plan_announced": True,
                "messages": [HumanMessage(content=prompt)],
                "route": "next",
            }

        return {**update, **_stop("answered", text or "Done.")}

    async def finish(state: AgentState) -> dict[str, Any]:
        """Record the terminal event as the last step."""
        status = state["status"]
        recorded = _record(
            state, _TERMINAL_LABELS.get(status, status), result_text=state["final_message"]
        )
        logger.info(
            f"Session finished: status={status}, iterations={state['iteration']}, "
            f"changes={state['change_count']}"
        )
        return recorded

    return {
        "begin_iteration": begin_iteration,
        "reason": reason,
        "execute_tools": execute_tools,
        "handle_idle": handle_idle,
        "finish": finish,
    }


# ── Conditional edges ─────────────────────────────────────


def route_after_begin(state: AgentState) -> str:
    return "stop" if state["route"] == "stop" else "reason"


def route_after_reason(state: AgentState) -> str:
    return state["route"]


def route_after_step(state: AgentState) -> str:
    return "stop" if state["route"] == "stop" else "next"


# ── Helpers ───────────────────────────────────────────────


def _raw_response(msg: AIMessage) -> str:
    """Response text plus tool-call requests, as the model produced them."""
    calls = [
        {"name": tc["name"], "args": tc.get("args") or {}} for tc in msg.tool_calls or []
    ]
    raw = str(msg.content or "")
    if calls:
        raw += "\n" + json.dumps(calls, sort_keys=True, ensure_ascii=False)
    return raw


def _last_ai_text(state: AgentState) -> str:
    for msg in reversed(state["messages"]):
        if isinstance(msg, AIMessage) and msg.content:
            return str(msg.content)
    return ""


def _describe(records: list[ToolCallRecord], msg: AIMessage) -> str:
    names = [r.name for r in records] or [tc["name"] for tc in msg.tool_calls]
    return "Tool calls: " + ", ".join(names)


def _results_summary(records: list[ToolCallRecord], plan: list[str], cursor: int) -> str:
    lines = ["Tool results:"]
    for r in records:
        if r.confirmed_change:
            status = "ok, document changed"
        elif r.mutating and r.succeeded:
            status = "ok, but the document did NOT change"
        elif r.succeeded:
            status = "ok"
        else:
            status = "failed"
        lines.append(f"- {r.name}: {status}")
    if plan and cursor < len(plan):
        lines.append(
            "\n" + PLAN_STEP.format(number=cursor + 1, total=len(plan), description=plan[cursor])
        )
    lines.append("\n" + TOOL_RESULTS_FOOTER)
    return "\n".join(lines)


def _stuck_message(threshold: int) -> str:
    return (
        f"I seem to be stuck: {threshold} iterations in a row brought no new tool "
        "output or confirmed document change. Please clarify the request or give "
        "more details."
    )
