"""Agentic tool-use loop: model turn -> tools -> model turn, under a wall-clock budget.

States per invocation::

    AwaitingModel -> ToolUseTurn -> (tools run) -> AwaitingModel
    AwaitingModel -> FinishedTurn -> Done | Degraded(parse_error)
    AwaitingModel -> InconclusiveTurn -> Degraded(inconclusive)
    AwaitingModel -> budget/iteration ceiling -> Degraded

`Degraded` is resolved by `DegradationPolicy`, which always yields a record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import time
from typing import Callable

from phish_triage_agent.domain.analysis import AnalysisRecord, ToolInvocation, ToolOutcome
from phish_triage_agent.domain.email.models import NormalizedEmail
from phish_triage_agent.orchestrator.assembler import AnalysisParseError, RunStats, assemble_record
from phish_triage_agent.orchestrator.budget import BudgetPolicy, TimeBudget
from phish_triage_agent.orchestrator.fallback import DegradationPolicy, DegradeReason
from phish_triage_agent.orchestrator.prompts import AGENT_SYSTEM_PROMPT, format_email_for_agent
from phish_triage_agent.orchestrator.race import race
from phish_triage_agent.orchestrator.tool_executor import ToolExecutor
from phish_triage_agent.providers.base import (
    ConversationMessage,
    FinishedTurn,
    InconclusiveTurn,
    ModelClient,
    ModelTimeoutError,
    RequestedToolCall,
    ToolResultBlock,
    ToolResultsMessage,
    ToolUseTurn,
    Usage,
    UserMessage,
)
from phish_triage_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

TOOL_LIMIT_ERROR = "Tool call limit reached for this analysis; call not executed."


@dataclass
class _RunState:
    email: NormalizedEmail
    budget: TimeBudget
    messages: list[ConversationMessage]
    tool_calls: list[ToolInvocation] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    tool_execution_ms: int = 0
    iterations: int = 0

    def stats(self, model: str) -> RunStats:
        return RunStats(
            model=model,
            latency_ms=self.budget.elapsed_ms(),
            usage=self.usage,
            tool_execution_ms=self.tool_execution_ms,
        )


class _Degrade(Exception):
    def __init__(self, reason: DegradeReason, detail: str = "") -> None:
        super().__init__(detail or reason.value)
        self.reason = reason


@dataclass
class EmailAnalyzer:
    """Runs one bounded, multi-turn tool-using analysis per email."""

    model: ModelClient
    registry: ToolRegistry
    policy: BudgetPolicy = field(default_factory=BudgetPolicy)
    max_output_tokens: int = 512
    fallback_max_output_tokens: int = 2048
    clock: Callable[[], float] = time.monotonic

    def __post_init__(self) -> None:
        self.policy = self.policy.normalized()
        self.executor = ToolExecutor(tool_timeout_s=self.policy.tool_timeout_s)
        self.degradation = DegradationPolicy(model=self.model, max_tokens=self.fallback_max_output_tokens)

    def analyze(self, email: NormalizedEmail) -> AnalysisRecord:
        state = _RunState(
            email=email,
            budget=TimeBudget(policy=self.policy, clock=self.clock),
            messages=[UserMessage(format_email_for_agent(email))],
        )
        logger.info("Starting agentic analysis from=%s subject=%s", email.sender_address, email.subject)
        try:
            record = self._run(state)
        except _Degrade as exc:
            logger.warning(
                "Analysis degraded reason=%s detail=%s iterations=%d tool_calls=%d elapsed_ms=%d",
                exc.reason.value,
                exc,
                state.iterations,
                len(state.tool_calls),
                state.budget.elapsed_ms(),
            )
            record = self.degradation.resolve(
                email=email,
                reason=exc.reason,
                budget=state.budget,
                tool_calls=state.tool_calls,
                usage=state.usage,
                tool_execution_ms=state.tool_execution_ms,
            )
        logger.info(
            "Analysis completed from=%s verdict=%s confidence=%d tool_calls=%d latency_ms=%d",
            email.sender_address,
            record.verdict,
            record.confidence,
            len(record.tool_calls or []),
            record.metadata.latency_ms,
        )
        return record

    def _run(self, state: _RunState) -> AnalysisRecord:
        while True:
            if state.iterations >= self.policy.max_iterations:
                raise _Degrade(DegradeReason.ITERATIONS_EXHAUSTED)
            if state.budget.tool_phase_expired():
                raise _Degrade(DegradeReason.TOOL_PHASE_EXPIRED, f"elapsed_ms={state.budget.elapsed_ms()}")

            turn = self._call_model(state)
            if isinstance(turn, (FinishedTurn, ToolUseTurn, InconclusiveTurn)):
                state.usage = state.usage + turn.usage

            if isinstance(turn, FinishedTurn):
                return self._finish(state, turn)
            if isinstance(turn, ToolUseTurn):
                self._run_tools(state, turn)
                state.iterations += 1
                continue
            if isinstance(turn, InconclusiveTurn):
                raise _Degrade(DegradeReason.INCONCLUSIVE, f"stop_reason={turn.stop_reason}")
            raise _Degrade(DegradeReason.INCONCLUSIVE, f"unrecognized turn {type(turn).__name__}")

    def _call_model(self, state: _RunState):
        messages = tuple(state.messages)
        try:
            return race(
                lambda: self.model.complete(
                    system=AGENT_SYSTEM_PROMPT,
                    tools=self.registry.definitions(),
                    messages=messages,
                    max_tokens=self.max_output_tokens,
                ),
                timeout_s=state.budget.model_call_timeout(),
            )
        except ModelTimeoutError as exc:
            raise _Degrade(DegradeReason.MODEL_TIMEOUT, str(exc)) from exc
        except Exception as exc:
            raise _Degrade(DegradeReason.MODEL_ERROR, f"{type(exc).__name__}: {exc}") from exc

    def _finish(self, state: _RunState, turn: FinishedTurn) -> AnalysisRecord:
        if not turn.text.strip():
            raise _Degrade(DegradeReason.INCONCLUSIVE, f"empty final turn stop_reason={turn.stop_reason}")
        try:
            return assemble_record(turn.text, tool_calls=state.tool_calls, stats=state.stats(turn.model))
        except AnalysisParseError as exc:
            raise _Degrade(DegradeReason.PARSE_ERROR, str(exc)) from exc

    def _run_tools(self, state: _RunState, turn: ToolUseTurn) -> None:
        room = max(0, self.policy.max_tool_calls - len(state.tool_calls))
        allowed: list[RequestedToolCall] = list(turn.calls[:room])
        refused: list[RequestedToolCall] = list(turn.calls[room:])
        if refused:
            logger.warning("Refusing %d tool calls over the per-analysis limit", len(refused))

        def run(call: RequestedToolCall) -> ToolOutcome:
            return self.registry.dispatch(call.name, call.arguments, state.email)

        batch = self.executor.execute_batch(allowed, run, deadline_s=state.budget.tool_deadline())
        state.tool_calls.extend(batch.invocations)
        state.tool_execution_ms += batch.elapsed_ms

        blocks = [
            ToolResultBlock(
                call_id=item.id,
                content=json.dumps(item.result.model_payload() if item.result else {}, ensure_ascii=True, default=str),
                is_error=not (item.result and item.result.success),
            )
            for item in batch.invocations
        ]
        blocks.extend(
            ToolResultBlock(call_id=call.id, content=json.dumps({"error": TOOL_LIMIT_ERROR}), is_error=True)
            for call in refused
        )
        state.messages.append(turn)
        state.messages.append(ToolResultsMessage(results=tuple(blocks)))
