"""Degradation policy: single-shot fallback call or conservative placeholder."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Sequence

from phish_triage_agent.domain.analysis import AnalysisRecord, AuthenticationSummary, ToolInvocation
from phish_triage_agent.domain.email.models import NormalizedEmail
from phish_triage_agent.orchestrator.assembler import RunStats, assemble_record, build_metadata
from phish_triage_agent.orchestrator.budget import TimeBudget
from phish_triage_agent.orchestrator.prompts import FALLBACK_SYSTEM_PROMPT, format_email_for_fallback
from phish_triage_agent.orchestrator.race import race
from phish_triage_agent.providers.base import FinishedTurn, ModelClient, Usage, UserMessage

logger = logging.getLogger(__name__)

PLACEHOLDER_CONFIDENCE = 50
PLACEHOLDER_SUMMARY = (
    "Analysis incomplete; email flagged as suspicious for manual review. Please verify sender "
    "authenticity and avoid clicking links until you can confirm this email is legitimate."
)


class DegradeReason(str, Enum):
    ITERATIONS_EXHAUSTED = "iterations_exhausted"
    TOOL_PHASE_EXPIRED = "tool_phase_expired"
    MODEL_TIMEOUT = "model_timeout"
    MODEL_ERROR = "model_error"
    PARSE_ERROR = "parse_error"
    INCONCLUSIVE = "inconclusive"


# Budget exhaustion means there is no time for another model call by construction.
FALLBACK_ELIGIBLE = frozenset({DegradeReason.MODEL_ERROR, DegradeReason.PARSE_ERROR})

_REASON_TEXT = {
    DegradeReason.ITERATIONS_EXHAUSTED: "tool-use iteration limit reached before a final verdict",
    DegradeReason.TOOL_PHASE_EXPIRED: "did not complete within time limit",
    DegradeReason.MODEL_TIMEOUT: "model call timed out",
    DegradeReason.MODEL_ERROR: "model service error",
    DegradeReason.PARSE_ERROR: "final model output could not be parsed",
    DegradeReason.INCONCLUSIVE: "model ended without a usable answer",
}


def build_placeholder(
    *,
    reason: DegradeReason,
    tool_calls: Sequence[ToolInvocation],
    stats: RunStats,
) -> AnalysisRecord:
    count = len(tool_calls)
    return AnalysisRecord(
        verdict="suspicious",
        confidence=PLACEHOLDER_CONFIDENCE,
        threats=[],
        authentication=AuthenticationSummary(),
        summary=PLACEHOLDER_SUMMARY,
        reasoning=[
            f"Analysis incomplete: {_REASON_TEXT[reason]}",
            f"Executed {count} tool{'' if count == 1 else 's'} before truncation",
            'Returning conservative "suspicious" verdict for safety',
            "Recommend manual review of this email",
        ],
        tool_calls=list(tool_calls) or None,
        metadata=build_metadata(stats),
    )


@dataclass
class DegradationPolicy:
    model: ModelClient
    max_tokens: int = 2048

    def _fallback_call(self, email: NormalizedEmail, budget: TimeBudget) -> tuple[str, str, Usage]:
        turn = race(
            lambda: self.model.complete(
                system=FALLBACK_SYSTEM_PROMPT,
                tools=(),
                messages=(UserMessage(format_email_for_fallback(email)),),
                max_tokens=self.max_tokens,
            ),
            timeout_s=budget.model_call_timeout(),
        )
        if not isinstance(turn, FinishedTurn):
            raise ValueError(f"fallback returned non-final turn {type(turn).__name__}")
        return turn.text, turn.model, turn.usage

    def resolve(
        self,
        *,
        email: NormalizedEmail,
        reason: DegradeReason,
        budget: TimeBudget,
        tool_calls: Sequence[ToolInvocation],
        usage: Usage,
        tool_execution_ms: int,
    ) -> AnalysisRecord:
        """Always returns a valid record; nothing raised here escapes."""

        if reason in FALLBACK_ELIGIBLE and budget.can_afford_fallback():
            logger.info("Attempting single-shot fallback analysis reason=%s", reason.value)
            try:
                text, model_id, call_usage = self._fallback_call(email, budget)
                record = assemble_record(
                    text,
                    tool_calls=tool_calls,
                    stats=RunStats(
                        model=model_id,
                        latency_ms=budget.elapsed_ms(),
                        usage=usage + call_usage,
                        tool_execution_ms=tool_execution_ms,
                    ),
                )
                logger.info("Fallback analysis completed verdict=%s", record.verdict)
                return record
            except Exception as exc:
                logger.error("Fallback analysis failed: %s: %s", type(exc).__name__, exc)
        elif reason in FALLBACK_ELIGIBLE:
            logger.warning(
                "Insufficient time for fallback remaining_s=%.2f required_s=%.2f",
                budget.remaining_s(),
                budget.policy.min_fallback_budget_s,
            )

        logger.warning(
            "Returning conservative analysis reason=%s tool_calls=%d elapsed_ms=%d",
            reason.value,
            len(tool_calls),
            budget.elapsed_ms(),
        )
        return build_placeholder(
            reason=reason,
            tool_calls=tool_calls,
            stats=RunStats(
                model=self.model.model,
                latency_ms=budget.elapsed_ms(),
                usage=usage,
                tool_execution_ms=tool_execution_ms,
            ),
        )
