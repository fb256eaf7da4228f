"""Turn a finished model turn into the canonical analysis record.

The model is asked for raw JSON but sometimes wraps it in a markdown fence or
adds a sentence around it. `strip_fences` is the single, narrow normalization
step applied before parsing; anything that still fails schema validation is
rejected as a parse failure rather than partially accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import re
from typing import Any, Sequence

from pydantic import ValidationError

from phish_triage_agent.domain.analysis import (
    AnalysisMetadata,
    AnalysisRecord,
    ModelVerdict,
    ToolInvocation,
)
from phish_triage_agent.providers.base import Usage

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(?P<body>.*?)\n?\s*```$", re.DOTALL)


class AnalysisParseError(ValueError):
    """Final model text could not be turned into a valid analysis record."""


@dataclass(frozen=True)
class RunStats:
    model: str
    latency_ms: int
    usage: Usage
    tool_execution_ms: int


def strip_fences(text: str) -> str:
    raw = (text or "").strip()
    match = _FENCE_PATTERN.match(raw)
    if match:
        return match.group("body").strip()
    if not raw.startswith("{"):
        start, end = raw.find("{"), raw.rfind("}")
        if start != -1 and end > start:
            return raw[start : end + 1]
    return raw


def parse_model_verdict(text: str) -> ModelVerdict:
    body = strip_fences(text)
    if not body:
        raise AnalysisParseError("No text response from model")
    try:
        payload: Any = json.loads(body)
    except json.JSONDecodeError as exc:
        raise AnalysisParseError(f"Model output is not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise AnalysisParseError("Model output JSON is not an object")
    try:
        return ModelVerdict.model_validate(payload)
    except ValidationError as exc:
        raise AnalysisParseError(f"Model output failed schema validation ({exc.error_count()} errors)") from exc


def build_metadata(stats: RunStats) -> AnalysisMetadata:
    return AnalysisMetadata(
        model=stats.model,
        latency_ms=max(0, stats.latency_ms),
        input_tokens=stats.usage.input_tokens,
        output_tokens=stats.usage.output_tokens,
        tool_execution_ms=max(0, stats.tool_execution_ms),
    )


def assemble_record(
    text: str,
    *,
    tool_calls: Sequence[ToolInvocation],
    stats: RunStats,
) -> AnalysisRecord:
    verdict = parse_model_verdict(text)
    return AnalysisRecord(
        verdict=verdict.verdict,
        confidence=verdict.confidence,
        threats=list(verdict.threats),
        authentication=verdict.authentication,
        summary=verdict.summary,
        reasoning=verdict.reasoning,
        tool_calls=list(tool_calls) or None,
        metadata=build_metadata(stats),
    )
