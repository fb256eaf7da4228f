"""Analysis record contracts returned to callers."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Verdict = Literal["benign", "suspicious", "malicious"]
Severity = Literal["low", "medium", "high", "critical"]
AuthStatus = Literal["pass", "fail", "neutral", "softfail", "none"]
Provenance = Literal["model", "local", "virustotal", "abuseipdb"]
ToolSource = Literal["local", "virustotal", "abuseipdb"]

_VERDICT_ALIASES = {
    "safe": "benign",
    "clean": "benign",
    "phishing": "malicious",
}
_PROVENANCE_ALIASES = {
    "claude": "model",
    "llm": "model",
    "agent": "model",
}
_AUTH_ALIASES = {
    "absent": "none",
    "missing": "none",
    "": "none",
}


class ToolOutcome(BaseModel):
    """Result of exactly one tool execution."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    source: ToolSource = "local"
    cached: bool | None = None

    @model_validator(mode="after")
    def _check_exclusive(self) -> "ToolOutcome":
        if self.success and (self.data is None or self.error is not None):
            raise ValueError("successful outcome requires data and no error")
        if not self.success and not self.error:
            raise ValueError("failed outcome requires an error message")
        return self

    @classmethod
    def ok(cls, data: dict[str, Any], *, source: ToolSource = "local", cached: bool | None = None) -> "ToolOutcome":
        return cls(success=True, data=data, source=source, cached=cached)

    @classmethod
    def failure(cls, error: str, *, source: ToolSource = "local") -> "ToolOutcome":
        return cls(success=False, error=error, source=source)

    def model_payload(self) -> dict[str, Any]:
        """Content fed back to the model for this outcome."""

        if self.success:
            return dict(self.data or {})
        return {"error": self.error}


class ToolInvocation(BaseModel):
    """One tool call requested by the model; completed at most once."""

    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)
    started_at: float
    ended_at: float | None = None
    duration_ms: int | None = None
    result: ToolOutcome | None = None

    def complete(self, outcome: ToolOutcome, *, ended_at: float, duration_ms: int) -> None:
        if self.result is not None:
            raise RuntimeError(f"tool invocation {self.id} already completed")
        self.result = outcome
        self.ended_at = ended_at
        self.duration_ms = max(0, int(duration_ms))


class ThreatFinding(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    category: str = Field(alias="type", min_length=1)
    severity: Severity
    description: str
    evidence: str = ""
    confidence: float | None = None
    source: Provenance | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("source", mode="before")
    @classmethod
    def _normalize_source(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        raw = value.strip().lower()
        return _PROVENANCE_ALIASES.get(raw, raw)


class AuthenticationSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    spf: AuthStatus = "none"
    dkim: AuthStatus = "none"
    dmarc: AuthStatus = "none"

    @field_validator("spf", "dkim", "dmarc", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> object:
        if value is None:
            return "none"
        if not isinstance(value, str):
            return value
        raw = value.strip().lower()
        return _AUTH_ALIASES.get(raw, raw)


class AnalysisMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str
    latency_ms: int = Field(ge=0)
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    tool_execution_ms: int = Field(default=0, ge=0)


class ModelVerdict(BaseModel):
    """Structured payload the model must emit when it finishes."""

    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    confidence: int = Field(ge=0, le=100)
    threats: list[ThreatFinding] = Field(default_factory=list)
    authentication: AuthenticationSummary = Field(default_factory=AuthenticationSummary)
    summary: str = Field(min_length=1)
    reasoning: list[str] | None = None

    @field_validator("verdict", mode="before")
    @classmethod
    def _normalize_verdict(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        raw = value.strip().lower()
        return _VERDICT_ALIASES.get(raw, raw)


class AnalysisRecord(ModelVerdict):
    """Final, immutable output of one analysis invocation."""

    tool_calls: list[ToolInvocation] | None = None
    metadata: AnalysisMetadata

    @field_validator("tool_calls")
    @classmethod
    def _omit_empty_log(cls, value: list[ToolInvocation] | None) -> list[ToolInvocation] | None:
        return value or None
