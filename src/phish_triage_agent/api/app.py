"""FastAPI entrypoint."""

from __future__ import annotations

from functools import lru_cache

from fastapi import FastAPI

from phish_triage_agent.domain.analysis import AnalysisRecord
from phish_triage_agent.domain.email.models import NormalizedEmail
from phish_triage_agent.orchestrator.build import create_analyzer
from phish_triage_agent.orchestrator.loop import EmailAnalyzer

app = FastAPI(title="phish-triage-agent")


@lru_cache(maxsize=1)
def get_analyzer() -> EmailAnalyzer:
    analyzer, _ = create_analyzer()
    return analyzer


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/analyze", response_model=AnalysisRecord, response_model_by_alias=True, response_model_exclude_none=True)
def analyze(email: NormalizedEmail) -> AnalysisRecord:
    return get_analyzer().analyze(email)
