"""Workflow orchestration layer.

Exports are loaded lazily to avoid import-time cycles between the builder and
the config package.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from phish_triage_agent.orchestrator.build import create_analyzer
    from phish_triage_agent.orchestrator.loop import EmailAnalyzer

__all__ = ["EmailAnalyzer", "create_analyzer"]


def __getattr__(name: str) -> Any:
    if name == "create_analyzer":
        from phish_triage_agent.orchestrator.build import create_analyzer

        return create_analyzer
    if name == "EmailAnalyzer":
        from phish_triage_agent.orchestrator.loop import EmailAnalyzer

        return EmailAnalyzer
    raise AttributeError(name)
