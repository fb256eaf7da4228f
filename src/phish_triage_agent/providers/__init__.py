"""Model provider adapters."""

from phish_triage_agent.providers.base import ModelCallError, ModelClient, ModelTimeoutError
from phish_triage_agent.providers.llm_openai import OpenAIChatModel

__all__ = ["ModelCallError", "ModelClient", "ModelTimeoutError", "OpenAIChatModel"]
