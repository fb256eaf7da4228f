"""OpenAI-compatible chat-completions adapter (OpenAI, Ollama, other local gateways)."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from typing import Any, Sequence

from phish_triage_agent.providers.base import (
    ConversationMessage,
    FinishedTurn,
    InconclusiveTurn,
    ModelCallError,
    ModelTurn,
    RequestedToolCall,
    ToolResultsMessage,
    ToolUseTurn,
    Usage,
    UserMessage,
)
from phish_triage_agent.tools.catalog import ToolDefinition

logger = logging.getLogger(__name__)

_FINISHED_REASONS = {"stop", "length"}


def tool_specs(tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": item.name,
                "description": item.description,
                "parameters": item.input_schema(),
            },
        }
        for item in tools
    ]


def to_chat_messages(system: str, messages: Sequence[ConversationMessage]) -> list[dict[str, Any]]:
    payload: list[dict[str, Any]] = [{"role": "system", "content": system}]
    for item in messages:
        if isinstance(item, UserMessage):
            payload.append({"role": "user", "content": item.content})
        elif isinstance(item, ToolUseTurn):
            payload.append(
                {
                    "role": "assistant",
                    "content": item.text or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": json.dumps(call.arguments, ensure_ascii=True),
                            },
                        }
                        for call in item.calls
                    ],
                }
            )
        elif isinstance(item, ToolResultsMessage):
            payload.extend(
                {"role": "tool", "tool_call_id": block.call_id, "content": block.content}
                for block in item.results
            )
    return payload


def _decode_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        value = json.loads(raw or "{}")
    except (TypeError, json.JSONDecodeError):
        logger.warning("Model emitted undecodable tool arguments; using empty mapping")
        return {}
    return value if isinstance(value, dict) else {}


def parse_completion(response: Any, fallback_model: str) -> ModelTurn:
    """Map a chat-completions response onto the closed turn variant."""

    usage_raw = getattr(response, "usage", None)
    usage = Usage(
        input_tokens=int(getattr(usage_raw, "prompt_tokens", 0) or 0),
        output_tokens=int(getattr(usage_raw, "completion_tokens", 0) or 0),
    )
    model = str(getattr(response, "model", "") or fallback_model)
    choices = getattr(response, "choices", None) or []
    if not choices:
        return InconclusiveTurn(stop_reason="no_choices", model=model, usage=usage)

    choice = choices[0]
    message = getattr(choice, "message", None)
    text = str(getattr(message, "content", "") or "")
    finish_reason = str(getattr(choice, "finish_reason", "") or "")
    raw_calls = list(getattr(message, "tool_calls", None) or [])

    if raw_calls:
        calls = tuple(
            RequestedToolCall(
                id=str(getattr(item, "id", "") or f"call_{index}"),
                name=str(getattr(item.function, "name", "")),
                arguments=_decode_arguments(getattr(item.function, "arguments", None)),
            )
            for index, item in enumerate(raw_calls)
        )
        return ToolUseTurn(calls=calls, model=model, usage=usage, text=text)
    if finish_reason in _FINISHED_REASONS or finish_reason == "tool_calls":
        return FinishedTurn(text=text, model=model, usage=usage, stop_reason=finish_reason)
    return InconclusiveTurn(stop_reason=finish_reason or "unknown", model=model, usage=usage, text=text)


@dataclass
class OpenAIChatModel:
    model: str
    api_key: str | None = None
    api_base: str | None = None
    temperature: float = 0.0
    request_timeout_s: float = 10.0
    _client: Any = field(default=None, init=False, repr=False)

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import OpenAI

            kwargs: dict[str, Any] = {"timeout": self.request_timeout_s, "max_retries": 0}
            if self.api_key:
                kwargs["api_key"] = self.api_key
            if self.api_base:
                kwargs["base_url"] = self.api_base
            self._client = OpenAI(**kwargs)
        return self._client

    def complete(
        self,
        *,
        system: str,
        tools: Sequence[ToolDefinition],
        messages: Sequence[ConversationMessage],
        max_tokens: int,
    ) -> ModelTurn:
        request: dict[str, Any] = {
            "model": self.model,
            "messages": to_chat_messages(system, messages),
            "max_tokens": int(max_tokens),
            "temperature": self.temperature,
        }
        if tools:
            request["tools"] = tool_specs(tools)
        try:
            response = self._get_client().chat.completions.create(**request)
        except Exception as exc:
            raise ModelCallError(f"{type(exc).__name__}: {exc}") from exc
        return parse_completion(response, self.model)
