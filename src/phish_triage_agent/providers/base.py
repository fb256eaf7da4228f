"""Provider-neutral model conversation types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence, Union

from phish_triage_agent.tools.catalog import ToolDefinition


class ModelCallError(RuntimeError):
    """The model service failed to produce a turn."""


class ModelTimeoutError(ModelCallError):
    """The model call lost its race against the per-call timer."""


@dataclass(frozen=True)
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


@dataclass(frozen=True)
class RequestedToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FinishedTurn:
    """Model ended its turn with text and no tool requests."""

    text: str
    model: str
    usage: Usage = field(default_factory=Usage)
    stop_reason: str = "end_turn"


@dataclass(frozen=True)
class ToolUseTurn:
    """Model asked for one or more tools."""

    calls: tuple[RequestedToolCall, ...]
    model: str
    usage: Usage = field(default_factory=Usage)
    text: str = ""


@dataclass(frozen=True)
class InconclusiveTurn:
    """Any other termination signal (content filter, unknown reason)."""

    stop_reason: str
    model: str
    usage: Usage = field(default_factory=Usage)
    text: str = ""


ModelTurn = Union[FinishedTurn, ToolUseTurn, InconclusiveTurn]


@dataclass(frozen=True)
class UserMessage:
    content: str


@dataclass(frozen=True)
class ToolResultBlock:
    call_id: str
    content: str
    is_error: bool = False


@dataclass(frozen=True)
class ToolResultsMessage:
    results: tuple[ToolResultBlock, ...]


ConversationMessage = Union[UserMessage, ToolUseTurn, ToolResultsMessage]


class ModelClient(Protocol):
    model: str

    def complete(
        self,
        *,
        system: str,
        tools: Sequence[ToolDefinition],
        messages: Sequence[ConversationMessage],
        max_tokens: int,
    ) -> ModelTurn: ...
