"""Tool dispatcher used by the orchestration loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from phish_triage_agent.domain.analysis import ToolOutcome
from phish_triage_agent.domain.email.models import NormalizedEmail
from phish_triage_agent.domain.url.extract import extract_urls
from phish_triage_agent.infra.cache import CacheStore
from phish_triage_agent.tools.catalog import TOOL_DEFINITIONS, ToolDefinition
from phish_triage_agent.tools.intel.header_intel import check_authentication
from phish_triage_agent.tools.intel.sender_intel import analyze_sender
from phish_triage_agent.tools.reputation.lookups import (
    DEFAULT_CACHE_TTL_S,
    IpReputationProvider,
    UrlReputationProvider,
    check_ip_reputation,
    check_url_reputation,
)


class UnknownToolError(KeyError):
    """Raised when the model asks for a tool outside the fixed catalog."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown tool: {self.name}"


def _text_arg(arguments: Mapping[str, Any], key: str, fallback: str | None = None) -> str | None:
    value = arguments.get(key)
    if isinstance(value, str) and value:
        return value
    return fallback


def _tool_extract_urls(arguments: Mapping[str, Any], email: NormalizedEmail) -> dict[str, Any]:
    body = _text_arg(arguments, "email_body", email.body) or ""
    html = _text_arg(arguments, "email_html", email.html)
    return extract_urls(body, html)


def _tool_check_authentication(arguments: Mapping[str, Any], email: NormalizedEmail) -> dict[str, Any]:
    headers = arguments.get("headers")
    if not isinstance(headers, dict) or not headers:
        headers = dict(email.headers)
    return check_authentication(headers)


def _tool_analyze_sender(arguments: Mapping[str, Any], email: NormalizedEmail) -> dict[str, Any]:
    return analyze_sender(
        _text_arg(arguments, "from", email.sender) or "",
        display_name=_text_arg(arguments, "display_name", email.display_name or None),
        subject=_text_arg(arguments, "subject", email.subject),
    )


LocalTool = Callable[[Mapping[str, Any], NormalizedEmail], dict[str, Any]]

_LOCAL_TOOLS: dict[str, LocalTool] = {
    "extract_urls": _tool_extract_urls,
    "check_authentication": _tool_check_authentication,
    "analyze_sender": _tool_analyze_sender,
}


@dataclass(frozen=True)
class ToolRegistry:
    """Maps a tool name + arguments onto one of the five implementations."""

    url_provider: UrlReputationProvider
    ip_provider: IpReputationProvider
    cache: CacheStore | None = None
    cache_ttl_s: float = DEFAULT_CACHE_TTL_S

    def definitions(self) -> tuple[ToolDefinition, ...]:
        return TOOL_DEFINITIONS

    def dispatch(self, name: str, arguments: Mapping[str, Any], email: NormalizedEmail) -> ToolOutcome:
        local = _LOCAL_TOOLS.get(name)
        if local is not None:
            return ToolOutcome.ok(local(dict(arguments), email), source="local")
        if name == "check_url_reputation":
            return check_url_reputation(
                str(arguments.get("url") or ""),
                provider=self.url_provider,
                cache=self.cache,
                cache_ttl_s=self.cache_ttl_s,
            )
        if name == "check_ip_reputation":
            return check_ip_reputation(
                str(arguments.get("ip") or email.sender_ip or ""),
                provider=self.ip_provider,
                cache=self.cache,
                cache_ttl_s=self.cache_ttl_s,
            )
        raise UnknownToolError(name)
