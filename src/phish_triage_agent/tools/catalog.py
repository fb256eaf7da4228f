"""Static catalog of tool definitions offered to the model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

LOCAL_TOOLS = ("extract_urls", "check_authentication", "analyze_sender")
REPUTATION_TOOLS = ("check_url_reputation", "check_ip_reputation")
TOOL_NAMES: tuple[str, ...] = LOCAL_TOOLS + REPUTATION_TOOLS


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: str
    description: str
    required: bool = False


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    parameters: tuple[ToolParameter, ...] = field(default_factory=tuple)

    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                item.name: {"type": item.type, "description": item.description}
                for item in self.parameters
            },
            "required": [item.name for item in self.parameters if item.required],
        }


TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="extract_urls",
        description=(
            "Extract URLs from email body and HTML content. "
            "Use this when you need to analyze links in the email."
        ),
        parameters=(
            ToolParameter("email_body", "string", "The email body text to extract URLs from", required=True),
            ToolParameter("email_html", "string", "Optional HTML body to scan as well"),
        ),
    ),
    ToolDefinition(
        name="check_authentication",
        description=(
            "Parse email authentication headers (SPF, DKIM, DMARC). "
            "Use this to verify sender authentication status."
        ),
        parameters=(ToolParameter("headers", "object", "Email headers object", required=True),),
    ),
    ToolDefinition(
        name="analyze_sender",
        description=(
            "Analyze sender email address and domain for spoofing patterns. "
            "Use this when sender looks suspicious."
        ),
        parameters=(
            ToolParameter("from", "string", "Sender email address", required=True),
            ToolParameter("display_name", "string", "Sender display name (optional)"),
            ToolParameter("subject", "string", "Email subject (optional)"),
        ),
    ),
    ToolDefinition(
        name="check_url_reputation",
        description=(
            "Check URL reputation using VirusTotal API. Use this ONLY when you suspect a URL may be "
            "malicious (e.g., from suspicious domains, shortened links, or typosquatting). This tool "
            "makes an external API call and should be used sparingly."
        ),
        parameters=(
            ToolParameter("url", "string", "The URL to check (must be a valid http/https URL)", required=True),
        ),
    ),
    ToolDefinition(
        name="check_ip_reputation",
        description=(
            "Check IP address reputation using AbuseIPDB. Use this ONLY when you suspect the sender IP "
            "may be from a known malicious source (e.g., failed authentication, suspicious sender "
            "patterns). This tool makes an external API call and should be used sparingly."
        ),
        parameters=(ToolParameter("ip", "string", "The IP address to check (IPv4 format)", required=True),),
    ),
)


def tool_source(name: str) -> str:
    """Provenance tag for outcomes synthesized outside the tool itself."""

    return {"check_url_reputation": "virustotal", "check_ip_reputation": "abuseipdb"}.get(name, "local")
