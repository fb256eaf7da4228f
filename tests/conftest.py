from __future__ import annotations

from dataclasses import dataclass, field
import json
import threading
from typing import Any

import pytest

from phish_triage_agent.domain.email.models import NormalizedEmail
from phish_triage_agent.infra.cache import TTLCache
from phish_triage_agent.providers.base import (
    FinishedTurn,
    RequestedToolCall,
    ToolUseTurn,
    Usage,
)
from phish_triage_agent.tools.registry import ToolRegistry
from phish_triage_agent.tools.reputation.abuseipdb import IpAbuseReport
from phish_triage_agent.tools.reputation.virustotal import UrlScanReport


def finished(payload: dict[str, Any] | str, *, usage: Usage | None = None) -> FinishedTurn:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return FinishedTurn(text=text, model="fake-model", usage=usage or Usage(10, 5))


def tool_use(*calls: tuple[str, dict[str, Any]], usage: Usage | None = None) -> ToolUseTurn:
    return ToolUseTurn(
        calls=tuple(RequestedToolCall(id=f"call_{name}_{i}", name=name, arguments=args) for i, (name, args) in enumerate(calls)),
        model="fake-model",
        usage=usage or Usage(10, 5),
    )


def verdict_payload(verdict: str = "benign", confidence: int = 10, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "verdict": verdict,
        "confidence": confidence,
        "threats": [],
        "authentication": {"spf": "pass", "dkim": "none", "dmarc": "none"},
        "summary": "Looks like a normal message.",
        "reasoning": ["Step 1: checked sender"],
    }
    payload.update(extra)
    return payload


@dataclass
class ScriptedModel:
    """Plays back one step per `complete` call and records every request."""

    steps: list[Any]
    model: str = "fake-model"
    requests: list[dict[str, Any]] = field(default_factory=list)

    def complete(self, *, system, tools, messages, max_tokens):
        request = {"system": system, "tools": tuple(tools), "messages": tuple(messages), "max_tokens": max_tokens}
        self.requests.append(request)
        if not self.steps:
            raise AssertionError("model called more times than scripted")
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(request)
        return step


@dataclass
class BlockingModel:
    """Never answers until released."""

    release: threading.Event = field(default_factory=threading.Event)
    model: str = "blocking-model"
    calls: int = 0

    def complete(self, *, system, tools, messages, max_tokens):
        self.calls += 1
        self.release.wait(timeout=5)
        return finished(verdict_payload())


@dataclass
class FakeUrlProvider:
    api_key: str | None = "vt-test-key"
    report: UrlScanReport | None = None
    error: Exception | None = None
    calls: int = 0
    credential_name: str = "VIRUSTOTAL_API_KEY"

    def lookup_url(self, url: str) -> UrlScanReport:
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.report is not None:
            return self.report
        return UrlScanReport(url=url, malicious_count=0, total_scans=70, detected_by=[])


@dataclass
class FakeIpProvider:
    api_key: str | None = "abuse-test-key"
    score: int = 0
    error: Exception | None = None
    calls: int = 0
    credential_name: str = "ABUSEIPDB_API_KEY"

    def lookup_ip(self, ip: str) -> IpAbuseReport:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return IpAbuseReport(ip=ip, abuse_confidence_score=self.score, total_reports=3 if self.score else 0)


@pytest.fixture
def url_provider() -> FakeUrlProvider:
    return FakeUrlProvider()


@pytest.fixture
def ip_provider() -> FakeIpProvider:
    return FakeIpProvider()


@pytest.fixture
def registry(url_provider, ip_provider) -> ToolRegistry:
    return ToolRegistry(url_provider=url_provider, ip_provider=ip_provider, cache=TTLCache())


@pytest.fixture
def blocking_model():
    model = BlockingModel()
    yield model
    model.release.set()


@pytest.fixture
def phishing_email() -> NormalizedEmail:
    return NormalizedEmail.model_validate(
        {
            "from": "urgent@paypa1-security.com",
            "to": "victim@example.org",
            "subject": "Urgent: Your PayPal Account Has Been Limited",
            "body": (
                "Dear customer, your account has been limited. "
                "Verify now at http://paypa1-security.com/verify?token=abc123 within 24 hours."
            ),
            "headers": {
                "Received-SPF": "fail (google.com: domain of paypa1-security.com does not designate 198.51.100.7)",
                "X-Originating-IP": "[198.51.100.7]",
            },
        }
    )


@pytest.fixture
def benign_email() -> NormalizedEmail:
    return NormalizedEmail.model_validate(
        {
            "from": "John Smith <john@example.com>",
            "to": "security@example.org",
            "subject": "Can you check this suspicious email for me?",
            "body": "Hi, I got a weird message yesterday and deleted it. Nothing else to share.",
            "headers": {"Received-SPF": "pass (example.com: domain of john@example.com designates 203.0.113.5)"},
        }
    )
