import json
import threading
import time

from phish_triage_agent.orchestrator.budget import BudgetPolicy
from phish_triage_agent.orchestrator.fallback import PLACEHOLDER_SUMMARY
from phish_triage_agent.orchestrator.loop import TOOL_LIMIT_ERROR, EmailAnalyzer
from phish_triage_agent.providers.base import (
    InconclusiveTurn,
    ModelCallError,
    ToolResultsMessage,
    Usage,
)
from phish_triage_agent.tools.reputation.virustotal import UrlScanReport

from conftest import ScriptedModel, finished, tool_use, verdict_payload


def _last_tool_results(request) -> dict[str, dict]:
    message = request["messages"][-1]
    assert isinstance(message, ToolResultsMessage)
    return {block.call_id: json.loads(block.content) for block in message.results}


def _assert_placeholder(record):
    assert record.verdict == "suspicious"
    assert record.confidence == 50
    assert record.threats == []
    assert (record.authentication.spf, record.authentication.dkim, record.authentication.dmarc) == ("none",) * 3
    assert record.summary == PLACEHOLDER_SUMMARY
    assert record.reasoning and record.reasoning[0].startswith("Analysis incomplete")


def test_phishing_email_with_reputation_hit_is_malicious(phishing_email, registry, url_provider):
    url_provider.report = UrlScanReport(
        url="http://paypa1-security.com/verify?token=abc123",
        malicious_count=12,
        total_scans=70,
        detected_by=["VendorA", "VendorB"],
    )

    def decide(request):
        results = _last_tool_results(request)
        vt = results["call_check_url_reputation_0"]
        verdict = "malicious" if vt.get("malicious_count", 0) > 0 else "suspicious"
        return finished(
            verdict_payload(
                verdict,
                95 if verdict == "malicious" else 60,
                threats=[
                    {"type": "brand_impersonation", "severity": "high", "description": "Typosquatted PayPal domain"},
                    {
                        "type": "malicious_link",
                        "severity": "critical",
                        "description": "URL flagged by 12 vendors",
                        "source": "virustotal",
                    },
                ],
                authentication={"spf": "fail", "dkim": "none", "dmarc": "none"},
                summary="Credential phishing impersonating PayPal.",
            )
        )

    model = ScriptedModel(
        [
            tool_use(("analyze_sender", {}), ("check_authentication", {}), ("extract_urls", {})),
            tool_use(("check_url_reputation", {"url": "http://paypa1-security.com/verify?token=abc123"})),
            decide,
        ]
    )
    record = EmailAnalyzer(model=model, registry=registry).analyze(phishing_email)

    assert record.verdict == "malicious"
    assert record.confidence >= 70
    assert [item.name for item in record.tool_calls] == [
        "analyze_sender",
        "check_authentication",
        "extract_urls",
        "check_url_reputation",
    ]
    sender, auth = record.tool_calls[0].result.data, record.tool_calls[1].result.data
    assert any(item["type"] == "typosquatting" and item["severity"] == "high" for item in sender["spoofing_indicators"])
    assert auth["spf"] == "fail"
    assert record.tool_calls[3].result.source == "virustotal"
    assert url_provider.calls == 1
    assert record.metadata.input_tokens == 30
    assert record.metadata.output_tokens == 15
    assert record.metadata.model == "fake-model"


def test_benign_question_finishes_without_reputation_tools(benign_email, registry, url_provider, ip_provider):
    def decide(request):
        results = _last_tool_results(request)
        assert results["call_analyze_sender_0"]["spoofing_indicators"] == []
        assert results["call_check_authentication_1"]["spf"] == "pass"
        return finished(verdict_payload("benign", 8))

    model = ScriptedModel([tool_use(("analyze_sender", {}), ("check_authentication", {})), decide])
    record = EmailAnalyzer(model=model, registry=registry).analyze(benign_email)

    assert record.verdict in {"benign", "suspicious"}
    assert record.confidence == 8
    assert record.threats == []
    assert url_provider.calls == 0
    assert ip_provider.calls == 0
    assert {item.name for item in record.tool_calls} == {"analyze_sender", "check_authentication"}


def test_direct_answer_has_no_tool_log(benign_email, registry):
    model = ScriptedModel([finished(verdict_payload("benign", 5))])
    record = EmailAnalyzer(model=model, registry=registry).analyze(benign_email)
    assert record.verdict == "benign"
    assert record.tool_calls is None
    assert "tool_calls" not in json.loads(record.model_dump_json(exclude_none=True))


def test_hung_first_model_call_degrades_to_placeholder(benign_email, registry, blocking_model):
    policy = BudgetPolicy(total_budget_s=0.3, model_call_timeout_s=0.1, min_fallback_budget_s=0.25)
    record = EmailAnalyzer(model=blocking_model, registry=registry, policy=policy).analyze(benign_email)

    _assert_placeholder(record)
    assert record.tool_calls is None
    assert blocking_model.calls == 1
    assert record.metadata.latency_ms < 2000


def test_iteration_ceiling_returns_conservative_verdict(phishing_email, registry):
    model = ScriptedModel([tool_use(("extract_urls", {})) for _ in range(3)])
    record = EmailAnalyzer(model=model, registry=registry, policy=BudgetPolicy(max_iterations=3)).analyze(
        phishing_email
    )

    _assert_placeholder(record)
    assert len(model.requests) == 3
    assert len(record.tool_calls) == 3
    assert "Executed 3 tools before truncation" in record.reasoning


def test_tool_call_cap_refuses_extra_calls(phishing_email, registry):
    def decide(request):
        message = request["messages"][-1]
        refused = [block for block in message.results if block.is_error]
        assert len(message.results) == 3
        assert len(refused) == 1
        assert json.loads(refused[0].content) == {"error": TOOL_LIMIT_ERROR}
        return finished(verdict_payload("suspicious", 55))

    model = ScriptedModel(
        [tool_use(("extract_urls", {}), ("analyze_sender", {}), ("check_authentication", {})), decide]
    )
    record = EmailAnalyzer(model=model, registry=registry, policy=BudgetPolicy(max_tool_calls=2)).analyze(
        phishing_email
    )

    assert record.verdict == "suspicious"
    assert record.confidence == 55
    assert [item.name for item in record.tool_calls] == ["extract_urls", "analyze_sender"]


def test_tool_failures_are_fed_back_to_model(phishing_email, url_provider, ip_provider, registry):
    url_provider.api_key = None

    def decide(request):
        message = request["messages"][-1]
        by_id = {block.call_id: block for block in message.results}
        vt = by_id["call_check_url_reputation_0"]
        unknown = by_id["call_fetch_page_1"]
        assert vt.is_error and "VIRUSTOTAL_API_KEY" in json.loads(vt.content)["error"]
        assert unknown.is_error and json.loads(unknown.content) == {"error": "Unknown tool: fetch_page"}
        return finished(verdict_payload("suspicious", 60))

    model = ScriptedModel(
        [tool_use(("check_url_reputation", {"url": "http://paypa1-security.com/x"}), ("fetch_page", {})), decide]
    )
    record = EmailAnalyzer(model=model, registry=registry).analyze(phishing_email)

    assert record.verdict == "suspicious"
    assert record.confidence == 60
    assert [item.result.success for item in record.tool_calls] == [False, False]
    assert url_provider.calls == 0


def test_model_error_uses_single_shot_fallback(benign_email, registry):
    model = ScriptedModel(
        [ModelCallError("503 from gateway"), finished(verdict_payload("benign", 12), usage=Usage(50, 20))]
    )
    record = EmailAnalyzer(model=model, registry=registry).analyze(benign_email)

    assert record.verdict == "benign"
    assert record.confidence == 12
    assert len(model.requests) == 2
    assert model.requests[1]["tools"] == ()
    assert model.requests[1]["max_tokens"] == 2048
    assert record.metadata.input_tokens == 50


def test_parse_error_falls_back_and_keeps_tool_log(phishing_email, registry):
    model = ScriptedModel(
        [
            tool_use(("extract_urls", {})),
            finished("The email looks dangerous but I cannot format JSON."),
            finished(verdict_payload("malicious", 80)),
        ]
    )
    record = EmailAnalyzer(model=model, registry=registry).analyze(phishing_email)

    assert record.verdict == "malicious"
    assert [item.name for item in record.tool_calls] == ["extract_urls"]
    assert record.metadata.input_tokens == 30


def test_failed_fallback_returns_placeholder(benign_email, registry):
    model = ScriptedModel([ModelCallError("down"), ModelCallError("still down")])
    record = EmailAnalyzer(model=model, registry=registry).analyze(benign_email)
    _assert_placeholder(record)
    assert len(model.requests) == 2


def test_model_error_without_fallback_budget_skips_fallback(benign_email, registry):
    model = ScriptedModel([ModelCallError("down")])
    policy = BudgetPolicy(total_budget_s=2.0, tool_phase_budget_s=1.0, min_fallback_budget_s=5.0)
    record = EmailAnalyzer(model=model, registry=registry, policy=policy).analyze(benign_email)
    _assert_placeholder(record)
    assert len(model.requests) == 1


def test_unrecognized_stop_is_inconclusive(benign_email, registry):
    model = ScriptedModel([InconclusiveTurn(stop_reason="content_filter", model="fake-model")])
    record = EmailAnalyzer(model=model, registry=registry).analyze(benign_email)
    _assert_placeholder(record)
    assert len(model.requests) == 1


def test_empty_final_text_is_inconclusive(benign_email, registry):
    model = ScriptedModel([finished("   ")])
    record = EmailAnalyzer(model=model, registry=registry).analyze(benign_email)
    _assert_placeholder(record)


def test_agent_request_carries_tools_and_email(phishing_email, registry):
    model = ScriptedModel([finished(verdict_payload())])
    EmailAnalyzer(model=model, registry=registry, max_output_tokens=256).analyze(phishing_email)

    request = model.requests[0]
    assert [item.name for item in request["tools"]] == [item.name for item in registry.definitions()]
    assert request["max_tokens"] == 256
    prompt = request["messages"][0].content
    assert "urgent@paypa1-security.com" in prompt
    assert "198.51.100.7" in prompt


class _Clock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_tool_wait_is_clamped_to_what_is_left_of_the_tool_phase(phishing_email, registry, url_provider, monkeypatch):
    clock = _Clock()
    release = threading.Event()

    def hung_lookup(url):
        release.wait(5)
        return UrlScanReport(url=url, malicious_count=0, total_scans=70, detected_by=[])

    monkeypatch.setattr(url_provider, "lookup_url", hung_lookup)

    def late_tool_request(request):
        clock.now = 4.9
        return tool_use(("check_url_reputation", {"url": "http://paypa1-security.com/verify"}))

    model = ScriptedModel([late_tool_request, finished(verdict_payload("suspicious", 65))])
    started = time.perf_counter()
    try:
        record = EmailAnalyzer(model=model, registry=registry, clock=clock).analyze(phishing_email)
    finally:
        release.set()

    assert time.perf_counter() - started < 2.0
    assert record.confidence == 65
    vt = record.tool_calls[0].result
    assert vt.success is False
    assert "timed out" in vt.error


def test_tool_phase_expiry_degrades_without_another_model_call(phishing_email, registry, url_provider, monkeypatch):
    clock = _Clock()
    lookup = url_provider.lookup_url

    def slow_lookup(url):
        clock.now = 5.5
        return lookup(url)

    monkeypatch.setattr(url_provider, "lookup_url", slow_lookup)
    model = ScriptedModel(
        [tool_use(("analyze_sender", {}), ("check_url_reputation", {"url": "http://paypa1-security.com/verify"}))]
    )
    record = EmailAnalyzer(model=model, registry=registry, clock=clock).analyze(phishing_email)

    _assert_placeholder(record)
    assert len(model.requests) == 1
    assert [item.name for item in record.tool_calls] == ["analyze_sender", "check_url_reputation"]
    assert all(item.result.success for item in record.tool_calls)
    assert record.metadata.latency_ms == 5500


def test_non_turn_response_falls_through_to_placeholder(benign_email, registry):
    model = ScriptedModel([lambda request: object()])
    record = EmailAnalyzer(model=model, registry=registry).analyze(benign_email)
    _assert_placeholder(record)
    assert len(model.requests) == 1
