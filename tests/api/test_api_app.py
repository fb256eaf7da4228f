from fastapi.testclient import TestClient

from phish_triage_agent.api import app as app_module
from phish_triage_agent.orchestrator.loop import EmailAnalyzer

from conftest import ScriptedModel, finished, tool_use, verdict_payload


def test_health():
    client = TestClient(app_module.app)
    assert client.get("/health").json() == {"status": "ok"}


def test_analyze_returns_record(monkeypatch, registry):
    model = ScriptedModel([tool_use(("analyze_sender", {})), finished(verdict_payload("suspicious", 62))])
    analyzer = EmailAnalyzer(model=model, registry=registry)
    monkeypatch.setattr(app_module, "get_analyzer", lambda: analyzer)
    client = TestClient(app_module.app)

    response = client.post(
        "/analyze",
        json={
            "from": "Billing <billing@invoices-center.xyz>",
            "to": "me@example.org",
            "subject": "Invoice overdue",
            "body": "Pay today.",
            "headers": {"Received-SPF": "softfail"},
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["verdict"] == "suspicious"
    assert payload["confidence"] == 62
    assert payload["tool_calls"][0]["name"] == "analyze_sender"
    assert payload["tool_calls"][0]["result"]["success"] is True
    assert payload["metadata"]["input_tokens"] == 20


def test_analyze_rejects_email_without_sender(monkeypatch):
    monkeypatch.setattr(app_module, "get_analyzer", lambda: None)
    client = TestClient(app_module.app)
    response = client.post("/analyze", json={"subject": "missing from"})
    assert response.status_code == 422
