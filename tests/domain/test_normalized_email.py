import pytest
from pydantic import ValidationError

from phish_triage_agent.domain.email.models import NormalizedEmail


def test_email_accepts_wire_aliases_and_lowercases_headers():
    email = NormalizedEmail.model_validate(
        {
            "from": '"PayPal Support" <support@paypa1.com>',
            "to": "me@example.org",
            "subject": "hello",
            "headers": {"Received-SPF": "pass", "X-Originating-IP": "[10.1.2.3]"},
        }
    )
    assert email.sender_address == "support@paypa1.com"
    assert email.display_name == "PayPal Support"
    assert set(email.headers) == {"received-spf", "x-originating-ip"}
    assert email.sender_ip == "10.1.2.3"
    assert email.html is None


def test_sender_ip_falls_back_to_received_header():
    email = NormalizedEmail(sender="a@b.com", headers={"Received": "from mx.b.com (mx.b.com [192.0.2.44]) by ..."})
    assert email.sender_ip == "192.0.2.44"
    assert NormalizedEmail(sender="a@b.com").sender_ip is None


def test_plain_sender_has_no_display_name():
    email = NormalizedEmail(sender="john@example.com")
    assert email.display_name == ""
    assert email.sender_address == "john@example.com"


def test_email_is_immutable_and_requires_sender():
    email = NormalizedEmail(sender="john@example.com")
    with pytest.raises(ValidationError):
        email.subject = "changed"
    with pytest.raises(ValidationError):
        NormalizedEmail.model_validate({"subject": "no sender"})
