"""Sender address spoofing heuristics."""

from __future__ import annotations

import re
from typing import Any

from phish_triage_agent.domain.url.extract import registrable_domain

FREE_EMAIL_PROVIDERS = frozenset(
    {
        "gmail.com",
        "yahoo.com",
        "outlook.com",
        "hotmail.com",
        "aol.com",
        "protonmail.com",
        "mail.com",
        "icloud.com",
    }
)
DISPLAY_NAME_BRANDS = ("paypal", "amazon", "microsoft", "apple", "google", "bank")
TYPOSQUAT_VARIANTS = {
    "paypal": ("paypa1", "paypai", "paypa"),
    "amazon": ("arnazon", "amazom", "amaz0n"),
    "microsoft": ("micros0ft", "micr0soft"),
    "apple": ("appie", "appl3"),
}
SUSPICIOUS_TLDS = frozenset({".tk", ".ml", ".ga", ".cf", ".gq", ".xyz", ".top", ".work", ".click"})

_ANGLE_ADDRESS_PATTERN = re.compile(r"<(.+?)>")
_EMBEDDED_ADDRESS_PATTERN = re.compile(r"[\w.-]+@[\w.-]+\.\w+")
_PLAIN_COM_PATTERN = re.compile(r"^[a-z0-9-]+\.com$")
# Look-alike digit wedged against a letter, e.g. "g00gle", "micr0soft", "app1e".
_LEETSPEAK_PATTERN = re.compile(r"[a-z][01345]|[01345][a-z]")


def _split_sender(raw_from: str, display_name: str | None) -> tuple[str, str]:
    match = _ANGLE_ADDRESS_PATTERN.search(raw_from or "")
    address = (match.group(1) if match else raw_from or "").strip()
    name = (display_name or "").strip()
    if not name and "<" in (raw_from or ""):
        name = raw_from.split("<", 1)[0].strip().strip('"')
    return address, name


def _domain_of(address: str) -> str:
    if "@" not in address:
        return ""
    return address.rsplit("@", 1)[1].strip().lower()


def _finding(kind: str, severity: str, description: str) -> dict[str, str]:
    return {"type": kind, "severity": severity, "description": description}


def _typosquat_findings(domain: str) -> list[dict[str, str]]:
    label = registrable_domain(domain).split(".", 1)[0]
    findings: list[dict[str, str]] = []
    for brand, variants in TYPOSQUAT_VARIANTS.items():
        if label == brand:
            continue
        if any(variant in domain for variant in variants):
            findings.append(
                _finding(
                    "typosquatting",
                    "high",
                    f"Domain {domain} resembles {brand} (possible typosquatting)",
                )
            )
    return findings


def analyze_sender(
    sender: str,
    display_name: str | None = None,
    subject: str | None = None,
) -> dict[str, Any]:
    """Flag spoofing patterns on the sender address.

    `subject` is accepted so callers can pass the full sender context; none of
    the current checks read it.
    """

    address, name = _split_sender(sender, display_name)
    domain = _domain_of(address)
    is_free_provider = domain in FREE_EMAIL_PROVIDERS
    findings: list[dict[str, str]] = []

    if name and name != address:
        embedded = _EMBEDDED_ADDRESS_PATTERN.search(name)
        if embedded and embedded.group(0).lower() != address.lower():
            findings.append(
                _finding(
                    "display_name_email_mismatch",
                    "high",
                    f"Display name contains different email ({embedded.group(0)}) than sender ({address})",
                )
            )
        lowered_name = name.lower()
        if is_free_provider:
            for brand in DISPLAY_NAME_BRANDS:
                if brand in lowered_name:
                    findings.append(
                        _finding(
                            "brand_impersonation",
                            "high",
                            f'Display name "{name}" suggests {brand} but uses free email provider {domain}',
                        )
                    )

    if domain:
        findings.extend(_typosquat_findings(domain))

        tld = domain[domain.rfind(".") :] if "." in domain else ""
        if tld in SUSPICIOUS_TLDS:
            findings.append(_finding("suspicious_tld", "medium", f"Domain uses suspicious TLD {tld}"))

        if any(ch.isdigit() for ch in domain) and not _PLAIN_COM_PATTERN.match(domain):
            if _LEETSPEAK_PATTERN.search(domain):
                findings.append(
                    _finding(
                        "numeric_substitution",
                        "medium",
                        f"Domain contains suspicious numeric substitutions ({domain})",
                    )
                )

    return {
        "email": address,
        "domain": domain,
        "is_suspicious": bool(findings),
        "spoofing_indicators": findings,
        "free_email_provider": is_free_provider,
    }
