"""Header-level authentication signals (SPF/DKIM/DMARC)."""

from __future__ import annotations

import re
from typing import Any, Mapping

SPF_HEADERS = ("received-spf", "spf")
DKIM_HEADERS = ("authentication-results", "arc-authentication-results", "dkim")
DMARC_HEADERS = ("dmarc", "authentication-results", "arc-authentication-results")
AGGREGATED_HEADERS = ("authentication-results", "arc-authentication-results")

RAW_SNIPPET_CHARS = 300

_LEADING_RESULT_PATTERN = re.compile(r"^\s*(pass|fail|softfail|neutral|none|temperror|permerror)\b")
_AUTH_TOKEN_PATTERN = re.compile(r"\b(?P<key>spf|dkim|dmarc)\s*=\s*(?P<value>[a-z]+)")


def _lower_keys(headers: Mapping[str, Any] | None) -> dict[str, str]:
    return {str(key).strip().lower(): str(value) for key, value in (headers or {}).items()}


def _first_present(headers: dict[str, str], names: tuple[str, ...]) -> tuple[str, str] | None:
    for name in names:
        value = headers.get(name)
        if value:
            return name, value
    return None


def _token_result(raw: str, key: str) -> str | None:
    for match in _AUTH_TOKEN_PATTERN.finditer(raw.lower()):
        if match.group("key") == key:
            return match.group("value")
    return None


def classify_spf(raw: str) -> str:
    """Classify a Received-SPF style value; softfail never falls through to fail."""

    lowered = (raw or "").lower()
    if "softfail" in lowered:
        return "softfail"
    leading = _LEADING_RESULT_PATTERN.match(lowered)
    if leading:
        value = leading.group(1)
        return value if value in {"pass", "fail", "softfail", "neutral"} else "none"
    token = _token_result(lowered, "spf")
    if token in {"pass", "fail", "neutral"}:
        return token
    if "fail" in lowered:
        return "fail"
    if "pass" in lowered:
        return "pass"
    if "neutral" in lowered:
        return "neutral"
    return "none"


def classify_verifier_token(raw: str, key: str) -> str:
    """Only an explicit `dkim=`/`dmarc=` verdict counts; signatures alone do not."""

    token = _token_result(raw or "", key)
    if token in {"pass", "fail", "neutral"}:
        return token
    return "none"


def _snippet(raw: str | None) -> str | None:
    if raw is None:
        return None
    return raw[:RAW_SNIPPET_CHARS]


def check_authentication(headers: Mapping[str, Any] | None) -> dict[str, Any]:
    header_map = _lower_keys(headers)

    spf = "none"
    spf_raw: str | None = None
    spf_header = _first_present(header_map, SPF_HEADERS)
    if spf_header:
        spf_raw = spf_header[1]
        spf = classify_spf(spf_raw)
    else:
        aggregated = _first_present(header_map, AGGREGATED_HEADERS)
        if aggregated:
            token = _token_result(aggregated[1], "spf")
            if token in {"pass", "fail", "softfail", "neutral"}:
                spf, spf_raw = token, aggregated[1]

    results: dict[str, tuple[str, str | None]] = {}
    for key, names in (("dkim", DKIM_HEADERS), ("dmarc", DMARC_HEADERS)):
        status, raw_value = "none", None
        for name in names:
            value = header_map.get(name)
            if not value:
                continue
            if raw_value is None:
                raw_value = value
            classified = classify_verifier_token(value, key)
            if classified != "none":
                status, raw_value = classified, value
                break
        results[key] = (status, raw_value)

    return {
        "spf": spf,
        "dkim": results["dkim"][0],
        "dmarc": results["dmarc"][0],
        "details": {
            "spf_raw": _snippet(spf_raw),
            "dkim_raw": _snippet(results["dkim"][1]),
            "dmarc_raw": _snippet(results["dmarc"][1]),
        },
    }
