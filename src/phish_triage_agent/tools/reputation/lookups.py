"""Reputation lookup tools: validate, check credential, consult cache, call provider."""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Protocol
from urllib.parse import urlparse

from phish_triage_agent.domain.analysis import ToolOutcome
from phish_triage_agent.infra.cache import CacheStore
from phish_triage_agent.tools.reputation.abuseipdb import IpAbuseReport
from phish_triage_agent.tools.reputation.base import ReputationProviderError
from phish_triage_agent.tools.reputation.virustotal import UrlScanReport

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_S = 3600.0
MAX_DETECTED_VENDORS = 5

_IPV4_PATTERN = re.compile(r"^[0-9]{1,3}(?:\.[0-9]{1,3}){3}$")


class UrlReputationProvider(Protocol):
    api_key: str | None
    credential_name: str

    def lookup_url(self, url: str) -> UrlScanReport: ...


class IpReputationProvider(Protocol):
    api_key: str | None
    credential_name: str

    def lookup_ip(self, ip: str) -> IpAbuseReport: ...


def is_valid_http_url(url: str) -> bool:
    try:
        parsed = urlparse((url or "").strip())
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def is_valid_ipv4(ip: str) -> bool:
    if not _IPV4_PATTERN.match(ip or ""):
        return False
    return all(0 <= int(octet) <= 255 for octet in ip.split("."))


def ip_risk_level(score: int) -> str:
    if score >= 75:
        return "critical"
    if score >= 50:
        return "high"
    if score >= 25:
        return "medium"
    return "low"


def _cache_get(cache: CacheStore | None, key: str) -> dict[str, Any] | None:
    if cache is None:
        return None
    try:
        cached = cache.get(key)
    except Exception as exc:
        logger.warning("Reputation cache read failed for %s: %s", key, exc)
        return None
    return dict(cached) if isinstance(cached, dict) else None


def _cache_set(cache: CacheStore | None, key: str, value: dict[str, Any], ttl_s: float) -> None:
    if cache is None:
        return
    try:
        cache.set(key, dict(value), ttl_s)
    except Exception as exc:
        logger.warning("Reputation cache write failed for %s: %s", key, exc)


def _unavailable(credential_name: str) -> str:
    return f"{credential_name} is not configured; tool unavailable."


def check_url_reputation(
    url: str,
    *,
    provider: UrlReputationProvider,
    cache: CacheStore | None = None,
    cache_ttl_s: float = DEFAULT_CACHE_TTL_S,
) -> ToolOutcome:
    if not is_valid_http_url(url):
        return ToolOutcome.failure(f"Invalid URL format: {url}", source="virustotal")
    if not provider.api_key:
        logger.warning("VirusTotal credential missing; skipping URL reputation lookup")
        return ToolOutcome.failure(_unavailable(provider.credential_name), source="virustotal")

    cache_key = f"threat:vt:url:{url}"
    cached = _cache_get(cache, cache_key)
    if cached is not None:
        cached["cached"] = True
        return ToolOutcome.ok(cached, source="virustotal", cached=True)

    start = time.perf_counter()
    try:
        report = provider.lookup_url(url)
    except ReputationProviderError as exc:
        logger.warning("VirusTotal lookup failed for %s: %s", url, exc)
        return ToolOutcome.failure(
            f"VirusTotal API unavailable or URL not found ({exc})", source="virustotal"
        )

    ratio = report.malicious_count / report.total_scans if report.total_scans > 0 else 0.0
    data = {
        "url": report.url,
        "malicious": ratio > 0,
        "malicious_count": report.malicious_count,
        "total_scans": report.total_scans,
        "detected_by": list(report.detected_by[:MAX_DETECTED_VENDORS]),
        "confidence_score": ratio,
    }
    _cache_set(cache, cache_key, data, cache_ttl_s)
    logger.info(
        "URL reputation check completed url=%s malicious=%s duration_ms=%d",
        url,
        data["malicious"],
        int((time.perf_counter() - start) * 1000),
    )
    return ToolOutcome.ok(data, source="virustotal", cached=False)


def check_ip_reputation(
    ip: str,
    *,
    provider: IpReputationProvider,
    cache: CacheStore | None = None,
    cache_ttl_s: float = DEFAULT_CACHE_TTL_S,
) -> ToolOutcome:
    ip = (ip or "").strip()
    if not is_valid_ipv4(ip):
        return ToolOutcome.failure(f"Invalid IP address format: {ip}", source="abuseipdb")
    if not provider.api_key:
        logger.warning("AbuseIPDB credential missing; skipping IP reputation lookup")
        return ToolOutcome.failure(_unavailable(provider.credential_name), source="abuseipdb")

    cache_key = f"threat:abuseipdb:{ip}"
    cached = _cache_get(cache, cache_key)
    if cached is not None:
        cached["cached"] = True
        return ToolOutcome.ok(cached, source="abuseipdb", cached=True)

    start = time.perf_counter()
    try:
        report = provider.lookup_ip(ip)
    except ReputationProviderError as exc:
        logger.warning("AbuseIPDB lookup failed for %s: %s", ip, exc)
        return ToolOutcome.failure(f"AbuseIPDB API unavailable or IP not found ({exc})", source="abuseipdb")

    score = report.abuse_confidence_score
    data = {
        "ip": report.ip,
        "malicious": score >= 50,
        "abuse_confidence_score": score,
        "total_reports": report.total_reports,
        "risk_level": ip_risk_level(score),
    }
    _cache_set(cache, cache_key, data, cache_ttl_s)
    logger.info(
        "IP reputation check completed ip=%s score=%d duration_ms=%d",
        ip,
        score,
        int((time.perf_counter() - start) * 1000),
    )
    return ToolOutcome.ok(data, source="abuseipdb", cached=False)
