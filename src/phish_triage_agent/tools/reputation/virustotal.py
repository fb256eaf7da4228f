"""VirusTotal URL reputation client."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from phish_triage_agent.tools.reputation.base import Opener, ReputationProviderError, get_json

VIRUSTOTAL_BASE_URL = "https://www.virustotal.com/api/v3"


class _AnalysisStats(BaseModel):
    malicious: int
    suspicious: int
    harmless: int
    undetected: int


class _UrlAttributes(BaseModel):
    last_analysis_stats: _AnalysisStats
    last_analysis_results: dict[str, Any] | None = None


class _UrlData(BaseModel):
    attributes: _UrlAttributes


class _UrlResponse(BaseModel):
    data: _UrlData


@dataclass(frozen=True)
class UrlScanReport:
    url: str
    malicious_count: int
    total_scans: int
    detected_by: list[str]


def url_identifier(url: str) -> str:
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


@dataclass
class VirusTotalClient:
    api_key: str | None
    timeout_s: float = 3.0
    base_url: str = VIRUSTOTAL_BASE_URL
    opener: Opener | None = None

    credential_name = "VIRUSTOTAL_API_KEY"
    source = "virustotal"

    def lookup_url(self, url: str) -> UrlScanReport:
        payload = get_json(
            f"{self.base_url}/urls/{url_identifier(url)}",
            headers={"x-apikey": str(self.api_key or "")},
            timeout_s=self.timeout_s,
            opener=self.opener,
        )
        try:
            parsed = _UrlResponse.model_validate(payload)
        except ValidationError as exc:
            raise ReputationProviderError("Invalid VirusTotal response") from exc

        stats = parsed.data.attributes.last_analysis_stats
        engines = parsed.data.attributes.last_analysis_results or {}
        detected_by = [
            vendor
            for vendor, verdict in engines.items()
            if isinstance(verdict, dict) and verdict.get("category") == "malicious"
        ]
        return UrlScanReport(
            url=url,
            malicious_count=stats.malicious,
            total_scans=stats.malicious + stats.suspicious + stats.harmless + stats.undetected,
            detected_by=detected_by,
        )
