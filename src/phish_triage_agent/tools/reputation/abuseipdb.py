"""AbuseIPDB IP reputation client."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ValidationError

from phish_triage_agent.tools.reputation.base import Opener, ReputationProviderError, get_json

ABUSEIPDB_BASE_URL = "https://api.abuseipdb.com/api/v2"
MAX_AGE_DAYS = 90


class _CheckData(BaseModel):
    abuseConfidenceScore: int
    totalReports: int
    ipAddress: str = ""


class _CheckResponse(BaseModel):
    data: _CheckData


@dataclass(frozen=True)
class IpAbuseReport:
    ip: str
    abuse_confidence_score: int
    total_reports: int


@dataclass
class AbuseIPDBClient:
    api_key: str | None
    timeout_s: float = 3.0
    base_url: str = ABUSEIPDB_BASE_URL
    opener: Opener | None = None

    credential_name = "ABUSEIPDB_API_KEY"
    source = "abuseipdb"

    def lookup_ip(self, ip: str) -> IpAbuseReport:
        payload = get_json(
            f"{self.base_url}/check",
            headers={"Key": str(self.api_key or "")},
            params={"ipAddress": ip, "maxAgeInDays": MAX_AGE_DAYS},
            timeout_s=self.timeout_s,
            opener=self.opener,
        )
        try:
            parsed = _CheckResponse.model_validate(payload)
        except ValidationError as exc:
            raise ReputationProviderError("Invalid AbuseIPDB response") from exc
        return IpAbuseReport(
            ip=ip,
            abuse_confidence_score=parsed.data.abuseConfidenceScore,
            total_reports=parsed.data.totalReports,
        )
