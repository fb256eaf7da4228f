"""Third-party reputation lookups (VirusTotal, AbuseIPDB)."""

from phish_triage_agent.tools.reputation.abuseipdb import AbuseIPDBClient
from phish_triage_agent.tools.reputation.lookups import check_ip_reputation, check_url_reputation
from phish_triage_agent.tools.reputation.virustotal import VirusTotalClient

__all__ = ["AbuseIPDBClient", "VirusTotalClient", "check_ip_reputation", "check_url_reputation"]
