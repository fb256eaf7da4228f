"""URL domain primitives."""

from phish_triage_agent.domain.url.extract import (
    SAFE_DOMAINS,
    URL_PATTERN,
    describe_url,
    extract_urls,
    find_urls,
    registrable_domain,
)

__all__ = [
    "SAFE_DOMAINS",
    "URL_PATTERN",
    "describe_url",
    "extract_urls",
    "find_urls",
    "registrable_domain",
]
