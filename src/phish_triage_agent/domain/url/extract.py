"""URL extraction with allow-list classification and body context."""

from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(
    r"https?://(?:www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b[-a-zA-Z0-9()@:%_+.~#?&/=]*",
    re.IGNORECASE,
)

SAFE_DOMAINS = frozenset(
    {
        "google.com",
        "gmail.com",
        "microsoft.com",
        "outlook.com",
        "office.com",
        "apple.com",
        "icloud.com",
        "yahoo.com",
        "linkedin.com",
        "facebook.com",
        "twitter.com",
        "instagram.com",
        "youtube.com",
        "amazon.com",
        "github.com",
    }
)

CONTEXT_RADIUS = 50


def find_urls(*texts: str | None) -> list[str]:
    """Return URL-shaped substrings from all texts, exact duplicates removed."""

    found: list[str] = []
    for text in texts:
        found.extend(URL_PATTERN.findall(text or ""))
    return list(dict.fromkeys(item for item in found if item))


# Public suffixes that sit one level below a country code.
SECOND_LEVEL_SUFFIXES = frozenset(
    {
        "co.uk",
        "org.uk",
        "ac.uk",
        "gov.uk",
        "com.au",
        "net.au",
        "co.nz",
        "co.jp",
        "co.in",
        "co.za",
        "com.br",
        "com.mx",
        "com.cn",
        "com.sg",
    }
)


def registrable_domain(host: str) -> str:
    parts = [part for part in (host or "").lower().split(".") if part]
    if len(parts) < 2:
        return (host or "").lower()
    if len(parts) >= 3 and ".".join(parts[-2:]) in SECOND_LEVEL_SUFFIXES:
        return ".".join(parts[-3:])
    return ".".join(parts[-2:])


def url_context(text: str, url: str, radius: int = CONTEXT_RADIUS) -> str:
    index = (text or "").find(url)
    if index < 0:
        return ""
    start = max(0, index - radius)
    end = min(len(text), index + len(url) + radius)
    return text[start:end].strip()


def describe_url(url: str, *, body: str, html: str | None = None) -> dict[str, Any]:
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if not host:
        raise ValueError(f"URL has no host: {url!r}")
    domain = host[4:] if host.startswith("www.") else host
    context = url_context(body, url) or url_context(html or "", url)
    return {
        "url": url,
        "context": context,
        "domain": domain,
        "is_safe_domain": registrable_domain(domain) in SAFE_DOMAINS,
    }


def extract_urls(body: str, html: str | None = None) -> dict[str, Any]:
    """Extract and classify URLs from the plaintext body and optional HTML."""

    details: list[dict[str, Any]] = []
    for url in find_urls(body, html):
        try:
            details.append(describe_url(url, body=body, html=html))
        except ValueError:
            logger.warning("Skipping unparseable URL during extraction: %s", url)
    suspicious = [item for item in details if not item["is_safe_domain"]]
    return {
        "urls": details,
        "total_found": len(details),
        "suspicious_count": len(suspicious),
    }
