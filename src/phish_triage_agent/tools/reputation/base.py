"""Shared HTTP plumbing for reputation providers."""

from __future__ import annotations

import json
import socket
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, build_opener


class ReputationProviderError(RuntimeError):
    """Provider call failed: network, timeout, HTTP status or response shape."""


Opener = Callable[..., Any]


def default_opener() -> Opener:
    return build_opener().open


def get_json(
    url: str,
    *,
    headers: dict[str, str],
    timeout_s: float,
    params: dict[str, Any] | None = None,
    opener: Opener | None = None,
) -> dict[str, Any]:
    target = f"{url}?{urlencode(params)}" if params else url
    req = Request(target, headers={"Accept": "application/json", **headers}, method="GET")
    open_fn = opener or default_opener()
    try:
        with open_fn(req, timeout=timeout_s) as response:
            raw = response.read()
    except HTTPError as exc:
        raise ReputationProviderError(f"HTTP {exc.code}") from exc
    except (URLError, socket.timeout, TimeoutError, ConnectionError) as exc:
        raise ReputationProviderError(f"{type(exc).__name__}: {exc}") from exc
    try:
        payload = json.loads(raw.decode("utf-8", errors="replace"))
    except json.JSONDecodeError as exc:
        raise ReputationProviderError("Provider returned non-JSON response") from exc
    if not isinstance(payload, dict):
        raise ReputationProviderError("Provider returned unexpected response shape")
    return payload
