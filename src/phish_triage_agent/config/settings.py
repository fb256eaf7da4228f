"""Runtime settings: packaged yaml, profile overrides, then environment."""

from __future__ import annotations

from pathlib import Path
import os
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path(__file__).resolve().with_name("defaults.yaml")
ENV_PREFIX = "PHISH_TRIAGE_"

# Conventional names used by the upstream SDKs and services.
CREDENTIAL_ENV = {
    "api_key": "OPENAI_API_KEY",
    "virustotal_api_key": "VIRUSTOTAL_API_KEY",
    "abuseipdb_api_key": "ABUSEIPDB_API_KEY",
}


class AppConfig(BaseModel):

    profile: str = "openai"
    model: str = "gpt-4o-mini"
    temperature: float = 0.0
    api_base: str | None = None
    api_key: str | None = Field(default=None, repr=False)

    total_budget_s: float = 8.0
    tool_phase_budget_s: float = 5.0
    model_call_timeout_s: float = 7.0
    min_fallback_budget_s: float = 2.5
    max_iterations: int = 3
    max_tool_calls: int = 9
    tool_timeout_s: float = 4.0
    max_output_tokens: int = 512
    fallback_max_output_tokens: int = 2048

    reputation_timeout_s: float = 3.0
    reputation_cache_ttl_s: float = 3600.0
    virustotal_api_key: str | None = Field(default=None, repr=False)
    abuseipdb_api_key: str | None = Field(default=None, repr=False)

    config_path: str = str(DEFAULT_CONFIG_PATH)


TUNABLE_NUMBERS: tuple[str, ...] = (
    "temperature",
    "total_budget_s",
    "tool_phase_budget_s",
    "model_call_timeout_s",
    "min_fallback_budget_s",
    "max_iterations",
    "max_tool_calls",
    "tool_timeout_s",
    "max_output_tokens",
    "fallback_max_output_tokens",
    "reputation_timeout_s",
    "reputation_cache_ttl_s",
)


def read_yaml_file(path: str | Path) -> dict[str, Any]:
    source = Path(path)
    if not source.is_file():
        return {}
    loaded = yaml.safe_load(source.read_text(encoding="utf-8"))
    return loaded if isinstance(loaded, dict) else {}


def _env(name: str) -> str | None:
    raw = os.getenv(name)
    return raw.strip() if raw and raw.strip() else None


def _coerce_number(name: str, raw: Any) -> int | float:
    """Invalid or negative values fall back to the field default; counts must be positive."""

    default = AppConfig.model_fields[name].default
    cast = int if isinstance(default, int) and not isinstance(default, bool) else float
    try:
        value = cast(raw)
    except (TypeError, ValueError):
        return default
    if value < 0 or (cast is int and value == 0):
        return default
    return value


def _blank_to_none(raw: Any) -> str | None:
    text = "" if raw is None else str(raw).strip()
    return text or None


def _config_path(explicit: str | Path | None) -> Path:
    if explicit is not None:
        return Path(explicit)
    from_env = _env(f"{ENV_PREFIX}DEFAULT_CONFIG_PATH")
    return Path(from_env) if from_env else DEFAULT_CONFIG_PATH


def _profile_section(document: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    sections = document.get("profiles")
    if not isinstance(sections, dict):
        return {}
    section = sections.get(name)
    return section if isinstance(section, dict) else {}


def load_config(
    path: str | Path | None = None,
    *,
    profile_override: str | None = None,
) -> tuple[AppConfig, dict[str, Any]]:
    """Precedence: environment > selected profile > top-level yaml > field default."""

    config_path = _config_path(path)
    document = read_yaml_file(config_path)
    profile = (
        profile_override
        or _env(f"{ENV_PREFIX}PROFILE")
        or str(document.get("profile") or AppConfig.model_fields["profile"].default)
    )
    section = _profile_section(document, profile)

    def resolve(key: str) -> Any:
        from_env = _env(f"{ENV_PREFIX}{key.upper()}")
        if from_env is not None:
            return from_env
        if key in section:
            return section[key]
        return document.get(key, AppConfig.model_fields[key].default)

    values: dict[str, Any] = {
        "profile": profile,
        "model": _blank_to_none(resolve("model")) or AppConfig.model_fields["model"].default,
        "api_base": _blank_to_none(resolve("api_base")),
        "config_path": str(config_path),
    }
    values.update({key: _coerce_number(key, resolve(key)) for key in TUNABLE_NUMBERS})
    values["api_key"] = _blank_to_none(resolve("api_key")) or _env(CREDENTIAL_ENV["api_key"])
    values["virustotal_api_key"] = _env(CREDENTIAL_ENV["virustotal_api_key"])
    values["abuseipdb_api_key"] = _env(CREDENTIAL_ENV["abuseipdb_api_key"])

    return AppConfig.model_validate(values), document
