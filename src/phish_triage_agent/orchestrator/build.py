"""Build and wire the email analyzer."""

from __future__ import annotations

from phish_triage_agent.config.settings import AppConfig, load_config
from phish_triage_agent.infra.cache import CacheStore, TTLCache
from phish_triage_agent.orchestrator.budget import BudgetPolicy
from phish_triage_agent.orchestrator.loop import EmailAnalyzer
from phish_triage_agent.providers.base import ModelClient
from phish_triage_agent.providers.llm_openai import OpenAIChatModel
from phish_triage_agent.tools.catalog import TOOL_NAMES
from phish_triage_agent.tools.registry import ToolRegistry
from phish_triage_agent.tools.reputation.abuseipdb import AbuseIPDBClient
from phish_triage_agent.tools.reputation.virustotal import VirusTotalClient

# Shared across analyzers built in one process so repeated lookups hit the cache.
_SHARED_CACHE = TTLCache()


def budget_policy_from_config(cfg: AppConfig) -> BudgetPolicy:
    return BudgetPolicy(
        total_budget_s=cfg.total_budget_s,
        tool_phase_budget_s=cfg.tool_phase_budget_s,
        model_call_timeout_s=cfg.model_call_timeout_s,
        min_fallback_budget_s=cfg.min_fallback_budget_s,
        max_iterations=cfg.max_iterations,
        max_tool_calls=cfg.max_tool_calls,
        tool_timeout_s=cfg.tool_timeout_s,
    ).normalized()


def build_registry(cfg: AppConfig, cache: CacheStore | None = None) -> ToolRegistry:
    return ToolRegistry(
        url_provider=VirusTotalClient(api_key=cfg.virustotal_api_key, timeout_s=cfg.reputation_timeout_s),
        ip_provider=AbuseIPDBClient(api_key=cfg.abuseipdb_api_key, timeout_s=cfg.reputation_timeout_s),
        cache=cache if cache is not None else _SHARED_CACHE,
        cache_ttl_s=cfg.reputation_cache_ttl_s,
    )


def create_analyzer(
    *,
    profile_override: str | None = None,
    model_override: str | None = None,
    model_client: ModelClient | None = None,
) -> tuple[EmailAnalyzer, dict[str, object]]:
    cfg, yaml_cfg = load_config(profile_override=profile_override)
    active_model = model_override or cfg.model
    policy = budget_policy_from_config(cfg)
    client = model_client or OpenAIChatModel(
        model=active_model,
        api_key=cfg.api_key,
        api_base=cfg.api_base,
        temperature=cfg.temperature,
        request_timeout_s=policy.model_call_timeout_s,
    )
    analyzer = EmailAnalyzer(
        model=client,
        registry=build_registry(cfg),
        policy=policy,
        max_output_tokens=cfg.max_output_tokens,
        fallback_max_output_tokens=cfg.fallback_max_output_tokens,
    )
    profiles = yaml_cfg.get("profiles")
    profile_map = profiles if isinstance(profiles, dict) else {}
    runtime: dict[str, object] = {
        "profile": cfg.profile,
        "profile_choices": [str(item) for item in profile_map.keys() if str(item).strip()],
        "model": client.model,
        "api_base": cfg.api_base,
        "tools": list(TOOL_NAMES),
        "budget": {
            "total_budget_s": policy.total_budget_s,
            "tool_phase_budget_s": policy.tool_phase_budget_s,
            "model_call_timeout_s": policy.model_call_timeout_s,
            "min_fallback_budget_s": policy.min_fallback_budget_s,
            "max_iterations": policy.max_iterations,
            "max_tool_calls": policy.max_tool_calls,
        },
        "reputation": {
            "virustotal_configured": bool(cfg.virustotal_api_key),
            "abuseipdb_configured": bool(cfg.abuseipdb_api_key),
        },
    }
    return analyzer, runtime
