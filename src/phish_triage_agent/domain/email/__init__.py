"""Email domain primitives."""

from phish_triage_agent.domain.email.models import NormalizedEmail

__all__ = ["NormalizedEmail"]
