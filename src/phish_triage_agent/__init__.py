"""Agentic phishing triage for forwarded emails."""

__version__ = "0.1.0"
