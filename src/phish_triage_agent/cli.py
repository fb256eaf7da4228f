"""Command-line runner: analyze one forwarded email and print the record as JSON."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

from pydantic import ValidationError

from phish_triage_agent.domain.email.models import NormalizedEmail
from phish_triage_agent.orchestrator.build import create_analyzer

logger = logging.getLogger(__name__)


def load_email(source: str | None) -> NormalizedEmail:
    raw = Path(source).read_text(encoding="utf-8") if source and source != "-" else sys.stdin.read()
    return NormalizedEmail.model_validate_json(raw)


def run_once(email: NormalizedEmail, model: str | None = None, profile: str | None = None) -> str:
    analyzer, runtime = create_analyzer(profile_override=profile, model_override=model)
    logger.debug("Runtime profile=%s model=%s", runtime["profile"], runtime["model"])
    record = analyzer.analyze(email)
    return record.model_dump_json(by_alias=True, exclude_none=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="phish-triage-agent")
    parser.add_argument("--email", help="Path to a normalized email JSON file; reads stdin when omitted or '-'.")
    parser.add_argument("--model", help="Override model for this run, e.g. gpt-4o-mini.")
    parser.add_argument("--profile", help="Config profile to use, e.g. openai or local.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING).")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        email = load_email(args.email)
    except (OSError, ValidationError) as exc:
        print(json.dumps({"error": f"invalid email input: {exc}"}, ensure_ascii=True), file=sys.stderr)
        return 2
    print(run_once(email, model=args.model, profile=args.profile))
    return 0
