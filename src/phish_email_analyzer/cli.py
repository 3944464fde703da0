"""Command-line runner: analyze one email and print the verdict as JSON."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys

from phish_email_analyzer.config.settings import AppConfig, load_config
from phish_email_analyzer.core.errors import ConfigError
from phish_email_analyzer.core.logging import configure_logging
from phish_email_analyzer.orchestrator.tracing import trace_payload
from phish_email_analyzer.service import build_detector


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    update: dict[str, object] = {}
    if args.provider:
        update["provider"] = args.provider.strip().lower()
    if args.model:
        update["model"] = args.model.strip()
    if args.no_tools:
        update["use_tools"] = False
    return config.model_copy(update=update) if update else config


def run_once(text: str, config: AppConfig, *, show_trace: bool = False) -> str:
    detector = build_detector(config)
    run = detector.analyze_detailed(config.to_request(text))
    payload = run.result.to_json_dict()
    if show_trace:
        payload["trace"] = trace_payload(run.trace)
        payload["modelCalls"] = run.model_calls
    return json.dumps(payload, ensure_ascii=False, indent=2, default=str)


def check_connection(config: AppConfig) -> str:
    detector = build_detector(config)
    check = detector.gateway.test_connection(config.model_settings())
    return json.dumps({"success": check.success, "error": check.error}, ensure_ascii=False)


def _read_input(args: argparse.Namespace) -> str:
    if args.text:
        return args.text
    if args.file and args.file != "-":
        return Path(args.file).read_text(encoding="utf-8", errors="replace")
    return sys.stdin.read()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="phish-email-analyzer")
    parser.add_argument("--text", help="Analyze this email text.")
    parser.add_argument("--file", help="Read the email from a file ('-' for stdin).")
    parser.add_argument("--profile", help="Config profile from defaults.yaml, e.g. openai, anthropic, google.")
    parser.add_argument("--config", help="Path to an alternative defaults.yaml.")
    parser.add_argument("--provider", help="Override provider for this run.")
    parser.add_argument("--model", help="Override model for this run, e.g. gpt-4o-mini.")
    parser.add_argument("--no-tools", action="store_true", help="Analyze without tool calling.")
    parser.add_argument("--trace", action="store_true", help="Include the loop trace in the output.")
    parser.add_argument("--check-connection", action="store_true", help="Only test the model connection.")
    parser.add_argument("--log-level", help="Logging level (default from config).")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config, _ = load_config(args.config, profile_override=args.profile)
    config = _apply_overrides(config, args)
    configure_logging(args.log_level or config.log_level)

    try:
        if args.check_connection:
            print(check_connection(config))
            return 0
        output = run_once(_read_input(args), config, show_trace=args.trace)
    except ConfigError as exc:
        print(json.dumps(exc.error.to_payload(), ensure_ascii=False), file=sys.stderr)
        return 2
    print(output)
    return 0
