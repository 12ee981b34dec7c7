"""
app.py
======
Process entry point: pure transport layer.

Reads one render/v1 request, hands it to ``InvocationAgent``, writes the
response and exits with the status code. Logs go to stderr so the response
stream stays clean.

Run with:  python -m render_plugin --plugin template < request.json
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from render_agents.invocation import InvocationAgent
from render_agents.plugins import available_plugins
from render_core.config import RenderConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s — %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="render-plugin",
        description="Run one render/v1 plugin invocation over a JSON request.",
    )
    parser.add_argument("--plugin", default="template", help="Plugin to run (default: template).")
    parser.add_argument("--input", default="-", help="Request file, or - for stdin.")
    parser.add_argument("--output", default="-", help="Response file, or - for stdout.")
    parser.add_argument("--workers", type=int, default=None, help="Threads for primary-file rendering.")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: $RENDER_PLUGIN_LOG_LEVEL or WARNING).",
    )
    parser.add_argument("--list-plugins", action="store_true", help="Print plugin names and exit.")
    return parser


def configure_logging(level: str | None) -> None:
    level = (level or os.environ.get("RENDER_PLUGIN_LOG_LEVEL") or "WARNING").upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"unknown log level {level!r}")
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def _read_request(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    return Path(source).read_bytes()


def _write_response(target: str, payload: bytes) -> None:
    if target == "-":
        sys.stdout.buffer.write(payload)
        sys.stdout.buffer.flush()
    else:
        Path(target).write_bytes(payload)


def _usage_error(message: str) -> int:
    print(f"render-plugin: {message}", file=sys.stderr)
    return 2


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        configure_logging(args.log_level)
    except ValueError as exc:
        return _usage_error(str(exc))

    if args.list_plugins:
        print("\n".join(available_plugins()))
        return 0

    try:
        config = RenderConfig.from_env(max_workers=args.workers)
        agent = InvocationAgent(args.plugin, config)
    except (KeyError, ValueError) as exc:
        return _usage_error(exc.args[0] if isinstance(exc, KeyError) else str(exc))

    try:
        raw = _read_request(args.input)
    except OSError as exc:
        return _usage_error(f"cannot read request: {exc}")
    result = agent.invoke(raw)
    _write_response(args.output, result.payload)
    return result.status
