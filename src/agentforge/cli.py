"""Command-line entrypoint for cache maintenance and cost previews.

Responsibilities (and nothing more):
- Configure structlog
- Load settings (fail fast on invalid configuration)
- Dispatch ``cache stats``, ``cache clear``, ``estimate`` and ``fingerprint``

Results are printed to stdout as JSON; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import structlog
from pydantic import ValidationError

from agentforge import __version__
from agentforge.config import Settings, load_settings
from agentforge.errors import AgentForgeError, ErrorCode
from agentforge.fingerprint import compute_project_fingerprint
from agentforge.models.generation import BatchSelection, ModelTier
from agentforge.state import open_state

log = structlog.get_logger()


def setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout carries the JSON command output
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agentforge")
    parser.add_argument("--version", action="version", version=f"agentforge {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    cache = commands.add_parser("cache", help="inspect or wipe the artifact cache")
    cache.add_argument("action", choices=["stats", "clear"])

    estimate = commands.add_parser("estimate", help="preview API calls and cost")
    estimate.add_argument("--agent", action="append", default=[], dest="agents")
    estimate.add_argument("--skill", action="append", default=[], dest="skills")
    estimate.add_argument("--hook", action="append", default=[], dest="hooks")
    estimate.add_argument("--no-overview", action="store_true")
    estimate.add_argument("--model", choices=[tier.value for tier in ModelTier])

    fingerprint = commands.add_parser("fingerprint", help="print a project fingerprint")
    fingerprint.add_argument("root", nargs="?", default=".")

    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> dict:
    if args.command == "fingerprint":
        root = Path(args.root).resolve()
        return {"root": str(root), "fingerprint": await compute_project_fingerprint(root)}

    async with open_state(settings) as state:
        if args.command == "cache":
            if args.action == "clear":
                await state.orchestrator.clear_cache()
            stats = await state.orchestrator.cache_stats()
            return {"cache_dir": str(state.cache.directory), **stats.model_dump()}

        try:
            selection = BatchSelection(
                agents=args.agents,
                skills=args.skills,
                hooks=args.hooks,
                overview=not args.no_overview,
            )
        except ValidationError as exc:
            raise AgentForgeError(
                code=ErrorCode.INVALID_INPUT,
                message=str(exc),
                suggestion="Item names passed to --agent, --skill and --hook must be non-empty.",
            ) from exc
        model = ModelTier(args.model) if args.model else None
        return state.orchestrator.estimate(selection, model).model_dump(mode="json")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
        setup_logging(settings)
        output = asyncio.run(_run(args, settings))
    except AgentForgeError as exc:
        log.warning("command_failed", command=args.command, code=exc.code, message=exc.message)
        print(json.dumps(exc.to_dict()), file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
