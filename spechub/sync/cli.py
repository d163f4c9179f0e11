"""
Command-line entry points.

    spechub-sync --spec openapi.yaml [--test-level all] [--dry-run]
    spechub-cleanup --keep <uid> [<uid> ...] [--yes]

Exit codes: 0 on success, 1 on bad input (raised before any remote call),
2 on remote, timeout or invariant failures.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from spechub import __version__
from spechub.core.config import Settings, get_settings
from spechub.core.errors import MissingOptionError, SpecHubError
from spechub.core.metrics import write_metrics
from spechub.core.structured_logging import configure_logging
from spechub.generators.script_generator import TestLevel
from spechub.remote.client import SpecHubClient
from spechub.sync.cleanup import cleanup_collections
from spechub.sync.orchestrator import SyncOptions, SyncOrchestrator

logger = logging.getLogger(__name__)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--workspace", "-w", help="Workspace ID (default: $POSTMAN_WORKSPACE_ID)")
    parser.add_argument("--api-key", "-k", help="Postman API key (default: $POSTMAN_API_KEY)")
    parser.add_argument("--log-format", choices=["text", "json"], default="text",
                        help="Log output format (default: text)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spechub-sync",
        description="Upload an OpenAPI spec to Spec Hub and generate docs and test collections from it.",
    )
    parser.add_argument("--spec", "-s", help="Path or URL of the OpenAPI spec (JSON or YAML)")
    parser.add_argument("--test-level", "-t", choices=[level.value for level in TestLevel],
                        default=TestLevel.ALL.value,
                        help="Test collections to generate (default: all)")
    parser.add_argument("--dry-run", "-d", action="store_true",
                        help="Parse and validate the spec without contacting Spec Hub")
    _add_common_arguments(parser)
    return parser


def build_cleanup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spechub-cleanup",
        description="Delete every workspace collection except the ones listed with --keep.",
    )
    parser.add_argument("--keep", nargs="+", default=[], metavar="UID",
                        help="Collection UIDs to keep")
    parser.add_argument("--yes", "-y", action="store_true",
                        help="Actually delete; without it the plan is only reported")
    _add_common_arguments(parser)
    return parser


def resolve_settings(args: argparse.Namespace, base: Optional[Settings] = None) -> Settings:
    """
    Merge command-line overrides into the environment settings.

    Raises:
        MissingOptionError: No API key or workspace from either source
    """
    settings = base or get_settings()
    overrides = {}
    if args.api_key:
        overrides["api_key"] = args.api_key
    if args.workspace:
        overrides["workspace_id"] = args.workspace
    if overrides:
        settings = settings.model_copy(update=overrides)

    if not settings.api_key:
        raise MissingOptionError("--api-key or POSTMAN_API_KEY")
    if not settings.workspace_id:
        raise MissingOptionError("--workspace or POSTMAN_WORKSPACE_ID")
    return settings


def _setup(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    configure_logging("DEBUG" if args.verbose else settings.log_level, args.log_format)
    return settings


def _report(error: SpecHubError) -> int:
    logger.error(f"{error.code}: {error.message}", extra={"error": error.to_dict()})
    return error.exit_code


def _flush_metrics(settings: Settings) -> None:
    if settings.metrics_file:
        write_metrics(settings.metrics_file)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = _setup(args)

    try:
        if not args.spec:
            raise MissingOptionError("--spec")
        settings = resolve_settings(args, settings)
        options = SyncOptions(
            spec_path=args.spec,
            test_level=TestLevel(args.test_level),
            dry_run=args.dry_run,
        )
        summary = asyncio.run(SyncOrchestrator(settings, options).run())
    except SpecHubError as e:
        return _report(e)
    finally:
        _flush_metrics(settings)

    print(json.dumps(summary.to_dict(), indent=2))
    return 0


def cleanup_main(argv: Optional[List[str]] = None) -> int:
    args = build_cleanup_parser().parse_args(argv)
    settings = _setup(args)

    async def run(resolved: Settings):
        async with SpecHubClient.from_settings(resolved) as client:
            return await cleanup_collections(client, args.keep, confirm=args.yes)

    try:
        if not args.keep:
            raise MissingOptionError("--keep")
        settings = resolve_settings(args, settings)
        result = asyncio.run(run(settings))
    except SpecHubError as e:
        return _report(e)
    finally:
        _flush_metrics(settings)

    return 2 if result.failed else 0


if __name__ == "__main__":
    sys.exit(main())
