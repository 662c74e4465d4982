"""CLI entrypoint for folobuild production builds."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, apply_overrides, load_config
from .logging import configure_logging
from .orchestrator import Orchestrator
from .report import LoggingReporter

_EPILOG = """\
examples:
  folobuild
  folobuild --no-minify
  folobuild --output ./build

environment variables:
  SOURCE_MAPS=false    disable source maps
  NODE_ENV=production  environment recorded in build metadata
"""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="folobuild",
        description="Build a production-ready output tree from an application source tree.",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "project",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )
    parser.add_argument(
        "--no-minify",
        dest="minify",
        action="store_false",
        default=None,
        help="Disable code minification.",
    )
    parser.add_argument(
        "--no-sourcemap",
        dest="source_maps",
        action="store_false",
        default=None,
        help="Disable source map generation.",
    )
    parser.add_argument(
        "--no-hash",
        dest="hash_assets",
        action="store_false",
        default=None,
        help="Disable content hashing of static assets.",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output directory (default: ./dist under the project root).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a configuration file (default: .folobuild.yml in the project root).",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Exit with status 1 when any per-file error was recorded.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write log output to this file.",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Increase log verbosity for troubleshooting.",
    )
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=False,
        help="Only log warnings, errors and the failure reason.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for folobuild."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=bool(args.quiet),
        log_file=Path(args.log_file) if args.log_file else None,
    )

    try:
        config = load_config(
            Path(args.project),
            Path(args.config) if args.config else None,
        )
    except ConfigError as exc:
        parser.exit(1, f"folobuild: {exc}\n")

    config = apply_overrides(
        config,
        minify=args.minify,
        source_maps=args.source_maps,
        hash_assets=args.hash_assets,
        output_dir=Path(args.output) if args.output else None,
        strict=args.strict,
    )

    orchestrator = Orchestrator(reporters=[LoggingReporter()])
    if not orchestrator.build(config):
        reason = orchestrator.failure or "per-file errors recorded"
        parser.exit(1, f"folobuild: build failed: {reason}\nRun with --verbose for more details.\n")


if __name__ == "__main__":
    main(sys.argv[1:])
