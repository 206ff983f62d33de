from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .builder import build_site
from .config import ConfigError, load_config
from .dev import DEFAULT_PORT, watch
from .log import configure_logging
from .utils import BuildError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "config.conf"


def port_number(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port {value!r}: not a number") from None
    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"invalid port {port}: must be between 1 and 65535")
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Static blog generator with a live-preview dev server.")
    parser.add_argument(
        "-c",
        "--config",
        default=DEFAULT_CONFIG,
        help=f"Path to the site config file (default: {DEFAULT_CONFIG}).",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Build, then rebuild on changes and serve the output directory.",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging with stack traces.")
    parser.add_argument(
        "-p",
        "--port",
        type=port_number,
        default=DEFAULT_PORT,
        help=f"Dev server port for --watch (default: {DEFAULT_PORT}).",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)
    try:
        config = load_config(Path(args.config))
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1

    if args.watch:
        try:
            watch(config, args.port)
        except OSError as exc:
            logger.error("Could not start dev server on port %d: %s", args.port, exc)
            return 1
        return 0

    try:
        result = build_site(config)
    except BuildError as exc:
        logger.error("Build failed: %s", exc, exc_info=args.debug)
        return 1
    failed = len(result["failures"])
    if failed:
        logger.warning("%d article(s) failed to render", failed)
    print(f"Build completed in {result['elapsed']:.2f}s.")
    print(f"Site generated in: {result['output_dir']}")
    return 0


def run() -> None:
    sys.exit(main())
