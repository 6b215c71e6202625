"""
Command-line entry point.

    python -m paper_stream --port 3000 --cache-dir ./cache
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from paper_stream.api.server import run_api_server
from paper_stream.container import create_container
from paper_stream.settings import DEFAULT_PORT, Settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Paper Stream HTTP API Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT", DEFAULT_PORT)),
        help="Port to bind to (default: $PORT or 3000)",
    )
    parser.add_argument("--cache-dir", help="Durable cache directory")
    parser.add_argument("--log-level", help="Logging level (default: $PAPER_STREAM_LOG_LEVEL or INFO)")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    settings = Settings.from_env().with_overrides(
        cache_dir=Path(args.cache_dir).expanduser() if args.cache_dir else None,
        log_level=args.log_level.upper() if args.log_level else None,
    )

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    run_api_server(
        host=args.host,
        port=args.port,
        container=create_container(settings),
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
