#!/usr/bin/env python3
"""
Remote Sync Server CLI.

Command-line interface to run the remote sync server. Settings come from an
optional TOML file; logging flags on the command line override the file.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from syncstore.core.errors import SyncStoreError
from syncstore.core.logging import configure_structlog, verbosity_to_level

from .config import ServerConfig
from .server import create_server

# Get version from package metadata
try:
    import importlib.metadata

    __version__ = importlib.metadata.version("remote-sync-server")
except importlib.metadata.PackageNotFoundError:
    __version__ = "unknown"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="remote-sync-server",
        description="Remote Sync Server - session-gated, per-user sandboxed file storage",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        metavar="FILE",
        help="Path to a TOML configuration file",
    )
    parser.add_argument(
        "-l",
        "--log-path",
        default=None,
        metavar="FILE",
        help='File to append logs to ("-" for stdout; default: from config, else stdout)',
    )
    parser.add_argument(
        "-v",
        "--log-level",
        action="count",
        default=0,
        help="Increase log verbosity (-v = DEBUG; default: from config, else INFO)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> ServerConfig:
    """Load the configuration file, if any, and apply logging overrides."""
    config = ServerConfig.from_file(args.config) if args.config else ServerConfig()

    if args.log_path is not None:
        config.logging.path = args.log_path
    if args.log_level:
        config.logging.level = logging.getLevelName(verbosity_to_level(args.log_level))
    return config


def main(argv: Sequence[str] | None = None) -> None:
    """Main CLI entry point."""
    args = parse_args(argv)

    try:
        config = load_config(args)
        configure_structlog(
            level=logging.getLevelName(config.logging.level),
            use_json=config.logging.json_output,
            log_path=config.logging.path,
        )
        server = create_server(config)
    except (SyncStoreError, OSError) as e:
        print(f"ERROR: Failed to start server: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Remote Sync Server v{__version__}", file=sys.stderr)

    try:
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        print("\nGraceful shutdown complete.", file=sys.stderr)
    except OSError as e:
        print(f"Server error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
