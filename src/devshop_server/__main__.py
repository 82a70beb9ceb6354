"""CLI entry point for devshop-server.

This module provides the command-line interface for starting the devshop-server.
It can be invoked as `devshop-server` (via the script entry point) or
`python -m devshop_server`.
"""

import argparse
import logging
import shlex
import sys

import uvicorn

from devshop_server import __version__, create_app
from devshop_server.config import DevShopSettings


def main() -> None:
    """Main entry point for the devshop-server CLI.

    Parses command-line arguments and starts the uvicorn server with the
    FastAPI application.
    """
    parser = argparse.ArgumentParser(
        prog="devshop-server",
        description="Bounded agent-to-agent communication and tool subprocess RPC",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"devshop-server {__version__}",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via DEVSHOP_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via DEVSHOP_PORT)",
    )

    parser.add_argument(
        "--tool-server",
        type=str,
        default=None,
        help='Tool server command line, e.g. "node servers/fastmcp-litellm-server.js" '
        "(can be set via DEVSHOP_MCP_SERVER_COMMAND as a JSON list)",
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Base directory for state and audit logs (default: ., can be set via DEVSHOP_DATA_DIR)",
    )

    parser.add_argument(
        "--max-exchanges",
        type=int,
        default=None,
        help="Exchange ceiling per communication (default: 5, can be set via DEVSHOP_MAX_EXCHANGES)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via DEVSHOP_LOG_LEVEL)",
    )

    args = parser.parse_args()

    # Build settings, CLI args override environment variables
    settings_kwargs = {}
    if args.host is not None:
        settings_kwargs["host"] = args.host
    if args.port is not None:
        settings_kwargs["port"] = args.port
    if args.tool_server is not None:
        settings_kwargs["mcp_server_command"] = shlex.split(args.tool_server)
    if args.data_dir is not None:
        settings_kwargs["data_dir"] = args.data_dir
    if args.max_exchanges is not None:
        settings_kwargs["max_exchanges"] = args.max_exchanges
    if args.log_level is not None:
        settings_kwargs["log_level"] = args.log_level

    settings = DevShopSettings(**settings_kwargs)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Create the FastAPI app
    app = create_app(settings=settings)

    # Start uvicorn
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    sys.exit(main())
