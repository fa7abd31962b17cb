#!/usr/bin/env python3
"""
agentstream CLI Entry Point

Starts the streaming agent server.
"""

import argparse

from agentstream.config import get_settings
from agentstream.server.core.app import AgentStreamServer
from agentstream.utils.logging import setup_logging


def main():
    """Main entry point for the agentstream CLI."""
    parser = argparse.ArgumentParser(description="agentstream - streamed tool-using agents")
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000)"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind the server to (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--prefix",
        default="",
        help="URL prefix for all routes (default: none)"
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    settings = get_settings()
    level = "DEBUG" if args.debug else settings.log_level
    setup_logging(level, log_file=args.log_file)

    server = AgentStreamServer(settings=settings, url_prefix=args.prefix)
    server.run(host=args.host, port=args.port, log_level=level.lower())


if __name__ == "__main__":
    main()
