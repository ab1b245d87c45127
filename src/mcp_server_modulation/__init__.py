"""MCP Server for analog modulation (AM / FM) synthesis and demodulation.

Run as a CLI:
    mcp-server-modulation
"""

from __future__ import annotations

__version__ = "0.1.0"


def main() -> None:
    """CLI entry point for the modulation MCP server."""
    import argparse
    import logging
    import sys

    from mcp_server_modulation.config import load_settings

    settings = load_settings()

    parser = argparse.ArgumentParser(
        prog="mcp-server-modulation",
        description="MCP server for analog modulation (AM / FM) analysis",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio"],
        default="stdio",
        help="MCP transport (default: stdio)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        default=settings.log_level,
        help=f"Logging level on stderr (default: {settings.log_level})",
    )
    args = parser.parse_args()

    # stdout carries the MCP stdio stream
    logging.basicConfig(
        level=args.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from mcp_server_modulation.server import serve

    serve(transport=args.transport)


if __name__ == "__main__":
    main()
