"""Entry point for Google MCP.

Usage:
    python -m google_mcp [serve]            # run the MCP server (default)
    python -m google_mcp login [--scope S]  # authorize in the browser
    python -m google_mcp status             # show stored token state
    python -m google_mcp logout [--no-revoke]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from google_mcp.auth.manager import AuthManager
from google_mcp.config import AuthConfig
from google_mcp.utils.errors import AuthError, ConfigurationError


def configure_logging() -> None:
    """Configure logging to stderr (STDIO-safe).

    Sends all logs to stderr so they don't interfere with MCP's
    STDIO transport which uses stdout for JSON-RPC messages.

    Respects LOG_LEVEL env var (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = logging.getLevelNamesMapping().get(log_level_str, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    # Reduce noise from Google and HTTP libraries
    logging.getLogger("google.auth").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def validate_environment() -> AuthConfig | None:
    """Load and validate the configuration from the environment.

    Returns:
        The configuration, or None after logging every problem found.
    """
    logger = logging.getLogger(__name__)

    try:
        return AuthConfig.from_env()
    except ConfigurationError as e:
        logger.error("%s", e.message)
        problems = e.details.get("problems")
        if isinstance(problems, list):
            for problem in problems:
                logger.error("  %s", problem)
        return None


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="google_mcp",
        description="Google OAuth (PKCE) authentication core and MCP server.",
    )
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("serve", help="Run the MCP server (default).")

    login = commands.add_parser("login", help="Authorize in the browser.")
    login.add_argument(
        "--scope",
        action="append",
        dest="scopes",
        metavar="SCOPE",
        help="Scope to request; repeat for several. Defaults to GOOGLE_SCOPES.",
    )

    commands.add_parser("status", help="Show the stored token state.")

    logout = commands.add_parser("logout", help="Revoke and delete stored tokens.")
    logout.add_argument(
        "--no-revoke",
        action="store_true",
        help="Only delete the local token file.",
    )

    args = parser.parse_args(argv)
    args.command = args.command or "serve"
    return args


def serve(manager: AuthManager) -> None:
    """Start the MCP server with the transport selected by TRANSPORT."""
    logger = logging.getLogger(__name__)

    from google_mcp.server import create_server

    mcp = create_server(manager)
    transport = os.getenv("TRANSPORT", "stdio").lower()

    match transport:
        case "streamable-http" | "http":
            logger.info("Starting Google MCP Server with streamable-http transport")
            mcp.run(transport="streamable-http")
        case _:
            # STDIO transport for local use (default)
            logger.info("Starting Google MCP Server with STDIO transport")
            mcp.run(transport="stdio")


async def run_command(manager: AuthManager, args: argparse.Namespace) -> None:
    """Run one of the one-shot commands and print its result to stdout."""
    match args.command:
        case "login":
            granted = await manager.authenticate(args.scopes)
            print("Authenticated. Granted scopes:")
            for scope in sorted(granted):
                print(f"  {scope}")
        case "status":
            status = await manager.status()
            print(status.model_dump_json(indent=2))
        case "logout":
            removed = await manager.logout(revoke=not args.no_revoke)
            print("Logged out." if removed else "No stored credentials.")


def main(argv: list[str] | None = None) -> None:
    """Main entry point.

    Loads environment, validates configuration, then runs the server or a
    one-shot command.
    """
    # Load .env file if present
    load_dotenv()

    # Configure logging first
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args(sys.argv[1:] if argv is None else argv)

    config = validate_environment()
    if config is None:
        logger.error("Environment validation failed. Exiting.")
        sys.exit(1)

    manager = AuthManager(config)

    if args.command == "serve":
        serve(manager)
        return

    try:
        asyncio.run(run_command(manager, args))
    except AuthError as e:
        logger.error("%s failed [%s]: %s", args.command, e.kind.value, e.message)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
