"""CLI entry point for the RCON client."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys

from srcon.config import (
    AppConfig,
    ServerConfig,
    load_config,
)
from srcon.errors import AuthenticationError, RconError
from srcon.repl import run_repl
from srcon.session import RconSession


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="srcon",
        description="Source RCON client",
    )
    parser.add_argument(
        "server",
        nargs="?",
        help="Server name (from config) or host:port (e.g., 10.0.0.5:27015)",
    )
    parser.add_argument(
        "-p",
        "--password",
        help="RCON password (overrides the config file)",
    )
    parser.add_argument(
        "-c",
        "--command",
        help="Execute a single command and exit (non-interactive mode)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for a connection or a response (default: no limit)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Log protocol activity to stderr",
    )
    return parser


def select_server(config: AppConfig) -> tuple[str, ServerConfig]:
    """Prompt the user to select from configured servers.

    Returns (key, ServerConfig).
    """
    servers = list(config.servers.items())
    if not servers:
        print("No servers configured.", file=sys.stderr)
        sys.exit(1)

    print("Available servers:")
    for i, (_key, srv) in enumerate(servers, 1):
        print(f"  {i}. {srv.name} ({srv.host}:{srv.port})")

    while True:
        try:
            choice = input(f"\nSelect server [1-{len(servers)}]: ").strip()
            idx = int(choice) - 1
            if 0 <= idx < len(servers):
                return servers[idx]
        except (ValueError, EOFError):
            pass
        print(f"Please enter a number between 1 and {len(servers)}")


def resolve_server(
    server_arg: str | None, config: AppConfig
) -> tuple[str, ServerConfig]:
    """Resolve the target server from CLI arg or interactive selection.

    Returns (display_name, ServerConfig).
    """
    if server_arg is not None:
        # Check if it's a configured server name
        if server_arg in config.servers:
            return server_arg, config.servers[server_arg]

        # Try parsing as host:port
        if ":" in server_arg:
            host, port_str = server_arg.rsplit(":", 1)
            try:
                port = int(port_str)
                return server_arg, ServerConfig(name=server_arg, host=host, port=port)
            except ValueError:
                pass

        # Treat as hostname with default port
        return server_arg, ServerConfig(name=server_arg, host=server_arg)

    # No server arg provided -- check for default
    if config.default_server and config.default_server in config.servers:
        key = config.default_server
        return key, config.servers[key]

    # Prompt user to select
    return select_server(config)


def resolve_password(password_arg: str | None, server: ServerConfig) -> str:
    """Resolve the RCON password from the CLI flag, the config, or a prompt."""
    if password_arg is not None:
        return password_arg
    if server.password is not None:
        return server.password

    try:
        return getpass.getpass(f"RCON password for {server.host}:{server.port}: ")
    except (EOFError, KeyboardInterrupt):
        print(file=sys.stderr)
        sys.exit(1)


async def run(
    server: ServerConfig,
    password: str,
    *,
    command: str | None,
    interactive: bool,
    timeout: float | None,
) -> int:
    """Connect, authenticate, then run one command or the interactive prompt.

    Returns the process exit status.
    """
    session = RconSession(server.host, server.port, timeout=timeout)
    try:
        await session.connect()
        print(f"Connected to {server.name} ({server.host}:{server.port})")
        await session.authenticate(password)
    except AuthenticationError as e:
        print(f"Authentication failed: {e}", file=sys.stderr)
        await session.wait_closed()
        return 1
    except (RconError, TimeoutError) as e:
        print(f"Connection failed: {str(e) or 'timed out'}", file=sys.stderr)
        await session.wait_closed()
        return 1

    if command is not None or not interactive:
        try:
            if command:
                response = await session.send_command(command)
                if response:
                    print(response)
        except (RconError, TimeoutError) as e:
            print(f"Error: {str(e) or 'timed out'}", file=sys.stderr)
            return 1
        finally:
            await session.wait_closed()
        return 0

    print("Type '.exit' or press Ctrl+D to quit.\n")
    await run_repl(session)
    return 0


def main() -> None:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        )

    config = load_config()
    _, server = resolve_server(args.server, config)
    password = resolve_password(args.password, server)

    status = asyncio.run(
        run(
            server,
            password,
            command=args.command,
            interactive=config.interactive,
            timeout=args.timeout,
        )
    )
    sys.exit(status)
