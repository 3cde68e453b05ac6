"""
CLI for the teckboard SDK

Exposes the registered resource actions as commands, mostly to poke at a
live server.

Usage:
    teckboard --url <URL> --token <TOKEN> <category> <action> [args...]

Examples:
    teckboard --url https://dev.teckboard.de/api/v1 user get
    teckboard --url https://dev.teckboard.de/api/v1 boards get --board-id abc123
    teckboard --url https://dev.teckboard.de/api/v1 boards rename --board-id abc123 --name Roadmap
    teckboard --url https://dev.teckboard.de/api/v1 all  # Run all categories
"""

import argparse
import asyncio
import inspect
import json
import os
import sys
from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps

import defopt
import logfire

from teckboard.client import TeckboardClient, TeckboardClientConfig
from teckboard.registry import get_actions, get_all_func, get_categories, list_actions
from teckboard.utils import to_jsonable

def configure_logging(verbose: bool = False) -> None:
    """Send console logs to stderr, stdout carries action results."""
    logfire.configure(
        send_to_logfire="if-token-present",
        scrubbing=False,
        console=logfire.ConsoleOptions(output=sys.stderr, min_log_level="debug" if verbose else "info"),
    )


configure_logging()


# =============================================================================
# Global Configuration
# =============================================================================

@dataclass
class GlobalConfig:
    """Global configuration set before subcommand dispatch."""

    url: str
    """Base URL of the API."""

    token: str | None = None
    """Bearer token."""

    socket_url: str | None = None
    """Pusher-protocol websocket URL for real-time actions."""

    cache: bool = False
    """Enable the GET response cache."""

    verbose: bool = False
    """Enable verbose logging."""

    verify_ssl: bool = True
    """Verify SSL certificates."""


# Set by main()
CONFIG: GlobalConfig | None = None


def create_global_parser() -> argparse.ArgumentParser:
    """Create the global argument parser with all options."""
    parser = argparse.ArgumentParser(
        prog="teckboard",
        description="CLI for the teckboard API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,  # help is printed by print_global_help to list categories
    )
    parser.add_argument("--url", "-u", default=os.getenv("TECKBOARD_URL"),
                        help="Base URL of the API (or set TECKBOARD_URL env var)")
    parser.add_argument("--token", "-t", default=os.getenv("TECKBOARD_TOKEN"),
                        help="Bearer token (or set TECKBOARD_TOKEN env var)")
    parser.add_argument("--socket-url", default=os.getenv("TECKBOARD_SOCKET_URL"),
                        help="Websocket URL for real-time updates (or set TECKBOARD_SOCKET_URL env var)")
    parser.add_argument("--cache", action="store_true",
                        help="Cache GET responses")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose logging")
    parser.add_argument("--no-verify-ssl", action="store_true",
                        help="Disable SSL certificate verification")
    parser.add_argument("--help", "-h", action="store_true",
                        help="Show this help message and exit")
    return parser


def print_global_help(parser: argparse.ArgumentParser) -> None:
    """Print argparse help plus available categories and actions."""
    import_all_categories()
    parser.print_help()

    print("\nCommands:")
    print("    all                    Run all actions across all categories")
    print("    <category> all         Run all actions in a category")
    print("    <category> <action>    Run a specific action")

    print("\nCategories:")
    for cat in get_categories():
        print(f"    {cat:<20} Actions: {', '.join(list_actions(cat))}")


def parse_global_args(argv: list[str]) -> tuple[GlobalConfig, list[str]]:
    """
    Parse global arguments before subcommand.

    Args:
        argv: Command line arguments (sys.argv[1:])

    Returns:
        Tuple of (GlobalConfig, remaining_argv)
    """
    parser = create_global_parser()
    args, remaining = parser.parse_known_args(argv)

    if args.help:
        print_global_help(parser)
        sys.exit(0)

    if not args.url:
        print("Error: --url is required (or set TECKBOARD_URL)", file=sys.stderr)
        sys.exit(1)

    return GlobalConfig(
        url=args.url,
        token=args.token,
        socket_url=args.socket_url,
        cache=args.cache,
        verbose=args.verbose,
        verify_ssl=not args.no_verify_ssl,
    ), remaining


# =============================================================================
# Client Factory
# =============================================================================

def get_client() -> TeckboardClient:
    """Create a client from the global configuration."""
    if CONFIG is None:
        raise RuntimeError("Global config not initialized")

    config = TeckboardClientConfig(
        endpoint=CONFIG.url,
        bearer_token=CONFIG.token,
        socket_url=CONFIG.socket_url,
        cache_enabled=CONFIG.cache,
        verify_ssl=CONFIG.verify_ssl,
    )
    return TeckboardClient(config)


# =============================================================================
# Action Wrapper for defopt
# =============================================================================

def create_action_wrapper(func: Callable) -> Callable:
    """
    Wrap an async action function for use with defopt.

    - Removes the `client` parameter (injected automatically)
    - Runs the coroutine with asyncio.run
    - Prints non-int results as JSON and returns an exit code
    """
    sig = inspect.signature(func)
    params = list(sig.parameters.values())
    if params and params[0].name == 'client':
        params = params[1:]

    @wraps(func)
    def wrapper(*args, **kwargs):
        async def _run():
            async with get_client() as client:
                result = await func(client, *args, **kwargs)
                if isinstance(result, int) and not isinstance(result, bool):
                    return result
                if result is not None:
                    print(json.dumps(to_jsonable(result), indent=2))
                return 0

        return asyncio.run(_run())

    wrapper.__signature__ = sig.replace(parameters=params)  # type: ignore[attr-defined]
    # 'client' is only importable under TYPE_CHECKING in the action modules
    wrapper.__annotations__ = {k: v for k, v in func.__annotations__.items() if k != 'client'}
    return wrapper


# =============================================================================
# Category Discovery
# =============================================================================

def import_all_categories() -> None:
    """Import all resource modules to trigger registration."""
    from teckboard import api  # noqa: F401


# =============================================================================
# Main Entry Point
# =============================================================================

def run_action(func: Callable, args: list[str] | None = None) -> int:
    """Run an action function, parsing its options with defopt."""
    wrapped = create_action_wrapper(func)
    return defopt.run(wrapped, argv=args or [])


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    global CONFIG

    import_all_categories()
    CONFIG, remaining = parse_global_args(sys.argv[1:] if argv is None else argv)
    if CONFIG.verbose:
        configure_logging(verbose=True)

    if not remaining:
        print("Usage: teckboard --url <URL> <category> <action> [args...]", file=sys.stderr)
        print(f"Categories: {', '.join(get_categories()) or 'none'}", file=sys.stderr)
        return 1

    category, *rest = remaining
    action = rest[0] if rest else "all"
    action_args = rest[1:]

    try:
        if category == "all":
            return max((run_action(f) for c in get_categories() if (f := get_all_func(c))), default=0)

        if category not in get_categories():
            print(f"Unknown category: {category}. Available: {', '.join(get_categories())}", file=sys.stderr)
            return 1

        if action == "all":
            if func := get_all_func(category):
                return run_action(func)
            print(f"No 'all' action for {category}", file=sys.stderr)
            return 1

        actions = get_actions(category)
        if action not in actions:
            print(f"Unknown action: {action}. Available: {', '.join(list_actions(category))}", file=sys.stderr)
            return 1

        return run_action(actions[action], action_args)

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1
    except Exception as e:
        logfire.error(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
