"""Command-line interface for Zapier control.

Zap commands run the browser session in-process. A browser left running by
an earlier invocation (or by the Session Manager) is reused through its
saved live-process handle. Every command prints one JSON value to stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Sequence

from . import config
from .actions_client import ZapierActionsClient
from .errors import ZapierControlError
from .session_manager.browser import BrowserSession
from .session_manager.executor import ZapExecutor

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

MUTATING_COMMANDS = {"replay-run", "toggle-zap"}
ACTION_COMMANDS = {"list-tools", "list-actions", "execute"}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on", "1"):
        return True
    if lowered in ("false", "no", "off", "0"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def _parse_limit(value: str) -> int:
    try:
        limit = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"limit must be an integer, got {value!r}")
    if not 1 <= limit <= config.MAX_HISTORY_LIMIT:
        raise argparse.ArgumentTypeError(f"limit must be between 1 and {config.MAX_HISTORY_LIMIT}")
    return limit


def _build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for all commands."""

    parser = argparse.ArgumentParser(
        prog="zapier-control",
        description="Inspect and manage Zapier Zaps through the Zapier web app.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Visible browser, longer timeouts, and time to complete 2FA by hand.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list-tools", help="List tools on the Zapier MCP server.")
    commands.add_parser("list-actions", help="List actions with their parameters.")

    execute = commands.add_parser("execute", help="Execute a Zapier action.")
    execute.add_argument("--action", required=True, help="Action name.")
    execute.add_argument("--params", default="{}", help="JSON object of action parameters.")

    commands.add_parser("list-zaps", help="List all Zaps with their status.")

    history = commands.add_parser("view-history", help="List recent Zap runs.")
    history.add_argument("--zap-id", help="Only runs of this Zap.")
    history.add_argument(
        "--limit",
        type=_parse_limit,
        default=config.DEFAULT_HISTORY_LIMIT,
        help=f"Max runs, 1-{config.MAX_HISTORY_LIMIT} (default {config.DEFAULT_HISTORY_LIMIT}).",
    )

    error = commands.add_parser("view-error", help="Show step-by-step detail for a run.")
    error.add_argument("--run-id", required=True, help="Run id.")

    replay = commands.add_parser("replay-run", help="Replay a Zap run.")
    replay.add_argument("--run-id", required=True, help="Run id to replay.")
    replay.add_argument("--yes", action="store_true", help="Confirm the replay.")

    toggle = commands.add_parser("toggle-zap", help="Turn a Zap on or off.")
    toggle.add_argument("--zap-id", required=True, help="Zap id.")
    toggle.add_argument("--enable", required=True, type=_parse_bool, help="true or false.")
    toggle.add_argument("--yes", action="store_true", help="Confirm the change.")

    commands.add_parser("discover-endpoints", help="Record internal API calls made by Zapier pages.")

    screenshot = commands.add_parser("screenshot", help="Screenshot the browser's current page.")
    screenshot.add_argument("--filename", help="File name inside the screenshot directory.")
    screenshot.add_argument("--full-page", action="store_true", help="Capture the full page.")

    commands.add_parser("reset", help="Close the browser and clear the saved session.")
    return parser


def confirmation_required(args: argparse.Namespace) -> dict | None:
    """Error payload when a mutating command lacks ``--yes``, else None."""
    if args.command not in MUTATING_COMMANDS or args.yes:
        return None
    if args.command == "replay-run":
        action = f"replay run {args.run_id}"
    else:
        action = f"{'enable' if args.enable else 'disable'} Zap {args.zap_id}"
    return {
        "error": f"Refusing to {action} without confirmation. Re-run with --yes.",
        "kind": "confirmation_required",
    }


async def _run_action_command(args: argparse.Namespace) -> Any:
    if args.command == "execute":
        try:
            params = json.loads(args.params)
        except ValueError as e:
            raise ZapierControlError(f"--params is not valid JSON: {e}")
        if not isinstance(params, dict):
            raise ZapierControlError("--params must be a JSON object.")

    async with ZapierActionsClient() as client:
        if args.command == "list-tools":
            tools = await client.list_tools()
            return [{"name": t.name, "description": t.description} for t in tools]
        if args.command == "list-actions":
            return await client.list_available_actions()
        return await client.execute_action(args.action, params)


async def _run_zap_command(args: argparse.Namespace, session: BrowserSession) -> Any:
    executor = ZapExecutor(session)

    if args.command == "list-zaps":
        return [zap.to_output() for zap in await executor.list_zaps()]
    if args.command == "view-history":
        runs = await executor.view_history(zap_id=args.zap_id, limit=args.limit)
        return [run.to_output() for run in runs]
    if args.command == "view-error":
        return (await executor.view_error(args.run_id)).to_output()
    if args.command == "replay-run":
        return (await executor.replay_run(args.run_id)).to_output()
    if args.command == "toggle-zap":
        return (await executor.toggle_zap(args.zap_id, args.enable)).to_output()
    if args.command == "discover-endpoints":
        return await executor.discover_endpoints()
    if args.command == "screenshot":
        result = await session.take_screenshot(filename=args.filename, full_page=args.full_page)
        return result.to_output()
    raise ValueError(f"Unknown command: {args.command}")


async def run_command(args: argparse.Namespace, session: BrowserSession | None = None) -> Any:
    """Execute one parsed command and return its JSON-serialisable result."""
    if args.command in ACTION_COMMANDS:
        return await _run_action_command(args)

    session = session or BrowserSession(interactive=args.debug)
    if args.command == "reset":
        return (await session.reset()).to_output()

    try:
        return await _run_zap_command(args, session)
    finally:
        await session.close()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the zapier-control CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    refusal = confirmation_required(args)
    if refusal:
        print(json.dumps(refusal, indent=2))
        return 1

    config.ensure_dirs()
    try:
        result = asyncio.run(run_command(args))
    except ZapierControlError as e:
        logger.error(f"{args.command} failed: {e}")
        print(json.dumps(e.to_dict(), indent=2))
        return 1
    except Exception as e:
        logger.error(f"{args.command} failed unexpectedly: {e}", exc_info=True)
        print(json.dumps({"error": str(e), "kind": "error"}, indent=2))
        return 1

    print(json.dumps(result, indent=2, default=str))
    if isinstance(result, dict) and result.get("success") is False:
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
