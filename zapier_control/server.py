"""MCP Server entry point for the Zapier control plugin.

Exposes tools to Claude Code via the Model Context Protocol:
- Zaps: list_zaps, view_history, view_error, replay_run, toggle_zap
- Session: session_status, take_screenshot, reset_session, discover_endpoints
- Actions: list_actions, execute_action

The Session Manager HTTP service (aiohttp on localhost:8025) is auto-started
as part of the MCP server lifecycle, so no separate process is needed.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

from aiohttp.web import AppRunner, TCPSite
from mcp.server.fastmcp import FastMCP

from .config import INTERACTIVE, SESSION_MANAGER_HOST, SESSION_MANAGER_PORT, ensure_dirs
from .tools.action_tools import execute_action, list_actions
from .tools.session_tools import reset_session, session_status, take_screenshot
from .tools.zap_tools import (
    discover_endpoints,
    list_zaps,
    replay_run,
    toggle_zap,
    view_error,
    view_history,
)

# Configure logging to stderr (stdout is reserved for MCP JSON-RPC)
logging.basicConfig(
    stream=sys.stderr,
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("zapier-control")

# Ensure data directories exist
ensure_dirs()


# ── Lifespan: auto-start Session Manager ─────────────────────────────────────


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Start the Session Manager HTTP service alongside the MCP server."""
    from .session_manager.manager import create_app

    app = create_app(interactive=INTERACTIVE)
    runner = AppRunner(app)
    await runner.setup()
    site = TCPSite(runner, SESSION_MANAGER_HOST, SESSION_MANAGER_PORT)
    managed = False
    try:
        await site.start()
        logger.info(
            "Session Manager auto-started on %s:%s", SESSION_MANAGER_HOST, SESSION_MANAGER_PORT
        )
        managed = True
    except OSError:
        # Port already in use: assume Session Manager was started manually
        logger.info(
            "Session Manager already running on %s:%s", SESSION_MANAGER_HOST, SESSION_MANAGER_PORT
        )
        await runner.cleanup()

    try:
        yield {}
    finally:
        if managed:
            await runner.cleanup()
            logger.info("Session Manager stopped.")


# ── MCP Server ───────────────────────────────────────────────────────────────

mcp = FastMCP(
    "zapier-control",
    lifespan=lifespan,
    instructions=(
        "Zapier control - inspect and manage Zaps through the Zapier web app. "
        "The Session Manager starts automatically and logs in on first use. "
        "Use list_zaps and view_history to see state, view_error to diagnose a run. "
        "replay_run and toggle_zap change live automations: describe the change, "
        "ask the user for an explicit yes, and only then call with confirmed=true. "
        "Use list_actions and execute_action for Zapier AI Actions."
    ),
)


# ── Zap Tools ────────────────────────────────────────────────────────────────


@mcp.tool()
async def tool_list_zaps() -> str:
    """List all Zaps with on/off/draft/error status."""
    return await list_zaps()


@mcp.tool()
async def tool_view_history(zap_id: str = "", limit: int = 25) -> str:
    """View Zap run history, all Zaps or one.

    Args:
        zap_id: Filter to a specific Zap id ("" for all).
        limit: Max runs (1-100, default 25).
    """
    return await view_history(zap_id, limit)


@mcp.tool()
async def tool_view_error(run_id: str) -> str:
    """View step-by-step error detail for a run.

    Args:
        run_id: Run id to inspect.
    """
    return await view_error(run_id)


@mcp.tool()
async def tool_replay_run(run_id: str, confirmed: bool = False) -> str:
    """Replay a failed Zap run. Ask the user first; pass confirmed=true only after they agree.

    Args:
        run_id: Run id to replay.
        confirmed: Explicit user confirmation.
    """
    return await replay_run(run_id, confirmed)


@mcp.tool()
async def tool_toggle_zap(zap_id: str, enable: bool, confirmed: bool = False) -> str:
    """Turn a Zap on or off. Ask the user first; pass confirmed=true only after they agree.

    Args:
        zap_id: Zap id to toggle.
        enable: True to turn on, False to turn off.
        confirmed: Explicit user confirmation.
    """
    return await toggle_zap(zap_id, enable, confirmed)


# ── Session Tools ────────────────────────────────────────────────────────────


@mcp.tool()
async def tool_session_status() -> str:
    """Check whether the browser is running and logged in to Zapier."""
    return await session_status()


@mcp.tool()
async def tool_take_screenshot(filename: str = "", full_page: bool = False) -> str:
    """Screenshot the browser's current page.

    Args:
        filename: Optional file name (default zapier-screenshot-<ms>.png).
        full_page: Capture the full scrollable page.
    """
    return await take_screenshot(filename, full_page)


@mcp.tool()
async def tool_reset_session() -> str:
    """Close the browser and clear the saved Zapier session."""
    return await reset_session()


@mcp.tool()
async def tool_discover_endpoints() -> str:
    """Developer tool: record Zapier's internal API calls from the Zaps and History pages."""
    return await discover_endpoints()


# ── Action Tools ─────────────────────────────────────────────────────────────


@mcp.tool()
async def tool_list_actions() -> str:
    """List Zapier AI Actions exposed to MCP, with parameter details."""
    return await list_actions()


@mcp.tool()
async def tool_execute_action(action: str, params: str = "") -> str:
    """Execute a Zapier AI Action by name.

    Args:
        action: Action name from tool_list_actions.
        params: JSON object of parameters.
    """
    return await execute_action(action, params)


# ── Entry Point ──────────────────────────────────────────────────────────────


def main():
    """Run the MCP server on STDIO transport."""
    logger.info("Starting Zapier control MCP server...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
