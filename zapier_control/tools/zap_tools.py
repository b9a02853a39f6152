"""MCP tools for inspecting and controlling Zaps."""

from __future__ import annotations

import json

from .session_tools import _call_session_manager, _format_error

CONFIRMATION_REQUIRED = (
    "Not executed: {action} changes live Zapier state. Show the user what will "
    "happen, get an explicit yes, then call again with confirmed=true."
)


async def list_zaps() -> str:
    """List every Zap in the account with its status.

    Returns:
        Readable list: title, id, status (on/off/draft/error), last run.
    """
    result = await _call_session_manager("POST", "/zaps/list")

    if "error" in result:
        return _format_error(result)

    zaps = result.get("zaps", [])
    if not zaps:
        return "No Zaps found."

    lines = [f"Found {len(zaps)} Zaps:\n"]
    for i, zap in enumerate(zaps, 1):
        lines.append(
            f"{i}. **{zap.get('title', 'Untitled')}** (id {zap.get('id')})\n"
            f"   Status: {zap.get('status', 'unknown')} | "
            f"Steps: {zap.get('stepCount', 'N/A')} | "
            f"Last run: {zap.get('lastRun', 'never')}\n"
        )
    return "\n".join(lines)


async def view_history(zap_id: str = "", limit: int = 25) -> str:
    """List recent Zap runs, optionally for a single Zap.

    Args:
        zap_id: Only runs of this Zap ("" for all).
        limit: Max runs (1-100, default 25).

    Returns:
        Readable list of runs with status and error summaries.
    """
    result = await _call_session_manager(
        "POST", "/runs/history", {"zap_id": zap_id, "limit": limit}
    )

    if "error" in result:
        return _format_error(result)

    runs = result.get("runs", [])
    if not runs:
        return "No runs found." if not zap_id else f"No runs found for Zap {zap_id}."

    lines = [f"Found {len(runs)} runs:\n"]
    for i, run in enumerate(runs, 1):
        line = (
            f"{i}. Run {run.get('id')}: {run.get('zapTitle') or run.get('zapId') or 'unknown Zap'}\n"
            f"   Status: {run.get('status', 'unknown')} | Started: {run.get('startedAt') or 'N/A'}"
        )
        if run.get("errorMessage"):
            line += f"\n   Error: {run['errorMessage']}"
        lines.append(line + "\n")
    return "\n".join(lines)


async def view_error(run_id: str) -> str:
    """Get step-by-step detail for one run, including error messages.

    Args:
        run_id: Run id from view_history.

    Returns:
        JSON with the run and its steps.
    """
    result = await _call_session_manager("POST", "/runs/error", {"run_id": run_id})

    if "error" in result:
        return _format_error(result)

    return json.dumps(result.get("run", {}), indent=2)


async def replay_run(run_id: str, confirmed: bool = False) -> str:
    """Replay a Zap run. Only after the user explicitly confirmed.

    Args:
        run_id: Run id to replay.
        confirmed: Must be True; set only after the user said yes.

    Returns:
        Outcome message, with a screenshot path when the UI was used.
    """
    if not confirmed:
        return CONFIRMATION_REQUIRED.format(action=f"Replaying run {run_id}")

    result = await _call_session_manager("POST", "/runs/replay", {"run_id": run_id})
    return _format_operation(result)


async def toggle_zap(zap_id: str, enable: bool, confirmed: bool = False) -> str:
    """Turn a Zap on or off. Only after the user explicitly confirmed.

    Args:
        zap_id: Zap id to change.
        enable: True to turn on, False to turn off.
        confirmed: Must be True; set only after the user said yes.

    Returns:
        Outcome message, with a screenshot path when the UI was used.
    """
    if not confirmed:
        verb = "Enabling" if enable else "Disabling"
        return CONFIRMATION_REQUIRED.format(action=f"{verb} Zap {zap_id}")

    result = await _call_session_manager(
        "POST", "/zaps/toggle", {"zap_id": zap_id, "enable": enable}
    )
    return _format_operation(result)


async def discover_endpoints() -> str:
    """Record the internal API calls made by the Zaps and History pages.

    Returns:
        JSON map of page -> captured "METHOD url → status" lines.
    """
    result = await _call_session_manager("POST", "/discover")

    if "error" in result:
        return _format_error(result)

    return json.dumps(result, indent=2)


def _format_operation(result: dict) -> str:
    if "error" in result:
        return _format_error(result)

    prefix = "Done" if result.get("success") else "Failed"
    message = f"{prefix}: {result.get('message', '')}"
    if result.get("screenshot"):
        message += f"\nScreenshot: {result['screenshot']}"
    return message
