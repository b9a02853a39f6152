"""MCP tools for Zapier AI Actions (no browser involved)."""

from __future__ import annotations

import json

from ..actions_client import ZapierActionsClient
from ..errors import ZapierControlError


async def list_actions() -> str:
    """List actions exposed by the Zapier MCP server with their parameters.

    Returns:
        JSON list of {name, description, parameters, required}.
    """
    try:
        async with ZapierActionsClient() as client:
            actions = await client.list_available_actions()
    except ZapierControlError as e:
        return f"Error: {e}"

    if not actions:
        return "No actions exposed. Configure AI Actions in Zapier first."
    return json.dumps(actions, indent=2)


async def execute_action(action: str, params: str = "") -> str:
    """Execute a Zapier action by name.

    Args:
        action: Action name from list_actions.
        params: JSON object of action parameters.

    Returns:
        Action result as JSON (or text).
    """
    try:
        arguments = json.loads(params) if params else {}
    except ValueError:
        return "Error: params must be valid JSON."
    if not isinstance(arguments, dict):
        return "Error: params must be a JSON object."

    try:
        async with ZapierActionsClient() as client:
            result = await client.execute_action(action, arguments)
    except ZapierControlError as e:
        return f"Error: {e}"

    return result if isinstance(result, str) else json.dumps(result, indent=2)
