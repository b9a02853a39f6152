"""MCP tools for managing the Zapier browser session."""

from __future__ import annotations

import json

import httpx

from ..config import SESSION_MANAGER_URL


async def _call_session_manager(method: str, path: str, json_body: dict | None = None) -> dict:
    """Make a request to the session manager HTTP service."""
    url = f"{SESSION_MANAGER_URL}{path}"
    try:
        # Covers an interactive 2FA wait plus navigation.
        async with httpx.AsyncClient(timeout=240.0) as client:
            if method == "GET":
                resp = await client.get(url)
            else:
                resp = await client.post(url, json=json_body or {})

            if resp.status_code >= 400:
                data = resp.json()
                if "error" not in data:
                    data["error"] = f"HTTP {resp.status_code}"
                return data
            return resp.json()

    except httpx.ConnectError:
        return {
            "error": "Session Manager is not reachable at "
            f"{SESSION_MANAGER_URL}. It should auto-start with the MCP server. "
            "If running standalone: python -m zapier_control.session_manager.manager"
        }
    except httpx.TimeoutException:
        return {"error": "Session Manager timed out. The browser may be waiting on a login step."}
    except (httpx.HTTPError, ValueError) as e:
        return {"error": f"Failed to talk to Session Manager: {e}"}


def _format_error(result: dict) -> str:
    message = f"Error: {result['error']}"
    if result.get("screenshot"):
        message += f"\nScreenshot: {result['screenshot']}"
    if result.get("kind") == "interactive_challenge_required":
        message += (
            "\n\nA human needs to complete this step. Restart the server with "
            "ZAPIER_DEBUG=true to get a visible browser, then retry."
        )
    elif result.get("kind") == "authentication_expired":
        message += "\n\nThe saved session was cleared. Retrying will log in again."
    return message


async def session_status() -> str:
    """Check whether the browser is running and the Zapier session is authenticated.

    Returns:
        JSON-formatted session status.
    """
    result = await _call_session_manager("GET", "/status")

    if "error" in result:
        return _format_error(result)

    return json.dumps(result, indent=2)


async def take_screenshot(filename: str = "", full_page: bool = False) -> str:
    """Capture the browser's current page.

    Returns:
        Path of the saved screenshot.
    """
    result = await _call_session_manager(
        "POST", "/screenshot", {"filename": filename, "full_page": full_page}
    )

    if "error" in result:
        return _format_error(result)

    return f"Screenshot saved: {result.get('screenshot')}"


async def reset_session() -> str:
    """Close the browser and clear the saved Zapier session.

    The next Zap command will log in from scratch.

    Returns:
        Confirmation message.
    """
    result = await _call_session_manager("POST", "/reset")

    if "error" in result:
        return _format_error(result)

    return result.get("message", "Session reset.")
