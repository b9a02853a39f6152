"""Session Manager HTTP service.

Runs as a lightweight local web server that keeps one Zapier browser
session alive between MCP tool calls. Handles browser lifecycle, the
dual-path Zap operations, and session reset.

Endpoints:
    GET  /status          - Return session state
    POST /zaps/list       - List Zaps
    POST /runs/history    - Run history (zap_id, limit)
    POST /runs/error      - Run detail (run_id)
    POST /runs/replay     - Replay a run (run_id)
    POST /zaps/toggle     - Enable/disable a Zap (zap_id, enable)
    POST /discover        - Record internal API traffic
    POST /screenshot      - Screenshot of the current page
    POST /reset           - Close browser, clear session
"""

from __future__ import annotations

import json
import logging
import sys

from aiohttp import web

from ..config import SESSION_MANAGER_HOST, SESSION_MANAGER_PORT, ensure_dirs
from ..errors import (
    AuthenticationExpired,
    ConfigurationMissing,
    InteractiveChallengeRequired,
    RequestFailed,
    ZapierControlError,
)
from .browser import BrowserSession
from .executor import ZapExecutor

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

ERROR_STATUS = {
    ConfigurationMissing: 412,
    AuthenticationExpired: 401,
    InteractiveChallengeRequired: 409,
    RequestFailed: 502,
}


class SessionManager:
    """Owns the long-lived browser session and its executor."""

    def __init__(self, interactive: bool = False):
        self.browser = BrowserSession(interactive=interactive)
        self.executor = ZapExecutor(self.browser)

    async def cleanup(self):
        """Clean up resources."""
        await self.browser.close()


def _error_response(e: Exception) -> web.Response:
    if isinstance(e, ZapierControlError):
        status = next((code for cls, code in ERROR_STATUS.items() if isinstance(e, cls)), 500)
        logger.warning(f"{type(e).__name__}: {e}")
        return web.json_response(e.to_dict(), status=status)
    logger.error(f"Unexpected failure: {e}", exc_info=True)
    return web.json_response({"error": str(e), "kind": "error"}, status=500)


async def _body(request: web.Request) -> dict:
    """Decode the JSON object body; anything else is a 400 with a JSON error."""
    if not request.content_length:
        return {}
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "Request body must be a JSON object.", "kind": "error"}),
            content_type="application/json",
        )
    return body


# ── HTTP Handlers ────────────────────────────────────────────────────────────


async def handle_status(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    return web.json_response(mgr.browser.status().model_dump())


async def handle_list_zaps(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    try:
        zaps = await mgr.executor.list_zaps()
    except Exception as e:
        return _error_response(e)
    return web.json_response({"zaps": [z.to_output() for z in zaps], "count": len(zaps)})


async def handle_history(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    body = await _body(request)
    try:
        limit = int(body.get("limit") or 0)
    except (TypeError, ValueError):
        return web.json_response({"error": "limit must be an integer."}, status=400)

    try:
        runs = await mgr.executor.view_history(zap_id=body.get("zap_id") or None, limit=limit)
    except Exception as e:
        return _error_response(e)
    return web.json_response({"runs": [r.to_output() for r in runs], "count": len(runs)})


async def handle_run_error(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    run_id = str((await _body(request)).get("run_id", ""))
    if not run_id:
        return web.json_response({"error": "run_id is required."}, status=400)

    try:
        detail = await mgr.executor.view_error(run_id)
    except Exception as e:
        return _error_response(e)
    return web.json_response({"run": detail.to_output()})


async def handle_replay(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    run_id = str((await _body(request)).get("run_id", ""))
    if not run_id:
        return web.json_response({"error": "run_id is required."}, status=400)

    try:
        result = await mgr.executor.replay_run(run_id)
    except Exception as e:
        return _error_response(e)
    return web.json_response(result.to_output())


async def handle_toggle(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    body = await _body(request)
    zap_id = str(body.get("zap_id", ""))
    enable = body.get("enable")
    if not zap_id or not isinstance(enable, bool):
        return web.json_response({"error": "zap_id and boolean enable are required."}, status=400)

    try:
        result = await mgr.executor.toggle_zap(zap_id, enable)
    except Exception as e:
        return _error_response(e)
    return web.json_response(result.to_output())


async def handle_discover(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    try:
        discovered = await mgr.executor.discover_endpoints()
    except Exception as e:
        return _error_response(e)
    return web.json_response(discovered)


async def handle_screenshot(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    body = await _body(request)
    try:
        result = await mgr.browser.take_screenshot(
            filename=body.get("filename") or None,
            full_page=bool(body.get("full_page", False)),
        )
    except Exception as e:
        return _error_response(e)
    return web.json_response(result.to_output())


async def handle_reset(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    result = await mgr.browser.reset()
    return web.json_response(result.to_output())


# ── App Factory ──────────────────────────────────────────────────────────────


async def on_startup(app: web.Application):
    ensure_dirs()
    app["manager"] = SessionManager(interactive=app["interactive"])
    logger.info(f"Session Manager started on {SESSION_MANAGER_HOST}:{SESSION_MANAGER_PORT}")


async def on_cleanup(app: web.Application):
    mgr: SessionManager = app["manager"]
    await mgr.cleanup()
    logger.info("Session Manager stopped.")


def create_app(interactive: bool = False) -> web.Application:
    app = web.Application()
    app["interactive"] = interactive
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    app.router.add_get("/status", handle_status)
    app.router.add_post("/zaps/list", handle_list_zaps)
    app.router.add_post("/runs/history", handle_history)
    app.router.add_post("/runs/error", handle_run_error)
    app.router.add_post("/runs/replay", handle_replay)
    app.router.add_post("/zaps/toggle", handle_toggle)
    app.router.add_post("/discover", handle_discover)
    app.router.add_post("/screenshot", handle_screenshot)
    app.router.add_post("/reset", handle_reset)

    return app


def main():
    """Run the session manager as a standalone HTTP service."""
    app = create_app()
    web.run_app(app, host=SESSION_MANAGER_HOST, port=SESSION_MANAGER_PORT)


if __name__ == "__main__":
    main()
