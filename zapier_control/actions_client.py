"""Client for Zapier's hosted MCP server (AI Actions).

Connects over streamable HTTP with a bearer token. The actions available
are whatever has been exposed to MCP in the Zapier account. This client
never touches the browser session.
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import AsyncExitStack
from typing import Any, Optional

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client

from .config import get_mcp_settings
from .errors import ZapierControlError

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class ActionFailed(ZapierControlError):
    """The remote action reported an error."""

    kind = "action_failed"


class ZapierActionsClient:
    """List and execute Zapier MCP actions."""

    def __init__(self, url: Optional[str] = None, api_key: Optional[str] = None):
        if not url or not api_key:
            settings = get_mcp_settings()
            url = url or settings["url"]
            api_key = api_key or settings["api_key"]
        self._url = url
        self._api_key = api_key
        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None

    async def __aenter__(self) -> ZapierActionsClient:
        await self.connect()
        return self

    async def __aexit__(self, *args):
        await self.disconnect()

    async def connect(self):
        if self._session is not None:
            return
        stack = AsyncExitStack()
        try:
            read, write, _ = await stack.enter_async_context(
                streamablehttp_client(
                    self._url, headers={"Authorization": f"Bearer {self._api_key}"}
                )
            )
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack
        self._session = session
        logger.info("Connected to Zapier MCP server.")

    async def disconnect(self):
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self._session = None

    async def list_tools(self) -> list:
        await self.connect()
        result = await self._session.list_tools()
        return result.tools

    async def list_available_actions(self) -> list[dict]:
        """Actions with their parameter schemas and required fields."""
        tools = await self.list_tools()
        return [
            {
                "name": t.name,
                "description": t.description,
                "parameters": (t.inputSchema or {}).get("properties", {}),
                "required": (t.inputSchema or {}).get("required", []),
            }
            for t in tools
        ]

    async def execute_action(self, name: str, params: dict[str, Any]) -> Any:
        """Call an action by name. JSON text results are decoded."""
        await self.connect()
        logger.info(f"Executing action '{name}'")
        result = await self._session.call_tool(name, arguments=params)
        text = next(
            (c.text for c in result.content if getattr(c, "type", "") == "text"), None
        )

        if result.isError:
            raise ActionFailed(text or "Tool call failed")

        if text is not None:
            try:
                return json.loads(text)
            except ValueError:
                return text
        return [c.model_dump() for c in result.content]
