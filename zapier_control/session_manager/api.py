"""Authenticated calls to Zapier's internal JSON API.

Requests go through the browser page's request context, so the session
cookies ride along without being copied out of the browser.

Responses are classified into three outcomes:
    2xx                 -> ApiResponse(found)
    404 / "not found"   -> ApiResponse(absent); the caller falls back to the page
    401 / 403           -> AuthenticationExpired, after clearing the session
    anything else       -> RequestFailed
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Optional

from playwright.async_api import Error as PlaywrightError

from .. import config
from ..constants import ERROR_BODY_LIMIT, ZAPIER_BASE
from ..errors import AuthenticationExpired, RequestFailed
from .browser import BrowserSession

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


@dataclass
class ApiResponse:
    """Result of an internal API call that was not an error."""

    status: int
    data: Any = None
    absent: bool = False

    @property
    def found(self) -> bool:
        return not self.absent

    @classmethod
    def endpoint_absent(cls, status: int) -> ApiResponse:
        return cls(status=status, absent=True)


def is_not_found(status: int, body: str) -> bool:
    return status == 404 or "not found" in body.lower()


class InternalApi:
    """Thin client for the endpoint table in ``config.API_ENDPOINTS``."""

    def __init__(self, session: BrowserSession, endpoints: Optional[dict[str, str]] = None):
        self._session = session
        self._endpoints = endpoints or config.API_ENDPOINTS

    def path(self, name: str, **params: str) -> str:
        return self._endpoints[name].format(**params)

    async def get(self, name: str, query: Optional[dict[str, str]] = None, **params: str) -> ApiResponse:
        return await self.request("GET", self.path(name, **params), query=query)

    async def post(self, name: str, data: Optional[dict] = None, **params: str) -> ApiResponse:
        return await self.request("POST", self.path(name, **params), data=data)

    async def patch(self, name: str, data: dict, **params: str) -> ApiResponse:
        return await self.request("PATCH", self.path(name, **params), data=data)

    async def request(
        self,
        method: str,
        path: str,
        query: Optional[dict[str, str]] = None,
        data: Optional[dict] = None,
    ) -> ApiResponse:
        url = f"{ZAPIER_BASE}{path}"
        headers = {"Accept": "application/json"}
        kwargs: dict[str, Any] = {"method": method, "headers": headers, "timeout": config.BROWSER_TIMEOUT}
        if query:
            kwargs["params"] = query
        if data is not None or method != "GET":
            headers["Content-Type"] = "application/json"
            kwargs["data"] = data if data is not None else {}

        logger.info(f"[API] {method} {path} {query or ''}".rstrip())
        try:
            response = await self._session.request.fetch(url, **kwargs)
        except PlaywrightError as e:
            logger.warning(f"[API] {method} {path} transport error: {e}")
            raise RequestFailed(method, 0, "transport error", str(e)[:ERROR_BODY_LIMIT])
        status = response.status

        try:
            body = await response.text()
        except PlaywrightError:
            body = ""

        if response.ok:
            return ApiResponse(status=status, data=self._decode(body, path))

        if status in (401, 403):
            self._session.invalidate()
            raise AuthenticationExpired(status)

        if is_not_found(status, body):
            logger.info(f"[API] {method} {path} -> {status}, endpoint absent")
            return ApiResponse.endpoint_absent(status)

        raise RequestFailed(method, status, response.status_text, body[:ERROR_BODY_LIMIT])

    @staticmethod
    def _decode(body: str, path: str) -> Any:
        if not body.strip():
            return None
        try:
            return json.loads(body)
        except ValueError:
            logger.warning(f"[API] Non-JSON 2xx body from {path}: {body[:120]!r}")
            return None
