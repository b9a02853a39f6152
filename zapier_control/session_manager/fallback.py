"""Page-driven fallbacks for when the internal API is missing or refuses.

Reads navigate to the matching Zapier screen and capture the JSON the web
client itself fetches. Writes locate and click the real controls.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Callable, Optional

from playwright.async_api import ElementHandle, Page, Response
from playwright.async_api import Error as PlaywrightError

from .. import config
from ..constants import DISCOVERY_URL_MARKERS
from .browser import BrowserSession

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

UrlMatcher = Callable[[str], bool]
PayloadMatcher = Callable[[Any], bool]


class PageFallback:
    """Browser-side procedures run against the session's current page."""

    def __init__(self, session: BrowserSession):
        self._session = session

    @property
    def page(self) -> Page:
        return self._session.page

    async def goto(self, url: str):
        """Navigate, retrying once with a laxer wait condition."""
        logger.info(f"[FALLBACK] Navigating to {url}")
        try:
            await self.page.goto(url, wait_until="domcontentloaded", timeout=config.BROWSER_TIMEOUT)
        except PlaywrightError as e:
            logger.warning(f"[FALLBACK] domcontentloaded timed out, retrying with commit: {e}")
            await self.page.goto(url, wait_until="commit", timeout=config.BROWSER_TIMEOUT * 2)

    async def capture_json(
        self,
        url: str,
        url_matches: UrlMatcher,
        payload_matches: PayloadMatcher,
        timeout_ms: Optional[int] = None,
    ) -> Any:
        """Navigate to ``url`` and return the first matching JSON response.

        Only responses seen during this navigation are considered. Returns
        None if nothing matched within the timeout.
        """
        page = self.page
        timeout_s = (timeout_ms or config.INTERCEPT_TIMEOUT) / 1000
        loop = asyncio.get_running_loop()
        captured: asyncio.Future = loop.create_future()

        async def on_response(response: Response):
            if captured.done() or response.status != 200 or not url_matches(response.url):
                return
            try:
                payload = await response.json()
            except (PlaywrightError, ValueError):
                return  # not JSON
            if payload_matches(payload) and not captured.done():
                logger.info(f"[FALLBACK] Captured {response.url}")
                captured.set_result(payload)

        deadline = loop.time() + timeout_s
        page.on("response", on_response)
        try:
            await self.goto(url)
            remaining = max(0.0, deadline - loop.time())
            try:
                return await asyncio.wait_for(captured, timeout=remaining)
            except asyncio.TimeoutError:
                logger.info(f"[FALLBACK] No matching response within {timeout_s:.0f}s on {url}")
                return None
        finally:
            page.remove_listener("response", on_response)

    async def record_api_traffic(self, url: str, settle_ms: int = 5000) -> list[str]:
        """Navigate and list every Zapier API response seen, as ``METHOD url → status``."""
        page = self.page
        seen: list[str] = []

        def on_response(response: Response):
            if any(marker in response.url for marker in DISCOVERY_URL_MARKERS):
                seen.append(f"{response.request.method} {response.url} → {response.status}")

        page.on("response", on_response)
        try:
            await self.goto(url)
            await page.wait_for_timeout(settle_ms)
        finally:
            page.remove_listener("response", on_response)
        logger.info(f"[FALLBACK] Recorded {len(seen)} API responses on {url}")
        return seen

    async def find_control(
        self, selectors: list[str], require_visible: bool = True
    ) -> Optional[ElementHandle]:
        """Return the first element matching the candidate selectors, in order."""
        for selector in selectors:
            try:
                element = await self.page.query_selector(selector)
                if element and (not require_visible or await element.is_visible()):
                    logger.info(f"[UI] Matched control '{selector}'")
                    return element
            except PlaywrightError:
                continue
        return None

    async def confirm_dialog(self, selector: str) -> bool:
        """Click a confirmation button if the UI shows one."""
        button = await self.page.query_selector(selector)
        if button and await button.is_visible():
            await button.click()
            logger.info("[UI] Confirmation dialog accepted")
            await self.page.wait_for_timeout(2000)
            return True
        return False

    async def page_html(self) -> str:
        try:
            return await self.page.content()
        except PlaywrightError as e:
            logger.warning(f"[FALLBACK] Could not read page content: {e}")
            return ""
