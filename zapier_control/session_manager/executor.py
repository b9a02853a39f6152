"""Zap operations with an internal-API primary path and a page fallback.

Every read follows the same two steps:

    primary  = internal API call -> ApiResponse(found | absent)
    fallback = only when absent: drive the page and capture its XHR traffic

Writes (replay, toggle) try the API once and switch to clicking the real
controls on any failure. A missing control is reported as a failed
OperationResult with a screenshot rather than raised.

Callers must obtain explicit confirmation before replay_run or toggle_zap;
nothing here asks.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional
from urllib.parse import urlencode

from playwright.async_api import Error as PlaywrightError

from .. import config
from ..constants import (
    REPLAY_CONFIRM_SELECTOR,
    REPLAY_SELECTORS,
    TOGGLE_BY_ROW_SCRIPT,
    TOGGLE_CONFIRM_SELECTOR,
    TOGGLE_SELECTORS,
    ZAPIER_HISTORY_URL,
    ZAPIER_RUN_URL,
    ZAPIER_ZAPS_URL,
)
from ..errors import ZapierControlError
from ..models.zap import OperationResult, RunDetail, RunRecord, ZapSummary
from . import normalizer
from .api import InternalApi
from .browser import BrowserSession
from .fallback import PageFallback
from .screenshots import capture_screenshot

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def _zaps_url(url: str) -> bool:
    return "/zap" in url and "api" in url


def _runs_url(url: str) -> bool:
    return ("run" in url or "history" in url) and "api" in url


def clamp_limit(limit: Optional[int]) -> int:
    if not limit:
        return config.DEFAULT_HISTORY_LIMIT
    return max(1, min(int(limit), config.MAX_HISTORY_LIMIT))


class ZapExecutor:
    """Runs Zap operations against an authenticated browser session."""

    def __init__(
        self,
        session: BrowserSession,
        api: Optional[InternalApi] = None,
        fallback: Optional[PageFallback] = None,
    ):
        self.session = session
        self.api = api or InternalApi(session)
        self.fallback = fallback or PageFallback(session)

    # ── Reads ──

    async def list_zaps(self) -> list[ZapSummary]:
        """List all Zaps with their on/off/draft/error status."""
        await self.session.ensure_logged_in()

        response = await self.api.get("zaps")
        if response.found:
            return normalizer.normalize_zaps(response.data)

        logger.info("[FALLBACK] Zaps endpoint absent, reading the Zaps page instead.")
        payload = await self.fallback.capture_json(
            ZAPIER_ZAPS_URL, _zaps_url, normalizer.has_items
        )
        return normalizer.normalize_zaps(payload)

    async def view_history(
        self, zap_id: Optional[str] = None, limit: Optional[int] = None
    ) -> list[RunRecord]:
        """List recent runs, optionally for one Zap."""
        limit = clamp_limit(limit)
        query = {"limit": str(limit)}
        if zap_id:
            query["zap"] = str(zap_id)

        await self.session.ensure_logged_in()

        response = await self.api.get("zap_runs", query=query)
        if response.found:
            return normalizer.normalize_runs(response.data, limit=limit)

        logger.info("[FALLBACK] Runs endpoint absent, reading the History page instead.")
        url = f"{ZAPIER_HISTORY_URL}?{urlencode({'zap': zap_id})}" if zap_id else ZAPIER_HISTORY_URL
        payload = await self.fallback.capture_json(url, _runs_url, normalizer.has_items)
        return normalizer.normalize_runs(payload, limit=limit)

    async def view_error(self, run_id: str) -> RunDetail:
        """Step-by-step detail for one run, for diagnosis before a replay."""
        run_id = str(run_id)
        await self.session.ensure_logged_in()

        response = await self.api.get("zap_run", run_id=run_id)
        if response.found:
            return normalizer.normalize_run_detail(response.data, run_id)

        logger.info(f"[FALLBACK] Run endpoint absent, opening run page for {run_id}.")
        payload = await self.fallback.capture_json(
            ZAPIER_RUN_URL.format(run_id=run_id),
            lambda url: run_id in url,
            lambda data: isinstance(data, dict) and ("id" in data or "status" in data),
        )
        if payload is not None:
            return normalizer.normalize_run_detail(payload, run_id)

        # Nothing captured: fall back to what the page shows.
        await capture_screenshot(self.fallback.page, "error-detail")
        html = await self.fallback.page_html()
        return normalizer.run_detail_from_page_text(run_id, html)

    # ── Writes ──

    async def replay_run(self, run_id: str) -> OperationResult:
        """Replay a run. Requires prior operator confirmation."""
        run_id = str(run_id)
        await self.session.ensure_logged_in()

        try:
            response = await self.api.post("zap_run_replay", run_id=run_id)
            if response.found:
                return OperationResult(
                    success=True, message=f"Run {run_id} replayed successfully via API."
                )
            logger.info("[API] Replay endpoint absent, switching to UI.")
        except (ZapierControlError, PlaywrightError) as e:
            logger.warning(f"[API] Replay via API failed, switching to UI: {e}")

        return await self._replay_via_ui(run_id)

    async def _replay_via_ui(self, run_id: str) -> OperationResult:
        page = self.fallback.page
        await self.fallback.goto(ZAPIER_RUN_URL.format(run_id=run_id))
        await page.wait_for_timeout(3000)

        button = await self.fallback.find_control(REPLAY_SELECTORS)
        if button:
            await button.click()
            logger.info(f"[UI] Replay clicked for run {run_id}")

        await page.wait_for_timeout(3000)
        screenshot = await capture_screenshot(page, "replay")
        if not button:
            return OperationResult(
                success=False,
                message=f"Could not find Replay button for run {run_id}." + (" See screenshot." if screenshot else ""),
                screenshot=screenshot,
            )

        await self.fallback.confirm_dialog(REPLAY_CONFIRM_SELECTOR)
        screenshot = await capture_screenshot(page, "replay-confirm")
        return OperationResult(
            success=True,
            message=f"Run {run_id} replay initiated via UI.",
            screenshot=screenshot,
        )

    async def toggle_zap(self, zap_id: str, enable: bool) -> OperationResult:
        """Turn a Zap on or off. Requires prior operator confirmation."""
        zap_id = str(zap_id)
        verb = "enabled" if enable else "disabled"
        await self.session.ensure_logged_in()

        try:
            response = await self.api.patch("zap", {"status": "on" if enable else "off"}, zap_id=zap_id)
            if response.found:
                return OperationResult(success=True, message=f"Zap {zap_id} {verb} via API.")
            logger.info("[API] Zap endpoint absent, switching to UI.")
        except (ZapierControlError, PlaywrightError) as e:
            logger.warning(f"[API] Toggle via API failed, switching to UI: {e}")

        return await self._toggle_via_ui(zap_id, enable, verb)

    async def _toggle_via_ui(self, zap_id: str, enable: bool, verb: str) -> OperationResult:
        page = self.fallback.page
        await self.fallback.goto(ZAPIER_ZAPS_URL)
        await page.wait_for_timeout(5000)

        selectors = [selector.format(zap_id=zap_id) for selector in TOGGLE_SELECTORS]
        control = await self.fallback.find_control(selectors, require_visible=False)
        if control:
            if await self._switch_state(control) is enable:
                screenshot = await capture_screenshot(page, "toggle")
                return OperationResult(
                    success=True, message=f"Zap {zap_id} already {verb}.", screenshot=screenshot
                )
            await control.click()
            toggled = True
        else:
            # No data-zap-id attributes: find the switch by the row's content.
            toggled = bool(await page.evaluate(TOGGLE_BY_ROW_SCRIPT, zap_id))

        await page.wait_for_timeout(3000)
        screenshot = await capture_screenshot(page, "toggle")
        if not toggled:
            return OperationResult(
                success=False,
                message=f"Could not find toggle for Zap {zap_id}." + (" See screenshot." if screenshot else ""),
                screenshot=screenshot,
            )

        # Zapier may ask to confirm turning a Zap off.
        await self.fallback.confirm_dialog(TOGGLE_CONFIRM_SELECTOR)
        screenshot = await capture_screenshot(page, "toggle-confirm")
        return OperationResult(
            success=True, message=f"Zap {zap_id} {verb} via UI.", screenshot=screenshot
        )

    @staticmethod
    async def _switch_state(control) -> Optional[bool]:
        try:
            checked = await control.get_attribute("aria-checked")
        except PlaywrightError:
            return None
        if checked in ("true", "false"):
            return checked == "true"
        return None

    # ── Developer tools ──

    async def discover_endpoints(self) -> dict:
        """Record the internal API calls the Zaps and History pages make."""
        await self.session.ensure_logged_in()
        discovered = {
            "zaps_page": await self.fallback.record_api_traffic(ZAPIER_ZAPS_URL),
            "history_page": await self.fallback.record_api_traffic(ZAPIER_HISTORY_URL),
        }
        discovered["screenshot"] = await capture_screenshot(self.fallback.page, "discovery")
        return discovered
