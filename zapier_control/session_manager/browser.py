"""Browser lifecycle, session probing, and login for Zapier."""

from __future__ import annotations

import logging
import sys
from typing import Optional

import httpx
from camoufox.async_api import AsyncCamoufox
from playwright.async_api import APIRequestContext, Browser, BrowserContext, Page, async_playwright
from playwright.async_api import Error as PlaywrightError

from .. import config
from ..constants import API, CHROMIUM_ARGS, USER_AGENT, VIEWPORT, ZAPIER_BASE
from ..models.session import LiveProcessHandle, SessionStatus
from ..models.zap import OperationResult
from .login import LoginProcedure
from .screenshots import capture_screenshot
from .store import SessionStore

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class BrowserSession:
    """Owns the driven browser and the authenticated Zapier session.

    At most one browser context is held per instance. The session store is
    injected so tests can point it at a temporary directory.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        interactive: bool = False,
        engine: Optional[str] = None,
    ):
        self.store = store or SessionStore(config.SESSION_DIR)
        self.interactive = interactive
        self.engine = engine or config.BROWSER_ENGINE
        self._playwright = None
        self._camoufox = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._is_authenticated: bool = False
        self._connected_over_cdp: bool = False

    @property
    def is_running(self) -> bool:
        return self._page is not None

    @property
    def is_authenticated(self) -> bool:
        return self._is_authenticated

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser is not running.")
        return self._page

    @property
    def request(self) -> APIRequestContext:
        """Cookie-bearing request context of the active page."""
        return self.page.request

    # ── Lifecycle ──

    async def ensure_ready(self) -> Page:
        """Return a usable page: reconnect, reuse, or launch, in that order."""
        handle = self.store.load_handle()
        if handle and self._browser is None:
            page = await self._reconnect(handle)
            if page:
                return page

        if self._page is not None:
            return self._page

        return await self._launch()

    async def _reconnect(self, handle: LiveProcessHandle) -> Optional[Page]:
        logger.info(f"Reconnecting to browser at {handle.ws_endpoint} (created {handle.created_at})...")
        try:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            browser = await self._playwright.chromium.connect_over_cdp(
                handle.ws_endpoint, timeout=config.SESSION_CHECK_TIMEOUT
            )
            if browser.contexts:
                context = browser.contexts[0]
            else:
                context = await browser.new_context(
                    viewport=VIEWPORT, user_agent=USER_AGENT, storage_state=self.store.load()
                )
            page = context.pages[0] if context.pages else await context.new_page()
        except PlaywrightError as e:
            # Stale handle: the process is gone. Start over from scratch.
            logger.warning(f"Reconnection failed, clearing session: {e}")
            self.store.clear()
            await self._stop_playwright()
            return None

        self._browser = browser
        self._context = context
        self._page = page
        self._connected_over_cdp = True
        logger.info("Reconnected to existing browser.")
        return page

    async def _launch(self) -> Page:
        headless = not self.interactive
        storage_state = self.store.load()
        logger.info(
            f"Launching {self.engine} (headless={headless}, "
            f"restoring_state={storage_state is not None})..."
        )

        if self.engine == "camoufox":
            self._camoufox = AsyncCamoufox(
                headless=headless,
                humanize=True,
                geoip=True,
                i_know_what_im_doing=True,
                config={"forceScopeAccess": True},
                disable_coop=True,
            )
            self._browser = await self._camoufox.__aenter__()
            self._context = await self._browser.new_context(
                viewport=VIEWPORT,
                user_agent=None,  # Let Camoufox handle fingerprinting
                storage_state=storage_state,
            )
        else:
            args = list(CHROMIUM_ARGS)
            if config.BROWSER_CDP_PORT:
                args.append(f"--remote-debugging-port={config.BROWSER_CDP_PORT}")
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=headless, args=args)
            self._context = await self._browser.new_context(
                viewport=VIEWPORT, user_agent=USER_AGENT, storage_state=storage_state
            )

        self._page = await self._context.new_page()
        self._page.set_default_timeout(config.BROWSER_TIMEOUT)
        self._connected_over_cdp = False

        ws_endpoint = await self._discover_ws_endpoint()
        if ws_endpoint:
            self.store.save_handle(ws_endpoint)
            logger.info(f"Saved live-process handle: {ws_endpoint}")
        return self._page

    async def _discover_ws_endpoint(self) -> Optional[str]:
        """Ask the DevTools port for the browser's websocket endpoint."""
        if self.engine != "chromium" or not config.BROWSER_CDP_PORT:
            return None
        url = f"http://127.0.0.1:{config.BROWSER_CDP_PORT}/json/version"
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.json().get("webSocketDebuggerUrl")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not read DevTools endpoint from {url}: {e}")
            return None

    # ── Authentication ──

    async def is_session_valid(self) -> bool:
        """Check the session against a lightweight authenticated endpoint."""
        if self._page is None:
            return False
        url = f"{ZAPIER_BASE}{config.API_ENDPOINTS.get('me', API['me'])}"
        try:
            response = await self._page.request.get(
                url, headers={"Accept": "application/json"}, timeout=config.SESSION_CHECK_TIMEOUT
            )
            return response.ok
        except PlaywrightError as e:
            logger.warning(f"Session check failed: {e}")
            return False

    async def ensure_logged_in(self, credentials: Optional[dict[str, str]] = None) -> Page:
        """Guarantee an authenticated page, logging in if the session check fails.

        Credentials are resolved before any browser work so a missing
        configuration fails fast.
        """
        credentials = credentials or config.get_credentials()
        page = await self.ensure_ready()

        if await self.is_session_valid():
            logger.info("Session valid, skipping login.")
            self._is_authenticated = True
            return page

        logger.info("Session invalid, starting login flow...")
        self._is_authenticated = False
        await LoginProcedure(page, credentials, interactive=self.interactive).run()
        await self.save_storage_state()
        self._is_authenticated = True
        logger.info(f"Login successful, landed on: {page.url}")
        return page

    async def save_storage_state(self):
        """Snapshot cookies + localStorage into the volatile store."""
        if self._context is None:
            return
        self.store.save(await self._context.storage_state())

    def invalidate(self):
        """Forget the session after the server rejected it."""
        logger.warning("Session rejected by Zapier, clearing saved session.")
        self._is_authenticated = False
        self.store.clear()

    # ── Utilities ──

    async def take_screenshot(
        self, filename: Optional[str] = None, full_page: bool = False
    ) -> OperationResult:
        page = await self.ensure_ready()
        path = await capture_screenshot(page, "screenshot", full_page=full_page, filename=filename)
        if path is None:
            return OperationResult(success=False, message=f"Screenshot of {page.url} failed.")
        return OperationResult(success=True, message=f"Screenshot of {page.url}", screenshot=path)

    def status(self) -> SessionStatus:
        if self._is_authenticated:
            state = "active"
        elif self.is_running:
            state = "running"
        else:
            state = "not_running"
        return SessionStatus(
            is_running=self.is_running,
            is_authenticated=self._is_authenticated,
            state=state,
            engine=self.engine,
            has_storage_state=self.store.has_state(),
            live_handle=self.store.load_handle(),
        )

    # ── Shutdown ──

    async def close(self):
        """End this process's use of the browser, keeping the login for next time."""
        if self._context is not None and self._is_authenticated:
            try:
                await self.save_storage_state()
            except PlaywrightError as e:
                logger.warning(f"Could not save storage state on close: {e}")
        connected = self._connected_over_cdp
        await self._teardown()
        if not connected:
            # We launched it, so the process dies with us.
            self.store.clear_handle()

    async def reset(self) -> OperationResult:
        """Close the browser and clear all saved state. Never raises."""
        error: Optional[Exception] = None
        try:
            await self._teardown()
        except Exception as e:
            logger.warning(f"Error closing browser during reset: {e}")
            error = e
        try:
            self.store.clear()
        except OSError as e:
            error = error or e

        if error:
            return OperationResult(success=False, message=f"Reset failed: {error}")
        return OperationResult(success=True, message="Browser session closed and cleared.")

    async def _teardown(self):
        logger.info("Stopping browser session...")
        self._is_authenticated = False
        try:
            if self._camoufox is not None:
                await self._camoufox.__aexit__(None, None, None)
            elif self._browser is not None:
                await self._browser.close()
        finally:
            self._camoufox = None
            self._browser = None
            self._context = None
            self._page = None
            self._connected_over_cdp = False
            await self._stop_playwright()
        logger.info("Browser session stopped.")

    async def _stop_playwright(self):
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except PlaywrightError as e:
                logger.warning(f"Error stopping playwright: {e}")
            finally:
                self._playwright = None
