"""Small stand-ins for the Playwright objects the session code touches."""

from __future__ import annotations

import inspect
import json
from pathlib import Path
from typing import Any

from playwright.async_api import TimeoutError as PlaywrightTimeoutError


class FakeResponse:
    """An APIResponse from ``page.request``."""

    def __init__(self, status: int, body: Any = "", status_text: str = ""):
        self.status = status
        self.status_text = status_text
        self._body = body if isinstance(body, str) else json.dumps(body)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    async def text(self) -> str:
        return self._body


class FakeRequestContext:
    """Queue of canned responses for ``fetch`` plus a fixed status for the session check."""

    def __init__(self, responses=None, me_status: int = 200):
        self.responses = list(responses or [])
        self.me_status = me_status
        self.fetches: list[dict] = []
        self.session_checks: list[str] = []

    async def fetch(self, url, **kwargs):
        self.fetches.append({"url": url, **kwargs})
        return self.responses.pop(0)

    async def get(self, url, **kwargs):
        self.session_checks.append(url)
        return FakeResponse(self.me_status)


class FakeNetworkResponse:
    """A page ``response`` event."""

    class _Request:
        def __init__(self, method):
            self.method = method

    def __init__(self, url: str, payload: Any = None, status: int = 200, method: str = "GET"):
        self.url = url
        self.status = status
        self.request = self._Request(method)
        self._payload = payload

    async def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


class FakeElement:
    def __init__(self, visible: bool = True, attributes: dict | None = None):
        self.visible = visible
        self.attributes = attributes or {}
        self.clicks = 0
        self.filled: str | None = None
        self.pressed: list[str] = []

    async def is_visible(self):
        return self.visible

    async def click(self):
        self.clicks += 1

    async def fill(self, value):
        self.filled = value

    async def press(self, key):
        self.pressed.append(key)

    async def get_attribute(self, name):
        return self.attributes.get(name)


class FakePage:
    """Enough of a Playwright Page for login, fallback, and screenshots."""

    def __init__(
        self,
        elements: dict | None = None,
        body_text: str = "",
        html: str = "<html><body></body></html>",
        request: FakeRequestContext | None = None,
        network: dict | None = None,
        login_succeeds: bool = True,
        url: str = "about:blank",
    ):
        self.elements = elements or {}
        self.body_text = body_text
        self.html = html
        self.request = request or FakeRequestContext()
        self.network = network or {}
        self.login_succeeds = login_succeeds
        self.url = url
        self.visited: list[str] = []
        self.screenshots: list[str] = []
        self.evaluated: list[tuple] = []
        self.evaluate_result: Any = False
        self._listeners: dict[str, list] = {}

    def on(self, event, callback):
        self._listeners.setdefault(event, []).append(callback)

    def remove_listener(self, event, callback):
        self._listeners[event].remove(callback)

    def listener_count(self, event) -> int:
        return len(self._listeners.get(event, []))

    def set_default_timeout(self, timeout):
        pass

    async def goto(self, url, **kwargs):
        self.url = url
        self.visited.append(url)
        for response in self.network.get(url, []):
            for callback in list(self._listeners.get("response", [])):
                result = callback(response)
                if inspect.isawaitable(result):
                    await result

    async def wait_for_timeout(self, ms):
        pass

    async def wait_for_selector(self, selector, state=None, timeout=None):
        element = self.elements.get(selector)
        if element is None:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms waiting for {selector}")
        return element

    async def wait_for_url(self, pattern, timeout=None):
        if not self.login_succeeds:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms waiting for navigation")
        self.url = "https://zapier.com/app/zaps"

    async def query_selector(self, selector):
        return self.elements.get(selector)

    async def text_content(self, selector):
        return self.body_text

    async def content(self):
        return self.html

    async def evaluate(self, script, arg=None):
        self.evaluated.append((script, arg))
        return self.evaluate_result

    async def screenshot(self, path, full_page=False):
        Path(path).write_bytes(b"\x89PNG fake")
        self.screenshots.append(path)


class FakeContext:
    def __init__(self, state: dict | None = None):
        self.state = state or {"cookies": [{"name": "session", "value": "fresh"}], "origins": []}

    async def storage_state(self):
        return self.state


class FakeBrowser:
    def __init__(self, fail_on_close: bool = False):
        self.fail_on_close = fail_on_close
        self.closed = False

    async def close(self):
        self.closed = True
        if self.fail_on_close:
            raise RuntimeError("browser already gone")


def running_session(session, page: FakePage, context: FakeContext | None = None, browser=None):
    """Attach fake browser objects to a BrowserSession without launching anything."""
    session._page = page
    session._context = context or FakeContext()
    session._browser = browser
    return session


class FakeCdpContext:
    def __init__(self, pages=None):
        self.pages = list(pages or [])

    async def new_page(self):
        page = FakePage()
        self.pages.append(page)
        return page


class FakeCdpBrowser(FakeBrowser):
    def __init__(self, contexts=None):
        super().__init__()
        self.contexts = list(contexts or [])


class FakePlaywright:
    """Stands in for ``async_playwright()``; only ``connect_over_cdp`` is supported."""

    def __init__(self, browser: FakeCdpBrowser | None = None, error: Exception | None = None):
        self.browser = browser
        self.error = error
        self.connected_to: list[str] = []
        self.stopped = False
        self.chromium = self

    def __call__(self):
        return self

    async def start(self):
        return self

    async def stop(self):
        self.stopped = True

    async def connect_over_cdp(self, endpoint, timeout=None):
        self.connected_to.append(endpoint)
        if self.error:
            raise self.error
        return self.browser
