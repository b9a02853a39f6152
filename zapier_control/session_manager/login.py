"""Zapier credential login as an explicit state machine.

Zapier's login is multi-step: email → Continue → password → Continue, with
an optional verification code or bot challenge afterwards. Each state is a
coroutine that performs one step and returns the next state; the terminal
states decide whether the login succeeded or which error to raise.
"""

from __future__ import annotations

import logging
import sys
from enum import Enum
from typing import Optional

from playwright.async_api import ElementHandle, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .. import config
from ..constants import (
    CONTINUE_SELECTOR,
    COOKIE_CONSENT_SELECTOR,
    EMAIL_SELECTORS,
    LOGGED_IN_URL_PATTERN,
    LOGIN_SUBMIT_SELECTOR,
    PASSWORD_SELECTOR,
    ZAPIER_LOGIN_URL,
)
from ..errors import ElementNotFound, InteractiveChallengeRequired, LoginFailed
from .challenge import CAPTCHA, TWO_FACTOR, detect_captcha_element, detect_challenge
from .screenshots import capture_screenshot

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class LoginState(str, Enum):
    NAVIGATING_TO_LOGIN = "navigating_to_login"
    FILLING_EMAIL = "filling_email"
    AWAITING_PASSWORD_STEP = "awaiting_password_step"
    FILLING_PASSWORD = "filling_password"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    TWO_FACTOR_REQUIRED = "two_factor_required"
    CAPTCHA_REQUIRED = "captcha_required"
    GENERIC_FAILURE = "generic_failure"


TERMINAL_STATES = {
    LoginState.SUCCESS,
    LoginState.TWO_FACTOR_REQUIRED,
    LoginState.CAPTCHA_REQUIRED,
    LoginState.GENERIC_FAILURE,
}


class LoginProcedure:
    """Drives one login attempt on an already-open page.

    Returns ``LoginState.SUCCESS`` from ``run()`` or raises. Persisting the
    resulting session is the caller's job.
    """

    def __init__(self, page: Page, credentials: dict[str, str], interactive: bool = False):
        self.page = page
        self.credentials = credentials
        self.interactive = interactive
        self.history: list[LoginState] = []
        self._factor = config.DEBUG_TIMEOUT_FACTOR if interactive else 1
        self._email_field: Optional[ElementHandle] = None
        self._password_field: Optional[ElementHandle] = None

    async def run(self) -> LoginState:
        handlers = {
            LoginState.NAVIGATING_TO_LOGIN: self._navigate,
            LoginState.FILLING_EMAIL: self._fill_email,
            LoginState.AWAITING_PASSWORD_STEP: self._await_password_step,
            LoginState.FILLING_PASSWORD: self._fill_password,
            LoginState.SUBMITTING: self._submit,
        }
        state = LoginState.NAVIGATING_TO_LOGIN
        while state not in TERMINAL_STATES:
            self.history.append(state)
            logger.info(f"[LOGIN] {state.value}")
            state = await handlers[state]()
        self.history.append(state)
        logger.info(f"[LOGIN] {state.value} (url: {self.page.url})")
        return await self._finish(state)

    # ── Steps ──

    async def _navigate(self) -> LoginState:
        await self.page.goto(
            ZAPIER_LOGIN_URL,
            wait_until="domcontentloaded",
            timeout=config.LOGIN_NAVIGATION_TIMEOUT,
        )
        await self.page.wait_for_timeout(3000)
        if self.interactive:
            await capture_screenshot(self.page, "login")
        return LoginState.FILLING_EMAIL

    async def _fill_email(self) -> LoginState:
        for selector in EMAIL_SELECTORS:
            try:
                self._email_field = await self.page.wait_for_selector(
                    selector, timeout=config.EMAIL_FIELD_TIMEOUT * self._factor
                )
            except PlaywrightError:
                continue
            if self._email_field:
                logger.info(f"[LOGIN] Email field matched '{selector}'")
                break

        if not self._email_field:
            screenshot = await capture_screenshot(self.page, "login-error-no-email")
            raise ElementNotFound(
                f"Could not find email field. Screenshot: {screenshot or 'not captured'}", screenshot=screenshot
            )

        await self._dismiss_cookie_banner()
        await self._email_field.fill(self.credentials["email"])
        await self._press_continue(CONTINUE_SELECTOR, self._email_field)
        return LoginState.AWAITING_PASSWORD_STEP

    async def _await_password_step(self) -> LoginState:
        await self.page.wait_for_timeout(4000)
        if self.interactive:
            await capture_screenshot(self.page, "after-continue")
            logger.info(f"[LOGIN] After continue, URL: {self.page.url}")
        try:
            self._password_field = await self.page.wait_for_selector(
                PASSWORD_SELECTOR,
                state="visible",
                timeout=config.PASSWORD_FIELD_TIMEOUT * self._factor,
            )
        except PlaywrightError:
            self._password_field = None

        if not self._password_field:
            screenshot = await capture_screenshot(self.page, "login-error-no-password")
            raise ElementNotFound(
                f"Could not find password field after clicking Continue. Screenshot: {screenshot or 'not captured'}",
                screenshot=screenshot,
            )
        return LoginState.FILLING_PASSWORD

    async def _fill_password(self) -> LoginState:
        await self._password_field.fill(self.credentials["password"])
        return LoginState.SUBMITTING

    async def _submit(self) -> LoginState:
        await self._press_continue(LOGIN_SUBMIT_SELECTOR, self._password_field)
        try:
            await self.page.wait_for_url(
                LOGGED_IN_URL_PATTERN, timeout=config.LOGIN_NAVIGATION_TIMEOUT
            )
            return LoginState.SUCCESS
        except PlaywrightTimeoutError:
            logger.warning(f"[LOGIN] Still not past login after submit (url: {self.page.url})")

        challenge = await detect_challenge(self.page)
        if challenge == TWO_FACTOR:
            return LoginState.TWO_FACTOR_REQUIRED
        if challenge == CAPTCHA:
            return LoginState.CAPTCHA_REQUIRED
        return LoginState.GENERIC_FAILURE

    # ── Outcomes ──

    async def _finish(self, state: LoginState) -> LoginState:
        if state == LoginState.SUCCESS:
            return state

        if state == LoginState.TWO_FACTOR_REQUIRED:
            screenshot = await capture_screenshot(self.page, "2fa")
            if not self.interactive:
                raise InteractiveChallengeRequired(
                    f"2FA required. Screenshot: {screenshot or 'not captured'}. "
                    "Run with --debug flag and complete 2FA manually, then retry.",
                    challenge=TWO_FACTOR,
                    screenshot=screenshot,
                )
            wait_s = config.TWO_FACTOR_TIMEOUT // 1000
            logger.info(f"[LOGIN] 2FA detected. Complete it in the browser window. Waiting up to {wait_s}s...")
            try:
                await self.page.wait_for_url(LOGGED_IN_URL_PATTERN, timeout=config.TWO_FACTOR_TIMEOUT)
            except PlaywrightTimeoutError:
                raise InteractiveChallengeRequired(
                    f"2FA not completed within {wait_s}s. Screenshot: {screenshot or 'not captured'}",
                    challenge=TWO_FACTOR,
                    screenshot=screenshot,
                )
            self.history.append(LoginState.SUCCESS)
            return LoginState.SUCCESS

        if state == LoginState.CAPTCHA_REQUIRED:
            screenshot = await capture_screenshot(self.page, "captcha")
            widget = await detect_captcha_element(self.page)
            label = f"CAPTCHA/challenge ({widget})" if widget else "CAPTCHA/challenge"
            raise InteractiveChallengeRequired(
                f"{label} detected. Screenshot: {screenshot or 'not captured'}. Run with --debug flag and solve manually.",
                challenge=CAPTCHA,
                screenshot=screenshot,
            )

        screenshot = await capture_screenshot(self.page, "login-failed")
        raise LoginFailed(self.page.url, screenshot=screenshot)

    # ── Helpers ──

    async def _dismiss_cookie_banner(self):
        try:
            button = await self.page.query_selector(COOKIE_CONSENT_SELECTOR)
            if button:
                await button.click()
                logger.info("[LOGIN] Cookie banner dismissed")
                await self.page.wait_for_timeout(1000)
        except PlaywrightError as e:
            logger.debug(f"[LOGIN] Cookie banner not dismissed: {e}")

    async def _press_continue(self, selector: str, field: ElementHandle):
        button = await self.page.query_selector(selector)
        if button:
            await button.click()
            logger.info("[LOGIN] Continue clicked")
        else:
            await field.press("Enter")
            logger.info("[LOGIN] Enter pressed in field")
