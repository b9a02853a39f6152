import asyncio
from pathlib import Path

import pytest

from fakes import FakeElement, FakePage
from zapier_control.constants import (
    CONTINUE_SELECTOR,
    LOGIN_SUBMIT_SELECTOR,
    PASSWORD_SELECTOR,
    ZAPIER_LOGIN_URL,
)
from zapier_control.errors import ElementNotFound, InteractiveChallengeRequired, LoginFailed
from zapier_control.session_manager.challenge import CAPTCHA, TWO_FACTOR, classify_challenge
from zapier_control.session_manager.login import LoginProcedure, LoginState

CREDENTIALS = {"email": "ops@example.com", "password": "hunter2"}


def _login_page(**kwargs) -> FakePage:
    elements = {
        'input[type="email"]': FakeElement(),
        CONTINUE_SELECTOR: FakeElement(),
        PASSWORD_SELECTOR: FakeElement(),
        LOGIN_SUBMIT_SELECTOR: FakeElement(),
    }
    return FakePage(elements=elements, **kwargs)


def test_successful_login_walks_every_state() -> None:
    page = _login_page()
    procedure = LoginProcedure(page, CREDENTIALS)

    assert asyncio.run(procedure.run()) == LoginState.SUCCESS

    assert procedure.history == [
        LoginState.NAVIGATING_TO_LOGIN,
        LoginState.FILLING_EMAIL,
        LoginState.AWAITING_PASSWORD_STEP,
        LoginState.FILLING_PASSWORD,
        LoginState.SUBMITTING,
        LoginState.SUCCESS,
    ]
    assert page.visited == [ZAPIER_LOGIN_URL]
    assert page.elements['input[type="email"]'].filled == "ops@example.com"
    assert page.elements[PASSWORD_SELECTOR].filled == "hunter2"
    assert page.url == "https://zapier.com/app/zaps"


def test_enter_is_pressed_when_no_continue_button() -> None:
    page = _login_page()
    del page.elements[CONTINUE_SELECTOR]

    asyncio.run(LoginProcedure(page, CREDENTIALS).run())

    assert page.elements['input[type="email"]'].pressed == ["Enter"]


def test_two_factor_without_interaction_raises_with_screenshot() -> None:
    page = _login_page(
        login_succeeds=False, body_text="Enter the verification code we sent to your phone."
    )
    procedure = LoginProcedure(page, CREDENTIALS, interactive=False)

    with pytest.raises(InteractiveChallengeRequired) as excinfo:
        asyncio.run(procedure.run())

    error = excinfo.value
    assert error.challenge == TWO_FACTOR
    assert error.screenshot and Path(error.screenshot).exists()
    assert "-2fa-" in Path(error.screenshot).name
    assert "--debug" in str(error)
    assert procedure.history[-1] == LoginState.TWO_FACTOR_REQUIRED


def test_two_factor_interactive_waits_for_operator() -> None:
    page = _login_page(login_succeeds=False, body_text="Two-factor authentication")

    async def run_with_late_success():
        procedure = LoginProcedure(page, CREDENTIALS, interactive=True)
        original = page.wait_for_url
        calls = []

        async def wait_for_url(pattern, timeout=None):
            # The operator finishes 2FA during the second wait.
            calls.append(timeout)
            page.login_succeeds = len(calls) > 1
            await original(pattern, timeout=timeout)

        page.wait_for_url = wait_for_url
        return procedure, await procedure.run(), calls

    procedure, state, calls = asyncio.run(run_with_late_success())

    assert state == LoginState.SUCCESS
    assert calls == [60000, 120000]
    assert procedure.history[-2:] == [LoginState.TWO_FACTOR_REQUIRED, LoginState.SUCCESS]


def test_captcha_raises_with_screenshot() -> None:
    page = _login_page(login_succeeds=False, body_text="Checking your browser - Cloudflare")

    with pytest.raises(InteractiveChallengeRequired) as excinfo:
        asyncio.run(LoginProcedure(page, CREDENTIALS).run())

    assert excinfo.value.challenge == CAPTCHA
    assert Path(excinfo.value.screenshot).exists()


def test_captcha_message_names_the_widget() -> None:
    page = _login_page(login_succeeds=False, body_text="Please complete the captcha")
    page.elements["iframe[src*='recaptcha']"] = FakeElement()

    with pytest.raises(InteractiveChallengeRequired) as excinfo:
        asyncio.run(LoginProcedure(page, CREDENTIALS).run())

    assert "CAPTCHA/challenge (recaptcha) detected" in str(excinfo.value)


def test_failed_capture_is_reported_as_not_captured() -> None:
    page = _login_page(login_succeeds=False, body_text="Incorrect email or password.")

    async def broken_screenshot(path, full_page=False):
        raise RuntimeError("Target page, context or browser has been closed")

    page.screenshot = broken_screenshot

    with pytest.raises(LoginFailed) as excinfo:
        asyncio.run(LoginProcedure(page, CREDENTIALS).run())

    assert excinfo.value.screenshot is None
    assert "Screenshot: not captured" in str(excinfo.value)


def test_missing_email_field_raises_element_not_found() -> None:
    page = FakePage()

    with pytest.raises(ElementNotFound) as excinfo:
        asyncio.run(LoginProcedure(page, CREDENTIALS).run())

    assert "email field" in str(excinfo.value)
    assert "login-error-no-email" in excinfo.value.screenshot
    assert Path(excinfo.value.screenshot).exists()


def test_missing_password_field_raises_element_not_found() -> None:
    page = _login_page()
    del page.elements[PASSWORD_SELECTOR]

    with pytest.raises(ElementNotFound) as excinfo:
        asyncio.run(LoginProcedure(page, CREDENTIALS).run())

    assert "password field" in str(excinfo.value)


def test_unrecognised_failure_raises_login_failed() -> None:
    page = _login_page(login_succeeds=False, body_text="Incorrect email or password.")

    with pytest.raises(LoginFailed) as excinfo:
        asyncio.run(LoginProcedure(page, CREDENTIALS).run())

    assert excinfo.value.url == ZAPIER_LOGIN_URL
    assert Path(excinfo.value.screenshot).exists()


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Enter your 2FA code", TWO_FACTOR),
        ("Security challenge: verification code required", TWO_FACTOR),
        ("Please complete the CAPTCHA", CAPTCHA),
        ("Welcome back", None),
    ],
)
def test_classify_challenge(text: str, expected) -> None:
    assert classify_challenge(text) == expected
