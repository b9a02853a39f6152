"""Error taxonomy for Zapier session and request failures.

Every error serialises to a JSON payload via ``to_dict()`` so the service and
CLI layers can return a single structured value for any failure.
"""

from __future__ import annotations

from typing import Optional


class ZapierControlError(Exception):
    """Base class for all errors surfaced to callers."""

    kind = "error"

    def to_dict(self) -> dict:
        return {"error": str(self), "kind": self.kind}


class ConfigurationMissing(ZapierControlError):
    """Required configuration (credentials, MCP endpoint) is absent. Not retryable."""

    kind = "configuration_missing"


class AuthenticationExpired(ZapierControlError):
    """The internal API rejected the session (401/403). Session was cleared; retry."""

    kind = "authentication_expired"

    def __init__(self, status: int):
        super().__init__(f"Authentication failed ({status}). Session cleared, retry to re-login.")
        self.status = status

    def to_dict(self) -> dict:
        return {**super().to_dict(), "status": self.status}


class InteractiveChallengeRequired(ZapierControlError):
    """Login hit a two-factor or bot challenge that needs a human."""

    kind = "interactive_challenge_required"

    def __init__(self, message: str, challenge: str, screenshot: Optional[str] = None):
        super().__init__(message)
        self.challenge = challenge  # "two_factor" | "captcha"
        self.screenshot = screenshot

    def to_dict(self) -> dict:
        return {**super().to_dict(), "challenge": self.challenge, "screenshot": self.screenshot}


class ElementNotFound(ZapierControlError):
    """An expected page control could not be located."""

    kind = "element_not_found"

    def __init__(self, message: str, screenshot: Optional[str] = None):
        super().__init__(message)
        self.screenshot = screenshot

    def to_dict(self) -> dict:
        return {**super().to_dict(), "screenshot": self.screenshot}


class LoginFailed(ZapierControlError):
    """Login did not leave the login page and no known challenge was shown."""

    kind = "login_failed"

    def __init__(self, url: str, screenshot: Optional[str] = None):
        super().__init__(f"Login failed (stuck at {url}). Screenshot: {screenshot or 'not captured'}")
        self.url = url
        self.screenshot = screenshot

    def to_dict(self) -> dict:
        return {**super().to_dict(), "url": self.url, "screenshot": self.screenshot}


class RequestFailed(ZapierControlError):
    """Any other non-2xx internal API response."""

    kind = "request_failed"

    def __init__(self, method: str, status: int, status_text: str = "", body: str = ""):
        super().__init__(f"API {method} failed: {status} {status_text}: {body}".rstrip(": "))
        self.method = method
        self.status = status
        self.body = body

    def to_dict(self) -> dict:
        return {**super().to_dict(), "status": self.status, "body": self.body}
