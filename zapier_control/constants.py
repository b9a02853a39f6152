"""Zapier URLs, internal API paths, selectors, and challenge indicators."""

import re

# ── URLs ─────────────────────────────────────────────────────────────────────

ZAPIER_BASE = "https://zapier.com"
ZAPIER_LOGIN_URL = f"{ZAPIER_BASE}/app/login"
ZAPIER_ZAPS_URL = f"{ZAPIER_BASE}/app/zaps"
ZAPIER_HISTORY_URL = f"{ZAPIER_BASE}/app/history"
ZAPIER_RUN_URL = f"{ZAPIER_BASE}/app/history/run/{{run_id}}"

# Any /app/ page other than the login page counts as "logged in".
LOGGED_IN_URL_PATTERN = re.compile(r"zapier\.com/app/(?!login)")

# ── Internal API ─────────────────────────────────────────────────────────────
# Discovered via network interception; re-run discover-endpoints if they move.

API = {
    "me": "/api/v3/me",
    "zaps": "/api/v4/zaps",
    "zap": "/api/v4/zaps/{zap_id}",
    "zap_runs": "/api/v4/zap-runs",
    "zap_run": "/api/v4/zap-runs/{run_id}",
    "zap_run_replay": "/api/v4/zap-runs/{run_id}/replay",
}

# Responses captured during endpoint discovery
DISCOVERY_URL_MARKERS = ["zapier.com/api", "zapier.com/_next/data"]

# ── Browser ──────────────────────────────────────────────────────────────────

VIEWPORT = {"width": 1280, "height": 900}
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)
CHROMIUM_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-first-run",
    "--no-default-browser-check",
    "--no-sandbox",
]

# ── Login Selectors ──────────────────────────────────────────────────────────

EMAIL_SELECTORS = [
    'input[name="email"]',
    'input[type="email"]',
    'input[id="email"]',
    'input[placeholder*="email" i]',
]

PASSWORD_SELECTOR = 'input[type="password"]'

COOKIE_CONSENT_SELECTOR = 'button:has-text("Accept all cookies"), button:has-text("Accept All")'

# :text-is() is exact; :has-text() would also match "Continue with Google".
CONTINUE_SELECTOR = 'button:text-is("Continue"), button[type="submit"]:not(:has-text("Continue with"))'

LOGIN_SUBMIT_SELECTOR = (
    'button:text-is("Continue"), button[type="submit"]:not(:has-text("Continue with")), '
    'button:has-text("Log in"), button:has-text("Sign in")'
)

# ── Action Selectors ─────────────────────────────────────────────────────────

REPLAY_SELECTORS = [
    'button:has-text("Replay")',
    'button:has-text("Re-run")',
    'button:has-text("Retry")',
    '[data-testid*="replay"]',
    'a:has-text("Replay")',
]

REPLAY_CONFIRM_SELECTOR = 'button:has-text("Confirm"), button:has-text("Yes"), button:has-text("OK")'

TOGGLE_SELECTORS = [
    '[data-zap-id="{zap_id}"] input[type="checkbox"]',
    '[data-zap-id="{zap_id}"] [role="switch"]',
    '[data-zap-id="{zap_id}"] button[aria-label*="toggle" i]',
]

TOGGLE_CONFIRM_SELECTOR = 'button:has-text("Turn off"), button:has-text("Confirm"), button:has-text("Yes")'

# Clicks the first switch whose surrounding row mentions the zap id.
TOGGLE_BY_ROW_SCRIPT = """
(targetId) => {
  const switches = document.querySelectorAll('[role="switch"], input[type="checkbox"]');
  for (const sw of switches) {
    const row = sw.closest('[data-testid], tr, [class*="row"], [class*="zap"]');
    if (row && row.innerHTML.includes(targetId)) {
      sw.click();
      return true;
    }
  }
  return false;
}
"""

# ── Challenge Detection ──────────────────────────────────────────────────────

TWO_FACTOR_INDICATORS = [
    "two-factor",
    "verification code",
    "2fa",
    "authentication code",
    "verify your identity",
]

CAPTCHA_INDICATORS = [
    "captcha",
    "challenge",
    "cloudflare",
]

# ── Normalization ────────────────────────────────────────────────────────────

ZAP_STATUSES = {"on", "off", "draft", "error"}
RUN_STATUSES = {"success", "error", "halted", "filtered", "delayed"}
UNKNOWN_STATUS = "unknown"

ZAP_STATUS_ALIASES = {
    "enabled": "on",
    "active": "on",
    "running": "on",
    "disabled": "off",
    "paused": "off",
    "inactive": "off",
    "errored": "error",
    "broken": "error",
}

RUN_STATUS_ALIASES = {
    "succeeded": "success",
    "successful": "success",
    "ok": "success",
    "failed": "error",
    "failure": "error",
    "errored": "error",
    "stopped": "halted",
    "held": "halted",
    "scheduled": "delayed",
    "waiting": "delayed",
}

# Wrapper fields tried after a bare array, in preference order.
CONTAINER_FIELDS = ["objects", "results", "data"]
STEP_CONTAINER_FIELDS = ["steps", "action_log"]

PAGE_TEXT_LIMIT = 2000
ERROR_BODY_LIMIT = 500
