"""Two-factor and bot-challenge detection on the Zapier login flow."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from playwright.async_api import Page

from ..constants import CAPTCHA_INDICATORS, TWO_FACTOR_INDICATORS

logger = logging.getLogger(__name__)
# MCP servers MUST NOT write to stdout
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

TWO_FACTOR = "two_factor"
CAPTCHA = "captcha"


async def read_body_text(page: Page) -> str:
    """Return the page's body text, or "" if the page cannot be read."""
    try:
        return await page.text_content("body") or ""
    except Exception as e:
        logger.warning(f"Could not read page body: {e}")
        return ""


def classify_challenge(text: str) -> Optional[str]:
    """Classify body text as a two-factor prompt, a bot challenge, or neither.

    Two-factor wins when both match: the verification page often mentions
    "challenge" in its own copy.
    """
    lowered = text.lower()
    if any(indicator in lowered for indicator in TWO_FACTOR_INDICATORS):
        return TWO_FACTOR
    if any(indicator in lowered for indicator in CAPTCHA_INDICATORS):
        return CAPTCHA
    return None


async def detect_challenge(page: Page) -> Optional[str]:
    challenge = classify_challenge(await read_body_text(page))
    if challenge:
        logger.info(f"Detected {challenge} challenge at {page.url}")
    return challenge


async def detect_captcha_element(page: Page) -> str | None:
    """Detect specific CAPTCHA widgets on the page.

    Returns the type of CAPTCHA found, or None.
    """
    checks = [
        ("iframe[src*='hcaptcha']", "hcaptcha"),
        ("iframe[src*='recaptcha']", "recaptcha"),
        ("#cf-turnstile", "cloudflare_turnstile"),
        (".cf-challenge", "cloudflare_challenge"),
    ]
    for selector, captcha_type in checks:
        try:
            element = await page.query_selector(selector)
            if element:
                logger.info(f"Detected CAPTCHA type: {captcha_type}")
                return captcha_type
        except Exception:
            continue
    return None
