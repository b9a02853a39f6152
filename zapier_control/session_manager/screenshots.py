"""Screenshot capture for login diagnostics and UI-action evidence."""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Optional

from playwright.async_api import Page

from .. import config

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def screenshot_path(operation: str, filename: Optional[str] = None) -> Path:
    """Return ``zapier-<operation>-<epoch ms>.png`` (or ``filename``) in the screenshot dir."""
    name = filename or f"zapier-{operation}-{int(time.time() * 1000)}.png"
    return Path(config.SCREENSHOT_DIR) / name


async def capture_screenshot(
    page: Page,
    operation: str,
    full_page: bool = True,
    filename: Optional[str] = None,
) -> Optional[str]:
    """Save a screenshot of the page and return its path.

    A failed capture is logged and returns None; callers never name a file
    that was not written.
    """
    path = screenshot_path(operation, filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        await page.screenshot(path=str(path), full_page=full_page)
        logger.info(f"Screenshot saved: {path}")
    except Exception as e:
        logger.warning(f"Screenshot '{operation}' failed: {e}")
        return None
    return str(path)
