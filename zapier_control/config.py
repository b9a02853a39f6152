"""Application configuration loaded from environment variables."""

import json
import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

from .constants import API
from .errors import ConfigurationMissing

load_dotenv()


def _default_session_dir() -> Path:
    # RAM-backed when available; storage state must never hit a real disk.
    shm = Path("/dev/shm")
    if shm.is_dir():
        return shm / "zapier-control"
    return Path(tempfile.gettempdir()) / "zapier-control"


# Paths
DATA_DIR = Path(os.getenv("DATA_DIR", Path(__file__).parent.parent / "data"))
LOG_DIR = DATA_DIR / "logs"
SCREENSHOT_DIR = Path(os.getenv("ZAPIER_SCREENSHOT_DIR", DATA_DIR / "screenshots"))
SESSION_DIR = Path(os.getenv("ZAPIER_SESSION_DIR", _default_session_dir()))
SCHEMA_DRIFT_LOG = LOG_DIR / "schema_drift.jsonl"

# Session manager
SESSION_MANAGER_HOST = os.getenv("SESSION_MANAGER_HOST", "127.0.0.1")
SESSION_MANAGER_PORT = int(os.getenv("SESSION_MANAGER_PORT", "8025"))
SESSION_MANAGER_URL = f"http://{SESSION_MANAGER_HOST}:{SESSION_MANAGER_PORT}"

# Browser
BROWSER_ENGINE = os.getenv("BROWSER_ENGINE", "chromium").lower()  # chromium | camoufox
BROWSER_CDP_PORT = int(os.getenv("BROWSER_CDP_PORT", "9223"))  # 0 disables reconnection
BROWSER_TIMEOUT = int(os.getenv("BROWSER_TIMEOUT", "30000"))
# Headful browser, longer waits, and an interactive 2FA pause
INTERACTIVE = os.getenv("ZAPIER_DEBUG", "false").lower() == "true"

# Step timeouts (ms)
SESSION_CHECK_TIMEOUT = 10000
EMAIL_FIELD_TIMEOUT = 8000
PASSWORD_FIELD_TIMEOUT = 15000
LOGIN_NAVIGATION_TIMEOUT = 60000
TWO_FACTOR_TIMEOUT = 120000
INTERCEPT_TIMEOUT = 15000
DEBUG_TIMEOUT_FACTOR = 2

# History
DEFAULT_HISTORY_LIMIT = 25
MAX_HISTORY_LIMIT = 100

# Internal API table; paths are empirical and may be overridden without a release.
API_ENDPOINTS = {**API, **json.loads(os.getenv("ZAPIER_API_OVERRIDES", "{}") or "{}")}

# Zapier MCP (remote actions)
ZAPIER_MCP_URL = os.getenv("ZAPIER_MCP_URL", "")
ZAPIER_MCP_API_KEY = os.getenv("ZAPIER_MCP_API_KEY", "")


def get_credentials() -> dict[str, str]:
    """Return the Zapier login credentials or raise ConfigurationMissing."""
    email = os.getenv("ZAPIER_EMAIL", "")
    password = os.getenv("ZAPIER_PASSWORD", "")
    if not email or not password:
        raise ConfigurationMissing(
            "Zapier credentials not configured. "
            "Set ZAPIER_EMAIL and ZAPIER_PASSWORD in the environment or .env file."
        )
    return {"email": email, "password": password}


def get_mcp_settings() -> dict[str, str]:
    """Return the Zapier MCP endpoint settings or raise ConfigurationMissing."""
    if not ZAPIER_MCP_URL or not ZAPIER_MCP_API_KEY:
        raise ConfigurationMissing(
            "Zapier MCP server not configured. Set ZAPIER_MCP_URL and ZAPIER_MCP_API_KEY."
        )
    return {"url": ZAPIER_MCP_URL, "api_key": ZAPIER_MCP_API_KEY}


def ensure_dirs():
    """Create required data directories if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    SCREENSHOT_DIR.mkdir(parents=True, exist_ok=True)
    SESSION_DIR.mkdir(parents=True, exist_ok=True, mode=0o700)
