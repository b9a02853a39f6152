"""Volatile persistence for browser storage state and the live-process handle."""

from __future__ import annotations

import json
import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..models.session import LiveProcessHandle

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

STORAGE_STATE_FILE = "zapier-storage-state.json"
SESSION_HANDLE_FILE = "zapier-session.json"


class SessionStore:
    """Reads and writes session artifacts under a single volatile directory.

    Corrupt or missing files load as ``None``; they never raise.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.storage_state_path = self.directory / STORAGE_STATE_FILE
        self.handle_path = self.directory / SESSION_HANDLE_FILE

    # ── Storage state ──

    def save(self, state: dict):
        """Atomically persist a Playwright storage-state snapshot."""
        self._write_atomic(self.storage_state_path, state)
        logger.info(
            f"Saved storage state ({len(state.get('cookies', []))} cookies) to {self.storage_state_path}"
        )

    def load(self) -> Optional[dict]:
        data = self._read_json(self.storage_state_path)
        if data is None:
            return None
        if not isinstance(data, dict) or not isinstance(data.get("cookies", []), list):
            logger.warning(f"Ignoring malformed storage state at {self.storage_state_path}")
            return None
        return data

    # ── Live-process handle ──

    def save_handle(self, ws_endpoint: str) -> LiveProcessHandle:
        handle = LiveProcessHandle(ws_endpoint=ws_endpoint)
        self._write_atomic(self.handle_path, handle.model_dump())
        return handle

    def load_handle(self) -> Optional[LiveProcessHandle]:
        data = self._read_json(self.handle_path)
        if data is None:
            return None
        try:
            return LiveProcessHandle.model_validate(data)
        except ValidationError:
            logger.warning(f"Ignoring malformed session handle at {self.handle_path}")
            return None

    def clear_handle(self):
        self.handle_path.unlink(missing_ok=True)

    # ── Housekeeping ──

    def has_state(self) -> bool:
        return self.storage_state_path.exists()

    def clear(self):
        """Remove every session artifact. Safe to call when nothing exists."""
        for path in (self.handle_path, self.storage_state_path):
            try:
                path.unlink()
                logger.info(f"Removed {path}")
            except FileNotFoundError:
                pass

    def _write_atomic(self, path: Path, payload: dict):
        self.directory.mkdir(parents=True, exist_ok=True, mode=0o700)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _read_json(self, path: Path):
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {path}: {e}")
            return None
