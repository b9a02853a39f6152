"""Pydantic models for session state."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class LiveProcessHandle(BaseModel):
    """Endpoint of a running browser that later invocations may reconnect to."""

    ws_endpoint: str
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class SessionStatus(BaseModel):
    """Current state of the browser session."""

    is_running: bool = False
    is_authenticated: bool = False
    state: str = "not_running"  # not_running, running, active
    engine: str = ""
    has_storage_state: bool = False
    live_handle: Optional[LiveProcessHandle] = None
    message: str = ""
