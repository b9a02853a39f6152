"""Pydantic models for Zaps, runs, and action results."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Output(BaseModel):
    """Output models serialise with camelCase keys and skip absent fields."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_output(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ZapSummary(_Output):
    """One Zap as shown in the Zaps list."""

    id: str
    title: str = "Untitled"
    status: str = "unknown"  # on, off, draft, error, unknown
    last_run: Optional[str] = None
    step_count: Optional[int] = None
    updated_at: Optional[str] = None


class RunRecord(_Output):
    """One Zap run from the history list."""

    id: str
    zap_id: str = ""
    zap_title: str = ""
    status: str = "unknown"  # success, error, halted, filtered, delayed, unknown
    started_at: str = ""
    finished_at: Optional[str] = None
    error_message: Optional[str] = None


class StepRecord(_Output):
    name: str = "Unknown step"
    app: str = ""
    status: str = "unknown"
    error_message: Optional[str] = None
    input_data: Optional[Any] = None
    output_data: Optional[Any] = None


class RunDetail(RunRecord):
    """A run with its ordered step log, used to diagnose before a replay."""

    steps: list[StepRecord] = Field(default_factory=list)


class OperationResult(_Output):
    """Outcome of a mutating action or a session operation."""

    success: bool
    message: str
    screenshot: Optional[str] = None
