"""Normalize Zapier internal-API payloads into stable output models.

The same logical data reaches us in different shapes: straight from the
internal API, or intercepted from the web client's own XHR traffic, and the
vendor renames fields between API versions. Every lookup of a container or
a field synonym lives here so a vendor change needs one edit.

Extraction strategy:
1. Find the item list (bare array, then ``objects``, ``results``, ``data``)
2. For each logical field, take the first present synonym
3. Map status strings onto a closed vocabulary, ``unknown`` otherwise
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from bs4 import BeautifulSoup

from .. import config
from ..constants import (
    CONTAINER_FIELDS,
    PAGE_TEXT_LIMIT,
    RUN_STATUS_ALIASES,
    RUN_STATUSES,
    STEP_CONTAINER_FIELDS,
    UNKNOWN_STATUS,
    ZAP_STATUS_ALIASES,
    ZAP_STATUSES,
)
from ..models.zap import RunDetail, RunRecord, StepRecord, ZapSummary

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


# ── Utility Functions ────────────────────────────────────────────────────────


def _clean_text(text: str | None) -> str:
    """Strip whitespace and normalize text."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def _lookup(item: Any, path: str) -> Any:
    """Follow a dotted path like ``zap.id`` through nested dicts."""
    value = item
    for key in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def pick(item: dict, *paths: str) -> Any:
    """Return the first synonym that holds a non-empty value."""
    for path in paths:
        value = _lookup(item, path)
        if value is not None and value != "":
            return value
    return None


def _as_id(value: Any) -> str:
    # Ids are opaque: 9 becomes "9", never the other way round.
    return "" if value is None else str(value)


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _as_count(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _normalize_status(value: Any, allowed: set[str], aliases: dict[str, str], entity: str) -> str:
    if value is None:
        return UNKNOWN_STATUS
    status = str(value).strip().lower()
    status = aliases.get(status, status)
    if status in allowed:
        return status
    record_drift(f"{entity}_status", {"value": value})
    return UNKNOWN_STATUS


def normalize_zap_status(value: Any) -> str:
    return _normalize_status(value, ZAP_STATUSES, ZAP_STATUS_ALIASES, "zap")


def normalize_run_status(value: Any) -> str:
    return _normalize_status(value, RUN_STATUSES, RUN_STATUS_ALIASES, "run")


# ── Schema Drift ─────────────────────────────────────────────────────────────


def record_drift(kind: str, detail: dict):
    """Log and append an observed vendor-schema mismatch for operator review."""
    logger.warning(f"[SCHEMA] Drift '{kind}': {detail}")
    entry = {
        "observed_at": datetime.now(timezone.utc).isoformat(),
        "kind": kind,
        "detail": detail,
    }
    try:
        path = config.SCHEMA_DRIFT_LOG
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")
    except OSError as e:
        logger.warning(f"[SCHEMA] Could not record drift: {e}")


def _keys_of(payload: Any) -> list[str]:
    return sorted(payload.keys())[:25] if isinstance(payload, dict) else [type(payload).__name__]


# ── Containers ───────────────────────────────────────────────────────────────


def extract_items(payload: Any) -> Optional[list]:
    """Return the item list from a payload, or None if no known container exists."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for field in CONTAINER_FIELDS:
            value = payload.get(field)
            if isinstance(value, list):
                return value
    return None


def has_items(payload: Any) -> bool:
    items = extract_items(payload)
    return bool(items)


def _items_or_drift(payload: Any, entity: str) -> list:
    if payload is None:
        return []
    items = extract_items(payload)
    if items is None:
        record_drift(f"{entity}_container", {"keys": _keys_of(payload)})
        return []
    return [item for item in items if isinstance(item, dict)]


# ── Zaps ─────────────────────────────────────────────────────────────────────


def normalize_zap(item: dict) -> ZapSummary:
    zap_id = pick(item, "id")
    if zap_id is None:
        record_drift("zap_id", {"keys": _keys_of(item)})

    steps = item.get("steps")
    step_count = _as_count(pick(item, "step_count"))
    if step_count is None and isinstance(steps, list):
        step_count = len(steps)

    return ZapSummary(
        id=_as_id(zap_id),
        title=str(pick(item, "title", "name") or "Untitled"),
        status=normalize_zap_status(pick(item, "status", "state")),
        last_run=_as_text(pick(item, "last_successful_run_date", "last_run_at", "updated_at")),
        step_count=step_count,
        updated_at=_as_text(pick(item, "updated_at")),
    )


def normalize_zaps(payload: Any) -> list[ZapSummary]:
    zaps = [normalize_zap(item) for item in _items_or_drift(payload, "zaps")]
    logger.info(f"[NORMALIZE] {len(zaps)} zaps")
    return zaps


# ── Runs ─────────────────────────────────────────────────────────────────────


def _run_fields(item: dict) -> dict:
    run_id = pick(item, "id")
    if run_id is None:
        record_drift("run_id", {"keys": _keys_of(item)})
    return {
        "id": _as_id(run_id),
        "zap_id": _as_id(pick(item, "zap.id", "zap_id")),
        "zap_title": str(pick(item, "zap.title", "zap_title") or ""),
        "status": normalize_run_status(pick(item, "status", "state")),
        "started_at": str(pick(item, "start_time", "started_at", "created_at") or ""),
        "finished_at": _as_text(pick(item, "end_time", "finished_at")),
    }


def normalize_run(item: dict) -> RunRecord:
    return RunRecord(
        **_run_fields(item),
        error_message=_as_text(pick(item, "error_message", "error.message")),
    )


def normalize_runs(payload: Any, limit: Optional[int] = None) -> list[RunRecord]:
    items = _items_or_drift(payload, "runs")
    if limit is not None:
        items = items[:limit]
    runs = [normalize_run(item) for item in items]
    logger.info(f"[NORMALIZE] {len(runs)} runs")
    return runs


def normalize_step(item: dict) -> StepRecord:
    status = pick(item, "status")
    return StepRecord(
        name=str(pick(item, "title", "action_type", "name") or "Unknown step"),
        app=str(pick(item, "app", "selected_api") or ""),
        status=str(status).lower() if status is not None else UNKNOWN_STATUS,
        error_message=_as_text(pick(item, "error_message", "error.message")),
        input_data=pick(item, "input_data", "input"),
        output_data=pick(item, "output_data", "output"),
    )


def normalize_run_detail(payload: Any, run_id: str) -> RunDetail:
    if not isinstance(payload, dict):
        record_drift("run_detail", {"keys": _keys_of(payload)})
        return RunDetail(id=run_id)

    steps = pick(payload, *STEP_CONTAINER_FIELDS)
    if not isinstance(steps, list):
        steps = []
    fields = _run_fields(payload)
    if not fields["id"]:
        fields["id"] = run_id
    return RunDetail(
        **fields,
        error_message=_as_text(pick(payload, "error_message", "error.message")),
        steps=[normalize_step(step) for step in steps if isinstance(step, dict)],
    )


def run_detail_from_page_text(run_id: str, html: str) -> RunDetail:
    """Best-effort detail built from the rendered page when no JSON was captured."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    body = soup.find("body") or soup
    text = _clean_text(body.get_text(" "))[:PAGE_TEXT_LIMIT]
    return RunDetail(
        id=run_id,
        steps=[StepRecord(name="Page content", status="error", error_message=text)],
    )
