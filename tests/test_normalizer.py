import json
from pathlib import Path

import pytest

from zapier_control import config
from zapier_control.session_manager import normalizer


def _drift_entries() -> list[dict]:
    path = Path(config.SCHEMA_DRIFT_LOG)
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


@pytest.mark.parametrize(
    "item",
    [
        {"id": 42, "title": "Leads to Sheets", "status": "on", "step_count": 3},
        {"id": "42", "name": "Leads to Sheets", "state": "enabled", "steps": [{}, {}, {}]},
        {"id": 42, "title": "Leads to Sheets", "status": "ACTIVE", "step_count": "3"},
    ],
)
def test_zap_synonyms_normalize_identically(item: dict) -> None:
    zap = normalizer.normalize_zap(item)

    assert zap.to_output() == {
        "id": "42",
        "title": "Leads to Sheets",
        "status": "on",
        "stepCount": 3,
    }


@pytest.mark.parametrize(
    "payload",
    [
        [{"id": 1}, {"id": 2}],
        {"objects": [{"id": 1}, {"id": 2}]},
        {"results": [{"id": 1}, {"id": 2}]},
        {"data": [{"id": 1}, {"id": 2}]},
    ],
)
def test_item_containers_are_recognised(payload) -> None:
    assert [zap.id for zap in normalizer.normalize_zaps(payload)] == ["1", "2"]


def test_unknown_container_yields_empty_list_and_records_drift() -> None:
    assert normalizer.normalize_zaps({"zapList": [{"id": 1}]}) == []

    entries = _drift_entries()
    assert entries[-1]["kind"] == "zaps_container"
    assert entries[-1]["detail"]["keys"] == ["zapList"]


def test_unknown_status_maps_to_unknown_without_raising() -> None:
    zap = normalizer.normalize_zap({"id": 1, "status": "hibernating"})
    run = normalizer.normalize_run({"id": 2, "status": "teleported"})

    assert zap.status == "unknown"
    assert run.status == "unknown"
    assert [e["kind"] for e in _drift_entries()] == ["zap_status", "run_status"]


def test_missing_status_is_unknown_and_not_drift() -> None:
    assert normalizer.normalize_zap({"id": 1}).status == "unknown"
    assert _drift_entries() == []


@pytest.mark.parametrize(
    "value, expected",
    [("on", "on"), ("Paused", "off"), ("draft", "draft"), ("errored", "error")],
)
def test_zap_status_vocabulary(value: str, expected: str) -> None:
    assert normalizer.normalize_zap_status(value) == expected


def test_history_payload_becomes_run_records() -> None:
    payload = {
        "objects": [
            {"id": 9, "zap_id": "123", "status": "error", "start_time": "2024-01-01T00:00:00Z"}
        ]
    }

    runs = normalizer.normalize_runs(payload, limit=10)

    assert len(runs) == 1
    assert runs[0].to_output() == {
        "id": "9",
        "zapId": "123",
        "zapTitle": "",
        "status": "error",
        "startedAt": "2024-01-01T00:00:00Z",
    }


def test_run_synonyms_normalize_identically() -> None:
    nested = normalizer.normalize_run(
        {"id": 5, "zap": {"id": 7, "title": "CRM sync"}, "state": "failed",
         "started_at": "t0", "error": {"message": "boom"}}
    )
    flat = normalizer.normalize_run(
        {"id": "5", "zap_id": 7, "zap_title": "CRM sync", "status": "error",
         "start_time": "t0", "error_message": "boom"}
    )

    assert nested == flat


def test_runs_are_truncated_to_limit() -> None:
    payload = [{"id": i, "status": "success"} for i in range(5)]
    assert [r.id for r in normalizer.normalize_runs(payload, limit=2)] == ["0", "1"]


def test_run_detail_reads_steps_from_action_log() -> None:
    payload = {
        "id": 77,
        "status": "error",
        "action_log": [
            {"action_type": "Find row", "selected_api": "GoogleSheetsV2API", "status": "SUCCESS"},
            {"title": "Send email", "status": "error", "error": {"message": "Invalid address"}},
        ],
    }

    detail = normalizer.normalize_run_detail(payload, "77")

    assert detail.id == "77"
    assert [s.name for s in detail.steps] == ["Find row", "Send email"]
    assert detail.steps[0].app == "GoogleSheetsV2API"
    assert detail.steps[0].status == "success"
    assert detail.steps[1].error_message == "Invalid address"


def test_run_detail_falls_back_to_requested_id() -> None:
    assert normalizer.normalize_run_detail({"status": "success"}, "31").id == "31"
    assert normalizer.normalize_run_detail(["odd"], "31").steps == []


def test_run_detail_from_page_text_strips_scripts() -> None:
    html = (
        "<html><head><style>.x{}</style></head><body>"
        "<script>window.secret = 1</script>"
        "<h1>Run   failed</h1><p>Step 2:\n Invalid address</p></body></html>"
    )

    detail = normalizer.run_detail_from_page_text("8", html)

    assert detail.id == "8"
    assert detail.steps[0].name == "Page content"
    assert detail.steps[0].error_message == "Run failed Step 2: Invalid address"
