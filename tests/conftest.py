from pathlib import Path

import pytest

from zapier_control import config


@pytest.fixture(autouse=True)
def artifact_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Keep screenshots and drift logs inside the test's temp directory."""
    screenshots = tmp_path / "screenshots"
    screenshots.mkdir()
    monkeypatch.setattr(config, "SCREENSHOT_DIR", screenshots)
    monkeypatch.setattr(config, "SCHEMA_DRIFT_LOG", tmp_path / "logs" / "schema_drift.jsonl")
    return tmp_path


@pytest.fixture
def credentials(monkeypatch: pytest.MonkeyPatch) -> dict:
    monkeypatch.setenv("ZAPIER_EMAIL", "ops@example.com")
    monkeypatch.setenv("ZAPIER_PASSWORD", "hunter2")
    return {"email": "ops@example.com", "password": "hunter2"}
