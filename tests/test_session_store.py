import stat
from pathlib import Path

from zapier_control.session_manager.store import (
    SESSION_HANDLE_FILE,
    STORAGE_STATE_FILE,
    SessionStore,
)


def test_save_then_load_storage_state(tmp_path: Path) -> None:
    store = SessionStore(tmp_path / "session")
    state = {"cookies": [{"name": "zapsession", "value": "abc"}], "origins": []}

    store.save(state)

    assert store.load() == state
    assert store.has_state() is True
    mode = stat.S_IMODE((tmp_path / "session" / STORAGE_STATE_FILE).stat().st_mode)
    assert mode == 0o600


def test_save_leaves_no_temporary_files(tmp_path: Path) -> None:
    directory = tmp_path / "session"
    store = SessionStore(directory)
    store.save({"cookies": []})
    store.save({"cookies": [{"name": "b"}]})

    assert sorted(p.name for p in directory.iterdir()) == [STORAGE_STATE_FILE]
    assert store.load() == {"cookies": [{"name": "b"}]}


def test_missing_storage_state_loads_as_none(tmp_path: Path) -> None:
    store = SessionStore(tmp_path)
    assert store.load() is None
    assert store.load_handle() is None
    assert store.has_state() is False


def test_corrupt_storage_state_loads_as_none(tmp_path: Path) -> None:
    (tmp_path / STORAGE_STATE_FILE).write_text("{not json", encoding="utf-8")
    assert SessionStore(tmp_path).load() is None


def test_malformed_storage_state_loads_as_none(tmp_path: Path) -> None:
    (tmp_path / STORAGE_STATE_FILE).write_text('{"cookies": "nope"}', encoding="utf-8")
    assert SessionStore(tmp_path).load() is None

    (tmp_path / STORAGE_STATE_FILE).write_text("[1, 2]", encoding="utf-8")
    assert SessionStore(tmp_path).load() is None


def test_handle_round_trip_and_malformed_handle(tmp_path: Path) -> None:
    store = SessionStore(tmp_path)
    saved = store.save_handle("ws://127.0.0.1:9223/devtools/browser/abc")

    loaded = store.load_handle()
    assert loaded is not None
    assert loaded.ws_endpoint == "ws://127.0.0.1:9223/devtools/browser/abc"
    assert loaded.created_at == saved.created_at

    (tmp_path / SESSION_HANDLE_FILE).write_text('{"created_at": "x"}', encoding="utf-8")
    assert store.load_handle() is None


def test_clear_removes_everything_and_is_idempotent(tmp_path: Path) -> None:
    directory = tmp_path / "session"
    store = SessionStore(directory)
    store.save({"cookies": []})
    store.save_handle("ws://127.0.0.1:9223/devtools/browser/abc")

    store.clear()
    store.clear()

    assert list(directory.iterdir()) == []


def test_clear_handle_keeps_storage_state(tmp_path: Path) -> None:
    store = SessionStore(tmp_path)
    store.save({"cookies": []})
    store.save_handle("ws://127.0.0.1:9223/devtools/browser/abc")

    store.clear_handle()
    store.clear_handle()

    assert store.load_handle() is None
    assert store.has_state() is True
