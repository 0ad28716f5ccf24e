"""
Tests for cursor persistence.
"""

from unittest.mock import patch

import pytest

from docsync.exceptions import CursorError
from docsync.replication.cursor import CURSOR_FILENAME, CursorStore


def test_load_missing_returns_none(state_dir, mock_logger):
    assert CursorStore(state_dir, mock_logger).load() is None


def test_load_empty_returns_none(state_dir, mock_logger):
    (state_dir / CURSOR_FILENAME).write_text("  \n")
    assert CursorStore(state_dir, mock_logger).load() is None


def test_save_then_load(state_dir, mock_logger):
    store = CursorStore(state_dir, mock_logger)
    store.save("2024-03-01T12:00:00.123Z")

    assert store.load() == "2024-03-01T12:00:00.123Z"
    assert (state_dir / CURSOR_FILENAME).read_text() == "2024-03-01T12:00:00.123Z"


def test_save_creates_state_dir(tmp_path, mock_logger):
    store = CursorStore(tmp_path / "nested" / "state", mock_logger)
    store.save("abc")
    assert store.load() == "abc"


def test_save_replaces_previous_value(state_dir, mock_logger):
    store = CursorStore(state_dir, mock_logger)
    store.save("first")
    store.save("second")

    assert store.load() == "second"
    assert [p.name for p in state_dir.iterdir()] == [CURSOR_FILENAME]


def test_failed_replace_keeps_old_cursor(state_dir, mock_logger):
    store = CursorStore(state_dir, mock_logger)
    store.save("old")

    with patch("docsync.replication.cursor.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(CursorError, match="disk full"):
            store.save("new")

    assert store.load() == "old"
    assert [p.name for p in state_dir.iterdir()] == [CURSOR_FILENAME]


def test_clear(state_dir, mock_logger):
    store = CursorStore(state_dir, mock_logger)
    store.save("x")
    store.clear()
    assert store.load() is None
    store.clear()


def test_unreadable_cursor_raises(state_dir, mock_logger):
    (state_dir / CURSOR_FILENAME).mkdir()
    with pytest.raises(CursorError, match="Error reading last sync date"):
        CursorStore(state_dir, mock_logger).load()
