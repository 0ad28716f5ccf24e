"""
Shared test fixtures for the docsync test suite.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Iterator
from unittest.mock import MagicMock

import pytest

from docsync.config import SyncSettings, reset_config


@pytest.fixture
def mock_logger() -> MagicMock:
    """Logger double; docsync loggers do not propagate to caplog."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    path = tmp_path / "state"
    path.mkdir()
    return path


@pytest.fixture
def make_record() -> Callable[..., dict[str, Any]]:
    """Factory for upstream document records with a valid envelope."""

    def _make(doc_id: str = "DOC-1", doc_type: str = "WELL", version: int = 1, **fields: Any) -> dict[str, Any]:
        record: dict[str, Any] = {
            "$TYPE": doc_type,
            "DOCUMENT_ID": doc_id,
            "$VERSION": version,
            "$AUTHOR_ID": "user-1",
            "$DATE": "2024-03-01T12:00:00Z",
            "$DELETED": False,
        }
        record.update(fields)
        return record

    return _make


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[pytest.MonkeyPatch]:
    """Environment without docsync settings and without a TOML file."""
    for f in SyncSettings.__dataclass_fields__:
        monkeypatch.delenv(SyncSettings.env_name(f), raising=False)
    monkeypatch.setenv("DOCSYNC_CONFIG_PATH", str(tmp_path / "missing.toml"))
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield monkeypatch
    reset_config()
