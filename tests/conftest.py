"""Shared fixtures.

Every test runs inside its own temporary working directory with a fresh
database, so the suite never reads or writes ./data or ./db.
"""

import pytest

from reflect.config.app_config import clear_config_cache
from reflect.config.techniques import clear_techniques_cache
from reflect.db.database import init_db, reset_db_path
from reflect.web import sessions
from reflect.web.routes.insights import reset_pattern_engines


@pytest.fixture(autouse=True)
def isolated_workspace(tmp_path, monkeypatch):
    """Run in tmp_path with default config and an empty database."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("REFLECT_DB_PATH", raising=False)
    monkeypatch.delenv("REFLECT_DATA_DIR", raising=False)
    monkeypatch.delenv("REFLECT_USER", raising=False)
    clear_config_cache()
    clear_techniques_cache()
    reset_pattern_engines()
    # Manual advance only; no background ticker tasks in tests
    sessions.reset_session_manager(tick_interval=0)

    init_db(tmp_path / "test.db")
    yield tmp_path

    sessions.reset_session_manager(tick_interval=0)
    reset_pattern_engines()
    reset_db_path()
    clear_config_cache()
    clear_techniques_cache()


@pytest.fixture
def user_id():
    return "user-1"
