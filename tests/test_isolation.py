"""Safety tests to ensure the suite never touches the project's own state.

Every test runs from a temporary working directory (see conftest.py), so
the relative paths in config (db/, data/state/, audit-results/) must
resolve there and never under the project root.
"""

import hashlib
import os
from pathlib import Path

import pytest

from reflect.config.app_config import load_app_config

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _hash_directory(path: Path) -> str | None:
    """Hash directory structure, sizes and mtimes. None if missing."""
    if not path.exists():
        return None

    hasher = hashlib.sha256()
    for root, dirs, files in os.walk(path):
        dirs.sort()
        for filename in sorted(files):
            filepath = Path(root) / filename
            hasher.update(str(filepath.relative_to(path)).encode())
            stat = filepath.stat()
            hasher.update(str(stat.st_size).encode())
            hasher.update(str(int(stat.st_mtime)).encode())
    return hasher.hexdigest()


@pytest.fixture(scope="module")
def project_state():
    """Snapshot of the project's state directories before this module runs."""
    return {
        name: _hash_directory(PROJECT_ROOT / name)
        for name in ("db", "data/state", "audit-results")
    }


class TestWorkingDirectory:
    """Tests that config paths resolve inside the temporary workspace."""

    def test_cwd_is_temporary(self, isolated_workspace):
        assert Path.cwd() == isolated_workspace
        assert Path.cwd() != PROJECT_ROOT

    def test_database_in_workspace(self, isolated_workspace):
        assert (isolated_workspace / "test.db").exists()
        assert not (PROJECT_ROOT / "test.db").exists()

    def test_state_dir_relative(self):
        config = load_app_config()
        assert not config.storage.state_dir.is_absolute()
        assert not config.storage.db_path.is_absolute()

    def test_no_user_env_leaks(self):
        for name in ("REFLECT_DB_PATH", "REFLECT_DATA_DIR", "REFLECT_USER"):
            assert name not in os.environ


class TestProjectDirectories:
    """Tests that project-level state directories are left alone."""

    @pytest.mark.parametrize("name", ["db", "data/state", "audit-results"])
    def test_not_modified(self, project_state, name):
        if _hash_directory(PROJECT_ROOT / name) != project_state[name]:
            pytest.fail(
                f"./{name} was created or modified during the test run. "
                "All tests MUST use the temporary workspace."
            )
