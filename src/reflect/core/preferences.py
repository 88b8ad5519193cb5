"""Per-user reset preferences and recent session history.

Persisted as data/state/preferences_v1.json:

    {
      "$schema": "preferences_v1",
      "users": {
        "<user_id>": {
          "techniques": {"<technique_id>": {"duration_key": "2m", "pace": "4"}},
          "history": [<ResetRecord dict>, ...]   # newest last
        }
      }
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from reflect.config.app_config import load_app_config

if TYPE_CHECKING:
    from reflect.core.technique_timer import ResetRecord

logger = structlog.get_logger(__name__)

PREFERENCES_SCHEMA = "preferences_v1"
PREFERENCES_FILENAME = "preferences_v1.json"


@dataclass
class TechniquePreference:
    """Last duration/pace chosen for a technique."""

    duration_key: str
    pace: str

    def to_dict(self) -> dict[str, str]:
        return {"duration_key": self.duration_key, "pace": self.pace}


@dataclass
class UserPreferences:
    """Preferences and history for one user."""

    techniques: dict[str, TechniquePreference] = field(default_factory=dict)
    history: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "techniques": {tid: p.to_dict() for tid, p in self.techniques.items()},
            "history": self.history,
        }


@dataclass
class PreferencesState:
    """All users' preferences."""

    users: dict[str, UserPreferences] = field(default_factory=dict)

    def for_user(self, user_id: str) -> UserPreferences:
        """Get (creating if needed) a user's preferences."""
        if user_id not in self.users:
            self.users[user_id] = UserPreferences()
        return self.users[user_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "$schema": PREFERENCES_SCHEMA,
            "users": {uid: u.to_dict() for uid, u in self.users.items()},
        }


def _preferences_path(data_dir: Path | None) -> Path:
    if data_dir is None:
        data_dir = load_app_config().storage.data_dir
    return data_dir / "state" / PREFERENCES_FILENAME


def _parse_state(data: Any) -> PreferencesState | None:
    """Build state from decoded JSON; None if any part has the wrong shape."""
    if not isinstance(data, dict) or data.get("$schema") != PREFERENCES_SCHEMA:
        return None
    users = data.get("users", {})
    if not isinstance(users, dict):
        return None

    state = PreferencesState()
    for user_id, u_data in users.items():
        if not isinstance(u_data, dict):
            return None
        techniques_data = u_data.get("techniques", {})
        history = u_data.get("history", [])
        if not isinstance(techniques_data, dict) or not isinstance(history, list):
            return None
        if not all(isinstance(p, dict) for p in techniques_data.values()):
            return None

        techniques = {
            tid: TechniquePreference(
                duration_key=str(p.get("duration_key", "2m")),
                pace=str(p.get("pace", "4")),
            )
            for tid, p in techniques_data.items()
        }
        state.users[user_id] = UserPreferences(techniques=techniques, history=list(history))
    return state


def load_preferences(data_dir: Path | None = None) -> PreferencesState:
    """Load preferences from disk.

    A missing file, unreadable JSON or a schema mismatch yields an empty state.
    """
    path = _preferences_path(data_dir)
    if not path.exists():
        return PreferencesState()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("preferences_unreadable", path=str(path), error=str(e))
        return PreferencesState()

    state = _parse_state(data)
    if state is None:
        logger.warning(
            "preferences_invalid_schema",
            path=str(path),
            expected=PREFERENCES_SCHEMA,
            got=data.get("$schema") if isinstance(data, dict) else type(data).__name__,
        )
        return PreferencesState()
    return state


def save_preferences(state: PreferencesState, data_dir: Path | None = None) -> None:
    """Write preferences to disk."""
    path = _preferences_path(data_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(state.to_dict(), f, indent=2, ensure_ascii=False)


def get_technique_preference(
    user_id: str,
    technique_id: str,
    data_dir: Path | None = None,
) -> TechniquePreference | None:
    """Last duration/pace a user picked for a technique, if any."""
    state = load_preferences(data_dir)
    user = state.users.get(user_id)
    if user is None:
        return None
    return user.techniques.get(technique_id)


def remember_choice(
    user_id: str,
    technique_id: str,
    duration_key: str,
    pace: str,
    data_dir: Path | None = None,
) -> None:
    """Store the duration/pace a user chose for a technique."""
    state = load_preferences(data_dir)
    state.for_user(user_id).techniques[technique_id] = TechniquePreference(
        duration_key=duration_key, pace=pace
    )
    save_preferences(state, data_dir)


def record_session(
    user_id: str,
    record: ResetRecord,
    data_dir: Path | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Append a completed reset to the user's history, keeping the newest `limit`.

    Also remembers the duration/pace used.

    Returns:
        The user's history after the append
    """
    if limit is None:
        limit = load_app_config().timer.history_limit

    state = load_preferences(data_dir)
    user = state.for_user(user_id)
    user.history.append(record.to_dict())
    if limit <= 0:
        user.history = []
    elif len(user.history) > limit:
        user.history = user.history[-limit:]
    user.techniques[record.technique_id] = TechniquePreference(
        duration_key=record.duration_key, pace=record.pace
    )
    save_preferences(state, data_dir)

    logger.debug(
        "preferences.session_recorded",
        user_id=user_id,
        technique_id=record.technique_id,
        history_size=len(user.history),
    )
    return user.history
