import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from festwiz.store import LocalState

logger = logging.getLogger(__name__)

_STATE_KEY = "state"


def connect(db_path: Path) -> sqlite3.Connection:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    _create_schema(conn)
    return conn


def _create_schema(conn: sqlite3.Connection) -> None:
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS state (
            key         TEXT PRIMARY KEY,
            value       TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        );
    """)
    conn.commit()


def load_state(conn: sqlite3.Connection) -> LocalState:
    """Read the single persisted state record; a missing or corrupt record yields an empty state."""
    row = conn.execute("SELECT value FROM state WHERE key = ?", (_STATE_KEY,)).fetchone()
    if row is None:
        return LocalState()
    try:
        data = json.loads(row["value"])
        if not isinstance(data, dict):
            raise TypeError(f"expected an object, got {type(data).__name__}")
        return LocalState.from_dict(data)
    except (json.JSONDecodeError, TypeError, KeyError) as exc:
        logger.warning("Stored state is unreadable (%s), starting fresh", exc)
        return LocalState()


def save_state(conn: sqlite3.Connection, state: LocalState) -> None:
    conn.execute(
        """
        INSERT INTO state (key, value, updated_at)
        VALUES (:key, :value, :updated_at)
        ON CONFLICT(key) DO UPDATE SET
            value      = excluded.value,
            updated_at = excluded.updated_at
        """,
        {
            "key": _STATE_KEY,
            "value": json.dumps(state.to_dict(), ensure_ascii=False),
            "updated_at": datetime.now().isoformat(timespec="seconds"),
        },
    )
    conn.commit()


def last_saved(conn: sqlite3.Connection):
    row = conn.execute("SELECT updated_at FROM state WHERE key = ?", (_STATE_KEY,)).fetchone()
    return datetime.fromisoformat(row["updated_at"]) if row else None
