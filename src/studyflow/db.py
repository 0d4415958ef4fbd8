"""Database initialization and connection management."""
import sqlite3
from datetime import datetime
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".studyflow" / "studyflow.db")

SUBJECTS_KEY = "studyPlannerSubjects"
TOPICS_KEY = "studyPlannerTopics"

SCHEMA = """
CREATE TABLE IF NOT EXISTS collections (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    value TEXT,
    updated_at TEXT
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


def get_value(db_path: str, key: str, default: str | None = None) -> str | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT value FROM collections WHERE key = ?", (key,)).fetchone()
    conn.close()
    return row["value"] if row else default


def set_value(db_path: str, key: str, value: str) -> None:
    """Replace the whole value stored under ``key``."""
    now = datetime.now().isoformat()
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO collections (key, value, updated_at) VALUES (?, ?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value=?, updated_at=?",
        (key, value, now, value, now),
    )
    conn.commit()
    conn.close()
