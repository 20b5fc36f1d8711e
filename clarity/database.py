"""SQLite store for workbench settings and open worksheets."""

import os
import sqlite3
from pathlib import Path

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS saved_tabs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        schema_name TEXT NOT NULL DEFAULT '',
        tab_order INTEGER NOT NULL,
        title TEXT NOT NULL,
        source_text TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_saved_tabs_schema ON saved_tabs (schema_name, tab_order)",
)


def default_db_path():
    override = os.environ.get("CLARITY_DB")
    if override:
        return Path(override)
    return Path.home() / ".config" / "clarity" / "clarity.db"


class Database:
    def __init__(self, db_path=None):
        if db_path is None:
            db_path = default_db_path()
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self._init_db()

    def _get_conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        with self._get_conn() as conn:
            for statement in SCHEMA:
                conn.execute(statement)
            conn.commit()

    # ── Settings ──────────────────────────────────────────────

    def get_setting(self, key, default=None):
        with self._get_conn() as conn:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default

    def set_setting(self, key, value):
        stored = None if value is None else str(value)
        with self._get_conn() as conn:
            conn.execute("INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                         (key, stored))
            conn.commit()

    def get_settings(self):
        """All stored settings as a key -> raw string dict."""
        with self._get_conn() as conn:
            rows = conn.execute("SELECT key, value FROM settings ORDER BY key").fetchall()
        return {row["key"]: row["value"] for row in rows}

    # ── Worksheets ────────────────────────────────────────────

    def save_tabs(self, tabs, schema_name=""):
        """Replace a schema's saved worksheets. tabs is a list of dicts with title and source_text."""
        rows = [
            (schema_name, order, tab["title"], tab.get("source_text", ""))
            for order, tab in enumerate(tabs)
        ]
        with self._get_conn() as conn:
            conn.execute("DELETE FROM saved_tabs WHERE schema_name = ?", (schema_name,))
            conn.executemany(
                "INSERT INTO saved_tabs (schema_name, tab_order, title, source_text) "
                "VALUES (?, ?, ?, ?)",
                rows,
            )
            conn.commit()

    def get_saved_tabs(self, schema_name=""):
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT title, source_text FROM saved_tabs "
                "WHERE schema_name = ? ORDER BY tab_order",
                (schema_name,),
            ).fetchall()
        return [dict(row) for row in rows]
