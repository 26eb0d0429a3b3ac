"""SQLite connection and schema migrations."""

from __future__ import annotations

import sqlite3
from urllib.parse import urlsplit

_MIGRATIONS = (
    """CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        is_active BOOLEAN DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE IF NOT EXISTS links (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        short_code TEXT NOT NULL UNIQUE,
        original_url TEXT NOT NULL,
        title TEXT,
        user_id INTEGER REFERENCES users(id) ON DELETE CASCADE,
        is_active BOOLEAN DEFAULT 1,
        expires_at TIMESTAMP,
        max_clicks INTEGER,
        password_hash TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    "CREATE INDEX IF NOT EXISTS idx_links_short_code ON links(short_code)",
    "CREATE INDEX IF NOT EXISTS idx_links_user_id ON links(user_id)",
    """CREATE TABLE IF NOT EXISTS clicks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        link_id INTEGER NOT NULL REFERENCES links(id) ON DELETE CASCADE,
        ip_address TEXT,
        user_agent TEXT,
        referer TEXT,
        country TEXT,
        city TEXT,
        device TEXT,
        browser TEXT,
        os TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    "CREATE INDEX IF NOT EXISTS idx_clicks_link_id ON clicks(link_id)",
    "CREATE INDEX IF NOT EXISTS idx_clicks_created_at ON clicks(created_at)",
    """CREATE TABLE IF NOT EXISTS tags (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        user_id INTEGER REFERENCES users(id) ON DELETE CASCADE,
        UNIQUE (name, user_id)
    )""",
    """CREATE TABLE IF NOT EXISTS link_tags (
        link_id INTEGER REFERENCES links(id) ON DELETE CASCADE,
        tag_id INTEGER REFERENCES tags(id) ON DELETE CASCADE,
        PRIMARY KEY (link_id, tag_id)
    )""",
)


class MigrationError(Exception):
    """A schema statement failed; number is its 1-based position."""

    def __init__(self, number: int, cause: Exception) -> None:
        super().__init__(f"migration {number}: {cause}")
        self.number = number


def _sqlite_path(database_url: str) -> str:
    scheme = urlsplit(database_url).scheme
    if scheme != "sqlite":
        raise ValueError(f"parse config: unsupported database url scheme {scheme!r}")
    rest = database_url[len("sqlite://"):].split("?", 1)[0]
    if rest and not rest.startswith("/"):
        raise ValueError("parse config: sqlite url must not name a host")
    return rest[1:] or ":memory:"


def connect(database_url: str) -> sqlite3.Connection:
    """Open the database named by a sqlite:// URL, in autocommit mode."""
    conn = sqlite3.connect(
        _sqlite_path(database_url), timeout=10, isolation_level=None, check_same_thread=False
    )
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("SELECT 1").fetchone()
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def run_migrations(conn: sqlite3.Connection) -> None:
    """Create every table and index that does not exist yet."""
    for number, statement in enumerate(_MIGRATIONS, start=1):
        try:
            conn.execute(statement)
        except sqlite3.Error as exc:
            raise MigrationError(number, exc) from exc