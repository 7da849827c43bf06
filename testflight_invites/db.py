"""SQLite database operations for tracking links reported in earlier runs."""

import sqlite3
from datetime import datetime, timezone
from typing import Iterable, Optional, Set, Tuple


def init_db(db_path: str) -> sqlite3.Connection:
    """
    Initialize the database and create tables if they don't exist.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        A connection to the database.
    """
    conn = sqlite3.connect(db_path)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS seen_links (
            url TEXT PRIMARY KEY,
            app_name TEXT NOT NULL,
            first_seen_at TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """)
    conn.commit()
    return conn


def get_seen_links(conn: sqlite3.Connection) -> Set[str]:
    """Return every URL reported by a previous run."""
    cursor = conn.execute("SELECT url FROM seen_links")
    return {row[0] for row in cursor.fetchall()}


def mark_links_seen(conn: sqlite3.Connection, links: Iterable[Tuple[str, str]]) -> None:
    """
    Record links as reported; already-known URLs keep their first timestamp.

    Args:
        conn: Database connection.
        links: (url, app_name) pairs.
    """
    now = datetime.now(timezone.utc).isoformat()
    conn.executemany(
        "INSERT OR IGNORE INTO seen_links (url, app_name, first_seen_at) VALUES (?, ?, ?)",
        [(url, app_name, now) for url, app_name in links]
    )
    conn.commit()


def clear_seen_links(conn: sqlite3.Connection) -> None:
    conn.execute("DELETE FROM seen_links")
    conn.commit()


def get_meta(conn: sqlite3.Connection, key: str) -> Optional[str]:
    """Get a metadata value, or None if not found."""
    cursor = conn.execute("SELECT value FROM meta WHERE key = ?", (key,))
    row = cursor.fetchone()
    return row[0] if row else None


def set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
        (key, value)
    )
    conn.commit()
