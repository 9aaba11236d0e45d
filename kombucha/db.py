from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .config import get_settings

_connection_cache: dict[str, sqlite3.Connection] = {}


def get_database_path() -> Path:
    settings = get_settings()
    url = settings.db_url
    if url.startswith("sqlite:///"):
        path = url.replace("sqlite:///", "")
        return Path(path)
    raise ValueError("Only sqlite:/// URLs are supported for the local brew store")


def get_connection() -> sqlite3.Connection:
    db_path = str(get_database_path())
    if db_path not in _connection_cache:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(db_path)
        conn.row_factory = sqlite3.Row
        _connection_cache[db_path] = conn
    return _connection_cache[db_path]


@contextmanager
def session_scope() -> Iterator[sqlite3.Connection]:
    conn = get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def close_connections() -> None:
    for conn in _connection_cache.values():
        conn.close()
    _connection_cache.clear()


def init_db() -> None:
    conn = get_connection()
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS reminders (
            batch_id TEXT PRIMARY KEY,
            fire_at TEXT NOT NULL,
            title TEXT NOT NULL,
            body TEXT NOT NULL,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn.commit()


__all__ = ["init_db", "session_scope", "get_connection", "close_connections"]
