"""Local key-value persistence for tracker state.

Every value is stored as a JSON document under a string key in the
``kv_store`` table. The manager rewrites whole collections on each
mutation, so values stay small and writes are a single upsert.
"""
from __future__ import annotations

import json
import sqlite3
from typing import Any

from .db import init_db, session_scope
from .errors import DecodeFailure, PersistenceFailure

ACTIVE_KEY = "activeFermentations"
HISTORY_KEY = "fermentationHistory"
PENDING_KEY = "pendingCompletion"
COUNTER_KEY = "nextBatchNumber"


class KeyValueStore:
    def __init__(self):
        init_db()

    def read_json(self, key: str, default: Any = None) -> Any:
        try:
            with session_scope() as conn:
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise DecodeFailure(key, str(exc)) from exc
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except ValueError as exc:
            raise DecodeFailure(key, str(exc)) from exc

    def write_json(self, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise PersistenceFailure(key, str(exc)) from exc
        try:
            with session_scope() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, encoded),
                )
        except sqlite3.Error as exc:
            raise PersistenceFailure(key, str(exc)) from exc

    def delete(self, key: str) -> None:
        try:
            with session_scope() as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise PersistenceFailure(key, str(exc)) from exc

    def increment(self, key: str) -> int:
        """Atomically add one to an integer value and return the new value.

        A missing (or zero) counter becomes 1.
        """
        try:
            with session_scope() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, '1', CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = CAST(CAST(kv_store.value AS INTEGER) + 1 AS TEXT),
                        updated_at = excluded.updated_at
                    """,
                    (key,),
                )
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceFailure(key, str(exc)) from exc
        return int(row["value"])


class BatchCounter:
    """Persisted sequence behind the "Batch #N" names. Never goes backwards."""

    def __init__(self, store: KeyValueStore, key: str = COUNTER_KEY):
        self.store = store
        self.key = key

    def current(self) -> int:
        value = self.store.read_json(self.key, 0)
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise DecodeFailure(self.key, str(exc)) from exc

    def next(self) -> int:
        return self.store.increment(self.key)


__all__ = [
    "KeyValueStore",
    "BatchCounter",
    "ACTIVE_KEY",
    "HISTORY_KEY",
    "PENDING_KEY",
    "COUNTER_KEY",
]
