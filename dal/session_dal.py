"""Async Data Access Layer for the SESSION table.

Each row holds one conversation serialized as JSON, scoped by a fixed
history namespace so several histories can share one database file.
Rows are replaced wholesale on write and never merged across sessions.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from utils.database_init import AsyncDatabaseInitializer

LOGGER = logging.getLogger(__name__)


class SessionDAL:
    """Data access layer for persisted session records.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    def __init__(self, db_initializer: AsyncDatabaseInitializer, namespace: str) -> None:
        self._db = db_initializer
        self.namespace = namespace

    async def save_session(self, record: Dict[str, Any]) -> None:
        """Insert or replace the record stored under `record["id"]`."""
        payload = json.dumps(record, ensure_ascii=False)
        async with self._db.connection() as conn:
            await conn.execute(
                "INSERT OR REPLACE INTO SESSION (namespace, id, payload, last_modified) VALUES (?, ?, ?, ?)",
                (self.namespace, record["id"], payload, float(record.get("last_modified") or 0.0)),
            )
            await conn.commit()

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Return the decoded record for `session_id`, or None if missing or corrupt."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT payload FROM SESSION WHERE namespace = ? AND id = ?",
                (self.namespace, session_id),
            )
            row = await cur.fetchone()
        return self._decode(session_id, row[0]) if row else None

    async def list_sessions(self) -> List[Dict[str, Any]]:
        """Return every decodable record in the namespace, newest first.

        Corrupt rows are logged and skipped.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT id, payload FROM SESSION WHERE namespace = ? ORDER BY last_modified DESC",
                (self.namespace,),
            )
            rows = await cur.fetchall()
        records = []
        for session_id, payload in rows:
            record = self._decode(session_id, payload)
            if record is not None:
                records.append(record)
        return records

    async def get_raw_payload(self, session_id: str) -> Optional[str]:
        """Return the stored JSON text for `session_id` exactly as written."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT payload FROM SESSION WHERE namespace = ? AND id = ?",
                (self.namespace, session_id),
            )
            row = await cur.fetchone()
        return row[0] if row else None

    async def delete_session(self, session_id: str) -> bool:
        """Delete one record. Returns True if a row was deleted."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "DELETE FROM SESSION WHERE namespace = ? AND id = ?",
                (self.namespace, session_id),
            )
            await conn.commit()
            return cur.rowcount > 0

    @staticmethod
    def _decode(session_id: str, payload: str) -> Optional[Dict[str, Any]]:
        try:
            record = json.loads(payload)
        except (TypeError, ValueError) as exc:
            LOGGER.error("Discarding unreadable session record %s: %s", session_id, exc)
            return None
        if not isinstance(record, dict) or "id" not in record:
            LOGGER.error("Discarding malformed session record %s", session_id)
            return None
        return record
