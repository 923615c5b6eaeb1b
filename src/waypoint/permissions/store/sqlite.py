"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides a SQLite permission rule backend.
"""

from __future__ import annotations

from typing import cast

import aiosqlite

from ..types import PermissionLevel, PermissionRule
from .base import PermissionStore

# Global rows are stored under the empty session id so that
# (tool, session_id) can serve as the primary key. Callers cannot
# address it directly: `delete_session` rejects empty ids.
_GLOBAL = ""


class SQLitePermissionStore(PermissionStore):
    """Persistent local permission backend backed by SQLite."""

    def __init__(self, path: str = "waypoint_permissions.sqlite3") -> None:
        super().__init__()
        self.path = path
        self._connection: aiosqlite.Connection | None = None

    async def setup(self) -> None:
        self._connection = await aiosqlite.connect(self.path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA journal_mode=WAL;")
        await self._connection.execute("PRAGMA synchronous=NORMAL;")
        await self._create_tables()
        await self._connection.commit()
        await super().setup()

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
        await super().close()

    def _db(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError(
                "SQLitePermissionStore is not initialized. Call setup() first."
            )
        return self._connection

    async def _create_tables(self) -> None:
        db = self._db()
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS permissions (
              tool TEXT NOT NULL,
              session_id TEXT NOT NULL,
              level TEXT NOT NULL,
              path_pattern TEXT,
              created_at INTEGER NOT NULL,
              PRIMARY KEY(tool, session_id)
            );
            """,
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_permissions_session ON permissions(session_id);"
        )

    async def upsert_rule(self, rule: PermissionRule) -> None:
        self._ensure_setup()
        db = self._db()
        await db.execute(
            """
            INSERT INTO permissions (tool, session_id, level, path_pattern, created_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(tool, session_id) DO UPDATE SET
              level=excluded.level,
              path_pattern=excluded.path_pattern,
              created_at=excluded.created_at
            """,
            (
                rule.tool,
                rule.session_id or _GLOBAL,
                rule.level,
                rule.path_pattern,
                rule.created_at,
            ),
        )
        await db.commit()

    async def find_rule(self, tool: str, session_id: str | None) -> PermissionRule | None:
        self._ensure_setup()
        db = self._db()
        # Session row sorts before the global row.
        cursor = await db.execute(
            """
            SELECT * FROM permissions
            WHERE tool=? AND (session_id=? OR session_id=?)
            ORDER BY session_id=? ASC
            LIMIT 1
            """,
            (tool, session_id or _GLOBAL, _GLOBAL, _GLOBAL),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_rule(row)

    async def list_rules(self, session_id: str | None) -> list[PermissionRule]:
        self._ensure_setup()
        db = self._db()
        cursor = await db.execute(
            "SELECT * FROM permissions WHERE session_id=? OR session_id=? ORDER BY created_at ASC",
            (_GLOBAL, session_id or _GLOBAL),
        )
        rows = await cursor.fetchall()
        return [self._row_to_rule(row) for row in rows]

    async def delete_session(self, session_id: str) -> int:
        self._ensure_setup()
        self._require_session(session_id)
        db = self._db()
        cursor = await db.execute(
            "DELETE FROM permissions WHERE session_id=?",
            (session_id,),
        )
        await db.commit()
        return cursor.rowcount

    @staticmethod
    def _row_to_rule(row: aiosqlite.Row) -> PermissionRule:
        session_id = cast(str, row["session_id"])
        return PermissionRule(
            tool=cast(str, row["tool"]),
            level=cast(PermissionLevel, row["level"]),
            session_id=session_id or None,
            path_pattern=row["path_pattern"],
            created_at=int(row["created_at"]),
        )
