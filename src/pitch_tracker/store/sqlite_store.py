"""SQLite-backed store with foreign keys enforced and local change publishing."""

import asyncio
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

from pitch_tracker.errors import (
    ForeignKeyViolation,
    StructuralSchemaMismatch,
    TrackerError,
    TransientQueryFailure,
)
from pitch_tracker.realtime import ChangeNotification, LocalChangeChannel

from .base import BaseStore, Filter, check_identifier, normalize_value

logger = logging.getLogger(__name__)

_STRUCTURAL_MARKERS = ("no such table", "no such column", "has no column named")


class SqliteStore(BaseStore):
    """
    SQLite store for persons, roles and activity rows.
    Blocking sqlite3 calls run in a worker thread so callers stay cooperative.
    When a channel is given, every committed insert is published to it.
    """

    name = "sqlite"

    def __init__(
        self,
        db_path: str | Path = "pitch_tracker.db",
        *,
        channel: Optional[LocalChangeChannel] = None,
        ensure_schema: bool = True,
    ):
        self._db_path = Path(db_path)
        self.channel = channel
        if ensure_schema:
            self._ensure_schema()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        schema_path = Path(__file__).parent / "schema.sql"
        with self._connection() as conn:
            conn.executescript(schema_path.read_text())
        logger.debug("Schema ready at %s", self._db_path)

    def _translate(self, relation: str, exc: sqlite3.Error) -> TrackerError:
        """Map sqlite errors onto the store error taxonomy."""
        message = str(exc)
        lowered = message.lower()
        if isinstance(exc, sqlite3.OperationalError):
            if any(marker in lowered for marker in _STRUCTURAL_MARKERS):
                return StructuralSchemaMismatch(relation, message)
            return TransientQueryFailure(relation, message)
        if isinstance(exc, sqlite3.IntegrityError) and "foreign key" in lowered:
            return ForeignKeyViolation(relation, message)
        return TrackerError(f"{relation}: {message}")

    def _build_where(self, filters: Sequence[Filter]) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for f in filters:
            col = check_identifier(f.column)
            if f.op == "eq":
                clauses.append(f"{col} = ?")
                params.append(normalize_value(f.value))
            elif f.op == "in":
                placeholders = ", ".join("?" for _ in f.value)
                clauses.append(f"{col} IN ({placeholders})")
                params.extend(normalize_value(v) for v in f.value)
            elif f.op == "is_null":
                clauses.append(f"{col} IS NULL")
            elif f.op == "gte":
                clauses.append(f"{col} >= ?")
                params.append(normalize_value(f.value))
            elif f.op == "lt":
                clauses.append(f"{col} < ?")
                params.append(normalize_value(f.value))
            else:
                raise ValueError(f"Unsupported filter op: {f.op}")
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def _select_sync(
        self,
        relation: str,
        filters: Sequence[Filter],
        order_by: Optional[str],
        descending: bool,
        limit: Optional[int],
    ) -> list[dict[str, Any]]:
        table = check_identifier(relation)
        where, params = self._build_where(filters)
        sql = f"SELECT * FROM {table}{where}"
        if order_by:
            sql += f" ORDER BY {check_identifier(order_by)} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        try:
            with self._connection() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise self._translate(relation, e) from e
        return [dict(r) for r in rows]

    def _insert_sync(self, relation: str, row: dict[str, Any]) -> dict[str, Any]:
        table = check_identifier(relation)
        data = {check_identifier(k): normalize_value(v) for k, v in row.items()}
        data.setdefault("id", str(uuid.uuid4()))
        columns = ", ".join(data)
        placeholders = ", ".join("?" for _ in data)
        try:
            with self._connection() as conn:
                conn.execute(
                    f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                    list(data.values()),
                )
                stored = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (data["id"],)).fetchone()
        except sqlite3.Error as e:
            raise self._translate(relation, e) from e
        return dict(stored) if stored else data

    async def select(
        self,
        relation: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        if any(f.matches_nothing for f in filters):
            return []
        return await asyncio.to_thread(
            self._select_sync, relation, tuple(filters), order_by, descending, limit
        )

    async def insert(self, relation: str, row: dict[str, Any]) -> dict[str, Any]:
        stored = await asyncio.to_thread(self._insert_sync, relation, dict(row))
        if self.channel is not None:
            self.channel.publish(ChangeNotification(relation, "INSERT", stored))
        return stored
