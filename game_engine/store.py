"""Shared game document stores.

A store keeps one RoundState document per room, stamps every write with a
strictly increasing last_updated value and pushes each committed snapshot to
the room's subscribers.
"""

import asyncio
import json
import logging
import sqlite3
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .errors import ErrorKind, PreconditionFailed, TransientIOFailure
from .models import RoundState

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class DocumentStore(ABC):
    """Abstract per-room document store with change notification."""

    def __init__(self):
        self._subscribers: dict[str, list[asyncio.Queue[RoundState]]] = {}

    @abstractmethod
    async def _read(self, room_id: str) -> RoundState | None:
        pass

    @abstractmethod
    async def _write(self, room_id: str, state: RoundState) -> None:
        pass

    async def get(self, room_id: str) -> RoundState | None:
        """Return the latest committed document, or None if the room has none."""
        return await self._read(room_id)

    async def put(self, room_id: str, state: RoundState) -> RoundState:
        """Replace the room's document and return the stamped copy."""
        previous = await self._read(room_id)
        stamped = self._stamp(state, previous)
        await self._write(room_id, stamped)
        self._notify(room_id, stamped)
        return stamped

    async def merge_write(self, room_id: str, fields: dict[str, Any]) -> RoundState:
        """Update only the given top-level fields of the room's document."""
        current = await self._read(room_id)
        if current is None:
            raise PreconditionFailed(
                ErrorKind.GAME_NOT_FOUND, "Game not found", room_id=room_id
            )
        data = current.model_dump(mode="json")
        data.update(fields)
        merged = RoundState.model_validate(data)
        stamped = self._stamp(merged, current)
        await self._write(room_id, stamped)
        self._notify(room_id, stamped)
        return stamped

    async def subscribe(self, room_id: str) -> AsyncIterator[RoundState]:
        """Yield the current document (if any), then every committed change."""
        queue: asyncio.Queue[RoundState] = asyncio.Queue()
        self._subscribers.setdefault(room_id, []).append(queue)
        try:
            current = await self._read(room_id)
            if current is not None:
                yield current
            while True:
                yield await queue.get()
        finally:
            queues = self._subscribers.get(room_id, [])
            if queue in queues:
                queues.remove(queue)
            if not queues:
                self._subscribers.pop(room_id, None)

    def subscriber_count(self, room_id: str) -> int:
        return len(self._subscribers.get(room_id, []))

    def _stamp(self, state: RoundState, previous: RoundState | None) -> RoundState:
        floor = previous.last_updated + 1 if previous is not None else 0
        return state.model_copy(update={"last_updated": max(_now_ms(), floor)})

    def _notify(self, room_id: str, state: RoundState) -> None:
        for queue in self._subscribers.get(room_id, []):
            queue.put_nowait(state)


class InMemoryDocumentStore(DocumentStore):
    """Process-local store, used for tests and single-instance deployments."""

    def __init__(self):
        super().__init__()
        self._documents: dict[str, str] = {}

    async def _read(self, room_id: str) -> RoundState | None:
        raw = self._documents.get(room_id)
        if raw is None:
            return None
        return RoundState.model_validate_json(raw)

    async def _write(self, room_id: str, state: RoundState) -> None:
        self._documents[room_id] = state.model_dump_json()


class SQLiteDocumentStore(DocumentStore):
    """Persists room documents as JSON rows in SQLite."""

    def __init__(self, db_path: str = "clone_games.db"):
        super().__init__()
        self.db_path = Path(db_path)
        self._ensure_schema()

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            logger.error(f"Game store database error: {e}")
            raise TransientIOFailure(
                ErrorKind.STORE_UNAVAILABLE, f"Game store unavailable: {e}"
            ) from e
        finally:
            if conn:
                conn.close()

    def _ensure_schema(self) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS clone_games (
                    room_id TEXT PRIMARY KEY,
                    document TEXT NOT NULL,
                    last_updated INTEGER NOT NULL
                )
                """
            )
            conn.commit()

    async def _read(self, room_id: str) -> RoundState | None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT document FROM clone_games WHERE room_id = ?", (room_id,))
            row = cursor.fetchone()

        if not row:
            return None
        return RoundState.model_validate(json.loads(row["document"]))

    async def _write(self, room_id: str, state: RoundState) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO clone_games (room_id, document, last_updated)
                VALUES (?, ?, ?)
                ON CONFLICT(room_id) DO UPDATE SET
                    document = excluded.document,
                    last_updated = excluded.last_updated
                """,
                (room_id, state.model_dump_json(), state.last_updated),
            )
            conn.commit()
        logger.debug(f"Stored game {room_id} at {state.last_updated}")
