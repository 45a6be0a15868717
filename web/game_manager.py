"""Room registry and WebSocket fan-out for the web surface."""

import logging
from typing import Any, Dict, List

from fastapi import WebSocket

from config.settings import AppConfig, StoreConfig
from game_engine.coordinator import GameCoordinator
from game_engine.generator import AnswerGenerator
from game_engine.models import RosterMember
from game_engine.roster import InMemoryRoster
from game_engine.store import DocumentStore, InMemoryDocumentStore, SQLiteDocumentStore
from models.manager import ModelManager

logger = logging.getLogger(__name__)


def create_store(config: StoreConfig) -> DocumentStore:
    """Build the configured document store backend."""
    if config.backend == "sqlite":
        logger.info(f"Using SQLite game store at {config.sqlite_path}")
        return SQLiteDocumentStore(config.sqlite_path)
    return InMemoryDocumentStore()


class GameManager:
    """Owns the coordinator and the WebSocket connections for every room."""

    def __init__(
        self,
        config: AppConfig,
        store: DocumentStore | None = None,
        generator: AnswerGenerator | None = None,
    ):
        self.config = config
        self.roster = InMemoryRoster()
        self.store = store or create_store(config.store)
        self.generator = generator or AnswerGenerator(
            config.generator, ModelManager(config.system)
        )
        self.coordinator = GameCoordinator(
            self.store,
            self.roster,
            self.generator,
            config=config.game,
            store_config=config.store,
            on_state_change=self._on_state_change,
        )
        self.connections: Dict[str, List[WebSocket]] = {}

    def join_room(self, room_id: str, member: RosterMember) -> RosterMember:
        """Add a member to the room's roster (the game picks them up on sync)."""
        self.roster.add_member(room_id, member)
        return member

    async def _on_state_change(self, event_type: str, data: Dict[str, Any]) -> None:
        await self._broadcast_to_room(data["room_id"], {"type": event_type, **data})

    async def _broadcast_to_room(self, room_id: str, message: Dict[str, Any]) -> None:
        """Broadcast message to all connected clients for a room."""
        if room_id not in self.connections:
            return

        dead_connections = []
        for websocket in self.connections[room_id]:
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.debug(f"WebSocket send failed: {e}")
                dead_connections.append(websocket)

        # Remove dead connections
        for conn in dead_connections:
            self.connections[room_id].remove(conn)

    def add_connection(self, room_id: str, websocket: WebSocket) -> None:
        """Add WebSocket connection for a room."""
        if room_id not in self.connections:
            self.connections[room_id] = []
        self.connections[room_id].append(websocket)

    def remove_connection(self, room_id: str, websocket: WebSocket) -> None:
        """Remove WebSocket connection."""
        if room_id in self.connections and websocket in self.connections[room_id]:
            self.connections[room_id].remove(websocket)
