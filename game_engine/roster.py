"""Room roster: who is in the room, independent of the game document."""

import logging
from abc import ABC, abstractmethod
from typing import Any

from .errors import ErrorKind, PreconditionFailed
from .models import RosterMember

logger = logging.getLogger(__name__)


class RosterService(ABC):
    """Source of room membership and per-member profile data."""

    @abstractmethod
    async def list_members(self, room_id: str) -> list[RosterMember]:
        pass

    @abstractmethod
    async def update_member(self, room_id: str, member_id: str, **fields: Any) -> RosterMember:
        pass

    async def get_member(self, room_id: str, member_id: str) -> RosterMember | None:
        for member in await self.list_members(room_id):
            if member.member_id == member_id:
                return member
        return None


class InMemoryRoster(RosterService):
    """Roster kept in process memory."""

    def __init__(self):
        self._rooms: dict[str, dict[str, RosterMember]] = {}

    def add_member(self, room_id: str, member: RosterMember) -> None:
        self._rooms.setdefault(room_id, {})[member.member_id] = member
        logger.info(f"{member.display_name} joined room {room_id}")

    def remove_member(self, room_id: str, member_id: str) -> None:
        self._rooms.get(room_id, {}).pop(member_id, None)

    async def list_members(self, room_id: str) -> list[RosterMember]:
        return [m.model_copy() for m in self._rooms.get(room_id, {}).values()]

    async def update_member(self, room_id: str, member_id: str, **fields: Any) -> RosterMember:
        members = self._rooms.get(room_id, {})
        if member_id not in members:
            raise PreconditionFailed(
                ErrorKind.PLAYER_NOT_FOUND,
                "Member not found in room",
                room_id=room_id,
                player_id=member_id,
            )
        updated = members[member_id].model_copy(update=fields)
        members[member_id] = updated
        return updated.model_copy()
