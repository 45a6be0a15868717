from typing import Any

from pydantic import BaseModel


class RoomStateResponse(BaseModel):
    """Response model for a room's game state."""

    room_id: str
    phase: str
    round_number: int
    status: str
    state: dict[str, Any]


class RoleResponse(BaseModel):
    """Response model for one player's role in the current snapshot."""

    room_id: str
    player_id: str
    role: str
    is_leader: bool
    can_question: bool
    can_respond: bool
    can_vote: bool
    status: str
