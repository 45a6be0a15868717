from datetime import datetime

from pydantic import BaseModel, field_validator

from game_engine.types import AnswerSource


class JoinRoomRequest(BaseModel):
    """Request model for adding a member to a room."""

    member_id: str
    display_name: str
    role: str = "player"
    platform: str | None = None
    joined_at: datetime | None = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        if v not in ("host", "player"):
            raise ValueError("role must be 'host' or 'player'")
        return v


class InitGameRequest(BaseModel):
    topic: str | None = None
    reset: bool = False


class ProfileRequest(BaseModel):
    player_id: str
    text: str


class PlayerStatusRequest(BaseModel):
    platform: str | None = None
    is_online: bool | None = None
    last_seen: str | None = None


class QuestionRequest(BaseModel):
    text: str
    submitter_id: str


class ResponseRequest(BaseModel):
    """The responder's choice: reveal their own answer or their clone's."""

    player_id: str
    choice: AnswerSource
    answer_text: str | None = None


class VoteRequest(BaseModel):
    voter_id: str
    choice: AnswerSource


class AdvanceRequest(BaseModel):
    expected_round: int | None = None
