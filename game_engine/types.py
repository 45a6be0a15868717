"""Shared types and enums for the game engine."""

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeAlias, TypedDict


class GamePhase(Enum):
    """Phases of a Clone round."""

    CLONE_CREATION = "clone_creation"
    QUESTIONING = "questioning"
    WAITING_FOR_RESPONSE = "waiting_for_response"
    MASTER_REVIEW = "master_review"
    VOTING = "voting"
    RESULTS = "results"


class TeamId(Enum):
    """The two teams."""

    A = "A"
    B = "B"

    @property
    def opponent(self) -> "TeamId":
        return TeamId.B if self is TeamId.A else TeamId.A


class AnswerSource(Enum):
    """Where a revealed answer came from."""

    HUMAN = "human"
    GENERATED = "generated"


class TieBreak(Enum):
    """Majority assigned when a vote is tied."""

    GENERATED = "generated"
    HUMAN = "human"

    @property
    def source(self) -> AnswerSource:
        return AnswerSource(self.value)


class PlayerRole(Enum):
    """What a player may do right now."""

    QUESTIONER = "QUESTIONER"
    RESPONDER = "RESPONDER"
    VOTER = "VOTER"
    SPECTATOR = "SPECTATOR"


class PlayerAction(Enum):
    """Actions gated by role."""

    QUESTION = "question"
    RESPOND = "respond"
    VOTE = "vote"


class StateUpdatedEventData(TypedDict):
    """Data structure for state_updated broadcasts."""

    room_id: str
    phase: str
    round_number: int
    last_updated: int
    state: dict[str, Any]


class RoundResolvedEventData(TypedDict):
    """Data structure for round_resolved broadcasts."""

    room_id: str
    round_number: int
    majority: str
    actual: str
    correct: bool
    team_a_score: int
    team_b_score: int


# Callback type aliases for coordinator events
StateEventCallback: TypeAlias = Callable[[str, dict[str, Any]], Awaitable[None]]
