"""Clone round orchestration: state, transitions, voting and coordination."""

from .coordinator import GameCoordinator
from .errors import ErrorKind, GameError, InvariantViolation, PreconditionFailed, TransientIOFailure
from .generator import AnswerGenerator, GeneratedAnswer
from .models import Player, RosterMember, RoundResult, RoundState, VoteTally
from .observer import RoleView, RoomObserver
from .roster import InMemoryRoster, RosterService
from .store import DocumentStore, InMemoryDocumentStore, SQLiteDocumentStore
from .types import AnswerSource, GamePhase, PlayerAction, PlayerRole, TeamId, TieBreak

__all__ = [
    "GameCoordinator",
    "ErrorKind",
    "GameError",
    "InvariantViolation",
    "PreconditionFailed",
    "TransientIOFailure",
    "AnswerGenerator",
    "GeneratedAnswer",
    "Player",
    "RosterMember",
    "RoundResult",
    "RoundState",
    "VoteTally",
    "RoleView",
    "RoomObserver",
    "InMemoryRoster",
    "RosterService",
    "DocumentStore",
    "InMemoryDocumentStore",
    "SQLiteDocumentStore",
    "AnswerSource",
    "GamePhase",
    "PlayerAction",
    "PlayerRole",
    "TeamId",
    "TieBreak",
]
