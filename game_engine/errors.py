"""Error taxonomy for game actions.

Every error carries a kind and a context dict so callers can surface it to
the acting user (or serialize it) without parsing messages.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Kinds of action failures."""

    # Precondition failures: surfaced to the acting user, never retried
    INCOMPLETE_PROFILES = "incomplete_profiles"
    INVALID_QUESTIONING_STATE = "invalid_questioning_state"
    NOT_YOUR_TURN = "not_your_turn"
    VOTING_CLOSED = "voting_closed"
    NOT_ELIGIBLE_VOTER = "not_eligible_voter"
    PHASE_INVALID = "phase_invalid"
    EMPTY_RESPONSE = "empty_response"
    NO_ELIGIBLE_RESPONDER = "no_eligible_responder"
    NOT_ENOUGH_PLAYERS = "not_enough_players"
    PLAYER_NOT_FOUND = "player_not_found"
    GAME_NOT_FOUND = "game_not_found"

    # Transient failures: retried by the caller
    STORE_UNAVAILABLE = "store_unavailable"


class GameError(Exception):
    """Base class for game action errors."""

    def __init__(self, kind: ErrorKind, message: str, **context: Any):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "context": self.context}


class PreconditionFailed(GameError):
    """An action's guard rejected it; no state was changed."""


class TransientIOFailure(GameError):
    """The store or generator could not be reached."""


class ViolationKind(Enum):
    """Invariant violations the consistency guard knows how to detect."""

    UNASSIGNED_PLAYERS = "unassigned_players"
    RESPONDER_ON_QUESTIONING_TEAM = "responder_on_questioning_team"
    RESPONDER_MISSING = "responder_missing"
    PROFILE_FLAG_MISMATCH = "profile_flag_mismatch"
    VOTER_COUNT_DRIFT = "voter_count_drift"
    INELIGIBLE_VOTES = "ineligible_votes"


@dataclass(frozen=True)
class InvariantViolation:
    """A post-hoc invariant violation; corrected silently, never raised."""

    kind: ViolationKind
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "context": self.context}


def incomplete_profiles(names: list[str]) -> PreconditionFailed:
    return PreconditionFailed(
        ErrorKind.INCOMPLETE_PROFILES,
        f"The following players haven't created their clone profiles yet: {', '.join(names)}",
        names=names,
    )


def phase_invalid(action: str, phase: str) -> PreconditionFailed:
    return PreconditionFailed(
        ErrorKind.PHASE_INVALID,
        f"Cannot {action} during {phase} phase",
        action=action,
        phase=phase,
    )
