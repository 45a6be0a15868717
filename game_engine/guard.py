"""Consistency guard: detect and repair invalid shared state.

Concurrent writers racing on stale reads can leave the game document in a
state no single transition would produce (most commonly a responder who sits
on the questioning team). repair() moves such a state back to a valid one and
is a no-op on a state that is already valid.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from .errors import InvariantViolation, PreconditionFailed, ViolationKind
from .models import RosterMember, RoundState
from .teams import assign_new_players, select_responder
from .types import GamePhase, TeamId
from .voting import count_submitted, expected_voter_ids

logger = logging.getLogger(__name__)


@dataclass
class GuardReport:
    """Result of a repair pass."""

    state: RoundState
    violations: list[InvariantViolation] = field(default_factory=list)
    changed: bool = False
    valid: bool = True


def _has_text(text: str | None) -> bool:
    return bool(text and text.strip())


def check(state: RoundState) -> list[InvariantViolation]:
    """Return every invariant violation present in the state."""
    violations: list[InvariantViolation] = []

    if state.phase != GamePhase.CLONE_CREATION:
        unassigned = [p.id for p in state.players if p.team_id is None]
        if unassigned:
            violations.append(
                InvariantViolation(ViolationKind.UNASSIGNED_PLAYERS, {"player_ids": unassigned})
            )

    mismatched = [
        p.id for p in state.players if p.has_profile != _has_text(p.profile_text)
    ]
    if mismatched:
        violations.append(
            InvariantViolation(ViolationKind.PROFILE_FLAG_MISMATCH, {"player_ids": mismatched})
        )

    if state.phase == GamePhase.QUESTIONING:
        responder = state.responder
        if responder is None or state.questioning_team is None:
            violations.append(
                InvariantViolation(
                    ViolationKind.RESPONDER_MISSING,
                    {
                        "current_player": state.current_player,
                        "questioning_team": state.questioning_team.value
                        if state.questioning_team
                        else None,
                    },
                )
            )
        elif responder.team_id == state.questioning_team:
            violations.append(
                InvariantViolation(
                    ViolationKind.RESPONDER_ON_QUESTIONING_TEAM,
                    {
                        "current_player": responder.id,
                        "questioning_team": state.questioning_team.value,
                    },
                )
            )

    if state.phase == GamePhase.VOTING:
        eligible = set(expected_voter_ids(state))
        ineligible = [v for v in state.votes.by_voter if v not in eligible]
        if ineligible:
            violations.append(
                InvariantViolation(ViolationKind.INELIGIBLE_VOTES, {"voter_ids": ineligible})
            )
        submitted, expected = count_submitted(state)
        if (submitted, expected) != (state.votes_submitted, state.expected_voters):
            violations.append(
                InvariantViolation(
                    ViolationKind.VOTER_COUNT_DRIFT,
                    {
                        "stored": [state.votes_submitted, state.expected_voters],
                        "actual": [submitted, expected],
                    },
                )
            )

    return violations


def repair(
    state: RoundState, roster: Sequence[RosterMember] | None = None
) -> GuardReport:
    """Correct every repairable violation in one pass.

    Args:
        state: Snapshot as observed
        roster: Optional roster, used to restore lost profile text

    Returns:
        GuardReport; valid is False when a violation could not be corrected
        (for example the responding team is empty)
    """
    violations = check(state)
    if not violations:
        return GuardReport(state=state)

    kinds = {v.kind for v in violations}
    for violation in violations:
        logger.warning(f"Invariant violation {violation.kind.value}: {violation.context}")

    new_state = state.model_copy(deep=True)

    if ViolationKind.UNASSIGNED_PLAYERS in kinds:
        new_state.players, assigned = assign_new_players(new_state.players)
        logger.warning(f"Guard assigned teams to {assigned}")

    if ViolationKind.PROFILE_FLAG_MISMATCH in kinds:
        _repair_profiles(new_state, roster)

    if kinds & {ViolationKind.RESPONDER_MISSING, ViolationKind.RESPONDER_ON_QUESTIONING_TEAM}:
        _repair_responder(new_state)

    if kinds & {ViolationKind.INELIGIBLE_VOTES, ViolationKind.VOTER_COUNT_DRIFT}:
        _repair_votes(new_state)

    remaining = check(new_state)
    if remaining:
        logger.error(
            f"Guard could not fully repair state: {[v.kind.value for v in remaining]}"
        )

    return GuardReport(
        state=new_state,
        violations=violations,
        changed=new_state != state,
        valid=not remaining,
    )


def _repair_profiles(state: RoundState, roster: Sequence[RosterMember] | None) -> None:
    members = {m.member_id: m for m in roster or []}
    for player in state.players:
        has_text = _has_text(player.profile_text)
        if player.has_profile and not has_text:
            member = members.get(player.id)
            if member is not None and _has_text(member.profile_text):
                logger.warning(f"Restoring {player.name}'s profile text from roster")
                player.profile_text = member.profile_text
            else:
                logger.warning(f"Clearing {player.name}'s profile flag (no profile text found)")
                player.has_profile = False
                player.profile_text = None
        elif has_text and not player.has_profile:
            logger.warning(f"Setting {player.name}'s profile flag to match stored text")
            player.has_profile = True


def _repair_responder(state: RoundState) -> None:
    if state.questioning_team is None:
        state.questioning_team = TeamId.A

    bad_id = state.current_player
    answered = [pid for pid in state.players_answered if pid != bad_id]
    try:
        responder, answered = select_responder(
            state.players, state.questioning_team.opponent, answered
        )
    except PreconditionFailed as e:
        logger.error(f"Cannot correct responder: {e}")
        return

    logger.warning(
        f"Corrected responder {bad_id} -> {responder.id} "
        f"(Team {responder.team_id.value if responder.team_id else '?'})"
    )
    state.current_player = responder.id
    state.players_answered = answered


def _repair_votes(state: RoundState) -> None:
    eligible = set(expected_voter_ids(state))
    tally = state.votes
    tally.by_voter = {v: c for v, c in tally.by_voter.items() if v in eligible}
    tally.for_human = [v for v in tally.for_human if v in eligible]
    tally.for_generated = [v for v in tally.for_generated if v in eligible]
    state.votes_submitted, state.expected_voters = count_submitted(state)
