"""Vote aggregation, majority and scoring."""

import logging

from .errors import ErrorKind, PreconditionFailed, phase_invalid
from .models import RoundResult, RoundState, VoteTally
from .types import AnswerSource, GamePhase, TeamId, TieBreak

logger = logging.getLogger(__name__)


def expected_voter_ids(state: RoundState) -> list[str]:
    """Questioning-team members minus the responder (even if mis-teamed)."""
    return [
        p.id
        for p in state.team_members(state.questioning_team)
        if p.id != state.current_player
    ]


def count_submitted(state: RoundState) -> tuple[int, int]:
    """Return (votes_submitted, expected_voters) recomputed from the tally."""
    expected = expected_voter_ids(state)
    submitted = sum(1 for voter_id in expected if voter_id in state.votes.by_voter)
    return submitted, len(expected)


def majority(tally: VoteTally, tie_break: TieBreak = TieBreak.GENERATED) -> AnswerSource:
    """Simple-count majority; ties go to the configured tie-break."""
    human_votes = len(tally.for_human)
    generated_votes = len(tally.for_generated)
    if human_votes > generated_votes:
        return AnswerSource.HUMAN
    if generated_votes > human_votes:
        return AnswerSource.GENERATED
    return tie_break.source


def submit_vote(
    state: RoundState,
    voter_id: str,
    choice: AnswerSource,
    tie_break: TieBreak = TieBreak.GENERATED,
) -> RoundState:
    """Record a vote and resolve the round once every expected voter has voted.

    Re-voting overwrites the voter's previous choice.
    """
    if state.phase != GamePhase.VOTING:
        raise PreconditionFailed(
            ErrorKind.VOTING_CLOSED,
            "Voting is not currently active",
            phase=state.phase.value,
        )

    voter = state.get_player(voter_id)
    if voter is None:
        raise PreconditionFailed(
            ErrorKind.PLAYER_NOT_FOUND, "Player not found", player_id=voter_id
        )

    if voter_id == state.current_player:
        raise PreconditionFailed(
            ErrorKind.NOT_YOUR_TURN,
            "The player being questioned cannot vote",
            player_id=voter_id,
        )

    if voter.team_id != state.questioning_team:
        raise PreconditionFailed(
            ErrorKind.NOT_ELIGIBLE_VOTER,
            "Only the questioning team can vote",
            player_id=voter_id,
            team=voter.team_id.value if voter.team_id else None,
        )

    new_state = state.model_copy(deep=True)
    tally = new_state.votes
    tally.for_human = [v for v in tally.for_human if v != voter_id]
    tally.for_generated = [v for v in tally.for_generated if v != voter_id]
    if choice == AnswerSource.HUMAN:
        tally.for_human.append(voter_id)
    else:
        tally.for_generated.append(voter_id)
    tally.by_voter[voter_id] = choice

    new_state.votes_submitted, new_state.expected_voters = count_submitted(new_state)
    logger.info(
        f"Vote from {voter_id}: {choice.value} "
        f"({new_state.votes_submitted}/{new_state.expected_voters})"
    )

    if new_state.votes_submitted >= new_state.expected_voters:
        new_state = resolve_round(new_state, tie_break)

    return new_state


def resolve_round(
    state: RoundState, tie_break: TieBreak = TieBreak.GENERATED
) -> RoundState:
    """Compute the round result and score exactly once.

    If a result is already present the state is returned unchanged, so
    duplicate completion triggers collapse into a single computation.
    """
    if state.round_result is not None:
        logger.debug(f"Round {state.round_number} already resolved, skipping")
        return state

    if state.phase != GamePhase.VOTING or state.used_generated is None:
        raise phase_invalid("resolve round", state.phase.value)

    guess = majority(state.votes, tie_break)
    actual = AnswerSource.GENERATED if state.used_generated else AnswerSource.HUMAN
    correct = guess == actual

    new_state = state.model_copy(deep=True)
    questioning_team = new_state.questioning_team
    if correct and questioning_team is not None:
        if questioning_team is TeamId.A:
            new_state.team_a_score += 1
        else:
            new_state.team_b_score += 1

    responder = new_state.responder
    new_state.round_result = RoundResult(
        majority=guess,
        actual=actual,
        correct=correct,
        human_votes=len(new_state.votes.for_human),
        generated_votes=len(new_state.votes.for_generated),
        team_that_guessed=questioning_team,
        team_that_responded=responder.team_id if responder else None,
    )
    new_state.phase = GamePhase.RESULTS

    logger.info(
        f"Round {new_state.round_number} resolved: guess={guess.value}, "
        f"actual={actual.value}, correct={correct} "
        f"(A={new_state.team_a_score}, B={new_state.team_b_score})"
    )
    return new_state
