"""Phase transitions for a Clone game.

Every function here is pure: it takes the latest RoundState, validates the
action's preconditions and returns a new RoundState. A failed guard raises
PreconditionFailed before anything is copied, so the caller's state is never
touched.

Phase flow::

    clone_creation -> questioning -> waiting_for_response
        -> [master_review] -> voting -> results -> questioning ...
"""

import logging
import random
from collections.abc import Sequence

from .errors import ErrorKind, PreconditionFailed, incomplete_profiles, phase_invalid
from .fallback import fallback_answer
from .models import Player, RosterMember, RoundState, VoteTally
from .teams import assign_new_players, balance_teams, select_responder
from .types import AnswerSource, GamePhase, TeamId
from .voting import count_submitted

logger = logging.getLogger(__name__)


def _clear_round_fields(state: RoundState) -> None:
    """Reset every per-round transient field in place (on a copy)."""
    state.current_question = None
    state.generated_answer = None
    state.human_answer = None
    state.player_response = None
    state.used_generated = None
    state.votes = VoteTally()
    state.votes_submitted = 0
    state.expected_voters = 0
    state.round_result = None


def _require_player(state: RoundState, player_id: str) -> Player:
    player = state.get_player(player_id)
    if player is None:
        raise PreconditionFailed(
            ErrorKind.PLAYER_NOT_FOUND, "Player not found", player_id=player_id
        )
    return player


def create_game(
    members: Sequence[RosterMember],
    topic: str = "General",
    rng: random.Random | None = None,
) -> RoundState:
    """Build the initial clone_creation state from the room roster."""
    players = balance_teams([Player.from_member(m) for m in members], rng)
    return RoundState(phase=GamePhase.CLONE_CREATION, topic=topic, players=players)


def save_profile(state: RoundState, player_id: str, text: str) -> RoundState:
    """Store a player's personality profile text."""
    profile_text = text.strip()
    if not profile_text:
        raise PreconditionFailed(
            ErrorKind.EMPTY_RESPONSE, "Profile text cannot be empty", player_id=player_id
        )
    _require_player(state, player_id)

    new_state = state.model_copy(deep=True)
    player = new_state.get_player(player_id)
    assert player is not None
    player.has_profile = True
    player.profile_text = profile_text
    return new_state


def update_player_status(
    state: RoundState,
    player_id: str,
    *,
    platform: str | None = None,
    is_online: bool | None = None,
    last_seen: str | None = None,
) -> RoundState:
    """Apply a presence heartbeat to one player."""
    _require_player(state, player_id)

    new_state = state.model_copy(deep=True)
    player = new_state.get_player(player_id)
    assert player is not None
    if platform is not None:
        player.platform = platform
    if is_online is not None:
        player.is_online = is_online
    if last_seen is not None:
        player.last_seen = last_seen
    return new_state


def sync_members(state: RoundState, members: Sequence[RosterMember]) -> RoundState:
    """Merge the roster into the game's players.

    Existing players keep their team and profile (roster values win only when
    present). Newcomers are balanced onto the smaller team. Players who left
    the roster are dropped only before the game starts; mid-game they stay.
    """
    members_by_id = {m.member_id: m for m in members}
    existing_ids = {p.id for p in state.players}
    synced: list[Player] = []

    for current in state.players:
        member = members_by_id.get(current.id)
        if member is None:
            if state.phase != GamePhase.CLONE_CREATION:
                synced.append(current.model_copy())
            continue
        synced.append(
            current.model_copy(
                update={
                    "name": member.display_name,
                    "is_host": member.role == "host",
                    "platform": member.platform or current.platform,
                    "has_profile": member.has_profile or current.has_profile,
                    "profile_text": member.profile_text or current.profile_text,
                }
            )
        )

    for member in members:
        if member.member_id not in existing_ids:
            newcomer = Player.from_member(member)
            newcomer.team_id = None
            synced.append(newcomer)

    players, _ = assign_new_players(synced)
    new_state = state.model_copy(deep=True)
    new_state.players = players
    return new_state


def start_game(state: RoundState, min_players: int = 2) -> RoundState:
    """clone_creation -> questioning.

    Team A questions first; the first team B member in join order responds.
    """
    if state.phase != GamePhase.CLONE_CREATION:
        raise phase_invalid("start game", state.phase.value)

    if len(state.players) < min_players:
        raise PreconditionFailed(
            ErrorKind.NOT_ENOUGH_PLAYERS,
            f"At least {min_players} players are required to start",
            players=len(state.players),
            required=min_players,
        )

    missing = [p.name for p in state.players if not p.profile_complete]
    if missing:
        raise incomplete_profiles(missing)

    players, _ = assign_new_players(state.players)
    for team in TeamId:
        if not any(p.team_id == team for p in players):
            raise PreconditionFailed(
                ErrorKind.NOT_ENOUGH_PLAYERS,
                f"Team {team.value} has no players",
                team=team.value,
            )

    responder, answered = select_responder(players, TeamId.B, [])

    new_state = state.model_copy(deep=True)
    new_state.players = players
    _clear_round_fields(new_state)
    new_state.phase = GamePhase.QUESTIONING
    new_state.questioning_team = TeamId.A
    new_state.current_player = responder.id
    new_state.players_answered = answered

    logger.info(
        f"Game started: Team A questions -> Team B's {responder.name} responds"
    )
    return new_state


def validate_question(state: RoundState, submitter_id: str) -> Player:
    """Check that submitter_id may ask a question now and return the responder."""
    if state.phase != GamePhase.QUESTIONING:
        raise phase_invalid("submit a question", state.phase.value)

    questioning_team = state.questioning_team
    submitter = _require_player(state, submitter_id)
    if questioning_team is None or submitter.team_id != questioning_team:
        raise PreconditionFailed(
            ErrorKind.NOT_YOUR_TURN,
            "Only the questioning team can ask this round",
            player_id=submitter_id,
        )

    responder = state.responder
    if responder is None or questioning_team is None:
        raise PreconditionFailed(
            ErrorKind.INVALID_QUESTIONING_STATE,
            "Current player not found",
            current_player=state.current_player,
        )

    if responder.team_id == questioning_team:
        raise PreconditionFailed(
            ErrorKind.INVALID_QUESTIONING_STATE,
            f"Invalid game state: Team {questioning_team.value} cannot question their own player",
            current_player=responder.id,
            questioning_team=questioning_team.value,
        )

    if not responder.profile_complete:
        raise incomplete_profiles([responder.name])

    return responder


def submit_question(
    state: RoundState,
    text: str,
    generated_answer: str,
    submitter_id: str,
) -> RoundState:
    """questioning -> waiting_for_response.

    The generated answer is computed by the caller (see AnswerGenerator)
    before this transition and stored alongside the question. A blank one is
    replaced by the offline fallback for the responder's profile.
    """
    question = text.strip()
    if not question:
        raise PreconditionFailed(ErrorKind.EMPTY_RESPONSE, "Question cannot be empty")

    responder = validate_question(state, submitter_id)

    answer = generated_answer.strip()
    if not answer:
        assert responder.profile_text is not None
        logger.warning(f"Empty generated answer for {responder.name}, using fallback")
        answer = fallback_answer(responder.profile_text, question)

    new_state = state.model_copy(deep=True)
    _clear_round_fields(new_state)
    new_state.current_question = question
    new_state.generated_answer = answer
    new_state.phase = GamePhase.WAITING_FOR_RESPONSE

    logger.info(
        f"Team {state.questioning_team.value if state.questioning_team else '?'} "
        f"asked {responder.name}: {question!r}"
    )
    return new_state


def submit_response(
    state: RoundState,
    player_id: str,
    choice: AnswerSource,
    answer_text: str | None = None,
    require_review: bool = False,
) -> RoundState:
    """waiting_for_response -> voting (or master_review when enabled).

    A human choice reveals answer_text; a generated choice reveals
    answer_text when given, otherwise the stored generated answer.
    """
    if state.phase != GamePhase.WAITING_FOR_RESPONSE:
        raise phase_invalid("submit a response", state.phase.value)

    if player_id != state.current_player:
        raise PreconditionFailed(
            ErrorKind.NOT_YOUR_TURN,
            "Not your turn",
            player_id=player_id,
            current_player=state.current_player,
        )

    if choice == AnswerSource.HUMAN:
        response = (answer_text or "").strip()
    else:
        response = (answer_text or state.generated_answer or "").strip()

    if not response:
        raise PreconditionFailed(
            ErrorKind.EMPTY_RESPONSE,
            "Response cannot be empty",
            choice=choice.value,
        )

    new_state = state.model_copy(deep=True)
    new_state.player_response = response
    new_state.human_answer = response if choice == AnswerSource.HUMAN else None
    new_state.used_generated = choice == AnswerSource.GENERATED
    new_state.votes = VoteTally()
    new_state.round_result = None
    new_state.votes_submitted, new_state.expected_voters = count_submitted(new_state)
    new_state.phase = GamePhase.MASTER_REVIEW if require_review else GamePhase.VOTING
    return new_state


def reveal_response(state: RoundState) -> RoundState:
    """master_review -> voting."""
    if state.phase != GamePhase.MASTER_REVIEW:
        raise phase_invalid("reveal the response", state.phase.value)
    if not state.player_response:
        raise PreconditionFailed(
            ErrorKind.EMPTY_RESPONSE,
            "No player response to reveal. Player must submit their response first.",
        )

    new_state = state.model_copy(deep=True)
    new_state.phase = GamePhase.VOTING
    return new_state


def advance_round(state: RoundState, expected_round: int | None = None) -> RoundState:
    """results -> questioning for the next round.

    Args:
        state: Latest state
        expected_round: Round the caller believes it is advancing from. If the
            state has already moved past it, the call is a duplicate and the
            state is returned unchanged.
    """
    if expected_round is not None and state.round_number > expected_round:
        logger.info(
            f"Round {expected_round} already advanced (now {state.round_number}), ignoring"
        )
        return state

    if state.phase != GamePhase.RESULTS:
        raise phase_invalid("advance round", state.phase.value)

    current_team = state.questioning_team or TeamId.B
    next_questioning_team = current_team.opponent
    responding_team = next_questioning_team.opponent

    responder, answered = select_responder(
        state.players, responding_team, state.players_answered
    )

    new_state = state.model_copy(deep=True)
    _clear_round_fields(new_state)
    new_state.phase = GamePhase.QUESTIONING
    new_state.questioning_team = next_questioning_team
    new_state.current_player = responder.id
    new_state.players_answered = answered
    new_state.round_number = state.round_number + 1

    logger.info(
        f"Round {new_state.round_number}: Team {next_questioning_team.value} questions "
        f"-> Team {responding_team.value}'s {responder.name} responds"
    )
    return new_state
