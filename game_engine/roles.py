"""Role resolution: who may do what, computed purely from the RoundState.

Every client must derive the same answer from the same snapshot, so nothing
here reads client-local state.
"""

import logging

from .models import Player, RoundState
from .teams import ordered
from .types import GamePhase, PlayerAction, PlayerRole, TeamId

logger = logging.getLogger(__name__)


def team_leader(state: RoundState, team: TeamId | None) -> Player | None:
    """The team member who joined first (ties and missing times broken by id)."""
    members = ordered(state.team_members(team))
    return members[0] if members else None


def is_team_leader(state: RoundState, player_id: str) -> bool:
    player = state.get_player(player_id)
    if player is None or player.team_id is None:
        return False
    leader = team_leader(state, player.team_id)
    return leader is not None and leader.id == player_id


def determine_role(state: RoundState, player_id: str) -> PlayerRole:
    """Resolve a player's role for the current snapshot."""
    player = state.get_player(player_id)
    if player is None:
        logger.debug(f"Player {player_id} not found in game")
        return PlayerRole.SPECTATOR

    if player_id == state.current_player:
        return PlayerRole.RESPONDER

    on_questioning_team = (
        player.team_id is not None and player.team_id == state.questioning_team
    )

    if (
        state.phase == GamePhase.QUESTIONING
        and on_questioning_team
        and not state.current_question
    ):
        # Two-member teams: both members may ask
        team_size = len(state.team_members(state.questioning_team))
        if team_size == 2 or is_team_leader(state, player_id):
            return PlayerRole.QUESTIONER
        return PlayerRole.SPECTATOR

    if state.phase == GamePhase.VOTING and on_questioning_team:
        return PlayerRole.VOTER

    return PlayerRole.SPECTATOR


def can_player_act(state: RoundState, player_id: str, action: PlayerAction) -> bool:
    """Whether the UI should offer the given action to this player."""
    role = determine_role(state, player_id)

    if action == PlayerAction.QUESTION:
        return role == PlayerRole.QUESTIONER and not state.current_question

    if action == PlayerAction.RESPOND:
        return (
            role == PlayerRole.RESPONDER
            and state.phase == GamePhase.WAITING_FOR_RESPONSE
            and bool(state.current_question)
            and not state.player_response
        )

    if action == PlayerAction.VOTE:
        return (
            role == PlayerRole.VOTER
            and bool(state.player_response)
            and player_id not in state.votes.by_voter
        )

    return False


def describe_state(state: RoundState) -> str:
    """One-line description of what is happening right now."""
    responder = state.responder
    responder_name = responder.name if responder else "the responder"

    if state.phase == GamePhase.CLONE_CREATION:
        return "Players are creating their AI clones..."

    if state.phase == GamePhase.QUESTIONING:
        if not state.current_question:
            return f"Waiting for question to {responder_name}"
        return f'Question asked: "{state.current_question}"'

    if state.phase == GamePhase.WAITING_FOR_RESPONSE:
        return f"{responder_name} is crafting their response..."

    if state.phase == GamePhase.MASTER_REVIEW:
        return "Master is reviewing the response..."

    if state.phase == GamePhase.VOTING:
        if state.player_response:
            return f'Response: "{state.player_response}"'
        return "Team is voting on the response..."

    result = state.round_result
    if result is None:
        return "Calculating results..."
    verdict = "Correct!" if result.correct else "Wrong"
    return (
        f"Guess: {result.majority.value.upper()} | "
        f"Actual: {result.actual.value.upper()} | {verdict}"
    )
