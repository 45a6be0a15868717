"""Team balancing and responder rotation."""

import logging
import random
from collections.abc import Sequence
from datetime import datetime

from .errors import ErrorKind, PreconditionFailed
from .models import Player
from .types import TeamId

logger = logging.getLogger(__name__)


def player_order_key(player: Player) -> tuple[bool, float, str]:
    """Total order shared by every client: join time first, then id.

    Players without a join time sort after everyone who has one.
    """
    joined: datetime | None = player.joined_at
    return (joined is None, joined.timestamp() if joined else 0.0, player.id)


def ordered(players: Sequence[Player]) -> list[Player]:
    return sorted(players, key=player_order_key)


def team_counts(players: Sequence[Player]) -> dict[TeamId, int]:
    counts = {TeamId.A: 0, TeamId.B: 0}
    for player in players:
        if player.team_id is not None:
            counts[player.team_id] += 1
    return counts


def balance_teams(
    players: Sequence[Player], rng: random.Random | None = None
) -> list[Player]:
    """Shuffle players (Fisher-Yates) and alternate them into teams A and B.

    Args:
        players: Players to partition; their current teams are ignored
        rng: Random source, injectable for reproducible tests

    Returns:
        New player objects in shuffled order with team_id set
    """
    if not players:
        return []

    rng = rng or random.Random()
    shuffled = [p.model_copy() for p in players]
    rng.shuffle(shuffled)

    for index, player in enumerate(shuffled):
        player.team_id = TeamId.A if index % 2 == 0 else TeamId.B

    counts = team_counts(shuffled)
    logger.info(f"Teams balanced: A={counts[TeamId.A]}, B={counts[TeamId.B]}")
    return shuffled


def assign_new_players(players: Sequence[Player]) -> tuple[list[Player], list[str]]:
    """Give unassigned players a team without touching existing assignments.

    Each newcomer joins whichever team is currently smaller (A on a tie).
    Returns the updated players and the ids that were assigned.
    """
    result = [p.model_copy() for p in players]
    counts = team_counts(result)
    assigned: list[str] = []

    for player in result:
        if player.team_id is not None:
            continue
        team = TeamId.A if counts[TeamId.A] <= counts[TeamId.B] else TeamId.B
        player.team_id = team
        counts[team] += 1
        assigned.append(player.id)

    if assigned:
        logger.info(f"Assigned {len(assigned)} new player(s) to teams: {assigned}")
    return result, assigned


def select_responder(
    players: Sequence[Player],
    responding_team: TeamId,
    players_answered: Sequence[str],
) -> tuple[Player, list[str]]:
    """Pick the next player to be questioned from the responding team.

    The first member (by player_order_key) not yet questioned this cycle is
    chosen. When every member has answered, the cycle restarts for this team
    only; the other team's progress is kept.

    Returns:
        The chosen player and the updated players_answered list
    """
    candidates = ordered([p for p in players if p.team_id == responding_team])
    if not candidates:
        raise PreconditionFailed(
            ErrorKind.NO_ELIGIBLE_RESPONDER,
            f"No players found in team {responding_team.value} to be questioned",
            team=responding_team.value,
        )

    answered = list(players_answered)
    available = [p for p in candidates if p.id not in answered]

    if available:
        chosen = available[0]
    else:
        logger.info(
            f"All players from team {responding_team.value} have been questioned, starting a new cycle"
        )
        chosen = candidates[0]
        team_ids = {p.id for p in candidates}
        answered = [pid for pid in answered if pid not in team_ids]

    answered.append(chosen.id)
    return chosen, answered
