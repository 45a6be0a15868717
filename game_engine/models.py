"""Data models for the game engine."""

from datetime import datetime

from pydantic import BaseModel, Field

from .types import AnswerSource, GamePhase, TeamId


class RosterMember(BaseModel):
    """A room member as the roster service reports it."""

    member_id: str
    display_name: str
    role: str = "player"  # 'host' or 'player'
    platform: str | None = None
    joined_at: datetime | None = None
    team_id: TeamId | None = None
    has_profile: bool = False
    profile_text: str | None = None


class Player(BaseModel):
    """A participant synced into the game from the roster."""

    id: str
    name: str
    team_id: TeamId | None = None
    has_profile: bool = False
    profile_text: str | None = None
    is_host: bool = False
    platform: str | None = None
    joined_at: datetime | None = None
    is_online: bool = True
    last_seen: str | None = None

    @classmethod
    def from_member(cls, member: RosterMember) -> "Player":
        return cls(
            id=member.member_id,
            name=member.display_name,
            team_id=member.team_id,
            has_profile=member.has_profile,
            profile_text=member.profile_text,
            is_host=member.role == "host",
            platform=member.platform,
            joined_at=member.joined_at,
        )

    @property
    def profile_complete(self) -> bool:
        return self.has_profile and bool(self.profile_text and self.profile_text.strip())


class VoteTally(BaseModel):
    """Votes cast in the current round."""

    for_human: list[str] = Field(default_factory=list)
    for_generated: list[str] = Field(default_factory=list)
    by_voter: dict[str, AnswerSource] = Field(default_factory=dict)


class RoundResult(BaseModel):
    """Outcome of a resolved round, written once."""

    majority: AnswerSource
    actual: AnswerSource
    correct: bool
    human_votes: int = 0
    generated_votes: int = 0
    team_that_guessed: TeamId | None = None
    team_that_responded: TeamId | None = None


class RoundState(BaseModel):
    """The shared game document for one room."""

    phase: GamePhase = GamePhase.CLONE_CREATION
    topic: str = "General"
    round_number: int = Field(default=1, ge=1)
    questioning_team: TeamId | None = None
    current_player: str | None = None
    players_answered: list[str] = Field(default_factory=list)

    current_question: str | None = None
    generated_answer: str | None = None
    human_answer: str | None = None
    player_response: str | None = None
    used_generated: bool | None = None

    votes: VoteTally = Field(default_factory=VoteTally)
    votes_submitted: int = 0
    expected_voters: int = 0
    round_result: RoundResult | None = None

    team_a_score: int = Field(default=0, ge=0)
    team_b_score: int = Field(default=0, ge=0)

    players: list[Player] = Field(default_factory=list)
    last_updated: int = 0

    def get_player(self, player_id: str | None) -> Player | None:
        if player_id is None:
            return None
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def team_members(self, team: TeamId | None) -> list[Player]:
        return [p for p in self.players if team is not None and p.team_id == team]

    @property
    def responder(self) -> Player | None:
        return self.get_player(self.current_player)

    def score_for(self, team: TeamId) -> int:
        return self.team_a_score if team is TeamId.A else self.team_b_score
