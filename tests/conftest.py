"""Pytest configuration and shared fixtures.

Players in the standard fixtures join in id order:

    a1, a2 -> Team A        b1, b2 -> Team B

so join-order rules (team leader, responder rotation) are predictable.
"""

import asyncio
import random
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from config.settings import AppConfig, GameConfig, GeneratorConfig, StoreConfig, SystemConfig
from game_engine.generator import GeneratedAnswer
from game_engine.models import Player, RosterMember, RoundState
from game_engine.roster import InMemoryRoster
from game_engine.store import InMemoryDocumentStore
from game_engine.transitions import start_game
from game_engine.types import GamePhase, TeamId
from models.providers.base_model_provider import BaseModelProvider

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

PROFILES = {
    "a1": "Sarcastic software engineer who loves hiking",
    "a2": "Funny baker, always cracking jokes",
    "b1": "Thoughtful philosophy student",
    "b2": "Energetic and outgoing gym coach",
}


def build_player(
    player_id: str,
    team: TeamId | None,
    minute: int = 0,
    profile: str | None = "Likes board games",
    **overrides,
) -> Player:
    """Create a player who joined `minute` minutes after BASE_TIME."""
    return Player(
        id=player_id,
        name=player_id.upper(),
        team_id=team,
        has_profile=profile is not None,
        profile_text=profile,
        joined_at=BASE_TIME + timedelta(minutes=minute),
        **overrides,
    )


def build_member(member_id: str, minute: int = 0, profile: str | None = None) -> RosterMember:
    return RosterMember(
        member_id=member_id,
        display_name=member_id.upper(),
        role="host" if minute == 0 else "player",
        joined_at=BASE_TIME + timedelta(minutes=minute),
        has_profile=profile is not None,
        profile_text=profile,
    )


class FakeProvider(BaseModelProvider):
    """Model provider stand-in with scripted behaviour."""

    def __init__(
        self,
        reply: str = "Mountains, obviously.",
        delay: float = 0.0,
        error: Exception | None = None,
    ):
        super().__init__(SystemConfig())
        self._client = object()
        self.reply = reply
        self.delay = delay
        self.error = error
        self.requests: list[list[dict[str, str]]] = []

    @property
    def provider_name(self) -> str:
        return "openai"

    async def generate_response(self, model_config, messages, **overrides) -> str:
        self.requests.append(messages)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.reply

    def validate_model_config(self, model_config) -> bool:
        return True


class StaticGenerator:
    """Stand-in for AnswerGenerator that always returns the same text."""

    def __init__(self, text: str = "Honestly, I'd just go for a long walk."):
        self.text = text
        self.calls: list[tuple[str, str, str]] = []

    async def generate(self, profile_text: str, question: str, topic: str = "General") -> GeneratedAnswer:
        self.calls.append((profile_text, question, topic))
        return GeneratedAnswer(text=self.text, source="model")


# =============================================================================
# SHARED FIXTURES - Available to all test modules
# =============================================================================


@pytest.fixture
def make_player() -> Callable[..., Player]:
    return build_player


@pytest.fixture
def four_players() -> list[Player]:
    return [
        build_player("a1", TeamId.A, 0, PROFILES["a1"]),
        build_player("a2", TeamId.A, 1, PROFILES["a2"]),
        build_player("b1", TeamId.B, 2, PROFILES["b1"]),
        build_player("b2", TeamId.B, 3, PROFILES["b2"]),
    ]


@pytest.fixture
def lobby_state(four_players: list[Player]) -> RoundState:
    """clone_creation state with teams already assigned and profiles saved."""
    return RoundState(phase=GamePhase.CLONE_CREATION, players=four_players)


@pytest.fixture
def questioning_state(lobby_state: RoundState) -> RoundState:
    """Round 1: Team A questions, b1 responds."""
    return start_game(lobby_state)


@pytest.fixture
def voting_state(questioning_state: RoundState) -> RoundState:
    """Round 1 voting: b1 revealed the generated answer; a1 and a2 vote."""
    return questioning_state.model_copy(
        update={
            "phase": GamePhase.VOTING,
            "current_question": "What would you do on a free Sunday?",
            "generated_answer": "Probably sleep in and read.",
            "player_response": "Probably sleep in and read.",
            "used_generated": True,
            "votes_submitted": 0,
            "expected_voters": 2,
        }
    )


@pytest.fixture
def roster_members() -> list[RosterMember]:
    return [build_member(pid, minute) for minute, pid in enumerate(["a1", "a2", "b1", "b2"])]


@pytest.fixture
def roster(roster_members: list[RosterMember]) -> InMemoryRoster:
    room_roster = InMemoryRoster()
    for member in roster_members:
        room_roster.add_member("room-1", member)
    return room_roster


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def static_generator() -> StaticGenerator:
    return StaticGenerator()


@pytest.fixture
def seeded_rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def app_config() -> AppConfig:
    """Offline configuration: fallback-only generator, in-memory store."""
    return AppConfig(
        game=GameConfig(),
        generator=GeneratorConfig(enabled=False),
        store=StoreConfig(backend="memory", retry_base_delay=0.25),
    )


# =============================================================================
# PYTEST CONFIGURATION HOOKS
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
