"""End-to-end tests for the per-room coordinator."""

import asyncio
import random

import pytest

from config.settings import GameConfig, GeneratorConfig, StoreConfig, SystemConfig
from game_engine.coordinator import GameCoordinator
from game_engine.errors import ErrorKind, PreconditionFailed, TransientIOFailure
from game_engine.fallback import fallback_answer
from game_engine.generator import AnswerGenerator
from game_engine.models import RoundState
from game_engine.store import InMemoryDocumentStore
from game_engine.teams import ordered
from game_engine.types import AnswerSource, GamePhase, PlayerRole, TeamId
from game_engine.voting import expected_voter_ids
from models.manager import ModelManager

from conftest import FakeProvider, build_member

ROOM = "room-1"


class FlakyStore(InMemoryDocumentStore):
    """In-memory store whose next `failures` writes raise."""

    def __init__(self):
        super().__init__()
        self.failures = 0
        self.attempts = 0

    async def _write(self, room_id: str, state: RoundState) -> None:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise TransientIOFailure(ErrorKind.STORE_UNAVAILABLE, "store offline")
        await super()._write(room_id, state)


def _coordinator(store, roster, generator, **kwargs) -> GameCoordinator:
    kwargs.setdefault("rng", random.Random(99))
    return GameCoordinator(store, roster, generator, **kwargs)


async def _ready_game(coordinator: GameCoordinator) -> RoundState:
    """Initialize the room, save every profile and start round 1."""
    state = await coordinator.initialize_game(ROOM, topic="Weekends")
    for player in state.players:
        await coordinator.save_profile(ROOM, player.id, f"{player.name} is a thoughtful person")
    return await coordinator.start_game(ROOM)


def _team(state: RoundState, team: TeamId) -> list[str]:
    return [p.id for p in ordered(state.team_members(team))]


def _asker(state: RoundState) -> str:
    return _team(state, state.questioning_team)[0]


def test_full_round_with_four_players(store, roster, static_generator) -> None:
    events: list[tuple[str, dict]] = []

    async def listener(event_type: str, data: dict) -> None:
        events.append((event_type, data))

    coordinator = _coordinator(store, roster, static_generator, on_state_change=listener)

    async def scenario():
        started = await _ready_game(coordinator)
        team_a, team_b = _team(started, TeamId.A), _team(started, TeamId.B)

        assert started.phase is GamePhase.QUESTIONING
        assert started.current_player == team_b[0]
        assert await coordinator.get_role(ROOM, team_a[0]) is PlayerRole.QUESTIONER

        asked = await coordinator.submit_question(ROOM, "Ideal Sunday?", submitter_id=team_a[0])
        assert asked.phase is GamePhase.WAITING_FOR_RESPONSE
        assert asked.generated_answer == static_generator.text

        voting = await coordinator.submit_response(ROOM, team_b[0], AnswerSource.GENERATED)
        assert voting.phase is GamePhase.VOTING
        assert voting.expected_voters == 2

        await coordinator.submit_vote(ROOM, team_a[0], AnswerSource.GENERATED)
        results = await coordinator.submit_vote(ROOM, team_a[1], AnswerSource.GENERATED)
        assert results.phase is GamePhase.RESULTS
        assert results.round_result.correct is True
        assert (results.team_a_score, results.team_b_score) == (1, 0)

        next_round = await coordinator.advance_round(ROOM, expected_round=1)
        assert next_round.round_number == 2
        assert next_round.questioning_team is TeamId.B
        assert next_round.current_player == team_a[0]

    asyncio.run(scenario())

    resolved = [data for event_type, data in events if event_type == "round_resolved"]
    assert len(resolved) == 1
    assert resolved[0]["correct"] is True
    assert static_generator.calls[0][1] == "Ideal Sunday?"
    assert static_generator.calls[0][2] == "Weekends"
    assert all(data["room_id"] == ROOM for _, data in events)


def test_concurrent_advance_round_advances_once(store, roster, static_generator) -> None:
    coordinator = _coordinator(store, roster, static_generator)

    async def scenario():
        started = await _ready_game(coordinator)
        results = started.model_copy(update={"phase": GamePhase.RESULTS})
        await store.put(ROOM, results)

        await asyncio.gather(
            coordinator.advance_round(ROOM, expected_round=1),
            coordinator.advance_round(ROOM, expected_round=1),
            coordinator.advance_round(ROOM, expected_round=1),
        )
        return await coordinator.get_state(ROOM)

    state = asyncio.run(scenario())

    assert state.round_number == 2
    assert state.phase is GamePhase.QUESTIONING


def test_question_uses_fallback_when_model_times_out(store, roster) -> None:
    manager = ModelManager(SystemConfig())
    manager.set_provider(FakeProvider(delay=0.5))
    generator = AnswerGenerator(GeneratorConfig(timeout=0.01), manager)
    coordinator = _coordinator(store, roster, generator)

    async def scenario():
        started = await _ready_game(coordinator)
        responder = started.responder
        asked = await coordinator.submit_question(ROOM, "Ideal Sunday?", _asker(started))
        return responder, asked

    responder, asked = asyncio.run(scenario())

    assert asked.phase is GamePhase.WAITING_FOR_RESPONSE
    assert asked.generated_answer == fallback_answer(responder.profile_text, "Ideal Sunday?")


def test_store_writes_retry_with_backoff(roster, static_generator) -> None:
    store = FlakyStore()
    sleeps: list[float] = []

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    coordinator = _coordinator(
        store,
        roster,
        static_generator,
        store_config=StoreConfig(write_retries=3, retry_base_delay=0.25),
        sleep=fake_sleep,
    )

    async def scenario():
        await coordinator.initialize_game(ROOM)
        store.failures = 2
        return await coordinator.save_profile(ROOM, "a1", "Night owl")

    state = asyncio.run(scenario())

    assert sleeps == [0.25, 0.5]
    assert state.get_player("a1").profile_text == "Night owl"


def test_store_write_gives_up_after_retries(roster, static_generator) -> None:
    store = FlakyStore()
    sleeps: list[float] = []

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    coordinator = _coordinator(
        store,
        roster,
        static_generator,
        store_config=StoreConfig(write_retries=2, retry_base_delay=0.1),
        sleep=fake_sleep,
    )

    async def scenario():
        await coordinator.initialize_game(ROOM)
        store.failures = 5
        await coordinator.save_profile(ROOM, "a1", "Night owl")

    with pytest.raises(TransientIOFailure):
        asyncio.run(scenario())
    assert sleeps == [0.1]


def test_precondition_failure_does_not_write(store, roster, static_generator) -> None:
    coordinator = _coordinator(store, roster, static_generator)

    async def scenario():
        started = await _ready_game(coordinator)
        with pytest.raises(PreconditionFailed) as excinfo:
            await coordinator.submit_vote(ROOM, started.players[0].id, AnswerSource.HUMAN)
        return started, excinfo.value, await coordinator.get_state(ROOM)

    started, error, latest = asyncio.run(scenario())

    assert error.kind is ErrorKind.VOTING_CLOSED
    assert latest == started


def test_start_game_reports_missing_profiles(store, roster, static_generator) -> None:
    coordinator = _coordinator(store, roster, static_generator)

    async def scenario():
        await coordinator.initialize_game(ROOM)
        await coordinator.save_profile(ROOM, "a1", "Night owl")
        await coordinator.start_game(ROOM)

    with pytest.raises(PreconditionFailed) as excinfo:
        asyncio.run(scenario())

    assert excinfo.value.kind is ErrorKind.INCOMPLETE_PROFILES
    assert sorted(excinfo.value.context["names"]) == ["A2", "B1", "B2"]


def test_unknown_room(store, roster, static_generator) -> None:
    coordinator = _coordinator(store, roster, static_generator)

    with pytest.raises(PreconditionFailed) as excinfo:
        asyncio.run(coordinator.get_state("nowhere"))
    assert excinfo.value.kind is ErrorKind.GAME_NOT_FOUND


def test_initialize_twice_keeps_existing_game(store, roster, static_generator) -> None:
    coordinator = _coordinator(store, roster, static_generator)

    async def scenario():
        first = await coordinator.initialize_game(ROOM)
        again = await coordinator.initialize_game(ROOM)
        reset = await coordinator.initialize_game(ROOM, reset=True)
        return first, again, reset

    first, again, reset = asyncio.run(scenario())

    assert again == first
    assert reset.last_updated > first.last_updated


def test_save_profile_updates_roster(store, roster, static_generator) -> None:
    coordinator = _coordinator(store, roster, static_generator)

    async def scenario():
        await coordinator.initialize_game(ROOM)
        await coordinator.save_profile(ROOM, "b2", "Marathon runner")
        return await roster.get_member(ROOM, "b2")

    member = asyncio.run(scenario())

    assert member.has_profile is True
    assert member.profile_text == "Marathon runner"


def test_question_restores_responder_profile_from_roster(
    store, roster, static_generator
) -> None:
    coordinator = _coordinator(store, roster, static_generator)

    async def scenario():
        started = await _ready_game(coordinator)
        responder_id = started.current_player
        players = [
            p.model_copy(update={"has_profile": False, "profile_text": None})
            if p.id == responder_id
            else p
            for p in started.players
        ]
        await store.put(ROOM, started.model_copy(update={"players": players}))
        asked = await coordinator.submit_question(ROOM, "Ideal Sunday?", _asker(started))
        return responder_id, asked

    responder_id, asked = asyncio.run(scenario())

    assert asked.phase is GamePhase.WAITING_FOR_RESPONSE
    assert asked.get_player(responder_id).profile_complete
    assert static_generator.calls[-1][0].endswith("is a thoughtful person")


def test_corrupted_state_is_repaired_on_next_write(store, roster, static_generator) -> None:
    coordinator = _coordinator(store, roster, static_generator)

    async def scenario():
        started = await _ready_game(coordinator)
        team_a = _team(started, TeamId.A)
        await store.put(ROOM, started.model_copy(update={"current_player": team_a[0]}))
        return await coordinator.update_player_status(ROOM, team_a[1], is_online=False)

    repaired = asyncio.run(scenario())

    assert repaired.responder.team_id is TeamId.B
    assert repaired.get_player(repaired.current_player).team_id != repaired.questioning_team


def test_master_review_flow(store, roster, static_generator) -> None:
    coordinator = _coordinator(
        store, roster, static_generator, config=GameConfig(require_master_review=True)
    )

    async def scenario():
        started = await _ready_game(coordinator)
        await coordinator.submit_question(ROOM, "Ideal Sunday?", _asker(started))
        held = await coordinator.submit_response(
            ROOM, started.current_player, AnswerSource.HUMAN, "Brunch and a nap"
        )
        revealed = await coordinator.reveal_response(ROOM)
        return held, revealed

    held, revealed = asyncio.run(scenario())

    assert held.phase is GamePhase.MASTER_REVIEW
    assert revealed.phase is GamePhase.VOTING
    assert revealed.player_response == "Brunch and a nap"


def test_new_member_joins_mid_game(store, roster, static_generator) -> None:
    coordinator = _coordinator(store, roster, static_generator)

    async def scenario():
        await _ready_game(coordinator)
        roster.add_member(ROOM, build_member("c1", 30))
        return await coordinator.sync_members(ROOM)

    state = asyncio.run(scenario())

    newcomer = state.get_player("c1")
    assert newcomer is not None
    assert newcomer.team_id is not None
    assert state.phase is GamePhase.QUESTIONING


def test_question_from_responding_team_is_not_written(store, roster, static_generator) -> None:
    coordinator = _coordinator(store, roster, static_generator)

    async def scenario():
        started = await _ready_game(coordinator)
        responding = _team(started, started.questioning_team.opponent)
        with pytest.raises(PreconditionFailed) as excinfo:
            await coordinator.submit_question(ROOM, "Ideal Sunday?", responding[1])
        return started, excinfo.value, await coordinator.get_state(ROOM)

    started, error, latest = asyncio.run(scenario())

    assert error.kind is ErrorKind.NOT_YOUR_TURN
    assert latest == started
    assert static_generator.calls == []


def test_repair_game_writes_only_when_invalid(store, roster, static_generator) -> None:
    coordinator = _coordinator(store, roster, static_generator)

    async def scenario():
        started = await _ready_game(coordinator)
        _, untouched = await coordinator.repair_game(ROOM)
        team_a = _team(started, TeamId.A)
        await store.put(ROOM, started.model_copy(update={"current_player": team_a[0]}))
        repaired, written = await coordinator.repair_game(ROOM)
        return untouched, repaired, written

    untouched, repaired, written = asyncio.run(scenario())

    assert untouched is False
    assert written is True
    assert repaired.responder.team_id is TeamId.B


ACTIVE_PHASES = (
    GamePhase.QUESTIONING,
    GamePhase.WAITING_FOR_RESPONSE,
    GamePhase.MASTER_REVIEW,
    GamePhase.VOTING,
)


def _assert_round_invariants(state: RoundState) -> None:
    if state.phase in ACTIVE_PHASES:
        assert state.responder is not None
        assert state.responder.team_id != state.questioning_team
    if state.phase is GamePhase.VOTING:
        assert state.expected_voters == len(expected_voter_ids(state))
        assert 0 <= state.votes_submitted < state.expected_voters
    assert state.team_a_score + state.team_b_score <= state.round_number


def _pick(rng: random.Random, preferred: list[str], everyone: list[str]) -> str:
    """Usually a player allowed to act, sometimes anyone."""
    if preferred and rng.random() < 0.7:
        return rng.choice(preferred)
    return rng.choice(everyone)


@pytest.mark.slow
@pytest.mark.parametrize("seed", [3, 17, 2024])
def test_random_action_sequences_keep_round_invariants(
    store, roster, static_generator, seed: int
) -> None:
    rng = random.Random(seed)
    roster.add_member(ROOM, build_member("c1", 4))
    coordinator = _coordinator(store, roster, static_generator)

    def actions_for(state: RoundState, step: int) -> tuple[str, list]:
        everyone = [p.id for p in state.players]
        questioners = _team(state, state.questioning_team) if state.questioning_team else []
        copies = rng.choice([1, 1, 2, 3])
        action = rng.choice(["question", "respond", "vote", "advance"])

        if action == "question":
            submitter = _pick(rng, questioners, everyone)
            calls = [
                coordinator.submit_question(ROOM, f"Question {step}?", submitter)
                for _ in range(copies)
            ]
        elif action == "respond":
            player = _pick(rng, [state.current_player] if state.current_player else [], everyone)
            choice = rng.choice(list(AnswerSource))
            calls = [
                coordinator.submit_response(ROOM, player, choice, f"Answer {step}")
                for _ in range(copies)
            ]
        elif action == "vote":
            voter = _pick(rng, expected_voter_ids(state), everyone)
            choice = rng.choice(list(AnswerSource))
            calls = [coordinator.submit_vote(ROOM, voter, choice) for _ in range(copies)]
        else:
            calls = [
                coordinator.advance_round(ROOM, expected_round=state.round_number)
                for _ in range(copies)
            ]
        return action, calls

    async def scenario():
        await _ready_game(coordinator)
        rounds_seen = set()

        for step in range(150):
            before = await coordinator.get_state(ROOM)
            action, calls = actions_for(before, step)
            outcomes = await asyncio.gather(*calls, return_exceptions=True)
            after = await coordinator.get_state(ROOM)

            errors = [o for o in outcomes if isinstance(o, BaseException)]
            assert all(isinstance(e, PreconditionFailed) for e in errors)
            if len(errors) == len(outcomes):
                assert after == before
            if action == "advance":
                assert after.round_number - before.round_number in (0, 1)
            if action == "question":
                assert len(outcomes) - len(errors) <= 1

            _assert_round_invariants(after)
            rounds_seen.add(after.round_number)
        return rounds_seen

    rounds_seen = asyncio.run(scenario())

    assert len(rounds_seen) > 1
