"""Authoritative per-room coordinator.

Every UI action goes through a GameCoordinator. For a given room, actions are
serialized by an asyncio.Lock and run as "read latest, compute, write": the
pure transition sees the newest committed document, the guard repairs the
result before it is persisted, and the write is retried on transient store
failures. Two clicks on "Next Round" therefore advance the round once.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any

from config.settings import GameConfig, StoreConfig

from . import guard, transitions
from .errors import ErrorKind, PreconditionFailed, TransientIOFailure
from .generator import AnswerGenerator
from .models import RoundState
from .roles import determine_role
from .roster import RosterService
from .store import DocumentStore
from .types import (
    AnswerSource,
    GamePhase,
    PlayerRole,
    RoundResolvedEventData,
    StateEventCallback,
    StateUpdatedEventData,
    TieBreak,
)
from .voting import count_submitted, resolve_round, submit_vote

logger = logging.getLogger(__name__)

Transition = Callable[[RoundState], RoundState]


class GameCoordinator:
    """Serializes and persists game actions for any number of rooms."""

    def __init__(
        self,
        store: DocumentStore,
        roster: RosterService,
        generator: AnswerGenerator,
        config: GameConfig | None = None,
        store_config: StoreConfig | None = None,
        on_state_change: StateEventCallback | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.roster = roster
        self.generator = generator
        self.config = config or GameConfig()
        self.store_config = store_config or StoreConfig()
        self.on_state_change = on_state_change
        self._sleep = sleep
        self._rng = rng
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def tie_break(self) -> TieBreak:
        return TieBreak(self.config.vote_tie_break)

    def _lock_for(self, room_id: str) -> asyncio.Lock:
        if room_id not in self._locks:
            self._locks[room_id] = asyncio.Lock()
        return self._locks[room_id]

    async def _load(self, room_id: str) -> RoundState:
        state = await self.store.get(room_id)
        if state is None:
            raise PreconditionFailed(
                ErrorKind.GAME_NOT_FOUND, "Game not found", room_id=room_id
            )
        return state

    async def _write_with_retry(self, room_id: str, state: RoundState) -> RoundState:
        attempts = self.store_config.write_retries
        for attempt in range(attempts):
            try:
                return await self.store.put(room_id, state)
            except TransientIOFailure as e:
                if attempt == attempts - 1:
                    logger.error(f"Giving up writing game {room_id} after {attempts} attempts: {e}")
                    raise
                delay = self.store_config.retry_base_delay * (2**attempt)
                logger.warning(
                    f"Store write for {room_id} failed (attempt {attempt + 1}/{attempts}), "
                    f"retrying in {delay:.2f}s: {e}"
                )
                await self._sleep(delay)
        raise TransientIOFailure(ErrorKind.STORE_UNAVAILABLE, "Game store unavailable")

    async def _repair(self, room_id: str, state: RoundState) -> RoundState:
        if not guard.check(state):
            return state

        roster = await self.roster.list_members(room_id)
        report = guard.repair(state, roster)
        repaired = report.state

        # Vote cleanup can complete the round; the guard leaves resolution to us
        if repaired.phase == GamePhase.VOTING and repaired.round_result is None:
            submitted, expected = count_submitted(repaired)
            if expected and submitted >= expected and repaired.used_generated is not None:
                repaired = resolve_round(repaired, self.tie_break)
        return repaired

    async def _commit(self, room_id: str, previous: RoundState | None, state: RoundState) -> RoundState:
        state = await self._repair(room_id, state)
        if previous is not None and state == previous:
            logger.debug(f"No change for game {room_id}, skipping write")
            return previous

        committed = await self._write_with_retry(room_id, state)
        await self._emit_changes(room_id, previous, committed)
        return committed

    async def _emit_changes(
        self, room_id: str, previous: RoundState | None, state: RoundState
    ) -> None:
        if self.on_state_change is None:
            return

        updated: StateUpdatedEventData = {
            "room_id": room_id,
            "phase": state.phase.value,
            "round_number": state.round_number,
            "last_updated": state.last_updated,
            "state": state.model_dump(mode="json"),
        }
        await self._safe_emit("state_updated", dict(updated))

        newly_resolved = state.round_result is not None and (
            previous is None or previous.round_result is None
        )
        if newly_resolved:
            assert state.round_result is not None
            resolved: RoundResolvedEventData = {
                "room_id": room_id,
                "round_number": state.round_number,
                "majority": state.round_result.majority.value,
                "actual": state.round_result.actual.value,
                "correct": state.round_result.correct,
                "team_a_score": state.team_a_score,
                "team_b_score": state.team_b_score,
            }
            await self._safe_emit("round_resolved", dict(resolved))

    async def _safe_emit(self, event_type: str, data: dict[str, Any]) -> None:
        assert self.on_state_change is not None
        try:
            await self.on_state_change(event_type, data)
        except Exception as e:
            logger.error(f"State change listener failed for {event_type}: {e}")

    async def _apply(self, room_id: str, transition: Transition) -> RoundState:
        async with self._lock_for(room_id):
            state = await self._load(room_id)
            return await self._commit(room_id, state, transition(state))

    # Actions

    async def initialize_game(
        self, room_id: str, topic: str | None = None, reset: bool = False
    ) -> RoundState:
        """Create the room's game from its roster.

        An existing game is kept (and re-synced with the roster) unless reset
        is set, so a repeated init from a second client is harmless.
        """
        async with self._lock_for(room_id):
            members = await self.roster.list_members(room_id)
            existing = await self.store.get(room_id)

            if existing is not None and not reset:
                logger.info(f"Game {room_id} already exists, syncing members")
                return await self._commit(
                    room_id, existing, transitions.sync_members(existing, members)
                )

            state = transitions.create_game(
                members, topic or self.config.topic, self._rng
            )
            logger.info(f"Initialized game {room_id} with {len(state.players)} players")
            return await self._commit(room_id, None, state)

    async def save_profile(self, room_id: str, player_id: str, text: str) -> RoundState:
        """Store a player's profile in both the roster and the game."""
        async with self._lock_for(room_id):
            state = await self._load(room_id)
            new_state = transitions.save_profile(state, player_id, text)

            if await self.roster.get_member(room_id, player_id) is not None:
                await self.roster.update_member(
                    room_id, player_id, has_profile=True, profile_text=text.strip()
                )
            return await self._commit(room_id, state, new_state)

    async def update_player_status(
        self,
        room_id: str,
        player_id: str,
        *,
        platform: str | None = None,
        is_online: bool | None = None,
        last_seen: str | None = None,
    ) -> RoundState:
        return await self._apply(
            room_id,
            lambda s: transitions.update_player_status(
                s, player_id, platform=platform, is_online=is_online, last_seen=last_seen
            ),
        )

    async def sync_members(self, room_id: str) -> RoundState:
        async with self._lock_for(room_id):
            state = await self._load(room_id)
            members = await self.roster.list_members(room_id)
            return await self._commit(room_id, state, transitions.sync_members(state, members))

    async def start_game(self, room_id: str) -> RoundState:
        async with self._lock_for(room_id):
            state = await self._load(room_id)
            members = await self.roster.list_members(room_id)
            synced = transitions.sync_members(state, members)
            return await self._commit(
                room_id, state, transitions.start_game(synced, self.config.min_players)
            )

    async def submit_question(
        self, room_id: str, text: str, submitter_id: str
    ) -> RoundState:
        """Ask the responder a question and store the clone's answer with it."""
        if not text.strip():
            raise PreconditionFailed(ErrorKind.EMPTY_RESPONSE, "Question cannot be empty")

        async with self._lock_for(room_id):
            state = await self._load(room_id)
            working = await self._restore_responder_profile(room_id, state)
            responder = transitions.validate_question(working, submitter_id)

            assert responder.profile_text is not None
            generated = await self.generator.generate(
                responder.profile_text, text.strip(), working.topic
            )
            if generated.used_fallback:
                logger.info(f"Using fallback answer for {responder.name} ({generated.error})")

            new_state = transitions.submit_question(
                working, text, generated.text, submitter_id
            )
            return await self._commit(room_id, state, new_state)

    async def _restore_responder_profile(self, room_id: str, state: RoundState) -> RoundState:
        responder = state.responder
        if responder is None or responder.profile_complete:
            return state

        member = await self.roster.get_member(room_id, responder.id)
        if member is None or not (member.profile_text and member.profile_text.strip()):
            return state

        logger.warning(f"Restoring {responder.name}'s profile from the roster")
        working = state.model_copy(deep=True)
        player = working.get_player(responder.id)
        assert player is not None
        player.profile_text = member.profile_text
        player.has_profile = True
        return working

    async def submit_response(
        self,
        room_id: str,
        player_id: str,
        choice: AnswerSource,
        answer_text: str | None = None,
    ) -> RoundState:
        return await self._apply(
            room_id,
            lambda s: transitions.submit_response(
                s, player_id, choice, answer_text, self.config.require_master_review
            ),
        )

    async def reveal_response(self, room_id: str) -> RoundState:
        return await self._apply(room_id, transitions.reveal_response)

    async def submit_vote(
        self, room_id: str, voter_id: str, choice: AnswerSource
    ) -> RoundState:
        return await self._apply(
            room_id, lambda s: submit_vote(s, voter_id, choice, self.tie_break)
        )

    async def advance_round(
        self, room_id: str, expected_round: int | None = None
    ) -> RoundState:
        """Move from results to the next round; duplicates for the same round collapse."""
        return await self._apply(
            room_id, lambda s: transitions.advance_round(s, expected_round)
        )

    async def repair_game(self, room_id: str) -> tuple[RoundState, bool]:
        """Run the guard over the latest document and persist any correction.

        Returns the current state and whether a correction was written.
        """
        async with self._lock_for(room_id):
            state = await self._load(room_id)
            committed = await self._commit(room_id, state, state)
            return committed, committed is not state

    async def get_state(self, room_id: str) -> RoundState:
        return await self._load(room_id)

    async def get_role(self, room_id: str, player_id: str) -> PlayerRole:
        state = await self._load(room_id)
        return determine_role(state, player_id)
