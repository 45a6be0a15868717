"""Tests for the shared document stores and the roster."""

import asyncio
from pathlib import Path

import pytest

from game_engine.errors import ErrorKind, PreconditionFailed, TransientIOFailure
from game_engine.models import RoundState
from game_engine.roster import InMemoryRoster
from game_engine.store import InMemoryDocumentStore, SQLiteDocumentStore
from game_engine.types import GamePhase


def test_put_stamps_increasing_last_updated(questioning_state: RoundState) -> None:
    async def scenario():
        store = InMemoryDocumentStore()
        first = await store.put("room-1", questioning_state)
        second = await store.put("room-1", first)
        third = await store.put("room-1", second)
        return first, second, third, await store.get("room-1")

    first, second, third, latest = asyncio.run(scenario())

    assert first.last_updated < second.last_updated < third.last_updated
    assert latest == third


def test_get_missing_room_returns_none() -> None:
    assert asyncio.run(InMemoryDocumentStore().get("nowhere")) is None


def test_merge_write_updates_only_given_fields(questioning_state: RoundState) -> None:
    async def scenario():
        store = InMemoryDocumentStore()
        before = await store.put("room-1", questioning_state)
        after = await store.merge_write(
            "room-1", {"phase": GamePhase.VOTING, "current_question": "Why?"}
        )
        return before, after

    before, after = asyncio.run(scenario())

    assert after.phase is GamePhase.VOTING
    assert after.current_question == "Why?"
    assert after.players == before.players
    assert after.last_updated > before.last_updated


def test_merge_write_missing_game() -> None:
    with pytest.raises(PreconditionFailed) as excinfo:
        asyncio.run(InMemoryDocumentStore().merge_write("nowhere", {"topic": "x"}))
    assert excinfo.value.kind is ErrorKind.GAME_NOT_FOUND


def test_subscribe_yields_current_then_changes(questioning_state: RoundState) -> None:
    async def scenario():
        store = InMemoryDocumentStore()
        await store.put("room-1", questioning_state)

        stream = store.subscribe("room-1")
        first = await stream.__anext__()
        await store.merge_write("room-1", {"topic": "Food"})
        second = await stream.__anext__()
        subscribed = store.subscriber_count("room-1")
        await stream.aclose()
        return first, second, subscribed, store.subscriber_count("room-1")

    first, second, subscribed, remaining = asyncio.run(scenario())

    assert first.topic == "General"
    assert second.topic == "Food"
    assert second.last_updated > first.last_updated
    assert (subscribed, remaining) == (1, 0)


def test_sqlite_store_round_trip(tmp_path: Path, voting_state: RoundState) -> None:
    db_path = tmp_path / "games.db"

    async def scenario():
        store = SQLiteDocumentStore(str(db_path))
        written = await store.put("room-1", voting_state)
        reopened = SQLiteDocumentStore(str(db_path))
        return written, await reopened.get("room-1"), await reopened.get("room-2")

    written, loaded, missing = asyncio.run(scenario())

    assert loaded == written
    assert loaded.phase is GamePhase.VOTING
    assert missing is None


def test_sqlite_store_unavailable(tmp_path: Path) -> None:
    # A directory cannot be opened as a database file
    with pytest.raises(TransientIOFailure) as excinfo:
        SQLiteDocumentStore(str(tmp_path))
    assert excinfo.value.kind is ErrorKind.STORE_UNAVAILABLE


def test_roster_update_member(roster: InMemoryRoster) -> None:
    async def scenario():
        updated = await roster.update_member(
            "room-1", "b1", has_profile=True, profile_text="Night owl"
        )
        return updated, await roster.get_member("room-1", "b1")

    updated, fetched = asyncio.run(scenario())

    assert updated.profile_text == "Night owl"
    assert fetched.has_profile is True


def test_roster_update_unknown_member(roster: InMemoryRoster) -> None:
    with pytest.raises(PreconditionFailed) as excinfo:
        asyncio.run(roster.update_member("room-1", "ghost", has_profile=True))
    assert excinfo.value.kind is ErrorKind.PLAYER_NOT_FOUND
