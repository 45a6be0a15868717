"""Client-side snapshot observer.

A RoomObserver follows one room's document on behalf of one player. Snapshots
that are older than (or identical to) the last one handled are dropped. An
invalid snapshot is never written back as-is: the correction is computed from
the latest stored document (through the coordinator's room lock when one is
given) and rendering is suppressed until the corrected snapshot arrives.
Valid snapshots are turned into a RoleView for the UI.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from . import guard
from .coordinator import GameCoordinator
from .models import RoundState
from .roles import can_player_act, describe_state, determine_role, is_team_leader
from .roster import RosterService
from .store import DocumentStore
from .types import PlayerAction, PlayerRole

logger = logging.getLogger(__name__)


@dataclass
class RoleView:
    """What one player should see for one snapshot."""

    state: RoundState
    role: PlayerRole
    is_leader: bool
    can_question: bool
    can_respond: bool
    can_vote: bool
    status: str


ViewCallback = Callable[[RoleView], Awaitable[None]]


def project_view(state: RoundState, player_id: str) -> RoleView:
    return RoleView(
        state=state,
        role=determine_role(state, player_id),
        is_leader=is_team_leader(state, player_id),
        can_question=can_player_act(state, player_id, PlayerAction.QUESTION),
        can_respond=can_player_act(state, player_id, PlayerAction.RESPOND),
        can_vote=can_player_act(state, player_id, PlayerAction.VOTE),
        status=describe_state(state),
    )


class RoomObserver:
    """Follows a room's snapshots and renders them for one player."""

    def __init__(
        self,
        store: DocumentStore,
        room_id: str,
        player_id: str,
        on_view: ViewCallback,
        roster: RosterService | None = None,
        coordinator: GameCoordinator | None = None,
    ):
        self.store = store
        self.room_id = room_id
        self.player_id = player_id
        self.on_view = on_view
        self.roster = roster
        self.coordinator = coordinator
        self.last_seen: int | None = None
        self.corrections_written = 0
        self._task: asyncio.Task | None = None

    async def handle_snapshot(self, state: RoundState) -> RoleView | None:
        """Process one snapshot; returns the rendered view or None if suppressed."""
        if self.last_seen is not None and state.last_updated <= self.last_seen:
            logger.debug(
                f"Dropping stale snapshot for {self.room_id} "
                f"({state.last_updated} <= {self.last_seen})"
            )
            return None
        self.last_seen = state.last_updated

        violations = guard.check(state)
        if violations:
            logger.warning(
                f"Snapshot for {self.room_id} violated "
                f"{[v.kind.value for v in violations]}, correcting latest document"
            )
            if await self._correct_latest():
                self.corrections_written += 1
            return None

        view = project_view(state, self.player_id)
        await self.on_view(view)
        return view

    async def _correct_latest(self) -> bool:
        """Repair the room's newest document; returns True if a correction was written."""
        if self.coordinator is not None:
            _, written = await self.coordinator.repair_game(self.room_id)
            return written

        latest = await self.store.get(self.room_id)
        if latest is None:
            return False

        roster = await self.roster.list_members(self.room_id) if self.roster else None
        report = guard.repair(latest, roster)
        if not report.changed:
            logger.debug(f"Latest document for {self.room_id} is already valid")
            return False

        await self.store.put(self.room_id, report.state)
        return True

    async def run(self) -> None:
        """Consume the room's snapshots until cancelled."""
        async for state in self.store.subscribe(self.room_id):
            await self.handle_snapshot(state)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
