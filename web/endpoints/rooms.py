"""Room game actions and WebSocket endpoints."""

import logging

from fastapi import HTTPException, WebSocket, WebSocketDisconnect, APIRouter

from game_engine.errors import ErrorKind, GameError, TransientIOFailure
from game_engine.models import RosterMember, RoundState
from game_engine.observer import project_view
from game_engine.roles import describe_state
from web.room_requests import (
    AdvanceRequest,
    InitGameRequest,
    JoinRoomRequest,
    PlayerStatusRequest,
    ProfileRequest,
    QuestionRequest,
    ResponseRequest,
    VoteRequest,
)
from web.room_response import RoleResponse, RoomStateResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")
ws_router = APIRouter()

NOT_FOUND_KINDS = {ErrorKind.GAME_NOT_FOUND, ErrorKind.PLAYER_NOT_FOUND}


def setup_game_manager():
    """Get or create the global game manager."""
    # Import here to avoid circular imports
    from web import api
    return api.get_game_manager()


def _http_error(e: GameError) -> HTTPException:
    if isinstance(e, TransientIOFailure):
        status_code = 503
    elif e.kind in NOT_FOUND_KINDS:
        status_code = 404
    else:
        status_code = 409
    return HTTPException(status_code=status_code, detail=e.to_dict())


def _state_response(room_id: str, state: RoundState) -> RoomStateResponse:
    return RoomStateResponse(
        room_id=room_id,
        phase=state.phase.value,
        round_number=state.round_number,
        status=describe_state(state),
        state=state.model_dump(mode="json"),
    )


@router.post("/rooms/{room_id}/members")
async def join_room(room_id: str, request: JoinRoomRequest):
    """Add a member to a room's roster."""
    game_manager = setup_game_manager()
    member = game_manager.join_room(
        room_id,
        RosterMember(
            member_id=request.member_id,
            display_name=request.display_name,
            role=request.role,
            platform=request.platform,
            joined_at=request.joined_at,
        ),
    )
    return {"room_id": room_id, "member": member.model_dump(mode="json")}


@router.post("/rooms/{room_id}/init", response_model=RoomStateResponse)
async def initialize_game(room_id: str, request: InitGameRequest | None = None):
    """Create (or re-sync) the room's game from its roster."""
    request = request or InitGameRequest()
    try:
        state = await setup_game_manager().coordinator.initialize_game(
            room_id, topic=request.topic, reset=request.reset
        )
    except GameError as e:
        raise _http_error(e)
    return _state_response(room_id, state)


@router.post("/rooms/{room_id}/sync", response_model=RoomStateResponse)
async def sync_members(room_id: str):
    try:
        state = await setup_game_manager().coordinator.sync_members(room_id)
    except GameError as e:
        raise _http_error(e)
    return _state_response(room_id, state)


@router.post("/rooms/{room_id}/profile", response_model=RoomStateResponse)
async def save_profile(room_id: str, request: ProfileRequest):
    try:
        state = await setup_game_manager().coordinator.save_profile(
            room_id, request.player_id, request.text
        )
    except GameError as e:
        raise _http_error(e)
    return _state_response(room_id, state)


@router.post("/rooms/{room_id}/players/{player_id}/status", response_model=RoomStateResponse)
async def update_player_status(room_id: str, player_id: str, request: PlayerStatusRequest):
    """Presence heartbeat."""
    try:
        state = await setup_game_manager().coordinator.update_player_status(
            room_id,
            player_id,
            platform=request.platform,
            is_online=request.is_online,
            last_seen=request.last_seen,
        )
    except GameError as e:
        raise _http_error(e)
    return _state_response(room_id, state)


@router.post("/rooms/{room_id}/start", response_model=RoomStateResponse)
async def start_game(room_id: str):
    try:
        state = await setup_game_manager().coordinator.start_game(room_id)
    except GameError as e:
        raise _http_error(e)
    return _state_response(room_id, state)


@router.post("/rooms/{room_id}/question", response_model=RoomStateResponse)
async def submit_question(room_id: str, request: QuestionRequest):
    """Ask the current responder a question; the clone's answer is generated here."""
    try:
        state = await setup_game_manager().coordinator.submit_question(
            room_id, request.text, request.submitter_id
        )
    except GameError as e:
        raise _http_error(e)
    return _state_response(room_id, state)


@router.post("/rooms/{room_id}/response", response_model=RoomStateResponse)
async def submit_response(room_id: str, request: ResponseRequest):
    try:
        state = await setup_game_manager().coordinator.submit_response(
            room_id, request.player_id, request.choice, request.answer_text
        )
    except GameError as e:
        raise _http_error(e)
    return _state_response(room_id, state)


@router.post("/rooms/{room_id}/reveal", response_model=RoomStateResponse)
async def reveal_response(room_id: str):
    try:
        state = await setup_game_manager().coordinator.reveal_response(room_id)
    except GameError as e:
        raise _http_error(e)
    return _state_response(room_id, state)


@router.post("/rooms/{room_id}/vote", response_model=RoomStateResponse)
async def submit_vote(room_id: str, request: VoteRequest):
    try:
        state = await setup_game_manager().coordinator.submit_vote(
            room_id, request.voter_id, request.choice
        )
    except GameError as e:
        raise _http_error(e)
    return _state_response(room_id, state)


@router.post("/rooms/{room_id}/advance", response_model=RoomStateResponse)
async def advance_round(room_id: str, request: AdvanceRequest | None = None):
    """Start the next round. Pass expected_round so duplicate clicks collapse."""
    request = request or AdvanceRequest()
    try:
        state = await setup_game_manager().coordinator.advance_round(
            room_id, request.expected_round
        )
    except GameError as e:
        raise _http_error(e)
    return _state_response(room_id, state)


@router.get("/rooms/{room_id}", response_model=RoomStateResponse)
async def get_room(room_id: str):
    try:
        state = await setup_game_manager().coordinator.get_state(room_id)
    except GameError as e:
        raise _http_error(e)
    return _state_response(room_id, state)


@router.get("/rooms/{room_id}/players/{player_id}/role", response_model=RoleResponse)
async def get_role(room_id: str, player_id: str):
    """Resolve what a player may do right now."""
    try:
        state = await setup_game_manager().coordinator.get_state(room_id)
    except GameError as e:
        raise _http_error(e)

    view = project_view(state, player_id)
    return RoleResponse(
        room_id=room_id,
        player_id=player_id,
        role=view.role.value,
        is_leader=view.is_leader,
        can_question=view.can_question,
        can_respond=view.can_respond,
        can_vote=view.can_vote,
        status=view.status,
    )


@ws_router.websocket("/ws/room/{room_id}")
async def websocket_endpoint(websocket: WebSocket, room_id: str):
    """WebSocket endpoint for real-time room updates."""
    await websocket.accept()
    game_manager = setup_game_manager()
    game_manager.add_connection(room_id, websocket)

    try:
        # Send current state if the game exists
        state = await game_manager.store.get(room_id)
        await websocket.send_json(
            {
                "type": "connected",
                "room_id": room_id,
                "state": state.model_dump(mode="json") if state else None,
            }
        )

        # Keep connection alive
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        game_manager.remove_connection(room_id, websocket)
