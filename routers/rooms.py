from fastapi import APIRouter, HTTPException, Request

from gm_directory import GMDirectory
from logging_config import get_logger
from protocol import RoomProtocol
from room_store import RoomStore
from schemas.rooms import ActiveGMsResponse, EncounterListResponse, GMLoginRequest, GMLoginResponse

logger = get_logger(__name__)

rooms_router = APIRouter(tags=["rooms"])


def get_store(request: Request) -> RoomStore:
    return request.app.state.store

def get_directory(request: Request) -> GMDirectory:
    return request.app.state.directory

def get_protocol(request: Request) -> RoomProtocol:
    return request.app.state.protocol


@rooms_router.post("/login-gm", response_model=GMLoginResponse)
async def login_gm(login: GMLoginRequest, request: Request):
    # Body: { "name": "Alice", "password": "..." }
    # Response 200: { "success": true, "gmName": "Alice" }
    # The GM's name is the room key. Logging in again reuses the room so the board survives a reconnect.
    client_host = request.client.host if request.client else "unknown"
    logger.info(f"GM login request from {client_host}, name: {login.name}")

    if not login.name or not login.password:
        raise HTTPException(status_code=400, detail="Name and password are required")

    if not get_directory(request).verify(login.name, login.password):
        logger.warning(f"GM login failed: invalid credentials for {login.name} from {client_host}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    get_store(request).create_room(login.name)
    logger.info(f"GM {login.name} logged in")
    return GMLoginResponse(success=True, gm_name=login.name)


@rooms_router.get("/active-gms", response_model=ActiveGMsResponse)
async def active_gms(request: Request):
    """Rooms a player can join right now."""
    return ActiveGMsResponse(gms=get_store(request).list_active_keys())


@rooms_router.get("/encounters/{gm_name}", response_model=EncounterListResponse)
async def list_encounters(gm_name: str, request: Request):
    record = get_directory(request).lookup(gm_name)
    if record is None:
        logger.warning(f"Encounter list failed: unknown GM {gm_name}")
        raise HTTPException(status_code=404, detail="GM not found")
    return EncounterListResponse(gm_name=gm_name, encounters=record.encounters)


@rooms_router.delete("/rooms/{room_key}")
async def delete_room(room_key: str, request: Request):
    # Administrative cleanup. Live connections get an error event and are closed.
    store = get_store(request)
    if not store.has_room(room_key):
        logger.warning(f"Delete room failed: room {room_key} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    await get_protocol(request).close_room(room_key)
    store.delete_room(room_key)
    logger.info(f"Room {room_key} deleted by {request.client.host if request.client else 'unknown'}")
    return {"message": "Room deleted successfully"}
