import random
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from connections import ConnectionManager
from constants import CORS_ORIGIN_REGEX, GM_LIST_PATH, LOG_FILE, LOG_LEVEL
from encounters import EncounterLoader
from gm_directory import GMDirectory, JsonGMDirectory
from logging_config import get_logger, setup_logging
from protocol import RoomProtocol
from room_store import RoomStore
from routers.network import network_router
from routers.rooms import rooms_router
from session_tracker import SessionTracker

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


def create_app(directory: Optional[GMDirectory] = None, store: Optional[RoomStore] = None,
               tracker: Optional[SessionTracker] = None, rng: Optional[random.Random] = None) -> FastAPI:
    """Build the service around one store and tracker shared by every connection."""
    if directory is None:
        directory = JsonGMDirectory(GM_LIST_PATH)
    if store is None:
        store = RoomStore(rng=rng)
    if tracker is None:
        tracker = SessionTracker()
    connections = ConnectionManager()
    protocol = RoomProtocol(store, tracker, connections, directory, EncounterLoader(store, rng=rng))

    app = FastAPI(title="Initiative Sync")

    # Browsers on localhost and the LAN only
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=CORS_ORIGIN_REGEX,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    app.state.store = store
    app.state.tracker = tracker
    app.state.directory = directory
    app.state.protocol = protocol

    app.include_router(rooms_router)
    app.include_router(network_router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket, room: str = "", gm: bool = False):
        """Realtime turn-order channel.

        Query parameters:
        - room: room key (the GM's name)
        - gm: true for the GM's own connection
        """
        logger.info(f"WebSocket connection attempt for room: {room}, gm: {gm}")
        connection = await protocol.connect(websocket, room, gm)
        if connection is None:
            return

        try:
            while True:
                data = await websocket.receive_text()
                await protocol.receive(connection, data)
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected normally for connection {connection.id} in room {room}")
        except Exception as e:
            logger.error(f"WebSocket error for connection {connection.id} in room {room}: {e}", exc_info=True)
            try:
                await websocket.close()
            except Exception as close_error:
                logger.debug(f"Error closing WebSocket: {close_error}")
        finally:
            protocol.disconnect(connection)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
