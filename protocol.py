"""Connection lifecycle and event handling for the realtime turn order.

Every mutating event follows the same steps: apply the change to the room
store, kick the connections of any player entry that was removed, then send
the full room state to every connection in the room.
"""
import asyncio
from typing import Any, Iterable, Optional

from connections import Connection, ConnectionManager
from encounters import ClearPolicy, EncounterLoader
from gm_directory import GMDirectory
from logging_config import get_logger
from room_store import RoomStore
from schemas.messages import (
    PLAYER_EVENTS,
    AddMonster,
    ClearAllPlayers,
    ErrorEvent,
    InboundMessage,
    InvalidMessage,
    JoinRoom,
    JoinRoomPayload,
    Kicked,
    LoadEncounter,
    LoadEncounterPayload,
    NextTurn,
    RemoveEntry,
    ReorderEntries,
    RoomUpdate,
    SortByInitiative,
    ToggleHidden,
    UpdateEntry,
    dump_outbound,
    parse_inbound,
)
from schemas.rooms import Entry
from session_tracker import SessionTracker

logger = get_logger(__name__)

ROOM_NOT_FOUND = "Room does not exist"
ROOM_CLOSED = "Room has been closed"


class RoomProtocol:
    def __init__(self, store: RoomStore, tracker: SessionTracker, connections: ConnectionManager,
                 directory: GMDirectory, loader: Optional[EncounterLoader] = None):
        self.store = store
        self.tracker = tracker
        self.connections = connections
        self.directory = directory
        self.loader = loader or EncounterLoader(store)
        self._locks: dict[str, asyncio.Lock] = {}

    def room_lock(self, room_key: str) -> asyncio.Lock:
        """Serializes everything that reads, mutates or broadcasts one room."""
        lock = self._locks.get(room_key)
        if lock is None:
            lock = self._locks[room_key] = asyncio.Lock()
        return lock

    # Lifecycle

    async def connect(self, websocket: Any, room_key: str, is_gm: bool) -> Optional[Connection]:
        """Accept a socket into a room and send it the current state.

        Returns None when the room does not exist; the socket has then been
        sent an error and closed.
        """
        await websocket.accept()
        if not self.store.has_room(room_key):
            logger.info(f"WebSocket connection rejected: room {room_key} does not exist")
            await websocket.send_json(dump_outbound(ErrorEvent(message=ROOM_NOT_FOUND)))
            await websocket.close(code=1008, reason=ROOM_NOT_FOUND)
            return None

        connection = Connection(websocket=websocket, room_key=room_key, is_gm=is_gm)
        async with self.room_lock(room_key):
            self.connections.join(connection)
            logger.info(f"Connection {connection.id} joined room {room_key} as {connection.role}")
            await self.connections.send(connection, RoomUpdate(payload=self.store.get_state(room_key)))
        return connection

    def disconnect(self, connection: Connection):
        entry_id = self.tracker.untrack(connection.id)
        self.connections.leave(connection)
        logger.info(f"Connection {connection.id} left room {connection.room_key} (entry={entry_id})")

    async def close_room(self, room_key: str):
        """Drop every live connection and identity of a room before it is deleted."""
        async with self.room_lock(room_key):
            state = self.store.get_state(room_key)
            if state is not None:
                for entry in state.entries:
                    self.tracker.untrack_entry(entry.id)
            closed = await self.connections.close_room(room_key, ErrorEvent(message=ROOM_CLOSED))
        logger.info(f"Closed {len(closed)} connections in room {room_key}")

    # Inbound

    async def receive(self, connection: Connection, raw: str):
        try:
            message = parse_inbound(raw)
        except InvalidMessage as e:
            logger.warning(f"Malformed frame from connection {connection.id} in room {connection.room_key}: {e.reason}")
            await self.connections.send(connection, ErrorEvent(message=f"Invalid message: {e.reason}"))
            return
        await self.handle(connection, message)

    async def handle(self, connection: Connection, message: InboundMessage):
        key = connection.room_key
        logger.debug(f"Event {message.type} from connection {connection.id} in room {key}")

        if not connection.is_gm and not isinstance(message, PLAYER_EVENTS):
            logger.info(f"Ignored {message.type} from player connection {connection.id} in room {key}")
            return

        # Mutation, kicks and broadcast run as one unit per room
        async with self.room_lock(key):
            kicked = self._apply(connection, message)
            await self.kick(kicked)
            if self.store.has_room(key):
                await self.connections.broadcast(key, RoomUpdate(payload=self.store.get_state(key)))

    def _apply(self, connection: Connection, message: InboundMessage) -> list[str]:
        """Apply one event to the store. Returns the ids of player entries to kick."""
        key = connection.room_key
        applied = True
        kicked: list[str] = []
        match message:
            case JoinRoom(payload=payload):
                applied = self._join(connection, payload)
            case UpdateEntry(payload=entry):
                applied = self._update(connection, entry)
            case AddMonster(payload=payload):
                applied = self.store.add_monster(
                    key, payload.name, payload.initiative_roll, color=payload.color, hidden=payload.hidden
                ) is not None
            case ReorderEntries(payload=payload):
                applied = self.store.reorder_entries(key, payload.from_index, payload.to_index)
            case NextTurn():
                applied = self.store.next_turn(key)
            case RemoveEntry(payload=ref):
                removed = self.store.remove_entry(key, ref.id)
                applied = removed is not None
                if removed is not None and not removed.is_monster:
                    kicked = [removed.id]
            case ToggleHidden(payload=ref):
                applied = self.store.toggle_hidden(key, ref.id)
            case SortByInitiative():
                applied = self.store.sort_by_initiative(key)
            case ClearAllPlayers():
                kicked = self.store.clear_all_entries(key)
            case LoadEncounter(payload=payload):
                applied, kicked = self._load_encounter(key, payload)

        if not applied:
            logger.info(f"Ignored {message.type} in room {key}: no matching room, entry or position")
        return kicked

    async def kick(self, entry_ids: Iterable[str]):
        for entry_id in entry_ids:
            for connection_id in self.tracker.untrack_entry(entry_id):
                connection = self.connections.get(connection_id)
                if connection is None:
                    continue
                logger.info(f"Kicking connection {connection_id} (entry {entry_id}) from room {connection.room_key}")
                await self.connections.send(connection, Kicked())

    # Handlers

    def _join(self, connection: Connection, payload: JoinRoomPayload) -> bool:
        key = connection.room_key
        entry = self.store.find_player(key, payload.name, payload.color)
        if entry is not None:
            logger.info(f"Connection {connection.id} reclaimed entry {entry.id} ({entry.name}) in room {key}")
        else:
            entry = self.store.add_player(
                key, payload.name, payload.initiative_roll, color=payload.color, text_color=payload.text_color
            )
            if entry is None:
                return False
            logger.info(f"Player {entry.name} ({entry.id}) joined room {key}")
        self.tracker.track(connection.id, entry.id)
        return True

    def _update(self, connection: Connection, entry: Entry) -> bool:
        key = connection.room_key
        if connection.is_gm:
            return self.store.update_entry(key, entry)

        # Players may only edit their own entry and cannot unhide it
        if self.tracker.entry_for(connection.id) != entry.id:
            logger.info(f"Ignored update-entry for {entry.id}: connection {connection.id} does not own it")
            return False
        current = self.store.get_entry_by_id(key, entry.id)
        if current is None:
            return False
        return self.store.update_entry(key, entry.model_copy(update={"hidden": current.hidden}))

    def _load_encounter(self, key: str, payload: LoadEncounterPayload) -> tuple[bool, list[str]]:
        record = self.directory.lookup(key)
        template = record.find_encounter(payload.encounter_name) if record is not None else None
        if template is None:
            logger.info(f"Ignored load-encounter: no encounter {payload.encounter_name!r} for room {key}")
            return False, []
        policy = ClearPolicy.from_flags(payload.clear_room, payload.clear_players, payload.clear_monsters)
        return True, self.loader.apply(key, template.encounter, policy)
