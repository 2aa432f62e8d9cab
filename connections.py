import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from logging_config import get_logger
from schemas.messages import OutboundMessage, dump_outbound

logger = get_logger(__name__)


@dataclass(eq=False)
class Connection:
    websocket: Any
    room_key: str
    is_gm: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def role(self) -> str:
        return "gm" if self.is_gm else "player"


class ConnectionManager:
    """Broadcast groups: the open connections of each room."""

    def __init__(self):
        # {room_key: {connection_id: Connection}}
        self._rooms: dict[str, dict[str, Connection]] = {}
        self._by_id: dict[str, Connection] = {}

    def join(self, connection: Connection):
        self._rooms.setdefault(connection.room_key, {})[connection.id] = connection
        self._by_id[connection.id] = connection
        logger.debug(f"Added connection {connection.id} to room {connection.room_key} (local connections: {len(self._rooms[connection.room_key])})")

    def leave(self, connection: Connection):
        self._by_id.pop(connection.id, None)
        members = self._rooms.get(connection.room_key)
        if members is None:
            return
        members.pop(connection.id, None)
        if not members:
            del self._rooms[connection.room_key]
            logger.debug(f"No more connections in room {connection.room_key}")

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._by_id.get(connection_id)

    def connections_in(self, room_key: str) -> list[Connection]:
        return list(self._rooms.get(room_key, {}).values())

    async def send(self, connection: Connection, message: OutboundMessage) -> bool:
        try:
            await connection.websocket.send_json(dump_outbound(message))
            return True
        except Exception as e:
            # Socket already gone; drop it from its room
            logger.warning(f"Error sending to connection {connection.id} in room {connection.room_key}: {e}")
            self.leave(connection)
            return False

    async def broadcast(self, room_key: str, message: OutboundMessage):
        members = self.connections_in(room_key)
        if not members:
            return
        await asyncio.gather(*(self.send(member, message) for member in members))
        logger.debug(f"Broadcasted {message.type} to {len(members)} connections in room {room_key}")

    async def close_room(self, room_key: str, message: OutboundMessage):
        """Send a final message to every connection of a room and close them."""
        members = self.connections_in(room_key)
        for member in members:
            await self.send(member, message)
            try:
                await member.websocket.close(code=1008)
            except Exception as e:
                logger.debug(f"Error closing WebSocket {member.id}: {e}")
            self.leave(member)
        return members
