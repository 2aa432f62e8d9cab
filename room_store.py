import random
import string
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from constants import ROOM_CODE_LENGTH
from logging_config import get_logger
from schemas.rooms import Entry, RoomSnapshot

logger = get_logger(__name__)


@dataclass
class Room:
    key: str
    entries: list[Entry] = field(default_factory=list)
    current_turn_index: int = 0

    def index_of(self, entry_id: str) -> Optional[int]:
        for index, entry in enumerate(self.entries):
            if entry.id == entry_id:
                return index
        return None

    def current_entry_id(self) -> Optional[str]:
        if 0 <= self.current_turn_index < len(self.entries):
            return self.entries[self.current_turn_index].id
        return None

    def point_turn_at(self, entry_id: Optional[str]):
        index = self.index_of(entry_id) if entry_id is not None else None
        self.current_turn_index = index if index is not None else 0

    def settle_on_visible(self):
        """Move the turn forward to the first visible entry, starting at the current one.

        Left alone when every entry is hidden.
        """
        total = len(self.entries)
        for step in range(total):
            candidate = (self.current_turn_index + step) % total
            if not self.entries[candidate].hidden:
                self.current_turn_index = candidate
                return


class RoomStore:
    """Authoritative in-memory turn order for every room.

    All methods are synchronous and do no I/O. Operations against a room key
    that does not exist (or an entry id that is not in the room) are ignored:
    they log the reason and return a falsy result (``False``, ``None`` or an
    empty list) instead of raising. Callers check room existence once, when a
    connection is opened.

    Entries handed out are copies; the store is the only place room data is
    mutated.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rooms: dict[str, Room] = {}
        self._rng = rng or random.Random()

    def _get(self, key: str, operation: str) -> Optional[Room]:
        room = self._rooms.get(key)
        if room is None:
            logger.debug(f"Ignored {operation}: room {key} does not exist")
        return room

    def _generate_code(self) -> str:
        while True:
            code = "".join(self._rng.choices(string.ascii_uppercase, k=ROOM_CODE_LENGTH))
            if code not in self._rooms:
                return code

    # Rooms

    def create_room(self, key: Optional[str] = None) -> str:
        """Create a room and return its key.

        Re-creating an existing key keeps its entries so a GM can reconnect
        without losing the board. Without a key a fresh short code is used.
        """
        if key is None:
            key = self._generate_code()
        if key in self._rooms:
            logger.info(f"Room {key} already exists, reusing it")
            return key
        self._rooms[key] = Room(key=key)
        logger.info(f"Room {key} created")
        return key

    def has_room(self, key: str) -> bool:
        return key in self._rooms

    def get_state(self, key: str) -> Optional[RoomSnapshot]:
        room = self._get(key, "get_state")
        if room is None:
            return None
        return RoomSnapshot(
            entries=[entry.model_copy() for entry in room.entries],
            current_turn_index=room.current_turn_index,
        )

    def list_active_keys(self) -> list[str]:
        return list(self._rooms)

    def delete_room(self, key: str) -> bool:
        if self._rooms.pop(key, None) is None:
            logger.debug(f"Ignored delete_room: room {key} does not exist")
            return False
        logger.info(f"Room {key} deleted")
        return True

    # Entries

    def add_player(self, key: str, name: str, initiative_roll: int,
                   color: Optional[str] = None, text_color: Optional[str] = None) -> Optional[Entry]:
        room = self._get(key, "add_player")
        if room is None:
            return None
        entry = Entry(
            id=str(uuid.uuid4()),
            name=name,
            initiative_roll=initiative_roll,
            color=color,
            text_color=text_color,
            is_monster=False,
            hidden=False,
        )
        room.entries.append(entry)
        logger.debug(f"Added player {name} ({entry.id}) to room {key}")
        return entry.model_copy()

    def add_monster(self, key: str, name: str, initiative_roll: int,
                    color: Optional[str] = None, hidden: bool = False) -> Optional[Entry]:
        room = self._get(key, "add_monster")
        if room is None:
            return None
        entry = Entry(
            id=str(uuid.uuid4()),
            name=name,
            initiative_roll=initiative_roll,
            color=color,
            is_monster=True,
            hidden=hidden,
        )
        room.entries.append(entry)
        logger.debug(f"Added monster {name} ({entry.id}, hidden={hidden}) to room {key}")
        return entry.model_copy()

    def get_entry_by_id(self, key: str, entry_id: str) -> Optional[Entry]:
        room = self._get(key, "get_entry_by_id")
        if room is None:
            return None
        index = room.index_of(entry_id)
        return room.entries[index].model_copy() if index is not None else None

    def find_player(self, key: str, name: str, color: Optional[str]) -> Optional[Entry]:
        """Visible player entry with this name and color, if any."""
        room = self._get(key, "find_player")
        if room is None:
            return None
        for entry in room.entries:
            if not entry.is_monster and not entry.hidden and entry.name == name and entry.color == color:
                return entry.model_copy()
        return None

    def update_entry(self, key: str, entry: Entry) -> bool:
        """Replace the entry with the same id. ``is_monster`` is kept from the stored entry."""
        room = self._get(key, "update_entry")
        if room is None:
            return False
        index = room.index_of(entry.id)
        if index is None:
            logger.debug(f"Ignored update_entry: no entry {entry.id} in room {key}")
            return False
        room.entries[index] = entry.model_copy(update={"is_monster": room.entries[index].is_monster})
        return True

    def remove_entry(self, key: str, entry_id: str) -> Optional[Entry]:
        """Delete an entry and return it.

        Removing an entry before the current turn shifts the index back so the
        same entry keeps the turn. Removing the current entry hands the turn to
        the next visible entry after it, wrapping to the top.
        """
        room = self._get(key, "remove_entry")
        if room is None:
            return None
        index = room.index_of(entry_id)
        if index is None:
            logger.debug(f"Ignored remove_entry: no entry {entry_id} in room {key}")
            return None
        removed = room.entries.pop(index)
        if index < room.current_turn_index:
            room.current_turn_index -= 1
        elif index == room.current_turn_index:
            if room.current_turn_index >= len(room.entries):
                room.current_turn_index = 0
            room.settle_on_visible()
        logger.debug(f"Removed {removed.name} ({entry_id}) from room {key}")
        return removed

    def toggle_hidden(self, key: str, entry_id: str) -> bool:
        room = self._get(key, "toggle_hidden")
        if room is None:
            return False
        index = room.index_of(entry_id)
        if index is None:
            logger.debug(f"Ignored toggle_hidden: no entry {entry_id} in room {key}")
            return False
        entry = room.entries[index]
        entry.hidden = not entry.hidden
        return True

    # Turn order

    def reorder_entries(self, key: str, from_index: int, to_index: int) -> bool:
        """Move one entry to a new position. The turn stays with the same entry."""
        room = self._get(key, "reorder_entries")
        if room is None:
            return False
        total = len(room.entries)
        if not (0 <= from_index < total and 0 <= to_index < total):
            logger.debug(f"Ignored reorder_entries: {from_index} -> {to_index} out of range for {total} entries in room {key}")
            return False
        current_id = room.current_entry_id()
        moved = room.entries.pop(from_index)
        room.entries.insert(to_index, moved)
        room.point_turn_at(current_id)
        return True

    def next_turn(self, key: str) -> bool:
        """Advance to the next visible entry, wrapping around.

        No-op when the room is empty or every entry is hidden.
        """
        room = self._get(key, "next_turn")
        if room is None:
            return False
        total = len(room.entries)
        if total == 0:
            logger.debug(f"Ignored next_turn: room {key} is empty")
            return False
        for step in range(1, total + 1):
            candidate = (room.current_turn_index + step) % total
            if not room.entries[candidate].hidden:
                room.current_turn_index = candidate
                return True
        logger.debug(f"Ignored next_turn: every entry in room {key} is hidden")
        return False

    def sort_by_initiative(self, key: str) -> bool:
        """Stable sort, highest roll first, keeping the turn on the same entry."""
        room = self._get(key, "sort_by_initiative")
        if room is None:
            return False
        current_id = room.current_entry_id()
        room.entries.sort(key=lambda entry: entry.initiative_roll, reverse=True)
        room.point_turn_at(current_id)
        return True

    # Bulk removal

    def clear_all_entries(self, key: str) -> list[str]:
        """Empty the room. Returns the ids of the removed player entries."""
        room = self._get(key, "clear_all_entries")
        if room is None:
            return []
        player_ids = [entry.id for entry in room.entries if not entry.is_monster]
        room.entries = []
        room.current_turn_index = 0
        logger.debug(f"Cleared room {key}, {len(player_ids)} players removed")
        return player_ids

    def clear_players_only(self, key: str) -> list[str]:
        room = self._get(key, "clear_players_only")
        if room is None:
            return []
        removed = self._retain(room, lambda entry: entry.is_monster)
        return [entry.id for entry in removed]

    def clear_monsters_only(self, key: str) -> list[str]:
        room = self._get(key, "clear_monsters_only")
        if room is None:
            return []
        removed = self._retain(room, lambda entry: not entry.is_monster)
        return [entry.id for entry in removed]

    def _retain(self, room: Room, keep: Callable[[Entry], bool]) -> list[Entry]:
        # The turn stays on the current entry if it survives, else moves to
        # the next visible survivor after it, wrapping to the top.
        current_id = room.current_entry_id()
        survivors, removed = [], []
        new_index = None
        for index, entry in enumerate(room.entries):
            if keep(entry):
                if new_index is None and index >= room.current_turn_index:
                    new_index = len(survivors)
                survivors.append(entry)
            else:
                removed.append(entry)
        room.entries = survivors
        room.current_turn_index = new_index if new_index is not None else 0
        if current_id is not None and room.index_of(current_id) is None:
            room.settle_on_visible()
        return removed
