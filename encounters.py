import random
from enum import Enum
from typing import Iterable, Optional

from constants import MONSTER_ROLL_MAX, MONSTER_ROLL_MIN
from logging_config import get_logger
from room_store import RoomStore
from schemas.rooms import MonsterTemplate

logger = get_logger(__name__)


class ClearPolicy(str, Enum):
    NONE = "none"
    CLEAR_ROOM = "clearRoom"
    CLEAR_PLAYERS_ONLY = "clearPlayersOnly"
    CLEAR_MONSTERS_ONLY = "clearMonstersOnly"

    @classmethod
    def from_flags(cls, clear_room: bool = False, clear_players: bool = False,
                   clear_monsters: bool = False) -> "ClearPolicy":
        # A full clear wins over the partial ones
        if clear_room:
            return cls.CLEAR_ROOM
        if clear_players:
            return cls.CLEAR_PLAYERS_ONLY
        if clear_monsters:
            return cls.CLEAR_MONSTERS_ONLY
        return cls.NONE


class EncounterLoader:
    """Puts a pre-authored list of monsters into a room."""

    def __init__(self, store: RoomStore, rng: Optional[random.Random] = None):
        self.store = store
        self._rng = rng or random.Random()

    def roll_initiative(self) -> int:
        return self._rng.randint(MONSTER_ROLL_MIN, MONSTER_ROLL_MAX)

    def apply(self, key: str, monsters: Iterable[MonsterTemplate],
              policy: ClearPolicy = ClearPolicy.NONE) -> list[str]:
        """Clear according to policy, then append the monsters in template order.

        Returns the ids of player entries removed by the clear, so the caller
        can kick their connections.
        """
        if not self.store.has_room(key):
            logger.info(f"Ignored encounter load: room {key} does not exist")
            return []

        removed_players: list[str] = []
        if policy is ClearPolicy.CLEAR_ROOM:
            removed_players = self.store.clear_all_entries(key)
        elif policy is ClearPolicy.CLEAR_PLAYERS_ONLY:
            removed_players = self.store.clear_players_only(key)
        elif policy is ClearPolicy.CLEAR_MONSTERS_ONLY:
            self.store.clear_monsters_only(key)

        count = 0
        for monster in monsters:
            roll = monster.initiative_roll
            if roll is None:
                roll = self.roll_initiative()
            self.store.add_monster(key, monster.name, roll, color=monster.color, hidden=monster.hidden)
            count += 1

        logger.info(f"Loaded {count} monsters into room {key} (policy={policy.value}, players removed={len(removed_players)})")
        return removed_players
