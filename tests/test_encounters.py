import random

import pytest

from constants import MONSTER_ROLL_MAX, MONSTER_ROLL_MIN
from encounters import ClearPolicy, EncounterLoader
from schemas.rooms import MonsterTemplate


@pytest.fixture
def loader(store):
    return EncounterLoader(store, rng=random.Random(5))


@pytest.fixture
def room(store):
    key = store.create_room("GM")
    store.add_player(key, "Bob", 15)
    store.add_monster(key, "Old Orc", 9)
    return key


def goblins():
    return [
        MonsterTemplate(name="Boss", initiative_roll=17, color="#892424"),
        MonsterTemplate(name="Goblin", color="#3a5f0b"),
        MonsterTemplate(name="Archer", hidden=True),
    ]


def entry_names(store, key):
    return [entry.name for entry in store.get_state(key).entries]


@pytest.mark.parametrize("flags,expected", [
    ({}, ClearPolicy.NONE),
    ({"clear_room": True}, ClearPolicy.CLEAR_ROOM),
    ({"clear_players": True}, ClearPolicy.CLEAR_PLAYERS_ONLY),
    ({"clear_monsters": True}, ClearPolicy.CLEAR_MONSTERS_ONLY),
    ({"clear_room": True, "clear_players": True}, ClearPolicy.CLEAR_ROOM),
])
def test_policy_from_flags(flags, expected):
    assert ClearPolicy.from_flags(**flags) is expected


def test_appends_without_clearing(store, loader, room):
    removed = loader.apply(room, goblins())

    assert removed == []
    assert entry_names(store, room) == ["Bob", "Old Orc", "Boss", "Goblin", "Archer"]


def test_template_fields_are_applied(store, loader, room):
    loader.apply(room, goblins(), ClearPolicy.CLEAR_MONSTERS_ONLY)

    boss, goblin, archer = store.get_state(room).entries[1:]
    assert boss.initiative_roll == 17
    assert boss.color == "#892424"
    assert all(entry.is_monster for entry in (boss, goblin, archer))
    assert archer.hidden is True
    assert goblin.hidden is False


def test_missing_rolls_are_random_in_range(store, loader):
    key = store.create_room("Horde")
    loader.apply(key, [MonsterTemplate(name=f"Goblin {i}") for i in range(500)])

    rolls = [entry.initiative_roll for entry in store.get_state(key).entries]
    assert all(MONSTER_ROLL_MIN <= roll <= MONSTER_ROLL_MAX for roll in rolls)
    assert min(rolls) == MONSTER_ROLL_MIN
    assert max(rolls) == MONSTER_ROLL_MAX


def test_clear_room_returns_removed_players(store, loader, room):
    bob = store.get_state(room).entries[0]

    removed = loader.apply(room, goblins(), ClearPolicy.CLEAR_ROOM)

    assert removed == [bob.id]
    assert entry_names(store, room) == ["Boss", "Goblin", "Archer"]


def test_clear_players_only(store, loader, room):
    removed = loader.apply(room, goblins(), ClearPolicy.CLEAR_PLAYERS_ONLY)

    assert len(removed) == 1
    assert entry_names(store, room) == ["Old Orc", "Boss", "Goblin", "Archer"]


def test_clear_monsters_only_kicks_nobody(store, loader, room):
    removed = loader.apply(room, goblins(), ClearPolicy.CLEAR_MONSTERS_ONLY)

    assert removed == []
    assert entry_names(store, room) == ["Bob", "Boss", "Goblin", "Archer"]


def test_unknown_room_is_ignored(store, loader):
    assert loader.apply("Nobody", goblins(), ClearPolicy.CLEAR_ROOM) == []
    assert not store.has_room("Nobody")


def test_template_accepts_roll_alias():
    template = MonsterTemplate.model_validate({"name": "Orc", "roll": 12})
    assert template.initiative_roll == 12
