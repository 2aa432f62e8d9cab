"""Realtime message contract.

Inbound frames are a closed set of pydantic models discriminated on ``type``;
``parse_inbound`` turns a raw text frame into exactly one of them or raises
``InvalidMessage``. Outbound frames are built from the models at the bottom.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from schemas.rooms import CamelModel, Entry, RoomSnapshot


class InvalidMessage(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


# Payloads

class JoinRoomPayload(CamelModel):
    name: str = Field(min_length=1)
    initiative_roll: int
    color: Optional[str] = None
    text_color: Optional[str] = None

class AddMonsterPayload(CamelModel):
    name: str = Field(min_length=1)
    initiative_roll: int
    color: Optional[str] = None
    hidden: bool = False

class ReorderPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_index: int = Field(alias="from")
    to_index: int = Field(alias="to")

class EntryRef(BaseModel):
    id: str

class LoadEncounterPayload(CamelModel):
    encounter_name: str
    clear_room: bool = False
    clear_players: bool = False
    clear_monsters: bool = False


# Inbound events

class JoinRoom(BaseModel):
    type: Literal["join-room"]
    payload: JoinRoomPayload

class AddMonster(BaseModel):
    type: Literal["add-monster"]
    payload: AddMonsterPayload

class UpdateEntry(BaseModel):
    type: Literal["update-entry"]
    payload: Entry

class ReorderEntries(BaseModel):
    type: Literal["reorder-entries"]
    payload: ReorderPayload

class NextTurn(BaseModel):
    type: Literal["next-turn"]

class RemoveEntry(BaseModel):
    type: Literal["remove-entry"]
    payload: EntryRef

class ToggleHidden(BaseModel):
    type: Literal["toggle-hidden"]
    payload: EntryRef

class SortByInitiative(BaseModel):
    type: Literal["sort-by-initiative"]

class ClearAllPlayers(BaseModel):
    type: Literal["clear-all-players"]

class LoadEncounter(BaseModel):
    type: Literal["load-encounter"]
    payload: LoadEncounterPayload


InboundMessage = Annotated[
    Union[
        JoinRoom,
        AddMonster,
        UpdateEntry,
        ReorderEntries,
        NextTurn,
        RemoveEntry,
        ToggleHidden,
        SortByInitiative,
        ClearAllPlayers,
        LoadEncounter,
    ],
    Field(discriminator="type"),
]

# Events a player connection is allowed to send
PLAYER_EVENTS = (JoinRoom, UpdateEntry)

_inbound_adapter = TypeAdapter(InboundMessage)


def parse_inbound(raw: str) -> InboundMessage:
    try:
        return _inbound_adapter.validate_json(raw)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'frame'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidMessage(errors) from e


# Outbound events

class RoomUpdate(BaseModel):
    type: Literal["room-update"] = "room-update"
    payload: RoomSnapshot

class Kicked(BaseModel):
    type: Literal["kicked"] = "kicked"

class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str


OutboundMessage = Union[RoomUpdate, Kicked, ErrorEvent]


def dump_outbound(message: OutboundMessage) -> dict:
    return message.model_dump(mode="json", by_alias=True)
