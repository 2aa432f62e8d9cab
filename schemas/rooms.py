from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional


class CamelModel(BaseModel):
    """Snake_case attributes in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Entry(CamelModel):
    id: str
    name: str
    initiative_roll: int
    color: Optional[str] = None
    text_color: Optional[str] = None
    is_monster: bool = False
    hidden: bool = False


class RoomSnapshot(CamelModel):
    entries: list[Entry] = Field(default_factory=list)
    current_turn_index: int = 0


class MonsterTemplate(CamelModel):
    name: str
    # GM files written by hand use "roll"
    initiative_roll: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("initiativeRoll", "initiative_roll", "roll"),
        serialization_alias="initiativeRoll",
    )
    color: Optional[str] = None
    hidden: bool = False


class EncounterTemplate(CamelModel):
    name: str
    encounter: list[MonsterTemplate] = Field(default_factory=list)


class GMLoginRequest(BaseModel):
    name: Optional[str] = None
    password: Optional[str] = None

class GMLoginResponse(CamelModel):
    success: bool
    gm_name: str

class ActiveGMsResponse(BaseModel):
    gms: list[str]

class EncounterListResponse(CamelModel):
    gm_name: str
    encounters: list[EncounterTemplate]

class ServerConfigResponse(BaseModel):
    host: str
    port: int
    protocol: str
