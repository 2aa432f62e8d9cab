import json
import secrets
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, ValidationError

from logging_config import get_logger
from schemas.rooms import EncounterTemplate

logger = get_logger(__name__)


class GMRecord(BaseModel):
    name: str
    password: str = Field(validation_alias=AliasChoices("Password", "password"))
    encounters: list[EncounterTemplate] = Field(default_factory=list)

    def find_encounter(self, name: str) -> Optional[EncounterTemplate]:
        for encounter in self.encounters:
            if encounter.name == name:
                return encounter
        return None


class GMDirectory(ABC):
    """Read-only source of GM credentials and encounter templates."""

    @abstractmethod
    def lookup(self, name: str) -> Optional[GMRecord]:
        ...

    def verify(self, name: str, password: str) -> bool:
        record = self.lookup(name)
        if record is None:
            return False
        return secrets.compare_digest(record.password.encode(), password.encode())


class InMemoryGMDirectory(GMDirectory):
    def __init__(self, records: Iterable[GMRecord] = ()):
        # First record wins on duplicate names
        self._records: dict[str, GMRecord] = {}
        for record in records:
            self._records.setdefault(record.name, record)

    def lookup(self, name: str) -> Optional[GMRecord]:
        return self._records.get(name)


class JsonGMDirectory(InMemoryGMDirectory):
    """Directory loaded once from a JSON list of ``{"name", "Password", "encounters"}``.

    A missing or malformed file is logged and treated as an empty directory.
    """

    def __init__(self, path: str):
        self.path = path
        super().__init__(self._load(path))

    @staticmethod
    def _load(path: str) -> list[GMRecord]:
        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
            records = TypeAdapter(list[GMRecord]).validate_python(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Error loading GM list from {path}: {e}")
            return []
        logger.info(f"Loaded {len(records)} GM records from {path}")
        return records
