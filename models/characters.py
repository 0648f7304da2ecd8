"""Character and jutsu data models for Era Genética Server.

Documents are stored with camelCase keys; attributes are snake_case and
dumped by alias when written back or returned over HTTP.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, computed_field
from pydantic.alias_generators import to_camel

from config import (
    DEFAULT_CHARACTER_NAME,
    DEFAULT_LEVEL,
    DEFAULT_MAX_CHAKRA,
    DEFAULT_MAX_HEALTH,
)


class DocumentModel(BaseModel):
    """Base for models persisted as camelCase documents."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ActionType(str, Enum):
    """How much of a turn a jutsu takes."""
    STANDARD = "Padrão"
    MOVEMENT = "Movimento"
    PARTIAL = "Parcial"


class Jutsu(DocumentModel):
    """An ability embedded in a character's jutsu list."""
    id: str                         # Millisecond timestamp string
    name: str
    chakra_cost: int = 0
    health_cost: int = 0            # Formerly stored as "damage"
    action_type: ActionType = ActionType.STANDARD


class Character(DocumentModel):
    """One player's character sheet."""
    name: str = DEFAULT_CHARACTER_NAME
    photo: str = ""                 # Opaque URI, usually a data URL
    level: int = DEFAULT_LEVEL
    max_health: int = DEFAULT_MAX_HEALTH
    current_health: int = DEFAULT_MAX_HEALTH
    max_chakra: int = DEFAULT_MAX_CHAKRA
    current_chakra: int = DEFAULT_MAX_CHAKRA
    jutsus: list[Jutsu] = []
    notes: str = ""


class CharacterSummary(DocumentModel):
    """A roster row: the character's vitals plus its document id."""
    id: str
    name: str = DEFAULT_CHARACTER_NAME
    photo: str = ""
    level: int = DEFAULT_LEVEL
    max_health: int = DEFAULT_MAX_HEALTH
    current_health: int = DEFAULT_MAX_HEALTH
    max_chakra: int = DEFAULT_MAX_CHAKRA
    current_chakra: int = DEFAULT_MAX_CHAKRA

    @computed_field(alias="healthPercent")
    @property
    def health_percent(self) -> float:
        return percentage(self.current_health, self.max_health)

    @computed_field(alias="chakraPercent")
    @property
    def chakra_percent(self) -> float:
        return percentage(self.current_chakra, self.max_chakra)


PROFILE_FIELDS = ("name", "level", "max_health", "max_chakra", "photo")


def percentage(current: int, maximum: int) -> float:
    """Fill percentage of a resource bar; 0 when empty or unbounded."""
    if current <= 0:
        return 0
    return current / maximum * 100 if maximum > 0 else 0


def default_character() -> Character:
    """A fresh character for a player who has no document yet."""
    return Character()


def migrate_jutsu(raw: dict[str, Any]) -> dict[str, Any]:
    """Bring a stored jutsu record up to the current schema.

    ``healthCost`` falls back to the legacy ``damage`` field (then 0) and
    ``damage`` is dropped. A missing or empty ``actionType`` becomes
    the standard action.
    """
    migrated = {key: value for key, value in raw.items() if key != "damage"}
    health_cost = raw.get("healthCost")
    if health_cost is None:
        health_cost = raw.get("damage")
    migrated["healthCost"] = health_cost if health_cost is not None else 0
    migrated["actionType"] = raw.get("actionType") or ActionType.STANDARD.value
    return migrated


def character_from_document(data: dict[str, Any] | None) -> Character | None:
    """Parse a stored character, migrating legacy jutsu fields.

    Returns:
        The Character, or None if the document is missing or malformed.
    """
    if not isinstance(data, dict):
        return None
    jutsus = data.get("jutsus") or []
    if not isinstance(jutsus, list):
        return None
    try:
        return Character.model_validate({
            **data,
            "jutsus": [migrate_jutsu(j) for j in jutsus if isinstance(j, dict)],
        })
    except ValidationError:
        return None


def summary_from_document(doc_id: str, data: dict[str, Any]) -> CharacterSummary | None:
    """Parse a roster row; None if the document is malformed."""
    try:
        return CharacterSummary.model_validate({**data, "id": doc_id})
    except ValidationError:
        return None
