"""Per-admin roster ordering preferences."""

from pydantic import ValidationError

from models.characters import DocumentModel


class AdminSettings(DocumentModel):
    """Roster order preferences for one admin identity."""
    character_order: list[str] = []           # Live display order
    default_character_order: list[str] = []   # Target of "reset to default"


def settings_from_document(data: dict | None) -> AdminSettings:
    """Parse stored settings; missing or malformed documents give empty orders."""
    if not data:
        return AdminSettings()
    try:
        return AdminSettings.model_validate(data)
    except ValidationError:
        return AdminSettings()
