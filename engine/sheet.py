"""Character sheet synchronization: load, optimistic adjustments, jutsus, profile.

A CharacterSheet mirrors one player's character document in memory. Stat
adjustments are applied to memory first and written in the background as
independent partial writes; a failed write sets ``error`` and leaves the
in-memory value where it is.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from typing import Any

from config import CHARACTERS_COLLECTION
from engine import messages
from models.characters import (
    PROFILE_FIELDS,
    ActionType,
    Character,
    Jutsu,
    character_from_document,
    default_character,
)
from store.client import DocumentClient
from store.errors import PermissionDeniedError, StoreError

logger = logging.getLogger(__name__)


def clamp(value: int, low: int, high: int) -> int:
    """Raise to ``low`` first, then cap at ``high``."""
    return min(max(low, value), high)


def adjust(current: int, delta: int, maximum: int) -> int:
    """Apply a signed delta to a resource bounded by [0, maximum]."""
    return clamp(current + delta, 0, maximum)


def can_use_jutsu(chakra: int, health: int, chakra_cost: int, health_cost: int) -> bool:
    """A jutsu needs enough chakra and must leave the user alive."""
    return chakra >= chakra_cost and health > health_cost


def new_jutsu_id(existing: Iterable[str] = ()) -> str:
    """Millisecond timestamp id, bumped until it is unused."""
    taken = set(existing)
    stamp = int(time.time() * 1000)
    while str(stamp) in taken:
        stamp += 1
    return str(stamp)


def error_message(error: StoreError, fallback: str) -> str:
    """Map a store failure to the message shown to the user."""
    if isinstance(error, PermissionDeniedError):
        return messages.PERMISSION_DENIED
    return fallback


class CharacterSheet:
    """One player's character, kept in step with its document."""

    def __init__(self, client: DocumentClient, uid: str):
        self.client = client
        self.uid = uid
        self.character: Character | None = None
        self.staging: Character | None = None
        self.editing = False
        self.loaded = False
        self.error: str | None = None
        self._pending: set[asyncio.Task] = set()

    async def load(self) -> Character | None:
        """Fetch the document, or start a first-time setup if there is none.

        A missing or malformed document yields the default character in
        editing mode; nothing is written until the player saves. On a read
        failure ``error`` is set and the current state is kept.
        """
        self.error = None
        try:
            data = await self.client.get(CHARACTERS_COLLECTION, self.uid)
        except StoreError as e:
            logger.error("Error fetching character %s: %s", self.uid, e)
            self.error = error_message(e, messages.CHARACTER_LOAD_FAILED)
            return self.character

        character = character_from_document(data)
        if character is None:
            if data is not None:
                logger.warning("Character %s is malformed, starting setup", self.uid)
            self.character = default_character()
            self.staging = self.character.model_copy(deep=True)
            self.editing = True
        else:
            self.character = character
            self.staging = None
            self.editing = False
        self.loaded = True
        return self.character

    def dismiss_error(self) -> None:
        self.error = None

    def _require_character(self) -> Character:
        if self.character is None:
            raise RuntimeError(f"character {self.uid} is not loaded")
        return self.character

    # Writes

    def _write(self, fields: dict[str, Any]) -> asyncio.Task:
        task = asyncio.create_task(self._save(fields))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _save(self, fields: dict[str, Any]) -> bool:
        try:
            await self.client.set(CHARACTERS_COLLECTION, self.uid, fields, merge=True)
        except StoreError as e:
            logger.error("Error saving character %s (%s): %s", self.uid, ", ".join(fields), e)
            self.error = error_message(e, messages.CHARACTER_SAVE_FAILED)
            return False
        return True

    async def settle(self) -> None:
        """Wait for every write issued so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # Resources

    def adjust_health(self, delta: int) -> asyncio.Task:
        character = self._require_character()
        character.current_health = adjust(character.current_health, delta, character.max_health)
        return self._write({"currentHealth": character.current_health})

    def adjust_chakra(self, delta: int) -> asyncio.Task:
        character = self._require_character()
        character.current_chakra = adjust(character.current_chakra, delta, character.max_chakra)
        return self._write({"currentChakra": character.current_chakra})

    # Jutsus

    def find_jutsu(self, jutsu_id: str) -> Jutsu:
        for jutsu in self._require_character().jutsus:
            if jutsu.id == jutsu_id:
                return jutsu
        raise KeyError(jutsu_id)

    def _write_jutsus(self) -> asyncio.Task:
        jutsus = self._require_character().jutsus
        return self._write({"jutsus": [jutsu.to_document() for jutsu in jutsus]})

    def add_jutsu(
        self,
        name: str,
        chakra_cost: int = 0,
        health_cost: int = 0,
        action_type: ActionType = ActionType.STANDARD,
    ) -> tuple[Jutsu, asyncio.Task]:
        """Append a jutsu and write the whole list.

        Raises:
            ValueError: If the name is blank.
        """
        if not name.strip():
            raise ValueError("Jutsu name must not be blank")
        character = self._require_character()
        jutsu = Jutsu(
            id=new_jutsu_id(j.id for j in character.jutsus),
            name=name,
            chakra_cost=chakra_cost,
            health_cost=health_cost,
            action_type=action_type,
        )
        character.jutsus = [*character.jutsus, jutsu]
        return jutsu, self._write_jutsus()

    def edit_jutsu(self, jutsu_id: str, **changes: Any) -> tuple[Jutsu, asyncio.Task]:
        """Replace a jutsu by id with an edited copy and write the whole list."""
        character = self._require_character()
        current = self.find_jutsu(jutsu_id)
        changes.pop("id", None)
        edited = Jutsu.model_validate({**current.model_dump(), **changes})
        character.jutsus = [edited if j.id == jutsu_id else j for j in character.jutsus]
        return edited, self._write_jutsus()

    def delete_jutsu(self, jutsu_id: str) -> asyncio.Task:
        character = self._require_character()
        self.find_jutsu(jutsu_id)
        character.jutsus = [j for j in character.jutsus if j.id != jutsu_id]
        return self._write_jutsus()

    def use_jutsu(self, jutsu_id: str) -> tuple[asyncio.Task, asyncio.Task] | None:
        """Pay a jutsu's costs, if it can be used.

        The chakra and health deductions are two separate writes. Either can
        fail on its own, leaving the stored pair out of step.

        Returns:
            The (chakra, health) write tasks, or None if the jutsu is unusable.
        """
        character = self._require_character()
        jutsu = self.find_jutsu(jutsu_id)
        if not can_use_jutsu(
            character.current_chakra,
            character.current_health,
            jutsu.chakra_cost,
            jutsu.health_cost,
        ):
            return None
        return self.adjust_chakra(-jutsu.chakra_cost), self.adjust_health(-jutsu.health_cost)

    # Profile

    def begin_edit(self) -> Character:
        self.staging = self._require_character().model_copy(deep=True)
        self.editing = True
        return self.staging

    def update_staging(self, **fields: Any) -> Character:
        """Change profile fields on the staging copy only.

        Raises:
            ValueError: For fields outside the profile, or with no edit open.
        """
        if self.staging is None:
            raise ValueError("No profile edit in progress")
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Not profile fields: {', '.join(sorted(unknown))}")
        self.staging = Character.model_validate({**self.staging.model_dump(), **fields})
        return self.staging

    def save_profile(self) -> asyncio.Task:
        """Commit the staged profile as one write of the whole character."""
        if self.staging is None:
            raise ValueError("No profile edit in progress")
        updates = {field: getattr(self.staging, field) for field in PROFILE_FIELDS}
        self.character = self._require_character().model_copy(update=updates)
        self.staging = None
        self.editing = False
        return self._write(self.character.to_document())

    def cancel_edit(self) -> None:
        self.staging = None
        self.editing = False

    def save_notes(self, notes: str) -> asyncio.Task:
        self._require_character().notes = notes
        return self._write({"notes": notes})
