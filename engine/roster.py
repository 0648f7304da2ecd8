"""Admin roster: live character list in an admin-controlled order."""

from __future__ import annotations

import asyncio
import logging
import unicodedata
from collections.abc import AsyncIterator
from typing import Any

from config import ADMIN_SETTINGS_COLLECTION, CHARACTERS_COLLECTION
from engine import messages
from engine.sheet import error_message
from models.admin_settings import settings_from_document
from models.characters import CharacterSummary, summary_from_document
from store.client import DocumentClient
from store.documents import DocumentSnapshot, Subscription
from store.errors import StoreError

logger = logging.getLogger(__name__)


class ConfirmationRequired(Exception):
    """An order-changing action was attempted without the admin confirming."""


def _name_key(character: CharacterSummary) -> tuple[str, str, str, str]:
    # Base letters first, then accents, then case (lowercase first), then id.
    decomposed = unicodedata.normalize("NFKD", character.name)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return base.casefold(), character.name.casefold(), character.name.swapcase(), character.id


def sort_characters(
    characters: list[CharacterSummary],
    order: list[str],
) -> list[CharacterSummary]:
    """Arrange characters by a saved id order.

    Characters named in ``order`` come first, in that sequence; ids with no
    matching character are skipped. Everything else follows, sorted by name.
    """
    remaining = {character.id: character for character in characters}
    result = []
    for character_id in order:
        character = remaining.pop(character_id, None)
        if character is not None:
            result.append(character)
    result.extend(sorted(remaining.values(), key=_name_key))
    return result


def move_item(items: list, source: int, destination: int) -> list:
    """Return a copy of ``items`` with one element moved.

    Raises:
        IndexError: If either index is outside the list.
    """
    if not 0 <= source < len(items) or not 0 <= destination < len(items):
        raise IndexError(f"cannot move {source} -> {destination} in {len(items)} items")
    moved = list(items)
    item = moved.pop(source)
    moved.insert(destination, item)
    return moved


class AdminRoster:
    """All characters as one admin sees them.

    Use as an async context manager, or call ``open()`` and ``close()``.
    While open, every push from the characters subscription re-derives
    ``displayed`` from the fresh set and the current ``order``.
    """

    def __init__(self, client: DocumentClient, admin_uid: str | None = None):
        self.client = client
        self.admin_uid = admin_uid or client.identity.uid
        self.characters: list[CharacterSummary] = []    # Last-known, unsorted
        self.order: list[str] = []
        self.displayed: list[CharacterSummary] = []
        self.loaded = False
        self.error: str | None = None
        self._subscription: Subscription | None = None
        self._task: asyncio.Task | None = None
        self._listeners: list[asyncio.Queue] = []

    async def __aenter__(self) -> AdminRoster:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def open(self) -> None:
        """Read the saved order once, then start following the characters."""
        self.error = None
        self.order = await self._fetch_settings_order()
        try:
            self._subscription = self.client.subscribe(CHARACTERS_COLLECTION)
            first = await self._subscription.next()
        except StoreError as e:
            logger.error("Error fetching characters for admin %s: %s", self.admin_uid, e)
            self.error = error_message(e, messages.ROSTER_LOAD_FAILED)
            return
        self.apply_snapshot(first)
        self._task = asyncio.create_task(self._follow(self._subscription))

    async def close(self) -> None:
        """Stop following the characters and end every ``updates()`` stream."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        if self._task is not None:
            await self._task
            self._task = None
        for queue in self._listeners:
            queue.put_nowait(None)

    async def _fetch_settings_order(self) -> list[str]:
        try:
            data = await self.client.get(ADMIN_SETTINGS_COLLECTION, self.admin_uid)
        except StoreError as e:
            logger.warning("Could not read character order for %s: %s", self.admin_uid, e)
            return []
        return settings_from_document(data).character_order

    async def _follow(self, subscription: Subscription) -> None:
        async for snapshot in subscription:
            self.apply_snapshot(snapshot)

    def apply_snapshot(self, snapshot: list[DocumentSnapshot]) -> None:
        characters = []
        for doc in snapshot:
            summary = summary_from_document(doc.id, doc.data)
            if summary is None:
                logger.warning("Skipping malformed character %s", doc.id)
                continue
            characters.append(summary)
        self.characters = characters
        self.loaded = True
        self._rederive()

    def _rederive(self) -> None:
        self.displayed = sort_characters(self.characters, self.order)
        self._publish()

    def _publish(self) -> None:
        for queue in self._listeners:
            queue.put_nowait(list(self.displayed))

    def updates(self) -> AsyncIterator[list[CharacterSummary]]:
        """Stream the displayed list after each change, until ``close()``.

        The listener is registered when this is called, not when iteration
        starts, so no change in between is missed.
        """
        queue: asyncio.Queue = asyncio.Queue()
        self._listeners.append(queue)
        return self._drain(queue)

    async def _drain(self, queue: asyncio.Queue) -> AsyncIterator[list[CharacterSummary]]:
        try:
            while True:
                displayed = await queue.get()
                if displayed is None:
                    return
                yield displayed
        finally:
            self._listeners.remove(queue)

    async def _write(self, fields: dict[str, list[str]]) -> bool:
        try:
            await self.client.set(ADMIN_SETTINGS_COLLECTION, self.admin_uid, fields, merge=True)
        except StoreError as e:
            logger.error("Error saving %s for admin %s: %s", ", ".join(fields), self.admin_uid, e)
            self.error = error_message(e, messages.ORDER_SAVE_FAILED)
            return False
        return True

    async def reorder(self, source: int, destination: int) -> bool:
        """Move one character and save the new sequence as the live order.

        Raises:
            IndexError: If either index is outside the displayed list.
        """
        self.displayed = move_item(self.displayed, source, destination)
        self.order = [character.id for character in self.displayed]
        self._publish()
        return await self._write({"characterOrder": self.order})

    async def save_default(self, confirmed: bool = False) -> bool:
        """Save the current displayed order as the reset target."""
        if not confirmed:
            raise ConfirmationRequired("Saving the default order must be confirmed")
        default = [character.id for character in self.displayed]
        return await self._write({"defaultCharacterOrder": default})

    async def reset_to_default(self, confirmed: bool = False) -> bool:
        """Make the saved default order the live order again."""
        if not confirmed:
            raise ConfirmationRequired("Resetting to the default order must be confirmed")
        try:
            data = await self.client.get(ADMIN_SETTINGS_COLLECTION, self.admin_uid)
        except StoreError as e:
            logger.error("Error reading default order for admin %s: %s", self.admin_uid, e)
            self.error = error_message(e, messages.ROSTER_LOAD_FAILED)
            return False
        self.order = list(settings_from_document(data).default_character_order)
        self._rederive()
        return await self._write({"characterOrder": self.order})
