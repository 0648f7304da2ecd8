"""WebSocket endpoint for the live admin roster."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from api.admin import roster_state
from auth import get_identity_by_token
from engine.roster import AdminRoster, ConfirmationRequired
from store.client import DocumentClient

logger = logging.getLogger(__name__)

router = APIRouter()


async def _forward_updates(
    websocket: WebSocket,
    roster: AdminRoster,
    updates: AsyncIterator[list],
) -> None:
    """Send the roster to the client every time it is re-derived."""
    async for _ in updates:
        await websocket.send_json({"type": "roster", **roster_state(roster)})


async def _stop_forwarder(forwarder: asyncio.Task) -> None:
    """Cancel the forwarder and collect its outcome."""
    forwarder.cancel()
    try:
        await forwarder
    except (asyncio.CancelledError, WebSocketDisconnect):
        pass


async def _handle_message(roster: AdminRoster, message: dict[str, Any]) -> dict[str, Any] | None:
    """Apply one client message.

    Moves and resets reach the client through the update stream; the
    returned reply covers everything else (saved default, errors).
    """
    kind = message.get("type")
    roster.error = None
    reply = None
    try:
        if kind == "move":
            await roster.reorder(int(message["source"]), int(message["destination"]))
        elif kind == "save_default":
            if await roster.save_default(confirmed=bool(message.get("confirm"))):
                reply = {"type": "default_saved", "order": [c.id for c in roster.displayed]}
        elif kind == "reset":
            await roster.reset_to_default(confirmed=bool(message.get("confirm")))
        else:
            return {"type": "error", "detail": f"Unknown message type: {kind}"}
    except (ConfirmationRequired, IndexError, KeyError, TypeError, ValueError) as e:
        return {"type": "error", "detail": str(e)}
    if roster.error is not None:
        return {"type": "error", "detail": roster.error}
    return reply


@router.websocket("/ws")
async def roster_websocket(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    """Live roster for one admin view.

    Authenticate via the `token` query parameter (same API key used for REST).
    The current roster is sent on connect and again after every change.
    Clients may send ``{"type": "move", "source": i, "destination": j}``,
    ``{"type": "save_default", "confirm": true}`` and
    ``{"type": "reset", "confirm": true}``.
    """
    identity = get_identity_by_token(token)
    if identity is None:
        await websocket.close(code=4001, reason="Invalid API key")
        return
    if not identity.admin:
        await websocket.close(code=4003, reason="Admin claim required")
        return

    await websocket.accept()
    roster = AdminRoster(DocumentClient(websocket.app.state.store, identity))
    await roster.open()
    await websocket.send_json({"type": "roster", **roster_state(roster)})
    if not roster.loaded:
        await roster.close()
        await websocket.close(code=4002, reason="Roster unavailable")
        return

    forwarder = asyncio.create_task(_forward_updates(websocket, roster, roster.updates()))
    try:
        while True:
            try:
                text = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            try:
                message = json.loads(text)
            except json.JSONDecodeError:
                message = None
            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "detail": "Expected a JSON object"})
                continue
            reply = await _handle_message(roster, message)
            if reply is not None:
                await websocket.send_json(reply)
    finally:
        await _stop_forwarder(forwarder)
        await roster.close()
        logger.info("Roster view closed for %s", identity.uid)
