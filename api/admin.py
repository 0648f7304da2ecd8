"""Admin endpoints: identity management and the ordered character roster."""

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel

import config
from auth import (
    Identity,
    _tokens,
    create_token,
    delete_token,
    require_admin,
    rotate_token,
    set_admin_claim,
)
from config import save_secret
from engine import messages
from engine.roster import AdminRoster, ConfirmationRequired
from store.client import DocumentClient

router = APIRouter()


class RegisterRequest(BaseModel):
    """Request body for registering a new identity."""
    uid: str
    name: str
    admin: bool = False


class RegisterResponse(BaseModel):
    """Response carrying an identity's API key."""
    api_key: str
    uid: str


class ClaimsRequest(BaseModel):
    """Request body for setting custom claims."""
    admin: bool


class ChangeSecretRequest(BaseModel):
    """Request body for changing the admin secret."""
    new_secret: str


class MoveRequest(BaseModel):
    """A drag-and-drop move on the roster."""
    source: int
    destination: int


class ConfirmRequest(BaseModel):
    """Explicit confirmation for order-changing actions."""
    confirm: bool = False


def _require_secret(x_admin_secret: str) -> None:
    if x_admin_secret != config.ADMIN_SECRET:
        raise HTTPException(status_code=403, detail="Invalid admin secret")


@router.put("/secret")
def change_admin_secret(
    body: ChangeSecretRequest,
    x_admin_secret: str = Header(..., alias="X-Admin-Secret"),
) -> dict:
    """Change the admin secret at runtime.

    Requires the current X-Admin-Secret header. The new secret takes
    effect immediately.
    """
    _require_secret(x_admin_secret)
    if len(body.new_secret) < 8:
        raise HTTPException(status_code=400, detail="New secret must be at least 8 characters")

    config.ADMIN_SECRET = body.new_secret
    save_secret()
    return {"message": "Admin secret updated"}


@router.post("/register", response_model=RegisterResponse)
def register_user(
    body: RegisterRequest,
    x_admin_secret: str = Header(..., alias="X-Admin-Secret"),
) -> RegisterResponse:
    """Register a player (or admin) and return an API key."""
    _require_secret(x_admin_secret)
    try:
        api_key = create_token(body.uid, body.name, admin=body.admin)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return RegisterResponse(api_key=api_key, uid=body.uid)


@router.get("/users")
def list_users(x_admin_secret: str = Header(..., alias="X-Admin-Secret")) -> list[dict]:
    """List all registered identities. Does not expose API keys."""
    _require_secret(x_admin_secret)
    return [identity.model_dump() for identity in _tokens.values()]


@router.put("/users/{uid}/claims")
def set_user_claims(
    uid: str,
    body: ClaimsRequest,
    x_admin_secret: str = Header(..., alias="X-Admin-Secret"),
) -> dict:
    """Grant or revoke the admin claim. Applies from the user's next request."""
    _require_secret(x_admin_secret)
    identity = set_admin_claim(uid, body.admin)
    if identity is None:
        raise HTTPException(status_code=404, detail=f"uid '{uid}' not found")

    return identity.model_dump()


@router.post("/users/{uid}/rotate-token", response_model=RegisterResponse)
def rotate_user_token(
    uid: str,
    x_admin_secret: str = Header(..., alias="X-Admin-Secret"),
) -> RegisterResponse:
    """Rotate the API key for an identity. The old key is invalidated immediately."""
    _require_secret(x_admin_secret)
    new_key = rotate_token(uid)
    if new_key is None:
        raise HTTPException(status_code=404, detail=f"uid '{uid}' not found")

    return RegisterResponse(api_key=new_key, uid=uid)


@router.delete("/users/{uid}")
def delete_user(
    uid: str,
    request: Request,
    x_admin_secret: str = Header(..., alias="X-Admin-Secret"),
) -> dict:
    """Delete an identity and its API key. The character document is kept."""
    _require_secret(x_admin_secret)
    if not delete_token(uid):
        raise HTTPException(status_code=404, detail=f"uid '{uid}' not found")

    request.app.state.sheets.pop(uid, None)
    return {"message": f"User '{uid}' deleted"}


# Roster


def roster_state(roster: AdminRoster) -> dict:
    """The roster as sent to clients."""
    return {
        "characters": [character.to_document() for character in roster.displayed],
        "order": roster.order,
        "error": roster.error,
    }


async def _open_roster(request: Request, identity: Identity) -> AdminRoster:
    roster = AdminRoster(DocumentClient(request.app.state.store, identity))
    await roster.open()
    if not roster.loaded:
        await roster.close()
        status = 403 if roster.error == messages.PERMISSION_DENIED else 503
        raise HTTPException(status_code=status, detail=roster.error)
    return roster


@router.get("/roster")
async def read_roster(request: Request, identity: Identity = Depends(require_admin)) -> dict:
    """All characters in the admin's order."""
    roster = await _open_roster(request, identity)
    await roster.close()
    return roster_state(roster)


@router.post("/roster/move")
async def move_character(
    body: MoveRequest,
    request: Request,
    identity: Identity = Depends(require_admin),
) -> dict:
    """Move one character to a new position and save the live order."""
    roster = await _open_roster(request, identity)
    try:
        await roster.reorder(body.source, body.destination)
    except IndexError as e:
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        await roster.close()
    return roster_state(roster)


@router.post("/roster/default")
async def save_default_order(
    body: ConfirmRequest,
    request: Request,
    identity: Identity = Depends(require_admin),
) -> dict:
    """Save the current order as the default. Requires ``confirm: true``."""
    roster = await _open_roster(request, identity)
    try:
        await roster.save_default(confirmed=body.confirm)
    except ConfirmationRequired as e:
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        await roster.close()
    return roster_state(roster)


@router.post("/roster/reset")
async def reset_order(
    body: ConfirmRequest,
    request: Request,
    identity: Identity = Depends(require_admin),
) -> dict:
    """Restore the saved default order. Requires ``confirm: true``."""
    roster = await _open_roster(request, identity)
    try:
        await roster.reset_to_default(confirmed=body.confirm)
    except ConfirmationRequired as e:
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        await roster.close()
    return roster_state(roster)
