"""Bearer-token identities and the admin claim for Era Genética Server."""

import json
import os
import secrets
from pathlib import Path

from fastapi import Depends, HTTPException, Request
from pydantic import BaseModel

import config


class Identity(BaseModel):
    """An authenticated user as seen by the rest of the server."""
    uid: str
    name: str
    admin: bool = False             # Custom claim gating the roster


# In-memory token store: api_key -> Identity
_tokens: dict[str, Identity] = {}


def _path(path: str | None) -> str:
    return path or config.TOKENS_FILE


def load_tokens(path: str | None = None) -> dict[str, Identity]:
    """Load token store from JSON file.

    Returns:
        Dict mapping API keys to Identity objects.
    """
    _tokens.clear()
    path = _path(path)
    if not Path(path).exists():
        return _tokens
    with open(path) as f:
        data = json.load(f)
    _tokens.update({key: Identity(**value) for key, value in data.items()})
    return _tokens


def save_tokens(path: str | None = None) -> None:
    """Persist token store to JSON file (atomic write)."""
    path = _path(path)
    tmp_path = path + ".tmp"
    data = {key: identity.model_dump() for key, identity in _tokens.items()}
    with open(tmp_path, "w") as f:
        json.dump(data, f, indent=2)
    os.replace(tmp_path, path)


def _new_key() -> str:
    return "sk_" + secrets.token_hex(32)


def create_token(uid: str, name: str, admin: bool = False) -> str:
    """Generate a new API key for a user and persist it.

    Args:
        uid: Unique identifier; also the id of the user's character document.
        name: Display name for the user.
        admin: Initial value of the admin claim.

    Returns:
        The generated API key string.

    Raises:
        ValueError: If uid is already registered.
    """
    for identity in _tokens.values():
        if identity.uid == uid:
            raise ValueError(f"uid '{uid}' is already registered")

    api_key = _new_key()
    _tokens[api_key] = Identity(uid=uid, name=name, admin=admin)
    save_tokens()
    return api_key


def get_current_identity(request: Request) -> Identity:
    """FastAPI dependency: extract and validate the Bearer token.

    The identity, including its admin claim, is resolved afresh on every
    request, so a claim change applies from the next call.

    Raises:
        HTTPException 401: If token is missing or invalid.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header")

    token = auth_header[len("Bearer "):]
    identity = _tokens.get(token)
    if identity is None:
        raise HTTPException(status_code=401, detail="Invalid API key")

    return identity


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    """FastAPI dependency: like get_current_identity, but only for admins.

    Raises:
        HTTPException 403: If the identity lacks the admin claim.
    """
    if not identity.admin:
        raise HTTPException(status_code=403, detail="Admin claim required")
    return identity


def get_identity_by_token(token: str) -> Identity | None:
    """Look up an identity by raw API key (for WebSocket auth)."""
    return _tokens.get(token)


def _find(uid: str) -> tuple[str, Identity] | None:
    for key, identity in _tokens.items():
        if identity.uid == uid:
            return key, identity
    return None


def delete_token(uid: str) -> bool:
    """Remove a user and their API key from the token store.

    Returns:
        True if the user was found and deleted, False if not found.
    """
    found = _find(uid)
    if found is None:
        return False
    del _tokens[found[0]]
    save_tokens()
    return True


def set_admin_claim(uid: str, admin: bool) -> Identity | None:
    """Grant or revoke the admin claim.

    Returns:
        The updated Identity, or None if the uid is not registered.
    """
    found = _find(uid)
    if found is None:
        return None
    found[1].admin = admin
    save_tokens()
    return found[1]


def rotate_token(uid: str) -> str | None:
    """Generate a new API key for an existing user, invalidating the old one.

    Returns:
        The new API key string, or None if the uid is not registered.
    """
    found = _find(uid)
    if found is None:
        return None
    old_key, identity = found
    del _tokens[old_key]
    new_key = _new_key()
    _tokens[new_key] = identity
    save_tokens()
    return new_key
