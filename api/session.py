"""Session endpoint: who the caller is and which view they belong in."""

from fastapi import APIRouter, Depends

from auth import Identity, get_current_identity

router = APIRouter()


@router.get("/session")
def read_session(identity: Identity = Depends(get_current_identity)) -> dict:
    """Resolve the caller's claims and pick their home view.

    Admins land on the roster, everyone else on their character sheet.
    """
    return {
        "uid": identity.uid,
        "name": identity.name,
        "admin": identity.admin,
        "home": "/admin" if identity.admin else "/character",
    }
