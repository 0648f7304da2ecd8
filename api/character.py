"""Character sheet endpoints for the authenticated player."""

from fastapi import APIRouter, Depends, HTTPException, Request

from auth import Identity, get_current_identity
from engine import messages
from engine.sheet import CharacterSheet
from models.characters import ActionType, Character, DocumentModel
from store.client import DocumentClient

router = APIRouter()


class DeltaRequest(DocumentModel):
    """Signed change to a resource."""
    delta: int


class JutsuRequest(DocumentModel):
    """Request body for adding a jutsu."""
    name: str
    chakra_cost: int = 0
    health_cost: int = 0
    action_type: ActionType = ActionType.STANDARD


class JutsuUpdateRequest(DocumentModel):
    """Request body for editing a jutsu; omitted fields are kept."""
    name: str | None = None
    chakra_cost: int | None = None
    health_cost: int | None = None
    action_type: ActionType | None = None


class ProfileUpdateRequest(DocumentModel):
    """Staged profile changes; omitted fields are kept."""
    name: str | None = None
    level: int | None = None
    max_health: int | None = None
    max_chakra: int | None = None
    photo: str | None = None


class NotesRequest(DocumentModel):
    """Request body for saving notes."""
    notes: str


def _dump(character: Character | None) -> dict | None:
    return character.to_document() if character is not None else None


def _sheet_state(sheet: CharacterSheet) -> dict:
    return {
        "character": _dump(sheet.character),
        "editing": sheet.editing,
        "staging": _dump(sheet.staging),
        "error": sheet.error,
    }


async def get_sheet(
    request: Request,
    identity: Identity = Depends(get_current_identity),
) -> CharacterSheet:
    """FastAPI dependency: the caller's sheet, loaded on first access.

    Raises:
        HTTPException 403/503: If the character could not be loaded.
    """
    sheets: dict[str, CharacterSheet] = request.app.state.sheets
    client = DocumentClient(request.app.state.store, identity)
    sheet = sheets.get(identity.uid)
    if sheet is None:
        sheet = sheets[identity.uid] = CharacterSheet(client, identity.uid)
    else:
        sheet.client = client
    if not sheet.loaded or request.query_params.get("refresh") == "true":
        await sheet.load()
        if sheet.error is not None:
            status = 403 if sheet.error == messages.PERMISSION_DENIED else 503
            raise HTTPException(status_code=status, detail=sheet.error)
    else:
        sheet.dismiss_error()
    return sheet


async def _respond(sheet: CharacterSheet) -> dict:
    await sheet.settle()
    return _sheet_state(sheet)


@router.get("")
async def read_character(sheet: CharacterSheet = Depends(get_sheet)) -> dict:
    """Get the caller's character. ``?refresh=true`` reloads from the store."""
    return _sheet_state(sheet)


@router.post("/health")
async def adjust_health(body: DeltaRequest, sheet: CharacterSheet = Depends(get_sheet)) -> dict:
    """Add (or subtract) health, clamped to [0, maxHealth]."""
    sheet.adjust_health(body.delta)
    return await _respond(sheet)


@router.post("/chakra")
async def adjust_chakra(body: DeltaRequest, sheet: CharacterSheet = Depends(get_sheet)) -> dict:
    """Add (or subtract) chakra, clamped to [0, maxChakra]."""
    sheet.adjust_chakra(body.delta)
    return await _respond(sheet)


@router.post("/jutsus")
async def add_jutsu(body: JutsuRequest, sheet: CharacterSheet = Depends(get_sheet)) -> dict:
    """Learn a new jutsu."""
    try:
        jutsu, _ = sheet.add_jutsu(
            body.name,
            chakra_cost=body.chakra_cost,
            health_cost=body.health_cost,
            action_type=body.action_type,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {**await _respond(sheet), "jutsu": jutsu.to_document()}


@router.put("/jutsus/{jutsu_id}")
async def edit_jutsu(
    jutsu_id: str,
    body: JutsuUpdateRequest,
    sheet: CharacterSheet = Depends(get_sheet),
) -> dict:
    """Edit a jutsu in place."""
    try:
        sheet.edit_jutsu(jutsu_id, **body.model_dump(exclude_none=True))
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Jutsu '{jutsu_id}' not found")
    return await _respond(sheet)


@router.delete("/jutsus/{jutsu_id}")
async def delete_jutsu(jutsu_id: str, sheet: CharacterSheet = Depends(get_sheet)) -> dict:
    """Forget a jutsu."""
    try:
        sheet.delete_jutsu(jutsu_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Jutsu '{jutsu_id}' not found")
    return await _respond(sheet)


@router.post("/jutsus/{jutsu_id}/use")
async def use_jutsu(jutsu_id: str, sheet: CharacterSheet = Depends(get_sheet)) -> dict:
    """Pay a jutsu's chakra and health costs.

    Rejected with 409 when chakra is short or the health cost would be fatal.
    """
    try:
        writes = sheet.use_jutsu(jutsu_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Jutsu '{jutsu_id}' not found")
    if writes is None:
        raise HTTPException(status_code=409, detail="Not enough chakra or health for this jutsu")
    return await _respond(sheet)


@router.post("/profile/edit")
async def begin_profile_edit(sheet: CharacterSheet = Depends(get_sheet)) -> dict:
    """Open a staging copy of the profile."""
    sheet.begin_edit()
    return _sheet_state(sheet)


@router.patch("/profile")
async def update_profile(
    body: ProfileUpdateRequest,
    sheet: CharacterSheet = Depends(get_sheet),
) -> dict:
    """Change staged profile fields. Nothing is saved until /profile/save."""
    try:
        sheet.update_staging(**body.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _sheet_state(sheet)


@router.post("/profile/save")
async def save_profile(sheet: CharacterSheet = Depends(get_sheet)) -> dict:
    """Commit the staged profile."""
    try:
        sheet.save_profile()
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return await _respond(sheet)


@router.post("/profile/cancel")
async def cancel_profile_edit(sheet: CharacterSheet = Depends(get_sheet)) -> dict:
    """Discard the staged profile."""
    sheet.cancel_edit()
    return _sheet_state(sheet)


@router.put("/notes")
async def save_notes(body: NotesRequest, sheet: CharacterSheet = Depends(get_sheet)) -> dict:
    """Replace the character's notes."""
    sheet.save_notes(body.notes)
    return await _respond(sheet)
