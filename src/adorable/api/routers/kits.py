"""Kits router.

Kits are visible to their personal owner, to members of the owning team,
and (for built-in kits) to everyone.
"""

from typing import Any, Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from adorable.api.deps import CurrentUser, DBSession
from adorable.api.exceptions import BadRequestError
from adorable.api.schemas import SuccessResponse
from adorable.models.kit import Kit, KitConfig
from adorable.services.kit_service import KitService

router = APIRouter()


class KitCreate(KitConfig):
    """Request to create a kit. Accepts camelCase or snake_case keys."""

    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    team_id: Optional[str] = None


class KitListResponse(BaseModel):
    kits: list[dict[str, Any]]


class KitResponse(BaseModel):
    kit: dict[str, Any]


class KitMutationResponse(SuccessResponse):
    kit: dict[str, Any]


def _dump(kit: Kit) -> dict[str, Any]:
    return kit.model_dump(mode="json")


@router.get("", response_model=KitListResponse, summary="List visible kits")
async def list_kits(user: CurrentUser, db: DBSession) -> KitListResponse:
    kits = await KitService(db).list_for_user(user.id)
    return KitListResponse(kits=[_dump(k) for k in kits])


@router.get("/{kit_id}", response_model=KitResponse, summary="Get a kit")
async def get_kit(kit_id: str, user: CurrentUser, db: DBSession) -> KitResponse:
    kit = await KitService(db).get_for_user(kit_id, user.id)
    return KitResponse(kit=_dump(kit))


@router.post(
    "",
    response_model=KitMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a kit",
)
async def create_kit(request: KitCreate, user: CurrentUser, db: DBSession) -> KitMutationResponse:
    """Create a personal kit, or a team kit when ``team_id`` is given."""
    data = request.model_dump(exclude={"team_id"}, exclude_none=True)
    try:
        kit = Kit.model_validate({**data, "is_built_in": False})
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    created = await KitService(db).create(kit, user.id, team_id=request.team_id)
    return KitMutationResponse(kit=_dump(created))


@router.put("/{kit_id}", response_model=KitMutationResponse, summary="Update a kit")
async def update_kit(
    kit_id: str,
    updates: dict[str, Any],
    user: CurrentUser,
    db: DBSession,
) -> KitMutationResponse:
    """Partial update; ownership, id and built-in flag can't be changed here."""
    service = KitService(db)
    current = await service.get_for_user(kit_id, user.id)
    try:
        parsed = Kit.model_validate({**current.model_dump(), **updates})
    except ValueError as e:
        raise BadRequestError(str(e)) from e

    changed = parsed.model_dump(
        exclude={"id", "team_id", "is_built_in", "created_at", "updated_at"},
    )
    try:
        kit = await service.update(kit_id, changed, user.id)
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    return KitMutationResponse(kit=_dump(kit))


@router.delete("/{kit_id}", response_model=SuccessResponse, summary="Delete a kit")
async def delete_kit(kit_id: str, user: CurrentUser, db: DBSession) -> SuccessResponse:
    await KitService(db).delete(kit_id, user.id)
    return SuccessResponse()
