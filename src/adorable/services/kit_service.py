"""Kit persistence service.

Kits are stored with a few indexed columns (id, name, description,
thumbnail, is_built_in) and a serialized ``KitConfig`` blob for the rest.
The API only ever sees merged ``Kit`` objects.
"""

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from adorable.models.kit import Kit, KitConfig, KitRecord
from adorable.models.team import MemberRole
from adorable.models.user import User
from adorable.services.team_service import TeamService

logger = logging.getLogger(__name__)

MANAGER_ROLES = (MemberRole.OWNER, MemberRole.ADMIN)


class KitServiceError(Exception):
    """Base exception for kit service errors."""
    pass


class KitNotFoundError(KitServiceError):
    """Kit does not exist or is not visible to the caller."""
    pass


class KitPermissionError(KitServiceError):
    """Caller can see the kit but may not change it."""
    pass


class KitConflictError(KitServiceError):
    """Kit id or name already in use."""
    pass


def row_to_kit(row: KitRecord) -> Kit:
    """Merge a kit row's columns with its config blob."""
    try:
        raw = json.loads(row.config or "{}")
    except json.JSONDecodeError:
        logger.warning(f"Kit {row.id} has an unreadable config blob, using defaults")
        raw = {}
    config = KitConfig.model_validate(raw if isinstance(raw, dict) else {})
    return Kit(
        **config.model_dump(),
        id=row.id,
        name=row.name,
        description=row.description,
        thumbnail=row.thumbnail,
        is_built_in=bool(row.is_built_in),
        team_id=row.team_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def kit_to_row(
    kit: Kit,
    user_id: Optional[str] = None,
    team_id: Optional[str] = None,
) -> dict[str, Any]:
    """Split a kit into column values and the serialized config blob.

    A team-owned kit never keeps a personal owner.
    """
    return {
        "id": kit.id,
        "name": kit.name,
        "description": kit.description or None,
        "thumbnail": kit.thumbnail or None,
        "is_built_in": kit.is_built_in,
        "config": kit.to_config().model_dump_json(by_alias=True, exclude_none=True),
        "user_id": None if team_id else user_id,
        "team_id": team_id or None,
    }


class KitService:
    """Service for reading and writing kits."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.teams = TeamService(db)

    async def _visible_to(self, user_id: str):
        """Personal kits, kits of the user's teams, and built-in kits."""
        team_ids = await self.teams.team_ids_for_user(user_id)
        clauses = [
            KitRecord.user_id == user_id,
            and_(KitRecord.user_id.is_(None), KitRecord.is_built_in.is_(True)),
        ]
        if team_ids:
            clauses.append(KitRecord.team_id.in_(team_ids))
        return or_(*clauses)

    async def list_for_user(self, user_id: str) -> list[Kit]:
        """List every kit the user can see, oldest first."""
        result = await self.db.execute(
            select(KitRecord)
            .where(await self._visible_to(user_id))
            .order_by(KitRecord.created_at)
        )
        return [row_to_kit(row) for row in result.scalars().all()]

    async def get_for_user(self, kit_id: str, user_id: str) -> Kit:
        """Get a single kit, scoped to what the user can see.

        Raises:
            KitNotFoundError: If the kit doesn't exist or isn't visible
        """
        result = await self.db.execute(
            select(KitRecord).where(
                KitRecord.id == kit_id,
                await self._visible_to(user_id),
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise KitNotFoundError("Kit not found")
        return row_to_kit(row)

    async def create(self, kit: Kit, user_id: str, team_id: Optional[str] = None) -> Kit:
        """Create a personal kit, or a team kit when ``team_id`` is given.

        Raises:
            KitPermissionError: If the user cannot manage the target team
            KitConflictError: If the id or name is already taken
        """
        if team_id:
            role = await self.teams.get_user_role_in_team(team_id, user_id)
            if role not in MANAGER_ROLES:
                raise KitPermissionError("Insufficient team permissions")

        if await self.db.get(KitRecord, kit.id) is not None:
            raise KitConflictError(f"Kit id '{kit.id}' already exists")
        if await self.name_exists(kit.name, user_id, team_id=team_id):
            raise KitConflictError(f'A kit named "{kit.name}" already exists')

        row = KitRecord(**kit_to_row(kit, user_id, team_id))
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)
        logger.info(f"Kit {row.id} created by {user_id}" + (f" in team {team_id}" if team_id else ""))
        return row_to_kit(row)

    async def update(self, kit_id: str, updates: dict[str, Any], user_id: str) -> Kit:
        """Apply a partial update to a kit the user may modify."""
        row = await self._get_writable(kit_id, user_id)
        current = row_to_kit(row)

        merged = Kit.model_validate({**current.model_dump(), **updates, "id": row.id})
        if merged.name != row.name and await self.name_exists(
            merged.name, user_id, exclude_kit_id=row.id, team_id=row.team_id
        ):
            raise KitConflictError(f'A kit named "{merged.name}" already exists')

        data = kit_to_row(merged, row.user_id, row.team_id)
        row.name = data["name"]
        row.description = data["description"]
        row.thumbnail = data["thumbnail"]
        row.config = data["config"]
        await self.db.commit()
        await self.db.refresh(row)
        return row_to_kit(row)

    async def delete(self, kit_id: str, user_id: str) -> None:
        """Delete a kit the user may modify."""
        row = await self._get_writable(kit_id, user_id)
        await self.db.delete(row)
        await self.db.commit()
        logger.info(f"Kit {kit_id} deleted by {user_id}")

    async def _get_writable(self, kit_id: str, user_id: str) -> KitRecord:
        """Load a kit the user owns personally or manages through a team."""
        row = await self.db.get(KitRecord, kit_id)
        if row is None:
            raise KitNotFoundError("Kit not found")
        if row.user_id == user_id:
            return row

        role = None
        if row.team_id:
            role = await self.teams.get_user_role_in_team(row.team_id, user_id)
            if role in MANAGER_ROLES:
                return row

        if role is not None or (row.user_id is None and row.is_built_in):
            raise KitPermissionError("Insufficient permissions to modify this kit")
        raise KitNotFoundError("Kit not found")

    async def name_exists(
        self,
        name: str,
        user_id: str,
        exclude_kit_id: Optional[str] = None,
        team_id: Optional[str] = None,
    ) -> bool:
        """Check whether the owner (user, or team when given) already has a kit named ``name``."""
        query = select(KitRecord.id).where(KitRecord.name == name)
        if team_id:
            query = query.where(KitRecord.team_id == team_id)
        else:
            query = query.where(KitRecord.user_id == user_id)
        if exclude_kit_id:
            query = query.where(KitRecord.id != exclude_kit_id)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def migrate_from_settings(self) -> int:
        """Move kits from legacy user settings blobs into the kits table.

        Kits whose id already exists are skipped, and the ``kits`` key is
        removed from the blob afterwards, so running this twice is a no-op.

        Returns:
            Number of kits inserted
        """
        result = await self.db.execute(select(User).where(User.settings.is_not(None)))
        total = 0

        for user in result.scalars().all():
            try:
                settings = user.load_settings()
            except json.JSONDecodeError:
                logger.warning(f"Skipping kit migration for user {user.id}: unreadable settings")
                continue
            if not isinstance(settings, dict):
                continue

            legacy_kits = settings.get("kits")
            if not isinstance(legacy_kits, list) or not legacy_kits:
                continue

            for raw in legacy_kits:
                if not isinstance(raw, dict) or not raw.get("id"):
                    continue
                if await self.db.get(KitRecord, raw["id"]) is not None:
                    continue
                try:
                    kit = Kit.model_validate(raw)
                except ValidationError as e:
                    logger.warning(f"Skipping legacy kit {raw['id']} of user {user.id}: {e}")
                    continue
                self.db.add(KitRecord(**kit_to_row(kit, user.id)))
                total += 1

            settings.pop("kits", None)
            user.settings = json.dumps(settings)
            await self.db.flush()

        await self.db.commit()
        if total:
            logger.info(f"Migrated {total} kit(s) from user settings to the kits table")
        return total


__all__ = [
    "KitService",
    "row_to_kit",
    "kit_to_row",
    "KitServiceError",
    "KitNotFoundError",
    "KitPermissionError",
    "KitConflictError",
]
