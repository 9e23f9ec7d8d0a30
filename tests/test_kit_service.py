"""Tests for KitService: storage round trip, visibility, permissions and migration."""

import json

import pytest

from adorable.models.kit import Kit, KitRecord
from adorable.models.team import MemberRole
from adorable.models.user import User
from adorable.services.kit_service import (
    KitConflictError,
    KitNotFoundError,
    KitPermissionError,
    KitService,
    kit_to_row,
    row_to_kit,
)
from adorable.services.team_service import TeamService


class TestRowMapping:
    def test_config_blob_is_camel_case(self) -> None:
        kit = Kit(id="k1", name="Material", npm_package="@angular/material", system_prompt="Use mat-*")
        row = kit_to_row(kit, user_id="u1")
        blob = json.loads(row["config"])
        assert blob["npmPackage"] == "@angular/material"
        assert blob["systemPrompt"] == "Use mat-*"
        assert "name" not in blob
        assert (row["user_id"], row["team_id"]) == ("u1", None)

    def test_team_kit_has_no_personal_owner(self) -> None:
        row = kit_to_row(Kit(name="Shared"), user_id="u1", team_id="t1")
        assert (row["user_id"], row["team_id"]) == (None, "t1")

    def test_missing_blob_fields_get_defaults(self) -> None:
        row = KitRecord(id="k1", name="Legacy", config='{"npmPackage": "x"}', is_built_in=False)
        kit = row_to_kit(row)
        assert kit.npm_package == "x"
        assert kit.template.type == "default"
        assert kit.template.angular_version == "21"
        assert kit.resources == []
        assert kit.mcp_server_ids == []

    def test_unreadable_blob(self) -> None:
        kit = row_to_kit(KitRecord(id="k1", name="Broken", config="{not json", is_built_in=False))
        assert kit.name == "Broken"
        assert kit.resources == []


class TestVisibility:
    async def test_personal_team_and_builtin(self, db, alice, bob) -> None:
        team = await TeamService(db).create_team("Design Co", alice.id)
        service = KitService(db)
        await service.create(Kit(id="alice-kit", name="Mine"), alice.id)
        await service.create(Kit(id="team-kit", name="Shared"), alice.id, team_id=team.id)
        await service.create(Kit(id="bob-kit", name="Bob's"), bob.id)
        db.add(KitRecord(id="builtin", name="Default", is_built_in=True, config="{}"))
        await db.commit()

        visible = {k.id for k in await service.list_for_user(alice.id)}
        assert visible == {"alice-kit", "team-kit", "builtin"}
        assert {k.id for k in await service.list_for_user(bob.id)} == {"bob-kit", "builtin"}

        with pytest.raises(KitNotFoundError):
            await service.get_for_user("team-kit", bob.id)
        assert (await service.get_for_user("team-kit", alice.id)).team_id == team.id


class TestWrites:
    async def test_create_and_update(self, db, alice) -> None:
        service = KitService(db)
        created = await service.create(Kit(id="k1", name="Mine", description="first"), alice.id)
        assert created.description == "first"

        updated = await service.update("k1", {"description": "second", "system_prompt": "hi"}, alice.id)
        assert updated.description == "second"
        assert updated.system_prompt == "hi"
        assert updated.name == "Mine"

    async def test_duplicate_id_and_name(self, db, alice) -> None:
        service = KitService(db)
        await service.create(Kit(id="k1", name="Mine"), alice.id)
        with pytest.raises(KitConflictError):
            await service.create(Kit(id="k1", name="Other"), alice.id)
        with pytest.raises(KitConflictError):
            await service.create(Kit(id="k2", name="Mine"), alice.id)

    async def test_names_are_scoped_per_owner(self, db, alice, bob) -> None:
        service = KitService(db)
        await service.create(Kit(id="k1", name="Mine"), alice.id)
        await service.create(Kit(id="k2", name="Mine"), bob.id)
        assert await service.name_exists("Mine", alice.id)
        assert not await service.name_exists("Mine", alice.id, exclude_kit_id="k1")

    async def test_team_kit_requires_manager(self, db, alice, bob) -> None:
        teams = TeamService(db)
        team = await teams.create_team("Design Co", alice.id)
        invite = await teams.create_invite(team.id, created_by=alice.id, role=MemberRole.MEMBER)
        await teams.redeem_invite(invite.code, bob)

        service = KitService(db)
        with pytest.raises(KitPermissionError):
            await service.create(Kit(id="k1", name="Team"), bob.id, team_id=team.id)

        await service.create(Kit(id="k1", name="Team"), alice.id, team_id=team.id)
        # Members see team kits but can't change them
        assert (await service.get_for_user("k1", bob.id)).id == "k1"
        with pytest.raises(KitPermissionError):
            await service.update("k1", {"description": "x"}, bob.id)
        with pytest.raises(KitPermissionError):
            await service.delete("k1", bob.id)

    async def test_foreign_kit_is_not_found(self, db, alice, bob) -> None:
        service = KitService(db)
        await service.create(Kit(id="k1", name="Mine"), alice.id)
        with pytest.raises(KitNotFoundError):
            await service.delete("k1", bob.id)

    async def test_builtin_is_read_only(self, db, alice) -> None:
        db.add(KitRecord(id="builtin", name="Default", is_built_in=True, config="{}"))
        await db.commit()
        with pytest.raises(KitPermissionError):
            await KitService(db).update("builtin", {"name": "Mine now"}, alice.id)

    async def test_delete(self, db, alice) -> None:
        service = KitService(db)
        await service.create(Kit(id="k1", name="Mine"), alice.id)
        await service.delete("k1", alice.id)
        assert await db.get(KitRecord, "k1") is None


class TestMigrateFromSettings:
    async def _legacy_user(self, make_user, kits) -> User:
        return await make_user(
            "legacy@example.com",
            settings=json.dumps({"theme": "dark", "kits": kits}),
        )

    async def test_moves_kits_and_is_idempotent(self, db, make_user) -> None:
        user = await self._legacy_user(
            make_user,
            [
                {"id": "legacy-1", "name": "Old Kit", "npmPackage": "@acme/ui"},
                {"id": "legacy-2", "name": "Other", "template": {"type": "custom", "files": {}}},
            ],
        )
        service = KitService(db)

        assert await service.migrate_from_settings() == 2
        assert await service.migrate_from_settings() == 0

        kits = {k.id: k for k in await service.list_for_user(user.id)}
        assert set(kits) == {"legacy-1", "legacy-2"}
        assert kits["legacy-1"].npm_package == "@acme/ui"
        assert kits["legacy-2"].template.type == "custom"

        await db.refresh(user)
        assert user.load_settings() == {"theme": "dark"}

    async def test_skips_existing_and_invalid(self, db, make_user, alice) -> None:
        await KitService(db).create(Kit(id="taken", name="Already here"), alice.id)
        await self._legacy_user(
            make_user,
            [
                {"id": "taken", "name": "Dup"},
                {"id": "bad", "name": ""},
                {"name": "no id"},
                "garbage",
                {"id": "good", "name": "Good"},
            ],
        )
        assert await KitService(db).migrate_from_settings() == 1
        assert await db.get(KitRecord, "good") is not None
        assert await db.get(KitRecord, "bad") is None
