"""API tests for /api/projects: CRUD, versions and the GitHub link."""

import shutil

import pytest

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")

FILES_V1 = {
    "index.html": {"file": {"contents": "<h1>v1</h1>"}},
    "src": {"directory": {"main.ts": {"file": {"contents": "bootstrap()"}}}},
}
FILES_V2 = {
    "index.html": {"file": {"contents": "<h1>v2</h1>"}},
    "src": {"directory": {"main.ts": {"file": {"contents": "bootstrap()"}}}},
    "about.html": {"file": {"contents": "about"}},
}


def _without_gitignore(files: dict) -> dict:
    return {name: node for name, node in files.items() if name != ".gitignore"}


async def create_project(client, auth, user, **body) -> dict:
    payload = {"name": "Site", "files": FILES_V1, **body}
    response = await client.post("/api/projects", json=payload, headers=auth(user))
    assert response.status_code == 201, response.text
    return response.json()


class TestProjectCrud:
    async def test_create_and_read(self, client, auth, alice) -> None:
        created = await create_project(client, auth, alice)
        project = created["project"]
        assert project["user_id"] == alice.id
        assert project["is_personal"] is True
        assert project["github"] is None

        response = await client.get(f"/api/projects/{project['id']}", headers=auth(alice))
        assert response.status_code == 200
        assert _without_gitignore(response.json()["files"]) == FILES_V1

        listed = (await client.get("/api/projects", headers=auth(alice))).json()["projects"]
        assert [p["id"] for p in listed] == [project["id"]]

    async def test_blank_name(self, client, auth, alice) -> None:
        response = await client.post("/api/projects", json={"name": ""}, headers=auth(alice))
        assert response.status_code == 400

    async def test_unsafe_file_name(self, client, auth, alice, projects_dir) -> None:
        files = {"..": {"directory": {"evil.txt": {"file": {"contents": "x"}}}}}
        response = await client.post(
            "/api/projects", json={"name": "Evil", "files": files}, headers=auth(alice)
        )
        assert response.status_code == 400
        assert list(projects_dir.iterdir()) == []
        assert (await client.get("/api/projects", headers=auth(alice))).json()["projects"] == []

    async def test_non_string_contents(self, client, auth, alice) -> None:
        response = await client.post(
            "/api/projects",
            json={"name": "Bad", "files": {"a.txt": {"file": {"contents": 123}}}},
            headers=auth(alice),
        )
        assert response.status_code == 400

    async def test_bad_save_keeps_files(self, client, auth, alice) -> None:
        project = (await create_project(client, auth, alice))["project"]
        url = f"/api/projects/{project['id']}"

        files = {"logo.png": {"file": {"contents": "abc", "encoding": "base64"}}}
        response = await client.put(url, json={"files": files}, headers=auth(alice))
        assert response.status_code == 400

        saved = (await client.get(url, headers=auth(alice))).json()["files"]
        assert _without_gitignore(saved) == FILES_V1

    async def test_other_users_cannot_see(self, client, auth, alice, bob) -> None:
        project = (await create_project(client, auth, alice))["project"]
        response = await client.get(f"/api/projects/{project['id']}", headers=auth(bob))
        assert response.status_code == 404
        assert response.json() == {"error": "Project not found"}

    async def test_team_members_see_team_projects(self, client, auth, alice, bob) -> None:
        team = (await client.post("/api/teams", json={"name": "Design Co"}, headers=auth(alice))).json()["team"]
        invite = (
            await client.post(f"/api/teams/{team['id']}/invites", json={}, headers=auth(alice))
        ).json()["invite"]
        await client.post("/api/teams/join", json={"code": invite["code"]}, headers=auth(bob))

        project = (await create_project(client, auth, alice, teamId=team["id"]))["project"]
        assert project["team_id"] == team["id"]

        listed = (await client.get("/api/projects", headers=auth(bob))).json()["projects"]
        assert [p["id"] for p in listed] == [project["id"]]

        # Plain members can read but not delete team projects
        response = await client.delete(f"/api/projects/{project['id']}", headers=auth(bob))
        assert response.status_code == 403

    async def test_create_in_foreign_team(self, client, auth, alice, bob) -> None:
        team = (await client.post("/api/teams", json={"name": "Design Co"}, headers=auth(alice))).json()["team"]
        response = await client.post(
            "/api/projects", json={"name": "Sneaky", "teamId": team["id"]}, headers=auth(bob)
        )
        assert response.status_code == 403

    async def test_delete(self, client, auth, alice, fs) -> None:
        project = (await create_project(client, auth, alice))["project"]
        assert fs.exists(project["id"])

        response = await client.delete(f"/api/projects/{project['id']}", headers=auth(alice))
        assert response.status_code == 200
        assert not fs.exists(project["id"])
        response = await client.get(f"/api/projects/{project['id']}", headers=auth(alice))
        assert response.status_code == 404


class TestVersions:
    async def test_save_restore_cycle(self, client, auth, alice) -> None:
        project = (await create_project(client, auth, alice))["project"]
        pid = project["id"]

        response = await client.put(
            f"/api/projects/{pid}", json={"files": FILES_V2, "message": "Add about page"}, headers=auth(alice)
        )
        assert response.status_code == 200
        assert response.json()["version"]

        # Saving identical files records nothing
        response = await client.put(f"/api/projects/{pid}", json={"files": FILES_V2}, headers=auth(alice))
        assert response.json()["version"] is None

        versions = (await client.get(f"/api/projects/{pid}/versions", headers=auth(alice))).json()["versions"]
        assert [v["message"] for v in versions] == ["Add about page", "Initial version"]
        first_sha = versions[-1]["sha"]

        response = await client.post(f"/api/projects/{pid}/versions/{first_sha}/restore", headers=auth(alice))
        assert response.status_code == 200
        assert response.json()["version"]

        files = (await client.get(f"/api/projects/{pid}", headers=auth(alice))).json()["files"]
        assert _without_gitignore(files) == FILES_V1

        versions = (await client.get(f"/api/projects/{pid}/versions", headers=auth(alice))).json()["versions"]
        assert versions[0]["message"] == f"Restore version {first_sha[:7]}"
        assert len(versions) == 3

    async def test_versions_limit(self, client, auth, alice) -> None:
        project = (await create_project(client, auth, alice))["project"]
        await client.put(f"/api/projects/{project['id']}", json={"files": FILES_V2}, headers=auth(alice))
        response = await client.get(f"/api/projects/{project['id']}/versions?limit=1", headers=auth(alice))
        assert len(response.json()["versions"]) == 1

    async def test_restore_unknown_sha(self, client, auth, alice) -> None:
        project = (await create_project(client, auth, alice))["project"]
        response = await client.post(
            f"/api/projects/{project['id']}/versions/{'0' * 40}/restore", headers=auth(alice)
        )
        assert response.status_code == 404

    async def test_rename_without_files(self, client, auth, alice) -> None:
        project = (await create_project(client, auth, alice))["project"]
        response = await client.put(f"/api/projects/{project['id']}", json={"name": "Renamed"}, headers=auth(alice))
        assert response.json()["project"]["name"] == "Renamed"
        assert response.json()["version"] is None


class TestGitHubLink:
    async def test_connect_and_disconnect(self, client, auth, alice) -> None:
        project = (await create_project(client, auth, alice))["project"]
        url = f"/api/projects/{project['id']}/github"

        response = await client.post(
            url, json={"repoId": 123, "repoFullName": "acme/site", "branch": "main"}, headers=auth(alice)
        )
        assert response.status_code == 200, response.text
        body = response.json()
        assert len(body["webhook_secret"]) == 40
        assert body["project"]["github"]["repo_full_name"] == "acme/site"
        assert body["project"]["github"]["sync_enabled"] is True

        # Reconnecting rotates the secret
        again = await client.post(
            url, json={"repoId": 123, "repoFullName": "acme/site", "branch": "main"}, headers=auth(alice)
        )
        assert again.json()["webhook_secret"] != body["webhook_secret"]

        response = await client.delete(url, headers=auth(alice))
        assert response.status_code == 200
        detail = (await client.get(f"/api/projects/{project['id']}", headers=auth(alice))).json()
        assert detail["project"]["github"] is None
