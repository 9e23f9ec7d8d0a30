"""Project service.

Rows hold ownership and GitHub sync metadata; files live on disk and every
save is recorded as a git version.
"""

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from adorable.core.security import generate_webhook_secret
from adorable.models.database import utcnow
from adorable.models.project import GitHubWebhook, Project
from adorable.models.team import MemberRole
from adorable.services.git_service import CommitInfo, GitService
from adorable.services.project_fs import ProjectFsService
from adorable.services.team_service import TeamService

logger = logging.getLogger(__name__)

DEFAULT_SAVE_MESSAGE = "Save project"
INITIAL_MESSAGE = "Initial version"


class ProjectServiceError(Exception):
    """Base exception for project service errors."""
    pass


class ProjectNotFoundError(ProjectServiceError):
    """Project doesn't exist or the caller can't see it."""
    pass


class ProjectPermissionError(ProjectServiceError):
    """Caller can see the project but may not perform the operation."""
    pass


class ProjectService:
    """CRUD, versioning and GitHub link management for projects."""

    def __init__(
        self,
        db: AsyncSession,
        fs: Optional[ProjectFsService] = None,
        git: Optional[GitService] = None,
    ):
        self.db = db
        self.fs = fs or ProjectFsService()
        self.git = git or GitService()
        self.teams = TeamService(db)

    # =========================================================================
    # Access
    # =========================================================================

    async def list_for_user(self, user_id: str) -> list[Project]:
        """Personal projects plus projects of every team the user is in."""
        team_ids = await self.teams.team_ids_for_user(user_id)
        clauses = [(Project.user_id == user_id) & Project.team_id.is_(None)]
        if team_ids:
            clauses.append(Project.team_id.in_(team_ids))
        result = await self.db.execute(
            select(Project).where(or_(*clauses)).order_by(Project.updated_at.desc())
        )
        return list(result.unique().scalars().all())

    async def get_for_user(self, project_id: str, user_id: str) -> Project:
        """Load a project the user may access.

        Raises:
            ProjectNotFoundError: Unknown project or no access
        """
        project = await self.db.get(Project, project_id)
        if project is None or not await self._can_access(project, user_id):
            raise ProjectNotFoundError("Project not found")
        return project

    async def _can_access(self, project: Project, user_id: str) -> bool:
        if project.team_id is None:
            return project.user_id == user_id
        return await self.teams.get_user_role_in_team(project.team_id, user_id) is not None

    async def _require_manage(self, project: Project, user_id: str) -> None:
        """Personal owner, or owner/admin of the owning team."""
        if project.team_id is None:
            if project.user_id != user_id:
                raise ProjectPermissionError("Only the project owner can do this")
            return
        role = await self.teams.get_user_role_in_team(project.team_id, user_id)
        if role not in (MemberRole.OWNER, MemberRole.ADMIN):
            raise ProjectPermissionError("Insufficient team permissions")

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create(
        self,
        name: str,
        user_id: str,
        files: Optional[dict[str, Any]] = None,
        team_id: Optional[str] = None,
        selected_kit_id: Optional[str] = None,
        thumbnail: Optional[str] = None,
    ) -> Project:
        """Create a project, write its files and record the first version."""
        name = (name or "").strip()
        if not name:
            raise ValueError("Project name is required")
        if team_id and await self.teams.get_user_role_in_team(team_id, user_id) is None:
            raise ProjectPermissionError("Not a member of this team")

        project = Project(
            id=str(uuid.uuid4()),
            name=name,
            user_id=user_id,
            team_id=team_id,
            selected_kit_id=selected_kit_id,
            thumbnail=thumbnail,
        )
        project_id = project.id
        self.db.add(project)
        await self.db.flush()

        try:
            path = self.fs.write_project_files(project_id, files or {})
            await self.git.commit(path, INITIAL_MESSAGE)
        except Exception:
            await self.db.rollback()
            self.fs.delete_project_files(project_id)
            raise

        await self.db.commit()
        logger.info(f"Project {project_id} created by {user_id}")
        return project

    async def update(
        self,
        project: Project,
        name: Optional[str] = None,
        files: Optional[dict[str, Any]] = None,
        message: Optional[str] = None,
        thumbnail: Optional[str] = None,
        selected_kit_id: Optional[str] = None,
    ) -> tuple[Project, Optional[str]]:
        """Update metadata and/or replace the file tree.

        Returns:
            The project and the new version SHA (None when files didn't change)
        """
        if name is not None:
            name = name.strip()
            if not name:
                raise ValueError("Project name is required")
            project.name = name
        if thumbnail is not None:
            project.thumbnail = thumbnail
        if selected_kit_id is not None:
            project.selected_kit_id = selected_kit_id or None

        sha = None
        if files is not None:
            path = self.fs.write_project_files(project.id, files, replace=True)
            sha = await self.git.commit(path, message or DEFAULT_SAVE_MESSAGE)

        project.updated_at = utcnow()
        await self.db.commit()
        return project, sha

    async def delete(self, project: Project, user_id: str) -> None:
        await self._require_manage(project, user_id)
        project_id = project.id
        await self.db.delete(project)
        await self.db.commit()
        self.fs.delete_project_files(project_id)
        logger.info(f"Project {project_id} deleted by {user_id}")

    def read_files(self, project: Project) -> dict[str, Any]:
        return self.fs.read_project_files(project.id)

    # =========================================================================
    # Versions
    # =========================================================================

    async def list_versions(self, project: Project, limit: int = 50) -> list[CommitInfo]:
        return await self.git.log(self.fs.get_project_path(project.id), limit=limit)

    async def restore_version(self, project: Project, sha: str) -> Optional[str]:
        """Rewrite the files to ``sha`` and save that as a new version."""
        path = self.fs.get_project_path(project.id)
        await self.git.checkout(path, sha)
        new_sha = await self.git.commit(path, f"Restore version {sha[:7]}")
        project.updated_at = utcnow()
        await self.db.commit()
        return new_sha

    # =========================================================================
    # GitHub link
    # =========================================================================

    async def connect_github(
        self,
        project: Project,
        user_id: str,
        repo_id: str,
        repo_full_name: str,
        branch: str,
    ) -> GitHubWebhook:
        """Enable push sync for a repository branch with a fresh webhook secret."""
        await self._require_manage(project, user_id)
        if not repo_id or not repo_full_name or not branch:
            raise ValueError("repo_id, repo_full_name and branch are required")

        project.github_repo_id = str(repo_id)
        project.github_repo_full_name = repo_full_name
        project.github_branch = branch
        project.github_sync_enabled = True
        project.github_last_commit_sha = None

        webhook = project.github_webhook
        if webhook is None:
            webhook = GitHubWebhook(id=str(uuid.uuid4()), secret=generate_webhook_secret())
            project.github_webhook = webhook
        else:
            webhook.secret = generate_webhook_secret()
            webhook.webhook_id = None

        await self.db.commit()
        logger.info(f"Project {project.id} linked to {repo_full_name}@{branch}")
        return webhook

    async def disconnect_github(self, project: Project, user_id: str) -> None:
        await self._require_manage(project, user_id)
        project.github_sync_enabled = False
        project.github_repo_id = None
        project.github_repo_full_name = None
        project.github_branch = None
        project.github_last_commit_sha = None
        project.github_webhook = None
        await self.db.commit()

    async def find_for_push(self, repo_id: str, branch: str) -> Optional[Project]:
        """Sync-enabled project linked to this repository branch."""
        result = await self.db.execute(
            select(Project)
            .where(
                Project.github_repo_id == str(repo_id),
                Project.github_branch == branch,
                Project.github_sync_enabled.is_(True),
            )
            .limit(1)
        )
        return result.unique().scalar_one_or_none()


__all__ = [
    "ProjectService",
    "ProjectServiceError",
    "ProjectNotFoundError",
    "ProjectPermissionError",
]
