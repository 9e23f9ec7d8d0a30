"""Schemas shared by several routers."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from adorable.models.project import Project


class CamelRequest(BaseModel):
    """Request body accepting both snake_case and camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SuccessResponse(BaseModel):
    success: bool = True


class GitHubLinkResponse(BaseModel):
    repo_id: Optional[str]
    repo_full_name: Optional[str]
    branch: Optional[str]
    sync_enabled: bool
    last_commit_sha: Optional[str]
    last_sync_at: Optional[datetime]


class ProjectResponse(BaseModel):
    """Project metadata (files are returned separately)."""

    id: str
    name: str
    thumbnail: Optional[str]
    selected_kit_id: Optional[str]
    user_id: Optional[str]
    team_id: Optional[str]
    is_personal: bool
    github: Optional[GitHubLinkResponse]
    created_at: datetime
    updated_at: datetime


def project_to_response(project: Project) -> ProjectResponse:
    github = None
    if project.github_repo_id:
        github = GitHubLinkResponse(
            repo_id=project.github_repo_id,
            repo_full_name=project.github_repo_full_name,
            branch=project.github_branch,
            sync_enabled=bool(project.github_sync_enabled),
            last_commit_sha=project.github_last_commit_sha,
            last_sync_at=project.github_last_sync_at,
        )
    return ProjectResponse(
        id=project.id,
        name=project.name,
        thumbnail=project.thumbnail,
        selected_kit_id=project.selected_kit_id,
        user_id=project.user_id,
        team_id=project.team_id,
        is_personal=project.is_personal,
        github=github,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )
