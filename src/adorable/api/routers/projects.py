"""Projects router.

Project CRUD, version history and the GitHub sync link. Files travel as a
nested file tree; every save is recorded as a version.
"""

from typing import Any, Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from adorable.api.deps import CurrentUser, DBSession, Git, ProjectFs
from adorable.api.exceptions import BadRequestError
from adorable.api.schemas import (
    CamelRequest,
    ProjectResponse,
    SuccessResponse,
    project_to_response,
)
from adorable.services.project_service import ProjectService

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================


class ProjectCreate(CamelRequest):
    name: str = Field("", max_length=255)
    files: Optional[dict[str, Any]] = None
    team_id: Optional[str] = None
    selected_kit_id: Optional[str] = None
    thumbnail: Optional[str] = None


class ProjectUpdate(CamelRequest):
    name: Optional[str] = Field(None, max_length=255)
    files: Optional[dict[str, Any]] = None
    message: Optional[str] = Field(None, max_length=500)
    thumbnail: Optional[str] = None
    selected_kit_id: Optional[str] = None


class ProjectListResponse(BaseModel):
    projects: list[ProjectResponse]


class ProjectDetailResponse(BaseModel):
    project: ProjectResponse
    files: dict[str, Any]


class ProjectMutationResponse(SuccessResponse):
    project: ProjectResponse
    version: Optional[str] = None


class VersionResponse(BaseModel):
    sha: str
    message: str
    author_name: str
    author_email: str
    date: str


class VersionListResponse(BaseModel):
    versions: list[VersionResponse]


class RestoreResponse(SuccessResponse):
    version: Optional[str] = None


class GitHubConnectRequest(CamelRequest):
    repo_id: str | int
    repo_full_name: str = Field(..., min_length=3)
    branch: str = Field("main", min_length=1)


class GitHubConnectResponse(SuccessResponse):
    project: ProjectResponse
    webhook_secret: str


def _service(db, fs, git) -> ProjectService:
    return ProjectService(db, fs=fs, git=git)


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=ProjectListResponse, summary="List projects")
async def list_projects(user: CurrentUser, db: DBSession, fs: ProjectFs, git: Git) -> ProjectListResponse:
    """Personal projects and projects of the caller's teams."""
    projects = await _service(db, fs, git).list_for_user(user.id)
    return ProjectListResponse(projects=[project_to_response(p) for p in projects])


@router.post(
    "",
    response_model=ProjectMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a project",
)
async def create_project(
    request: ProjectCreate,
    user: CurrentUser,
    db: DBSession,
    fs: ProjectFs,
    git: Git,
) -> ProjectMutationResponse:
    try:
        project = await _service(db, fs, git).create(
            request.name,
            user.id,
            files=request.files,
            team_id=request.team_id,
            selected_kit_id=request.selected_kit_id,
            thumbnail=request.thumbnail,
        )
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    return ProjectMutationResponse(project=project_to_response(project))


@router.get("/{project_id}", response_model=ProjectDetailResponse, summary="Get a project")
async def get_project(
    project_id: str,
    user: CurrentUser,
    db: DBSession,
    fs: ProjectFs,
    git: Git,
) -> ProjectDetailResponse:
    service = _service(db, fs, git)
    project = await service.get_for_user(project_id, user.id)
    return ProjectDetailResponse(project=project_to_response(project), files=service.read_files(project))


@router.put("/{project_id}", response_model=ProjectMutationResponse, summary="Save a project")
async def update_project(
    project_id: str,
    request: ProjectUpdate,
    user: CurrentUser,
    db: DBSession,
    fs: ProjectFs,
    git: Git,
) -> ProjectMutationResponse:
    """Update metadata and, when ``files`` is given, replace the files and record a version."""
    service = _service(db, fs, git)
    project = await service.get_for_user(project_id, user.id)
    try:
        project, sha = await service.update(
            project,
            name=request.name,
            files=request.files,
            message=request.message,
            thumbnail=request.thumbnail,
            selected_kit_id=request.selected_kit_id,
        )
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    return ProjectMutationResponse(project=project_to_response(project), version=sha)


@router.delete("/{project_id}", response_model=SuccessResponse, summary="Delete a project")
async def delete_project(
    project_id: str,
    user: CurrentUser,
    db: DBSession,
    fs: ProjectFs,
    git: Git,
) -> SuccessResponse:
    service = _service(db, fs, git)
    project = await service.get_for_user(project_id, user.id)
    await service.delete(project, user.id)
    return SuccessResponse()


# =============================================================================
# Versions
# =============================================================================


@router.get("/{project_id}/versions", response_model=VersionListResponse, summary="Version history")
async def list_versions(
    project_id: str,
    user: CurrentUser,
    db: DBSession,
    fs: ProjectFs,
    git: Git,
    limit: int = Query(50, ge=1, le=500),
) -> VersionListResponse:
    service = _service(db, fs, git)
    project = await service.get_for_user(project_id, user.id)
    commits = await service.list_versions(project, limit=limit)
    return VersionListResponse(versions=[VersionResponse(**c.to_dict()) for c in commits])


@router.post(
    "/{project_id}/versions/{sha}/restore",
    response_model=RestoreResponse,
    summary="Restore a version",
)
async def restore_version(
    project_id: str,
    sha: str,
    user: CurrentUser,
    db: DBSession,
    fs: ProjectFs,
    git: Git,
) -> RestoreResponse:
    """Rewrite the files to an earlier version; the restore becomes a new version."""
    service = _service(db, fs, git)
    project = await service.get_for_user(project_id, user.id)
    new_sha = await service.restore_version(project, sha)
    return RestoreResponse(version=new_sha)


# =============================================================================
# GitHub link
# =============================================================================


@router.post(
    "/{project_id}/github",
    response_model=GitHubConnectResponse,
    summary="Link a GitHub repository",
    description="Enables push sync for a repository branch. The returned secret "
    "must be configured on the repository's webhook; it is shown only once.",
)
async def connect_github(
    project_id: str,
    request: GitHubConnectRequest,
    user: CurrentUser,
    db: DBSession,
    fs: ProjectFs,
    git: Git,
) -> GitHubConnectResponse:
    service = _service(db, fs, git)
    project = await service.get_for_user(project_id, user.id)
    try:
        webhook = await service.connect_github(
            project,
            user.id,
            repo_id=str(request.repo_id),
            repo_full_name=request.repo_full_name,
            branch=request.branch,
        )
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    return GitHubConnectResponse(project=project_to_response(project), webhook_secret=webhook.secret)


@router.delete("/{project_id}/github", response_model=SuccessResponse, summary="Unlink GitHub")
async def disconnect_github(
    project_id: str,
    user: CurrentUser,
    db: DBSession,
    fs: ProjectFs,
    git: Git,
) -> SuccessResponse:
    service = _service(db, fs, git)
    project = await service.get_for_user(project_id, user.id)
    await service.disconnect_github(project, user.id)
    return SuccessResponse()
