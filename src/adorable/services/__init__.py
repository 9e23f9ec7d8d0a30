"""Business logic services for Adorable.

Services hold no HTTP knowledge; they raise their own exception types
which the API layer maps to status codes.
"""

from .git_service import (
    CommitInfo,
    GitError,
    GitService,
    NoGitHistoryError,
    UnknownRevisionError,
)
from .github_sync import (
    GitFile,
    GitHubSyncError,
    GitHubSyncService,
    PullResult,
    flatten_files,
    unflatten_files,
)
from .github_webhook import (
    GitHubWebhookService,
    WebhookError,
    WebhookPayloadError,
    WebhookResult,
    WebhookSignatureError,
)
from .kit_service import (
    KitConflictError,
    KitNotFoundError,
    KitPermissionError,
    KitService,
    KitServiceError,
)
from .project_fs import ProjectFsError, ProjectFsService
from .project_service import (
    ProjectNotFoundError,
    ProjectPermissionError,
    ProjectService,
    ProjectServiceError,
)
from .team_service import (
    AlreadyMemberError,
    InviteEmailMismatchError,
    InviteExpiredError,
    InviteNotFoundError,
    InviteRevokedError,
    InviteUsedError,
    MemberNotFoundError,
    OwnerProtectedError,
    OwnershipInvariantError,
    PermissionDeniedError,
    ResourceNotFoundError,
    SlugTakenError,
    TeamNotFoundError,
    TeamService,
    TeamServiceError,
    TeamSummary,
    slugify,
)

__all__ = [
    # Teams
    "TeamService",
    "TeamSummary",
    "slugify",
    "TeamServiceError",
    "TeamNotFoundError",
    "MemberNotFoundError",
    "InviteNotFoundError",
    "ResourceNotFoundError",
    "PermissionDeniedError",
    "InviteUsedError",
    "InviteExpiredError",
    "InviteRevokedError",
    "InviteEmailMismatchError",
    "AlreadyMemberError",
    "OwnerProtectedError",
    "OwnershipInvariantError",
    "SlugTakenError",
    # Kits
    "KitService",
    "KitServiceError",
    "KitNotFoundError",
    "KitPermissionError",
    "KitConflictError",
    # Projects
    "ProjectService",
    "ProjectServiceError",
    "ProjectNotFoundError",
    "ProjectPermissionError",
    "ProjectFsService",
    "ProjectFsError",
    # Git
    "GitService",
    "CommitInfo",
    "GitError",
    "NoGitHistoryError",
    "UnknownRevisionError",
    # GitHub
    "GitHubSyncService",
    "GitHubSyncError",
    "GitFile",
    "PullResult",
    "flatten_files",
    "unflatten_files",
    "GitHubWebhookService",
    "WebhookResult",
    "WebhookError",
    "WebhookPayloadError",
    "WebhookSignatureError",
]
