"""GitHub push webhook handling.

Decides what to do with a push delivery: find the linked project, check
the signature against that project's secret, skip pushes that change
nothing, and otherwise pull the branch into the project and save it as a
new version.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from adorable.core.config import settings
from adorable.core.security import verify_webhook_signature
from adorable.models.database import utcnow
from adorable.models.user import User
from adorable.services.git_service import GitService
from adorable.services.github_sync import GitHubSyncService
from adorable.services.project_fs import ProjectFsService
from adorable.services.project_service import ProjectService

logger = logging.getLogger(__name__)


class WebhookError(Exception):
    """Base exception for webhook processing errors."""
    pass


class WebhookPayloadError(WebhookError):
    """Delivery body is not a usable push payload."""
    pass


class WebhookSignatureError(WebhookError):
    """Signature doesn't match the project's webhook secret."""
    pass


@dataclass
class PushEvent:
    repo_id: str
    repo_full_name: str
    branch: str
    after: str
    pusher_email: Optional[str] = None


@dataclass
class WebhookResult:
    """Outcome of a delivery; either an informational message or a sync."""

    message: Optional[str] = None
    commit_sha: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        if self.message is not None:
            return {"message": self.message}
        return {"success": True, "commit_sha": self.commit_sha}


def parse_json_body(body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise WebhookPayloadError("Invalid JSON payload") from e
    if not isinstance(payload, dict):
        raise WebhookPayloadError("Invalid JSON payload")
    return payload


def parse_push_event(payload: dict[str, Any]) -> PushEvent:
    """Pull the fields a push needs out of the delivery payload."""
    repository = payload.get("repository") or {}
    pusher = payload.get("pusher") or {}
    if not isinstance(repository, dict) or not isinstance(pusher, dict):
        raise WebhookPayloadError("Invalid push payload")
    repo_id = repository.get("id")
    full_name = repository.get("full_name")
    ref = payload.get("ref") or ""
    after = payload.get("after")
    branch = ref
    if isinstance(ref, str) and ref.startswith("refs/heads/"):
        branch = ref[len("refs/heads/"):]

    if repo_id is None or not all(
        isinstance(value, str) and value for value in (full_name, ref, branch, after)
    ):
        raise WebhookPayloadError("Invalid push payload")

    email = pusher.get("email")
    return PushEvent(
        repo_id=str(repo_id),
        repo_full_name=full_name,
        branch=branch,
        after=after,
        pusher_email=email if isinstance(email, str) else None,
    )


class GitHubWebhookService:
    """Applies push deliveries to linked projects."""

    def __init__(
        self,
        db: AsyncSession,
        sync: GitHubSyncService,
        fs: ProjectFsService,
        git: GitService,
    ):
        self.db = db
        self.sync = sync
        self.projects = ProjectService(db, fs=fs, git=git)

    async def handle_push(self, body: bytes, signature: str, payload: dict[str, Any]) -> WebhookResult:
        """Process a push delivery.

        Args:
            body: Raw request body, exactly as signed by GitHub
            signature: ``x-hub-signature-256`` header value
            payload: Parsed body

        Raises:
            WebhookPayloadError: Required push fields missing
            WebhookSignatureError: Signature invalid or project has no secret
            GitHubSyncError: Pulling from GitHub failed
        """
        event = parse_push_event(payload)
        logger.info(f"Push to {event.repo_full_name}@{event.branch} ({event.after[:7]})")

        project = await self.projects.find_for_push(event.repo_id, event.branch)
        if project is None:
            logger.info(f"No project linked to {event.repo_full_name}@{event.branch}")
            return WebhookResult(message="No matching project")

        secret = project.github_webhook.secret if project.github_webhook else None
        if not verify_webhook_signature(body, signature, secret or ""):
            logger.warning(f"Invalid webhook signature for project {project.id}")
            raise WebhookSignatureError("Invalid signature")

        if event.pusher_email and event.pusher_email.lower() == settings.git_author_email.lower():
            return WebhookResult(message="Own commit ignored")

        if project.github_last_commit_sha == event.after:
            return WebhookResult(message="Already synced")

        owner = await self.db.get(User, project.user_id) if project.user_id else None
        if owner is None or not owner.github_access_token:
            logger.info(f"Project {project.id} owner has no GitHub token; skipping pull")
            return WebhookResult(message="No GitHub access token for project owner")

        result = await self.sync.pull_from_github(
            owner.github_access_token, event.repo_full_name, event.branch
        )

        path = self.projects.fs.write_project_files(project.id, result.files, replace=True)
        await self.projects.git.commit(path, f"Sync from GitHub {result.commit_sha[:7]}")

        project.github_last_commit_sha = result.commit_sha
        project.github_last_sync_at = utcnow()
        await self.db.commit()

        logger.info(f"Project {project.id} synced to {result.commit_sha}")
        return WebhookResult(commit_sha=result.commit_sha)


__all__ = [
    "GitHubWebhookService",
    "WebhookResult",
    "PushEvent",
    "parse_json_body",
    "parse_push_event",
    "WebhookError",
    "WebhookPayloadError",
    "WebhookSignatureError",
]
