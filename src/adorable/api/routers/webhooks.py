"""GitHub webhook receiver.

Unauthenticated; push deliveries are authenticated by the HMAC signature
of the linked project's webhook secret over the raw body.
"""

import logging
from typing import Any

from fastapi import APIRouter, Request

from adorable.api.deps import DBSession, Git, GitHubSync, ProjectFs
from adorable.api.exceptions import BadRequestError, UpstreamError
from adorable.services.github_sync import GitHubSyncError
from adorable.services.github_webhook import GitHubWebhookService, parse_json_body

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/github", summary="GitHub webhook delivery")
async def github_webhook(
    request: Request,
    db: DBSession,
    sync: GitHubSync,
    fs: ProjectFs,
    git: Git,
) -> dict[str, Any]:
    signature = request.headers.get("x-hub-signature-256")
    event = request.headers.get("x-github-event")
    if not signature or not event:
        raise BadRequestError("Missing required headers")

    # Signature covers the exact bytes GitHub sent
    body = await request.body()
    payload = parse_json_body(body)

    if event == "ping":
        logger.info(f"Webhook ping for hook {payload.get('hook_id')}")
        return {"message": "pong"}
    if event != "push":
        return {"message": f"Event {event} ignored"}

    service = GitHubWebhookService(db, sync=sync, fs=fs, git=git)
    try:
        result = await service.handle_push(body, signature, payload)
    except GitHubSyncError as e:
        logger.warning(f"GitHub pull failed: {e}")
        details = {"github_status": e.status_code} if e.status_code else None
        raise UpstreamError(str(e), details=details) from e
    return result.to_dict()
