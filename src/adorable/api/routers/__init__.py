"""API routers for different endpoint groups.

Routers:
- auth: Registration, login and the current user
- health: Health check and probes
- kits: Kit CRUD
- projects: Projects, versions and the GitHub link
- teams: Teams, members, invites and resource moves
- webhooks: GitHub webhook deliveries
"""

from .auth import router as auth_router
from .health import router as health_router
from .kits import router as kits_router
from .projects import router as projects_router
from .teams import router as teams_router
from .webhooks import router as webhooks_router

__all__ = [
    "auth_router",
    "health_router",
    "kits_router",
    "projects_router",
    "teams_router",
    "webhooks_router",
]
