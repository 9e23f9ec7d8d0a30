"""Adorable - backend for the Adorable app builder.

Teams with owner/admin/member roles, single-use invite codes, kits,
git-versioned project files and GitHub push sync, served by FastAPI.

Quick Start:
    uvicorn adorable.api.main:app --port 3333
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
