"""Project and GitHub webhook models.

Project files live on disk (see ``ProjectFsService``); the row holds
ownership and GitHub sync metadata only.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base, utcnow
from .user import User


class Project(Base):
    """A user's (or a team's) web application."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255))
    thumbnail: Mapped[str | None] = mapped_column(String, nullable=True)
    selected_kit_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # Creator / personal owner. Kept when the project moves into a team.
    user_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Null means personal
    team_id: Mapped[str | None] = mapped_column(
        ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # GitHub sync
    github_repo_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    github_repo_full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    github_branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    github_last_commit_sha: Mapped[str | None] = mapped_column(String(64), nullable=True)
    github_last_sync_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    github_sync_enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    user: Mapped[User | None] = relationship("User", lazy="joined")
    github_webhook: Mapped[GitHubWebhook | None] = relationship(
        "GitHubWebhook",
        back_populates="project",
        uselist=False,
        lazy="joined",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_personal(self) -> bool:
        return self.team_id is None

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name='{self.name}')>"


class GitHubWebhook(Base):
    """Per-project webhook registration and its HMAC secret."""

    __tablename__ = "github_webhooks"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), unique=True
    )
    webhook_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    secret: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    project: Mapped[Project] = relationship("Project", back_populates="github_webhook")
