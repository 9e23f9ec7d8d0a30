"""Kit storage row and application-level kit schema.

A kit is stored as a handful of indexed columns plus one serialized
``KitConfig`` blob. ``Kit`` is the merged shape the API works with.
Blob keys are camelCase so rows and legacy settings written by older
clients stay readable.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base, utcnow


class KitRecord(Base):
    """Kit table row."""

    __tablename__ = "kits"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_built_in: Mapped[bool] = mapped_column(Boolean, default=False)
    config: Mapped[str] = mapped_column(Text, default="{}")

    # Exactly one of user_id / team_id is set, or neither for built-in kits
    user_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True
    )
    team_id: Mapped[str | None] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<KitRecord(id={self.id}, name='{self.name}')>"


# =============================================================================
# Application schema
# =============================================================================


class CamelModel(BaseModel):
    """Accepts both snake_case and camelCase keys, dumps camelCase by alias."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class KitTemplate(CamelModel):
    """Base files a new project starts from."""

    type: Literal["default", "custom"] = "default"
    files: dict[str, Any] = Field(default_factory=dict)
    angular_version: str | None = "21"


class KitResource(CamelModel):
    """External resource attached to a kit (storybook, tokens, docs)."""

    model_config = ConfigDict(extra="allow")

    id: str
    type: Literal["storybook", "design-tokens", "api-docs", "custom-rules", "figma"]
    url: str
    status: Literal["pending", "discovered", "error"] = "pending"
    last_discovered: str | None = None
    error: str | None = None
    metadata: dict[str, Any] | None = None


class KitConfig(CamelModel):
    """Everything about a kit that is not an indexed column."""

    template: KitTemplate = Field(default_factory=KitTemplate)
    npm_package: str | None = None
    import_suffix: str | None = None
    npm_packages: list[dict[str, Any]] | None = None
    resources: list[KitResource] = Field(default_factory=list)
    design_tokens: dict[str, Any] | None = None
    system_prompt: str | None = None
    base_system_prompt: str | None = None
    mcp_server_ids: list[str] = Field(default_factory=list)


class Kit(KitConfig):
    """Kit as seen by the API: indexed columns merged with the config blob."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    thumbnail: str | None = None
    is_built_in: bool = False
    team_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_config(self) -> KitConfig:
        return KitConfig.model_validate(
            self.model_dump(include=set(KitConfig.model_fields))
        )
