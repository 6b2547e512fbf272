"""
Idea domain models.

An idea owns its generated text artifacts (title, summary, outline) and an
optional mind map. Nested documents are stored as JSON text on the ideas row.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


class Language(str, Enum):
    """Output language for generated artifacts."""

    ENGLISH = "English"
    KOREAN = "Korean"


class MindMapNode(BaseModel):
    """
    One node of a mind map.

    Nodes have no stable id: they are addressed by title, either directly
    (first match in depth-first order) or by a root-to-node path of titles.
    """

    title: str = Field(..., min_length=1)
    children: list[MindMapNode] = Field(default_factory=list)

    @field_validator("children", mode="before")
    @classmethod
    def null_children_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class IdeaCreate(BaseModel):
    """Fields supplied when an idea is first persisted."""

    user_id: str = Field(..., min_length=1)
    title: str
    summary: str
    outline: str
    language: Language = Language.ENGLISH


class Idea(BaseModel):
    """Stored idea."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    user_id: str
    title: str
    summary: str
    outline: str
    mind_map: MindMapNode | None = None
    favorited: bool = False
    language: Language = Language.ENGLISH
    ai_suggestions: dict[str, Any] | None = None
    business_plan: dict[str, Any] | None = None
    share_id: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "summary": self.summary,
            "outline": self.outline,
            "mind_map": self.mind_map.model_dump_json() if self.mind_map else None,
            "favorited": 1 if self.favorited else 0,
            "language": self.language,
            "ai_suggestions": json.dumps(self.ai_suggestions) if self.ai_suggestions else None,
            "business_plan": json.dumps(self.business_plan) if self.business_plan else None,
            "share_id": self.share_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> Idea:
        """Create Idea from database row."""
        mind_map = row.get("mind_map")
        suggestions = row.get("ai_suggestions")
        plan = row.get("business_plan")

        return cls(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            summary=row["summary"],
            outline=row["outline"],
            mind_map=MindMapNode.model_validate_json(mind_map) if mind_map else None,
            favorited=bool(row["favorited"]),
            language=Language(row["language"]),
            ai_suggestions=json.loads(suggestions) if suggestions else None,
            business_plan=json.loads(plan) if plan else None,
            share_id=row.get("share_id"),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class DeleteOutcome(str, Enum):
    """Result of an ownership-checked delete."""

    DELETED = "deleted"
    NOT_FOUND = "not_found"
    NOT_OWNER = "not_owner"
