"""
Idea API endpoints.

Provides endpoints for:
- Generating an idea from free text
- Listing archived and favorited ideas
- Reading, editing, favoriting and deleting an idea
- SWOT suggestions and (paid) business plans
- Share links and public reads of shared ideas
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from daper.api.errors import unwrap
from daper.api.middleware.user_auth import AuthenticatedUser, get_current_user
from daper.config import API_LIST_LIMIT_DEFAULT, API_LIST_LIMIT_MAX
from daper.ideas.models import Idea, Language, MindMapNode
from daper.ideas.service import IdeaService, get_idea_service
from daper.observability.logging import get_logger

router = APIRouter(prefix="/api", tags=["ideas"])
logger = get_logger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================


class GenerateIdeaRequest(BaseModel):
    """API request to generate a new idea."""

    idea: str
    language: Language = Language.ENGLISH
    request_id: str = Field(..., min_length=1, max_length=128)


class UpdateIdeaRequest(BaseModel):
    """Partial edit of an idea's generated text."""

    title: str | None = None
    summary: str | None = None
    outline: str | None = None


class FavoriteRequest(BaseModel):
    favorited: bool


class FavoriteResponse(BaseModel):
    id: str
    favorited: bool


class IdeaListResponse(BaseModel):
    ideas: list[Idea]
    count: int


class ShareResponse(BaseModel):
    share_id: str


class SharedIdeaResponse(BaseModel):
    """Public view of a shared idea; owner and share identifiers stay private."""

    id: str
    title: str
    summary: str
    outline: str
    mind_map: MindMapNode | None = None
    language: Language
    ai_suggestions: dict[str, Any] | None = None
    business_plan: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Generation
# ============================================================================


@router.post("/ideas", response_model=Idea, status_code=status.HTTP_201_CREATED)
async def generate_idea(
    request: GenerateIdeaRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: IdeaService = Depends(get_idea_service),
) -> Idea:
    """Generate title, summary and outline for an idea and save it."""
    result = await service.generate_idea(
        idea_text=request.idea,
        user_id=user.id,
        language=request.language,
        request_id=request.request_id,
    )
    return unwrap(result)


# ============================================================================
# Reads
# ============================================================================


@router.get("/ideas", response_model=IdeaListResponse)
async def list_archived_ideas(
    limit: int = Query(API_LIST_LIMIT_DEFAULT, ge=1, le=API_LIST_LIMIT_MAX),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
    service: IdeaService = Depends(get_idea_service),
) -> IdeaListResponse:
    """The caller's ideas, newest first."""
    ideas = unwrap(service.list_archived_ideas(user.id, limit=limit, offset=offset))
    return IdeaListResponse(ideas=ideas, count=len(ideas))


@router.get("/ideas/favorites", response_model=IdeaListResponse)
async def list_favorited_ideas(
    limit: int = Query(API_LIST_LIMIT_DEFAULT, ge=1, le=API_LIST_LIMIT_MAX),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
    service: IdeaService = Depends(get_idea_service),
) -> IdeaListResponse:
    ideas = unwrap(service.list_favorited_ideas(user.id, limit=limit, offset=offset))
    return IdeaListResponse(ideas=ideas, count=len(ideas))


@router.get("/ideas/{idea_id}", response_model=Idea)
async def get_idea(
    idea_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: IdeaService = Depends(get_idea_service),
) -> Idea:
    return unwrap(service.get_idea(idea_id, user_id=user.id))


@router.get("/shared/{share_id}", response_model=SharedIdeaResponse)
async def get_shared_idea(
    share_id: str,
    service: IdeaService = Depends(get_idea_service),
) -> SharedIdeaResponse:
    """Public read of a shared idea. No authentication."""
    idea = unwrap(service.get_shared_idea(share_id))
    return SharedIdeaResponse.model_validate(idea.model_dump())


# ============================================================================
# Mutations
# ============================================================================


@router.patch("/ideas/{idea_id}", response_model=Idea)
async def update_idea(
    idea_id: str,
    request: UpdateIdeaRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: IdeaService = Depends(get_idea_service),
) -> Idea:
    if request.title is None and request.summary is None and request.outline is None:
        raise HTTPException(status_code=400, detail="Nothing to update")

    result = service.update_idea(
        idea_id,
        user.id,
        title=request.title,
        summary=request.summary,
        outline=request.outline,
    )
    return unwrap(result)


@router.put("/ideas/{idea_id}/favorite", response_model=FavoriteResponse)
async def toggle_favorite(
    idea_id: str,
    request: FavoriteRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: IdeaService = Depends(get_idea_service),
) -> FavoriteResponse:
    favorited = unwrap(service.toggle_favorite(idea_id, request.favorited, user_id=user.id))
    return FavoriteResponse(id=idea_id, favorited=favorited)


@router.delete("/ideas/{idea_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_idea(
    idea_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: IdeaService = Depends(get_idea_service),
) -> None:
    unwrap(service.delete_idea(idea_id, user.id))


# ============================================================================
# Analysis & Sharing
# ============================================================================


@router.post("/ideas/{idea_id}/suggestions")
async def generate_suggestions(
    idea_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: IdeaService = Depends(get_idea_service),
) -> dict[str, Any]:
    """SWOT analysis and improvement suggestions for an idea."""
    return unwrap(await service.generate_suggestions(idea_id, user.id))


@router.post("/ideas/{idea_id}/business-plan")
async def generate_business_plan(
    idea_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: IdeaService = Depends(get_idea_service),
) -> dict[str, Any]:
    """Business plan for an idea. Paid plan only."""
    return unwrap(await service.generate_business_plan(idea_id, user.id))


@router.post("/ideas/{idea_id}/share", response_model=ShareResponse)
async def create_share_link(
    idea_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: IdeaService = Depends(get_idea_service),
) -> ShareResponse:
    share_id = unwrap(service.create_share_link(idea_id, user.id))
    logger.info("Idea %s shared", idea_id)
    return ShareResponse(share_id=share_id)
