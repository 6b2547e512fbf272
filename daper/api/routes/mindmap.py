"""
Mind-map API endpoints.

Every endpoint returns the full updated tree. Nodes are addressed by title
(add/expand) or by a ">"-joined path of titles from the root (edit/delete).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from daper.api.errors import unwrap
from daper.api.middleware.user_auth import AuthenticatedUser, get_current_user
from daper.ideas.mindmap_service import MindMapService, get_mindmap_service
from daper.ideas.models import Language, MindMapNode
from daper.ideas.service import IdeaService, get_idea_service

router = APIRouter(prefix="/api/ideas/{idea_id}/mindmap", tags=["mindmap"])


# ============================================================================
# Request Models
# ============================================================================


class RegenerateRequest(BaseModel):
    summary: str
    language: Language = Language.ENGLISH


class AddNodeRequest(BaseModel):
    parent_title: str = Field(..., min_length=1)
    title: str


class ExpandNodeRequest(BaseModel):
    """Ask the model for new children of parent_title."""

    idea_context: str
    parent_title: str = Field(..., min_length=1)
    existing_children: list[str] = Field(default_factory=list)
    language: Language = Language.ENGLISH


class EditNodeRequest(BaseModel):
    path: str = Field(..., min_length=1)
    new_title: str


# ============================================================================
# Endpoints
# ============================================================================


@router.post("", response_model=MindMapNode)
async def regenerate_mind_map(
    idea_id: str,
    request: RegenerateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: IdeaService = Depends(get_idea_service),
) -> MindMapNode:
    """Generate a fresh mind map, replacing any stored one."""
    result = await service.regenerate_mind_map(
        idea_id, request.summary, request.language, user_id=user.id
    )
    return unwrap(result)


@router.post("/nodes", response_model=MindMapNode)
async def add_node(
    idea_id: str,
    request: AddNodeRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: MindMapService = Depends(get_mindmap_service),
) -> MindMapNode:
    result = service.add_manual_node(idea_id, request.parent_title, request.title, user_id=user.id)
    return unwrap(result)


@router.post("/expand", response_model=MindMapNode)
async def expand_node(
    idea_id: str,
    request: ExpandNodeRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: MindMapService = Depends(get_mindmap_service),
) -> MindMapNode:
    result = await service.expand_node_with_ai(
        idea_id,
        request.idea_context,
        request.parent_title,
        request.existing_children,
        request.language,
        user_id=user.id,
    )
    return unwrap(result)


@router.patch("/nodes", response_model=MindMapNode)
async def edit_node(
    idea_id: str,
    request: EditNodeRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: MindMapService = Depends(get_mindmap_service),
) -> MindMapNode:
    return unwrap(service.edit_node(idea_id, request.path, request.new_title, user_id=user.id))


@router.delete("/nodes", response_model=MindMapNode)
async def delete_node(
    idea_id: str,
    path: str = Query(..., min_length=1),
    user: AuthenticatedUser = Depends(get_current_user),
    service: MindMapService = Depends(get_mindmap_service),
) -> MindMapNode:
    return unwrap(service.delete_node(idea_id, path, user_id=user.id))
