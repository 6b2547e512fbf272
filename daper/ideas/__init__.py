"""
Daper Ideas module - idea records, generation lifecycle, and mind-map editing.
"""

from daper.ideas.models import (
    DeleteOutcome,
    Idea,
    IdeaCreate,
    Language,
    MindMapNode,
)

__all__ = [
    # Models
    "DeleteOutcome",
    "Idea",
    "IdeaCreate",
    "Language",
    "MindMapNode",
]
