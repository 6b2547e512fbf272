"""Daper - turn a free-text idea into AI-generated planning artifacts"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports for the ideas module
def __getattr__(name: str):
    """
    Lazy imports to avoid loading the database pool when only importing lightweight modules.
    """
    if name in ("Idea", "MindMapNode", "Language"):
        from daper.ideas import models

        return getattr(models, name)

    if name == "IdeaService":
        from daper.ideas.service import IdeaService

        return IdeaService

    if name == "MindMapService":
        from daper.ideas.mindmap_service import MindMapService

        return MindMapService

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "Idea",
    "IdeaService",
    "Language",
    "MindMapNode",
    "MindMapService",
]
