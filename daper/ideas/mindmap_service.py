"""
Mind-map editing on stored ideas.

Each edit loads the idea, changes the tree in memory, and writes the whole
tree back. The read and the write share one IMMEDIATE transaction, so two
overlapping edits of the same idea apply one after the other instead of the
later write discarding the earlier one. AI expansion calls the model before
the transaction opens.
"""

from __future__ import annotations

from collections.abc import Callable

from daper.contracts.results import ErrorKind, OperationResult
from daper.ideas.mindmap import (
    CannotDeleteRootError,
    MindMapError,
    NodeNotFoundError,
    PathMismatchError,
    append_children_by_title,
    remove_at_path,
    rename_at_path,
)
from daper.ideas.models import Language, MindMapNode
from daper.ideas.repository import IdeaRepository
from daper.infrastructure.database import db_transaction, retry_on_db_lock
from daper.llm.gateway import GenerationError, GenerationGateway, get_gateway
from daper.llm.schemas import NodeExpansionInput
from daper.observability.logging import get_logger
from daper.observability.telemetry import counter, log_event

logger = get_logger(__name__)

MSG_NO_MIND_MAP = "Mind map not found."


class _IdeaMissing(Exception):
    pass


class MindMapService:
    """Add, expand, rename and delete mind-map nodes."""

    def __init__(self, gateway: GenerationGateway | None = None):
        self._gateway = gateway

    @property
    def gateway(self) -> GenerationGateway:
        return self._gateway or get_gateway()

    @staticmethod
    @retry_on_db_lock()
    def _mutate(
        idea_id: str,
        mutate: Callable[[MindMapNode], object],
        user_id: str | None,
    ) -> MindMapNode:
        """Read-modify-write the stored tree. Raises MindMapError or _IdeaMissing."""
        with db_transaction(immediate=True) as conn:
            idea = IdeaRepository.fetch(conn, idea_id)
            if idea is None or (user_id is not None and idea.user_id != user_id):
                raise _IdeaMissing(idea_id)
            if idea.mind_map is None:
                raise NodeNotFoundError("", MSG_NO_MIND_MAP)

            tree = idea.mind_map
            mutate(tree)
            IdeaRepository.write_mind_map(conn, idea_id, tree)
        return tree

    def _apply(
        self,
        operation: str,
        idea_id: str,
        mutate: Callable[[MindMapNode], object],
        user_id: str | None,
    ) -> OperationResult[MindMapNode]:
        try:
            tree = self._mutate(idea_id, mutate, user_id)
        except _IdeaMissing:
            return OperationResult.failure(ErrorKind.NOT_FOUND, "Idea not found.")
        except CannotDeleteRootError as e:
            return OperationResult.failure(ErrorKind.CANNOT_DELETE_ROOT, str(e))
        except PathMismatchError as e:
            return OperationResult.failure(ErrorKind.PATH_MISMATCH, str(e))
        except NodeNotFoundError as e:
            return OperationResult.failure(ErrorKind.NOT_FOUND, str(e))
        except MindMapError as e:
            return OperationResult.failure(ErrorKind.VALIDATION, str(e))
        except Exception:
            counter(f"mindmap.{operation}.persistence_failed")
            logger.exception("Mind map %s failed for idea %s", operation, idea_id)
            return OperationResult.failure(
                ErrorKind.PERSISTENCE_FAILED, "Failed to update mind map. Please try again."
            )

        log_event(f"mindmap.{operation}", idea_id=idea_id)
        return OperationResult.success(tree)

    def add_manual_node(
        self,
        idea_id: str,
        parent_title: str,
        new_title: str,
        user_id: str | None = None,
    ) -> OperationResult[MindMapNode]:
        """Append an empty node under the first node titled parent_title."""
        if not new_title or not new_title.strip():
            return OperationResult.failure(ErrorKind.VALIDATION, "Node title cannot be empty.")

        node = MindMapNode(title=new_title)
        return self._apply(
            "add",
            idea_id,
            lambda tree: append_children_by_title(tree, parent_title, [node]),
            user_id,
        )

    async def expand_node_with_ai(
        self,
        idea_id: str,
        idea_context: str,
        parent_title: str,
        existing_child_titles: list[str],
        language: str | Language,
        user_id: str | None = None,
    ) -> OperationResult[MindMapNode]:
        """Ask the model for new children of parent_title and append them all."""
        try:
            lang = Language(language)
        except ValueError:
            return OperationResult.failure(ErrorKind.VALIDATION, "Unsupported language.")

        try:
            output = await self.gateway.expand_mind_map_node(
                NodeExpansionInput(
                    idea_context=idea_context,
                    parent_node_title=parent_title,
                    existing_children_titles=existing_child_titles,
                    language=lang,
                )
            )
        except GenerationError as e:
            logger.error("Node expansion failed for idea %s: %s", idea_id, e)
            return OperationResult.failure(
                ErrorKind.GENERATION_FAILED, "Failed to generate new nodes. Please try again."
            )
        except Exception:
            logger.exception("Unexpected node expansion failure for idea %s", idea_id)
            return OperationResult.failure(
                ErrorKind.GENERATION_FAILED, "Failed to generate new nodes. Please try again."
            )

        return self._apply(
            "expand",
            idea_id,
            lambda tree: append_children_by_title(tree, parent_title, output.new_nodes),
            user_id,
        )

    def edit_node(
        self,
        idea_id: str,
        path: str,
        new_title: str,
        user_id: str | None = None,
    ) -> OperationResult[MindMapNode]:
        """Rename the node at path; children are kept."""
        if not new_title or not new_title.strip():
            return OperationResult.failure(ErrorKind.VALIDATION, "Node title cannot be empty.")

        return self._apply(
            "edit",
            idea_id,
            lambda tree: rename_at_path(tree, path, new_title),
            user_id,
        )

    def delete_node(
        self,
        idea_id: str,
        path: str,
        user_id: str | None = None,
    ) -> OperationResult[MindMapNode]:
        """Remove the node at path (and its subtree). The root cannot be deleted."""
        return self._apply(
            "delete",
            idea_id,
            lambda tree: remove_at_path(tree, path),
            user_id,
        )


# Singleton instance
_service: MindMapService | None = None


def get_mindmap_service() -> MindMapService:
    """Get or create singleton MindMapService instance."""
    global _service
    if _service is None:
        _service = MindMapService()
    return _service
