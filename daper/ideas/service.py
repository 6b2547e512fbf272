"""
Idea Service - generation lifecycle and idea operations.

generate_idea() runs one submission through
Validating -> Locking -> Authorizing -> Generating -> Persisting -> Done.
Any step can end the request with a failed OperationResult; nothing is saved
unless all three generation calls succeed.

Orchestrates between:
- submission_lock (dedup by client request id)
- quota (free / paid plan limits)
- GenerationGateway (title, summary, outline, mind map, suggestions, plan)
- IdeaRepository / UserRepository (persistence)
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime
from typing import Any

from daper.config import FREE_USER_DAILY_LIMIT, FREE_USER_IDEA_LIMIT, IDEA_MAX_CHARS, IDEA_MIN_CHARS
from daper.contracts.results import GENERIC_FAILURE_MESSAGE, ErrorKind, OperationResult
from daper.ideas.models import DeleteOutcome, Idea, IdeaCreate, Language, MindMapNode
from daper.ideas.repository import IdeaRepository
from daper.infrastructure import quota, submission_lock
from daper.infrastructure.submission_lock import LockStatus
from daper.llm.gateway import GenerationError, GenerationGateway, get_gateway
from daper.llm.schemas import (
    BusinessPlanInput,
    MindMapInput,
    OutlineInput,
    SuggestionsInput,
    SummaryInput,
    TitleInput,
)
from daper.observability.logging import get_logger
from daper.observability.telemetry import counter, log_event
from daper.users.repository import UserRepository

logger = get_logger(__name__)

MSG_TOO_SHORT = f"Please provide a more detailed idea (at least {IDEA_MIN_CHARS} characters)."
MSG_TOO_LONG = f"Please keep your idea under {IDEA_MAX_CHARS} characters."
MSG_DUPLICATE = "This idea is already being processed. Please wait."
MSG_USER_NOT_FOUND = "User not found."
MSG_IDEA_NOT_FOUND = "Idea not found."
MSG_TOTAL_LIMIT = (
    f"You have reached the free plan limit of {FREE_USER_IDEA_LIMIT} saved ideas. "
    "Upgrade to the paid plan to create more."
)
MSG_DAILY_LIMIT = (
    f"You have reached the free plan limit of {FREE_USER_DAILY_LIMIT} idea generations today. "
    "Upgrade to the paid plan or try again tomorrow."
)
MSG_NOT_OWNER = "You do not have permission to delete this idea."
MSG_PAID_ONLY = "Business plans are available on the paid plan. Please upgrade."


def _parse_language(language: str | Language) -> Language | None:
    try:
        return Language(language)
    except ValueError:
        return None


class IdeaService:
    """
    Service layer for idea operations.

    Methods taking idea_id + user_id enforce ownership; an idea owned by
    someone else is reported as not found. The one exception is delete, which
    reports permission_denied.
    """

    def __init__(self, gateway: GenerationGateway | None = None):
        self._gateway = gateway

    @property
    def gateway(self) -> GenerationGateway:
        return self._gateway or get_gateway()

    # ------------------------------------------------------------------
    # Generation lifecycle
    # ------------------------------------------------------------------

    async def generate_idea(
        self,
        idea_text: str,
        user_id: str,
        language: str | Language,
        request_id: str,
        now: datetime | None = None,
    ) -> OperationResult[Idea]:
        """Create an idea from free text. See module docstring for the state machine."""
        text = (idea_text or "").strip()
        if len(text) < IDEA_MIN_CHARS:
            return OperationResult.failure(ErrorKind.VALIDATION, MSG_TOO_SHORT)
        if len(text) > IDEA_MAX_CHARS:
            return OperationResult.failure(ErrorKind.VALIDATION, MSG_TOO_LONG)
        if not user_id:
            return OperationResult.failure(ErrorKind.VALIDATION, "User ID is required.")
        if not request_id:
            return OperationResult.failure(ErrorKind.VALIDATION, "Request ID is required.")
        lang = _parse_language(language)
        if lang is None:
            return OperationResult.failure(ErrorKind.VALIDATION, "Unsupported language.")

        # Locking
        try:
            acquired = submission_lock.try_acquire(request_id, user_id, now=now)
        except Exception:
            logger.exception("Submission lock failed for user %s", user_id)
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILED, GENERIC_FAILURE_MESSAGE)

        if not acquired:
            counter("ideas.generate.duplicate")
            return OperationResult.failure(ErrorKind.DUPLICATE_SUBMISSION, MSG_DUPLICATE)

        result = await self._generate_locked(text, user_id, lang, now)

        try:
            submission_lock.mark_status(
                request_id, LockStatus.COMPLETED if result.ok else LockStatus.FAILED
            )
        except Exception as e:
            logger.warning("Could not record submission lock status: %s", e)

        return result

    async def _generate_locked(
        self,
        text: str,
        user_id: str,
        language: Language,
        now: datetime | None,
    ) -> OperationResult[Idea]:
        # Authorizing
        try:
            user = UserRepository.get_by_uid(user_id)
            if user is None:
                return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_USER_NOT_FOUND)

            precheck = quota.check_quota(user, now)
            status = quota.consume_quota(user_id, now) if precheck.is_allowed else precheck
        except Exception:
            logger.exception("Quota check failed for user %s", user_id)
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILED, GENERIC_FAILURE_MESSAGE)

        if status is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_USER_NOT_FOUND)
        if not status.is_allowed:
            counter(f"ideas.generate.quota_{status.limit_kind}")
            message = MSG_TOTAL_LIMIT if status.limit_kind == quota.LIMIT_TOTAL else MSG_DAILY_LIMIT
            return OperationResult.failure(
                ErrorKind.QUOTA_EXCEEDED, message, detail=status.limit_kind
            )

        # Generating
        try:
            title, summary, outline = await asyncio.gather(
                self.gateway.generate_title(
                    TitleInput(idea_description=text, language=language)
                ),
                self.gateway.generate_summary(SummaryInput(idea=text, language=language)),
                self.gateway.generate_outline(OutlineInput(idea=text, language=language)),
            )
        except GenerationError as e:
            counter("ideas.generate.generation_failed")
            logger.error("Idea generation failed for user %s: %s", user_id, e)
            return OperationResult.failure(ErrorKind.GENERATION_FAILED, GENERIC_FAILURE_MESSAGE)
        except Exception:
            counter("ideas.generate.generation_failed")
            logger.exception("Unexpected generation failure for user %s", user_id)
            return OperationResult.failure(ErrorKind.GENERATION_FAILED, GENERIC_FAILURE_MESSAGE)

        # Persisting
        try:
            idea = IdeaRepository.create(
                IdeaCreate(
                    user_id=user_id,
                    title=title.idea_title,
                    summary=summary.summary,
                    outline=outline.outline,
                    language=language,
                )
            )
        except Exception:
            counter("ideas.generate.persistence_failed")
            logger.exception("Failed to save generated idea for user %s", user_id)
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILED, GENERIC_FAILURE_MESSAGE)

        # Counter drift is tolerated: the idea exists even if this write fails
        try:
            if not UserRepository.increment_idea_count(user_id):
                logger.warning("idea_count not incremented: user %s missing", user_id)
        except Exception:
            counter("ideas.generate.idea_count_drift")
            logger.exception("Failed to increment idea_count for user %s", user_id)

        log_event("idea.generated", idea_id=idea.id, language=language.value)
        return OperationResult.success(idea)

    async def regenerate_mind_map(
        self,
        idea_id: str,
        summary: str,
        language: str | Language,
        user_id: str | None = None,
    ) -> OperationResult[MindMapNode]:
        """Generate a fresh mind map and replace the stored one. Not quota-gated."""
        lang = _parse_language(language)
        if lang is None:
            return OperationResult.failure(ErrorKind.VALIDATION, "Unsupported language.")
        if not summary or not summary.strip():
            return OperationResult.failure(ErrorKind.VALIDATION, "Summary is required.")

        try:
            idea = self._visible_idea(idea_id, user_id)
        except Exception:
            logger.exception("Failed to fetch idea %s", idea_id)
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILED, GENERIC_FAILURE_MESSAGE)
        if idea is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)

        try:
            output = await self.gateway.generate_mind_map(MindMapInput(idea=summary, language=lang))
        except GenerationError as e:
            logger.error("Mind map generation failed for idea %s: %s", idea_id, e)
            return OperationResult.failure(
                ErrorKind.GENERATION_FAILED, "Failed to generate mind map. Please try again."
            )
        except Exception:
            logger.exception("Unexpected mind map generation failure for idea %s", idea_id)
            return OperationResult.failure(
                ErrorKind.GENERATION_FAILED, "Failed to generate mind map. Please try again."
            )

        try:
            stored = IdeaRepository.set_mind_map(idea_id, output.mind_map)
        except Exception:
            logger.exception("Failed to save mind map for idea %s", idea_id)
            return OperationResult.failure(
                ErrorKind.PERSISTENCE_FAILED, "Failed to save mind map. Please try again."
            )
        if not stored:
            return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)

        log_event("idea.mind_map_generated", idea_id=idea_id)
        return OperationResult.success(output.mind_map)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _visible_idea(idea_id: str, user_id: str | None) -> Idea | None:
        """Idea if it exists and (when user_id is given) belongs to user_id."""
        idea = IdeaRepository.get_by_id(idea_id)
        if idea is None or (user_id is not None and idea.user_id != user_id):
            return None
        return idea

    def get_idea(self, idea_id: str, user_id: str | None = None) -> OperationResult[Idea]:
        try:
            idea = self._visible_idea(idea_id, user_id)
        except Exception:
            logger.exception("Failed to fetch idea %s", idea_id)
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILED, "Failed to fetch idea.")

        if idea is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)
        return OperationResult.success(idea)

    def list_archived_ideas(
        self, user_id: str, limit: int | None = None, offset: int = 0
    ) -> OperationResult[list[Idea]]:
        try:
            return OperationResult.success(
                IdeaRepository.list_by_user(user_id, limit=limit, offset=offset)
            )
        except Exception:
            logger.exception("Failed to list ideas for user %s", user_id)
            return OperationResult.failure(
                ErrorKind.PERSISTENCE_FAILED, "Failed to fetch archived ideas."
            )

    def list_favorited_ideas(
        self, user_id: str, limit: int | None = None, offset: int = 0
    ) -> OperationResult[list[Idea]]:
        try:
            return OperationResult.success(
                IdeaRepository.list_by_user(user_id, favorited=True, limit=limit, offset=offset)
            )
        except Exception:
            logger.exception("Failed to list favorited ideas for user %s", user_id)
            return OperationResult.failure(
                ErrorKind.PERSISTENCE_FAILED, "Failed to fetch favorited ideas."
            )

    def get_shared_idea(self, share_id: str) -> OperationResult[Idea]:
        """Public read of an idea that has been shared."""
        try:
            idea = IdeaRepository.get_by_share_id(share_id)
        except Exception:
            logger.exception("Failed to fetch shared idea")
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILED, "Failed to fetch idea.")

        if idea is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)
        return OperationResult.success(idea)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def toggle_favorite(
        self,
        idea_id: str,
        favorited: bool,
        user_id: str | None = None,
    ) -> OperationResult[bool]:
        try:
            if self._visible_idea(idea_id, user_id) is None:
                return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)
            if not IdeaRepository.set_favorited(idea_id, favorited):
                return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)
        except Exception:
            logger.exception("Failed to update favorite for idea %s", idea_id)
            return OperationResult.failure(
                ErrorKind.PERSISTENCE_FAILED, "Failed to update favorite status."
            )
        return OperationResult.success(favorited)

    def delete_idea(self, idea_id: str, user_id: str) -> OperationResult[bool]:
        """Delete an idea owned by user_id and decrement its owner's idea_count."""
        try:
            outcome = IdeaRepository.delete_owned(idea_id, user_id)
        except Exception:
            logger.exception("Failed to delete idea %s", idea_id)
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILED, "Failed to delete idea.")

        if outcome == DeleteOutcome.NOT_FOUND:
            return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)
        if outcome == DeleteOutcome.NOT_OWNER:
            counter("ideas.delete.not_owner")
            return OperationResult.failure(ErrorKind.PERMISSION_DENIED, MSG_NOT_OWNER)

        log_event("idea.deleted", idea_id=idea_id)
        return OperationResult.success(True)

    def update_idea(
        self,
        idea_id: str,
        user_id: str,
        title: str | None = None,
        summary: str | None = None,
        outline: str | None = None,
    ) -> OperationResult[Idea]:
        """Owner edits of the generated text."""
        for name, value in (("Title", title), ("Summary", summary), ("Outline", outline)):
            if value is not None and not value.strip():
                return OperationResult.failure(ErrorKind.VALIDATION, f"{name} cannot be empty.")

        try:
            if self._visible_idea(idea_id, user_id) is None:
                return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)
            idea = IdeaRepository.update_content(idea_id, title=title, summary=summary, outline=outline)
        except Exception:
            logger.exception("Failed to update idea %s", idea_id)
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILED, "Failed to update idea.")

        if idea is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)
        return OperationResult.success(idea)

    async def generate_suggestions(self, idea_id: str, user_id: str) -> OperationResult[dict[str, Any]]:
        """SWOT analysis and improvement suggestions, stored on the idea."""
        try:
            idea = self._visible_idea(idea_id, user_id)
        except Exception:
            logger.exception("Failed to fetch idea %s", idea_id)
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILED, GENERIC_FAILURE_MESSAGE)
        if idea is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)

        try:
            output = await self.gateway.generate_suggestions(
                SuggestionsInput(
                    idea_id=idea.id,
                    title=idea.title,
                    summary=idea.summary,
                    outline=idea.outline,
                    language=idea.language,
                )
            )
        except GenerationError as e:
            logger.error("Suggestion generation failed for idea %s: %s", idea_id, e)
            return OperationResult.failure(
                ErrorKind.GENERATION_FAILED, "Failed to generate suggestions. Please try again."
            )
        except Exception:
            logger.exception("Unexpected suggestion generation failure for idea %s", idea_id)
            return OperationResult.failure(
                ErrorKind.GENERATION_FAILED, "Failed to generate suggestions. Please try again."
            )

        payload = output.model_dump(by_alias=True)
        try:
            IdeaRepository.set_suggestions(idea_id, payload)
        except Exception:
            logger.exception("Failed to save suggestions for idea %s", idea_id)
            return OperationResult.failure(
                ErrorKind.PERSISTENCE_FAILED, "Failed to save suggestions. Please try again."
            )

        log_event("idea.suggestions_generated", idea_id=idea_id)
        return OperationResult.success(payload)

    async def generate_business_plan(
        self, idea_id: str, user_id: str
    ) -> OperationResult[dict[str, Any]]:
        """Business plan for a paid-plan owner, stored on the idea."""
        try:
            idea = self._visible_idea(idea_id, user_id)
            user = UserRepository.get_by_uid(user_id) if idea is not None else None
        except Exception:
            logger.exception("Failed to load idea %s for business plan", idea_id)
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILED, GENERIC_FAILURE_MESSAGE)

        if idea is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)
        if user is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_USER_NOT_FOUND)
        if not user.is_paid:
            return OperationResult.failure(
                ErrorKind.PERMISSION_DENIED, MSG_PAID_ONLY, detail="upgrade_required"
            )

        try:
            output = await self.gateway.generate_business_plan(
                BusinessPlanInput(
                    idea_id=idea.id,
                    title=idea.title,
                    summary=idea.summary,
                    outline=idea.outline,
                    ai_suggestions=idea.ai_suggestions,
                    language=idea.language,
                )
            )
        except GenerationError as e:
            logger.error("Business plan generation failed for idea %s: %s", idea_id, e)
            return OperationResult.failure(
                ErrorKind.GENERATION_FAILED, "Failed to generate business plan. Please try again."
            )
        except Exception:
            logger.exception("Unexpected business plan generation failure for idea %s", idea_id)
            return OperationResult.failure(
                ErrorKind.GENERATION_FAILED, "Failed to generate business plan. Please try again."
            )

        payload = output.model_dump(by_alias=True)
        try:
            IdeaRepository.set_business_plan(idea_id, payload)
        except Exception:
            logger.exception("Failed to save business plan for idea %s", idea_id)
            return OperationResult.failure(
                ErrorKind.PERSISTENCE_FAILED, "Failed to save business plan. Please try again."
            )

        log_event("idea.business_plan_generated", idea_id=idea_id)
        return OperationResult.success(payload)

    def create_share_link(self, idea_id: str, user_id: str) -> OperationResult[str]:
        """Share id for public read access; reuses the existing one if already shared."""
        try:
            if self._visible_idea(idea_id, user_id) is None:
                return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)
            share_id = IdeaRepository.set_share_id(idea_id, uuid.uuid4().hex)
        except Exception:
            logger.exception("Failed to share idea %s", idea_id)
            return OperationResult.failure(
                ErrorKind.PERSISTENCE_FAILED, "Failed to create share link."
            )

        if share_id is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, MSG_IDEA_NOT_FOUND)
        return OperationResult.success(share_id)


# Singleton instance
_service: IdeaService | None = None


def get_idea_service() -> IdeaService:
    """Get or create singleton IdeaService instance."""
    global _service
    if _service is None:
        _service = IdeaService()
    return _service
