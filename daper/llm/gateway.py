"""
AI Generation Gateway.

One async method per artifact kind, each taking a typed input and returning a
validated output. Any model failure, unparseable response, or response that
fails validation raises GenerationError. The gateway keeps no state between
calls and does not retry; LLM_MAX_ATTEMPTS on call_llm governs transport
retries only.

The orchestrator depends on GenerationGateway, not on Gemini; get_gateway()
returns the process-wide instance and set_gateway() swaps it.
"""

from __future__ import annotations

import asyncio
import json
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel

from daper.llm.prompts import PromptLoader
from daper.llm.retry import call_llm
from daper.llm.schemas import (
    BusinessPlanInput,
    BusinessPlanOutput,
    MindMapInput,
    MindMapOutput,
    NodeExpansionInput,
    NodeExpansionOutput,
    OutlineInput,
    OutlineOutput,
    SuggestionsInput,
    SuggestionsOutput,
    SummaryInput,
    SummaryOutput,
    TitleInput,
    TitleOutput,
)
from daper.observability.logging import get_logger
from daper.observability.telemetry import counter, time_block

logger = get_logger(__name__)

OutputT = TypeVar("OutputT", bound=BaseModel)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class GenerationError(Exception):
    """The model call failed or its response did not match the expected shape."""

    def __init__(self, flow: str, message: str):
        self.flow = flow
        super().__init__(f"{flow}: {message}")


def extract_json(text: str) -> dict[str, Any]:
    """
    Pull a JSON object out of model output.

    Accepts bare JSON, JSON wrapped in a ```json fence, or JSON surrounded by
    prose (outermost {...} is used).

    Raises:
        ValueError: no JSON object could be decoded
    """
    if not text or not text.strip():
        raise ValueError("empty response")

    cleaned = text.strip()
    fenced = _FENCE_RE.match(cleaned)
    if fenced:
        cleaned = fenced.group(1)

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _OBJECT_RE.search(cleaned)
        if not match:
            raise ValueError("no JSON object in response") from None
        payload = json.loads(match.group(0))

    if not isinstance(payload, dict):
        raise ValueError(f"expected JSON object, got {type(payload).__name__}")
    return payload


class GenerationGateway(ABC):
    """Capability interface for artifact generation."""

    @abstractmethod
    async def generate_title(self, data: TitleInput) -> TitleOutput: ...

    @abstractmethod
    async def generate_summary(self, data: SummaryInput) -> SummaryOutput: ...

    @abstractmethod
    async def generate_outline(self, data: OutlineInput) -> OutlineOutput: ...

    @abstractmethod
    async def generate_mind_map(self, data: MindMapInput) -> MindMapOutput:
        """Tree of at most four levels (root included)."""

    @abstractmethod
    async def expand_mind_map_node(self, data: NodeExpansionInput) -> NodeExpansionOutput:
        """New children for a node; none may reuse a title in existing_children_titles."""

    @abstractmethod
    async def generate_suggestions(self, data: SuggestionsInput) -> SuggestionsOutput: ...

    @abstractmethod
    async def generate_business_plan(self, data: BusinessPlanInput) -> BusinessPlanOutput: ...


class GeminiGateway(GenerationGateway):
    """
    Gateway backed by Gemini.

    Prompts are rendered from daper/llm/prompts, sent through call_llm() on a
    worker thread, and validated with the flow's output model.
    """

    def __init__(
        self,
        prompts: PromptLoader | None = None,
        llm: Callable[..., str] = call_llm,
    ):
        self._prompts = prompts or PromptLoader()
        self._llm = llm

    async def _generate(self, flow: str, output_model: type[OutputT], **params: Any) -> OutputT:
        prompt = self._prompts.render(flow, **params)

        with time_block(f"llm.{flow}.latency"):
            try:
                text = await asyncio.to_thread(self._llm, prompt, counter_prefix=flow)
            except Exception as e:
                counter(f"llm.{flow}.failed")
                logger.error("Generation call failed (flow=%s): %s", flow, e)
                raise GenerationError(flow, "model call failed") from e

        try:
            result = output_model.model_validate(extract_json(text))
        except ValueError as e:
            # pydantic.ValidationError and json.JSONDecodeError are ValueErrors
            counter(f"llm.{flow}.invalid_response")
            logger.warning("Invalid model response (flow=%s): %s", flow, e)
            raise GenerationError(flow, "response failed validation") from e

        counter(f"llm.{flow}.success")
        return result

    async def generate_title(self, data: TitleInput) -> TitleOutput:
        return await self._generate(
            "title",
            TitleOutput,
            idea_description=data.idea_description,
            language=data.language.value,
        )

    async def generate_summary(self, data: SummaryInput) -> SummaryOutput:
        return await self._generate(
            "summary", SummaryOutput, idea=data.idea, language=data.language.value
        )

    async def generate_outline(self, data: OutlineInput) -> OutlineOutput:
        return await self._generate(
            "outline", OutlineOutput, idea=data.idea, language=data.language.value
        )

    async def generate_mind_map(self, data: MindMapInput) -> MindMapOutput:
        return await self._generate(
            "mind_map", MindMapOutput, idea=data.idea, language=data.language.value
        )

    async def expand_mind_map_node(self, data: NodeExpansionInput) -> NodeExpansionOutput:
        if data.existing_children_titles:
            existing = "\n".join(f"- {title}" for title in data.existing_children_titles)
        else:
            existing = "(none yet)"

        output = await self._generate(
            "node_expansion",
            NodeExpansionOutput,
            idea_context=data.idea_context,
            parent_node_title=data.parent_node_title,
            existing_children=existing,
            language=data.language.value,
        )
        return output.without_titles(data.existing_children_titles)

    async def generate_suggestions(self, data: SuggestionsInput) -> SuggestionsOutput:
        return await self._generate(
            "suggestions",
            SuggestionsOutput,
            title=data.title,
            summary=data.summary,
            outline=data.outline,
            language=data.language.value,
        )

    async def generate_business_plan(self, data: BusinessPlanInput) -> BusinessPlanOutput:
        if data.ai_suggestions:
            note = "AI Analysis: " + json.dumps(data.ai_suggestions, ensure_ascii=False)
        else:
            note = ""

        return await self._generate(
            "business_plan",
            BusinessPlanOutput,
            title=data.title,
            summary=data.summary,
            outline=data.outline,
            analysis_note=note,
            language=data.language.value,
        )


_gateway: GenerationGateway | None = None


def get_gateway() -> GenerationGateway:
    """Process-wide gateway (GeminiGateway unless replaced with set_gateway)."""
    global _gateway
    if _gateway is None:
        _gateway = GeminiGateway()
    return _gateway


def set_gateway(gateway: GenerationGateway | None) -> None:
    """Replace the process-wide gateway; None restores the default on next use."""
    global _gateway
    _gateway = gateway
