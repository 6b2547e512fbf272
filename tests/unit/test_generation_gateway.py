"""Unit tests for the Gemini generation gateway

The model call is replaced with a function returning canned text, so these
tests cover prompt rendering, JSON extraction and output validation.
"""

from __future__ import annotations

import asyncio
import json

import pytest
from pydantic import ValidationError

from daper.ideas.models import Language, MindMapNode
from daper.llm.gateway import GeminiGateway, GenerationError, extract_json, get_gateway, set_gateway
from daper.llm.prompts import FLOW_PROMPTS, PromptLoader
from daper.llm.schemas import (
    MindMapInput,
    MindMapOutput,
    NodeExpansionInput,
    NodeExpansionOutput,
    Suggestion,
    SuggestionsInput,
    TitleInput,
)
from daper.observability.telemetry import get_counter


class CannedLLM:
    """Stands in for call_llm(prompt, counter_prefix=...)."""

    def __init__(self, response: str | Exception):
        self.response = response
        self.prompts: list[str] = []

    def __call__(self, prompt: str, counter_prefix: str = "llm", **kwargs) -> str:
        self.prompts.append(prompt)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def nested(depth: int) -> dict:
    node: dict = {"title": f"level-{depth}"}
    for level in range(depth - 1, 0, -1):
        node = {"title": f"level-{level}", "children": [node]}
    return node


# ============================================================================
# JSON extraction
# ============================================================================


def test_extract_json_plain():
    assert extract_json('{"ideaTitle": "Garden"}') == {"ideaTitle": "Garden"}


def test_extract_json_fenced():
    text = '```json\n{"summary": "Short"}\n```'
    assert extract_json(text) == {"summary": "Short"}


def test_extract_json_with_surrounding_prose():
    text = 'Sure! Here you go: {"outline": "1. A"} Hope that helps.'
    assert extract_json(text) == {"outline": "1. A"}


@pytest.mark.parametrize("text", ["", "   ", "no json here", "[1, 2, 3]"])
def test_extract_json_rejects(text):
    with pytest.raises(ValueError):
        extract_json(text)


# ============================================================================
# Schemas
# ============================================================================


def test_mind_map_depth_limit():
    """Four levels including the root is the maximum"""
    assert MindMapOutput.model_validate({"mindMap": nested(4)}).mind_map.title == "level-1"

    with pytest.raises(ValidationError):
        MindMapOutput.model_validate({"mindMap": nested(5)})


def test_node_expansion_drops_existing_and_repeated_titles():
    output = NodeExpansionOutput.model_validate(
        {"newNodes": [{"title": "Ads"}, {"title": "SEO"}, {"title": "Ads"}, {"title": "Email"}]}
    )

    filtered = output.without_titles(["SEO"])

    assert [n.title for n in filtered.new_nodes] == ["Ads", "Email"]


def test_suggestion_impact_bounds():
    base = {
        "id": "s1",
        "type": "risk",
        "title": "t",
        "description": "d",
        "priority": "low",
        "category": "c",
        "reasoning": "r",
        "impact": 11,
    }
    with pytest.raises(ValidationError):
        Suggestion.model_validate(base)


# ============================================================================
# Gateway
# ============================================================================


def test_every_flow_has_a_prompt_file():
    loader = PromptLoader()
    for flow in FLOW_PROMPTS:
        assert loader.load_prompt(FLOW_PROMPTS[flow])


def test_title_prompt_rendering_and_parsing():
    llm = CannedLLM('{"ideaTitle": "Plant Pal"}')
    gateway = GeminiGateway(llm=llm)

    result = asyncio.run(
        gateway.generate_title(TitleInput(idea_description="water my {plants}", language=Language.KOREAN))
    )

    assert result.idea_title == "Plant Pal"
    assert "water my {plants}" in llm.prompts[0]
    assert "Korean" in llm.prompts[0]
    assert get_counter("llm.title.success") == 1


def test_mind_map_generation():
    llm = CannedLLM(json.dumps({"mindMap": nested(3)}))
    gateway = GeminiGateway(llm=llm)

    result = asyncio.run(gateway.generate_mind_map(MindMapInput(idea="A summary")))

    assert isinstance(result.mind_map, MindMapNode)
    assert result.mind_map.children[0].title == "level-2"


def test_too_deep_mind_map_is_generation_error():
    gateway = GeminiGateway(llm=CannedLLM(json.dumps({"mindMap": nested(6)})))

    with pytest.raises(GenerationError):
        asyncio.run(gateway.generate_mind_map(MindMapInput(idea="A summary")))
    assert get_counter("llm.mind_map.invalid_response") == 1


def test_expansion_filters_existing_children():
    llm = CannedLLM('{"newNodes": [{"title": "Social"}, {"title": "Email"}]}')
    gateway = GeminiGateway(llm=llm)

    result = asyncio.run(
        gateway.expand_mind_map_node(
            NodeExpansionInput(
                idea_context="Smart garden",
                parent_node_title="Marketing",
                existing_children_titles=["Email"],
            )
        )
    )

    assert [n.title for n in result.new_nodes] == ["Social"]
    assert "- Email" in llm.prompts[0]


def test_model_failure_is_generation_error():
    gateway = GeminiGateway(llm=CannedLLM(TimeoutError("deadline exceeded")))

    with pytest.raises(GenerationError) as exc_info:
        asyncio.run(gateway.generate_title(TitleInput(idea_description="anything")))

    assert exc_info.value.flow == "title"
    assert get_counter("llm.title.failed") == 1


def test_missing_field_is_generation_error():
    gateway = GeminiGateway(llm=CannedLLM('{"title": "wrong key"}'))

    with pytest.raises(GenerationError):
        asyncio.run(gateway.generate_title(TitleInput(idea_description="anything")))


def test_suggestions_prompt_includes_idea_text():
    llm = CannedLLM(
        json.dumps(
            {
                "strengths": [],
                "weaknesses": [],
                "opportunities": [],
                "threats": [],
                "marketPotential": 5,
                "feasibilityScore": 5,
                "suggestions": [],
            }
        )
    )
    gateway = GeminiGateway(llm=llm)

    result = asyncio.run(
        gateway.generate_suggestions(
            SuggestionsInput(idea_id="i1", title="Plant Pal", summary="S", outline="O")
        )
    )

    assert result.market_potential == 5
    assert "Plant Pal" in llm.prompts[0]


def test_set_gateway_overrides_default():
    replacement = GeminiGateway(llm=CannedLLM("{}"))
    set_gateway(replacement)
    assert get_gateway() is replacement
