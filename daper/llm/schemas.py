"""
Input and output shapes for the generation flows.

Outputs accept the camelCase keys the prompts ask the model for
(ideaTitle, mindMap, newNodes, ...) as aliases, and the snake_case field
names when built in Python.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from daper.ideas.mindmap import tree_depth
from daper.ideas.models import Language, MindMapNode

MAX_MIND_MAP_DEPTH = 4


class _Output(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Inputs
# ============================================================================


class TitleInput(BaseModel):
    idea_description: str
    language: Language = Language.ENGLISH


class SummaryInput(BaseModel):
    idea: str
    language: Language = Language.ENGLISH


class OutlineInput(BaseModel):
    idea: str
    language: Language = Language.ENGLISH


class MindMapInput(BaseModel):
    idea: str
    language: Language = Language.ENGLISH


class NodeExpansionInput(BaseModel):
    idea_context: str
    parent_node_title: str
    existing_children_titles: list[str] = Field(default_factory=list)
    language: Language = Language.ENGLISH


class SuggestionsInput(BaseModel):
    idea_id: str
    title: str
    summary: str
    outline: str
    language: Language = Language.ENGLISH


class BusinessPlanInput(BaseModel):
    idea_id: str
    title: str
    summary: str
    outline: str
    ai_suggestions: dict[str, Any] | None = None
    language: Language = Language.ENGLISH


# ============================================================================
# Outputs
# ============================================================================


class TitleOutput(_Output):
    idea_title: str = Field(..., min_length=1, alias="ideaTitle")


class SummaryOutput(_Output):
    summary: str = Field(..., min_length=1)


class OutlineOutput(_Output):
    outline: str = Field(..., min_length=1)


class MindMapOutput(_Output):
    mind_map: MindMapNode = Field(..., alias="mindMap")

    @model_validator(mode="after")
    def check_depth(self) -> MindMapOutput:
        depth = tree_depth(self.mind_map)
        if depth > MAX_MIND_MAP_DEPTH:
            raise ValueError(f"mind map is {depth} levels deep (max {MAX_MIND_MAP_DEPTH})")
        return self


class NodeExpansionOutput(_Output):
    new_nodes: list[MindMapNode] = Field(default_factory=list, alias="newNodes")

    def without_titles(self, existing_titles: list[str]) -> NodeExpansionOutput:
        """Drop nodes whose title is already taken, in existing_titles or earlier in the batch."""
        seen = set(existing_titles)
        kept = []
        for node in self.new_nodes:
            if node.title in seen:
                continue
            seen.add(node.title)
            kept.append(node)
        return NodeExpansionOutput(new_nodes=kept)


class SuggestionType(str, Enum):
    ENHANCEMENT = "enhancement"
    MARKET = "market"
    RISK = "risk"
    IMPLEMENTATION = "implementation"


class SuggestionPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Suggestion(_Output):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: str
    type: SuggestionType
    title: str
    description: str
    priority: SuggestionPriority
    category: str
    reasoning: str
    action_items: list[str] = Field(default_factory=list, alias="actionItems")
    impact: float = Field(..., ge=1, le=10)


class SuggestionsOutput(_Output):
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    opportunities: list[str] = Field(default_factory=list)
    threats: list[str] = Field(default_factory=list)
    market_potential: float = Field(..., ge=0, le=10, alias="marketPotential")
    feasibility_score: float = Field(..., ge=0, le=10, alias="feasibilityScore")
    suggestions: list[Suggestion] = Field(default_factory=list)


class BusinessPlanSection(_Output):
    id: str
    title: str
    content: str


class BusinessPlanMetadata(_Output):
    target_market: str = Field(..., alias="targetMarket")
    business_model: str = Field(..., alias="businessModel")
    funding_needed: str = Field(..., alias="fundingNeeded")
    time_to_market: str = Field(..., alias="timeToMarket")


class BusinessPlanOutput(_Output):
    sections: list[BusinessPlanSection] = Field(..., min_length=1)
    metadata: BusinessPlanMetadata
