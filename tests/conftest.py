"""
Pytest configuration for Daper tests

Every test gets its own SQLite file and a clean telemetry state. Generation
goes through FakeGateway, so no model credentials are needed.
"""

from __future__ import annotations

from datetime import datetime

import pytest

from daper.ideas.mindmap_service import MindMapService
from daper.ideas.models import IdeaCreate, Language, MindMapNode
from daper.ideas.repository import IdeaRepository
from daper.ideas.service import IdeaService
from daper.infrastructure.database import db_transaction, init_database, reset_pool
from daper.llm.gateway import GenerationError, GenerationGateway, set_gateway
from daper.llm.schemas import (
    BusinessPlanOutput,
    MindMapOutput,
    NodeExpansionOutput,
    OutlineOutput,
    SuggestionsOutput,
    SummaryOutput,
    TitleOutput,
)
from daper.observability.telemetry import reset_counters, reset_latencies
from daper.users.models import SerializableUser, UserRole
from daper.users.repository import UserRepository


def sample_mind_map() -> MindMapNode:
    """Idea -> (Marketing -> Channels, Product)"""
    return MindMapNode(
        title="Idea",
        children=[
            MindMapNode(title="Marketing", children=[MindMapNode(title="Channels")]),
            MindMapNode(title="Product"),
        ],
    )


SAMPLE_SUGGESTIONS = {
    "strengths": ["Clear audience"],
    "weaknesses": ["Crowded market"],
    "opportunities": ["Partnerships with nurseries"],
    "threats": ["Seasonality"],
    "marketPotential": 7.5,
    "feasibilityScore": 6,
    "suggestions": [
        {
            "id": "s1",
            "type": "market",
            "title": "Start local",
            "description": "Pilot in one city.",
            "priority": "high",
            "category": "Go-to-market",
            "reasoning": "Cheaper to validate.",
            "actionItems": ["Pick a city", "Recruit 20 users"],
            "impact": 8,
        }
    ],
}

SAMPLE_BUSINESS_PLAN = {
    "sections": [
        {"id": "exec", "title": "Executive Summary", "content": "A smart garden."},
        {"id": "market", "title": "Market", "content": "Urban gardeners."},
    ],
    "metadata": {
        "targetMarket": "Urban gardeners",
        "businessModel": "Subscription",
        "fundingNeeded": "$250k",
        "timeToMarket": "9 months",
    },
}


class FakeGateway(GenerationGateway):
    """
    Deterministic gateway.

    Records every call as (flow, input). Flows listed in `fail` raise
    GenerationError.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []
        self.fail: set[str] = set()
        self.title = "Smart Garden"
        self.summary = "An app that tells you when to water your plants."
        self.outline = "1. Problem\n2. Solution\n3. Market"
        self.mind_map = sample_mind_map()
        self.new_nodes = [MindMapNode(title="Social"), MindMapNode(title="Email")]

    def _record(self, flow: str, data: object) -> None:
        self.calls.append((flow, data))
        if flow in self.fail:
            raise GenerationError(flow, "model call failed")

    def flows(self) -> list[str]:
        return [flow for flow, _ in self.calls]

    async def generate_title(self, data):
        self._record("title", data)
        return TitleOutput(idea_title=self.title)

    async def generate_summary(self, data):
        self._record("summary", data)
        return SummaryOutput(summary=self.summary)

    async def generate_outline(self, data):
        self._record("outline", data)
        return OutlineOutput(outline=self.outline)

    async def generate_mind_map(self, data):
        self._record("mind_map", data)
        return MindMapOutput(mind_map=self.mind_map.model_copy(deep=True))

    async def expand_mind_map_node(self, data):
        self._record("node_expansion", data)
        output = NodeExpansionOutput(new_nodes=[n.model_copy(deep=True) for n in self.new_nodes])
        return output.without_titles(data.existing_children_titles)

    async def generate_suggestions(self, data):
        self._record("suggestions", data)
        return SuggestionsOutput.model_validate(SAMPLE_SUGGESTIONS)

    async def generate_business_plan(self, data):
        self._record("business_plan", data)
        return BusinessPlanOutput.model_validate(SAMPLE_BUSINESS_PLAN)


@pytest.fixture(autouse=True)
def test_db(tmp_path, monkeypatch):
    """Isolated database file for each test"""
    db_path = tmp_path / "daper.db"
    monkeypatch.setenv("DAPER_DB_PATH", str(db_path))
    reset_pool()
    init_database()
    reset_counters()
    reset_latencies()

    yield db_path

    set_gateway(None)
    reset_pool()


@pytest.fixture
def fake_gateway():
    gateway = FakeGateway()
    set_gateway(gateway)
    return gateway


@pytest.fixture
def idea_service(fake_gateway):
    return IdeaService(gateway=fake_gateway)


@pytest.fixture
def mindmap_service(fake_gateway):
    return MindMapService(gateway=fake_gateway)


def _seed_user(
    uid: str = "user-1",
    role: UserRole = UserRole.FREE,
    idea_count: int = 0,
    api_request_count: int = 0,
    last_api_request_date: datetime | None = None,
):
    """Create a user and force its counters."""
    UserRepository.upsert(SerializableUser(uid=uid, email=f"{uid}@example.com"))
    with db_transaction() as conn:
        conn.execute(
            """
            UPDATE users
            SET role = ?, idea_count = ?, api_request_count = ?, last_api_request_date = ?
            WHERE uid = ?
            """,
            (
                UserRole(role).value,
                idea_count,
                api_request_count,
                last_api_request_date.isoformat() if last_api_request_date else None,
                uid,
            ),
        )
    return UserRepository.get_by_uid(uid)


def _seed_idea(user_id: str = "user-1", mind_map: MindMapNode | None = None, title: str = "Idea"):
    """Insert an idea directly, optionally with a mind map."""
    idea = IdeaRepository.create(
        IdeaCreate(
            user_id=user_id,
            title=title,
            summary="A summary",
            outline="An outline",
            language=Language.ENGLISH,
        )
    )
    if mind_map is not None:
        IdeaRepository.set_mind_map(idea.id, mind_map)
    return IdeaRepository.get_by_id(idea.id)


@pytest.fixture
def seed_user():
    return _seed_user


@pytest.fixture
def seed_idea():
    return _seed_idea


@pytest.fixture
def mind_map():
    return sample_mind_map()
