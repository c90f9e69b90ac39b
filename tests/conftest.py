"""
Pytest fixtures for resilience game tests.

Provides in-memory stores, a deterministic clock and ready-made towns.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from resilience_game.document_store import MemoryDocumentStore
from resilience_game.models.schema_models import AbilityVector, Card, Hazard, HazardCategory, Town
from resilience_game.services.session_engine import GameSessionOrchestrator

START_TIME = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Returns a strictly increasing UTC time, one second per call."""

    def __init__(self, start: datetime = START_TIME):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def make_town(level: int = 80, effort_points: int = 100, town_id: str = "s1_town_1", **categories) -> Town:
    """Town with every aspect at ``level``; keyword arguments override whole categories."""
    abilities = {category: AbilityVector(nature=level, economy=level, society=level, health=level) for category in HazardCategory}
    for name, vector in categories.items():
        abilities[HazardCategory(name)] = vector
    return Town(id=town_id, session_id="s1", name="Test Town", effort_points=effort_points, abilities=abilities)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    """In-memory document store for testing."""
    return MemoryDocumentStore()


@pytest.fixture
def orchestrator(memory_store, clock):
    """Orchestrator with the default catalog seeded into an in-memory store."""
    orchestrator = GameSessionOrchestrator(memory_store, clock=clock)
    asyncio.run(orchestrator.initialize())
    return orchestrator


@pytest.fixture
def started_session(orchestrator):
    """Session advanced from setup into round 1."""
    state = asyncio.run(orchestrator.create_session("user-1", "Test Game"))
    asyncio.run(orchestrator.advance_round(state.session_id))
    return state


@pytest.fixture
def biohazard():
    return Hazard(id="biohazard", name="Biohazard", nature=5, economy=25, society=25, health=25)


@pytest.fixture
def bushfire_card():
    return Card(id="bushfire1", name="LANDSCAPING", type="bushfire", cost=15, duration=1, nature=20, economy=10, society=10, health=10)
