"""
Pytest configuration and fixtures for agritrace tests

This module provides shared fixtures for unit, integration, and E2E tests.
Everything runs against the in-memory ledger and content store; no
external services are needed.
"""
import os
from datetime import datetime, timedelta, timezone

import pytest

from agritrace.config import Settings
from agritrace.engine import TraceabilityEngine
from agritrace.ledger import InMemoryLedger
from agritrace.storage import InMemoryContentStore


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests wiring the engine to adapters"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that run a full product lifecycle"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# CLOCK FIXTURES
# =======================

START_TIME = datetime(2024, 4, 1, 8, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Deterministic clock that advances by ``step`` on every reading."""

    def __init__(self, start: datetime = START_TIME, step: timedelta = timedelta(minutes=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.now
        self.now = self.now + self.step
        return value

    def rewind(self, delta: timedelta) -> None:
        self.now = self.now - delta


class RecordingSleep:
    """Awaitable replacement for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


# =======================
# ADAPTER FIXTURES
# =======================

@pytest.fixture
def ledger(clock) -> InMemoryLedger:
    """In-memory ledger sharing the engine clock"""
    return InMemoryLedger(clock=clock)


@pytest.fixture
def content_store() -> InMemoryContentStore:
    return InMemoryContentStore()


# =======================
# ENGINE FIXTURES
# =======================

@pytest.fixture
def settings() -> Settings:
    """Settings with short timeouts suitable for tests"""
    return Settings(
        submit_timeout=1.0,
        evaluate_timeout=1.0,
        content_timeout=1.0,
        read_max_attempts=3,
        read_backoff_base=0.01,
        read_backoff_max=0.04,
        history_base_url="https://trace.example.org",
    )


@pytest.fixture
def engine(ledger, content_store, settings, clock, sleeper) -> TraceabilityEngine:
    """
    Engine wired to the in-memory adapters

    Returns:
        TraceabilityEngine with deterministic clock and no real sleeping
    """
    return TraceabilityEngine(ledger, content_store, settings=settings, clock=clock, sleep=sleeper)


# =======================
# INPUT FIXTURES
# =======================

@pytest.fixture
def farm_location() -> dict:
    return {"latitude": 23.0225, "longitude": 72.5714, "address": "Plot 12, Sanand, Gujarat"}


@pytest.fixture
def depot_location() -> dict:
    return {"latitude": 22.3072, "longitude": 73.1812, "address": "Vadodara cold storage"}


@pytest.fixture
def farmer_input(farm_location) -> dict:
    return {
        "name": "Asha Patel",
        "email": "asha.patel@example.org",
        "phone": "+91 98250 12345",
        "farmLocation": farm_location,
        "certifications": [],
        "metadata": {"cooperative": "Sanand Growers"},
    }


@pytest.fixture
def product_input(farm_location) -> dict:
    """The rice batch used throughout the scenario tests"""
    return {
        "name": "Rice",
        "batchNumber": "B1",
        "farmerId": "F1",
        "farmLocation": farm_location,
        "currentLocation": farm_location,
        "plantingDate": "2024-01-01",
        "harvestDate": "2024-04-01",
        "quality": "A",
        "certifications": [],
        "metadata": {},
    }


@pytest.fixture
def step_input(depot_location) -> dict:
    return {
        "stepType": "TRANSPORT",
        "actor": "logistics-co-17",
        "location": depot_location,
        "description": "Loaded onto refrigerated truck",
        "metadata": {"temperature": "4C"},
    }


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture
def clean_env(monkeypatch):
    """
    Remove agritrace settings from the environment for the duration of a test
    """
    for name in list(os.environ):
        if name.startswith(("LEDGER_", "CONTENT_", "SUBMIT_", "EVALUATE_", "READ_", "HISTORY_",
                            "VERIFY_", "VALIDATION_", "EXTRA_", "MAX_DOCUMENT", "METRICS_")):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("LOG_FORMAT", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    return monkeypatch
