"""
Shared test fixtures.

Provides a FastAPI TestClient wired to:
  • an in-memory store driven by a fake clock
  • a mock text generator (no HTTP)
  • a temporary recipe catalog

The `client` fixture runs the full lifespan so app.state is populated
exactly as in production, only with the test doubles swapped in.
"""

from __future__ import annotations

import pytest
import yaml
from fastapi.testclient import TestClient

from kitchen_gate.gate import GatePipeline
from kitchen_gate.main import app
from kitchen_gate.store import MemoryStore
from kitchen_gate.verification import VerificationSession
from tests.mocks.models import MOCK_RECIPES
from tests.mocks.services import FakeClock, MockGenerator


# ── Core fixtures ──────────────────────────────────────────────────────────


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(clock=clock)


@pytest.fixture()
def pipeline(store: MemoryStore) -> GatePipeline:
    return GatePipeline(store)


@pytest.fixture()
def verification(store: MemoryStore) -> VerificationSession:
    return VerificationSession(store)


@pytest.fixture()
def generator() -> MockGenerator:
    return MockGenerator()


# ── App fixtures ───────────────────────────────────────────────────────────


@pytest.fixture()
def _test_env(monkeypatch, tmp_path, store: MemoryStore, generator: MockGenerator):
    """
    Internal fixture that patches the store, generator and recipe path so
    that the app lifespan runs against test doubles.
    """
    recipes_file = tmp_path / "recipes.yaml"
    recipes_file.write_text(
        yaml.safe_dump([r.model_dump() for r in MOCK_RECIPES]),
        encoding="utf-8",
    )

    monkeypatch.setattr("kitchen_gate.main.build_store", lambda: store)
    monkeypatch.setattr("kitchen_gate.main.build_generator", lambda: generator)
    monkeypatch.setattr("kitchen_gate.main.RECIPES_PATH", str(recipes_file))
    monkeypatch.setattr("kitchen_gate.main.store_fail_open", lambda: True)
    return store


@pytest.fixture()
def client(_test_env) -> TestClient:
    """FastAPI TestClient; every request comes from identity "testclient"."""
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc


@pytest.fixture()
def verified_client(client: TestClient) -> TestClient:
    """Client that already carries a valid verified marker."""
    marker = app.state.verification.issue_marker("cook@example.com")
    client.cookies.set("ai_verified", marker)
    return client
