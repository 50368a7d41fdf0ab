# tests/conftest.py
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from db import get_store
from main import app
from notifications import Notifier
from tests.helpers import add_profile, run
from tests.memory_store import MemoryStore
from workflows import projects, proposals


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def notifier(store):
    return Notifier(store)


@pytest.fixture
def market(store, notifier):
    """
    A client with an open development project (fee 10000) and three
    freelancers who each bid on it. Every freelancer started with 20000
    credits, the client with 100000.
    """
    async def build():
        await add_profile(store, "client", roles=("client",), credit=100000)
        for uid in ("alice", "bob", "carol"):
            await add_profile(store, uid, credit=20000)

        project = await projects.create_project(store, "client", {
            "title": "Landing page",
            "description": "One page site",
            "category_id": "development",
            "budget": Decimal("500000"),
            "budget_type": "fixed",
        })
        bids = {}
        for uid in ("alice", "bob", "carol"):
            bids[uid] = await proposals.submit_proposal(
                store, notifier, uid, project["id"],
                cover_letter=f"{uid} can do it",
                proposed_budget=Decimal("450000"),
            )
        return project, bids

    project, bids = run(build())
    return {"project": project, "proposals": bids}


@pytest.fixture
def api(store):
    app.dependency_overrides[get_store] = lambda: store
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
