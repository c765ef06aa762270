"""Shared fixtures: in-memory workspace and store, a no-wait sleep."""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from database.store import InMemoryAgencyStore
from workspace.memory import InMemoryWorkspace


ORG_ID = "1000"


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.calls = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


@pytest.fixture
def workspace():
    return InMemoryWorkspace(organization_id=ORG_ID, organization_name="Reflect HQ")


@pytest.fixture
def store():
    return InMemoryAgencyStore()


@pytest.fixture
def sleep():
    return RecordingSleep()
