"""
Shared fixtures
"""
import pytest

from ticketsync.config import Settings
from ticketsync.services.local_state import LocalState
from ticketsync.tests.fakes import FIXED_NOW, InMemoryStore


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        firebase_database_url="",
        customer_user_id="user-123",
        admin_agent_id="agent001",
        ticket_id_strategy="store",
        local_state_path=str(tmp_path / "state.json"),
        agent_retention_enabled=True,
        suppress_stamped_agent_messages=True,
        openai_api_key="",
    )


@pytest.fixture
def local_state(tmp_path):
    return LocalState(tmp_path / "state.json")


@pytest.fixture
def clock():
    return lambda: FIXED_NOW
