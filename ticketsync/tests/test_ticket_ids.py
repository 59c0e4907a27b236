"""Tests for ticket id allocation and client-local state"""
import pytest

from ticketsync.services.local_state import (
    CURRENT_TICKET_ID_KEY,
    LAST_TICKET_NUMBER_KEY,
    LocalState,
)
from ticketsync.services.store import TICKET_SEQUENCE_PATH
from ticketsync.services.ticket_ids import (
    LocalCounterAllocator,
    StoreSequenceAllocator,
    create_allocator,
    format_ticket_id,
)


class TestLocalState:
    def test_missing_file_reads_empty(self, tmp_path):
        state = LocalState(tmp_path / "nested" / "state.json")

        assert state.get(LAST_TICKET_NUMBER_KEY) is None
        assert state.current_ticket_id is None

    def test_set_get_remove(self, local_state):
        local_state.set(LAST_TICKET_NUMBER_KEY, "7")
        local_state.current_ticket_id = "ticket-uuid-0007"

        assert local_state.get(LAST_TICKET_NUMBER_KEY) == "7"
        assert local_state.get(CURRENT_TICKET_ID_KEY) == "ticket-uuid-0007"

        local_state.current_ticket_id = None
        assert local_state.current_ticket_id is None
        assert local_state.get(LAST_TICKET_NUMBER_KEY) == "7"

    def test_persists_across_instances(self, tmp_path):
        LocalState(tmp_path / "s.json").current_ticket_id = "ticket-uuid-0003"

        assert LocalState(tmp_path / "s.json").current_ticket_id == "ticket-uuid-0003"

    def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text("{not json", encoding="utf-8")

        assert LocalState(path).current_ticket_id is None


class TestLocalCounterAllocator:
    def test_first_two_ids(self, local_state):
        allocator = LocalCounterAllocator(local_state)

        assert allocator.allocate() == "ticket-uuid-0001"
        assert allocator.allocate() == "ticket-uuid-0002"
        assert local_state.get(LAST_TICKET_NUMBER_KEY) == "2"

    def test_non_numeric_counter_restarts(self, local_state):
        local_state.set(LAST_TICKET_NUMBER_KEY, "garbage")

        assert LocalCounterAllocator(local_state).allocate() == "ticket-uuid-0001"

    def test_more_than_four_digits(self, local_state):
        local_state.set(LAST_TICKET_NUMBER_KEY, "9999")

        assert LocalCounterAllocator(local_state).allocate() == "ticket-uuid-10000"

    @pytest.mark.asyncio
    async def test_next_id(self, local_state):
        assert await LocalCounterAllocator(local_state).next_id() == "ticket-uuid-0001"


class TestStoreSequenceAllocator:
    @pytest.mark.asyncio
    async def test_increments_shared_counter(self, store):
        allocator = StoreSequenceAllocator(store)

        assert await allocator.next_id() == "ticket-uuid-0001"
        assert await allocator.next_id() == "ticket-uuid-0002"
        assert store.value_at(TICKET_SEQUENCE_PATH) == 2

    @pytest.mark.asyncio
    async def test_two_clients_never_collide(self, store):
        first = StoreSequenceAllocator(store)
        second = StoreSequenceAllocator(store)

        ids = [await first.next_id(), await second.next_id(), await first.next_id()]

        assert len(set(ids)) == 3


class TestCreateAllocator:
    def test_store_strategy(self, store, local_state, settings):
        assert isinstance(create_allocator(store, local_state, settings), StoreSequenceAllocator)

    def test_local_strategy(self, store, local_state, settings):
        settings.ticket_id_strategy = "local"

        assert isinstance(create_allocator(store, local_state, settings), LocalCounterAllocator)

    def test_unknown_strategy_uses_store(self, store, local_state, settings):
        settings.ticket_id_strategy = "random"

        assert isinstance(create_allocator(store, local_state, settings), StoreSequenceAllocator)

    def test_format_ticket_id(self):
        assert format_ticket_id(42) == "ticket-uuid-0042"
