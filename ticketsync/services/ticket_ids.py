"""
Ticket id allocation

Ids look like `ticket-uuid-NNNN` (counter zero-padded to four digits).

- `StoreSequenceAllocator` increments a shared counter in the database inside a
  transaction, so ids are unique across clients.
- `LocalCounterAllocator` keeps the counter in client-local state. Two clients
  can hand out the same id; it exists for single-client setups.
"""
from typing import Any, Optional

from ticketsync.config import Settings, get_settings
from ticketsync.services.local_state import LAST_TICKET_NUMBER_KEY, LocalState
from ticketsync.services.store import TICKET_SEQUENCE_PATH, TicketStore
from ticketsync.utils.logger import get_logger

logger = get_logger(__name__)

TICKET_ID_PREFIX = "ticket-uuid-"


def format_ticket_id(number: int) -> str:
    return f"{TICKET_ID_PREFIX}{number:04d}"


def _as_counter(value: Any) -> int:
    """Stored counter value, 0 when missing or not a number"""
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


class TicketIdAllocator:
    """Hands out the next ticket id"""

    async def next_id(self) -> str:
        raise NotImplementedError


class LocalCounterAllocator(TicketIdAllocator):
    """Counter persisted in client-local state"""

    def __init__(self, state: LocalState):
        self.state = state

    def allocate(self) -> str:
        number = _as_counter(self.state.get(LAST_TICKET_NUMBER_KEY)) + 1
        self.state.set(LAST_TICKET_NUMBER_KEY, str(number))
        return format_ticket_id(number)

    async def next_id(self) -> str:
        return self.allocate()


class StoreSequenceAllocator(TicketIdAllocator):
    """Counter incremented atomically in the database"""

    def __init__(self, store: TicketStore, path: str = TICKET_SEQUENCE_PATH):
        self.store = store
        self.path = path

    async def next_id(self) -> str:
        number = await self.store.transaction(self.path, lambda current: _as_counter(current) + 1)
        ticket_id = format_ticket_id(_as_counter(number))
        logger.info(f"Allocated ticket id {ticket_id}")
        return ticket_id


def create_allocator(
    store: TicketStore,
    state: LocalState,
    settings: Optional[Settings] = None
) -> TicketIdAllocator:
    """Pick the allocator named by `settings.ticket_id_strategy`"""
    settings = settings or get_settings()
    strategy = settings.ticket_id_strategy.lower()
    if strategy == "local":
        return LocalCounterAllocator(state)
    if strategy != "store":
        logger.warning(f"Unknown ticket_id_strategy '{settings.ticket_id_strategy}', using store sequence")
    return StoreSequenceAllocator(store)
