"""
Ticket directory

Lists the tickets under the store root with a one-line preview each. The key
set is read once, then kept current through child added/removed
notifications.
"""
import asyncio
import json
from typing import Any, Callable, List, Optional, Set

from ticketsync.models.schemas import TicketSummary
from ticketsync.services.store import (
    TICKETS_ROOT,
    SubscriptionSet,
    TicketStore,
    context_tags_path,
)
from ticketsync.utils.logger import get_logger

logger = get_logger(__name__)

PREVIEW_LIMIT = 50
EMPTY_TAGS_PREVIEW = "Context tags are empty."
PREVIEW_ERROR = "Error fetching context tags."


def _truncate(text: str, limit: int = PREVIEW_LIMIT) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def context_tags_preview(value: Any) -> str:
    """
    Preview text for a ticket from its `context_tags` value.

    Falls back from the raw string, to truncated JSON for non-empty
    containers, to truncated primitives, to a fixed "empty" text. An absent
    value gives an empty string.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value if value.strip() else EMPTY_TAGS_PREVIEW
    if isinstance(value, (dict, list)):
        if not value:
            return EMPTY_TAGS_PREVIEW
        return _truncate(json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str))
    if not value:
        return EMPTY_TAGS_PREVIEW

    text = json.dumps(value) if isinstance(value, bool) else str(value)
    return _truncate(text) if text.strip() else EMPTY_TAGS_PREVIEW


class TicketDirectory:
    """
    Ticket list of the admin console.

    Read-only toward the store. `on_removed` is told about every ticket that
    disappears so the owner can drop its selection.
    """

    def __init__(
        self,
        store: TicketStore,
        on_removed: Optional[Callable[[str], None]] = None,
        on_change: Optional[Callable[[List[TicketSummary]], None]] = None
    ):
        self.store = store
        self.on_removed = on_removed
        self.on_change = on_change
        self.tickets: List[TicketSummary] = []
        self.is_loading = False
        self._subscriptions = SubscriptionSet()
        self._pending: Set[asyncio.Task] = set()

    async def fetch_preview(self, ticket_id: str) -> str:
        try:
            value = await self.store.get(context_tags_path(ticket_id))
        except Exception as e:
            logger.warning(f"Error fetching context_tags for ticket {ticket_id}: {e}")
            return PREVIEW_ERROR
        return context_tags_preview(value)

    async def _summary(self, ticket_id: str) -> TicketSummary:
        preview = await self.fetch_preview(ticket_id)
        return TicketSummary(id=ticket_id, subject=ticket_id, preview=preview or " ")

    async def load(self) -> List[TicketSummary]:
        """Read the full ticket key set once"""
        self.is_loading = True
        try:
            root = await self.store.get(TICKETS_ROOT)
            ticket_ids = list(root.keys()) if isinstance(root, dict) else []
            self.tickets = list(await asyncio.gather(*(self._summary(t) for t in ticket_ids)))
        except Exception as e:
            logger.error(f"Error fetching initial ticket IDs: {e}")
            self.tickets = []
        finally:
            self.is_loading = False

        self._notify()
        return self.tickets

    def attach(self) -> None:
        """Follow ticket creation and removal at the store root"""
        self._subscriptions.close()
        self._subscriptions.add(
            self.store.subscribe_children(
                TICKETS_ROOT,
                self._on_added,
                self._on_removed,
                lambda error: logger.error(f"Error with ticket listener: {error}")
            )
        )

    async def start(self) -> List[TicketSummary]:
        tickets = await self.load()
        self.attach()
        return tickets

    def close(self) -> None:
        self._subscriptions.close()
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()

    def contains(self, ticket_id: str) -> bool:
        return any(t.id == ticket_id for t in self.tickets)

    async def wait_idle(self) -> None:
        """Wait for previews of newly added tickets to be fetched"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def _on_added(self, ticket_id: str, value: Any) -> None:
        if self.contains(ticket_id):
            return
        task = asyncio.get_running_loop().create_task(self._add(ticket_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _add(self, ticket_id: str) -> None:
        summary = await self._summary(ticket_id)
        if self.contains(ticket_id):
            return
        self.tickets = [*self.tickets, summary]
        self._notify()

    def _on_removed(self, ticket_id: str, value: Any) -> None:
        self.tickets = [t for t in self.tickets if t.id != ticket_id]
        self._notify()
        if self.on_removed is not None:
            self.on_removed(ticket_id)

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.tickets)


class TicketIdIndex:
    """
    Ticket id list of the customer chat: every id, newest first.
    """

    def __init__(self, store: TicketStore):
        self.store = store
        self.ticket_ids: List[str] = []
        self.is_loading = False
        self.last_error: Optional[Exception] = None
        self._subscriptions = SubscriptionSet()

    def attach(self) -> None:
        self._subscriptions.close()
        self.is_loading = True
        self._subscriptions.add(
            self.store.subscribe_value(TICKETS_ROOT, self._on_value, self._on_error)
        )

    def close(self) -> None:
        self._subscriptions.close()

    def _on_value(self, value: Any) -> None:
        ids = list(value.keys()) if isinstance(value, dict) else []
        self.ticket_ids = sorted(ids, reverse=True)
        self.is_loading = False

    def _on_error(self, error: Exception) -> None:
        logger.error(f"Failed to fetch ticket IDs: {error}")
        self.last_error = error
        self.is_loading = False
