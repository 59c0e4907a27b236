"""
Customer chat session

State and operations of the customer-facing chat widget: one current ticket
(remembered in client-local state), its merged conversation, whether the chat
is still open, and the list of all ticket ids for switching.
"""
from datetime import datetime
from typing import Callable, List, Optional

from ticketsync.config import Settings, get_settings
from ticketsync.exceptions import (
    NoTicketSelectedError,
    StoreError,
    StoreUnavailableError,
    TicketEndedError,
    TicketNotFoundError,
)
from ticketsync.models.schemas import ClientStateResponse, Message, Notice
from ticketsync.services.lifecycle import TicketLifecycle
from ticketsync.services.local_state import LocalState
from ticketsync.services.message_sync import MessageSynchronizer, customer_collection
from ticketsync.services.outbound import OutboundWriter
from ticketsync.services.store import TicketStore
from ticketsync.services.ticket_directory import TicketIdIndex
from ticketsync.services.ticket_ids import TicketIdAllocator, create_allocator
from ticketsync.utils.logger import get_logger
from ticketsync.utils.validators import is_valid_store_key

logger = get_logger(__name__)

SAMPLE_QUERIES = [
    "Missing cash from ATM",
    "Unauthorized transaction",
    "Account balance dispute",
    "Card declined",
    "Mobile deposit problem",
]

UNAVAILABLE_BANNER = (
    "Realtime database is not connected. Check the Firebase configuration "
    "and restart; chat is unavailable."
)


class CustomerChat:
    """
    View model of the customer chat widget.
    """

    def __init__(
        self,
        store: Optional[TicketStore],
        state: LocalState,
        allocator: Optional[TicketIdAllocator] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.state = state
        self.available = store is not None
        self.banner = None if self.available else UNAVAILABLE_BANNER

        self.current_ticket_id: Optional[str] = None
        self.is_chat_active = False
        self.notices: List[Notice] = []

        self.customer = customer_collection(self.settings.customer_user_id)
        if self.available:
            allocator = allocator or create_allocator(store, state, self.settings)
            self.lifecycle = TicketLifecycle(store, allocator, self.settings.tool_version, clock)
            self.writer = OutboundWriter(store, clock=clock)
            self.sync = MessageSynchronizer(store, customer=self.customer)
            self.index = TicketIdIndex(store)

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------
    @property
    def messages(self) -> List[Message]:
        return self.sync.messages if self.available else []

    @property
    def is_loading(self) -> bool:
        return self.sync.is_loading if self.available else False

    @property
    def all_ticket_ids(self) -> List[str]:
        return self.index.ticket_ids if self.available else []

    @property
    def show_query_suggestions(self) -> bool:
        """Sample queries are offered on an empty, open conversation"""
        return (
            not self.messages
            and not self.is_loading
            and self.current_ticket_id is not None
            and self.is_chat_active
        )

    def notify(self, title: str, description: str, destructive: bool = False) -> None:
        self.notices.append(Notice(title=title, description=description, destructive=destructive))

    def drain_notices(self) -> List[Notice]:
        notices, self.notices = self.notices, []
        return notices

    def snapshot(self) -> ClientStateResponse:
        return ClientStateResponse(
            available=self.available,
            banner=self.banner,
            current_ticket_id=self.current_ticket_id,
            is_chat_active=self.is_chat_active,
            is_loading=self.is_loading,
            all_ticket_ids=self.all_ticket_ids,
            messages=self.messages,
            query_suggestions=SAMPLE_QUERIES if self.show_query_suggestions else [],
            notices=self.drain_notices(),
        )

    def _require_store(self) -> None:
        if not self.available:
            raise StoreUnavailableError(UNAVAILABLE_BANNER)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def start(self) -> None:
        """Restore the remembered ticket, or start a new one"""
        if not self.available:
            logger.warning("Customer chat started without a database; running disabled")
            return

        self.index.attach()
        stored_ticket_id = self.state.current_ticket_id
        if stored_ticket_id:
            await self._switch_to(stored_ticket_id)
        else:
            await self.start_new_ticket()

    async def _switch_to(self, ticket_id: str) -> None:
        self.current_ticket_id = ticket_id
        self.state.current_ticket_id = ticket_id
        self.is_chat_active = await self.lifecycle.fetch_is_active(ticket_id)
        await self.sync.open(ticket_id)

    async def start_new_ticket(self) -> str:
        self._require_store()
        try:
            ticket_id = await self.lifecycle.create_ticket()
        except StoreError as e:
            logger.error(f"Failed to initialize ticket details: {e}")
            self.notify("Error", "Failed to initialize new ticket session details.", destructive=True)
            raise

        await self._switch_to(ticket_id)
        self.is_chat_active = True
        self.notify("New Ticket Started", f"You are now on ticket: {ticket_id}")
        return ticket_id

    async def select_ticket(self, ticket_id: str) -> None:
        self._require_store()
        if not is_valid_store_key(ticket_id):
            raise TicketNotFoundError(ticket_id)
        if ticket_id == self.current_ticket_id:
            return
        await self._switch_to(ticket_id)
        self.notify("Switched Ticket", f"Now viewing ticket: {ticket_id}")

    async def send_message(self, content: str) -> str:
        """
        Send a customer message on the current ticket.

        Raises:
            TicketEndedError: The chat has ended; nothing is written
            NoTicketSelectedError: No current ticket
            StoreError: The write failed
        """
        self._require_store()
        if self.current_ticket_id is None:
            self.notify("Error", "Session not initialized. Cannot send message.", destructive=True)
            raise NoTicketSelectedError("No current ticket")
        if not self.is_chat_active:
            self.notify(
                "Chat Ended",
                "This chat session has ended. Cannot send new messages.",
                destructive=True
            )
            raise TicketEndedError(self.current_ticket_id)

        try:
            return await self.writer.send(self.current_ticket_id, self.customer, content)
        except StoreError:
            self.notify("Error", "Failed to send message.", destructive=True)
            raise

    async def end_chat(self) -> bool:
        """
        End the current ticket; returns True when a summary was posted.
        """
        self._require_store()
        ticket_id = self.current_ticket_id
        if ticket_id is None:
            self.notify("Error", "No active ticket to end.", destructive=True)
            raise NoTicketSelectedError("No active ticket to end")

        try:
            summary_written = await self.lifecycle.end_ticket(ticket_id)
        except StoreError:
            self.notify("Error", f"Failed to end ticket {ticket_id}.", destructive=True)
            raise

        self.is_chat_active = False
        description = f"Ticket {ticket_id} has been marked as ended."
        if summary_written:
            description += " Summary added to chat."
        self.notify("Chat Session Ended", description)
        return summary_written

    async def delete_ticket(self) -> str:
        """
        Delete the current ticket entirely and start a new one.

        Returns:
            The id of the new ticket
        """
        self._require_store()
        ticket_id = self.current_ticket_id
        if ticket_id is None:
            self.notify("Error", "No active ticket to delete.", destructive=True)
            raise NoTicketSelectedError("No active ticket to delete")

        try:
            await self.lifecycle.delete_ticket(ticket_id)
        except StoreError:
            self.notify("Error", f"Failed to delete ticket {ticket_id}.", destructive=True)
            raise

        self.sync.close()
        self.current_ticket_id = None
        self.state.current_ticket_id = None
        self.is_chat_active = False
        self.notify(
            "Ticket Deleted",
            f"Ticket {ticket_id} and all its data have been permanently deleted. "
            "A new ticket has been started."
        )
        return await self.start_new_ticket()

    def close(self) -> None:
        if not self.available:
            return
        self.sync.close()
        self.index.close()
