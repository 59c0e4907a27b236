"""
Admin console session

State and operations of the agent console: the ticket directory, the selected
ticket's merged conversation, the suggestions and context tags parsed from its
bot output, the reply input box and the send busy flag.
"""
from datetime import datetime
from typing import Callable, List, Optional

from ticketsync.config import Settings, get_settings
from ticketsync.exceptions import (
    InvalidMessageError,
    MessageNotFoundError,
    NoTicketSelectedError,
    SendInProgressError,
    StoreError,
    StoreUnavailableError,
    TicketNotFoundError,
)
from ticketsync.models.schemas import AdminStateResponse, Message, Notice, TicketSummary
from ticketsync.services.message_sync import AGENT, MessageSynchronizer
from ticketsync.services.outbound import OutboundWriter, StampedMessageSuppressor, oldest_agent_message
from ticketsync.services.store import TicketStore
from ticketsync.services.suggestion_feed import SuggestionFeed
from ticketsync.services.ticket_directory import TicketDirectory
from ticketsync.utils.logger import get_logger
from ticketsync.utils.validators import is_valid_store_key

logger = get_logger(__name__)

UNAVAILABLE_BANNER = (
    "Realtime database not connected. Ticket functionality is disabled; "
    "check the Firebase configuration and restart."
)


class AdminConsole:
    """
    View model of the agent console.

    Selecting a ticket always releases every listener of the previous one
    before new listeners attach.
    """

    def __init__(
        self,
        store: Optional[TicketStore],
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.available = store is not None
        self.banner = None if self.available else UNAVAILABLE_BANNER

        self.selected_ticket_id: Optional[str] = None
        self.input_value = ""
        self.is_sending = False
        self.notices: List[Notice] = []

        if self.available:
            self.suppressor = StampedMessageSuppressor(
                store,
                own_agent_id=self.settings.admin_agent_id,
                enabled=self.settings.suppress_stamped_agent_messages
            )
            self.sync = MessageSynchronizer(store, entry_filter=self.suppressor)
            self.feed = SuggestionFeed(store)
            self.directory = TicketDirectory(store, on_removed=self._on_ticket_removed)
            self.writer = OutboundWriter(store, agent_id=self.settings.admin_agent_id, clock=clock)

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------
    @property
    def tickets(self) -> List[TicketSummary]:
        return self.directory.tickets if self.available else []

    @property
    def messages(self) -> List[Message]:
        return self.sync.messages if self.available else []

    @property
    def suggestions(self) -> List[str]:
        return self.feed.suggestions if self.available else []

    @property
    def context_tags(self) -> List[str]:
        return self.feed.context_tags if self.available else []

    def notify(self, title: str, description: str, destructive: bool = False) -> None:
        self.notices.append(Notice(title=title, description=description, destructive=destructive))

    def drain_notices(self) -> List[Notice]:
        notices, self.notices = self.notices, []
        return notices

    def snapshot(self) -> AdminStateResponse:
        return AdminStateResponse(
            available=self.available,
            banner=self.banner,
            tickets=self.tickets,
            selected_ticket_id=self.selected_ticket_id,
            messages=self.messages,
            suggestions=self.suggestions,
            context_tags=self.context_tags,
            is_loading_messages=self.sync.is_loading if self.available else False,
            is_loading_suggestions=self.feed.is_loading if self.available else False,
            is_sending=self.is_sending,
            input_value=self.input_value,
            notices=self.drain_notices(),
        )

    def _require_store(self) -> None:
        if not self.available:
            raise StoreUnavailableError(UNAVAILABLE_BANNER)

    def _require_selection(self) -> str:
        if self.selected_ticket_id is None:
            raise NoTicketSelectedError("Select a ticket first")
        return self.selected_ticket_id

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def start(self) -> List[TicketSummary]:
        """Load the ticket directory and follow it"""
        if not self.available:
            logger.warning("Admin console started without a database; running disabled")
            return []
        return await self.directory.start()

    async def select_ticket(self, ticket_id: str) -> List[Message]:
        """
        Show `ticket_id`: its conversation, suggestions and tags.

        Raises:
            TicketNotFoundError: The directory does not list the ticket
        """
        self._require_store()
        self._release_ticket()

        if not is_valid_store_key(ticket_id) or not self.directory.contains(ticket_id):
            logger.warning(f"Ticket {ticket_id} not found in the directory, message loading skipped")
            raise TicketNotFoundError(ticket_id)

        self.selected_ticket_id = ticket_id
        self.feed.open(ticket_id)
        return await self.sync.open(ticket_id)

    def _release_ticket(self) -> None:
        self.sync.close()
        self.feed.close()
        self.selected_ticket_id = None
        self.input_value = ""

    def _on_ticket_removed(self, ticket_id: str) -> None:
        if ticket_id == self.selected_ticket_id:
            logger.info(f"Selected ticket {ticket_id} was removed, clearing selection")
            self._release_ticket()

    def select_suggestion(self, suggestion: str) -> str:
        """Copy a suggestion into the reply box"""
        self.input_value = suggestion
        return self.input_value

    async def send_message(self, text: Optional[str] = None) -> str:
        """
        Send an agent reply on the selected ticket.

        With retention enabled, the oldest agent message of the conversation
        (as it was before sending) is deleted once the send succeeds.

        Returns:
            The key of the new message
        """
        self._require_store()
        ticket_id = self._require_selection()
        if self.is_sending:
            raise SendInProgressError("A message is already being sent")

        text = self.input_value if text is None else text
        if not text.strip():
            raise InvalidMessageError("Cannot send an empty message")

        self.is_sending = True
        oldest = oldest_agent_message(self.messages) if self.settings.agent_retention_enabled else None
        try:
            key = await self.writer.send(ticket_id, AGENT, text)
        except StoreError as e:
            self.is_sending = False
            logger.error(f"Error sending message on ticket {ticket_id}: {e}")
            self.notify("Error", "Failed to send message.", destructive=True)
            raise

        try:
            self.input_value = ""
            # A send in the same second overwrote the oldest message
            if oldest is not None and oldest.key != key and self.sync.find(oldest.id) is not None:
                try:
                    await self.delete_message(oldest.id)
                except StoreError:
                    logger.warning(f"Retention delete of {oldest.id} failed; the new message was sent")
            return key
        finally:
            self.is_sending = False

    async def delete_message(self, message_id: str) -> None:
        """
        Delete an agent message, removing it locally right away.

        Raises:
            MessageNotFoundError: Not part of the displayed conversation
            InvalidMessageError: Not an agent message
        """
        self._require_store()
        ticket_id = self._require_selection()

        message = self.sync.find(message_id)
        if message is None:
            raise MessageNotFoundError(f"Message {message_id} is not in the conversation")
        if message.party != AGENT.party:
            raise InvalidMessageError(f"Cannot delete message {message_id}: not an agent message")

        self.sync.remove_local(message_id)
        try:
            await self.writer.delete_message(ticket_id, message)
        except StoreError as e:
            # Local removal is not rolled back
            logger.error(f"Error deleting message {message_id}: {e}")
            self.notify("Error", "Failed to delete message.", destructive=True)
            raise

    def close(self) -> None:
        if not self.available:
            return
        self._release_ticket()
        self.directory.close()
