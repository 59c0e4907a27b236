"""
Outbound messages

Writes new messages under a ticket, keyed by the local `HH:mm:ss` time, and
implements the two admin console rules on agent messages:

- retention: after each successful agent send, the oldest agent message of
  the conversation is deleted
- suppression: agent messages stamped with a foreign `agent_id` are deleted
  on first sight instead of being shown
"""
import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ticketsync.exceptions import InvalidMessageError, StoreError
from ticketsync.models.schemas import Message, Sender
from ticketsync.services.message_sync import AGENT, PartyCollection
from ticketsync.services.store import AGENT_COLLECTION, TicketStore, ticket_path
from ticketsync.utils.logger import get_logger
from ticketsync.utils.timekeys import format_time_key

logger = get_logger(__name__)


class OutboundWriter:
    """
    Fire-and-forget writer for new messages.

    The new message is not inserted locally; it shows up through the
    synchroniser's own notification.
    """

    def __init__(
        self,
        store: TicketStore,
        agent_id: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.store = store
        self.agent_id = agent_id
        self.clock = clock

    def build_payload(self, text: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"content": text}
        if self.agent_id:
            payload["agent_id"] = self.agent_id
        return payload

    async def send(self, ticket_id: str, collection: PartyCollection, text: str) -> str:
        """
        Write `text` as a new message of `collection`.

        Returns:
            The `HH:mm:ss` key written

        Raises:
            InvalidMessageError: Blank text
            StoreError: The write failed
        """
        if not text or not text.strip():
            raise InvalidMessageError("Cannot send an empty message")

        key = format_time_key(self.clock())
        path = ticket_path(ticket_id, collection.path, key)
        try:
            await self.store.set(path, self.build_payload(text))
        except StoreError:
            raise
        except Exception as e:
            logger.error(f"Failed to send message to {path}: {e}")
            raise StoreError("write", path, e) from e

        logger.info(f"Sent {collection.party} message {key} on ticket {ticket_id}")
        return key

    async def delete_message(self, ticket_id: str, message: Message) -> None:
        """
        Delete one agent message from the store.

        Raises:
            InvalidMessageError: The message is not an agent message
            StoreError: The delete failed
        """
        if message.party != AGENT_COLLECTION:
            raise InvalidMessageError(f"Only agent messages can be deleted (got {message.id})")

        path = ticket_path(ticket_id, AGENT_COLLECTION, message.key)
        try:
            await self.store.delete(path)
        except StoreError:
            raise
        except Exception as e:
            logger.error(f"Error deleting message {path}: {e}")
            raise StoreError("delete", path, e) from e


def oldest_agent_message(messages: List[Message]) -> Optional[Message]:
    """Earliest agent message by timestamp, or None"""
    agent_messages = [m for m in messages if m.sender == Sender.AGENT]
    if not agent_messages:
        return None
    return min(agent_messages, key=lambda message: message.timestamp)


class StampedMessageSuppressor:
    """
    Entry filter deleting agent messages that carry a foreign `agent_id`.

    Messages stamped with `own_agent_id` (the console's own sends) are kept.
    Each offending entry is deleted once; deletions run as background tasks.
    """

    def __init__(self, store: TicketStore, own_agent_id: Optional[str] = None, enabled: bool = True):
        self.store = store
        self.own_agent_id = (own_agent_id or "").strip() or None
        self.enabled = enabled
        self._seen: Set[Tuple[str, str]] = set()
        self._pending: Set[asyncio.Task] = set()

    def should_suppress(self, collection: PartyCollection, value: Dict[str, Any]) -> bool:
        if not self.enabled or collection.party != AGENT.party:
            return False
        agent_id = str(value.get("agent_id") or "").strip()
        if not agent_id:
            return False
        return agent_id != self.own_agent_id

    def __call__(self, ticket_id: str, collection: PartyCollection, key: str, value: Dict[str, Any]) -> bool:
        if not self.should_suppress(collection, value):
            return True

        if (ticket_id, key) not in self._seen:
            self._seen.add((ticket_id, key))
            logger.warning(
                f"Agent message {key} for ticket {ticket_id} has agent_id "
                f"'{value.get('agent_id')}', deleting it"
            )
            task = asyncio.get_running_loop().create_task(self._delete(ticket_id, key))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return False

    async def _delete(self, ticket_id: str, key: str) -> None:
        path = ticket_path(ticket_id, AGENT_COLLECTION, key)
        try:
            await self.store.delete(path)
        except Exception as e:
            # Stays in _seen: no retry
            logger.error(f"Failed to delete agent message {key} for ticket {ticket_id}: {e}")
            return
        self._seen.discard((ticket_id, key))
        logger.info(f"Deleted stamped agent message {key} for ticket {ticket_id}")

    async def wait_idle(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
