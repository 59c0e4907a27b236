"""
Message synchronisation

Merges the agent collection and the customer collection of one ticket into a
single conversation ordered by timestamp.

The agent collection always lives at `tickets/<id>/Agent`. The customer
collection is either known up front (the customer chat writes to
`<user_id>/messages`) or located by scanning the ticket node for the first
non-reserved child that looks like a message map.
"""
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from ticketsync.models.schemas import Message, Sender
from ticketsync.services.store import (
    AGENT_COLLECTION,
    BOT_OUTPUT,
    DETAILS,
    GLOBAL_INSIGHTS_LOG,
    INTERACTION_LOG,
    SubscriptionSet,
    TicketStore,
    ticket_path,
)
from ticketsync.utils.logger import get_logger
from ticketsync.utils.timekeys import parse_time_key

logger = get_logger(__name__)

RESERVED_KEYS = frozenset({
    INTERACTION_LOG,
    AGENT_COLLECTION,
    BOT_OUTPUT,
    DETAILS,
    GLOBAL_INSIGHTS_LOG,
})

# (ticket_id, collection, key, value) -> keep?
EntryFilter = Callable[[str, "PartyCollection", str, Dict[str, Any]], bool]


class PartyCollection:
    """
    One message-bearing collection of a ticket.

    Attributes:
        party: Party name used in message ids (`Agent` or the customer key)
        path: Path relative to the ticket node
        sender: Role of the messages it holds
    """

    def __init__(self, party: str, path: str, sender: Sender):
        self.party = party
        self.path = path
        self.sender = sender

    def __eq__(self, other) -> bool:
        return isinstance(other, PartyCollection) and (
            (self.party, self.path, self.sender) == (other.party, other.path, other.sender)
        )

    def __repr__(self) -> str:
        return f"PartyCollection(party={self.party!r}, path={self.path!r}, sender={self.sender.value!r})"


AGENT = PartyCollection(AGENT_COLLECTION, AGENT_COLLECTION, Sender.AGENT)


def customer_collection(user_id: str) -> PartyCollection:
    """Fixed customer collection written by the customer chat"""
    return PartyCollection(user_id, f"{user_id}/messages", Sender.CUSTOMER)


def _looks_like_message_map(value: Any) -> bool:
    if not isinstance(value, dict) or not value:
        return False
    if "messages" in value:
        return True
    return isinstance(next(iter(value.values())), dict)


def locate_customer_collection(ticket_node: Any) -> Optional[PartyCollection]:
    """
    Find the customer collection among the direct children of a ticket node.

    Returns:
        The first non-reserved key (in key order) whose value has a `messages`
        child or whose first value is a mapping, or None
    """
    if not isinstance(ticket_node, dict):
        return None

    for key in sorted(ticket_node.keys()):
        if key in RESERVED_KEYS:
            continue
        value = ticket_node[key]
        if not _looks_like_message_map(value):
            continue
        path = f"{key}/messages" if "messages" in value else key
        return PartyCollection(key, path, Sender.CUSTOMER)
    return None


def child_at(node: Any, relative_path: str) -> Any:
    """Walk `relative_path` inside a plain nested-dict value"""
    for segment in [s for s in relative_path.split("/") if s]:
        if not isinstance(node, dict):
            return None
        node = node.get(segment)
    return node


def message_id(ticket_id: str, party: str, key: str) -> str:
    return f"{ticket_id}-{party}-{key}"


def messages_from_collection(
    ticket_id: str,
    collection: PartyCollection,
    data: Any,
    reference: Optional[date] = None,
    entry_filter: Optional[EntryFilter] = None
) -> List[Message]:
    """
    Rebuild messages from the raw value of one party collection.

    Entries that are not mappings with a string `content` are skipped.
    """
    if not isinstance(data, dict):
        return []

    messages = []
    for key, value in data.items():
        if not isinstance(value, dict) or not isinstance(value.get("content"), str):
            logger.debug(f"Skipping malformed message {collection.party}/{key} in ticket {ticket_id}")
            continue
        if entry_filter is not None and not entry_filter(ticket_id, collection, key, value):
            continue

        agent_id = value.get("agent_id")
        messages.append(Message(
            id=message_id(ticket_id, collection.party, key),
            text=value["content"],
            sender=collection.sender,
            timestamp=parse_time_key(key, reference),
            party=collection.party,
            key=key,
            agent_id=str(agent_id) if agent_id is not None else None,
        ))
    return messages


def merge_messages(*party_lists: List[Message]) -> List[Message]:
    """Combine per-party lists and order them by timestamp (stable)"""
    combined: List[Message] = []
    for messages in party_lists:
        combined.extend(messages)
    return sorted(combined, key=lambda message: message.timestamp)


class MessageSynchronizer:
    """
    Keeps the merged conversation of the selected ticket up to date.

    `open()` releases every listener of the previous ticket, performs one read
    of the ticket node so the conversation shows immediately, then attaches one
    value subscription per party collection. Each notification rebuilds that
    party's list and republishes the merge.
    """

    def __init__(
        self,
        store: TicketStore,
        customer: Optional[PartyCollection] = None,
        on_change: Optional[Callable[[List[Message]], None]] = None,
        entry_filter: Optional[EntryFilter] = None,
        reference_date: Optional[date] = None
    ):
        self.store = store
        self.fixed_customer = customer
        self.on_change = on_change
        self.entry_filter = entry_filter
        self.reference_date = reference_date

        self.ticket_id: Optional[str] = None
        self.customer: Optional[PartyCollection] = None
        self.messages: List[Message] = []
        self.is_loading = False
        self._party_messages: Dict[str, List[Message]] = {}
        self._subscriptions = SubscriptionSet()
        self._customer_watch: Optional[SubscriptionSet] = None

    @property
    def collections(self) -> List[PartyCollection]:
        return [c for c in (self.customer, AGENT) if c is not None]

    async def open(self, ticket_id: str) -> List[Message]:
        """
        Switch to `ticket_id` and return its initial conversation.
        """
        self.close()
        self.ticket_id = ticket_id
        self.is_loading = True

        ticket_node = None
        try:
            ticket_node = await self.store.get(ticket_path(ticket_id))
        except Exception as e:
            logger.error(f"Error fetching initial messages for ticket {ticket_id}: {e}")

        if self.ticket_id != ticket_id:
            # Another ticket was opened while this read was in flight
            return self.messages

        self.customer = self.fixed_customer or locate_customer_collection(ticket_node)
        for collection in self.collections:
            self._party_messages[collection.party] = messages_from_collection(
                ticket_id,
                collection,
                child_at(ticket_node, collection.path),
                self.reference_date,
                self.entry_filter
            )
        self.is_loading = False
        self._publish()

        for collection in self.collections:
            self._attach(ticket_id, collection)

        if self.customer is None:
            logger.warning(f"Could not determine customer collection for ticket {ticket_id}, watching for it")
            self._watch_for_customer(ticket_id)

        return self.messages

    def close(self) -> None:
        """Release every listener and clear the conversation"""
        self._subscriptions.close()
        if self._customer_watch is not None:
            self._customer_watch.close()
            self._customer_watch = None
        self.ticket_id = None
        self.customer = None
        self._party_messages = {}
        self.messages = []
        self.is_loading = False

    def remove_local(self, message_id_to_remove: str) -> None:
        """Drop a message from the local view ahead of the store notification"""
        for party, messages in self._party_messages.items():
            self._party_messages[party] = [m for m in messages if m.id != message_id_to_remove]
        self._publish()

    def find(self, message_id_to_find: str) -> Optional[Message]:
        for message in self.messages:
            if message.id == message_id_to_find:
                return message
        return None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _attach(self, ticket_id: str, collection: PartyCollection) -> None:
        self._subscriptions.add(
            self.store.subscribe_value(
                ticket_path(ticket_id, collection.path),
                lambda value: self._on_collection(ticket_id, collection, value),
                lambda error: logger.error(
                    f"{collection.party} message listener error for {ticket_id}: {error}"
                )
            )
        )

    def _on_collection(self, ticket_id: str, collection: PartyCollection, value: Any) -> None:
        if ticket_id != self.ticket_id:
            return
        self._party_messages[collection.party] = messages_from_collection(
            ticket_id, collection, value, self.reference_date, self.entry_filter
        )
        self._publish()

    def _watch_for_customer(self, ticket_id: str) -> None:
        watch = SubscriptionSet()
        self._customer_watch = watch

        def on_added(key: str, value: Any) -> None:
            if ticket_id != self.ticket_id or self.customer is not None:
                return
            located = locate_customer_collection({key: value})
            if located is None:
                return
            logger.info(f"Customer collection '{located.path}' appeared in ticket {ticket_id}")
            self.customer = located
            watch.close()
            self._customer_watch = None
            self._on_collection(ticket_id, located, child_at({key: value}, located.path))
            self._attach(ticket_id, located)

        watch.add(self.store.subscribe_children(
            ticket_path(ticket_id),
            on_added,
            lambda key, value: None,
            lambda error: logger.error(f"Ticket child listener error for {ticket_id}: {error}")
        ))

    def _publish(self) -> None:
        lists = [self._party_messages.get(c.party, []) for c in self.collections]
        self.messages = merge_messages(*lists)
        if self.on_change is not None:
            self.on_change(self.messages)
