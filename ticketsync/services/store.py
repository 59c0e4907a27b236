"""
Store boundary

The realtime database is consumed through `TicketStore`: point reads,
full overwrites, partial updates, subtree deletes, an atomic transaction and
two kinds of subscription (whole-value and child added/removed). Every
subscription hands back a `Subscription` that the caller releases explicitly;
`SubscriptionSet` groups the handles that belong to one selected ticket.
"""
from typing import Any, Callable, Dict, List, Optional

from ticketsync.utils.logger import get_logger

logger = get_logger(__name__)

# Server-side timestamp placeholder understood by the Realtime Database
SERVER_TIMESTAMP: Dict[str, str] = {".sv": "timestamp"}

ValueCallback = Callable[[Any], None]
ChildCallback = Callable[[str, Any], None]
ErrorCallback = Callable[[Exception], None]


# ============================================================================
# Paths
# ============================================================================

TICKETS_ROOT = "tickets"
AGENT_COLLECTION = "Agent"
BOT_OUTPUT = "bot_output"
DETAILS = "details"
GLOBAL_INSIGHTS_LOG = "global_insights_log"
INTERACTION_LOG = "interaction_log"
TICKET_SEQUENCE_PATH = "meta/ticket_sequence"


def ticket_path(ticket_id: str, *parts: str) -> str:
    """Build `tickets/<ticket_id>/<parts...>`"""
    return "/".join([TICKETS_ROOT, ticket_id, *[p for p in parts if p]])


def context_tags_path(ticket_id: str) -> str:
    """Preview text shown in the ticket directory"""
    return ticket_path(ticket_id, INTERACTION_LOG, "code", DETAILS, "context_tags")


# ============================================================================
# Subscriptions
# ============================================================================

class Subscription:
    """
    Handle for one active listener.

    `close()` is idempotent and always runs the release callback at most once.
    """

    def __init__(self, path: str, release: Optional[Callable[[], None]] = None):
        self.path = path
        self._release = release
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._release is not None:
            try:
                self._release()
            except Exception as e:
                logger.warning(f"Failed to release listener on {self.path}: {e}")

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class SubscriptionSet:
    """
    Group of subscriptions released together.

    Usage:
        with SubscriptionSet() as subs:
            subs.add(store.subscribe_value(path, on_value))
    """

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def add(self, subscription: Subscription) -> Subscription:
        self._subscriptions.append(subscription)
        return subscription

    def close(self) -> None:
        """Release every subscription, newest first"""
        while self._subscriptions:
            self._subscriptions.pop().close()

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __enter__(self) -> "SubscriptionSet":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


# ============================================================================
# Store interface
# ============================================================================

class TicketStore:
    """
    Keyed-hierarchy store consumed by the sessions.

    Reads and writes are coroutines; subscriptions deliver callbacks on the
    event loop thread.
    """

    async def get(self, path: str) -> Any:
        """Read the value at `path` (None when absent)"""
        raise NotImplementedError

    async def set(self, path: str, value: Any) -> None:
        """Overwrite the value at `path`"""
        raise NotImplementedError

    async def update(self, path: str, values: Dict[str, Any]) -> None:
        """Merge `values` into the node at `path`"""
        raise NotImplementedError

    async def delete(self, path: str) -> None:
        """Remove `path` and its whole subtree"""
        raise NotImplementedError

    async def transaction(self, path: str, update_fn: Callable[[Any], Any]) -> Any:
        """Atomically replace the value at `path` with `update_fn(current)`"""
        raise NotImplementedError

    def subscribe_value(
        self,
        path: str,
        on_value: ValueCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> Subscription:
        """Call `on_value` with the full value at `path` on every change"""
        raise NotImplementedError

    def subscribe_children(
        self,
        path: str,
        on_added: ChildCallback,
        on_removed: ChildCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> Subscription:
        """Call `on_added`/`on_removed` as direct children of `path` appear or go"""
        raise NotImplementedError
