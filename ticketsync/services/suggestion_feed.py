"""
Suggestion feed

Keeps the suggestion and context tag lists of the selected ticket in step with
its `bot_output` collection.
"""
from typing import Any, Callable, List, Optional

from ticketsync.models.schemas import SuggestionSet
from ticketsync.services.store import BOT_OUTPUT, SubscriptionSet, TicketStore, ticket_path
from ticketsync.services.suggestion_parser import extract_bot_output
from ticketsync.utils.logger import get_logger

logger = get_logger(__name__)

ERROR_SUGGESTION = "Error loading suggestions."


class SuggestionFeed:
    """
    Value subscription on `tickets/<id>/bot_output`.

    Every notification recomputes both lists from the latest entry and replaces
    them together; `is_loading` is set while that happens.
    """

    def __init__(
        self,
        store: TicketStore,
        on_update: Optional[Callable[[SuggestionSet], None]] = None
    ):
        self.store = store
        self.on_update = on_update
        self.ticket_id: Optional[str] = None
        self.suggestions: List[str] = []
        self.context_tags: List[str] = []
        self.is_loading = False
        self._subscriptions = SubscriptionSet()

    def open(self, ticket_id: str) -> None:
        """Follow the bot output of `ticket_id`, dropping any previous ticket"""
        self.close()
        self.ticket_id = ticket_id
        self._subscriptions.add(
            self.store.subscribe_value(
                ticket_path(ticket_id, BOT_OUTPUT),
                lambda value: self._on_value(ticket_id, value),
                lambda error: self._on_error(ticket_id, error)
            )
        )

    def close(self) -> None:
        """Release the subscription and clear derived state"""
        self._subscriptions.close()
        self.ticket_id = None
        self.suggestions = []
        self.context_tags = []
        self.is_loading = False

    def apply(self, bot_output: Any) -> SuggestionSet:
        """Recompute suggestions and tags from a `bot_output` value"""
        self.is_loading = True
        try:
            result = extract_bot_output(bot_output, self.ticket_id)
        finally:
            self.is_loading = False

        self.suggestions = result.suggestions
        self.context_tags = result.context_tags
        if self.on_update is not None:
            self.on_update(result)
        return result

    def _on_value(self, ticket_id: str, value: Any) -> None:
        if ticket_id != self.ticket_id:
            return
        self.apply(value)

    def _on_error(self, ticket_id: str, error: Exception) -> None:
        if ticket_id != self.ticket_id:
            return
        logger.error(f"Error with bot_output listener for ticket {ticket_id}: {error}")
        self.suggestions = [ERROR_SUGGESTION]
        self.context_tags = []
        self.is_loading = False
        if self.on_update is not None:
            self.on_update(SuggestionSet(suggestions=self.suggestions))
