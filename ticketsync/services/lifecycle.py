"""
Ticket lifecycle

Tickets go `Active -> Ended`, one way, only on explicit user action. Deleting
a ticket removes its whole subtree.
"""
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import ValidationError

from ticketsync.exceptions import StoreError
from ticketsync.models.schemas import GlobalInsightEntry, TicketDetails, TicketStatus
from ticketsync.services.store import (
    AGENT_COLLECTION,
    BOT_OUTPUT,
    DETAILS,
    GLOBAL_INSIGHTS_LOG,
    SERVER_TIMESTAMP,
    TicketStore,
    ticket_path,
)
from ticketsync.services.suggestion_parser import latest_entry_key
from ticketsync.services.ticket_ids import TicketIdAllocator
from ticketsync.utils.logger import get_logger
from ticketsync.utils.timekeys import format_time_key

logger = get_logger(__name__)

RESOLVED_SUFFIX = "\n\nThis ticket has been resolved."


def readable_time(moment: datetime) -> str:
    """Human readable local time, e.g. `Mon Oct 19 2026 14:03:09`"""
    return moment.strftime("%a %b %d %Y %H:%M:%S")


def find_closing_summary(bot_output: Any, insights_log: Any) -> Optional[str]:
    """
    Summary of the insight tied to the latest bot output entry.

    Returns:
        `<source_summary>` plus the resolved notice, or None when no insight
        references the latest entry
    """
    latest_key = latest_entry_key(bot_output)
    if latest_key is None or not isinstance(insights_log, dict):
        return None

    for insight_key, raw in insights_log.items():
        if not isinstance(raw, dict):
            continue
        try:
            insight = GlobalInsightEntry.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Skipping malformed insight {insight_key}: {e.error_count()} invalid field(s)")
            continue
        if insight.related_bot_output_id == latest_key and insight.source_summary:
            return insight.source_summary + RESOLVED_SUFFIX
    return None


class TicketLifecycle:
    """
    Creates, ends and deletes tickets.
    """

    def __init__(
        self,
        store: TicketStore,
        allocator: TicketIdAllocator,
        tool_version: str,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.store = store
        self.allocator = allocator
        self.tool_version = tool_version
        self.clock = clock

    async def create_ticket(self) -> str:
        """
        Allocate the next id and write its initial details.

        Returns:
            The new ticket id
        """
        ticket_id = await self.allocator.next_id()
        details = TicketDetails(
            ticket_id=ticket_id,
            session_started_iso=SERVER_TIMESTAMP,
            session_started_readable=readable_time(self.clock()),
            status=TicketStatus.ACTIVE,
            tool_version=self.tool_version,
            last_status_update_iso=SERVER_TIMESTAMP,
        ).model_dump(mode="json", exclude_none=True)
        await self.store.set(ticket_path(ticket_id, DETAILS), details)
        logger.info(f"Created ticket {ticket_id}")
        return ticket_id

    async def fetch_is_active(self, ticket_id: str) -> bool:
        """
        Whether new messages may be sent; unknown status counts as active.
        """
        try:
            status = await self.store.get(ticket_path(ticket_id, DETAILS, "status"))
        except Exception as e:
            logger.error(f"Failed to fetch status for ticket {ticket_id}: {e}")
            return True
        return status != TicketStatus.ENDED.value

    async def compose_closing_summary(self, ticket_id: str) -> Optional[str]:
        try:
            bot_output = await self.store.get(ticket_path(ticket_id, BOT_OUTPUT))
            if latest_entry_key(bot_output) is None:
                return None
            insights = await self.store.get(ticket_path(ticket_id, GLOBAL_INSIGHTS_LOG))
        except Exception as e:
            logger.error(f"Error fetching summary for end chat on {ticket_id}: {e}")
            return None
        return find_closing_summary(bot_output, insights)

    async def end_ticket(self, ticket_id: str) -> bool:
        """
        Mark the ticket Ended, posting the closing summary first when one exists.

        Returns:
            True when a summary message was written

        Raises:
            StoreError: The status update failed
        """
        summary_written = False
        summary = await self.compose_closing_summary(ticket_id)
        if summary:
            key = format_time_key(self.clock())
            try:
                await self.store.set(ticket_path(ticket_id, AGENT_COLLECTION, key), {"content": summary})
                summary_written = True
            except Exception as e:
                logger.error(f"Failed to write summary message for {ticket_id}: {e}")

        updates = {
            "status": TicketStatus.ENDED.value,
            "session_ended_iso": SERVER_TIMESTAMP,
            "session_ended_readable": readable_time(self.clock()),
            "last_status_update_iso": SERVER_TIMESTAMP,
        }
        path = ticket_path(ticket_id, DETAILS)
        try:
            await self.store.update(path, updates)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError("update", path, e) from e

        logger.info(f"Ticket {ticket_id} ended (summary written: {summary_written})")
        return summary_written

    async def delete_ticket(self, ticket_id: str) -> None:
        """Remove the ticket and everything under it"""
        path = ticket_path(ticket_id)
        try:
            await self.store.delete(path)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError("delete", path, e) from e
        logger.info(f"Deleted ticket {ticket_id}")
