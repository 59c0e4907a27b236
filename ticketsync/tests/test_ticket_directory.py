"""Tests for the admin ticket directory and the customer ticket id index"""
import pytest

from ticketsync.services.ticket_directory import (
    EMPTY_TAGS_PREVIEW,
    PREVIEW_ERROR,
    TicketDirectory,
    TicketIdIndex,
    context_tags_preview,
)
from ticketsync.tests.fakes import InMemoryStore, make_ticket


def ticket_with_tags(tags):
    return make_ticket(interaction_log={"code": {"details": {"context_tags": tags}}})


class TestContextTagsPreview:
    def test_string_returned_verbatim(self):
        long_text = "x" * 80

        assert context_tags_preview("[Refund] Priority: High") == "[Refund] Priority: High"
        assert context_tags_preview(long_text) == long_text

    def test_containers_serialised_and_truncated(self):
        assert context_tags_preview(["a", "b"]) == '["a","b"]'
        preview = context_tags_preview({"tags": ["x" * 60]})
        assert len(preview) == 53
        assert preview.endswith("...")

    def test_non_ascii_kept_raw(self):
        assert context_tags_preview(["Café", "Réclamation"]) == '["Café","Réclamation"]'

    def test_empty_values(self):
        assert context_tags_preview("   ") == EMPTY_TAGS_PREVIEW
        assert context_tags_preview([]) == EMPTY_TAGS_PREVIEW
        assert context_tags_preview({}) == EMPTY_TAGS_PREVIEW
        assert context_tags_preview(0) == EMPTY_TAGS_PREVIEW
        assert context_tags_preview(False) == EMPTY_TAGS_PREVIEW

    def test_primitives(self):
        assert context_tags_preview(7) == "7"
        assert context_tags_preview(True) == "true"

    def test_absent(self):
        assert context_tags_preview(None) == ""


class TestTicketDirectory:
    @pytest.mark.asyncio
    async def test_load_lists_every_ticket_with_preview(self):
        store = InMemoryStore({"tickets": {
            "ticket-uuid-0001": ticket_with_tags("[Refund]"),
            "ticket-uuid-0002": make_ticket(),
        }})
        directory = TicketDirectory(store)

        tickets = await directory.start()

        by_id = {t.id: t for t in tickets}
        assert set(by_id) == {"ticket-uuid-0001", "ticket-uuid-0002"}
        assert by_id["ticket-uuid-0001"].preview == "[Refund]"
        assert by_id["ticket-uuid-0001"].subject == "ticket-uuid-0001"
        assert by_id["ticket-uuid-0002"].preview == " "

    @pytest.mark.asyncio
    async def test_empty_root(self, store):
        directory = TicketDirectory(store)

        assert await directory.start() == []
        assert directory.is_loading is False

    @pytest.mark.asyncio
    async def test_root_read_failure_gives_empty_list(self, store):
        store.fail("get", "tickets")
        directory = TicketDirectory(store)

        assert await directory.load() == []

    @pytest.mark.asyncio
    async def test_preview_read_failure(self):
        store = InMemoryStore({"tickets": {"ticket-uuid-0001": ticket_with_tags("[A]")}})
        store.fail("get", "tickets/ticket-uuid-0001/interaction_log/code/details/context_tags")
        directory = TicketDirectory(store)

        tickets = await directory.load()

        assert tickets[0].preview == PREVIEW_ERROR

    @pytest.mark.asyncio
    async def test_added_ticket_appears_once(self, store):
        changes = []
        directory = TicketDirectory(store, on_change=changes.append)
        await directory.start()

        await store.set("tickets/ticket-uuid-0003", ticket_with_tags("[New]"))
        await store.set("tickets/ticket-uuid-0003/Agent/10:00:00", {"content": "hi"})
        await directory.wait_idle()

        assert [t.id for t in directory.tickets] == ["ticket-uuid-0003"]
        assert directory.tickets[0].preview == "[New]"
        assert changes[-1] == directory.tickets

    @pytest.mark.asyncio
    async def test_removed_ticket_notifies_owner(self):
        store = InMemoryStore({"tickets": {
            "ticket-uuid-0001": make_ticket(),
            "ticket-uuid-0002": make_ticket(),
        }})
        removed = []
        directory = TicketDirectory(store, on_removed=removed.append)
        await directory.start()

        await store.delete("tickets/ticket-uuid-0001")

        assert removed == ["ticket-uuid-0001"]
        assert [t.id for t in directory.tickets] == ["ticket-uuid-0002"]
        assert not directory.contains("ticket-uuid-0001")

    @pytest.mark.asyncio
    async def test_close_stops_following(self, store):
        directory = TicketDirectory(store)
        await directory.start()

        directory.close()
        await store.set("tickets/ticket-uuid-0009", make_ticket())
        await directory.wait_idle()

        assert directory.tickets == []
        assert store.active_paths == []


class TestTicketIdIndex:
    @pytest.mark.asyncio
    async def test_ids_newest_first_and_live(self):
        store = InMemoryStore({"tickets": {
            "ticket-uuid-0001": make_ticket(),
            "ticket-uuid-0003": make_ticket(),
            "ticket-uuid-0002": make_ticket(),
        }})
        index = TicketIdIndex(store)
        index.attach()

        assert index.ticket_ids == ["ticket-uuid-0003", "ticket-uuid-0002", "ticket-uuid-0001"]
        assert index.is_loading is False

        await store.delete("tickets/ticket-uuid-0003")
        assert index.ticket_ids == ["ticket-uuid-0002", "ticket-uuid-0001"]

    def test_listener_error_recorded(self, store):
        store.fail("listen", "tickets")
        index = TicketIdIndex(store)

        index.attach()

        assert index.ticket_ids == []
        assert index.is_loading is False
        assert index.last_error is not None
