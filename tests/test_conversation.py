"""
Tests for conversation threads, the live message feed and view scopes.
"""

import asyncio

import pytest

from roomfinder.repositories.message import MessageRepository
from roomfinder.schemas.message import MessageRecord
from roomfinder.services.conversation import ConversationService, ThreadView, group_threads
from roomfinder.services.realtime import MessageFeed, extract_record
from roomfinder.utils.exceptions import SelfContactRejected
from roomfinder.utils.scope import ScopeCancelled, ViewScope
from tests.conftest import ListingFactory, MessageFactory, UserFactory


def record(id: str, listing_id: str = "l1", sender_id: str = "a", receiver_id: str = "b") -> MessageRecord:
    return MessageRecord(id=id, listing_id=listing_id, sender_id=sender_id,
                         receiver_id=receiver_id, message=f"message {id}")


class TestGroupThreads:
    """Test derivation of threads from a user's messages."""

    def test_groups_by_listing_and_counterpart_in_first_seen_order(self):
        messages = [
            record("m4", "l1", "b", "a"),
            record("m3", "l2", "a", "c"),
            record("m2", "l1", "a", "b"),
            record("m1", "l1", "c", "a"),
        ]

        rooms = group_threads(messages, "a")

        assert [room.key for room in rooms] == [("l1", "b"), ("l2", "c"), ("l1", "c")]
        assert rooms[0].last_message.id == "m4"
        assert all(room.unread_count == 0 for room in rooms)

    def test_grouping_is_idempotent(self):
        messages = [record("m2", "l1", "b", "a"), record("m1", "l1", "a", "b")]

        first = group_threads(messages, "a")
        second = group_threads(messages, "a")

        assert [room.model_dump() for room in first] == [room.model_dump() for room in second]

    @pytest.mark.asyncio
    async def test_load_threads_uses_embedded_profiles(self, store, backend, owner, tenant, listing):
        MessageFactory.create_message(store, listing.id, tenant.id, owner.id, "Hi")
        MessageFactory.create_message(store, listing.id, owner.id, tenant.id, "Hello back")

        rooms = await ConversationService(backend, tenant).load_threads()

        assert len(rooms) == 1
        assert rooms[0].other_user.id == owner.id
        assert rooms[0].other_user.name == owner.name
        assert rooms[0].last_message.message == "Hello back"


class TestThreadView:
    """Test history loading, the bounded buffer and live updates."""

    def test_merge_deduplicates_by_id(self, backend, tenant):
        thread = ThreadView(backend, tenant, "l1", "b")

        assert thread.merge(record("m1")) is True
        assert thread.merge(record("m1")) is False
        assert [message.id for message in thread.messages] == ["m1"]

    def test_buffer_is_bounded(self, backend, tenant):
        thread = ThreadView(backend, tenant, "l1", "b", buffer_size=3)

        for index in range(5):
            thread.merge(record(f"m{index}"))

        assert [message.id for message in thread.messages] == ["m2", "m3", "m4"]

    @pytest.mark.asyncio
    async def test_load_restricts_history_to_pair(self, store, backend, owner, tenant, listing):
        other = UserFactory.create_user(store, email="other@test.com")
        first = MessageFactory.create_message(store, listing.id, tenant.id, owner.id, "one")
        MessageFactory.create_message(store, listing.id, other.id, owner.id, "not ours")
        second = MessageFactory.create_message(store, listing.id, owner.id, tenant.id, "two")

        thread = ThreadView(backend, tenant, listing.id, owner.id)
        messages = await thread.load()

        assert [message.id for message in messages] == [first.id, second.id]
        assert messages[0].sender.id == tenant.id

    @pytest.mark.asyncio
    async def test_live_insert_is_merged_once(self, store, owner, tenant, listing):
        tenant_view = ThreadView(store.client(), tenant, listing.id, owner.id)
        await tenant_view.load()
        await tenant_view.start()

        owner_view = ThreadView(store.client(), owner, listing.id, tenant.id)
        sent = await owner_view.send("Room is free")

        arrived = await asyncio.wait_for(tenant_view.updates.get(), timeout=1)
        assert arrived.id == sent.id
        assert arrived.sender.name == owner.name

        assert await tenant_view.handle_notification({"id": sent.id}) is None
        assert [message.id for message in tenant_view.messages] == [sent.id]

        await tenant_view.close()
        await owner_view.close()

    @pytest.mark.asyncio
    async def test_notification_for_other_pair_is_ignored(self, store, backend, owner, tenant, listing):
        other = UserFactory.create_user(store, email="other@test.com")
        foreign = MessageFactory.create_message(store, listing.id, other.id, owner.id, "hello")
        thread = ThreadView(backend, tenant, listing.id, owner.id)

        assert await thread.handle_notification({"id": foreign.id}) is None
        assert await thread.handle_notification(
            {"id": foreign.id, "sender_id": other.id, "receiver_id": owner.id}
        ) is None
        assert thread.messages == []

    @pytest.mark.asyncio
    async def test_notification_after_close_is_dropped(self, store, backend, owner, tenant, listing):
        message = MessageFactory.create_message(store, listing.id, owner.id, tenant.id, "late")
        thread = ThreadView(backend, tenant, listing.id, owner.id)
        await thread.close()

        assert await thread.handle_notification({"id": message.id}) is None
        assert thread.messages == []

    @pytest.mark.asyncio
    async def test_send_blank_is_noop(self, store, backend, owner, tenant, listing):
        thread = ThreadView(backend, tenant, listing.id, owner.id)

        assert await thread.send("   ") is None
        assert store.tables["messages"] == []

    @pytest.mark.asyncio
    async def test_send_does_not_render_optimistically(self, store, backend, owner, tenant, listing):
        thread = ThreadView(backend, tenant, listing.id, owner.id)

        sent = await thread.send("Hello")

        assert sent.sender_id == tenant.id
        assert sent.receiver_id == owner.id
        assert thread.messages == []

    @pytest.mark.asyncio
    async def test_close_leaves_channel(self, store, owner, tenant, listing):
        thread = ThreadView(store.client(), tenant, listing.id, owner.id)
        await thread.start()
        assert len(store.channels) == 1

        await thread.close()

        assert store.channels == []
        assert not thread.is_live

    @pytest.mark.asyncio
    async def test_load_keeps_live_messages_after_history(self, store, backend, owner, tenant, listing):
        first = MessageFactory.create_message(store, listing.id, tenant.id, owner.id, "one")
        thread = ThreadView(backend, tenant, listing.id, owner.id)
        live = record("live-1", listing.id, owner.id, tenant.id)
        thread.merge(live)
        thread.updates.put_nowait(live)

        messages = await thread.load()

        assert [message.id for message in messages] == [first.id, "live-1"]
        assert thread.updates.empty()

    @pytest.mark.asyncio
    async def test_listener_survives_a_bad_notification(self, store, owner, tenant, listing):
        thread = ThreadView(store.client(), tenant, listing.id, owner.id)
        await thread.start()
        fetch = thread.message_repo.get_with_participants
        fetched = []

        async def malformed_once(message_id):
            fetched.append(message_id)
            if len(fetched) == 1:
                raise ValueError("malformed row")
            return await fetch(message_id)

        thread.message_repo.get_with_participants = malformed_once
        owner_view = ThreadView(store.client(), owner, listing.id, tenant.id)

        await owner_view.send("first")
        await owner_view.send("second")
        arrived = await asyncio.wait_for(thread.updates.get(), timeout=1)

        assert arrived.message == "second"
        assert thread.is_live

        await thread.close()

    def test_rejects_self_as_counterpart(self, backend, tenant):
        with pytest.raises(SelfContactRejected):
            ThreadView(backend, tenant, "l1", tenant.id)


class TestConversationService:
    """Test the open-thread bookkeeping."""

    @pytest.mark.asyncio
    async def test_send_without_open_thread_is_noop(self, store, backend, tenant):
        assert await ConversationService(backend, tenant).send("Hello") is None
        assert store.tables["messages"] == []

    @pytest.mark.asyncio
    async def test_opening_a_thread_closes_the_previous_one(self, store, owner, tenant):
        first_listing = ListingFactory.create_listing(store, owner.id, title="First")
        second_listing = ListingFactory.create_listing(store, owner.id, title="Second")
        service = ConversationService(store.client(), tenant)

        first = await service.open_thread(first_listing.id, owner.id)
        second = await service.open_thread(second_listing.id, owner.id)

        assert first.scope.cancelled
        assert service.current is second
        assert len(store.channels) == 1

        await service.close()

    @pytest.mark.asyncio
    async def test_cannot_open_thread_with_self(self, store, owner, tenant, listing):
        MessageFactory.create_message(store, listing.id, tenant.id, owner.id, "private to owner")
        service = ConversationService(store.client(), tenant)

        with pytest.raises(SelfContactRejected):
            await service.open_thread(listing.id, tenant.id)

        assert service.current is None
        assert await service.send("hello me") is None
        assert len(store.tables["messages"]) == 1

    @pytest.mark.asyncio
    async def test_message_sent_during_history_fetch_is_kept(self, store, monkeypatch, owner, tenant, listing):
        first = MessageFactory.create_message(store, listing.id, tenant.id, owner.id, "one")
        list_thread = MessageRepository.list_thread
        owner_messages = MessageRepository(store.client())

        async def reply_after_fetch(self, listing_id, user_id, counterpart_id):
            history = await list_thread(self, listing_id, user_id, counterpart_id)
            await owner_messages.create_message(
                listing_id=listing_id, sender_id=owner.id, receiver_id=tenant.id, body="reply"
            )
            return history

        monkeypatch.setattr(MessageRepository, "list_thread", reply_after_fetch)
        service = ConversationService(store.client(), tenant)

        thread = await service.open_thread(listing.id, owner.id)
        for _ in range(100):
            if len(thread.messages) == 2:
                break
            await asyncio.sleep(0.01)

        assert [message.message for message in thread.messages] == ["one", "reply"]
        assert thread.messages[0].id == first.id

        await service.close()


class TestMessageFeed:
    """Test notification payload handling."""

    def test_extract_record_variants(self):
        row = {"id": "m1", "listing_id": "l1"}

        assert extract_record({"data": {"record": row}}) == row
        assert extract_record({"record": row}) == row
        assert extract_record({"new": row}) == row
        assert extract_record({"data": {}}) is None
        assert extract_record("garbage") is None

    @pytest.mark.asyncio
    async def test_feed_yields_until_closed(self, store, owner, tenant, listing):
        feed = MessageFeed(store.client(), listing.id)
        await feed.subscribe()

        await store.client().table("messages").insert({
            "listing_id": listing.id, "sender_id": tenant.id, "receiver_id": owner.id, "message": "hi"
        }).execute()
        await feed.close()

        received = [item async for item in feed]
        assert [item["message"] for item in received] == ["hi"]


class TestViewScope:
    """Test cancellation of view-initiated fetches."""

    @pytest.mark.asyncio
    async def test_run_returns_result(self):
        async def fetch():
            return 42

        assert await ViewScope().run(fetch()) == 42

    @pytest.mark.asyncio
    async def test_late_result_is_dropped(self):
        scope = ViewScope()
        release = asyncio.Event()

        async def slow_fetch():
            await release.wait()
            return "late"

        task = asyncio.ensure_future(scope.run_or_none(slow_fetch()))
        await asyncio.sleep(0)
        scope.cancel()
        release.set()

        assert await task is None

    @pytest.mark.asyncio
    async def test_run_after_cancel_raises(self):
        scope = ViewScope()
        scope.cancel()

        async def fetch():
            return 1

        with pytest.raises(ScopeCancelled):
            await scope.run(fetch())
