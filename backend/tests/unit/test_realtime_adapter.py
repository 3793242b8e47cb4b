"""
Unit tests for the realtime sync adapter.

WHAT: Dispatch of pushed rows and typing, reconnection, give-up, unsubscribe
WHY: Live updates are the only way counterpart messages appear without reloading
HOW: Subscribe to the fake backend's change feed and drive it from the test
"""

import asyncio

import pytest

from busqai.dataservice.types import ChangeEvent
from busqai.negotiation.realtime import RealtimeSyncAdapter
from busqai.utils.exceptions import SubscriptionError

from tests.fixtures.fake_data_service import wait_for

CHAT = "chat-1"


class Recorder:
    """Collects adapter callbacks."""

    def __init__(self):
        self.messages = []
        self.typing = []
        self.connects = 0
        self.reconnects = 0
        self.errors = []

    def on_message(self, message):
        self.messages.append(message)

    def on_typing(self, sender_id):
        self.typing.append(sender_id)

    def on_connect(self):
        self.connects += 1

    def on_reconnect(self):
        self.reconnects += 1

    def on_error(self, error):
        self.errors.append(error)


def make_adapter(service, attempts=3):
    return RealtimeSyncAdapter(service, max_reconnect_attempts=attempts, reconnect_delay=0.001)


async def subscribe(adapter, recorder, self_id="buyer-1"):
    handle = await adapter.subscribe(
        CHAT,
        recorder.on_message,
        recorder.on_typing,
        self_id=self_id,
        on_connect=recorder.on_connect,
        on_reconnect=recorder.on_reconnect,
        on_error=recorder.on_error,
    )
    await wait_for(lambda: handle.connected)
    return handle


@pytest.mark.unit
@pytest.mark.realtime
class TestRealtimeSyncAdapter:

    @pytest.mark.asyncio
    async def test_pushed_insert_reaches_callback(self, backend, buyer_service):
        adapter = make_adapter(buyer_service)
        recorder = Recorder()
        handle = await subscribe(adapter, recorder)

        row = backend.add_message(CHAT, "seller-1", "offer", "I offer Bs48.00", 48)
        await wait_for(lambda: len(recorder.messages) == 1)

        assert recorder.messages[0].id == row["id"]
        assert recorder.messages[0].offer_amount == 48
        assert handle.received == 1
        await adapter.unsubscribe(handle)

    @pytest.mark.asyncio
    async def test_own_typing_is_filtered(self, backend, buyer_service):
        adapter = make_adapter(buyer_service)
        recorder = Recorder()
        handle = await subscribe(adapter, recorder, self_id="buyer-1")

        backend.push_typing(CHAT, "buyer-1")
        backend.push_typing(CHAT, "seller-1")
        await wait_for(lambda: recorder.typing)

        assert recorder.typing == ["seller-1"]
        await adapter.unsubscribe(handle)

    @pytest.mark.asyncio
    async def test_malformed_record_is_dropped(self, backend, buyer_service):
        adapter = make_adapter(buyer_service)
        recorder = Recorder()
        handle = await subscribe(adapter, recorder)

        backend.push(CHAT, ChangeEvent(type="insert", record={"id": "broken", "message_type": "offer"}))
        row = backend.add_message(CHAT, "seller-1", "text", "still here")
        await wait_for(lambda: recorder.messages)

        assert [m.id for m in recorder.messages] == [row["id"]]
        assert handle.active
        await adapter.unsubscribe(handle)

    @pytest.mark.asyncio
    async def test_reconnect_notifies_caller(self, backend, buyer_service):
        adapter = make_adapter(buyer_service)
        recorder = Recorder()
        handle = await subscribe(adapter, recorder)

        backend.drop(CHAT)
        await wait_for(lambda: recorder.reconnects == 1)

        assert handle.reconnects == 1
        assert handle.connected
        assert recorder.connects == 1
        assert recorder.errors == []
        await adapter.unsubscribe(handle)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, backend, buyer_service):
        backend.refuse_streams = True
        adapter = make_adapter(buyer_service, attempts=2)
        recorder = Recorder()

        handle = await adapter.subscribe(
            CHAT, recorder.on_message, recorder.on_typing,
            on_error=recorder.on_error,
        )
        await wait_for(lambda: recorder.errors)

        assert isinstance(recorder.errors[0], SubscriptionError)
        assert recorder.errors[0].chat_id == CHAT
        await wait_for(lambda: not handle.active)
        await adapter.unsubscribe(handle)

    @pytest.mark.asyncio
    async def test_unsubscribe_is_idempotent_and_stops_delivery(self, backend, buyer_service):
        adapter = make_adapter(buyer_service)
        recorder = Recorder()
        handle = await subscribe(adapter, recorder)

        await adapter.unsubscribe(handle)
        await adapter.unsubscribe(handle)
        backend.add_message(CHAT, "seller-1", "text", "too late")
        await asyncio.sleep(0.01)

        assert recorder.messages == []
        assert backend.live_streams(CHAT) == 0
        assert not handle.active

    @pytest.mark.asyncio
    async def test_subscription_context_releases_channel(self, backend, buyer_service):
        adapter = make_adapter(buyer_service)
        recorder = Recorder()

        async with adapter.subscription(CHAT, recorder.on_message, recorder.on_typing) as handle:
            await wait_for(lambda: handle.connected)
            assert backend.live_streams(CHAT) == 1

        assert backend.live_streams(CHAT) == 0

    @pytest.mark.asyncio
    async def test_typing_broadcast_failure_is_swallowed(self, buyer_service):
        buyer_service.fail_typing = True
        adapter = make_adapter(buyer_service)

        await adapter.notify_typing(CHAT, "buyer-1")

        assert ("broadcast_typing", CHAT, "buyer-1") in buyer_service.calls

    @pytest.mark.asyncio
    async def test_first_connection_notifies_caller_once(self, backend, buyer_service):
        adapter = make_adapter(buyer_service)
        recorder = Recorder()
        handle = await subscribe(adapter, recorder)

        await wait_for(lambda: recorder.connects == 1)

        assert recorder.reconnects == 0
        await adapter.unsubscribe(handle)

    @pytest.mark.asyncio
    async def test_unexpected_feed_failure_reports_error(self, backend, buyer_service):
        adapter = make_adapter(buyer_service)
        recorder = Recorder()
        handle = await subscribe(adapter, recorder)

        backend.push(CHAT, RuntimeError("unexpected payload"))
        await wait_for(lambda: recorder.errors)

        assert isinstance(recorder.errors[0], SubscriptionError)
        assert handle.connected is False
        await wait_for(lambda: not handle.active)
        assert handle.task.exception() is None
        await adapter.unsubscribe(handle)
