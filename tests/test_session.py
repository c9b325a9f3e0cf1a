"""Tests for the relay session state machine and output serialization."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from buildrelay.lines import ChatLine
from buildrelay.session import RelaySession, SessionState, backoff_delay


async def _settle(predicate, timeout=1.0):
    """Yield to the loop until ``predicate()`` holds."""
    async def _wait():
        while not predicate():
            await asyncio.sleep(0.001)
    await asyncio.wait_for(_wait(), timeout=timeout)


class TestBackoff:
    def test_schedule(self):
        assert [backoff_delay(n, 60) for n in range(7)] == [2, 5, 10, 15, 30, 30, 30]

    def test_capped(self):
        assert backoff_delay(3, 12) == 12
        assert backoff_delay(0, 0.5) == 0.5


class TestConnection:
    @pytest.mark.asyncio
    async def test_connects_and_joins(self, transport, outbox):
        session = RelaySession(transport, "#i3", outbox)
        assert session.state is SessionState.DISCONNECTED

        await session.start()
        await _settle(lambda: session.connected)
        assert transport.connect_attempts == 1
        assert transport.joined == ["#i3"]
        await session.stop()
        assert transport.closed

    @pytest.mark.asyncio
    async def test_connecting_until_welcome(self, make_transport, outbox):
        transport = make_transport(auto_welcome=False)
        session = RelaySession(transport, "#i3", outbox)
        await session.start()
        await _settle(lambda: transport.connect_attempts == 1)
        assert session.state is SessionState.CONNECTING
        assert transport.joined == []

        transport.welcome()
        assert session.state is SessionState.CONNECTED
        assert transport.joined == ["#i3"]
        await session.stop()

    @pytest.mark.asyncio
    async def test_disconnect_triggers_reconnect(self, transport, outbox):
        session = RelaySession(transport, "#i3", outbox)
        await session.start()
        await _settle(lambda: session.connected)

        transport.drop()
        assert session.state is not SessionState.CONNECTED
        await _settle(lambda: transport.connect_attempts == 2 and session.connected)
        assert transport.joined == ["#i3", "#i3"]
        await session.stop()

    @pytest.mark.asyncio
    async def test_failed_initial_connect_retries(self, make_transport, outbox):
        transport = make_transport(fail_connects=3)
        session = RelaySession(transport, "#i3", outbox, max_delay=0.001)
        await session.start()
        await _settle(lambda: session.connected)
        assert transport.connect_attempts == 4
        await session.stop()

    @pytest.mark.asyncio
    async def test_failed_connect_leaves_disconnected(self, make_transport, outbox):
        transport = make_transport(fail_connects=1)
        session = RelaySession(transport, "#i3", outbox)
        assert await session.connect() is False
        assert session.state is SessionState.DISCONNECTED


class TestOutput:
    @pytest.mark.asyncio
    async def test_lines_sent_in_order(self, transport, outbox):
        session = RelaySession(transport, "#i3", outbox)
        await session.start()
        for text in ["one", "two", "three"]:
            await outbox.put(ChatLine(text, producer="p"))
        await asyncio.wait_for(outbox.join(), timeout=1)

        assert transport.sent == [("#i3", "one"), ("#i3", "two"), ("#i3", "three")]
        assert session.sent == 3
        await session.stop()

    @pytest.mark.asyncio
    async def test_lines_held_while_disconnected(self, make_transport, outbox):
        transport = make_transport(auto_welcome=False)
        session = RelaySession(transport, "#i3", outbox)
        await session.start()
        await outbox.put(ChatLine("queued", producer="p"))
        await asyncio.sleep(0.01)
        assert transport.sent == []

        transport.welcome()
        await asyncio.wait_for(outbox.join(), timeout=1)
        assert transport.texts == ["queued"]
        await session.stop()

    @pytest.mark.asyncio
    async def test_refused_line_dropped(self, transport, outbox):
        session = RelaySession(transport, "#i3", outbox)
        await session.start()
        await outbox.put(ChatLine("bad\r", producer="p"))
        await outbox.put(ChatLine("good", producer="p"))
        await asyncio.wait_for(outbox.join(), timeout=1)

        assert transport.texts == ["good"]
        await session.stop()

    @pytest.mark.asyncio
    async def test_empty_line_forwarded_verbatim(self, transport, outbox):
        session = RelaySession(transport, "#i3", outbox)
        await session.start()
        await outbox.put(ChatLine("", producer="p"))
        await asyncio.wait_for(outbox.join(), timeout=1)
        assert transport.texts == [""]
        await session.stop()


class TestInbound:
    @pytest.mark.asyncio
    async def test_channel_message_dispatched(self, transport, outbox):
        on_chat = AsyncMock()
        session = RelaySession(transport, "#i3", outbox, on_chat=on_chat)

        transport.say("#i3", "see >userguide", sender="bob")
        await asyncio.sleep(0)
        on_chat.assert_awaited_once_with("bob", "see >userguide")
        await session.stop()

    @pytest.mark.asyncio
    async def test_private_message_dropped(self, transport, outbox):
        on_chat = AsyncMock()
        session = RelaySession(transport, "#i3", outbox, on_chat=on_chat)

        transport.say("i3", "psst >userguide")
        transport.say("#other", ">userguide")
        await asyncio.sleep(0)
        on_chat.assert_not_awaited()
        await session.stop()

    @pytest.mark.asyncio
    async def test_handler_failure_is_contained(self, transport, outbox):
        on_chat = AsyncMock(side_effect=RuntimeError("boom"))
        session = RelaySession(transport, "#i3", outbox, on_chat=on_chat)

        transport.say("#i3", "hello")
        await asyncio.sleep(0.01)
        transport.say("#i3", "again")
        await asyncio.sleep(0.01)
        assert on_chat.await_count == 2
        await session.stop()
