import asyncio
import time

from ebookbot.bot import TOO_SLOW, ChannelTransport, handle_message, split_message
from ebookbot.router import GREETING


class RecordingTransport:
    def __init__(self):
        self.sent = []

    async def send_reply(self, text):
        self.sent.append(text)


class SlowRouter:
    def handle(self, author_id, text, author_is_bot=False):
        time.sleep(0.5)
        return "late"


def test_handle_message_sends_reply(router):
    transport = RecordingTransport()

    reply = asyncio.run(handle_message(router, transport, "1001", "hi"))

    assert reply == GREETING
    assert transport.sent == [GREETING]


def test_handle_message_silent_for_unknown_text(router):
    transport = RecordingTransport()

    assert asyncio.run(handle_message(router, transport, "1001", "what's up")) is None
    assert transport.sent == []


def test_handle_message_ignores_bots(router):
    transport = RecordingTransport()

    asyncio.run(handle_message(router, transport, "1001", "hi", author_is_bot=True))

    assert transport.sent == []


def test_handle_message_timeout():
    transport = RecordingTransport()

    reply = asyncio.run(handle_message(SlowRouter(), transport, "1001", "!ebooks", timeout=0.05))

    assert reply == TOO_SLOW
    assert transport.sent == [TOO_SLOW]


def test_split_message_respects_limit():
    text = "".join(f"- line {i}\n" for i in range(50))

    chunks = split_message(text, limit=100)

    assert "".join(chunks) == text
    assert all(len(c) <= 100 for c in chunks)


def test_split_message_breaks_long_lines():
    chunks = split_message("x" * 250, limit=100)
    assert [len(c) for c in chunks] == [100, 100, 50]


def test_channel_transport_sends_chunks(mocker):
    channel = mocker.Mock()
    channel.send = mocker.AsyncMock()

    asyncio.run(ChannelTransport(channel).send_reply("short reply"))

    channel.send.assert_awaited_once_with("short reply")
