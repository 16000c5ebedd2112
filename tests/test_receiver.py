"""
Client-side datagram receiver tests.
"""

import pytest

from dirshare.errors import ProtocolError
from dirshare.transfer import DatagramReceiver, parse_size, receive_file


def feed(receiver: DatagramReceiver, *datagrams: bytes):
    for data in datagrams:
        receiver.datagram_received(data, ('127.0.0.1', 2020))


class TestParseSize:

    def test_plain(self):
        assert parse_size(b"11") == 11

    def test_surrounding_whitespace(self):
        assert parse_size(b"  42\r\n") == 42

    @pytest.mark.parametrize("data", [b"", b"abc", b"-5", b"\xff\xfe"])
    def test_rejects_garbage(self, data):
        with pytest.raises(ProtocolError):
            parse_size(data)


class TestReceiveFile:
    """Tests for receive_file()."""

    @pytest.mark.asyncio
    async def test_complete_file(self, tmp_path):
        receiver = DatagramReceiver()
        feed(receiver, b"11", b"hello ", b"world")
        seen = []

        result = await receive_file(receiver, tmp_path / "out.txt", timeout=1.0,
                                    progress_callback=lambda r: seen.append(r.received_bytes))

        assert result.complete
        assert not result.timed_out
        assert result.datagrams == 2
        assert seen == [6, 11]
        assert (tmp_path / "out.txt").read_bytes() == b"hello world"

    @pytest.mark.asyncio
    async def test_empty_file(self, tmp_path):
        receiver = DatagramReceiver()
        feed(receiver, b"0")

        result = await receive_file(receiver, tmp_path / "empty", timeout=0.1)

        assert result.complete
        assert (tmp_path / "empty").read_bytes() == b""

    @pytest.mark.asyncio
    async def test_timeout_keeps_partial_data(self, tmp_path):
        receiver = DatagramReceiver()
        feed(receiver, b"100", b"x" * 40)

        result = await receive_file(receiver, tmp_path / "partial", timeout=0.05)

        assert result.timed_out
        assert not result.complete
        assert result.received_bytes == 40
        assert (tmp_path / "partial").read_bytes() == b"x" * 40

    @pytest.mark.asyncio
    async def test_no_size_announcement(self, tmp_path):
        receiver = DatagramReceiver()

        with pytest.raises(ProtocolError):
            await receive_file(receiver, tmp_path / "never", timeout=0.05)

    @pytest.mark.asyncio
    async def test_discard_pending(self):
        receiver = DatagramReceiver()
        feed(receiver, b"stale", b"stale")

        assert receiver.discard_pending() == 2
        assert receiver.discard_pending() == 0
