"""
Server Data Channel

The single datagram endpoint every session pushes file payload through.

Design Note: All sessions run on one event loop and DatagramTransport.sendto
is only ever called from that loop, so concurrent sends from many sessions
need no lock. The endpoint is bound once at server start and closed once at
shutdown; sessions borrow it and never bind or close it themselves.
"""

import asyncio
import logging
from typing import Optional, Tuple

from ..errors import DatagramSendError

logger = logging.getLogger(__name__)


class DataChannel(asyncio.DatagramProtocol):
    """
    Shared UDP endpoint used to push file payload to clients.

    Honours transport flow control: when the transport's write buffer passes
    its high-water mark, drain() blocks until it falls back.

    The transport reports send failures through error_received() rather than
    raising. A failure reported while send() is inside sendto() belongs to
    that send and is raised to its caller; failures of datagrams flushed
    later from the transport buffer cannot be tied to a destination and are
    only logged and counted.
    """

    def __init__(self):
        self.transport: Optional[asyncio.DatagramTransport] = None
        self._writable = asyncio.Event()
        self._writable.set()

        # Error reported during the sendto() call in progress
        self._in_send = False
        self._send_error: Optional[Exception] = None

        # Statistics
        self.datagrams_sent = 0
        self.bytes_sent = 0
        self.send_errors = 0

    @property
    def local_address(self) -> Tuple[str, int]:
        """Address the endpoint is bound to."""
        return self.transport.get_extra_info('sockname')[:2]

    @property
    def is_closed(self) -> bool:
        return self.transport is None or self.transport.is_closing()

    def connection_made(self, transport: asyncio.DatagramTransport):
        """Called when the UDP socket is ready."""
        self.transport = transport
        logger.info(f"Data channel ready on {transport.get_extra_info('sockname')}")

    def connection_lost(self, exc):
        """Called when the socket is closed."""
        logger.info("Data channel closed")
        self._writable.set()

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        # The data channel is push-only
        logger.debug(f"Ignoring {len(data)} byte datagram from {addr}")

    def error_received(self, exc):
        """Called when a send or receive operation fails."""
        self.send_errors += 1
        if self._in_send:
            self._send_error = exc
        else:
            logger.warning(f"Data channel error: {exc}")

    def pause_writing(self):
        self._writable.clear()

    def resume_writing(self):
        self._writable.set()

    def send(self, data: bytes, addr: Tuple[str, int]):
        """
        Send one datagram.

        Raises:
            DatagramSendError: if the endpoint is closed or the send fails
        """
        if self.is_closed:
            raise DatagramSendError("data channel is closed")

        self._in_send = True
        self._send_error = None
        try:
            self.transport.sendto(data, addr)
        except OSError as e:
            self.send_errors += 1
            self._send_error = e
        finally:
            self._in_send = False

        if self._send_error is not None:
            error, self._send_error = self._send_error, None
            raise DatagramSendError(f"send to {addr[0]}:{addr[1]} failed: {error}") from error

        self.datagrams_sent += 1
        self.bytes_sent += len(data)

    async def drain(self):
        """Wait until the transport accepts more data."""
        await self._writable.wait()

    def close(self):
        """Close the endpoint (server shutdown only)."""
        if self.transport and not self.transport.is_closing():
            self.transport.close()

    def get_stats(self) -> dict:
        """Get channel statistics."""
        return {
            'datagrams_sent': self.datagrams_sent,
            'bytes_sent': self.bytes_sent,
            'send_errors': self.send_errors,
        }


async def open_data_channel(host: str, port: int) -> DataChannel:
    """
    Bind the server's data channel.

    Raises:
        OSError: if the address is unavailable
    """
    loop = asyncio.get_running_loop()
    _, channel = await loop.create_datagram_endpoint(
        DataChannel,
        local_addr=(host, port)
    )
    return channel
