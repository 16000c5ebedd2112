"""
Datagram Receiver

Client side of the data channel: collects the size announcement and the
payload datagrams of one ``get`` and writes them to disk.

There is nothing to correlate datagrams with a particular request, so the
receiver is drained before every ``get`` and whatever arrives afterwards is
taken to belong to it.
"""

import asyncio
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import aiofiles

from ..errors import ProtocolError

logger = logging.getLogger(__name__)


@dataclass
class ReceiveResult:
    """Outcome of receiving one file."""
    path: Path
    expected_bytes: int
    received_bytes: int = 0
    datagrams: int = 0
    timed_out: bool = False

    @property
    def complete(self) -> bool:
        return self.received_bytes >= self.expected_bytes

    @property
    def progress_percent(self) -> float:
        if self.expected_bytes == 0:
            return 100.0
        return min(100.0, self.received_bytes * 100 / self.expected_bytes)


# Progress callback type
ProgressCallback = Callable[[ReceiveResult], None]


class DatagramReceiver(asyncio.DatagramProtocol):
    """Buffers every datagram that arrives on the client's data port."""

    def __init__(self):
        self.transport: Optional[asyncio.DatagramTransport] = None
        self._queue: asyncio.Queue = asyncio.Queue()

    @property
    def port(self) -> int:
        """Locally bound port."""
        return self.transport.get_extra_info('sockname')[1]

    def connection_made(self, transport: asyncio.DatagramTransport):
        self.transport = transport
        logger.debug(f"Receiver bound on {transport.get_extra_info('sockname')}")

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        self._queue.put_nowait(data)

    def error_received(self, exc):
        logger.warning(f"Receiver error: {exc}")

    def discard_pending(self) -> int:
        """Drop anything left over from an earlier transfer."""
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            dropped += 1
        if dropped:
            logger.debug(f"Discarded {dropped} stale datagrams")
        return dropped

    async def receive(self, timeout: float) -> bytes:
        """
        Next datagram payload.

        Raises:
            asyncio.TimeoutError: if nothing arrives within ``timeout``
        """
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)

    def close(self):
        if self.transport and not self.transport.is_closing():
            self.transport.close()


async def open_receiver(host: str = '0.0.0.0', port: int = 2022) -> DatagramReceiver:
    """Bind a receiver on the client's data port."""
    loop = asyncio.get_running_loop()
    _, receiver = await loop.create_datagram_endpoint(
        DatagramReceiver,
        local_addr=(host, port)
    )
    return receiver


def parse_size(data: bytes) -> int:
    """
    Parse a size announcement.

    Raises:
        ProtocolError: if the payload is not a non-negative decimal number
    """
    try:
        size = int(data.decode('ascii').strip())
    except (UnicodeDecodeError, ValueError):
        raise ProtocolError(f"bad size announcement: {data[:32]!r}")
    if size < 0:
        raise ProtocolError(f"negative size announcement: {size}")
    return size


async def receive_file(receiver: DatagramReceiver, dest: Path,
                       timeout: float = 5.0,
                       progress_callback: ProgressCallback = None) -> ReceiveResult:
    """
    Receive one file from the data channel.

    Reads the size announcement, then payload datagrams until the announced
    length is reached or ``timeout`` passes without a datagram.

    Args:
        receiver: Bound receiver
        dest: Where to write the file
        timeout: Maximum gap between datagrams in seconds
        progress_callback: Called after every payload datagram

    Raises:
        ProtocolError: if no size announcement arrives or it is malformed
    """
    try:
        size_data = await receiver.receive(timeout)
    except asyncio.TimeoutError:
        raise ProtocolError("no size announcement received")

    result = ReceiveResult(path=Path(dest), expected_bytes=parse_size(size_data))
    logger.info(f"Receiving {result.path.name}: {result.expected_bytes} bytes")

    async with aiofiles.open(result.path, 'wb') as f:
        while not result.complete:
            try:
                data = await receiver.receive(timeout)
            except asyncio.TimeoutError:
                result.timed_out = True
                logger.warning(f"Receive timed out after {result.received_bytes}/"
                               f"{result.expected_bytes} bytes")
                break

            await f.write(data)
            result.received_bytes += len(data)
            result.datagrams += 1

            if progress_callback:
                progress_callback(result)

    logger.info(f"Received {result.path.name}: {result.received_bytes} bytes "
                f"in {result.datagrams} datagrams")
    return result
