"""
File Sender

Design Decision: Data Channel Framing
=====================================

Options Considered:
1. Sequence-numbered chunks with ACK/NACK
   - Reliable, but a different protocol from what deployed clients speak

2. Header per datagram (offset + length)
   - Lets the receiver reorder
   - Still a wire change

3. Bare payload after a size announcement
   - What existing clients expect
   - No detection of loss, reordering or duplication

Decision: Bare payload
- Datagram 1: decimal ASCII file length, no newline
- Datagrams 2..n: raw file bytes, one read of up to chunk_bytes each
- No terminator; the receiver counts bytes up to the announced length

Pacing: the sender sleeps inter_packet_delay after every payload datagram
so a burst does not overrun the receiver's socket buffer on loopback/LAN.
"""

import asyncio
import logging
import time
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Tuple

import aiofiles

from .channel import DataChannel
from ..errors import DatagramSendError

logger = logging.getLogger(__name__)

# Default payload size per datagram
CHUNK_BYTES = 2048


@dataclass(frozen=True)
class TransferDescriptor:
    """One pending ``get``: what to send and where."""
    absolute_path: Path
    length_bytes: int
    dest_addr: Tuple[str, int]


@dataclass
class TransferResult:
    """What actually went out for one transfer."""
    descriptor: TransferDescriptor
    datagrams_sent: int = 0
    bytes_sent: int = 0
    completed: bool = False
    error: Optional[str] = None
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    @property
    def elapsed_seconds(self) -> float:
        end = self.end_time or time.time()
        return end - self.start_time


def encode_size(length_bytes: int) -> bytes:
    """Payload of the size announcement datagram."""
    return str(length_bytes).encode('ascii')


class FileSender:
    """
    Pushes one file over the shared data channel.

    Stateless between transfers; a single instance can serve every session.
    """

    def __init__(self, channel: DataChannel, chunk_bytes: int = CHUNK_BYTES,
                 inter_packet_delay: float = 0.01):
        """
        Args:
            channel: Shared data channel (not owned)
            chunk_bytes: Maximum payload per datagram
            inter_packet_delay: Seconds to wait after each payload datagram
        """
        self.channel = channel
        self.chunk_bytes = chunk_bytes
        self.inter_packet_delay = inter_packet_delay

    async def send(self, descriptor: TransferDescriptor) -> TransferResult:
        """
        Announce the size, then stream the file in chunk_bytes datagrams.

        Datagram errors abort the transfer and are reported in the result.
        Errors reading the file propagate to the caller.
        """
        result = TransferResult(descriptor=descriptor)
        dest = descriptor.dest_addr

        logger.info(f"Sending {descriptor.absolute_path} ({descriptor.length_bytes} bytes) "
                    f"to {dest[0]}:{dest[1]}")

        try:
            async with aiofiles.open(descriptor.absolute_path, 'rb') as f:
                self.channel.send(encode_size(descriptor.length_bytes), dest)

                while True:
                    data = await f.read(self.chunk_bytes)
                    if not data:
                        break

                    await self.channel.drain()
                    self.channel.send(data, dest)
                    result.datagrams_sent += 1
                    result.bytes_sent += len(data)
                    logger.debug(f"Sent {len(data)} bytes to {dest[0]}:{dest[1]}")

                    await asyncio.sleep(self.inter_packet_delay)

        except DatagramSendError as e:
            result.error = str(e)
            result.end_time = time.time()
            logger.error(f"Transfer of {descriptor.absolute_path} aborted after "
                         f"{result.bytes_sent} bytes: {e}")
            return result

        result.completed = True
        result.end_time = time.time()
        logger.info(f"Sent {descriptor.absolute_path.name}: {result.datagrams_sent} datagrams, "
                    f"{result.bytes_sent:,} bytes in {result.elapsed_seconds:.2f}s")
        return result
