"""
File Client

Reference client for the control and data channels. Reads replies up to
the terminator line instead of polling for buffered bytes, so it never
desynchronises from the server.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from .errors import ProtocolError
from .fs import DirEntry
from .session.protocol import ControlChannel, CONNECTED, OK
from .transfer import DatagramReceiver, ReceiveResult, open_receiver, receive_file
from .transfer.receiver import ProgressCallback

logger = logging.getLogger(__name__)


class FileClient:
    """
    One connection to a file server.

    Usage:
        client = FileClient('127.0.0.1', 2021)
        await client.connect()
        entries = await client.list()
        await client.download('report.pdf', Path('report.pdf'))
        await client.bye()
    """

    def __init__(self, host: str, port: int, data_port: int = 2022,
                 receiver: Optional[DatagramReceiver] = None,
                 receive_timeout: float = 5.0):
        """
        Args:
            host: Server host
            port: Server control port
            data_port: Local port to receive payload on (ignored if receiver given)
            receiver: Already bound receiver to use instead of binding one
            receive_timeout: Maximum gap between payload datagrams
        """
        self.host = host
        self.port = port
        self.data_port = data_port
        self.receive_timeout = receive_timeout

        self.channel: Optional[ControlChannel] = None
        self.receiver = receiver
        self._owns_receiver = receiver is None
        self.greeting: List[str] = []
        self.last_reply: List[str] = []

    @property
    def is_connected(self) -> bool:
        return self.channel is not None and not self.channel.is_closed

    async def connect(self, timeout: float = 10.0):
        """
        Connect and consume the greeting.

        Raises:
            ProtocolError: if the greeting does not report success
        """
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(self.host, self.port),
            timeout=timeout
        )
        self.channel = ControlChannel(reader, writer)

        if self.receiver is None:
            self.receiver = await open_receiver('0.0.0.0', self.data_port)

        self.greeting = await self.channel.read_reply()
        if not any(CONNECTED in line for line in self.greeting):
            await self.close()
            raise ProtocolError(f"unexpected greeting: {self.greeting}")

        logger.info(f"Connected to {self.host}:{self.port}")

    async def read_reply(self) -> List[str]:
        """Read one reply (blocks until the terminator line)."""
        return await self.channel.read_reply()

    async def command(self, line: str) -> List[str]:
        """Send one command line and return its reply lines."""
        if not self.is_connected:
            raise ConnectionError("Not connected")
        await self.channel.send_line(line)
        self.last_reply = await self.channel.read_reply()
        return self.last_reply

    async def list(self) -> List[DirEntry]:
        """List the server-side current directory."""
        lines = await self.command('ls')
        entries = []
        for line in lines:
            try:
                entries.append(DirEntry.from_line(line))
            except ValueError:
                # Error replies share the channel with listing rows
                raise ProtocolError(line)
        return entries

    async def cd(self, name: str) -> List[str]:
        """Change the server-side current directory."""
        return await self.command(f'cd {name}')

    async def download(self, name: str, dest: Path,
                       progress_callback: ProgressCallback = None) -> Optional[ReceiveResult]:
        """
        Fetch a file.

        Returns:
            ReceiveResult, or None if the server refused the request
        """
        self.receiver.discard_pending()

        lines = await self.command(f'get {name}')
        if not lines or lines[0] != OK:
            logger.warning(f"Server refused get {name}: {lines}")
            return None

        return await receive_file(
            self.receiver,
            Path(dest),
            timeout=self.receive_timeout,
            progress_callback=progress_callback,
        )

    async def bye(self) -> List[str]:
        """End the session and close the connection."""
        try:
            return await self.command('bye')
        finally:
            await self.close()

    async def close(self):
        """Close the control connection and, if owned, the receiver."""
        if self.channel:
            await self.channel.close()
        if self.receiver and self._owns_receiver:
            self.receiver.close()
            self.receiver = None
