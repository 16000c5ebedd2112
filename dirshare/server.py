"""
File Server - Acceptor / Dispatcher

Binds the control listener and the shared data channel, then runs one
Session task per accepted connection:
- Control channel (TCP, default 2021) for commands and replies
- Data channel (UDP, default 2020) for file payload, shared by all sessions
"""

import asyncio
import logging
from typing import Optional, Set, Tuple

from .config import Config
from .session import ControlChannel, Session
from .transfer import DataChannel, FileSender, open_data_channel

logger = logging.getLogger(__name__)


class FileServer:
    """
    Serves one exported directory tree to any number of clients.

    Sessions are independent tasks; a fault in one is logged and only
    closes that connection.
    """

    def __init__(self, config: Config):
        """
        Args:
            config: Server configuration; validated by start()
        """
        self.config = config
        self.server: Optional[asyncio.AbstractServer] = None
        self.channel: Optional[DataChannel] = None
        self.sender: Optional[FileSender] = None

        self._sessions: Set[Session] = set()
        self._tasks: Set[asyncio.Task] = set()
        self._running = False

        # Statistics
        self.sessions_total = 0
        self.sessions_failed = 0
        self.transfers_completed = 0
        self.transfers_aborted = 0
        self.bytes_sent = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def control_address(self) -> Tuple[str, int]:
        """Address the control listener is bound to."""
        return self.server.sockets[0].getsockname()[:2]

    @property
    def data_address(self) -> Tuple[str, int]:
        """Address the data channel is bound to."""
        return self.channel.local_address

    async def start(self):
        """
        Validate the configuration and bind both endpoints.

        Raises:
            ConfigError: if the root is not a usable directory
            OSError: if either port cannot be bound
        """
        if self._running:
            return

        self.config.validate()

        self.channel = await open_data_channel(self.config.host, self.config.data_port)
        self.sender = FileSender(
            channel=self.channel,
            chunk_bytes=self.config.chunk_bytes,
            inter_packet_delay=self.config.inter_packet_delay,
        )

        try:
            self.server = await asyncio.start_server(
                self._handle_connection,
                self.config.host,
                self.config.control_port
            )
        except OSError:
            self.channel.close()
            raise

        self._running = True

        logger.info(f"Serving {self.config.root}")
        logger.info(f"  Control: {self.control_address}")
        logger.info(f"  Data: {self.data_address}")
        logger.info(f"  Client data port: {self.config.client_data_port}")

    async def serve_forever(self):
        """Accept connections until the listener fails or is closed."""
        if not self._running:
            await self.start()
        await self.server.serve_forever()

    async def stop(self):
        """Stop accepting, end live sessions and release the data channel."""
        if not self._running:
            return

        logger.info("Stopping file server...")
        self._running = False

        self.server.close()
        for session in list(self._sessions):
            session.channel.abort()

        # Interrupts sessions blocked in a transfer as well as in a read
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        await self.server.wait_closed()

        self.channel.close()

        stats = self.get_stats()
        logger.info(f"File server stopped. {stats['sessions_total']} sessions, "
                    f"{stats['transfers_completed']} transfers, "
                    f"{stats['bytes_sent']:,} bytes sent")

    async def _handle_connection(self, reader: asyncio.StreamReader,
                                 writer: asyncio.StreamWriter):
        """Run one session for an accepted connection."""
        channel = ControlChannel(reader, writer)
        session = Session(
            channel=channel,
            root=self.config.root,
            sender=self.sender,
            client_data_port=self.config.client_data_port,
        )
        task = asyncio.current_task()
        self._sessions.add(session)
        self._tasks.add(task)
        self.sessions_total += 1

        try:
            await session.run()
        except Exception as e:
            self.sessions_failed += 1
            logger.exception(f"Session {session.peer_label} failed: {e}")
            channel.abort()
        finally:
            self._sessions.discard(session)
            self._tasks.discard(task)
            self.transfers_completed += session.transfers_completed
            self.transfers_aborted += session.transfers_aborted
            self.bytes_sent += session.bytes_sent

    def get_stats(self) -> dict:
        """Get server statistics."""
        return {
            'root': str(self.config.root),
            'running': self._running,
            'active_sessions': len(self._sessions),
            'sessions_total': self.sessions_total,
            'sessions_failed': self.sessions_failed,
            'transfers_completed': self.transfers_completed,
            'transfers_aborted': self.transfers_aborted,
            'bytes_sent': self.bytes_sent,
        }


async def run_server(config: Config):
    """
    Run a file server (convenience function).

    Starts the server and runs until interrupted.
    """
    server = FileServer(config)

    try:
        await server.start()
        await server.serve_forever()
    finally:
        await server.stop()
