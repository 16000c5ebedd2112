"""
Session State Machine

One Session per control connection:

    GREETING -> READY -> (READY ...) -> CLOSED

The session owns its directory cursor; nothing else reads or writes it.
Every command gets exactly one reply terminated by an empty line. Handler
failures become an error line and the session stays READY; failures of
the stream itself close the session.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

import aiofiles.os

from .protocol import (
    ControlChannel, Command, STREAM_ERRORS, greeting, parse_command,
    CHANGED_PREFIX, ALREADY_AT_ROOT, MISSING_DIRECTORY, UNKNOWN_DIR,
    UNKNOWN_FILE, UNKNOWN_CMD, GOODBYE, OK, ERROR_PREFIX,
)
from ..fs import Outcome, resolve_async, resolve_file_async, list_directory
from ..transfer import FileSender, TransferDescriptor, TransferResult

logger = logging.getLogger(__name__)


class SessionState(Enum):
    GREETING = "greeting"
    READY = "ready"
    CLOSED = "closed"


# Type for command handlers; receive the arguments after the command name
CommandHandler = Callable[[List[str]], Awaitable[None]]


def _first(args: List[str]) -> Optional[str]:
    return args[0] if args else None


class Session:
    """
    Serves one connected client.

    Args:
        channel: Control connection (owned; closed when the session ends)
        root: Canonical exported root
        sender: Shared file sender (its data channel is not owned)
        client_data_port: Port on the client host that receives payload
    """

    def __init__(self, channel: ControlChannel, root: Path,
                 sender: FileSender, client_data_port: int = 2022):
        self.channel = channel
        self.root = root
        self.cwd = root
        self.sender = sender
        self.client_data_port = client_data_port
        self.state = SessionState.GREETING
        self.peer = channel.remote_address

        self._handlers: Dict[str, CommandHandler] = {
            Command.LS.value: self._handle_ls,
            Command.CD.value: self._handle_cd,
            Command.GET.value: self._handle_get,
            Command.BYE.value: self._handle_bye,
        }

        # Statistics
        self.commands_handled = 0
        self.transfers_completed = 0
        self.transfers_aborted = 0
        self.bytes_sent = 0

    @property
    def peer_label(self) -> str:
        return f"{self.peer[0]}:{self.peer[1]}"

    async def run(self):
        """Drive the session until ``bye``, end of stream or a stream error."""
        logger.info(f"Session opened for {self.peer_label}")

        try:
            self.channel.write_line(greeting(*self.peer))
            await self.channel.end_reply()
            self.state = SessionState.READY

            while self.state == SessionState.READY:
                line = await self.channel.read_line()
                if line is None:
                    logger.debug(f"{self.peer_label} closed the connection")
                    break
                await self.handle_line(line)

        except STREAM_ERRORS as e:
            logger.info(f"Session {self.peer_label} lost: {e}")
        finally:
            self.state = SessionState.CLOSED
            await self.channel.close()
            logger.info(f"Session closed for {self.peer_label} "
                        f"({self.commands_handled} commands)")

    async def handle_line(self, line: str):
        """Execute one command line and send its reply."""
        logger.debug(f"{self.peer_label} > {line}")
        name, args = parse_command(line)

        try:
            if name:
                handler = self._handlers.get(name)
                if handler:
                    await handler(args)
                else:
                    self.channel.write_line(UNKNOWN_CMD)
        except STREAM_ERRORS:
            raise
        except Exception as e:
            logger.warning(f"Command {line!r} from {self.peer_label} failed: {e}")
            self.channel.write_line(f"{ERROR_PREFIX}{e}")

        self.commands_handled += 1
        await self.channel.end_reply()

    # === Command handlers ===

    async def _handle_ls(self, args: List[str]):
        entries = await list_directory(self.cwd)
        self.channel.write_lines(entry.to_line() for entry in entries)

    async def _handle_cd(self, args: List[str]):
        resolution = await resolve_async(self.root, self.cwd, _first(args))

        if resolution.outcome == Outcome.CHANGED:
            self.cwd = resolution.cwd
            self.channel.write_line(f"{CHANGED_PREFIX}{self.cwd}")
        elif resolution.outcome == Outcome.AT_ROOT:
            self.channel.write_line(ALREADY_AT_ROOT)
        elif resolution.outcome == Outcome.MISSING_ARGUMENT:
            self.channel.write_line(MISSING_DIRECTORY)
        else:
            self.channel.write_line(UNKNOWN_DIR)

    async def _handle_get(self, args: List[str]):
        path = await resolve_file_async(self.root, self.cwd, _first(args))
        if path is None:
            self.channel.write_line(UNKNOWN_FILE)
            return

        st = await aiofiles.os.stat(path)
        descriptor = TransferDescriptor(
            absolute_path=path,
            length_bytes=st.st_size,
            dest_addr=(self.peer[0], self.client_data_port),
        )

        # The client starts listening once it sees OK
        self.channel.write_lines([OK, f"{path}\t{descriptor.length_bytes}"])
        await self.channel.flush()

        result = await self.sender.send(descriptor)
        self._record(result)

    def _record(self, result: TransferResult):
        if result.completed:
            self.transfers_completed += 1
        else:
            self.transfers_aborted += 1
        self.bytes_sent += result.bytes_sent

    async def _handle_bye(self, args: List[str]):
        self.channel.write_line(GOODBYE)
        self.state = SessionState.CLOSED
