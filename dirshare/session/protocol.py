"""
Control Channel Protocol

Line-oriented text over TCP, used for commands and replies.

Message Format:
```
client -> server   <COMMAND> [<ARG>]\n          exactly one line
server -> client   <LINE>\n ... <LINE>\n \n    zero or more lines, then one empty line
```

Readers accept LF or CRLF line endings; the server writes LF.
Command names are case-insensitive; tokens are separated by single spaces.
"""

import asyncio
import logging
from enum import Enum
from typing import List, Optional, Tuple, Iterable

from ..errors import ProtocolError

logger = logging.getLogger(__name__)

ENCODING = 'utf-8'
NEWLINE = '\n'

# Fixed reply tokens
CONNECTED = '连接成功'
CHANGED_PREFIX = '当前目录已更改为：'
ALREADY_AT_ROOT = '已经在根目录'
MISSING_DIRECTORY = '缺少目录参数'
UNKNOWN_DIR = 'unknown dir'
UNKNOWN_FILE = 'unknown file'
UNKNOWN_CMD = 'unknown cmd'
GOODBYE = '断开连接'
OK = 'OK'
ERROR_PREFIX = '错误: '

# Exceptions that mean the stream itself is gone
STREAM_ERRORS = (ConnectionError, asyncio.IncompleteReadError, ProtocolError)


class Command(Enum):
    """Commands understood by a session."""
    LS = "ls"
    CD = "cd"
    GET = "get"
    BYE = "bye"


def greeting(host: str, port: int) -> str:
    """First line a session sends."""
    return f"客户端IP地址:{host}:{port}>{CONNECTED}"


def parse_command(line: str) -> Tuple[str, List[str]]:
    """
    Split a command line into its lowercased name and arguments.

    Splitting is on single spaces, so "cd  x" yields an empty first argument.
    """
    tokens = line.split(' ')
    return tokens[0].lower(), tokens[1:]


def decode_line(raw: bytes) -> str:
    """Decode one received line and strip its terminator."""
    return raw.decode(ENCODING, errors='replace').rstrip('\r\n')


def encode_lines(lines: Iterable[str]) -> bytes:
    return ''.join(line + NEWLINE for line in lines).encode(ENCODING)


class ControlChannel:
    """
    Line reader/writer over one TCP connection.

    Writes are buffered until flush() (or end_reply()), so a reply goes out
    as one segment where possible.
    """

    def __init__(self, reader: asyncio.StreamReader,
                 writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer
        self._closed = False

    @property
    def remote_address(self) -> Tuple[str, int]:
        """Get remote peer address."""
        return self.writer.get_extra_info('peername')[:2]

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def read_line(self) -> Optional[str]:
        """
        Read one line.

        Returns:
            The line without its terminator, or None at end of stream

        Raises:
            ProtocolError: if the line exceeds the stream buffer limit
        """
        if self._closed:
            return None

        try:
            raw = await self.reader.readline()
        except ValueError as e:
            raise ProtocolError(f"line too long: {e}")

        if not raw:
            return None

        return decode_line(raw)

    def write_line(self, line: str = ''):
        """Queue one line for sending."""
        if self._closed:
            raise ConnectionError("Connection closed")
        self.writer.write(encode_lines([line]))

    def write_lines(self, lines: Iterable[str]):
        """Queue several lines for sending."""
        if self._closed:
            raise ConnectionError("Connection closed")
        self.writer.write(encode_lines(lines))

    async def flush(self):
        """Push queued lines to the peer."""
        await self.writer.drain()

    async def end_reply(self):
        """Terminate the current reply with an empty line and flush."""
        self.write_line('')
        await self.flush()

    async def send_line(self, line: str):
        """Write one line and flush."""
        self.write_line(line)
        await self.flush()

    async def read_reply(self) -> List[str]:
        """
        Read reply lines up to the empty terminator line.

        Raises:
            ProtocolError: if the stream ends before the terminator
        """
        lines = []
        while True:
            line = await self.read_line()
            if line is None:
                raise ProtocolError("connection closed before end of reply")
            if line == '':
                return lines
            lines.append(line)

    def abort(self):
        """Close without waiting (used on shutdown)."""
        if not self._closed:
            self._closed = True
            self.writer.close()

    async def close(self):
        """Close the connection."""
        if not self._closed:
            self._closed = True
            self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Error while closing {self.remote_address}: {e}")
