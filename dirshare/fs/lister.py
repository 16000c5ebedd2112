"""
Directory Lister

Enumerates the immediate children of a directory. Order is whatever the
filesystem yields; nothing here sorts.
"""

import stat
import logging
from enum import Enum
from pathlib import Path
from dataclasses import dataclass
from typing import List

import aiofiles.os

logger = logging.getLogger(__name__)


class EntryKind(Enum):
    """Kind marker as it appears on the wire."""
    DIRECTORY = "<dir>"
    FILE = "<file>"


@dataclass(frozen=True)
class DirEntry:
    """One child of a listed directory."""
    kind: EntryKind
    name: str
    size_bytes: int

    @property
    def is_dir(self) -> bool:
        return self.kind == EntryKind.DIRECTORY

    def to_line(self) -> str:
        """Format as a ``<KIND>\\t<NAME>\\t<SIZE>`` reply line."""
        return f"{self.kind.value}\t{self.name}\t{self.size_bytes}"

    @classmethod
    def from_line(cls, line: str) -> 'DirEntry':
        """Parse a listing reply line."""
        kind, rest = line.split('\t', 1)
        name, size = rest.rsplit('\t', 1)
        return cls(kind=EntryKind(kind), name=name, size_bytes=int(size))


async def list_directory(path: Path) -> List[DirEntry]:
    """
    List a directory.

    Sizes are the filesystem's st_size for both files and directories.
    Entries that cannot be stat'ed (vanished, dangling or looping links,
    permission problems) are reported as empty files.

    Raises:
        OSError: if the directory itself cannot be read
    """
    entries = []
    for name in await aiofiles.os.listdir(path):
        try:
            st = await aiofiles.os.stat(path / name)
        except OSError as e:
            logger.debug(f"Could not stat {path / name} ({e}), listing as empty file")
            entries.append(DirEntry(EntryKind.FILE, name, 0))
            continue

        kind = EntryKind.DIRECTORY if stat.S_ISDIR(st.st_mode) else EntryKind.FILE
        entries.append(DirEntry(kind, name, st.st_size))

    return entries
