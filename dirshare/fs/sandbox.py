"""
Path Sandbox

Maps a session's current directory plus a navigation token to a new
directory, refusing anything that would leave the exported root.

Design Decision: Confinement Check
==================================

Options Considered:
1. Reject tokens containing ".." or "/"
   - Easy to reason about
   - Misses symlinks pointing out of the tree
   - Forbids harmless paths like "a/b"

2. Lexical normalisation (os.path.normpath) + prefix check
   - No filesystem access
   - Still fooled by symlinks

3. Canonicalisation (realpath) + component-wise prefix check
   - Follows symlinks the way the kernel will when the file is opened
   - Needs the filesystem, but only for the candidate path

Decision: Canonicalise the candidate and require the root to be the
candidate itself or one of its ancestors. The comparison is done on path
components (Path.parents), never on string prefixes, so "/srv/share2"
is not accepted as being inside "/srv/share".
"""

import os
from enum import Enum
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

import aiofiles.os

# Token that moves one level up
PARENT_TOKEN = ".."


class Outcome(Enum):
    """Result kinds of a navigation request."""
    CHANGED = "changed"
    AT_ROOT = "at_root"
    MISSING_ARGUMENT = "missing_argument"
    UNKNOWN_DIR = "unknown_dir"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolve(); ``cwd`` is the directory the session should now use."""
    outcome: Outcome
    cwd: Path

    @property
    def changed(self) -> bool:
        return self.outcome == Outcome.CHANGED


def canonical(path: Path) -> Path:
    """Absolute path with every symlink and '..' resolved."""
    return Path(os.path.realpath(path))


def is_within(root: Path, path: Path) -> bool:
    """True if ``path`` is ``root`` or a descendant of it (both canonical)."""
    return path == root or root in path.parents


def resolve(root: Path, cwd: Path, token: Optional[str]) -> Resolution:
    """
    Resolve a ``cd`` token against the current directory.

    Args:
        root: Canonical exported root
        cwd: Canonical current directory (root or below)
        token: Navigation token; None or '' means it was not given

    Returns:
        Resolution; ``cwd`` is unchanged unless the outcome is CHANGED
    """
    if not token:
        return Resolution(Outcome.MISSING_ARGUMENT, cwd)

    if token == PARENT_TOKEN:
        if cwd == root:
            return Resolution(Outcome.AT_ROOT, cwd)
        return Resolution(Outcome.CHANGED, cwd.parent)

    try:
        candidate = canonical(cwd / token)
        is_dir = candidate.is_dir()
    except (OSError, ValueError):
        # Embedded NUL bytes, overlong names, loops
        return Resolution(Outcome.UNKNOWN_DIR, cwd)

    if not is_dir or not is_within(root, candidate):
        return Resolution(Outcome.UNKNOWN_DIR, cwd)

    return Resolution(Outcome.CHANGED, candidate)


def resolve_file(root: Path, cwd: Path, name: Optional[str]) -> Optional[Path]:
    """
    Resolve a ``get`` argument to a regular path inside the root.

    Returns:
        Canonical path if it exists, is not a directory and stays inside
        the root; None otherwise
    """
    if not name:
        return None

    try:
        candidate = canonical(cwd / name)
        if not candidate.exists() or candidate.is_dir():
            return None
    except (OSError, ValueError):
        return None

    if not is_within(root, candidate):
        return None

    return candidate


# Executor-backed variants for the event loop; realpath and stat block
resolve_async = aiofiles.os.wrap(resolve)
resolve_file_async = aiofiles.os.wrap(resolve_file)
