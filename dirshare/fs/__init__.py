"""
Filesystem Module - Sandboxed navigation and directory listing

Everything that touches the exported tree on behalf of a session.
"""

from .sandbox import (
    Outcome, Resolution, PARENT_TOKEN,
    canonical, is_within, resolve, resolve_file,
    resolve_async, resolve_file_async,
)
from .lister import EntryKind, DirEntry, list_directory

__all__ = [
    'Outcome',
    'Resolution',
    'PARENT_TOKEN',
    'canonical',
    'is_within',
    'resolve',
    'resolve_file',
    'resolve_async',
    'resolve_file_async',
    'EntryKind',
    'DirEntry',
    'list_directory',
]
