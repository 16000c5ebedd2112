"""
Shared fixtures: a small exported tree and a server bound to ephemeral ports.
"""

from contextlib import asynccontextmanager
from pathlib import Path

import pytest

from dirshare.config import Config
from dirshare.server import FileServer
from dirshare.transfer import open_receiver

HELLO = b"hello world"


@pytest.fixture
def share_root(tmp_path) -> Path:
    """root/hello.txt (11 bytes) and an empty root/sub."""
    root = tmp_path / "root"
    root.mkdir()
    (root / "hello.txt").write_bytes(HELLO)
    (root / "sub").mkdir()
    return root.resolve()


@asynccontextmanager
async def _running_server(root: Path, **overrides):
    receiver = await open_receiver('127.0.0.1', 0)
    settings = dict(
        root=root,
        host='127.0.0.1',
        control_port=0,
        data_port=0,
        client_data_port=receiver.port,
        inter_packet_delay=0.001,
    )
    settings.update(overrides)

    server = FileServer(Config(**settings))
    await server.start()
    try:
        yield server, receiver
    finally:
        await server.stop()
        receiver.close()


@pytest.fixture
def running_server():
    """Async context manager factory yielding (server, client receiver)."""
    return _running_server
