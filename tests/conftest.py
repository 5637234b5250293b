"""
pytest configuration and fixtures.
"""

import asyncio
import socket
from pathlib import Path
from typing import Dict

import aiohttp
import pytest

from liveserver import LiveServerConfig, ServerInstance

INDEX_HTML = "<!doctype html><html><head><title>t</title></head><body>hi</body></html>\n"
BINARY = bytes(range(256)) * 800  # 204800 bytes, three full chunks and a short one


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def make_config(**overrides) -> LiveServerConfig:
    base = LiveServerConfig().merged({"live_reload": {"debounce": 50}})
    return base.merged(overrides)


async def read_event(response: aiohttp.ClientResponse, timeout: float = 5.0) -> Dict[str, str]:
    """Read one event-stream frame and return its fields."""
    fields: Dict[str, str] = {}
    while True:
        line = await asyncio.wait_for(response.content.readline(), timeout)
        if not line:
            raise EOFError("event stream closed")
        line = line.decode().rstrip("\n")
        if not line:
            if fields:
                return fields
            continue
        name, _, value = line.partition(": ")
        fields[name] = value


async def wait_for(predicate, timeout: float = 5.0, interval: float = 0.02):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """A small site: index page, stylesheet, binary blob, nested directory and a dotfile."""
    root = tmp_path / "site"
    root.mkdir()
    (root / "index.html").write_text(INDEX_HTML)
    (root / "page.html").write_text("<html><body><p>page</p></body></html>")
    (root / "style.css").write_text("body { color: red; }")
    (root / "data.bin").write_bytes(BINARY)
    (root / ".hidden").write_text("secret")
    sub = root / "sub"
    sub.mkdir()
    (sub / "notes.txt").write_text("notes")
    return root


@pytest.fixture
def free_port() -> int:
    return find_free_port()


@pytest.fixture
async def make_instance(site):
    """Factory starting ServerInstances on free ports; all are stopped afterwards."""
    started = []

    async def factory(root=None, default_index=None, port=None, **overrides):
        server = ServerInstance(
            port or find_free_port(),
            str(root or site),
            default_index=default_index,
            config=make_config(**overrides),
        )
        await server.start()
        started.append(server)
        return server

    yield factory

    for server in started:
        await server.stop()


@pytest.fixture
async def instance(make_instance) -> ServerInstance:
    return await make_instance()


@pytest.fixture
async def session():
    async with aiohttp.ClientSession() as s:
        yield s
