"""
Server-sent events fan-out for live reload.

Each connected browser holds one long-lived ``text/event-stream`` response.
The broadcaster writes frames to all of them; a client whose write fails is
dropped without disturbing delivery to the others.
"""

import asyncio
import json
import logging
import time
from typing import Optional, Set

from aiohttp import web

from .mime import is_stylesheet

logger = logging.getLogger(__name__)

RETRY_MS = 1000
POLL_INTERVAL = 1.0

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Access-Control-Allow-Origin": "*",
}


class SSEClient:
    def __init__(self, request: web.BaseRequest, response: web.StreamResponse):
        self.request = request
        self.response = response
        self.closed = asyncio.Event()

    @property
    def connected(self) -> bool:
        transport = self.request.transport
        return not self.closed.is_set() and transport is not None and not transport.is_closing()

    @property
    def peer(self) -> str:
        return str(self.request.remote)


def format_event(event: str, payload: str) -> bytes:
    return f"event: {event}\ndata: {payload}\n\n".encode()


class ReloadBroadcaster:
    def __init__(self, css_hot_swap: bool = False):
        self.clients: Set[SSEClient] = set()
        self.css_hot_swap = css_hot_swap

    def handshake_response(self) -> web.Response:
        """Push-channel headers with no stream behind them, for HEAD."""
        response = web.Response(status=200, headers=SSE_HEADERS)
        response.force_close()
        return response

    async def accept(self, request: web.BaseRequest) -> web.StreamResponse:
        """Open the push channel and hold it until the peer goes away."""
        response = web.StreamResponse(status=200, headers=SSE_HEADERS)
        await response.prepare(request)
        await response.write(f"retry: {RETRY_MS}\n\n".encode())

        client = SSEClient(request, response)
        self.clients.add(client)
        logger.debug(f"Live-reload client connected from {client.peer} ({len(self.clients)} open)")
        try:
            while client.connected:
                try:
                    await asyncio.wait_for(client.closed.wait(), timeout=POLL_INTERVAL)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._drop(client)
        response.force_close()
        return response

    async def broadcast(self, event: str, payload: str = "{}") -> int:
        """Send one frame to every client; returns how many received it."""
        frame = format_event(event, payload)
        delivered = 0
        for client in list(self.clients):
            if not client.connected:
                self._drop(client)
                continue
            try:
                await client.response.write(frame)
            except (OSError, RuntimeError) as e:
                logger.debug(f"Dropping live-reload client {client.peer}: {e}")
                self._drop(client)
            else:
                delivered += 1
        return delivered

    async def reload(self, changed_path: Optional[str] = "") -> int:
        path = changed_path or ""
        event = "css" if self.css_hot_swap and is_stylesheet(path) else "reload"
        payload = json.dumps({"ts": int(time.time()), "path": path})
        delivered = await self.broadcast(event, payload)
        logger.info(f"Sent {event} for {path or '(unknown)'} to {delivered} client(s)")
        return delivered

    def close(self) -> None:
        """Release every held connection."""
        for client in list(self.clients):
            self._drop(client)

    def _drop(self, client: SSEClient) -> None:
        client.closed.set()
        self.clients.discard(client)
