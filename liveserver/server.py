"""
One live server bound to one loopback port.

A ``ServerInstance`` owns its listening socket (an aiohttp low-level server),
its change watcher and its live-reload clients. Everything runs on the
asyncio loop that called :meth:`ServerInstance.start`; retargeting and the
feature toggles only swap attributes and the watcher, so requests already in
flight finish against whatever state they observed.
"""

import asyncio
import logging
import time
from typing import List, Optional, Set

from aiohttp import web

from .broadcast import ReloadBroadcaster
from .client import CLIENT_JS, EVENTS_PATH, SCRIPT_PATH
from .config import LiveServerConfig
from .errors import BindError, PathRejected, WatchError
from .paths import canonical_root, relative_to_root, resolve
from .responder import error_response, not_found, respond, success_headers
from .watcher import ChangeWatcher

logger = logging.getLogger(__name__)

HOST = "127.0.0.1"
ALLOWED_METHODS = ("GET", "HEAD")
SCRIPT_TYPE = "application/javascript; charset=utf-8"
# seconds stop() waits for in-flight handlers before cancelling them
SHUTDOWN_TIMEOUT = 1.0


def url_for(port: int) -> str:
    return f"http://{HOST}:{port}/"


class ServerInstance:
    def __init__(
        self,
        port: int,
        root: str,
        default_index: Optional[str] = None,
        config: Optional[LiveServerConfig] = None,
    ):
        if not 0 < port < 65536:
            raise ValueError(f"Invalid port: {port}. Must be 1-65535.")
        config = config or LiveServerConfig()

        self.port = port
        self.root = root
        self.root_real: Optional[str] = None
        self.default_index = default_index
        self.index_names: List[str] = list(config.index_names)
        self.headers = dict(config.headers)
        self.cors_origin = config.cors_origin

        self.live_enabled = config.live_reload.enabled
        self.inject_script = config.live_reload.inject_script
        self.debounce_ms = config.live_reload.debounce
        self.ignore_file = config.ignore_file

        self.dir_listing_enabled = config.directory_listing.enabled
        self.show_hidden = config.directory_listing.show_hidden

        self.broadcaster = ReloadBroadcaster(css_hot_swap=config.live_reload.css_hot_swap)
        self.watcher: Optional[ChangeWatcher] = None
        self.started_at: Optional[float] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._runner: Optional[web.ServerRunner] = None
        self._reload_tasks: Set[asyncio.Task] = set()

    def __repr__(self):
        return f"<ServerInstance port={self.port} root={self.root_real or self.root!r}>"

    @property
    def url(self) -> str:
        return url_for(self.port)

    @property
    def running(self) -> bool:
        return self._runner is not None

    @property
    def sse_clients(self):
        return self.broadcaster.clients

    @property
    def css_hot_swap(self) -> bool:
        return self.broadcaster.css_hot_swap

    @css_hot_swap.setter
    def css_hot_swap(self, enabled: bool):
        self.broadcaster.css_hot_swap = enabled

    @property
    def pending_change_path(self) -> Optional[str]:
        return self.watcher.pending_path if self.watcher else None

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        """Bind the socket and start watching.

        Raises BindError when the root does not resolve or the port cannot
        be bound; nothing stays bound in that case.
        """
        if self.running:
            return
        try:
            self.root_real = canonical_root(self.root)
        except OSError as e:
            raise BindError(self.port, f"invalid root {self.root}: {e}") from e

        self._loop = asyncio.get_running_loop()
        runner = web.ServerRunner(web.Server(self._handle), shutdown_timeout=SHUTDOWN_TIMEOUT)
        await runner.setup()
        site = web.TCPSite(runner, HOST, self.port)
        try:
            await site.start()
        except OSError as e:
            await runner.cleanup()
            raise BindError(self.port, e.strerror or str(e)) from e

        if self.live_enabled:
            try:
                self._start_watch()
            except WatchError:
                await runner.cleanup()
                raise

        self._runner = runner
        self.started_at = time.time()
        logger.info(f"Serving {self.root_real} on {self.url}")

    async def stop(self) -> None:
        """Stop watching, drop push clients and close the listener. Idempotent."""
        self._stop_watch()
        for task in list(self._reload_tasks):
            task.cancel()
        self.broadcaster.close()

        runner, self._runner = self._runner, None
        if runner is not None:
            # a client that stopped reading would otherwise hold cleanup() open
            for connection in runner.server.connections:
                if connection.transport is not None:
                    connection.transport.abort()
            await runner.cleanup()
            logger.info(f"Stopped live server on port {self.port}")

    def retarget(self, root: str, default_index: Optional[str] = None, index_names=None) -> None:
        """Serve a different root without touching the socket or push clients.

        An unresolvable ``root`` keeps the previous one.
        """
        try:
            root_real = canonical_root(root)
        except OSError as e:
            logger.warning(f"Cannot retarget port {self.port} to {root}: {e}; keeping {self.root_real}")
        else:
            self.root = root
            self.root_real = root_real
        self.default_index = default_index
        if index_names is not None:
            self.index_names = list(index_names)

        if self.running and self.live_enabled:
            self._restart_watch()

    def set_live_enabled(self, enabled: bool) -> bool:
        enabled = bool(enabled)
        if enabled == self.live_enabled:
            return enabled
        self.live_enabled = enabled
        if self.running:
            if enabled:
                self._restart_watch()
            else:
                self._stop_watch()
        return enabled

    def set_dir_listing_enabled(self, enabled: bool) -> bool:
        self.dir_listing_enabled = bool(enabled)
        return self.dir_listing_enabled

    async def reload(self, changed_path: str = "manual") -> int:
        return await self.broadcaster.reload(changed_path)

    # -- watching ----------------------------------------------------------

    def _start_watch(self) -> None:
        self._stop_watch()
        watcher = ChangeWatcher(
            self.root_real,
            self._on_change,
            debounce_ms=self.debounce_ms,
            ignore_file=self.ignore_file,
            loop=self._loop,
        )
        watcher.start()
        self.watcher = watcher

    def _restart_watch(self) -> None:
        try:
            self._start_watch()
        except WatchError as e:
            logger.warning(f"Live reload on port {self.port} is off: {e}")

    def _stop_watch(self) -> None:
        watcher, self.watcher = self.watcher, None
        if watcher is not None:
            watcher.stop()

    def _on_change(self, path: str) -> None:
        changed = relative_to_root(path, self.root_real) if path else ""
        task = self._loop.create_task(self.reload(changed))
        self._reload_tasks.add(task)
        task.add_done_callback(self._reload_tasks.discard)

    # -- requests ----------------------------------------------------------

    async def _handle(self, request: web.BaseRequest) -> web.StreamResponse:
        if request.method not in ALLOWED_METHODS:
            response = error_response(405, "Method Not Allowed")
            response.headers["Allow"] = ", ".join(ALLOWED_METHODS)
            return response

        if request.path == SCRIPT_PATH:
            response = web.Response(body=CLIENT_JS.encode(), headers=success_headers(self, SCRIPT_TYPE))
            response.force_close()
            return response
        if request.path == EVENTS_PATH:
            if request.method == "HEAD":
                return self.broadcaster.handshake_response()
            return await self.broadcaster.accept(request)

        try:
            resolved = resolve(self.root_real, request.rel_url.raw_path)
        except PathRejected as e:
            logger.debug(f"{request.method} {request.raw_path}: rejected ({e.reason})")
            return not_found()
        logger.debug(f"{request.method} {request.raw_path} -> {resolved}")
        return await respond(self, resolved, request)
