"""Port-keyed collection of running live servers."""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import LiveServerConfig
from .errors import InstanceNotFound
from .server import ServerInstance

logger = logging.getLogger(__name__)


def resolve_target(target=None) -> Tuple[str, Optional[str]]:
    """Split a path into (root, default index).

    A file is served from its directory with the file itself as the page
    for ``/``; a directory is served as is.
    """
    path = Path(target or os.getcwd()).expanduser().absolute()
    if path.is_file():
        return str(path.parent), str(path)
    return str(path), None


class InstanceRegistry:
    """Keeps at most one :class:`ServerInstance` per port."""

    def __init__(self, config: Optional[LiveServerConfig] = None):
        self.config = config or LiveServerConfig()
        self.servers: Dict[int, ServerInstance] = {}

    def __len__(self):
        return len(self.servers)

    def __contains__(self, port):
        return port in self.servers

    def get(self, port: int) -> Optional[ServerInstance]:
        return self.servers.get(port)

    def ports(self) -> List[int]:
        return sorted(self.servers)

    def require(self, port: int) -> ServerInstance:
        try:
            return self.servers[port]
        except KeyError:
            raise InstanceNotFound(port) from None

    async def start(self, port: int, target=None) -> ServerInstance:
        """Start a server on ``port``, or retarget the one already there.

        BindError from a fresh start propagates and leaves the registry
        unchanged.
        """
        root, index = resolve_target(target)
        existing = self.servers.get(port)
        if existing is not None:
            existing.retarget(root, index)
            suffix = f" (index {os.path.basename(index)})" if index else ""
            logger.info(f"LiveServer {port} retargeted to {existing.root_real}{suffix}")
            return existing

        instance = ServerInstance(port, root, default_index=index, config=self.config)
        await instance.start()
        self.servers[port] = instance
        return instance

    async def stop(self, port: int) -> bool:
        instance = self.servers.pop(port, None)
        if instance is None:
            logger.warning(f"No live-server instance on port {port}")
            return False
        await instance.stop()
        return True

    async def stop_all(self) -> None:
        for port in self.ports():
            await self.stop(port)

    async def force_reload(self, port: int) -> int:
        return await self.require(port).reload("manual")

    def toggle_live_reload(self, port: int) -> bool:
        instance = self.require(port)
        enabled = instance.set_live_enabled(not instance.live_enabled)
        logger.info(f"Live-reload {'ENABLED' if enabled else 'DISABLED'} on {port}")
        return enabled

    def toggle_dir_listing(self, port: int) -> bool:
        instance = self.require(port)
        enabled = instance.set_dir_listing_enabled(not instance.dir_listing_enabled)
        logger.info(f"Directory listing {'ENABLED' if enabled else 'DISABLED'} on {port}")
        return enabled
