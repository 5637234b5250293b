"""Local static file server with live reload over server-sent events."""

from .config import DirectoryListingConfig, LiveReloadConfig, LiveServerConfig
from .errors import BindError, InstanceNotFound, LiveServerError, PathRejected, WatchError
from .registry import InstanceRegistry, resolve_target
from .server import ServerInstance

__version__ = "0.1.0"

__all__ = [
    "BindError",
    "DirectoryListingConfig",
    "InstanceNotFound",
    "InstanceRegistry",
    "LiveReloadConfig",
    "LiveServerConfig",
    "LiveServerError",
    "PathRejected",
    "ServerInstance",
    "WatchError",
    "resolve_target",
]
