"""
Configuration for live-server instances.

The defaults mirror what a developer expects from a local preview server:
port 4070, no caching, live reload with a 120 ms debounce, directory
listings without dotfiles. ``merged`` layers user options over these
defaults the way an editor plugin's ``setup(opts)`` would.
"""

import copy
import logging
import os
from dataclasses import dataclass, field, fields, is_dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Union


@dataclass
class LiveReloadConfig:
    enabled: bool = True
    """Watch the root and push reload events to connected browsers."""

    inject_script: bool = True
    """Insert the client script tag into every served HTML page."""

    debounce: int = 120
    """Quiet period in milliseconds before a burst of changes fires one reload."""

    css_hot_swap: bool = True
    """Re-fetch changed stylesheets in place instead of reloading the page."""


@dataclass
class DirectoryListingConfig:
    enabled: bool = True
    show_hidden: bool = False


@dataclass
class LiveServerConfig:
    default_port: int = 4070
    open_on_start: bool = True
    headers: Dict[str, str] = field(default_factory=lambda: {"Cache-Control": "no-cache"})

    cors: Union[None, bool, str] = None
    """
    None/False disables CORS, True or "*" allows every origin, any other
    string is sent as the single allowed origin.
    """

    index_names: List[str] = field(default_factory=lambda: ["index.html", "index.htm"])
    ignore_file: str = ".liveignore"
    log_level: str = "INFO"

    live_reload: LiveReloadConfig = field(default_factory=LiveReloadConfig)
    directory_listing: DirectoryListingConfig = field(default_factory=DirectoryListingConfig)

    @property
    def cors_origin(self) -> Optional[str]:
        if self.cors is None or self.cors is False:
            return None
        if self.cors is True:
            return "*"
        return str(self.cors)

    @classmethod
    def from_env(cls) -> "LiveServerConfig":
        """
        Defaults overridden by environment variables.

        LIVESERVER_PORT       default port (4070)
        LIVESERVER_DEBOUNCE   live-reload debounce in ms (120)
        LIVESERVER_LOG_LEVEL  logging level (INFO)
        LIVESERVER_CORS       "*" or an origin; unset disables CORS
        """
        config = cls()
        config.default_port = int(os.getenv("LIVESERVER_PORT", config.default_port))
        config.live_reload.debounce = int(os.getenv("LIVESERVER_DEBOUNCE", config.live_reload.debounce))
        config.log_level = os.getenv("LIVESERVER_LOG_LEVEL", config.log_level)
        config.cors = os.getenv("LIVESERVER_CORS") or None
        return config

    def merged(self, overrides: Optional[Mapping[str, Any]] = None) -> "LiveServerConfig":
        """Return a copy with ``overrides`` deep-merged over this config.

        Nested sections accept partial mappings, e.g.
        ``{"live_reload": {"debounce": 50}}`` keeps the other live-reload
        settings. Unknown keys raise ``KeyError``.
        """
        return _merge(self, overrides or {})

    def validate(self) -> None:
        if not 0 < self.default_port < 65536:
            raise ValueError(f"Invalid port: {self.default_port}. Must be 1-65535.")

        if self.live_reload.debounce < 0:
            raise ValueError("live_reload.debounce must be >= 0")

        if not self.index_names:
            raise ValueError("index_names must name at least one file")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level}")


def _merge(base, overrides: Mapping[str, Any]):
    known = {f.name for f in fields(base)}
    changes = {}
    for key, value in overrides.items():
        if key not in known:
            raise KeyError(f"unknown option: {key}")
        current = getattr(base, key)
        if is_dataclass(current) and isinstance(value, Mapping):
            changes[key] = _merge(current, value)
        elif isinstance(current, dict) and isinstance(value, Mapping):
            changes[key] = {**current, **value}
        else:
            changes[key] = copy.deepcopy(value)
    return replace(copy.deepcopy(base), **changes)
