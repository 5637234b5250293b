"""
Filesystem change detection with ignore rules and debouncing.

watchdog delivers events on its observer thread; they are handed to the
event loop with ``call_soon_threadsafe`` and everything after that (ignore
matching, the debounce timer, the callback) runs on the loop.
"""

import asyncio
import logging
import os
import re
from typing import Callable, Iterable, List, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .errors import WatchError
from .paths import relative_to_root

logger = logging.getLogger(__name__)

CHANGE_EVENTS = frozenset({EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED})
# seconds the observer thread blocks per queue poll, and stop() waits for it
OBSERVER_TIMEOUT = 0.1
JOIN_TIMEOUT = 1.0


def _halt(observer) -> None:
    observer.stop()
    if observer.is_alive():
        observer.join(JOIN_TIMEOUT)


class IgnoreRules:
    """Glob-like patterns, one per line; ``*`` matches any run of characters.

    Patterns are unanchored: ``*.log`` ignores ``logs/app.log`` and
    ``node_modules`` ignores everything below such a directory.
    """

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns: List[str] = list(patterns)
        self._compiled = [
            re.compile(".*".join(re.escape(part) for part in pattern.split("*")))
            for pattern in self.patterns
        ]

    @staticmethod
    def parse(text: str) -> List[str]:
        patterns = []
        for line in text.splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                patterns.append(line)
        return patterns

    @classmethod
    def load(cls, root: str, filename: str = ".liveignore") -> "IgnoreRules":
        path = os.path.join(root, filename)
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except FileNotFoundError:
            return cls()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable {path}: {e}")
            return cls()
        return cls(cls.parse(text))

    def matches(self, *paths: str) -> bool:
        return any(regex.search(path) for regex in self._compiled for path in paths)

    def __len__(self):
        return len(self.patterns)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: "ChangeWatcher", observer, loop: asyncio.AbstractEventLoop):
        self.watcher = watcher
        self.observer = observer
        self.loop = loop

    def on_any_event(self, event):
        if event.event_type not in CHANGE_EVENTS:
            return
        # a file changing inside a directory also reports the directory as modified
        if event.is_directory and event.event_type == EVENT_TYPE_MODIFIED:
            return
        path = getattr(event, "dest_path", "") or event.src_path
        path = os.fsdecode(path)
        try:
            self.loop.call_soon_threadsafe(self.watcher.notify, path, self.observer)
        except RuntimeError:
            # loop already closed; the watch is being torn down
            logger.debug(f"Dropped change for {path} after loop shutdown")


class ChangeWatcher:
    def __init__(
        self,
        root: str,
        on_change: Callable[[str], None],
        debounce_ms: int = 120,
        ignore_file: str = ".liveignore",
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.root = root
        self.on_change = on_change
        self.debounce_ms = debounce_ms
        self.ignore_file = ignore_file
        self.ignore_rules = IgnoreRules()
        self.pending_path: Optional[str] = None
        self.recursive = False
        self._loop = loop
        self._observer = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        """Begin watching ``root``; re-reads the ignore file.

        Falls back to watching only the top-level directory when a recursive
        watch cannot be registered, and raises WatchError if neither works.
        """
        self.stop()
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self.ignore_rules = IgnoreRules.load(self.root, self.ignore_file)

        observer = Observer(timeout=OBSERVER_TIMEOUT)
        handler = _ChangeHandler(self, observer, self._loop)
        observer.start()
        try:
            observer.schedule(handler, self.root, recursive=True)
            self.recursive = True
        except OSError as e:
            logger.warning(f"Recursive watch on {self.root} failed ({e}), watching top level only")
            try:
                observer.schedule(handler, self.root, recursive=False)
            except OSError as e2:
                _halt(observer)
                raise WatchError(f"cannot watch {self.root}: {e2}") from e2
            self.recursive = False

        self._observer = observer
        logger.debug(f"Watching {self.root} ({len(self.ignore_rules)} ignore rule(s))")

    def stop(self) -> None:
        self.cancel_pending()
        observer, self._observer = self._observer, None
        if observer is not None:
            _halt(observer)
            logger.debug(f"Stopped watching {self.root}")

    def cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.pending_path = None

    def is_ignored(self, path: str) -> bool:
        return self.ignore_rules.matches(relative_to_root(path, self.root), path)

    def notify(self, path: str, observer=None) -> None:
        """Record a change and restart the debounce timer. Runs on the loop."""
        if observer is not None and observer is not self._observer:
            return
        if self.is_ignored(path):
            logger.debug(f"Ignored change: {path}")
            return

        self.pending_path = path
        if self._timer is not None:
            self._timer.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_ms / 1000, self._fire)

    def _fire(self) -> None:
        path, self.pending_path = self.pending_path, None
        self._timer = None
        self.on_change(path or "")
