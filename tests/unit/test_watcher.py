"""
Unit tests for change detection, ignore rules and debouncing.
"""

import asyncio

from watchdog.events import DirModifiedEvent, FileClosedEvent, FileModifiedEvent, FileMovedEvent

from liveserver.watcher import ChangeWatcher, IgnoreRules, _ChangeHandler


class TestIgnoreRules:
    def test_parse_skips_blank_and_comments(self):
        text = "# build output\n\n*.log\n  dist/  \n#node_modules\n"
        assert IgnoreRules.parse(text) == ["*.log", "dist/"]

    def test_star_matches_any_run(self):
        rules = IgnoreRules(["*.log"])
        assert rules.matches("debug.log")
        assert rules.matches("logs/app.log")
        assert not rules.matches("index.html")

    def test_unanchored_substring(self):
        rules = IgnoreRules(["node_modules"])
        assert rules.matches("node_modules/pkg/index.js")
        assert rules.matches("/srv/site/node_modules")

    def test_regex_characters_are_literal(self):
        rules = IgnoreRules(["a+b.(tmp)"])
        assert rules.matches("x/a+b.(tmp)")
        assert not rules.matches("aab.tmp")

    def test_load_missing_file(self, tmp_path):
        assert len(IgnoreRules.load(str(tmp_path))) == 0

    def test_load_file(self, tmp_path):
        (tmp_path / ".liveignore").write_text("*.log\n# comment\n")
        assert IgnoreRules.load(str(tmp_path)).patterns == ["*.log"]


class TestDebounce:
    async def test_burst_fires_once_after_last_change(self, tmp_path):
        """Ten changes 10 ms apart with a 120 ms debounce give exactly one firing."""
        loop = asyncio.get_running_loop()
        fired = []
        watcher = ChangeWatcher(str(tmp_path), lambda p: fired.append((p, loop.time())), debounce_ms=120)

        last = None
        for i in range(10):
            watcher.notify(str(tmp_path / f"f{i}.txt"))
            last = loop.time()
            await asyncio.sleep(0.01)

        await asyncio.sleep(0.3)

        assert len(fired) == 1
        path, at = fired[0]
        assert path.endswith("f9.txt")
        assert at - last >= 0.11
        assert watcher.pending_path is None

    async def test_pending_path_tracks_latest(self, tmp_path):
        watcher = ChangeWatcher(str(tmp_path), lambda p: None, debounce_ms=1000)
        watcher.notify(str(tmp_path / "a.txt"))
        watcher.notify(str(tmp_path / "b.txt"))
        assert watcher.pending_path.endswith("b.txt")
        watcher.cancel_pending()
        assert watcher.pending_path is None

    async def test_ignored_change_has_no_effect(self, tmp_path):
        fired = []
        watcher = ChangeWatcher(str(tmp_path), fired.append, debounce_ms=10)
        watcher.ignore_rules = IgnoreRules(["*.log"])

        watcher.notify(str(tmp_path / "server.log"))
        await asyncio.sleep(0.05)

        assert fired == []
        assert watcher.pending_path is None

    async def test_stop_cancels_pending_timer(self, tmp_path):
        fired = []
        watcher = ChangeWatcher(str(tmp_path), fired.append, debounce_ms=30)
        watcher.notify(str(tmp_path / "a.txt"))
        watcher.stop()
        await asyncio.sleep(0.08)
        assert fired == []

    async def test_notification_from_stale_observer_dropped(self, tmp_path):
        fired = []
        watcher = ChangeWatcher(str(tmp_path), fired.append, debounce_ms=10)
        watcher.notify(str(tmp_path / "a.txt"), observer=object())
        await asyncio.sleep(0.05)
        assert fired == []


class TestChangeHandler:
    """Which watchdog events count as changes."""

    class Recorder:
        def __init__(self):
            self.paths = []

        def notify(self, path, observer=None):
            self.paths.append(path)

    class ImmediateLoop:
        def call_soon_threadsafe(self, callback, *args):
            callback(*args)

    def make_handler(self):
        recorder = self.Recorder()
        return _ChangeHandler(recorder, None, self.ImmediateLoop()), recorder

    def test_file_modification_forwarded(self):
        handler, recorder = self.make_handler()
        handler.on_any_event(FileModifiedEvent("/site/a.html"))
        assert recorder.paths == ["/site/a.html"]

    def test_directory_modification_skipped(self):
        handler, recorder = self.make_handler()
        handler.on_any_event(DirModifiedEvent("/site"))
        assert recorder.paths == []

    def test_close_events_skipped(self):
        handler, recorder = self.make_handler()
        handler.on_any_event(FileClosedEvent("/site/a.html"))
        assert recorder.paths == []

    def test_move_reports_destination(self):
        handler, recorder = self.make_handler()
        handler.on_any_event(FileMovedEvent("/site/.a.html.swp", "/site/a.html"))
        assert recorder.paths == ["/site/a.html"]


class TestFilesystem:
    """Real watchdog observer on a temporary directory."""

    async def test_change_detected_and_ignore_file_respected(self, tmp_path):
        (tmp_path / ".liveignore").write_text("*.log\n")
        fired = []
        watcher = ChangeWatcher(str(tmp_path), fired.append, debounce_ms=50)
        watcher.start()
        try:
            assert watcher.running
            assert watcher.ignore_rules.patterns == ["*.log"]

            (tmp_path / "debug.log").write_text("noise")
            await asyncio.sleep(1.0)
            assert fired == []

            (tmp_path / "page.html").write_text("<p>new</p>")
            for _ in range(100):
                if fired:
                    break
                await asyncio.sleep(0.05)
            assert fired
            assert fired[-1].endswith("page.html")
        finally:
            watcher.stop()
        assert not watcher.running

    async def test_stop_joins_observer_thread(self, tmp_path):
        watcher = ChangeWatcher(str(tmp_path), lambda path: None)
        watcher.start()
        observer = watcher._observer
        assert observer.is_alive()

        watcher.stop()

        assert not observer.is_alive()
