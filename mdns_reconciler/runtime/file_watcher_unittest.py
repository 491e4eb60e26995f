import os
import threading

import pytest

from mdns_reconciler.runtime.events import (
    EXIT_FAILURE,
    ReloadRequested,
    ShutdownRequested,
)
from mdns_reconciler.runtime.file_watcher import FileWatcher, stat_signature
from mdns_reconciler.services.desired_state_loader import save_file
from mdns_reconciler.test.reconciler_fixtures import make_service


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text('{"services": []}\n')
    return path


class TestFileWatcherPolling:

    def setup_method(self):
        self.events = []

    def test_unchanged_file_posts_nothing(self, config_file):
        watcher = FileWatcher(config_file, self.events.append)
        watcher.prime()

        assert watcher.poll()
        assert watcher.poll()
        assert self.events == []

    def test_content_change_posts_reload(self, config_file):
        watcher = FileWatcher(config_file, self.events.append)
        watcher.prime()

        config_file.write_text('{"services": [{"name": "web"}]}\n')

        assert watcher.poll()
        assert len(self.events) == 1
        assert isinstance(self.events[0], ReloadRequested)

    def test_changes_between_polls_coalesce(self, config_file):
        watcher = FileWatcher(config_file, self.events.append)
        watcher.prime()

        config_file.write_text('{"services": [{"name": "a"}]}\n')
        config_file.write_text('{"services": [{"name": "ab"}]}\n')
        watcher.poll()
        watcher.poll()

        assert len(self.events) == 1

    def test_atomic_replace_posts_reload(self, config_file):
        watcher = FileWatcher(config_file, self.events.append)
        watcher.prime()
        before = stat_signature(config_file)

        save_file(config_file, [make_service("web", 8080, scheme="http")])

        assert stat_signature(config_file).inode != before.inode
        assert watcher.poll()
        assert [type(e) for e in self.events] == [ReloadRequested]

    def test_removed_file_posts_failing_shutdown(self, config_file):
        watcher = FileWatcher(config_file, self.events.append)
        watcher.prime()

        config_file.unlink()

        assert not watcher.poll()
        assert len(self.events) == 1
        assert isinstance(self.events[0], ShutdownRequested)
        assert self.events[0].exit_code == EXIT_FAILURE

    def test_renamed_file_posts_failing_shutdown(self, config_file, tmp_path):
        watcher = FileWatcher(config_file, self.events.append)
        watcher.prime()

        os.rename(config_file, tmp_path / "moved.json")

        assert not watcher.poll()
        assert self.events[0].exit_code == EXIT_FAILURE

    def test_prime_requires_existing_file(self, tmp_path):
        watcher = FileWatcher(tmp_path / "missing.json", self.events.append)

        with pytest.raises(OSError):
            watcher.prime()

    def test_rejects_non_positive_interval(self, config_file):
        with pytest.raises(ValueError):
            FileWatcher(config_file, self.events.append, 0)


class TestFileWatcherThread:

    def test_background_watch_posts_reload_then_shutdown(self, config_file):
        received = []
        reloaded = threading.Event()
        shut_down = threading.Event()

        def post(event):
            received.append(event)
            if isinstance(event, ReloadRequested):
                reloaded.set()
            else:
                shut_down.set()

        errors = []
        watcher = FileWatcher(config_file, post, poll_interval_seconds=0.01)
        watcher.start(errors.append)
        try:
            config_file.write_text('{"services": [{"name": "changed"}]}\n')
            assert reloaded.wait(timeout=2.0)

            config_file.unlink()
            assert shut_down.wait(timeout=2.0)
        finally:
            watcher.stop()

        assert errors == []
        assert isinstance(received[-1], ShutdownRequested)

    def test_start_fails_on_missing_file(self, tmp_path):
        watcher = FileWatcher(tmp_path / "missing.json", lambda e: None)

        with pytest.raises(OSError):
            watcher.start(lambda e: None)
        watcher.stop()

    def test_start_keeps_primed_baseline(self, config_file):
        reloaded = threading.Event()
        watcher = FileWatcher(
            config_file, lambda e: reloaded.set(), poll_interval_seconds=0.01
        )
        watcher.prime()

        save_file(config_file, [make_service("web", 8080, scheme="http")])
        watcher.start(lambda e: None)
        try:
            assert reloaded.wait(timeout=2.0)
        finally:
            watcher.stop()
