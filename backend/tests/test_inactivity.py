"""
Tests for the Inactivity Tracker.

Requires Python 3.11+.
"""

import os
import threading
import time
from pathlib import Path

import pytest
from watchdog.events import FileModifiedEvent

from committer.git import GitCommitter
from committer.inactivity import NANOS_PER_SECOND, InactivityTracker, PendingPaths
from committer.strategy import DeferredCommitStrategy
from watcher.event_loop import EventLoop
from watcher.registry import WatchRegistry

THRESHOLD_NS = 600 * NANOS_PER_SECOND
ONE_MS_NS = 1_000_000
ONE_MINUTE_NS = 60 * NANOS_PER_SECOND


class FakeClock:
    """Controllable nanosecond clock."""

    def __init__(self, now_ns: int = 0) -> None:
        self.now_ns = now_ns

    def __call__(self) -> int:
        return self.now_ns


def _touch(path: Path, content: str, mtime_ns: int) -> None:
    path.write_text(content)
    os.utime(path, ns=(mtime_ns, mtime_ns))


class TestPendingPaths:
    """Test cases for the pending set."""

    def test_add_is_idempotent(self):
        """Test that inserting a present path is a no-op."""
        pending = PendingPaths()

        assert pending.add("/repo/a.txt") is True
        assert pending.add("/repo/a.txt") is False
        assert len(pending) == 1
        assert "/repo/a.txt" in pending

    def test_concurrent_add_and_discard(self):
        """Test that insertion and removal from two threads stay consistent."""
        pending = PendingPaths()
        paths = [f"/repo/{i}.txt" for i in range(500)]

        def writer() -> None:
            for p in paths:
                pending.add(p)

        def remover() -> None:
            for p in paths[::2]:
                while p not in pending:
                    time.sleep(0)
                pending.discard(p)

        threads = [threading.Thread(target=writer), threading.Thread(target=remover)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert pending.snapshot() == sorted(paths[1::2])


class TestInactivityTracker:
    """Test cases for InactivityTracker."""

    @pytest.fixture
    def clock(self) -> FakeClock:
        """Create a fake clock."""
        return FakeClock()

    @pytest.fixture
    def tracker(self, runner, clock: FakeClock) -> InactivityTracker:
        """Create a tracker with a ten minute threshold."""
        return InactivityTracker(GitCommitter(runner=runner), inactivity_period=600, clock_ns=clock)

    @pytest.fixture
    def file(self, tmp_path: Path) -> tuple[Path, int]:
        """Create a file and return it with its mtime."""
        path = tmp_path / "b.txt"
        path.write_text("b\n")
        return path, os.stat(path).st_mtime_ns

    def test_just_under_threshold_is_kept(self, tracker, clock, runner, file):
        """Test that one millisecond short of the threshold does not commit."""
        path, mtime_ns = file
        tracker.add(path)
        clock.now_ns = mtime_ns + THRESHOLD_NS - ONE_MS_NS

        assert tracker.tick() == []
        assert tracker.pending_count == 1
        assert runner.calls == []

    def test_at_threshold_commits(self, tracker, clock, runner, file):
        """Test that reaching the threshold exactly commits and removes the file."""
        path, mtime_ns = file
        tracker.add(path)
        clock.now_ns = mtime_ns + THRESHOLD_NS

        assert tracker.tick() == [str(path)]
        assert tracker.pending_count == 0
        assert runner.calls == [
            (("git", "add", str(path)), path.parent),
            (("git", "commit", "-m", "Cleanup"), path.parent),
        ]

    def test_missing_file_is_retained(self, tracker, clock, runner, tmp_path: Path):
        """Test that a file that cannot be stat'ed stays pending."""
        tracker.add(tmp_path / "deleted.txt")
        clock.now_ns = time.time_ns() + THRESHOLD_NS

        assert tracker.tick() == []
        assert tracker.pending_paths == [str(tmp_path / "deleted.txt")]
        assert runner.calls == []

    def test_bad_entry_does_not_stall_others(self, tracker, clock, file, tmp_path: Path):
        """Test that one failing path does not block the rest."""
        path, mtime_ns = file
        tracker.add(tmp_path / "deleted.txt")
        tracker.add(path)
        clock.now_ns = mtime_ns + THRESHOLD_NS

        assert tracker.tick() == [str(path)]
        assert tracker.pending_paths == [str(tmp_path / "deleted.txt")]

    def test_failed_commit_is_retained(self, make_runner, clock, file):
        """Test that a commit that cannot run is retried next tick."""
        path, mtime_ns = file
        tracker = InactivityTracker(
            GitCommitter(runner=make_runner(error=FileNotFoundError("git"))),
            inactivity_period=600,
            clock_ns=clock,
        )
        tracker.add(path)
        clock.now_ns = mtime_ns + THRESHOLD_NS

        assert tracker.tick() == []
        assert tracker.pending_count == 1

    def test_verified_commit_failure_is_retained(self, make_runner, clock, file):
        """Test that a non-zero git exit keeps the file pending when verifying."""
        path, mtime_ns = file
        tracker = InactivityTracker(
            GitCommitter(runner=make_runner(returncode=1), verify_exit_status=True),
            inactivity_period=600,
            clock_ns=clock,
        )
        tracker.add(path)
        clock.now_ns = mtime_ns + THRESHOLD_NS

        assert tracker.tick() == []
        assert tracker.pending_count == 1

    def test_change_during_commit_stays_pending(self, make_runner, clock, file):
        """Test that a file edited while its commit runs is kept for the next tick."""
        path, mtime_ns = file

        class EditingRunner(make_runner):
            def run(self, args, cwd):
                if "commit" in args:
                    path.write_text("edited during commit\n")
                    tracker.add(path)
                return super().run(args, cwd)

        runner = EditingRunner()
        tracker = InactivityTracker(GitCommitter(runner=runner), inactivity_period=600, clock_ns=clock)
        tracker.add(path)
        clock.now_ns = mtime_ns + THRESHOLD_NS

        assert tracker.tick() == [str(path)]
        assert tracker.pending_paths == [str(path)]
        assert len(runner.calls) == 2

    def test_start_ticks_immediately(self, runner, tmp_path: Path):
        """Test that the first tick runs as soon as the tracker starts."""
        path = tmp_path / "old.txt"
        _touch(path, "old\n", time.time_ns() - 2 * THRESHOLD_NS)
        tracker = InactivityTracker(GitCommitter(runner=runner), inactivity_period=600, interval=3600)
        tracker.add(path)

        with tracker:
            assert tracker.is_running
            deadline = time.monotonic() + 5.0
            while tracker.pending_count and time.monotonic() < deadline:
                time.sleep(0.01)

        assert not tracker.is_running
        assert tracker.pending_count == 0
        assert len(runner.calls) == 2

    def test_stop_leaves_pending_uncommitted(self, runner, tmp_path: Path):
        """Test that stopping does not flush pending files."""
        path = tmp_path / "fresh.txt"
        path.write_text("fresh\n")
        tracker = InactivityTracker(GitCommitter(runner=runner), inactivity_period=600, interval=3600)
        tracker.add(path)

        tracker.start()
        tracker.stop()

        assert tracker.pending_count == 1
        assert runner.calls == []


class TestDeferredEndToEnd:
    """Deferred commits driven through the event loop."""

    def test_single_commit_after_modifications_cease(self, watch_service, stub_observer, runner, tree: Path):
        """Test that repeated edits produce one commit once the file goes quiet."""
        clock = FakeClock()
        tracker = InactivityTracker(GitCommitter(runner=runner), inactivity_period=600, clock_ns=clock)
        registry = WatchRegistry(watch_service)
        registry.register_tree(tree)
        loop = EventLoop(watch_service, registry, DeferredCommitStrategy(tracker), poll_timeout=0.01)

        path = tree / "b.txt"
        start_ns = time.time_ns()

        for edit in range(3):
            edited_at = start_ns + edit * ONE_MINUTE_NS
            _touch(path, f"edit {edit}\n", edited_at)
            stub_observer.emit(FileModifiedEvent(str(path)))
            loop.process_next()

            clock.now_ns = edited_at + ONE_MINUTE_NS - ONE_MS_NS
            assert tracker.tick() == []

        last_edit = start_ns + 2 * ONE_MINUTE_NS
        clock.now_ns = last_edit + THRESHOLD_NS - ONE_MS_NS
        assert tracker.tick() == []
        assert runner.calls == []

        clock.now_ns = last_edit + THRESHOLD_NS
        assert tracker.tick() == [str(path)]

        clock.now_ns += 10 * ONE_MINUTE_NS
        assert tracker.tick() == []

        assert runner.calls == [
            (("git", "add", str(path)), tree),
            (("git", "commit", "-m", "Cleanup"), tree),
        ]
