"""Tests for progress snapshots and the progress channel."""

import queue
import threading
from unittest.mock import Mock

import pytest

from milesync.sync.progress import ProgressChannel, SyncPhase, SyncProgress


class TestSyncProgress:
    """Tests for SyncProgress."""

    def test_defaults(self):
        """Test the idle snapshot."""
        progress = SyncProgress()

        assert progress.phase is SyncPhase.IDLE
        assert progress.overall_progress == 0.0
        assert not progress.is_terminal

    def test_overall_progress(self):
        """Test the uploaded fraction."""
        progress = SyncProgress(
            phase=SyncPhase.UPLOADING, uploaded_count=25, total_to_upload=100
        )

        assert progress.overall_progress == 0.25

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"uploaded_count": -1},
            {"uploaded_count": 5, "total_to_upload": 4},
            {"current_batch": 3, "total_batches": 2},
        ],
    )
    def test_invalid_counters(self, kwargs):
        """Test counter invariants."""
        with pytest.raises(ValueError):
            SyncProgress(**kwargs)

    def test_failed_keeps_counters(self):
        """Test that failing doesn't reset progress."""
        progress = SyncProgress(
            phase=SyncPhase.UPLOADING,
            uploaded_count=50,
            total_to_upload=75,
            current_batch=2,
            total_batches=2,
        )

        failed = progress.failed("Network error")

        assert failed.is_failed and failed.is_terminal
        assert failed.error == "Network error"
        assert failed.uploaded_count == 50
        assert failed.current_batch == 2

    def test_frozen(self):
        """Test that snapshots are immutable."""
        with pytest.raises(Exception):
            SyncProgress().uploaded_count = 3


class TestProgressChannel:
    """Tests for ProgressChannel."""

    def setup_method(self):
        """Set up test fixtures."""
        self.channel = ProgressChannel()

    def test_subscriber_sees_values_in_order(self):
        """Test ordering and termination."""
        subscription = self.channel.subscribe()
        self.channel.publish(SyncProgress(phase=SyncPhase.FETCHING_SOURCE))
        self.channel.publish(SyncProgress(phase=SyncPhase.COMPLETE))

        phases = [p.phase for p in subscription]

        assert phases == [SyncPhase.FETCHING_SOURCE, SyncPhase.COMPLETE]
        assert self.channel.closed

    def test_late_subscriber_gets_latest(self):
        """Test replay of the latest snapshot to a late subscriber."""
        self.channel.publish(SyncProgress(phase=SyncPhase.FETCHING_SOURCE))
        self.channel.publish(SyncProgress(phase=SyncPhase.UPLOADING, total_to_upload=5))

        subscription = self.channel.subscribe()
        self.channel.publish(SyncProgress(phase=SyncPhase.COMPLETE, total_to_upload=5))

        phases = [p.phase for p in subscription]
        assert phases == [SyncPhase.UPLOADING, SyncPhase.COMPLETE]

    def test_subscriber_after_close_sees_terminal_once(self):
        """Test subscribing to a finished stream."""
        self.channel.publish(SyncProgress(phase=SyncPhase.FAILED, error="boom"))

        subscription = self.channel.subscribe()

        assert subscription.wait(timeout=1).error == "boom"
        assert subscription.get() is None

    def test_publish_after_close(self):
        """Test that a finished stream rejects more values."""
        self.channel.publish(SyncProgress(phase=SyncPhase.COMPLETE))

        with pytest.raises(RuntimeError):
            self.channel.publish(SyncProgress(phase=SyncPhase.UPLOADING))

    def test_listener_called_and_errors_swallowed(self):
        """Test listeners, including one that raises."""
        good = Mock()
        bad = Mock(side_effect=ValueError("listener bug"))
        self.channel.add_listener(bad)
        self.channel.add_listener(good)

        self.channel.publish(SyncProgress(phase=SyncPhase.FETCHING_SOURCE))

        good.assert_called_once()
        assert self.channel.latest.phase is SyncPhase.FETCHING_SOURCE

    def test_get_timeout(self):
        """Test that waiting on a quiet stream times out."""
        subscription = self.channel.subscribe()

        with pytest.raises(queue.Empty):
            subscription.get(timeout=0.01)

    def test_closed_subscription_stops_receiving(self):
        """Test close()."""
        subscription = self.channel.subscribe()
        subscription.close()

        self.channel.publish(SyncProgress(phase=SyncPhase.FETCHING_SOURCE))

        assert subscription.get() is None

    def test_cross_thread_delivery(self):
        """Test that a consumer on another thread sees the terminal value."""
        subscription = self.channel.subscribe()
        seen = []

        def consume():
            seen.extend(subscription)

        consumer = threading.Thread(target=consume)
        consumer.start()
        for batch in range(1, 4):
            self.channel.publish(
                SyncProgress(phase=SyncPhase.UPLOADING, current_batch=batch, total_batches=3)
            )
        self.channel.publish(
            SyncProgress(phase=SyncPhase.COMPLETE, current_batch=3, total_batches=3)
        )
        consumer.join(timeout=5)

        assert [p.current_batch for p in seen] == [1, 2, 3, 3]
        assert seen[-1].is_complete

    def test_history(self):
        """Test that every published value is recorded."""
        self.channel.publish(SyncProgress(phase=SyncPhase.FETCHING_SOURCE))
        self.channel.publish(SyncProgress(phase=SyncPhase.COMPLETE))

        assert [p.phase for p in self.channel.history] == [
            SyncPhase.FETCHING_SOURCE,
            SyncPhase.COMPLETE,
        ]
