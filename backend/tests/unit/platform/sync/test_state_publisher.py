"""Tests for SyncStatePublisher."""

from unittest.mock import MagicMock

from revtrail.core.shared_models import SyncJobStatus
from revtrail.platform.sync.state_publisher import SyncStatePublisher
from revtrail.schemas.sync_job import SyncJob


def running_job():
    """Job halfway through four targets."""
    return SyncJob(
        batch_size=2,
        total_targets=4,
        processed_count=2,
        succeeded_with_history_count=1,
        succeeded_without_history_count=1,
        new_history_count=1,
    )


def test_progress_update_mirrors_job():
    """Test the snapshot handed to observers."""
    observer = MagicMock()
    publisher = SyncStatePublisher(MagicMock(), [observer])

    publisher.publish_progress(running_job(), 1, 2)

    update = observer.on_progress.call_args.args[0]
    assert update.batch_number == 1
    assert update.total_batches == 2
    assert update.processed == 2
    assert update.total == 4
    assert update.with_history == 1
    assert update.without_history == 1
    assert update.errors == 0
    assert update.new_histories == 1
    assert update.percentage == 50
    assert update.status == SyncJobStatus.RUNNING


def test_failing_observer_is_logged_and_skipped():
    """Test that one broken observer does not starve the others."""
    logger = MagicMock()
    broken = MagicMock()
    broken.on_progress.side_effect = RuntimeError("boom")
    healthy = MagicMock()
    publisher = SyncStatePublisher(logger, [broken])
    publisher.add_observer(healthy)

    publisher.publish_progress(running_job(), 1, 2)

    healthy.on_progress.assert_called_once()
    logger.error.assert_called_once()


def test_status_line_interval():
    """Test that status lines are logged every N batches and on the last one."""
    logger = MagicMock()
    publisher = SyncStatePublisher(logger, status_log_interval=2)
    job = running_job()

    for batch in range(1, 6):
        publisher.publish_progress(job, batch, 5)

    assert logger.info.call_count == 3


def test_completion_logs_failure():
    """Test the summary of a failed job."""
    logger = MagicMock()
    job = running_job()
    job.status = SyncJobStatus.FAILED
    job.error = "Session credentials expired (HTTP 401). Re-authenticate."
    observer = MagicMock()

    SyncStatePublisher(logger, [observer]).publish_completion(job, 1, 2)

    assert observer.on_progress.call_args.args[0].error == job.error
    logger.error.assert_called_once()
    logger.info.assert_not_called()
