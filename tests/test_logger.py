"""
Tests for logger.py - context rendering, log files and operation metrics.
"""

import threading

import pytest

from jobbookings.logger import OperationMetrics, StructuredLogger, get_logger, reset_logger


@pytest.fixture
def file_logger(tmp_path):
    return StructuredLogger(name="test_bookings", log_dir=tmp_path, enable_console=False)


class TestStructuredLogger:
    """Output formatting and destinations."""

    def test_log_with_context(self, file_logger, tmp_path):
        """Context kwargs should be appended as JSON."""
        file_logger.warning("Booking operation rejected", method="delete_by_id", code="NotFound")

        content = next(tmp_path.glob("*.log")).read_text()
        assert "Booking operation rejected | Context:" in content
        assert '"code": "NotFound"' in content

    def test_daily_log_file(self, file_logger, tmp_path):
        file_logger.info("Test message")

        log_files = list(tmp_path.glob("jobbookings_*.log"))
        assert len(log_files) == 1
        assert "Test message" in log_files[0].read_text()

    def test_level_filters_messages(self, tmp_path):
        logger = StructuredLogger(name="test_level", level="WARNING", log_dir=tmp_path, enable_console=False)

        logger.info("hidden")
        logger.error("shown")

        content = next(tmp_path.glob("*.log")).read_text()
        assert "hidden" not in content
        assert "shown" in content

    def test_metrics_summary(self, file_logger, tmp_path):
        file_logger.record_operation_attempt("list")
        file_logger.record_operation_failure("list", "StoreUnavailable")

        file_logger.log_metrics_summary()

        content = next(tmp_path.glob("*.log")).read_text()
        assert "Operations: 0/1 (0.0% success)" in content
        assert "list: 0/1 (0.0%)" in content
        assert "StoreUnavailable: 1" in content


class TestOperationMetrics:
    """Counters behind /api/health and the shutdown summary."""

    def test_snapshot(self):
        metrics = OperationMetrics()
        metrics.attempt("add")
        metrics.success("add")
        metrics.attempt("delete_by_index")
        metrics.failure("InvalidIndex")

        snap = metrics.snapshot()

        assert snap["attempted"] == 2
        assert snap["successful"] == 1
        assert snap["failed"] == 1
        assert snap["errors_by_code"] == {"InvalidIndex": 1}
        assert snap["by_method"]["add"]["success_rate"] == 1.0
        assert snap["by_method"]["delete_by_index"]["success_rate"] == 0.0

    def test_success_rate_rounding(self):
        metrics = OperationMetrics()
        for _ in range(3):
            metrics.attempt("update_by_index")
        metrics.success("update_by_index")
        metrics.success("update_by_index")

        assert metrics.snapshot()["by_method"]["update_by_index"]["success_rate"] == pytest.approx(0.667, rel=0.01)

    def test_snapshot_is_a_copy(self):
        metrics = OperationMetrics()
        snap = metrics.snapshot()
        metrics.failure("NotFound")

        assert snap["errors_by_code"] == {}

    def test_concurrent_updates_are_counted(self):
        metrics = OperationMetrics()

        def work():
            for _ in range(500):
                metrics.attempt("list")
                metrics.success("list")

        threads = [threading.Thread(target=work) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert metrics.snapshot()["by_method"]["list"] == {"attempts": 2000, "successes": 2000, "success_rate": 1.0}


class TestGlobalLogger:
    """Test global logger singleton."""

    def test_get_logger_singleton(self, tmp_path):
        reset_logger()

        logger1 = get_logger(log_dir=tmp_path, enable_console=False)
        logger2 = get_logger()

        assert logger1 is logger2

    def test_reset_logger(self, tmp_path):
        """reset_logger should create new instance with fresh counters."""
        reset_logger()

        logger1 = get_logger(log_dir=tmp_path, enable_console=False)
        logger1.record_operation_attempt("list")

        reset_logger()

        logger2 = get_logger(log_dir=tmp_path, enable_console=False)

        assert logger2 is not logger1
        assert logger2.get_metrics()["attempted"] == 0
