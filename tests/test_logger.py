"""
Tests for logger functionality.
"""

import pytest

from leadfinder.logger import StructuredLogger, get_logger, reset_logger


@pytest.fixture
def quiet_logger(tmp_path):
    return StructuredLogger(name="leadfinder-test", log_dir=tmp_path, enable_console=False)


class TestStructuredLogger:

    def test_fresh_metrics(self, quiet_logger):
        metrics = quiet_logger.get_metrics()
        assert metrics["api_calls"] == 0
        assert metrics["audits_attempted"] == 0
        assert metrics["audit_success_rate"] == 0

    def test_context_written_as_json(self, quiet_logger, tmp_path):
        quiet_logger.warning("Website audit failed", url="https://acme.com", kind="timeout")

        content = next(tmp_path.glob("leadfinder_*.log")).read_text()
        assert "Website audit failed" in content
        assert '"kind": "timeout"' in content

    def test_explicit_level(self, quiet_logger, tmp_path):
        import logging

        quiet_logger.log(logging.ERROR, "Mission failed", mission_id="m-1")

        content = next(tmp_path.glob("*.log")).read_text()
        assert "ERROR" in content
        assert "m-1" in content

    def test_audit_counters(self, quiet_logger):
        for _ in range(3):
            quiet_logger.record_audit_attempt()
        quiet_logger.record_audit_success()
        quiet_logger.record_audit_success()
        quiet_logger.record_audit_failure("timeout")

        metrics = quiet_logger.get_metrics()
        assert metrics["audits_successful"] == 2
        assert metrics["audits_failed"] == 1
        assert metrics["errors_by_type"] == {"timeout": 1}
        assert metrics["audit_success_rate"] == pytest.approx(0.667)

    def test_get_metrics_returns_copy(self, quiet_logger):
        quiet_logger.record_audit_failure("error")
        metrics = quiet_logger.get_metrics()
        metrics["errors_by_type"]["error"] = 99
        assert quiet_logger.metrics["errors_by_type"]["error"] == 1

    def test_candidate_and_api_counters(self, quiet_logger):
        quiet_logger.record_api_call()
        quiet_logger.record_candidate()
        quiet_logger.record_candidate()
        metrics = quiet_logger.get_metrics()
        assert metrics["api_calls"] == 1
        assert metrics["candidates_processed"] == 2

    def test_metrics_summary(self, quiet_logger, tmp_path):
        quiet_logger.record_audit_attempt()
        quiet_logger.record_audit_failure("error")
        quiet_logger.log_metrics_summary()

        content = next(tmp_path.glob("*.log")).read_text()
        assert "Mission Metrics" in content
        assert "error: 1" in content


class TestGlobalLogger:

    def test_singleton_and_reset(self, tmp_path):
        reset_logger()
        try:
            first = get_logger(log_dir=tmp_path, enable_console=False)
            assert get_logger() is first
            first.record_api_call()

            reset_logger()
            second = get_logger(log_dir=tmp_path, enable_console=False)
            assert second is not first
            assert second.metrics["api_calls"] == 0
        finally:
            reset_logger()
