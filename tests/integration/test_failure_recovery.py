"""
Failure Recovery Integration Tests

Tests that a failing task is contained: sibling tasks complete, the run is
reported as failed and shared sinks are closed.
"""

import logging
from unittest.mock import patch

import pytest

from ldifcompare.config import CompareConfig, MatchKeyPair
from ldifcompare.exceptions import ConfigurationError, SinkIOError
from ldifcompare.reconciliation.coordinator import CompareCoordinator

TIMESTAMP = "2024-01-01 000000"


@pytest.fixture
def inputs(write_ldif):
    left = write_ldif("left.ldif", "dn: cn=x\na: 1\nuid: 1\n\ndn: cn=y\nuid: 2\n")
    right = write_ldif("right.ldif", "dn: cn=x\na: 2\nuid: 1\n\ndn: cn=z\nuid: 3\n")
    return left, right


@pytest.mark.integration
class TestFailureRecovery:
    """Integration tests for failure scenarios."""

    def test_failing_report_task_leaves_siblings_intact(self, inputs, output_dir, metrics):
        """Test one failing report task does not stop the others."""
        from ldifcompare.reconciliation import tasks
        original = tasks.attribute_diff_task

        def flaky(direction, *args, **kwargs):
            if direction.value == "reverse":
                raise SinkIOError("disk full")
            return original(direction, *args, **kwargs)

        config = CompareConfig(*inputs, output_dir=output_dir, match_attributes=MatchKeyPair("uid"),
                               generate_delete=True)

        with patch("ldifcompare.reconciliation.coordinator.attribute_diff_task", side_effect=flaky):
            result = CompareCoordinator(config, metrics, timestamp=TIMESTAMP).run()

        assert result.status == "failed"
        assert result.task("diff-reverse").status == "failed"
        assert "disk full" in result.task("diff-reverse").error
        for name in ("diff-forward", "non-match-forward", "non-match-reverse"):
            assert result.task(name).ok

        forward = (output_dir / f"{TIMESTAMP}-change_records.txt").read_text(encoding="utf-8")
        assert "replace: a\na: 2\n-" in forward
        assert (output_dir / f"{TIMESTAMP}-delete.ldif").read_text(encoding="utf-8").count("changetype: delete") == 1
        assert metrics.get_value("task_failures_total", {"phase": "report", "task": "diff-reverse"}) == 1

    def test_failure_is_logged_with_traceback(self, inputs, output_dir, caplog):
        config = CompareConfig(*inputs, output_dir=output_dir)

        with patch("ldifcompare.reconciliation.coordinator.identity_task", side_effect=RuntimeError("boom")):
            with caplog.at_level(logging.ERROR, logger="ldifcompare"):
                result = CompareCoordinator(config, timestamp=TIMESTAMP).run()

        assert result.status == "failed"
        failures = [r for r in caplog.records if "boom" in r.getMessage()]
        assert len(failures) == 2
        assert all(r.exc_info for r in failures)

    def test_ingestion_failure_skips_report_phase(self, inputs, output_dir):
        """Test no report is written when a snapshot cannot be read."""
        config = CompareConfig(*inputs, output_dir=output_dir)
        coordinator = CompareCoordinator(config, timestamp=TIMESTAMP)
        inputs[1].unlink()

        with patch("ldifcompare.config.CompareConfig.validate"):
            result = coordinator.run()

        assert result.status == "failed"
        assert result.task("ingest-right").status == "failed"
        assert "StreamIOError" in result.task("ingest-right").error
        assert result.task("ingest-left").ok
        assert [task.phase for task in result.tasks] == ["ingest", "ingest"]
        assert list(output_dir.iterdir()) == []

    def test_invalid_configuration_schedules_nothing(self, tmp_path, output_dir):
        config = CompareConfig(tmp_path / "missing.ldif", tmp_path / "other.ldif", output_dir=output_dir)

        with patch("ldifcompare.reconciliation.coordinator.ThreadPoolExecutor") as executor:
            with pytest.raises(ConfigurationError):
                CompareCoordinator(config).run()

        executor.assert_not_called()

    def test_shared_sinks_are_closed_after_failure(self, inputs, output_dir):
        """Test the deletion emitter is closed even when its task fails."""
        config = CompareConfig(*inputs, output_dir=output_dir, match_attributes=MatchKeyPair("uid"),
                               generate_delete=True)
        emitters = []

        from ldifcompare.reconciliation import coordinator as coordinator_module
        original = coordinator_module.DeletionRecordEmitter

        def tracking(*args, **kwargs):
            emitter = original(*args, **kwargs)
            emitters.append(emitter)
            return emitter

        with patch.object(coordinator_module, "DeletionRecordEmitter", side_effect=tracking), \
                patch.object(coordinator_module, "attribute_non_match_task", side_effect=OSError("gone")):
            result = CompareCoordinator(config, timestamp=TIMESTAMP).run()

        assert result.status == "failed"
        assert len(emitters) == 1
        with pytest.raises(RuntimeError):
            emitters[0].emit(object())

    def test_sink_close_error_is_recorded_as_teardown_failure(self, inputs, output_dir, metrics):
        """Test a failing sink close still returns a result naming the teardown."""
        config = CompareConfig(*inputs, output_dir=output_dir, match_attributes=MatchKeyPair("uid"),
                               generate_delete=True)

        with patch("ldifcompare.reconciliation.repairer.DeletionRecordEmitter.close",
                   side_effect=SinkIOError("close failed")):
            result = CompareCoordinator(config, metrics, timestamp=TIMESTAMP).run()

        assert result.status == "failed"
        assert result.task("teardown").status == "failed"
        assert "close failed" in result.task("teardown").error
        for name in ("diff-forward", "diff-reverse", "non-match-forward", "non-match-reverse"):
            assert result.task(name).ok
        assert result.finished_at is not None
        assert result.to_dict()["tasks"][-1]["name"] == "teardown"
        assert metrics.get_value("task_failures_total", {"phase": "teardown", "task": "teardown"}) == 1

        missing = (output_dir / f"{TIMESTAMP}-missing-match-attribute.txt").read_text(encoding="utf-8")
        assert missing.startswith("Entries without the matching attribute")
