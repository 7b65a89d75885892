"""
Concurrency Coordinator for LDIF Compare

Runs a comparison in two phases on one bounded thread pool:

1. ingest: both snapshots are read concurrently; the coordinator waits for
   both tasks
2. report: 2 (identity-key mode) or 4 (attribute-value mode) independent
   report tasks; the coordinator waits for all of them

A failing task is logged and recorded in the result; it never blocks the
phase. Shared sinks are closed and the pool is shut down on every exit path.
"""

import concurrent.futures
import contextvars
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ldifcompare.config import CompareConfig
from ldifcompare.exceptions import SinkIOError
from ldifcompare.monitoring.metrics import CompareMetrics
from ldifcompare.reconciliation.comparer import AttributeFilter, RecordComparer
from ldifcompare.reconciliation.differ import AttributeValueMatch, Direction, IdentityKeyMatch, strategy_for
from ldifcompare.reconciliation.ingest import ingest
from ldifcompare.reconciliation.repairer import DeletionRecordEmitter
from ldifcompare.reconciliation.reporter import SynchronizedTextReport
from ldifcompare.reconciliation.tasks import attribute_diff_task, attribute_non_match_task, identity_task
from ldifcompare.utils.correlation import get_or_create_correlation_id

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H%M%S"


class OutputPaths:
    """Names of the artifacts of one run, all prefixed with the run timestamp."""

    def __init__(self, output_dir: Path, timestamp: str, left_name: str, right_name: str):
        self.output_dir = Path(output_dir)
        self.timestamp = timestamp
        self.change_records = self._path("change_records.txt")
        self.reverse_change_records = self._path("reverse-change_records.txt")
        self.changed_records = self._path("diff.ldif")
        self.unique_left = self._path(f"unique-left-{left_name}")
        self.unique_right = self._path(f"unique-right-{right_name}")
        self.no_match_left_text = self._path("no-match-left.txt")
        self.no_match_left_ldif = self._path("no-match-left.ldif")
        self.no_match_right_text = self._path("no-match-right.txt")
        self.no_match_right_ldif = self._path("no-match-right.ldif")
        self.missing_attribute = self._path("missing-match-attribute.txt")
        self.deletion = self._path("delete.ldif")

    def _path(self, suffix: str) -> Path:
        return self.output_dir / f"{self.timestamp}-{suffix}"

    def existing(self) -> List[str]:
        """Artifacts of this run that exist on disk."""
        return sorted(
            str(path) for path in vars(self).values()
            if isinstance(path, Path) and path != self.output_dir and path.is_file()
        )


class TaskOutcome:
    """How one scheduled task ended."""

    def __init__(self, name: str, phase: str, status: str, duration_seconds: float,
                 result: Any = None, error: Optional[str] = None):
        self.name = name
        self.phase = phase
        self.status = status
        self.duration_seconds = duration_seconds
        self.result = result
        self.error = error

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "phase": self.phase,
            "status": self.status,
            "duration_seconds": round(self.duration_seconds, 3),
        }
        if isinstance(self.result, dict):
            data["counts"] = self.result
        if self.error:
            data["error"] = self.error
        return data


class CompareResult:
    """Summary of a comparison run."""

    def __init__(self, run_id: str, mode: str, started_at: datetime):
        self.run_id = run_id
        self.mode = mode
        self.started_at = started_at
        self.finished_at: Optional[datetime] = None
        self.records: Dict[str, int] = {}
        self.tasks: List[TaskOutcome] = []
        self.outputs: List[str] = []
        self.config: Dict[str, Any] = {}

    @property
    def status(self) -> str:
        return "success" if self.tasks and all(task.ok for task in self.tasks) else "failed"

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def task(self, name: str) -> Optional[TaskOutcome]:
        for outcome in self.tasks:
            if outcome.name == name:
                return outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "mode": self.mode,
            "start_time": self.started_at.isoformat(),
            "end_time": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "records": dict(self.records),
            "tasks": [task.to_dict() for task in self.tasks],
            "outputs": list(self.outputs),
            "config": dict(self.config),
        }


class CompareCoordinator:
    """Runs one comparison described by a CompareConfig."""

    def __init__(
        self,
        config: CompareConfig,
        metrics: Optional[CompareMetrics] = None,
        comparer: Optional[RecordComparer] = None,
        timestamp: Optional[str] = None
    ):
        """
        Initialize the coordinator.

        Args:
            config: Run configuration
            metrics: Metrics sink (a private registry if not provided)
            comparer: Record comparer shared by the report tasks
            timestamp: Output file prefix (current local time if not provided)
        """
        self.config = config
        self.metrics = metrics or CompareMetrics()
        self.comparer = comparer or RecordComparer()
        self.timestamp = timestamp or datetime.now().strftime(TIMESTAMP_FORMAT)
        self.paths = OutputPaths(
            config.output_dir,
            self.timestamp,
            config.left_path.name,
            config.right_path.name
        )
        logger.debug("CompareCoordinator initialized")

    def run(self) -> CompareResult:
        """
        Run the comparison.

        Returns:
            CompareResult; its status is "failed" if any task failed

        Raises:
            ConfigurationError: If the configuration is invalid. Nothing has
                been scheduled in that case.
        """
        self.config.validate()
        strategy = strategy_for(self.config)
        run_id = get_or_create_correlation_id()
        result = CompareResult(run_id, strategy.name, datetime.now(timezone.utc))
        result.config = self.config.to_dict()

        logger.info(
            f"Starting comparison {run_id}: {self.config.left_path} vs {self.config.right_path} "
            f"({strategy!r}, {self.config.workers} workers)"
        )

        sinks = ExitStack()
        try:
            with ThreadPoolExecutor(max_workers=self.config.workers, thread_name_prefix="ldif-compare") as executor:
                ingested = self._ingest_phase(executor, result)

                if ingested is None:
                    logger.error("Ingestion failed, skipping the report phase")
                else:
                    left, right = ingested
                    result.records = {"left": len(left), "right": len(right)}
                    tasks = self._report_tasks(strategy, left, right, sinks, result)
                    result.tasks.extend(self._run_phase(executor, "report", tasks))
        finally:
            self._close_sinks(sinks, result)

        result.finished_at = datetime.now(timezone.utc)
        result.outputs = self.paths.existing()

        logger.info(f"Comparison {run_id} finished with status {result.status} in {result.duration_seconds:.2f}s")
        return result

    def _ingest_phase(self, executor: ThreadPoolExecutor, result: CompareResult):
        attribute_filter = AttributeFilter(self.config.ignore_attributes, self.config.ignore_prefixes)
        tasks = {
            "ingest-left": partial(ingest, self.config.left_path, attribute_filter, "left", self.metrics),
            "ingest-right": partial(ingest, self.config.right_path, attribute_filter, "right", self.metrics),
        }
        outcomes = self._run_phase(executor, "ingest", tasks)
        result.tasks.extend(outcomes)

        if not all(outcome.ok for outcome in outcomes):
            return None
        return outcomes[0].result, outcomes[1].result

    def _report_tasks(self, strategy, left, right, sinks: ExitStack, result: CompareResult) -> Dict[str, Callable]:
        left_name = self.config.left_path.name
        right_name = self.config.right_path.name
        paths = self.paths

        if isinstance(strategy, IdentityKeyMatch):
            common = dict(
                left=left, right=right, left_name=left_name, right_name=right_name,
                skip_identical=self.config.skip_identical, comparer=self.comparer, metrics=self.metrics
            )
            return {
                "identity-forward": partial(
                    identity_task, Direction.FORWARD,
                    report_path=paths.change_records, unique_path=paths.unique_right,
                    changed_path=paths.changed_records, **common
                ),
                "identity-reverse": partial(
                    identity_task, Direction.REVERSE,
                    report_path=paths.reverse_change_records, unique_path=paths.unique_left, **common
                ),
            }

        if not isinstance(strategy, AttributeValueMatch):
            raise TypeError(f"Unsupported match strategy: {strategy!r}")

        common = dict(left=left, right=right, strategy=strategy, left_name=left_name, right_name=right_name)
        tasks: Dict[str, Callable] = {
            "diff-forward": partial(
                attribute_diff_task, Direction.FORWARD,
                report_path=paths.change_records, comparer=self.comparer, **common
            ),
            "diff-reverse": partial(
                attribute_diff_task, Direction.REVERSE,
                report_path=paths.reverse_change_records, comparer=self.comparer, **common
            ),
        }

        try:
            missing_report = sinks.enter_context(SynchronizedTextReport.open(
                paths.missing_attribute,
                f"Entries without the matching attribute ('{strategy.keys.left}' in {left_name}, "
                f"'{strategy.keys.right}' in {right_name})."
            ))
        except SinkIOError as e:
            logger.error(f"Cannot create the missing attribute report, skipping non-match reports: {e}")
            result.tasks.append(TaskOutcome("open-missing-attribute-report", "report", "failed", 0.0, error=str(e)))
            return tasks

        deletion_emitter = None
        if self.config.generate_delete:
            deletion_emitter = sinks.enter_context(DeletionRecordEmitter(paths.deletion, self.metrics))

        tasks["non-match-forward"] = partial(
            attribute_non_match_task, Direction.FORWARD,
            text_path=paths.no_match_right_text, ldif_path=paths.no_match_right_ldif,
            missing_report=missing_report, deletion_emitter=deletion_emitter, metrics=self.metrics, **common
        )
        tasks["non-match-reverse"] = partial(
            attribute_non_match_task, Direction.REVERSE,
            text_path=paths.no_match_left_text, ldif_path=paths.no_match_left_ldif,
            missing_report=missing_report, metrics=self.metrics, **common
        )
        return tasks

    def _close_sinks(self, sinks: ExitStack, result: CompareResult) -> None:
        """Close the shared sinks once every task has finished."""
        start_time = time.monotonic()
        try:
            sinks.close()
        except SinkIOError as e:
            logger.error(f"Error closing shared reports: {e}", exc_info=True)
            self.metrics.record_task_failure("teardown", "teardown")
            result.tasks.append(TaskOutcome(
                "teardown", "teardown", "failed", time.monotonic() - start_time,
                error=f"{type(e).__name__}: {e}"
            ))

    def _run_phase(self, executor: ThreadPoolExecutor, phase: str, tasks: Dict[str, Callable]) -> List[TaskOutcome]:
        """
        Submit every task of a phase and wait for all of them.

        Returns:
            One TaskOutcome per task, in submission order
        """
        logger.info(f"Starting {phase} phase with {len(tasks)} tasks")
        start_time = time.monotonic()

        futures = [
            executor.submit(contextvars.copy_context().run, self._run_task, phase, name, task)
            for name, task in tasks.items()
        ]
        concurrent.futures.wait(futures)
        outcomes = [future.result() for future in futures]

        duration = time.monotonic() - start_time
        self.metrics.observe_phase(phase, duration)
        failed = [outcome.name for outcome in outcomes if not outcome.ok]
        logger.info(
            f"Finished {phase} phase in {duration:.2f}s"
            + (f", failed tasks: {failed}" if failed else "")
        )
        return outcomes

    def _run_task(self, phase: str, name: str, task: Callable) -> TaskOutcome:
        logger.debug(f"Task {name} started")
        start_time = time.monotonic()
        try:
            value = task()
        except Exception as e:
            duration = time.monotonic() - start_time
            logger.error(f"Task {name} failed: {e}", exc_info=True)
            self.metrics.record_task_failure(phase, name)
            return TaskOutcome(name, phase, "failed", duration, error=f"{type(e).__name__}: {e}")

        duration = time.monotonic() - start_time
        logger.debug(f"Task {name} finished in {duration:.3f}s")
        return TaskOutcome(name, phase, "ok", duration, result=value)
