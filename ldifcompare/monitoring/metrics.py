"""
Prometheus Metrics for LDIF Compare

Counters and histograms describing a comparison run: records ingested and
skipped, probe outcomes, deletion records, task failures and phase durations.
Each CompareMetrics owns its registry so several runs can live in one process.
"""

import logging
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, push_to_gateway

logger = logging.getLogger(__name__)


class CompareMetrics:
    """Prometheus metrics for comparison runs."""

    def __init__(self, namespace: str = "ldif_compare", registry: Optional[CollectorRegistry] = None):
        """
        Initialize comparison metrics.

        Args:
            namespace: Metric name prefix
            registry: Prometheus registry (a fresh one if not provided)
        """
        self.namespace = namespace
        self.registry = registry or CollectorRegistry()

        self.records_ingested_total = Counter(
            f"{namespace}_records_ingested_total",
            "Unique records kept after ingestion",
            ["side"],
            registry=self.registry
        )

        self.records_skipped_total = Counter(
            f"{namespace}_records_skipped_total",
            "Malformed records skipped during ingestion",
            ["side"],
            registry=self.registry
        )

        self.duplicate_records_total = Counter(
            f"{namespace}_duplicate_records_total",
            "Records collapsed because an identical record was already ingested",
            ["side"],
            registry=self.registry
        )

        self.duplicate_keys_total = Counter(
            f"{namespace}_duplicate_keys_total",
            "Index keys shared by more than one record (first one wins)",
            ["direction"],
            registry=self.registry
        )

        self.probe_outcomes_total = Counter(
            f"{namespace}_probe_outcomes_total",
            "Probe records by match outcome",
            ["direction", "outcome"],
            registry=self.registry
        )

        self.deletion_records_total = Counter(
            f"{namespace}_deletion_records_total",
            "Deletion change records emitted",
            registry=self.registry
        )

        self.task_failures_total = Counter(
            f"{namespace}_task_failures_total",
            "Tasks that ended with an exception",
            ["phase", "task"],
            registry=self.registry
        )

        self.phase_duration_seconds = Histogram(
            f"{namespace}_phase_duration_seconds",
            "Duration of run phases in seconds",
            ["phase"],
            buckets=[0.1, 0.5, 1, 5, 10, 30, 60, 120, 300, 600, 1800],
            registry=self.registry
        )

        logger.debug(f"CompareMetrics initialized with namespace: {namespace}")

    def record_ingestion(self, side: str, ingested: int, skipped: int, duplicates: int) -> None:
        """
        Record the result of one ingestion task.

        Args:
            side: "left" or "right"
            ingested: Unique records kept
            skipped: Malformed records skipped
            duplicates: Identical records collapsed
        """
        self.records_ingested_total.labels(side=side).inc(ingested)
        self.records_skipped_total.labels(side=side).inc(skipped)
        self.duplicate_records_total.labels(side=side).inc(duplicates)

    def record_outcomes(self, direction: str, counts: Dict[str, int]) -> None:
        """
        Record probe outcome counts for one direction.

        Args:
            direction: "forward" or "reverse"
            counts: Mapping outcome name -> count
        """
        for outcome, count in counts.items():
            self.probe_outcomes_total.labels(direction=direction, outcome=outcome).inc(count)

    def record_duplicate_keys(self, direction: str, count: int) -> None:
        if count:
            self.duplicate_keys_total.labels(direction=direction).inc(count)

    def record_deletion(self) -> None:
        self.deletion_records_total.inc()

    def record_task_failure(self, phase: str, task: str) -> None:
        self.task_failures_total.labels(phase=phase, task=task).inc()

    def observe_phase(self, phase: str, duration_seconds: float) -> None:
        self.phase_duration_seconds.labels(phase=phase).observe(duration_seconds)

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """
        Read a sample value from the registry.

        Args:
            name: Sample name without namespace, e.g. "records_ingested_total"
            labels: Label values

        Returns:
            The sample value, 0.0 if the sample does not exist
        """
        value = self.registry.get_sample_value(f"{self.namespace}_{name}", labels or {})
        return value or 0.0

    def push(self, gateway_url: str, job_name: str = "ldif_compare", grouping_key: Optional[Dict] = None) -> None:
        """
        Push metrics to a Prometheus Pushgateway.

        Raises:
            Exception: If the push fails
        """
        try:
            push_to_gateway(
                gateway_url,
                job=job_name,
                registry=self.registry,
                grouping_key=grouping_key or {}
            )
            logger.info(f"Pushed metrics to gateway: {gateway_url}")
        except Exception as e:
            logger.error(f"Failed to push metrics to gateway: {e}")
            raise
