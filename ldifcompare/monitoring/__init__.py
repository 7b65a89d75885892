"""
Monitoring Module for LDIF Compare

Prometheus metrics describing comparison runs.

Usage:
    from ldifcompare.monitoring import CompareMetrics

    metrics = CompareMetrics()
    metrics.record_ingestion("left", ingested=120, skipped=1, duplicates=0)
    metrics.push("localhost:9091")
"""

from ldifcompare.monitoring.metrics import CompareMetrics

__all__ = [
    "CompareMetrics",
]
