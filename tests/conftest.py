"""
Pytest configuration and shared fixtures.

Provides LDIF file writers backed by tmp_path and isolated metrics.
"""

import pytest
from prometheus_client import CollectorRegistry

from ldifcompare.monitoring.metrics import CompareMetrics
from ldifcompare.utils.correlation import clear_correlation_id


@pytest.fixture
def write_ldif(tmp_path):
    """Factory writing LDIF text to a file under tmp_path and returning its path."""
    def _write(name, content):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def output_dir(tmp_path):
    """Directory receiving the reports of a run."""
    path = tmp_path / "reports"
    path.mkdir()
    return path


@pytest.fixture
def metrics():
    """CompareMetrics on an isolated registry."""
    return CompareMetrics(registry=CollectorRegistry())


@pytest.fixture(autouse=True)
def reset_correlation_id():
    """Start every test without a correlation ID."""
    clear_correlation_id()
    yield
    clear_correlation_id()
