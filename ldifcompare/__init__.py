"""
LDIF Compare

Compares two LDIF snapshots of a directory and writes reports describing
how their records differ:
- records are matched on their DN or on the value of a configured attribute
- matched records are diffed attribute by attribute, in both directions
- records without a partner are listed, optionally as deletion records

Usage:
    from ldifcompare import CompareCoordinator, build_config

    config = build_config("left.ldif", "right.ldif", output_dir="reports")
    result = CompareCoordinator(config).run()
    print(result.to_dict())
"""

from ldifcompare.config import CompareConfig, MatchKeyPair, build_config
from ldifcompare.exceptions import (
    ConfigurationError,
    LdifCompareError,
    RecordParseError,
    SinkIOError,
    StreamIOError,
)
from ldifcompare.reconciliation.coordinator import CompareCoordinator, CompareResult

__all__ = [
    "CompareConfig",
    "MatchKeyPair",
    "build_config",
    "CompareCoordinator",
    "CompareResult",
    "LdifCompareError",
    "RecordParseError",
    "StreamIOError",
    "SinkIOError",
    "ConfigurationError",
]

__version__ = "1.0.0"
