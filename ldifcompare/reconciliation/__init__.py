"""
Reconciliation Module for LDIF Compare

Main components:
- comparer: attribute filtering and record-level diffing
- differ: record matching on DN or attribute value
- ingest: reading a snapshot into a RecordSet
- reporter: change record and non-match reports
- repairer: deletion record generation
- tasks: the report tasks of one run
- coordinator: two-phase scheduling on a thread pool

Usage:
    from ldifcompare.reconciliation import RecordComparer, RecordMatcher, IdentityKeyMatch

    # Compare individual records
    comparer = RecordComparer()
    modifications = comparer.diff(left_record, right_record)

    # Classify the right snapshot against the left one
    matcher = RecordMatcher(IdentityKeyMatch())
    buckets = matcher.partition(left, right, Direction.FORWARD)
"""

from ldifcompare.reconciliation.comparer import AttributeFilter, RecordComparer
from ldifcompare.reconciliation.coordinator import CompareCoordinator, CompareResult, OutputPaths
from ldifcompare.reconciliation.differ import (
    AttributeValueMatch,
    Direction,
    IdentityKeyMatch,
    MatchOutcome,
    RecordMatcher,
    Side,
)
from ldifcompare.reconciliation.ingest import ingest
from ldifcompare.reconciliation.repairer import DeletionRecordEmitter

__all__ = [
    "AttributeFilter",
    "RecordComparer",
    "CompareCoordinator",
    "CompareResult",
    "OutputPaths",
    "AttributeValueMatch",
    "Direction",
    "IdentityKeyMatch",
    "MatchOutcome",
    "RecordMatcher",
    "Side",
    "ingest",
    "DeletionRecordEmitter",
]
