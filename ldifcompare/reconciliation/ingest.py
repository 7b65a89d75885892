"""
Entry Ingestion for LDIF Compare

Reads one snapshot end to end, filters every record and folds it into a
deduplicated RecordSet.
"""

import logging
import time
from pathlib import Path
from typing import Optional, Union

from ldifcompare.exceptions import RecordParseError, StreamIOError
from ldifcompare.ldif.model import RecordSet
from ldifcompare.ldif.reader import LdifReader
from ldifcompare.monitoring.metrics import CompareMetrics
from ldifcompare.reconciliation.comparer import AttributeFilter

logger = logging.getLogger(__name__)


def ingest_reader(
    reader: LdifReader,
    attribute_filter: Optional[AttributeFilter] = None,
    side: str = "left",
    metrics: Optional[CompareMetrics] = None
) -> RecordSet:
    """
    Pull records from a reader until end of stream.

    Malformed records are logged and skipped; any other error propagates.

    Args:
        reader: Open LDIF reader
        attribute_filter: Filter applied to every record before insertion
        side: "left" or "right", used in logs and metrics
        metrics: Optional metrics sink

    Returns:
        RecordSet with the filtered records
    """
    attribute_filter = attribute_filter or AttributeFilter()
    records = RecordSet()
    read = 0
    skipped = 0
    duplicates = 0

    while True:
        try:
            record = reader.read_record()
        except RecordParseError as e:
            skipped += 1
            logger.warning(f"Skipping malformed record in {reader.source_name}: {e}")
            continue

        if record is None:
            break

        read += 1
        if not records.add(attribute_filter.apply(record)):
            duplicates += 1

    logger.info(
        f"Ingested {side} snapshot {reader.source_name}: {read} records read, "
        f"{len(records)} unique, {duplicates} duplicates, {skipped} skipped"
    )

    if metrics:
        metrics.record_ingestion(side, len(records), skipped, duplicates)

    return records


def ingest(
    path: Union[str, Path],
    attribute_filter: Optional[AttributeFilter] = None,
    side: str = "left",
    metrics: Optional[CompareMetrics] = None
) -> RecordSet:
    """
    Read one LDIF snapshot into a RecordSet.

    Args:
        path: LDIF file
        attribute_filter: Filter applied to every record
        side: "left" or "right"
        metrics: Optional metrics sink

    Returns:
        RecordSet with the filtered records

    Raises:
        StreamIOError: If the file cannot be opened or read
    """
    logger.info(f"Reading {side} LDIF file: {path}")
    start_time = time.monotonic()

    try:
        with LdifReader.open(path) as reader:
            records = ingest_reader(reader, attribute_filter, side, metrics)
    except OSError as e:
        raise StreamIOError(f"Failed to read {side} LDIF file {path}: {e}") from e

    logger.debug(f"Reading {path} took {time.monotonic() - start_time:.3f}s")
    return records
