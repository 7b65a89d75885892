"""
Deletion-Record Emitter for LDIF Compare

Generates "changetype: delete" records for right-side records that have no
partner in the left snapshot, so that applying the file to the right
directory removes them.
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Set, Union

from ldifcompare.ldif.model import DirectoryRecord
from ldifcompare.ldif.writer import LdifWriter
from ldifcompare.monitoring.metrics import CompareMetrics

logger = logging.getLogger(__name__)


class DeletionRecordEmitter:
    """
    Writes deletion records to a lazily opened LDIF file.

    The file is only created when the first record is emitted; the version
    header is written once at that point. All writes hold one lock, and an
    identifier (normalized DN) is emitted at most once however many tasks
    report it.
    """

    def __init__(self, path: Union[str, Path], metrics: Optional[CompareMetrics] = None):
        """
        Args:
            path: Deletion LDIF file to create on first use
            metrics: Optional metrics sink
        """
        self.path = Path(path)
        self.metrics = metrics
        self._lock = threading.Lock()
        self._writer: Optional[LdifWriter] = None
        self._emitted: Set[str] = set()
        self._closed = False
        logger.debug(f"Initialized DeletionRecordEmitter for {self.path}")

    @property
    def is_open(self) -> bool:
        return self._writer is not None

    @property
    def emitted_count(self) -> int:
        return len(self._emitted)

    def emit(self, record: DirectoryRecord) -> bool:
        """
        Emit a deletion record for a record's DN.

        Args:
            record: Record to delete

        Returns:
            True if a deletion record was written, False if the DN had
            already been emitted

        Raises:
            SinkIOError: If the deletion file cannot be written
            RuntimeError: If the emitter was closed
        """
        with self._lock:
            if self._closed:
                raise RuntimeError(f"DeletionRecordEmitter for {self.path} is closed")

            if record.normalized_dn in self._emitted:
                logger.debug(f"Deletion record for '{record.dn}' already emitted")
                return False

            if self._writer is None:
                self._writer = LdifWriter.open(self.path)
                self._writer.write_version_header()
                logger.info(f"Writing deletion records to {self.path}")

            self._writer.write_delete_record(record.dn)
            self._emitted.add(record.normalized_dn)

        if self.metrics:
            self.metrics.record_deletion()
        return True

    def close(self) -> None:
        """Close the deletion file if it was opened. Safe to call twice."""
        with self._lock:
            self._closed = True
            if self._writer is not None:
                writer, self._writer = self._writer, None
                writer.close()
                logger.info(f"Wrote {len(self._emitted)} deletion records to {self.path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
