"""
Diff & Report Engine for LDIF Compare

Text reports written during the report phase:
- change record reports: one block per matched pair listing the
  modifications turning the base record into the probe record
- non-match reports: one line per probe record without a partner
- the missing-matching-attribute report, shared by two tasks
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional, TextIO, Union

from ldifcompare.exceptions import SinkIOError
from ldifcompare.ldif.model import DirectoryRecord, Modification
from ldifcompare.ldif.writer import format_modification
from ldifcompare.reconciliation.comparer import RecordComparer

logger = logging.getLogger(__name__)

NO_DIFF_MARKER = "NO DIFF"


def render_diff_block(header: str, modifications: List[Modification]) -> List[str]:
    """
    Render one change block.

    Args:
        header: Line naming the matched records
        modifications: Modifications in order

    Returns:
        Lines of the block, starting with a blank separator line
    """
    lines = ["", header]
    if not modifications:
        lines.append(NO_DIFF_MARKER)
    else:
        for modification in modifications:
            lines.extend(format_modification(modification))
    return lines


class TextReport:
    """A line-oriented text report file."""

    def __init__(self, stream: TextIO, sink_name: str = "<stream>"):
        self._stream = stream
        self._owns_stream = False
        self.sink_name = sink_name
        self.blocks_written = 0

    @classmethod
    def open(cls, path: Union[str, Path], description: Optional[str] = None):
        """
        Create (or truncate) a report file.

        Args:
            path: Report file
            description: First line of the report, describing its content

        Raises:
            SinkIOError: If the file cannot be created
        """
        path = Path(path)
        try:
            stream = open(path, "w", encoding="utf-8", errors="surrogateescape")
        except OSError as e:
            raise SinkIOError(f"Cannot open {path} for writing: {e}") from e

        report = cls(stream, sink_name=str(path))
        report._owns_stream = True
        if description:
            try:
                report.write_lines([description])
            except SinkIOError:
                stream.close()
                raise
        logger.debug(f"Opened report {path}")
        return report

    def write_lines(self, lines: List[str]) -> None:
        try:
            self._stream.write("\n".join(lines) + "\n")
        except OSError as e:
            raise SinkIOError(f"Error writing to {self.sink_name}: {e}") from e

    def write_block(self, lines: List[str]) -> None:
        self.write_lines(lines)
        self.blocks_written += 1

    def close(self) -> None:
        if self._owns_stream and not self._stream.closed:
            try:
                self._stream.close()
            except OSError as e:
                raise SinkIOError(f"Error closing {self.sink_name}: {e}") from e

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class ChangeReport(TextReport):
    """Report of the modifications between matched records."""

    def __init__(self, stream: TextIO, sink_name: str = "<stream>", comparer: Optional[RecordComparer] = None):
        super().__init__(stream, sink_name)
        self.comparer = comparer or RecordComparer()

    @classmethod
    def open(cls, path: Union[str, Path], description: Optional[str] = None,
             comparer: Optional[RecordComparer] = None):
        report = super().open(path, description)
        if comparer is not None:
            report.comparer = comparer
        return report

    def report_diff(self, base: DirectoryRecord, probe: DirectoryRecord, header: str) -> List[Modification]:
        """
        Diff a matched pair and append the block to the report.

        Args:
            base: Record the modifications apply to
            probe: Record providing the target state
            header: Line naming the matched records

        Returns:
            The modifications written (empty when the records are equal)
        """
        modifications = self.comparer.diff(base, probe)
        self.write_block(render_diff_block(header, modifications))
        return modifications


class SynchronizedTextReport(TextReport):
    """Text report that several tasks append to concurrently."""

    def __init__(self, stream: TextIO, sink_name: str = "<stream>"):
        super().__init__(stream, sink_name)
        self._lock = threading.Lock()

    def write_block(self, lines: List[str]) -> None:
        with self._lock:
            super().write_block(lines)

    def close(self) -> None:
        with self._lock:
            super().close()
