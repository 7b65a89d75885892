"""
LDIF Writer

Serializes content records, modify/delete change records and comments.
Values that are not LDIF SAFE-STRINGs are base64 encoded and long lines are
folded, so everything written here reads back unchanged with LdifReader.
"""

import base64
import logging
from pathlib import Path
from typing import Iterable, List, Optional, TextIO, Union

from ldifcompare.exceptions import SinkIOError
from ldifcompare.ldif.model import DirectoryRecord, Modification
from ldifcompare.ldif.reader import LDIF_ENCODING, LDIF_ERRORS

logger = logging.getLogger(__name__)

DEFAULT_WRAP_COLUMN = 76

_UNSAFE_INITIAL_CHARS = {"\0", "\n", "\r", " ", ":", "<"}


def needs_base64(value: str) -> bool:
    """
    Check whether a value must be written as a base64 ("::") value.

    Args:
        value: Attribute value or DN

    Returns:
        True unless the value is a SAFE-STRING without trailing space
    """
    if not value:
        return False
    if value[0] in _UNSAFE_INITIAL_CHARS or value.endswith(" "):
        return True
    return any(ord(char) > 127 or char in "\0\n\r" for char in value)


def format_attribute_line(name: str, value: str) -> str:
    """Format one "name: value" line, base64 encoding the value if needed."""
    if needs_base64(value):
        encoded = base64.b64encode(value.encode(LDIF_ENCODING, LDIF_ERRORS)).decode("ascii")
        return f"{name}:: {encoded}"
    if not value:
        return f"{name}:"
    return f"{name}: {value}"


def format_modification(modification: Modification) -> List[str]:
    """
    Render a modification in LDIF modify syntax.

    Example:
        replace: mail
        mail: new@example.com
        -
    """
    name = modification.attribute_name
    lines = [f"{modification.mod_type.value}: {name}"]
    lines.extend(format_attribute_line(name, value) for value in modification.values)
    lines.append("-")
    return lines


def fold_line(line: str, wrap_column: int = DEFAULT_WRAP_COLUMN) -> List[str]:
    """Split a logical line into physical lines no longer than wrap_column."""
    if wrap_column <= 1 or len(line) <= wrap_column:
        return [line]

    physical = [line[:wrap_column]]
    remainder = line[wrap_column:]
    step = wrap_column - 1
    while remainder:
        physical.append(" " + remainder[:step])
        remainder = remainder[step:]
    return physical


class LdifWriter:
    """Writes LDIF content to a text stream."""

    def __init__(self, stream: TextIO, sink_name: str = "<stream>", wrap_column: int = DEFAULT_WRAP_COLUMN):
        """
        Initialize the writer.

        Args:
            stream: Text stream to write to
            sink_name: Name used in log and error messages
            wrap_column: Fold lines longer than this; 0 disables folding
        """
        self._stream = stream
        self._owns_stream = False
        self.sink_name = sink_name
        self.wrap_column = wrap_column
        self.records_written = 0

    @classmethod
    def open(cls, path: Union[str, Path], wrap_column: int = DEFAULT_WRAP_COLUMN) -> "LdifWriter":
        """
        Create (or truncate) an LDIF file for writing.

        Raises:
            SinkIOError: If the file cannot be created
        """
        path = Path(path)
        try:
            stream = open(path, "w", encoding=LDIF_ENCODING, errors=LDIF_ERRORS)
        except OSError as e:
            raise SinkIOError(f"Cannot open {path} for writing: {e}") from e
        writer = cls(stream, sink_name=str(path), wrap_column=wrap_column)
        writer._owns_stream = True
        logger.debug(f"Opened LDIF sink {path}")
        return writer

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

    def write_version_header(self) -> None:
        self._write_lines(["version: 1", ""])

    def write_comment(self, text: str, spacing_after: bool = True) -> None:
        """
        Write a comment, wrapping long text over several "# " lines.

        Args:
            text: Comment text
            spacing_after: Write a blank line after the comment
        """
        lines = self._comment_lines(text)
        if spacing_after:
            lines.append("")
        self._write_lines(lines)

    def write_record(self, record: DirectoryRecord, comment: Optional[str] = None) -> None:
        """
        Write a content record.

        Args:
            record: Record to write
            comment: Optional comment written directly above the record
        """
        lines = self._comment_lines(comment) if comment else []
        lines.append(format_attribute_line("dn", record.dn))
        for name, values in record.items():
            lines.extend(format_attribute_line(name, value) for value in values)
        lines.append("")
        self._write_lines(lines)
        self.records_written += 1

    def write_change_record(self, dn: str, modifications: Iterable[Modification]) -> None:
        """Write a "changetype: modify" record."""
        lines = [format_attribute_line("dn", dn), "changetype: modify"]
        for modification in modifications:
            lines.extend(format_modification(modification))
        lines.append("")
        self._write_lines(lines)
        self.records_written += 1

    def write_delete_record(self, dn: str) -> None:
        """Write a "changetype: delete" record."""
        self._write_lines([format_attribute_line("dn", dn), "changetype: delete", ""])
        self.records_written += 1

    def _comment_lines(self, text: str) -> List[str]:
        width = max(self.wrap_column - 2, 20) if self.wrap_column else 0
        lines = []
        for paragraph in text.splitlines() or [""]:
            words = paragraph.split(" ")
            current = ""
            for word in words:
                if width and current and len(current) + 1 + len(word) > width:
                    lines.append(f"# {current}")
                    current = word
                else:
                    current = f"{current} {word}" if current else word
            lines.append(f"# {current}".rstrip())
        return lines

    def _write_lines(self, lines: List[str]) -> None:
        physical = []
        for line in lines:
            if line.startswith("#"):
                physical.append(line)
            else:
                physical.extend(fold_line(line, self.wrap_column))
        try:
            self._stream.write("\n".join(physical) + "\n")
        except OSError as e:
            raise SinkIOError(f"Error writing to {self.sink_name}: {e}") from e
