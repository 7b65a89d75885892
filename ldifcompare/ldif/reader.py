"""
LDIF Reader

Reads content records (RFC 2849) one at a time from a text stream.

Supported: the optional "version: 1" header, comment lines, folded lines,
base64 ("::") values and CRLF line endings. Change records other than
"changetype: add" and URL ("<") values are rejected per record with a
RecordParseError; the reader stays positioned on the next record so the
caller can skip and continue.
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import List, Optional, TextIO, Tuple, Union

from ldifcompare.exceptions import RecordParseError
from ldifcompare.ldif.model import DirectoryRecord

logger = logging.getLogger(__name__)

# Encoding used for every LDIF file read or written by ldifcompare
LDIF_ENCODING = "utf-8"
LDIF_ERRORS = "surrogateescape"


class LdifReader:
    """Pulls DirectoryRecord objects from an LDIF stream."""

    def __init__(self, stream: TextIO, source_name: str = "<stream>"):
        """
        Initialize the reader.

        Args:
            stream: Text stream positioned at the start of the LDIF content
            source_name: Name used in log messages
        """
        self._stream = stream
        self._owns_stream = False
        self.source_name = source_name
        self._line_number = 0
        self._first_record = True
        logger.debug(f"Initialized LdifReader for {source_name}")

    @classmethod
    def open(cls, path: Union[str, Path]) -> "LdifReader":
        """
        Open an LDIF file for reading.

        Raises:
            OSError: If the file cannot be opened
        """
        path = Path(path)
        stream = open(path, "r", encoding=LDIF_ENCODING, errors=LDIF_ERRORS)
        reader = cls(stream, source_name=str(path))
        reader._owns_stream = True
        return reader

    def close(self) -> None:
        if self._owns_stream:
            self._stream.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def line_number(self) -> int:
        """Number of physical lines consumed so far."""
        return self._line_number

    def read_record(self) -> Optional[DirectoryRecord]:
        """
        Read the next record.

        Returns:
            The next DirectoryRecord, or None at end of stream

        Raises:
            RecordParseError: If the next record is malformed. The malformed
                record has been consumed.
            OSError: If the underlying stream fails
        """
        while True:
            block = self._read_block()
            if block is None:
                return None

            lines = [(number, text) for number, text, is_comment in block if not is_comment]

            if self._first_record and lines:
                self._first_record = False
                if lines[0][1].lower().startswith("version:"):
                    number, text = lines.pop(0)
                    version = text.split(":", 1)[1].strip()
                    if version != "1":
                        raise RecordParseError(f"Unsupported LDIF version '{version}'", number)

            if not lines:
                continue

            return self._parse_record(lines)

    def _read_block(self) -> Optional[List[Tuple[int, str, bool]]]:
        """
        Read the lines of one record, unfolding continuation lines.

        Returns:
            List of (line number, logical line, is comment), or None at EOF
        """
        block: List[List] = []

        while True:
            raw = self._stream.readline()
            if raw == "":
                break
            self._line_number += 1
            line = raw.rstrip("\r\n")

            if line.startswith(" ") and block:
                block[-1][1] += line[1:]
                continue

            if not line.strip():
                if block:
                    break
                continue

            block.append([self._line_number, line, line.startswith("#")])

        if not block:
            return None
        return [(number, text, is_comment) for number, text, is_comment in block]

    def _parse_record(self, lines: List[Tuple[int, str]]) -> DirectoryRecord:
        first_number, first_line = lines[0]
        name, dn = self._parse_line(first_number, first_line)
        if name.lower() != "dn":
            raise RecordParseError(f"Record does not start with a dn line: '{first_line[:60]}'", first_number)

        attributes = []
        for number, text in lines[1:]:
            name, value = self._parse_line(number, text)
            lowered = name.lower()

            if lowered == "changetype":
                if value.strip().lower() != "add":
                    raise RecordParseError(
                        f"Change records are not supported (changetype: {value.strip()}) for '{dn}'",
                        number
                    )
                continue

            if lowered == "dn":
                raise RecordParseError(f"Second dn line in record '{dn}'", number)

            attributes.append((name, [value]))

        return DirectoryRecord(dn, attributes)

    def _parse_line(self, number: int, text: str) -> Tuple[str, str]:
        if ":" not in text:
            raise RecordParseError(f"Missing ':' separator in line '{text[:60]}'", number)

        name, rest = text.split(":", 1)
        name = name.strip()
        if not name:
            raise RecordParseError("Empty attribute name", number)

        if rest.startswith(":"):
            encoded = rest[1:].strip()
            try:
                raw = base64.b64decode(encoded, validate=True)
            except (binascii.Error, ValueError) as e:
                raise RecordParseError(f"Invalid base64 value for '{name}': {e}", number) from e
            return name, raw.decode(LDIF_ENCODING, LDIF_ERRORS)

        if rest.startswith("<"):
            raise RecordParseError(f"URL values are not supported for '{name}'", number)

        return name, rest.lstrip(" ")
