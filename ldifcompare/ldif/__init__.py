"""
LDIF codec for LDIF Compare

- model: DirectoryRecord, RecordSet, Modification
- reader: LdifReader (content records, one at a time)
- writer: LdifWriter (content, modify and delete records)
"""

from ldifcompare.ldif.model import (
    DirectoryRecord,
    Modification,
    ModificationType,
    RecordSet,
    normalize_dn,
)
from ldifcompare.ldif.reader import LdifReader
from ldifcompare.ldif.writer import LdifWriter, format_modification

__all__ = [
    "DirectoryRecord",
    "Modification",
    "ModificationType",
    "RecordSet",
    "normalize_dn",
    "LdifReader",
    "LdifWriter",
    "format_modification",
]
