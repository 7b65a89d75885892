"""
Record and Attribute Model for LDIF Compare

Canonical, immutable representation of a directory record and of an
attribute-level modification. Attribute names are case-insensitive and
identifiers (DNs) are compared in normalized form.
"""

from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union, Callable

AttributeInput = Union[Mapping[str, Iterable[str]], Iterable[Tuple[str, Iterable[str]]]]


def normalize_dn(dn: str) -> str:
    """
    Normalize a distinguished name for comparison.

    Splits on unescaped ',' and '+', strips whitespace around the RDN
    separators and the '=' of each component, and case-folds the result.

    Args:
        dn: Distinguished name as found in the LDIF file

    Returns:
        Normalized DN
    """
    components: List[Tuple[str, str]] = []
    current: List[str] = []
    escaped = False

    for char in dn:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            current.append(char)
            escaped = True
        elif char in ",+":
            components.append(("".join(current), char))
            current = []
        else:
            current.append(char)
    components.append(("".join(current), ""))

    parts = []
    for component, separator in components:
        name, sep, value = component.partition("=")
        value = value.lstrip()
        stripped = value.rstrip()
        # An odd run of backslashes escapes the first trailing space
        backslashes = len(stripped) - len(stripped.rstrip("\\"))
        if backslashes % 2 and len(stripped) < len(value):
            stripped = value[:len(stripped) + 1]
        value = stripped
        parts.append(f"{name.strip()}{sep}{value}{separator}")

    return "".join(parts).casefold()


class DirectoryRecord:
    """
    One directory entry: a DN and a set of multi-valued attributes.

    Equality is structural: normalized DN plus every attribute name
    (case-insensitive) and its value set. Instances are immutable.
    """

    __slots__ = ("_dn", "_normalized_dn", "_attributes", "_hash")

    def __init__(self, dn: str, attributes: Optional[AttributeInput] = None):
        """
        Create a record.

        Args:
            dn: Distinguished name
            attributes: Mapping or iterable of (name, values) pairs. Names
                that differ only in case are merged and duplicate values
                collapse.
        """
        if dn is None:
            raise ValueError("A directory record requires a DN")

        self._dn = dn
        self._normalized_dn = normalize_dn(dn)

        merged: Dict[str, Tuple[str, List[str]]] = {}
        items = attributes.items() if isinstance(attributes, Mapping) else (attributes or [])
        for name, values in items:
            if isinstance(values, str):
                values = [values]
            key = name.casefold()
            if key not in merged:
                merged[key] = (name, [])
            bucket = merged[key][1]
            for value in values:
                if value not in bucket:
                    bucket.append(value)

        self._attributes: Dict[str, Tuple[str, Tuple[str, ...]]] = {
            key: (name, tuple(values))
            for key, (name, values) in merged.items()
            if values
        }
        self._hash = hash((
            self._normalized_dn,
            frozenset(
                (key, frozenset(values))
                for key, (_, values) in self._attributes.items()
            )
        ))

    @property
    def dn(self) -> str:
        return self._dn

    @property
    def normalized_dn(self) -> str:
        return self._normalized_dn

    @property
    def attribute_names(self) -> List[str]:
        """Attribute names in their original spelling, in input order."""
        return [name for name, _ in self._attributes.values()]

    def attributes(self) -> Dict[str, Tuple[str, ...]]:
        """Return a copy of the attributes keyed by original attribute name."""
        return {name: values for name, values in self._attributes.values()}

    def items(self) -> Iterator[Tuple[str, Tuple[str, ...]]]:
        return iter(self._attributes.values())

    def has_attribute(self, name: str) -> bool:
        return name.casefold() in self._attributes

    def get_values(self, name: str) -> Tuple[str, ...]:
        entry = self._attributes.get(name.casefold())
        return entry[1] if entry else ()

    def attribute_value(self, name: str) -> Optional[str]:
        """Return the first value of an attribute, or None if it is absent."""
        values = self.get_values(name)
        return values[0] if values else None

    def without_attributes(self, predicate: Callable[[str], bool]) -> "DirectoryRecord":
        """
        Return a copy of this record without the attributes matching predicate.

        Args:
            predicate: Called with each attribute name; True removes it

        Returns:
            The same instance when nothing is removed, otherwise a new record
        """
        kept = [(name, values) for name, values in self._attributes.values() if not predicate(name)]
        if len(kept) == len(self._attributes):
            return self
        return DirectoryRecord(self._dn, kept)

    def __eq__(self, other):
        if not isinstance(other, DirectoryRecord):
            return NotImplemented
        if self._hash != other._hash or self._normalized_dn != other._normalized_dn:
            return False
        if self._attributes.keys() != other._attributes.keys():
            return False
        return all(
            set(values) == set(other._attributes[key][1])
            for key, (_, values) in self._attributes.items()
        )

    def __hash__(self):
        return self._hash

    def __repr__(self):
        return f"DirectoryRecord(dn={self._dn!r}, attributes={len(self._attributes)})"


class RecordSet:
    """
    Deduplicating container of DirectoryRecord.

    Structurally identical records collapse into one. Iteration follows
    first-insertion order so reports built from a set are deterministic.
    """

    def __init__(self, records: Optional[Iterable[DirectoryRecord]] = None):
        self._records: Dict[DirectoryRecord, None] = {}
        for record in records or []:
            self.add(record)

    def add(self, record: DirectoryRecord) -> bool:
        """
        Add a record.

        Returns:
            True if the record was new, False if an identical one was present
        """
        if record in self._records:
            return False
        self._records[record] = None
        return True

    def __contains__(self, record) -> bool:
        return record in self._records

    def __iter__(self) -> Iterator[DirectoryRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self):
        return f"RecordSet(size={len(self._records)})"


class ModificationType(Enum):
    """LDAP modification operation."""
    ADD = "add"
    DELETE = "delete"
    REPLACE = "replace"


class Modification:
    """An attribute-level edit: operation, attribute name and values."""

    __slots__ = ("attribute_name", "mod_type", "values")

    def __init__(self, attribute_name: str, mod_type: ModificationType, values: Iterable[str] = ()):
        self.attribute_name = attribute_name
        self.mod_type = mod_type
        self.values = tuple(values)

    def __eq__(self, other):
        if not isinstance(other, Modification):
            return NotImplemented
        return (
            self.attribute_name.casefold() == other.attribute_name.casefold()
            and self.mod_type == other.mod_type
            and self.values == other.values
        )

    def __hash__(self):
        return hash((self.attribute_name.casefold(), self.mod_type, self.values))

    def __repr__(self):
        return (
            f"Modification(type={self.mod_type.value}, "
            f"attr={self.attribute_name}, values={list(self.values)})"
        )
