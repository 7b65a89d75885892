"""
Record Comparer for LDIF Compare

Attribute filtering applied at ingestion time and attribute-level diffing
between two directory records.
"""

import logging
from typing import Iterable, List, Optional

from ldifcompare.ldif.model import DirectoryRecord, Modification, ModificationType

logger = logging.getLogger(__name__)


class AttributeFilter:
    """
    Strips ignored attributes from records before they are compared.

    An attribute is removed when its name equals one of the exact names or
    starts with one of the prefixes. Attribute names are case-insensitive
    throughout the codec, so both tests are done on case-folded names.
    """

    def __init__(
        self,
        exact_names: Optional[Iterable[str]] = None,
        prefixes: Optional[Iterable[str]] = None
    ):
        """
        Initialize the filter.

        Args:
            exact_names: Attribute names to remove, e.g. lastLogon
            prefixes: Attribute name prefixes to remove, e.g. "ds-"
        """
        self.exact_names = frozenset(
            name.strip().casefold() for name in exact_names or [] if name and name.strip()
        )
        self.prefixes = tuple(
            prefix.strip().casefold() for prefix in prefixes or [] if prefix and prefix.strip()
        )
        logger.debug(
            f"Initialized AttributeFilter: {len(self.exact_names)} names, "
            f"{len(self.prefixes)} prefixes"
        )

    @property
    def is_empty(self) -> bool:
        return not self.exact_names and not self.prefixes

    def is_ignored(self, attribute_name: str) -> bool:
        folded = attribute_name.casefold()
        return folded in self.exact_names or folded.startswith(self.prefixes)

    def apply(self, record: DirectoryRecord) -> DirectoryRecord:
        """
        Return the record without ignored attributes.

        Applying the filter to its own output returns it unchanged.
        """
        if self.is_empty:
            return record
        return record.without_attributes(self.is_ignored)


class RecordComparer:
    """
    Computes attribute-level differences between directory records.

    The DN is never compared: matching decides which records are paired, the
    comparer only describes how their attributes differ.
    """

    def __init__(self):
        """Initialize the record comparer."""
        logger.debug("Initialized RecordComparer")

    def diff(self, base: DirectoryRecord, probe: DirectoryRecord) -> List[Modification]:
        """
        List the modifications that turn base's attributes into probe's.

        Order is deterministic: base attributes in base order (DELETE when
        probe lacks the attribute, REPLACE with probe's values when the value
        sets differ), then ADD for attributes only present in probe, in probe
        order.

        Args:
            base: Record to be modified
            probe: Record providing the target state

        Returns:
            List of modifications, empty when the attributes are equal
        """
        modifications = []

        for name, base_values in base.items():
            probe_values = probe.get_values(name)
            if not probe_values:
                modifications.append(Modification(name, ModificationType.DELETE))
            elif set(base_values) != set(probe_values):
                modifications.append(Modification(name, ModificationType.REPLACE, probe_values))

        for name, probe_values in probe.items():
            if not base.has_attribute(name):
                modifications.append(Modification(name, ModificationType.ADD, probe_values))

        if modifications:
            logger.debug(f"{len(modifications)} modifications between '{base.dn}' and '{probe.dn}'")

        return modifications
