"""
Record Matching for LDIF Compare

Pairs records of the two snapshots. Two strategies exist and exactly one is
used per run:
- IdentityKeyMatch: records are paired on their (normalized) DN
- AttributeValueMatch: records are paired on the value of a configured
  attribute, possibly named differently on each side

Matching always builds a lookup index over a "base" set and probes it with
every record of the other ("probe") set. Each probe record gets exactly one
outcome: matched, non-matched or missing the matching attribute.
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional, Union

from ldifcompare.config import CompareConfig, MatchKeyPair
from ldifcompare.ldif.model import DirectoryRecord, RecordSet

logger = logging.getLogger(__name__)


class Side(Enum):
    LEFT = "left"
    RIGHT = "right"


class Direction(Enum):
    """
    Which snapshot is indexed and which one probes.

    FORWARD indexes the left snapshot and probes with the right one, so the
    diff of a matched pair describes how to turn the left record into the
    right one. REVERSE is the mirror image.
    """
    FORWARD = "forward"
    REVERSE = "reverse"

    @property
    def base_side(self) -> Side:
        return Side.LEFT if self is Direction.FORWARD else Side.RIGHT

    @property
    def probe_side(self) -> Side:
        return Side.RIGHT if self is Direction.FORWARD else Side.LEFT


class MatchOutcome(Enum):
    MATCHED = "matched"
    NON_MATCHED = "non_matched"
    MISSING_ATTRIBUTE = "missing_attribute"


class ProbeResult(NamedTuple):
    """Outcome of looking up one probe record in a base index."""
    outcome: MatchOutcome
    record: DirectoryRecord
    base: Optional[DirectoryRecord] = None
    value: Optional[str] = None


class IdentityKeyMatch:
    """Pairs records with the same DN."""

    name = "identity"

    def index_keys(self, record: DirectoryRecord, side: Side) -> List[str]:
        return [record.normalized_dn]

    def probe_key(self, record: DirectoryRecord, side: Side) -> Optional[str]:
        return record.normalized_dn

    def probe_value(self, record: DirectoryRecord, side: Side) -> Optional[str]:
        return record.dn

    def describe_match(self, result: ProbeResult) -> str:
        return f"Matched '{result.base.dn}' with '{result.record.dn}'"

    def describe_non_match(self, result: ProbeResult) -> str:
        return f"No match found '{result.record.dn}'"

    def __repr__(self):
        return "IdentityKeyMatch()"


class AttributeValueMatch:
    """
    Pairs records whose matching attributes share a value.

    Every value of the base attribute is indexed; the probe key is the first
    value of the probe attribute. Base records without the attribute are left
    out of the index, probe records without it are reported as missing.
    """

    name = "attribute"

    def __init__(self, keys: MatchKeyPair, case_sensitive_values: bool = False):
        """
        Args:
            keys: Matching attribute names for the left and right snapshot
            case_sensitive_values: Compare values case-sensitively
        """
        self.keys = keys
        self.case_sensitive_values = case_sensitive_values

    def attribute_for(self, side: Side) -> str:
        return self.keys.left if side is Side.LEFT else self.keys.right

    def _normalize(self, value: str) -> str:
        return value if self.case_sensitive_values else value.casefold()

    def index_keys(self, record: DirectoryRecord, side: Side) -> List[str]:
        keys = []
        for value in record.get_values(self.attribute_for(side)):
            key = self._normalize(value)
            if key not in keys:
                keys.append(key)
        return keys

    def probe_key(self, record: DirectoryRecord, side: Side) -> Optional[str]:
        value = record.attribute_value(self.attribute_for(side))
        return None if value is None else self._normalize(value)

    def probe_value(self, record: DirectoryRecord, side: Side) -> Optional[str]:
        return record.attribute_value(self.attribute_for(side))

    def describe_match(self, result: ProbeResult) -> str:
        return f"Matched '{result.base.dn}' using value '{result.value}' with '{result.record.dn}'"

    def describe_non_match(self, result: ProbeResult) -> str:
        return f"No match found '{result.record.dn}' using value '{result.value}'"

    def __repr__(self):
        return f"AttributeValueMatch(keys={self.keys!r}, case_sensitive_values={self.case_sensitive_values})"


MatchStrategy = Union[IdentityKeyMatch, AttributeValueMatch]


def strategy_for(config: CompareConfig) -> MatchStrategy:
    """Select the matching strategy described by a configuration."""
    if config.match_attributes is None:
        return IdentityKeyMatch()
    return AttributeValueMatch(config.match_attributes, config.case_sensitive_values)


class RecordMatcher:
    """
    Builds lookup indexes and classifies probe records.

    A matcher keeps per-index state (duplicate keys), so each task uses its
    own instance.
    """

    def __init__(self, strategy: MatchStrategy):
        """
        Args:
            strategy: IdentityKeyMatch or AttributeValueMatch
        """
        if not isinstance(strategy, (IdentityKeyMatch, AttributeValueMatch)):
            raise TypeError(f"Unsupported match strategy: {strategy!r}")
        self.strategy = strategy
        self.duplicate_keys: List[Dict] = []
        logger.debug(f"Initialized RecordMatcher with {strategy!r}")

    def build_key_index(self, records: RecordSet, side: Side) -> Dict[str, DirectoryRecord]:
        """
        Build an index for fast key lookups.

        When several records share a key the first one in set order wins;
        the others are logged and listed in duplicate_keys.

        Args:
            records: Records to index
            side: Snapshot the records come from

        Returns:
            Dictionary mapping key -> record
        """
        index: Dict[str, DirectoryRecord] = {}
        dropped: Dict[str, List[str]] = defaultdict(list)

        for record in records:
            for key in self.strategy.index_keys(record, side):
                if key in index:
                    dropped[key].append(record.dn)
                else:
                    index[key] = record

        self.duplicate_keys = [
            {"key": key, "kept": index[key].dn, "dropped": dns}
            for key, dns in dropped.items()
        ]
        for duplicate in self.duplicate_keys:
            logger.warning(
                f"Duplicate {self.strategy.name} key '{duplicate['key']}' in {side.value} snapshot: "
                f"using '{duplicate['kept']}', ignoring {duplicate['dropped']}"
            )

        logger.debug(f"Built {side.value} index with {len(index)} keys from {len(records)} records")
        return index

    def probe(self, record: DirectoryRecord, side: Side, index: Dict[str, DirectoryRecord]) -> ProbeResult:
        """
        Classify one probe record against a base index.

        Args:
            record: Probe record
            side: Snapshot the probe record comes from
            index: Index over the other snapshot

        Returns:
            ProbeResult with exactly one outcome
        """
        key = self.strategy.probe_key(record, side)
        value = self.strategy.probe_value(record, side)

        if key is None:
            return ProbeResult(MatchOutcome.MISSING_ATTRIBUTE, record)

        base = index.get(key)
        if base is None:
            return ProbeResult(MatchOutcome.NON_MATCHED, record, value=value)

        return ProbeResult(MatchOutcome.MATCHED, record, base=base, value=value)

    def match(
        self,
        left: RecordSet,
        right: RecordSet,
        direction: Direction
    ) -> Iterator[ProbeResult]:
        """
        Index the base snapshot of a direction and probe it with the other.

        Args:
            left: Left snapshot
            right: Right snapshot
            direction: FORWARD (base left) or REVERSE (base right)

        Yields:
            One ProbeResult per probe record, in probe set order
        """
        base_set = left if direction.base_side is Side.LEFT else right
        probe_set = right if direction.probe_side is Side.RIGHT else left

        index = self.build_key_index(base_set, direction.base_side)
        for record in probe_set:
            yield self.probe(record, direction.probe_side, index)

    def partition(
        self,
        left: RecordSet,
        right: RecordSet,
        direction: Direction
    ) -> Dict[MatchOutcome, List[ProbeResult]]:
        """
        Split the probe records of a direction by outcome.

        Returns:
            Dictionary with one (possibly empty) list per MatchOutcome
        """
        buckets: Dict[MatchOutcome, List[ProbeResult]] = {outcome: [] for outcome in MatchOutcome}
        for result in self.match(left, right, direction):
            buckets[result.outcome].append(result)

        logger.info(
            f"{direction.value} {self.strategy.name} match: "
            + ", ".join(f"{len(results)} {outcome.value}" for outcome, results in buckets.items())
        )
        return buckets
