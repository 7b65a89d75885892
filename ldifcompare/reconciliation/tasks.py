"""
Report Tasks for LDIF Compare

The units of work scheduled during the report phase. Each task indexes its
own base snapshot, owns the files it writes (opened and closed inside the
task) and only shares the read-only RecordSets plus the synchronized sinks
handed to it.

Identity-key mode runs identity_task once per direction. Attribute-value
mode runs attribute_diff_task and attribute_non_match_task once per
direction.
"""

import logging
from pathlib import Path
from typing import Dict, Optional

from ldifcompare.ldif.model import RecordSet
from ldifcompare.ldif.writer import LdifWriter
from ldifcompare.monitoring.metrics import CompareMetrics
from ldifcompare.reconciliation.comparer import RecordComparer
from ldifcompare.reconciliation.differ import (
    AttributeValueMatch,
    Direction,
    IdentityKeyMatch,
    MatchOutcome,
    MatchStrategy,
    RecordMatcher,
    Side,
)
from ldifcompare.reconciliation.repairer import DeletionRecordEmitter
from ldifcompare.reconciliation.reporter import ChangeReport, SynchronizedTextReport, TextReport

logger = logging.getLogger(__name__)


def _sides(direction: Direction, left: RecordSet, right: RecordSet):
    if direction is Direction.FORWARD:
        return left, right
    return right, left


def describe_change_report(direction: Direction, left_name: str, right_name: str) -> str:
    """First line of a change record report."""
    base_name, probe_name = (left_name, right_name) if direction is Direction.FORWARD else (right_name, left_name)
    return (
        f"For the entry from {base_name} to match the entry from {probe_name} "
        f"the following modifications must be made to the entry from {base_name}."
    )


def resolve_unique(
    source: RecordSet,
    target_index: Dict,
    strategy: MatchStrategy,
    side: Side,
    sink: LdifWriter
) -> int:
    """
    Write the records of source whose key is absent from target_index.

    Args:
        source: Records to check
        target_index: Index over the other snapshot
        strategy: Strategy that built target_index
        side: Snapshot source comes from
        sink: LDIF writer receiving the unique records

    Returns:
        Number of unique records written
    """
    unique = 0
    for record in source:
        if strategy.probe_key(record, side) not in target_index:
            sink.write_record(record)
            unique += 1

    logger.info(f"Found {unique} records only in the {side.value} snapshot")
    return unique


def identity_task(
    direction: Direction,
    left: RecordSet,
    right: RecordSet,
    report_path: Path,
    unique_path: Path,
    left_name: str,
    right_name: str,
    changed_path: Optional[Path] = None,
    skip_identical: bool = False,
    comparer: Optional[RecordComparer] = None,
    metrics: Optional[CompareMetrics] = None
) -> Dict[str, int]:
    """
    Diff DN-matched records of one direction and write the probe-side uniques.

    Args:
        direction: FORWARD writes right-only records, REVERSE left-only ones
        left: Left snapshot
        right: Right snapshot
        report_path: Change record report
        unique_path: LDIF file for records without a DN match
        left_name: Display name of the left file
        right_name: Display name of the right file
        changed_path: Optional LDIF file receiving probe records whose
            attributes differ from their match
        skip_identical: Do not write blocks for identical records
        comparer: Record comparer
        metrics: Optional metrics sink

    Returns:
        Outcome counts
    """
    strategy = IdentityKeyMatch()
    matcher = RecordMatcher(strategy)
    base_set, probe_set = _sides(direction, left, right)
    probe_side = direction.probe_side
    probe_name = right_name if probe_side is Side.RIGHT else left_name
    other_name = left_name if probe_side is Side.RIGHT else right_name

    index = matcher.build_key_index(base_set, direction.base_side)
    counts = {"matched": 0, "changed": 0, "identical": 0, "unique": 0}

    description = describe_change_report(direction, left_name, right_name)
    with ChangeReport.open(report_path, description, comparer) as report:
        changed = LdifWriter.open(changed_path) if changed_path else None
        try:
            if changed:
                changed.write_version_header()
                changed.write_comment(
                    f"This file contains entries from {probe_name} that differ in some way "
                    f"from entries in {other_name}"
                )

            for record in probe_set:
                result = matcher.probe(record, probe_side, index)
                if result.outcome is not MatchOutcome.MATCHED:
                    continue

                counts["matched"] += 1
                if skip_identical and result.base == result.record:
                    counts["identical"] += 1
                    continue

                modifications = report.report_diff(result.base, result.record, strategy.describe_match(result))
                if modifications:
                    counts["changed"] += 1
                    if changed:
                        changed.write_record(result.record)
                else:
                    counts["identical"] += 1
        finally:
            if changed:
                changed.close()

    with LdifWriter.open(unique_path) as unique_sink:
        unique_sink.write_version_header()
        unique_sink.write_comment("Applicable only when matching using DN!", spacing_after=False)
        unique_sink.write_comment(
            f"This file contains entries that only exist in {probe_name}, i.e. they are missing "
            f"for some reason in {other_name} or have been renamed/moved and have a different DN."
        )
        counts["unique"] = resolve_unique(probe_set, index, strategy, probe_side, unique_sink)

    if metrics:
        metrics.record_duplicate_keys(direction.value, len(matcher.duplicate_keys))
        metrics.record_outcomes(direction.value, {
            MatchOutcome.MATCHED.value: counts["matched"],
            MatchOutcome.NON_MATCHED.value: counts["unique"],
        })

    logger.info(f"{direction.value} identity report done: {counts}")
    return counts


def attribute_diff_task(
    direction: Direction,
    left: RecordSet,
    right: RecordSet,
    strategy: AttributeValueMatch,
    report_path: Path,
    left_name: str,
    right_name: str,
    comparer: Optional[RecordComparer] = None
) -> Dict[str, int]:
    """
    Diff attribute-matched records of one direction.

    Non-matched records and records missing the matching attribute are left
    to attribute_non_match_task.

    Returns:
        Outcome counts
    """
    matcher = RecordMatcher(strategy)
    base_attribute = strategy.attribute_for(direction.base_side)
    probe_attribute = strategy.attribute_for(direction.probe_side)
    base_name, probe_name = (left_name, right_name) if direction is Direction.FORWARD else (right_name, left_name)
    counts = {"matched": 0, "changed": 0, "identical": 0}

    description = (
        f"Matching entries in {base_name} using the attribute '{base_attribute}' with the attribute "
        f"'{probe_attribute}' from {probe_name} and displaying modifications that must be made to the "
        f"entry in {base_name} to match the entry from {probe_name}."
    )

    with ChangeReport.open(report_path, description, comparer) as report:
        for result in matcher.match(left, right, direction):
            if result.outcome is not MatchOutcome.MATCHED:
                continue
            counts["matched"] += 1
            if report.report_diff(result.base, result.record, strategy.describe_match(result)):
                counts["changed"] += 1
            else:
                counts["identical"] += 1

    logger.info(f"{direction.value} attribute diff report done: {counts}")
    return counts


def attribute_non_match_task(
    direction: Direction,
    left: RecordSet,
    right: RecordSet,
    strategy: AttributeValueMatch,
    text_path: Path,
    ldif_path: Path,
    missing_report: SynchronizedTextReport,
    left_name: str,
    right_name: str,
    deletion_emitter: Optional[DeletionRecordEmitter] = None,
    metrics: Optional[CompareMetrics] = None
) -> Dict[str, int]:
    """
    Report probe records without a partner or without the matching attribute.

    Args:
        direction: FORWARD reports right records, REVERSE left records
        left: Left snapshot
        right: Right snapshot
        strategy: Attribute-value strategy
        text_path: Text report of non-matched records
        ldif_path: LDIF file of non-matched records
        missing_report: Shared report of records lacking the attribute
        left_name: Display name of the left file
        right_name: Display name of the right file
        deletion_emitter: Emits a deletion record per non-matched record
        metrics: Optional metrics sink

    Returns:
        Outcome counts
    """
    matcher = RecordMatcher(strategy)
    probe_side = direction.probe_side
    base_name, probe_name = (left_name, right_name) if direction is Direction.FORWARD else (right_name, left_name)
    probe_attribute = strategy.attribute_for(probe_side)
    base_attribute = strategy.attribute_for(direction.base_side)
    counts = {outcome.value: 0 for outcome in MatchOutcome}
    counts["deleted"] = 0

    description = (
        f"Unable to match entries in {probe_name} using the attribute '{probe_attribute}' "
        f"with the attribute '{base_attribute}' from {base_name}."
    )

    with TextReport.open(text_path, description) as text_sink, LdifWriter.open(ldif_path) as ldif_sink:
        ldif_sink.write_version_header()

        for result in matcher.match(left, right, direction):
            counts[result.outcome.value] += 1

            if result.outcome is MatchOutcome.NON_MATCHED:
                line = strategy.describe_non_match(result)
                text_sink.write_block(["", line])
                ldif_sink.write_record(result.record, comment=line)
                if deletion_emitter and deletion_emitter.emit(result.record):
                    counts["deleted"] += 1

            elif result.outcome is MatchOutcome.MISSING_ATTRIBUTE:
                missing_report.write_block([
                    "",
                    f"Missing attribute '{probe_attribute}' in entry '{result.record.dn}' from {probe_name}"
                ])

    if metrics:
        metrics.record_duplicate_keys(direction.value, len(matcher.duplicate_keys))
        metrics.record_outcomes(direction.value, {outcome.value: counts[outcome.value] for outcome in MatchOutcome})

    logger.info(f"{direction.value} attribute non-match report done: {counts}")
    return counts
