# Copyright Red Hat
#
# reprodiff/inspectors/reconcile.py - Reproducible build differ entry matching
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Archive entry reconciliation.

Aligns two independently ordered lists of ``EntryRecord`` objects into
matched pairs eligible for recursive comparison, reporting the structural
differences found along the way: metadata changes, entries present on one
side only, duplicate names and reordering.

The scan walks both lists in their original stream order with one cursor
each. Names missing from the other side are skipped ahead (insertions and
deletions); names present on both sides but at different positions are a
reordering, which is reported once per call and resolved by pairing each
cursor's entry with its counterpart looked up by name.
"""
from typing import Dict, List, Set, Tuple
import logging

from reprodiff import ReprodiffArgumentError, REPRODIFF_SUBSYSTEM_ARCHIVE

from .entries import EntryRecord
from .findings import Finding, FindingKind

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_archive(msg, *args, **kwargs):
    """A wrapper for archive subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": REPRODIFF_SUBSYSTEM_ARCHIVE}, **kwargs)


#: A ``(left_local_path, right_local_path, entry_name)`` triple.
MatchedPair = Tuple[str, str, str]

#: Placeholder excerpt for the absent side of a missing entry.
NOT_APPLICABLE = "N/A"


def _member_label(archive_name: str, entry_name: str) -> str:
    """
    Return the display label for an archive member.

    :param archive_name: The display name of the containing archive.
    :type archive_name: ``str``
    :param entry_name: The archive-relative member name.
    :type entry_name: ``str``
    :returns: ``"<archive>#/<entry>"``
    :rtype: ``str``
    """
    return f"{archive_name}#/{entry_name}"


def _entry_kind(entry: EntryRecord) -> str:
    return "directory" if entry.is_directory else "file"


def diff_metadata(
    left: EntryRecord, right: EntryRecord, left_name: str, right_name: str
) -> List[Finding]:
    """
    Compare the metadata of two same-named entries.

    One ``Finding`` is returned per differing field: entry type, timestamp,
    compressed size, uncompressed size and permissions.

    :param left: The left hand entry.
    :type left: ``EntryRecord``
    :param right: The right hand entry.
    :type right: ``EntryRecord``
    :param left_name: Display name of the left archive.
    :type left_name: ``str``
    :param right_name: Display name of the right archive.
    :type right_name: ``str``
    :returns: A list of metadata findings, possibly empty.
    :rtype: ``List[Finding]``
    :raises: ``ReprodiffArgumentError`` if the entry names differ.
    """
    if left.name != right.name:
        raise ReprodiffArgumentError(
            "Tried to diff metadata of entries with different names: "
            f"{left.name} != {right.name}"
        )

    left_label = _member_label(left_name, left.name)
    right_label = _member_label(right_name, right.name)

    def _finding(kind: FindingKind, left_value: str, right_value: str) -> Finding:
        return Finding(
            kind,
            left_label,
            right_label,
            left_excerpt=left_value,
            right_excerpt=right_value,
        )

    findings = []
    if left.is_directory != right.is_directory:
        findings.append(
            _finding(
                FindingKind.ENTRY_TYPE_MISMATCH, _entry_kind(left), _entry_kind(right)
            )
        )
    if left.timestamp != right.timestamp:
        findings.append(
            _finding(FindingKind.TIMESTAMP_MISMATCH, left.timestamp, right.timestamp)
        )
    if left.compressed_size != right.compressed_size:
        findings.append(
            _finding(
                FindingKind.COMPRESSED_SIZE_MISMATCH,
                f"{left.compressed_size} bytes",
                f"{right.compressed_size} bytes",
            )
        )
    if left.uncompressed_size != right.uncompressed_size:
        findings.append(
            _finding(
                FindingKind.UNCOMPRESSED_SIZE_MISMATCH,
                f"{left.uncompressed_size} bytes",
                f"{right.uncompressed_size} bytes",
            )
        )
    if left.permissions != right.permissions:
        findings.append(
            _finding(
                FindingKind.PERMISSIONS_MISMATCH,
                f"{left.permissions}",
                f"{right.permissions}",
            )
        )
    return findings


def _build_lookup(
    entries: List[EntryRecord], findings: List[Finding]
) -> Dict[str, EntryRecord]:
    """
    Build a name to entry lookup for ``entries``, collecting any extraction
    findings carried by the entries into ``findings``.

    When a name occurs more than once the last entry with that name wins.

    :param entries: The entries of one archive in stream order.
    :param findings: The list to append extraction findings to.
    :returns: A dictionary mapping entry names to entries.
    """
    lookup = {}
    for entry in entries:
        findings.extend(entry.findings)
        lookup[entry.name] = entry
    return lookup


class _PairCollector:
    """
    Ordered, de-duplicated collection of matched entry pairs.
    """

    def __init__(self):
        self.pairs: List[MatchedPair] = []
        self._seen: Set[MatchedPair] = set()

    def add(self, left: EntryRecord, right: EntryRecord):
        """
        Add the pair ``(left, right)`` if both sides were extracted.
        """
        if not (left.extracted and right.extracted):
            _log_debug_archive(
                "Not pairing %s: extracted=(%s, %s)",
                left.name,
                left.extracted,
                right.extracted,
            )
            return
        pair = (left.local_path, right.local_path, left.name)
        if pair not in self._seen:
            self._seen.add(pair)
            self.pairs.append(pair)


# pylint: disable=too-many-locals,too-many-branches,too-many-statements
def reconcile(
    left: List[EntryRecord],
    right: List[EntryRecord],
    left_name: str,
    right_name: str,
) -> Tuple[List[Finding], List[MatchedPair]]:
    """
    Reconcile the entry lists of two archives.

    Findings are returned in the order: extraction findings (left entries
    then right entries), findings raised during the scan (metadata and
    order mismatches), entries missing from the right, entries missing from
    the left, and finally duplicate entry findings.

    Pairs are only produced for entries that were extracted on both sides.

    :param left: The left archive's entries in stream order.
    :type left: ``List[EntryRecord]``
    :param right: The right archive's entries in stream order.
    :type right: ``List[EntryRecord]``
    :param left_name: Display name of the left archive.
    :type left_name: ``str``
    :param right_name: Display name of the right archive.
    :type right_name: ``str``
    :returns: A tuple of (findings, matched pairs).
    :rtype: ``Tuple[List[Finding], List[MatchedPair]]``
    """
    findings: List[Finding] = []
    left_lookup = _build_lookup(left, findings)
    right_lookup = _build_lookup(right, findings)

    pairs = _PairCollector()
    left_only: List[EntryRecord] = []
    right_only: List[EntryRecord] = []
    # Names already paired out of order.
    resolved: Set[str] = set()

    left_pos = right_pos = 0
    while left_pos < len(left) or right_pos < len(right):
        if left_pos >= len(left):
            right_only.append(right[right_pos])
            right_pos += 1
            continue
        if right_pos >= len(right):
            left_only.append(left[left_pos])
            left_pos += 1
            continue

        left_item = left[left_pos]
        right_item = right[right_pos]

        if left_item == right_item:
            pairs.add(left_item, right_item)
            left_pos += 1
            right_pos += 1
            continue

        if left_item.name == right_item.name:
            findings.extend(
                diff_metadata(left_item, right_item, left_name, right_name)
            )
            pairs.add(left_item, right_item)
            left_pos += 1
            right_pos += 1
            continue

        # Skip ahead over names the other side does not have at all.
        skipped = False
        while left_pos < len(left) and left[left_pos].name not in right_lookup:
            left_only.append(left[left_pos])
            left_pos += 1
            skipped = True
        while right_pos < len(right) and right[right_pos].name not in left_lookup:
            right_only.append(right[right_pos])
            right_pos += 1
            skipped = True
        if skipped:
            continue

        # Both names exist on both sides: the entries are out of order.
        left_has_right = (
            right_item.name in left_lookup and right_item.name not in resolved
        )
        right_has_left = (
            left_item.name in right_lookup and left_item.name not in resolved
        )
        if left_has_right or right_has_left:
            if not resolved:
                _log_debug_archive(
                    "Order mismatch at %s vs %s", left_item.name, right_item.name
                )
                findings.append(
                    Finding(
                        FindingKind.ORDER_MISMATCH,
                        left_name,
                        right_name,
                        left_excerpt=left_item.name,
                        right_excerpt=right_item.name,
                    )
                )
            if left_has_right:
                resolved.add(right_item.name)
                counterpart = left_lookup[right_item.name]
                findings.extend(
                    diff_metadata(counterpart, right_item, left_name, right_name)
                )
                pairs.add(counterpart, right_item)
            if right_has_left:
                resolved.add(left_item.name)
                counterpart = right_lookup[left_item.name]
                findings.extend(
                    diff_metadata(left_item, counterpart, left_name, right_name)
                )
                pairs.add(left_item, counterpart)
        left_pos += 1
        right_pos += 1

    for entry in left_only:
        findings.append(
            Finding(
                FindingKind.ENTRY_MISSING_FROM_RIGHT,
                left_name,
                right_name,
                left_excerpt=entry.name,
                right_excerpt=NOT_APPLICABLE,
            )
        )

    for entry in right_only:
        findings.append(
            Finding(
                FindingKind.ENTRY_MISSING_FROM_LEFT,
                left_name,
                right_name,
                left_excerpt=NOT_APPLICABLE,
                right_excerpt=entry.name,
            )
        )

    if len(left) > len(left_lookup):
        findings.append(Finding(FindingKind.DUPLICATE_ENTRIES, left_name))
    if len(right) > len(right_lookup):
        findings.append(Finding(FindingKind.DUPLICATE_ENTRIES, right_name))

    _log_debug_archive(
        "Reconciled %d/%d entries: %d findings, %d pairs",
        len(left),
        len(right),
        len(findings),
        len(pairs.pairs),
    )
    return findings, pairs.pairs
