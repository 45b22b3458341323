# Copyright Red Hat
#
# reprodiff/inspectors/findings.py - Reproducible build differ findings
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Finding kinds and the ``Finding`` record describing one discrepancy.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from enum import Enum
import json


class FindingKind(Enum):
    """
    Enum for the kinds of discrepancy an inspector may report.
    """

    ARCHIVE_TYPE_MISMATCH = "archive-type-mismatch"
    SIZE_MISMATCH = "size-mismatch"
    HASH_MISMATCH = "hash-mismatch"
    ENTRY_TYPE_MISMATCH = "entry-type-mismatch"
    TIMESTAMP_MISMATCH = "timestamp-mismatch"
    COMPRESSED_SIZE_MISMATCH = "compressed-size-mismatch"
    UNCOMPRESSED_SIZE_MISMATCH = "uncompressed-size-mismatch"
    PERMISSIONS_MISMATCH = "permissions-mismatch"
    ENTRY_MISSING_FROM_LEFT = "entry-missing-from-left"
    ENTRY_MISSING_FROM_RIGHT = "entry-missing-from-right"
    DUPLICATE_ENTRIES = "duplicate-entries"
    ORDER_MISMATCH = "order-mismatch"
    ARCHIVE_TOO_LARGE = "archive-too-large"
    EXTRACTION_BUDGET_EXCEEDED = "extraction-budget-exceeded"
    EXTRACTION_FAILED_FOR_ENTRY = "extraction-failed-for-entry"
    DEPTH_EXCEEDED = "depth-exceeded"
    TEXT_LINES_INSERTED = "text-lines-inserted"
    TEXT_LINES_CHANGED = "text-lines-changed"
    TEXT_LINES_DELETED = "text-lines-deleted"

    @property
    def description(self) -> str:
        """
        A human readable description of this kind of finding.

        :returns: The description string.
        :rtype: ``str``
        """
        return _KIND_DESCRIPTIONS[self]

    @property
    def is_text(self) -> bool:
        """
        ``True`` if this kind describes a text line delta.
        """
        return self in _TEXT_KINDS


_KIND_DESCRIPTIONS = {
    FindingKind.ARCHIVE_TYPE_MISMATCH: "Archive type mismatch",
    FindingKind.SIZE_MISMATCH: "File size mismatch",
    FindingKind.HASH_MISMATCH: "File hash mismatch",
    FindingKind.ENTRY_TYPE_MISMATCH: "Mismatched entry types",
    FindingKind.TIMESTAMP_MISMATCH: "Mismatched timestamps",
    FindingKind.COMPRESSED_SIZE_MISMATCH: "Mismatched compressed sizes",
    FindingKind.UNCOMPRESSED_SIZE_MISMATCH: "Mismatched uncompressed sizes",
    FindingKind.PERMISSIONS_MISMATCH: "Mismatched permissions",
    FindingKind.ENTRY_MISSING_FROM_LEFT: "File missing from the left archive",
    FindingKind.ENTRY_MISSING_FROM_RIGHT: "File missing from the right archive",
    FindingKind.DUPLICATE_ENTRIES: "Duplicate entries found",
    FindingKind.ORDER_MISMATCH: (
        "Archive file order differs. Expected equal paths, but got"
    ),
    FindingKind.ARCHIVE_TOO_LARGE: "Archive size exceeds the analysis limit",
    FindingKind.EXTRACTION_BUDGET_EXCEEDED: (
        "Archive extracted files size limit exceeded"
    ),
    FindingKind.EXTRACTION_FAILED_FOR_ENTRY: "Failed to extract this file",
    FindingKind.DEPTH_EXCEEDED: "Depth limit exceeded, will not diff",
    FindingKind.TEXT_LINES_INSERTED: "Extra lines in right",
    FindingKind.TEXT_LINES_CHANGED: "Changed lines in right",
    FindingKind.TEXT_LINES_DELETED: "Missing lines in right",
}

_TEXT_KINDS = (
    FindingKind.TEXT_LINES_INSERTED,
    FindingKind.TEXT_LINES_CHANGED,
    FindingKind.TEXT_LINES_DELETED,
)


def _range_str(line_range: Optional[Tuple[int, int]]) -> str:
    """
    Format an optional ``(start, end)`` range as ``"start:end"``.

    :param line_range: The range to format.
    :type line_range: ``Optional[Tuple[int, int]]``
    :returns: The formatted range or the empty string.
    :rtype: ``str``
    """
    if line_range is None:
        return ""
    start, end = line_range
    return f"{start}:{end}"


def _part_str(
    label: str, excerpt: Optional[str], line_range: Optional[Tuple[int, int]]
) -> str:
    """
    Format one side of a finding.

    :param label: The display name for this side.
    :param excerpt: An optional value or excerpt for this side.
    :param line_range: An optional line range for this side.
    :returns: A human readable string for one side of the finding.
    :rtype: ``str``
    """
    pos = _range_str(line_range)
    if excerpt is not None and pos:
        return f"{excerpt} ({label}, {pos})"
    if excerpt is not None:
        return f"{excerpt} ({label})"
    if pos:
        return f"({label}, {pos})"
    return label


#: Right hand label of a finding comparing a value against a size limit.
SIZE_LIMIT_LABEL = "limit"


@dataclass(frozen=True)
class Finding:
    """
    One discrepancy detected between two compared files, archives, or
    archive entries.
    """

    #: The kind of discrepancy
    kind: FindingKind
    #: Display name of the left hand side (file, archive or entry)
    left_label: str
    #: Display name of the right hand side, if the finding has one
    right_label: Optional[str] = None
    #: 1-based ``(start, end)`` line range on the left
    left_range: Optional[Tuple[int, int]] = None
    #: 1-based ``(start, end)`` line range on the right
    right_range: Optional[Tuple[int, int]] = None
    #: Left hand value or excerpt
    left_excerpt: Optional[str] = None
    #: Right hand value or excerpt
    right_excerpt: Optional[str] = None
    #: Free-form trailing detail
    suffix: Optional[str] = None

    def __str__(self) -> str:
        """
        Return a human readable string representation of this ``Finding``.

        Text line deltas are rendered as a short block with the removed and
        added lines; every other kind is rendered on a single line.

        :returns: A human readable string.
        :rtype: ``str``
        """
        if self.kind.is_text:
            return self._text_str()

        out = (
            f"{self.kind.description}: "
            f"{_part_str(self.left_label, self.left_excerpt, self.left_range)}"
        )
        if self.right_label is not None:
            right = _part_str(self.right_label, self.right_excerpt, self.right_range)
            out += f" vs {right}"
        if self.suffix:
            out += f" {self.suffix}"
        return out

    def _text_str(self) -> str:
        """
        Render a text line delta finding.

        :returns: A multi-line human readable string.
        :rtype: ``str``
        """
        header = (
            f"{self.kind.description}: "
            f"{_part_str(self.left_label, None, self.left_range)} vs "
            f"{_part_str(self.right_label or '', None, self.right_range)}"
        )
        lines = [header]
        if self.left_excerpt is not None:
            lines.extend(f"- {line}" for line in self.left_excerpt.split("\n"))
        if self.right_excerpt is not None:
            lines.extend(f"+ {line}" for line in self.right_excerpt.split("\n"))
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``Finding`` object into a dictionary representation
        suitable for encoding as JSON.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "kind": self.kind.value,
            "description": self.kind.description,
            "left_label": self.left_label,
            "right_label": self.right_label,
            "left_range": list(self.left_range) if self.left_range else None,
            "right_range": list(self.right_range) if self.right_range else None,
            "left_excerpt": self.left_excerpt,
            "right_excerpt": self.right_excerpt,
            "suffix": self.suffix,
        }

    def json(self, pretty=False) -> str:
        """
        Return a JSON representation of this ``Finding``.

        :param pretty: Indent the output for readability.
        :type pretty: ``bool``
        :returns: A JSON string.
        :rtype: ``str``
        """
        return json.dumps(self.to_dict(), indent=4 if pretty else None)
