# Copyright Red Hat
#
# reprodiff/inspectors/entries.py - Reproducible build differ archive entries
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Archive entry records and the per-side extraction budget.
"""
from dataclasses import dataclass, field
from typing import List, Optional
import logging

from reprodiff import ReprodiffArgumentError, ReprodiffLimitError

from .findings import Finding

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: ``compressed_size`` value for containers that do not record one.
NO_COMPRESSED_SIZE = -1


@dataclass
class EntryRecord:
    """
    Metadata describing one member of an archive, extracted or not.

    Two records compare equal when their metadata and extraction state
    match: the location of the extracted copy and any extraction findings
    are not part of the comparison.
    """

    #: Archive-relative path of the member
    name: str
    #: ``True`` if the member is a directory
    is_directory: bool = False
    #: Modification time as an ISO 8601 string
    timestamp: str = ""
    #: Compressed size in bytes, or ``NO_COMPRESSED_SIZE``
    compressed_size: int = NO_COMPRESSED_SIZE
    #: Uncompressed size in bytes, if known
    uncompressed_size: Optional[int] = None
    #: Permission bits as an octal string, if known
    permissions: Optional[str] = None
    #: ``True`` once the member content has been copied to ``local_path``
    extracted: bool = False
    #: Path of the extracted copy
    local_path: Optional[str] = field(default=None, compare=False)
    #: Findings raised while extracting this member
    findings: List[Finding] = field(default_factory=list, compare=False)

    def mark_extracted(self, local_path: str):
        """
        Record that the content of this entry was copied to ``local_path``.

        :param local_path: The path of the extracted copy.
        :type local_path: ``str``
        :raises: ``ReprodiffArgumentError`` if this entry is a directory.
        """
        if self.is_directory:
            raise ReprodiffArgumentError(
                f"Cannot mark directory entry as extracted: {self.name}"
            )
        self.local_path = local_path
        self.extracted = True

    def add_finding(self, finding: Finding):
        """
        Attach an extraction-time finding to this entry.

        :param finding: The finding to attach.
        :type finding: ``Finding``
        """
        self.findings.append(finding)


class ExtractionBudget:
    """
    Remaining byte allowance for materialising the members of one archive.

    A ``total_limit`` of zero or less means the budget is unlimited and no
    accounting is performed.
    """

    def __init__(self, total_limit: int):
        """
        Initialise a new ``ExtractionBudget``.

        :param total_limit: The total number of bytes that may be written.
        :type total_limit: ``int``
        """
        self.total_limit = total_limit
        self.remaining = total_limit

    @property
    def unlimited(self) -> bool:
        """
        ``True`` if no limit applies.
        """
        return self.total_limit <= 0

    @property
    def exhausted(self) -> bool:
        """
        ``True`` if the budget is limited and nothing remains.
        """
        return not self.unlimited and self.remaining <= 0

    @property
    def copy_limit(self) -> int:
        """
        The most bytes a single copy may write, or -1 for no limit.
        """
        return -1 if self.unlimited else self.remaining

    def consume(self, count: int):
        """
        Deduct ``count`` bytes from the budget.

        :param count: The number of bytes written.
        :type count: ``int``
        :raises: ``ReprodiffLimitError`` if ``count`` exceeds the remainder.
        """
        if self.unlimited:
            return
        if count > self.remaining:
            raise ReprodiffLimitError(count, self.remaining)
        self.remaining -= count

    def __repr__(self):
        return (
            f"ExtractionBudget(total_limit={self.total_limit}, "
            f"remaining={self.remaining})"
        )


@dataclass
class ExtractionResult:
    """
    The entries read from one archive together with any findings that
    concern the archive as a whole rather than a single entry.
    """

    #: Entry records in stream order
    entries: List[EntryRecord] = field(default_factory=list)
    #: Archive level extraction findings
    findings: List[Finding] = field(default_factory=list)
    #: ``True`` if the archive could not be read at all
    aborted: bool = False
