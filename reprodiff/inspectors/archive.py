# Copyright Red Hat
#
# reprodiff/inspectors/archive.py - Reproducible build differ archive inspector
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Recursive comparison of archive structure and members.
"""
from typing import List, Optional
import tempfile
import logging
import os

from reprodiff import (
    DEFAULT_ARCHIVE_MAX_EXTRACTED_SIZE,
    DEFAULT_ARCHIVE_MAX_SIZE,
    DEFAULT_COMPRESS_MEMLIMIT,
    REPRODIFF_SUBSYSTEM_ARCHIVE,
    size_fmt,
)

from .entries import ExtractionBudget
from .extract import ArchiveExtractor
from .findings import Finding, FindingKind, SIZE_LIMIT_LABEL
from .reconcile import reconcile
from .registry import ComparisonRequest, InspectorBase, InspectorRegistry, gather

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_archive(msg, *args, **kwargs):
    """A wrapper for archive subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": REPRODIFF_SUBSYSTEM_ARCHIVE}, **kwargs)


class ArchiveInspector(InspectorBase):
    """
    Compare two archives of the same format entry by entry, then compare
    each pair of matching members through the registry.
    """

    def __init__(
        self,
        compress_memlimit: int = DEFAULT_COMPRESS_MEMLIMIT,
        archive_max_size: int = DEFAULT_ARCHIVE_MAX_SIZE,
        max_extracted_size: int = DEFAULT_ARCHIVE_MAX_EXTRACTED_SIZE,
        temp_dir: Optional[str] = None,
    ):
        """
        Initialise a new ``ArchiveInspector``.

        :param compress_memlimit: Memory limit for decompression (bytes).
        :type compress_memlimit: ``int``
        :param archive_max_size: Archives larger than this are not analysed;
                                 zero or less disables the check.
        :type archive_max_size: ``int``
        :param max_extracted_size: Total bytes that may be extracted from
                                   each archive; zero or less for no limit.
        :type max_extracted_size: ``int``
        :param temp_dir: Parent directory for extracted members, or ``None``
                         for the system default.
        :type temp_dir: ``Optional[str]``
        """
        self.extractor = ArchiveExtractor(compress_memlimit, archive_max_size)
        self.archive_max_size = archive_max_size
        self.max_extracted_size = max_extracted_size
        self.temp_dir = temp_dir

    def _check_sizes(self, request: ComparisonRequest) -> List[Finding]:
        """
        Return one finding for each side larger than ``archive_max_size``.
        """
        findings = []
        for path, name in (
            (request.left_path, request.left_name),
            (request.right_path, request.right_name),
        ):
            size = os.path.getsize(path)
            if 0 < self.archive_max_size < size:
                _log_debug_archive(
                    "Archive %s is too large to analyse: %s > %s",
                    name,
                    size_fmt(size),
                    size_fmt(self.archive_max_size),
                )
                findings.append(
                    Finding(
                        FindingKind.ARCHIVE_TOO_LARGE,
                        name,
                        SIZE_LIMIT_LABEL,
                        left_excerpt=f"{size} bytes",
                        right_excerpt=f"{self.archive_max_size} bytes",
                    )
                )
        return findings

    def inspect(
        self, request: ComparisonRequest, registry: InspectorRegistry
    ) -> List[Finding]:
        """
        Compare the archives named by ``request``.

        Returns nothing if either file is not a supported archive, a single
        type mismatch finding if the formats differ, and size limit findings
        if either archive is too large to analyse. Otherwise both archives are
        extracted, their entries reconciled, and every matched pair of
        extracted members compared through ``registry`` one level deeper.

        :param request: The pair of files to compare.
        :type request: ``ComparisonRequest``
        :param registry: The registry to use for member comparisons.
        :type registry: ``InspectorRegistry``
        :returns: The findings for the archives and their members.
        :rtype: ``List[Finding]``
        """
        left_format, right_format = gather(
            [
                lambda: self.extractor.detect_format(request.left_path),
                lambda: self.extractor.detect_format(request.right_path),
            ],
            name="reprodiff-detect",
        )
        if left_format is None or right_format is None:
            return []
        if left_format != right_format:
            _log_debug_archive(
                "Archive type mismatch: %s=%s %s=%s",
                request.left_name,
                left_format,
                request.right_name,
                right_format,
            )
            return [
                Finding(
                    FindingKind.ARCHIVE_TYPE_MISMATCH,
                    request.left_name,
                    request.right_name,
                    left_excerpt=left_format,
                    right_excerpt=right_format,
                )
            ]

        findings = self._check_sizes(request)
        if findings:
            return findings

        with tempfile.TemporaryDirectory(prefix="reprodiff-", dir=self.temp_dir) as arena:
            _log_debug_archive(
                "Extracting %s and %s to %s", request.left_name, request.right_name, arena
            )
            left_result, right_result = gather(
                [
                    lambda: self.extractor.extract(
                        request.left_path,
                        request.left_name,
                        ExtractionBudget(self.max_extracted_size),
                        arena,
                        archive_format=left_format,
                    ),
                    lambda: self.extractor.extract(
                        request.right_path,
                        request.right_name,
                        ExtractionBudget(self.max_extracted_size),
                        arena,
                        archive_format=right_format,
                    ),
                ],
                name="reprodiff-extract",
            )
            findings = left_result.findings + right_result.findings
            if left_result.aborted or right_result.aborted:
                return findings
            entry_findings, pairs = reconcile(
                left_result.entries,
                right_result.entries,
                request.left_name,
                request.right_name,
            )
            findings.extend(entry_findings)
            # Members are compared one pair at a time while the arena exists.
            for left_path, right_path, entry_name in pairs:
                findings.extend(
                    registry.compare(request.descend(entry_name, left_path, right_path))
                )
        return findings
