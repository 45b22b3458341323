# Copyright Red Hat
#
# reprodiff/inspectors/textdiff.py - Reproducible build differ text diffs
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Line level comparison of text files.
"""
from difflib import SequenceMatcher
from typing import List, Optional
from pathlib import Path
import codecs
import logging
import os

from reprodiff import DEFAULT_TEXT_MAX_SIZE, REPRODIFF_SUBSYSTEM_TEXT

from .filetypes import FileTypeDetector, FileTypeInfo
from .findings import Finding, FindingKind
from .registry import ComparisonRequest, InspectorBase, InspectorRegistry

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_text(msg, *args, **kwargs):
    """A wrapper for text subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": REPRODIFF_SUBSYSTEM_TEXT}, **kwargs)


_OPCODE_KINDS = {
    "insert": FindingKind.TEXT_LINES_INSERTED,
    "replace": FindingKind.TEXT_LINES_CHANGED,
    "delete": FindingKind.TEXT_LINES_DELETED,
}


def _encoding_for(file_type_info: FileTypeInfo) -> str:
    """
    Return a usable codec name for ``file_type_info``, falling back to
    UTF-8 when libmagic reports none or one Python does not know.
    """
    encoding = file_type_info.encoding
    if not encoding or encoding == "binary":
        return "utf-8"
    try:
        codecs.lookup(encoding)
    except LookupError:
        return "utf-8"
    return encoding


class TextDiffInspector(InspectorBase):
    """
    Report inserted, changed and deleted lines between two text files.
    """

    def __init__(
        self,
        size_limit: int = DEFAULT_TEXT_MAX_SIZE,
        detector: Optional[FileTypeDetector] = None,
    ):
        """
        Initialise a new ``TextDiffInspector``.

        :param size_limit: Files larger than this are not diffed; a negative
                           value disables the check.
        :type size_limit: ``int``
        :param detector: The file type detector to use.
        :type detector: ``FileTypeDetector``
        """
        self.size_limit = size_limit
        self.detector = detector or FileTypeDetector()

    def _size_exceeded(self, path: str) -> bool:
        size = os.path.getsize(path)
        if 0 <= self.size_limit < size:
            _log_debug_text(
                "Size of file %s exceeds the size limit: %d > %d",
                path,
                size,
                self.size_limit,
            )
            return True
        return False

    def _detect_text(self, path: str, name: str) -> Optional[FileTypeInfo]:
        """
        Classify one file, first by its display name and then by content.

        :param path: The file to classify.
        :param name: The display name of the file.
        :returns: The content based type if the file is text, else ``None``.
        """
        by_name = self.detector.detect_by_name(Path(name))
        if not (by_name.is_text or by_name.is_unknown):
            _log_debug_text(
                "Guessed '%s' from %s (%s) file name, it is not text. Skipping.",
                by_name.mime_type,
                path,
                name,
            )
            return None

        by_content = self.detector.detect_by_content(Path(path))
        if not by_content.is_text:
            _log_debug_text(
                "Guessed '%s' from %s (%s) contents, it is not text. Skipping.",
                by_content.mime_type,
                path,
                name,
            )
            return None
        return by_content

    def inspect(
        self, request: ComparisonRequest, registry: InspectorRegistry
    ) -> List[Finding]:
        """
        Diff the two files named by ``request`` line by line if both are
        text files within the size limit.

        :param request: The pair of files to compare.
        :type request: ``ComparisonRequest``
        :param registry: The calling registry (unused).
        :type registry: ``InspectorRegistry``
        :returns: One finding per differing block of lines.
        :rtype: ``List[Finding]``
        """
        sides = (
            (request.left_path, request.left_name),
            (request.right_path, request.right_name),
        )
        if any(self._size_exceeded(path) for path, _ in sides):
            return []

        types = []
        for path, name in sides:
            file_type_info = self._detect_text(path, name)
            if file_type_info is None:
                return []
            types.append(file_type_info)

        contents = []
        for (path, name), file_type_info in zip(sides, types):
            encoding = _encoding_for(file_type_info)
            try:
                with open(path, "r", encoding=encoding, errors="replace") as f:
                    # Split on universal newlines only, \f and \v stay in the line
                    contents.append([line.rstrip("\n") for line in f])
            except (OSError, UnicodeError) as err:
                _log_error("Error reading lines from file %s (%s): %s", path, name, err)
                return []

        left_lines, right_lines = contents
        matcher = SequenceMatcher(None, left_lines, right_lines, autojunk=False)
        findings = []
        for tag, i1, i2, j1, j2 in matcher.get_opcodes():
            if tag == "equal":
                continue
            findings.append(
                Finding(
                    _OPCODE_KINDS[tag],
                    request.left_name,
                    request.right_name,
                    left_range=(i1 + 1, i2 + 1),
                    right_range=(j1 + 1, j2 + 1),
                    left_excerpt="\n".join(left_lines[i1:i2]) if i2 > i1 else None,
                    right_excerpt="\n".join(right_lines[j1:j2]) if j2 > j1 else None,
                )
            )
        _log_debug_text(
            "Found %d changed blocks between %s and %s",
            len(findings),
            request.left_name,
            request.right_name,
        )
        return findings
