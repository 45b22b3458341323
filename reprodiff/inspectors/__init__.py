# Copyright Red Hat
#
# reprodiff/inspectors/__init__.py - Reproducible build differ inspectors package
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
File and archive inspectors package.

Provides the recursive comparison engine: an ``InspectorRegistry`` running
a set of pluggable inspectors against a pair of files, the archive
extraction and entry reconciliation used to descend into archives, and the
``Finding`` records describing each difference found.
"""
from .archive import ArchiveInspector
from .entries import EntryRecord, ExtractionBudget, ExtractionResult
from .extract import ArchiveExtractor, copy_with_limit
from .filetypes import FileTypeDetector, FileTypeInfo
from .findings import Finding, FindingKind
from .options import InspectOptions
from .reconcile import MatchedPair, diff_metadata, reconcile
from .registry import ComparisonRequest, InspectorBase, InspectorRegistry
from .sizehash import HASH_ALGORITHMS, SizeHashInspector, make_hash_func
from .textdiff import TextDiffInspector

__all__ = [
    "ArchiveExtractor",
    "ArchiveInspector",
    "ComparisonRequest",
    "EntryRecord",
    "ExtractionBudget",
    "ExtractionResult",
    "FileTypeDetector",
    "FileTypeInfo",
    "Finding",
    "FindingKind",
    "HASH_ALGORITHMS",
    "InspectOptions",
    "InspectorBase",
    "InspectorRegistry",
    "MatchedPair",
    "SizeHashInspector",
    "TextDiffInspector",
    "copy_with_limit",
    "diff_metadata",
    "make_hash_func",
    "reconcile",
]
