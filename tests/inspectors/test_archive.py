# Copyright Red Hat
#
# tests/inspectors/test_archive.py - Archive inspector tests.
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import gzip
import tempfile
import zipfile
import os

from reprodiff.inspectors.archive import ArchiveInspector
from reprodiff.inspectors.findings import FindingKind, SIZE_LIMIT_LABEL
from reprodiff.inspectors.registry import ComparisonRequest, InspectorRegistry
from reprodiff.inspectors.sizehash import SizeHashInspector

from ._util import make_tar, make_zip, write_file

STORED = zipfile.ZIP_STORED

BUDGET_MEMBERS = [
    ("100bytes-1.txt", "x" * 100),
    ("100bytes-2.txt", "y" * 100),
    ("10bytes-1.txt", "z" * 10),
    ("10bytes-2.txt", "w" * 10),
]


class TestArchiveInspector(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp_dir.cleanup)
        self.target = ArchiveInspector()
        self.zip = make_zip(self.tmp_dir.name, "members.zip", BUDGET_MEMBERS)
        self.tgz = make_tar(self.tmp_dir.name, "members.tar.gz", BUDGET_MEMBERS, "w:gz")
        self.txt = write_file(self.tmp_dir.name, "10bytes.txt", "0123456789")

    def _inspect(self, target, left, right, registry=None):
        request = ComparisonRequest.for_paths(left, right)
        return target.inspect(request, registry or InspectorRegistry([target]))

    def test_different_archive_types(self):
        findings = self._inspect(self.target, self.zip, self.tgz)
        self.assertEqual(len(findings), 1)
        finding = findings[0]
        self.assertEqual(finding.kind, FindingKind.ARCHIVE_TYPE_MISMATCH)
        self.assertEqual(finding.left_excerpt, "zip")
        self.assertEqual(finding.right_excerpt, "tar")

    def test_non_archives(self):
        self.assertEqual(self._inspect(self.target, self.txt, self.zip), [])
        self.assertEqual(self._inspect(self.target, self.zip, self.txt), [])

    def test_size_limit(self):
        small_target = ArchiveInspector(archive_max_size=1)
        findings = self._inspect(small_target, self.zip, self.zip)
        self.assertTrue(findings)
        self.assertTrue(all(f.kind == FindingKind.ARCHIVE_TOO_LARGE for f in findings))
        self.assertEqual(findings[0].right_label, SIZE_LIMIT_LABEL)
        self.assertEqual(findings[0].right_excerpt, "1 bytes")

    def test_negative_size_limit_unlimited(self):
        unlimited_target = ArchiveInspector(archive_max_size=-1)
        self.assertEqual(self._inspect(unlimited_target, self.zip, self.zip), [])

    def test_same_file(self):
        self.assertEqual(self._inspect(self.target, self.zip, self.zip), [])
        self.assertEqual(self._inspect(self.target, self.tgz, self.tgz), [])

    def test_extraction_limits(self):
        limited_target = ArchiveInspector(archive_max_size=-1, max_extracted_size=110)
        findings = self._inspect(limited_target, self.zip, self.zip)
        # Two findings from each side of the comparison
        self.assertEqual(len(findings), 4)
        for finding in findings:
            if finding.kind == FindingKind.EXTRACTION_FAILED_FOR_ENTRY:
                self.assertTrue(finding.left_label.endswith("100bytes-2.txt"))
            elif finding.kind == FindingKind.EXTRACTION_BUDGET_EXCEEDED:
                self.assertTrue(finding.left_label.endswith("10bytes-2.txt"))
            else:
                self.fail(f"Unexpected finding: {finding}")

    def test_missing_entry(self):
        left = make_zip(self.tmp_dir.name, "left.zip", [("a", "1"), ("b", "2")], STORED)
        right = make_zip(self.tmp_dir.name, "right.zip", [("a", "1")], STORED)
        findings = self._inspect(self.target, left, right)
        self.assertEqual(len(findings), 1)
        self.assertEqual(findings[0].kind, FindingKind.ENTRY_MISSING_FROM_RIGHT)
        self.assertEqual(findings[0].left_label, "left.zip")
        self.assertEqual(findings[0].left_excerpt, "b")

    def test_member_differences_are_compared(self):
        left = make_zip(self.tmp_dir.name, "left.zip", [("x.txt", "a")], STORED)
        right = make_zip(self.tmp_dir.name, "right.zip", [("x.txt", "b")], STORED)
        registry = InspectorRegistry([SizeHashInspector(), self.target])
        findings = registry.compare_paths(left, right)
        self.assertEqual(
            [(f.kind, f.left_label, f.right_label) for f in findings],
            [
                (FindingKind.HASH_MISMATCH, "left.zip", "right.zip"),
                (FindingKind.HASH_MISMATCH, "left.zip#/x.txt", "right.zip#/x.txt"),
            ],
        )

    def test_depth_limit(self):
        tmp = self.tmp_dir.name
        inner_left = make_zip(tmp, "inner-left.zip", [("x.txt", "a")], STORED)
        inner_right = make_zip(tmp, "inner-right.zip", [("x.txt", "b")], STORED)
        with open(inner_left, "rb") as f:
            left = make_zip(tmp, "left.zip", [("inner.zip", f.read())], STORED)
        with open(inner_right, "rb") as f:
            right = make_zip(tmp, "right.zip", [("inner.zip", f.read())], STORED)

        registry = InspectorRegistry([self.target], max_depth=0)
        findings = registry.compare_paths(left, right)
        self.assertEqual(len(findings), 1)
        self.assertEqual(findings[0].kind, FindingKind.DEPTH_EXCEEDED)
        self.assertEqual(findings[0].left_label, "left.zip#/inner.zip")
        self.assertEqual(findings[0].right_label, "right.zip#/inner.zip")

        registry = InspectorRegistry([SizeHashInspector(), self.target], max_depth=2)
        findings = registry.compare_paths(left, right)
        self.assertEqual(
            findings[-1].left_label, "left.zip#/inner.zip#/x.txt"
        )
        self.assertEqual(findings[-1].kind, FindingKind.HASH_MISMATCH)

    def test_temp_dir_cleaned_up(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            target = ArchiveInspector(temp_dir=temp_dir)
            self.assertEqual(self._inspect(target, self.zip, self.zip), [])
            self.assertEqual(os.listdir(temp_dir), [])

    def _gzip_copy(self, path):
        with open(path, "rb") as src, gzip.open(path + ".gz", "wb") as dest:
            dest.write(src.read())
        return path + ".gz"

    def test_compressed_zip_expanding_past_size_limit(self):
        zeros = make_zip(
            self.tmp_dir.name, "zeros.zip", [("zeros.bin", b"\0" * 2**20)], STORED
        )
        left = self._gzip_copy(zeros)
        self.assertLess(os.path.getsize(left), 65536)
        target = ArchiveInspector(compress_memlimit=1024, archive_max_size=65536)
        findings = self._inspect(target, left, left)
        self.assertEqual(
            [(f.kind, f.left_label, f.right_excerpt) for f in findings],
            [
                (FindingKind.ARCHIVE_TOO_LARGE, "zeros.zip.gz", "65536 bytes"),
                (FindingKind.ARCHIVE_TOO_LARGE, "zeros.zip.gz", "65536 bytes"),
            ],
        )

    def test_broken_listing_is_reported(self):
        left = make_zip(self.tmp_dir.name, "left.zip", [("a", "1")], STORED)
        with open(left, "rb") as f:
            data = f.read()
        right = write_file(self.tmp_dir.name, "right.zip", data[:-22])
        findings = self._inspect(self.target, left, right)
        self.assertEqual(
            [(f.kind, f.left_label) for f in findings],
            [
                (FindingKind.EXTRACTION_FAILED_FOR_ENTRY, "right.zip"),
                (FindingKind.ENTRY_MISSING_FROM_RIGHT, "left.zip"),
            ],
        )
