# Copyright Red Hat
#
# tests/inspectors/test_entries.py - EntryRecord and ExtractionBudget tests.
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest

from reprodiff import ReprodiffArgumentError, ReprodiffLimitError
from reprodiff.inspectors.entries import (
    EntryRecord,
    ExtractionBudget,
    NO_COMPRESSED_SIZE,
)
from reprodiff.inspectors.findings import Finding, FindingKind


class TestEntryRecord(unittest.TestCase):
    def test_defaults(self):
        entry = EntryRecord("a.txt")
        self.assertFalse(entry.is_directory)
        self.assertFalse(entry.extracted)
        self.assertIsNone(entry.local_path)
        self.assertEqual(entry.compressed_size, NO_COMPRESSED_SIZE)
        self.assertEqual(entry.findings, [])

    def test_mark_extracted(self):
        entry = EntryRecord("a.txt")
        entry.mark_extracted("/tmp/abc")
        self.assertTrue(entry.extracted)
        self.assertEqual(entry.local_path, "/tmp/abc")

    def test_mark_extracted_directory_raises(self):
        entry = EntryRecord("dir/", is_directory=True)
        with self.assertRaises(ReprodiffArgumentError):
            entry.mark_extracted("/tmp/abc")
        self.assertFalse(entry.extracted)

    def test_equality_ignores_local_path_and_findings(self):
        one = EntryRecord("a.txt", timestamp="t", uncompressed_size=3)
        two = EntryRecord("a.txt", timestamp="t", uncompressed_size=3)
        one.mark_extracted("/tmp/one")
        two.mark_extracted("/tmp/two")
        two.add_finding(Finding(FindingKind.EXTRACTION_FAILED_FOR_ENTRY, "x"))
        self.assertEqual(one, two)

    def test_equality_includes_extracted(self):
        one = EntryRecord("a.txt")
        two = EntryRecord("a.txt")
        one.mark_extracted("/tmp/one")
        self.assertNotEqual(one, two)

    def test_equality_includes_metadata(self):
        self.assertNotEqual(
            EntryRecord("a.txt", permissions="644"),
            EntryRecord("a.txt", permissions="755"),
        )


class TestExtractionBudget(unittest.TestCase):
    def test_limited(self):
        budget = ExtractionBudget(110)
        self.assertFalse(budget.unlimited)
        self.assertFalse(budget.exhausted)
        self.assertEqual(budget.copy_limit, 110)
        budget.consume(100)
        self.assertEqual(budget.remaining, 10)
        self.assertEqual(budget.copy_limit, 10)
        budget.consume(10)
        self.assertTrue(budget.exhausted)

    def test_consume_too_much_raises(self):
        budget = ExtractionBudget(10)
        with self.assertRaises(ReprodiffLimitError):
            budget.consume(11)
        self.assertEqual(budget.remaining, 10)

    def test_unlimited(self):
        for limit in (0, -1):
            budget = ExtractionBudget(limit)
            self.assertTrue(budget.unlimited)
            self.assertFalse(budget.exhausted)
            self.assertEqual(budget.copy_limit, -1)
            budget.consume(2**40)
            self.assertFalse(budget.exhausted)

    def test_ExtractionBudget__repr__(self):
        self.assertEqual(
            repr(ExtractionBudget(5)), "ExtractionBudget(total_limit=5, remaining=5)"
        )
