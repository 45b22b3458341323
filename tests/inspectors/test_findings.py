# Copyright Red Hat
#
# tests/inspectors/test_findings.py - Finding tests.
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import json

from reprodiff.inspectors.findings import Finding, FindingKind


class TestFindingKind(unittest.TestCase):
    def test_every_kind_has_description(self):
        for kind in FindingKind:
            self.assertTrue(kind.description)

    def test_is_text(self):
        self.assertTrue(FindingKind.TEXT_LINES_INSERTED.is_text)
        self.assertTrue(FindingKind.TEXT_LINES_CHANGED.is_text)
        self.assertTrue(FindingKind.TEXT_LINES_DELETED.is_text)
        self.assertFalse(FindingKind.HASH_MISMATCH.is_text)
        self.assertFalse(FindingKind.ORDER_MISMATCH.is_text)


class TestFinding(unittest.TestCase):
    def test_Finding__str__with_excerpts(self):
        finding = Finding(
            FindingKind.SIZE_MISMATCH,
            "a.jar",
            "b.jar",
            left_excerpt="10 bytes",
            right_excerpt="20 bytes",
        )
        self.assertEqual(
            str(finding), "File size mismatch: 10 bytes (a.jar) vs 20 bytes (b.jar)"
        )

    def test_Finding__str__labels_only(self):
        finding = Finding(FindingKind.DEPTH_EXCEEDED, "a.zip#/b.zip", "c.zip#/b.zip")
        self.assertEqual(
            str(finding),
            "Depth limit exceeded, will not diff: a.zip#/b.zip vs c.zip#/b.zip",
        )

    def test_Finding__str__single_side(self):
        finding = Finding(FindingKind.DUPLICATE_ENTRIES, "a.zip")
        self.assertEqual(str(finding), "Duplicate entries found: a.zip")

    def test_Finding__str__suffix(self):
        finding = Finding(
            FindingKind.EXTRACTION_FAILED_FOR_ENTRY,
            "a.zip#/big.bin",
            suffix="(more than 110 bytes written)",
        )
        self.assertEqual(
            str(finding),
            "Failed to extract this file: a.zip#/big.bin (more than 110 bytes written)",
        )

    def test_Finding__str__text_insert(self):
        finding = Finding(
            FindingKind.TEXT_LINES_INSERTED,
            "old.txt",
            "new.txt",
            left_range=(7, 7),
            right_range=(7, 9),
            right_excerpt="line seven\nline eight",
        )
        self.assertEqual(
            str(finding),
            "Extra lines in right: (old.txt, 7:7) vs (new.txt, 7:9)\n"
            "+ line seven\n"
            "+ line eight",
        )

    def test_Finding__str__text_change(self):
        finding = Finding(
            FindingKind.TEXT_LINES_CHANGED,
            "old.txt",
            "new.txt",
            left_range=(4, 5),
            right_range=(4, 5),
            left_excerpt="before",
            right_excerpt="after",
        )
        lines = str(finding).splitlines()
        self.assertEqual(lines[0], "Changed lines in right: (old.txt, 4:5) vs (new.txt, 4:5)")
        self.assertEqual(lines[1:], ["- before", "+ after"])

    def test_Finding__str__text_blank_line(self):
        finding = Finding(
            FindingKind.TEXT_LINES_DELETED,
            "old.txt",
            "new.txt",
            left_range=(2, 3),
            right_range=(2, 2),
            left_excerpt="",
        )
        self.assertTrue(str(finding).endswith("\n- "))

    def test_Finding_equality(self):
        one = Finding(FindingKind.HASH_MISMATCH, "a", "b", left_excerpt="x")
        two = Finding(FindingKind.HASH_MISMATCH, "a", "b", left_excerpt="x")
        self.assertEqual(one, two)
        self.assertEqual(hash(one), hash(two))

    def test_to_dict(self):
        finding = Finding(
            FindingKind.TEXT_LINES_CHANGED,
            "a",
            "b",
            left_range=(1, 2),
            right_range=(1, 2),
            left_excerpt="x",
            right_excerpt="y",
        )
        data = finding.to_dict()
        self.assertEqual(data["kind"], "text-lines-changed")
        self.assertEqual(data["description"], "Changed lines in right")
        self.assertEqual(data["left_range"], [1, 2])
        self.assertEqual(data["right_excerpt"], "y")
        self.assertIsNone(data["suffix"])

    def test_json(self):
        finding = Finding(FindingKind.ORDER_MISMATCH, "a.zip", "b.zip")
        data = json.loads(finding.json())
        self.assertEqual(data["kind"], "order-mismatch")
        self.assertIsNone(data["left_range"])
        self.assertIn("\n", finding.json(pretty=True))
