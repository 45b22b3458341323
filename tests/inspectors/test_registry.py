# Copyright Red Hat
#
# tests/inspectors/test_registry.py - Inspector registry tests.
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from unittest.mock import MagicMock

from reprodiff.inspectors.findings import Finding, FindingKind
from reprodiff.inspectors.registry import (
    ComparisonRequest,
    InspectorBase,
    InspectorRegistry,
    gather,
)


class _FixedInspector(InspectorBase):
    """Minimal fulfillment of the ABC contract"""

    def __init__(self, findings):
        self.findings = findings
        self.requests = []

    def inspect(self, request, registry):
        self.requests.append(request)
        return list(self.findings)


class _FailingInspector(InspectorBase):
    def inspect(self, request, registry):
        raise OSError("Failed to read file")


def _finding(label):
    return Finding(FindingKind.HASH_MISMATCH, label, label)


class TestGather(unittest.TestCase):
    def test_results_in_call_order(self):
        self.assertEqual(gather([lambda: 1, lambda: 2, lambda: 3]), [1, 2, 3])

    def test_empty(self):
        self.assertEqual(gather([]), [])

    def test_exception_propagates(self):
        def fail():
            raise ValueError("boom")

        with self.assertRaises(ValueError):
            gather([lambda: 1, fail])

    def test_nested(self):
        self.assertEqual(
            gather([lambda: gather([lambda: "a", lambda: "b"]), lambda: ["c"]]),
            [["a", "b"], ["c"]],
        )


class TestComparisonRequest(unittest.TestCase):
    def test_for_paths_names(self):
        request = ComparisonRequest.for_paths("/build1/foo.jar", "/build2/foo.jar")
        self.assertEqual(request.left_name, "foo.jar")
        self.assertEqual(request.right_name, "foo.jar")
        self.assertEqual(request.depth, 0)

    def test_for_paths_display_names(self):
        request = ComparisonRequest.for_paths("/a", "/b", "left", "right")
        self.assertEqual((request.left_name, request.right_name), ("left", "right"))

    def test_descend(self):
        request = ComparisonRequest("/a.zip", "/b.zip", "a.zip", "b.zip", depth=1)
        child = request.descend("lib/x.jar", "/tmp/1", "/tmp/2")
        self.assertEqual(child.left_path, "/tmp/1")
        self.assertEqual(child.right_path, "/tmp/2")
        self.assertEqual(child.left_name, "a.zip#/lib/x.jar")
        self.assertEqual(child.right_name, "b.zip#/lib/x.jar")
        self.assertEqual(child.depth, 2)


class TestInspectorRegistry(unittest.TestCase):
    def test_empty_registry(self):
        registry = InspectorRegistry()
        self.assertEqual(registry.compare(ComparisonRequest("a", "b", "a", "b")), [])

    def test_findings_in_registration_order(self):
        first = _FixedInspector([_finding("one"), _finding("two")])
        second = _FixedInspector([])
        third = _FixedInspector([_finding("three")])
        registry = InspectorRegistry([first, second])
        registry.register(third)
        self.assertEqual(registry.inspectors, (first, second, third))
        findings = registry.compare(ComparisonRequest("a", "b", "a", "b"))
        self.assertEqual([f.left_label for f in findings], ["one", "two", "three"])

    def test_depth_limit(self):
        inspector = MagicMock()
        registry = InspectorRegistry([inspector], max_depth=3)
        findings = registry.compare(ComparisonRequest("a", "b", "x#/a", "y#/a", depth=4))
        self.assertEqual(
            findings,
            [Finding(FindingKind.DEPTH_EXCEEDED, "x#/a", "y#/a")],
        )
        inspector.inspect.assert_not_called()

    def test_max_depth_is_inclusive(self):
        inspector = _FixedInspector([])
        registry = InspectorRegistry([inspector], max_depth=3)
        self.assertEqual(registry.compare(ComparisonRequest("a", "b", "a", "b", 3)), [])
        self.assertEqual(len(inspector.requests), 1)

    def test_inspectors_receive_registry(self):
        inspector = MagicMock()
        inspector.inspect.return_value = []
        registry = InspectorRegistry([inspector])
        request = ComparisonRequest("a", "b", "a", "b")
        registry.compare(request)
        inspector.inspect.assert_called_once_with(request, registry)

    def test_compare_paths(self):
        inspector = _FixedInspector([])
        registry = InspectorRegistry([inspector])
        registry.compare_paths("/dir/left.txt", "/dir/right.txt")
        request = inspector.requests[0]
        self.assertEqual(request.left_name, "left.txt")
        self.assertEqual(request.right_name, "right.txt")
        self.assertEqual(request.depth, 0)

    def test_inspector_error_propagates(self):
        registry = InspectorRegistry([_FixedInspector([]), _FailingInspector()])
        with self.assertRaises(OSError):
            registry.compare_paths("a", "b")

    def test_inspector_name(self):
        self.assertEqual(_FixedInspector([]).name, "_FixedInspector")
