# Copyright Red Hat
#
# tests/inspectors/test_options.py - InspectOptions tests.
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from argparse import Namespace

from reprodiff import (
    DEFAULT_ARCHIVE_MAX_SIZE,
    DEFAULT_MAX_DEPTH,
    ReprodiffArgumentError,
)
from reprodiff.inspectors.options import InspectOptions


class TestInspectOptions(unittest.TestCase):
    def test_InspectOptions__str__(self):
        opts = InspectOptions(ignore_size=True, max_depth=5)
        s = str(opts)
        self.assertIn("ignore_size=True", s)
        self.assertIn("max_depth=5", s)
        self.assertIn("hash_algorithm=sha256", s)

    def test_defaults(self):
        opts = InspectOptions()
        self.assertFalse(opts.ignore_size)
        self.assertEqual(opts.max_depth, DEFAULT_MAX_DEPTH)
        self.assertEqual(opts.archive_max_size, DEFAULT_ARCHIVE_MAX_SIZE)
        self.assertIsNone(opts.temp_dir)

    def test_from_cmd_args(self):
        """Test initialization from argparse Namespace."""
        args = Namespace(
            ignore_size=True,
            max_depth=1,
            text_max_size=-1,
            archive_max_size=None,
            unknown_arg="ignored",
        )
        opts = InspectOptions.from_cmd_args(args)

        self.assertTrue(opts.ignore_size)
        self.assertEqual(opts.max_depth, 1)
        self.assertEqual(opts.text_max_size, -1)
        # Should use defaults for missing or None args
        self.assertEqual(opts.archive_max_size, DEFAULT_ARCHIVE_MAX_SIZE)
        self.assertEqual(opts.hash_algorithm, "sha256")

    def test_negative_max_depth(self):
        with self.assertRaises(ReprodiffArgumentError):
            InspectOptions(max_depth=-1)

    def test_non_positive_memlimit(self):
        with self.assertRaises(ReprodiffArgumentError):
            InspectOptions(archive_compress_memlimit=0)

    def test_frozen(self):
        opts = InspectOptions()
        with self.assertRaises(AttributeError):
            opts.max_depth = 10
