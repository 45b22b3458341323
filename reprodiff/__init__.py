# Copyright Red Hat
#
# reprodiff/__init__.py - Reproducible build differ package initialisation
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Reprodiff top-level package.
"""
from ._reprodiff import *  # noqa: F401, F403
from ._reprodiff import __all__  # noqa: F401

__version__ = "0.1.0"
