# Copyright Red Hat
#
# tests/__init__.py - Reprodiff test package
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
import logging
import os
import time

log = logging.getLogger()
log.setLevel(logging.DEBUG)
formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
file_handler = logging.FileHandler("test.log")
file_handler.setFormatter(formatter)
console_handler = logging.StreamHandler()
console_handler.setFormatter(formatter)
log.addHandler(file_handler)
log.addHandler(console_handler)

os.environ["TZ"] = "UTC"
time.tzset()


class MockArgs(object):
    left = None
    right = None
    ignore_size = False
    max_depth = None
    archive_compress_memlimit = None
    archive_max_size = None
    archive_max_extracted_size = None
    text_max_size = None
    hash_algorithm = None
    temp_dir = None
    json = False
    debug = False
    debug_subsystems = None
    verbose = 0
    version = False
