# Copyright Red Hat
#
# reprodiff/_reprodiff.py - Reproducible build differ global definitions
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Global definitions for the top-level reprodiff package.
"""
import logging
import math
import re

_log = logging.getLogger("reprodiff")

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

# Reprodiff debugging subsystem mask
REPRODIFF_DEBUG_REGISTRY = 1
REPRODIFF_DEBUG_ARCHIVE = 2
REPRODIFF_DEBUG_TEXT = 4
REPRODIFF_DEBUG_HASH = 8
REPRODIFF_DEBUG_COMMAND = 16
REPRODIFF_DEBUG_ALL = (
    REPRODIFF_DEBUG_REGISTRY
    | REPRODIFF_DEBUG_ARCHIVE
    | REPRODIFF_DEBUG_TEXT
    | REPRODIFF_DEBUG_HASH
    | REPRODIFF_DEBUG_COMMAND
)

# Reprodiff debugging subsystem names
REPRODIFF_SUBSYSTEM_REGISTRY = "reprodiff.registry"
REPRODIFF_SUBSYSTEM_ARCHIVE = "reprodiff.archive"
REPRODIFF_SUBSYSTEM_TEXT = "reprodiff.text"
REPRODIFF_SUBSYSTEM_HASH = "reprodiff.hash"
REPRODIFF_SUBSYSTEM_COMMAND = "reprodiff.command"

_DEBUG_MASK_TO_SUBSYSTEM = {
    REPRODIFF_DEBUG_REGISTRY: REPRODIFF_SUBSYSTEM_REGISTRY,
    REPRODIFF_DEBUG_ARCHIVE: REPRODIFF_SUBSYSTEM_ARCHIVE,
    REPRODIFF_DEBUG_TEXT: REPRODIFF_SUBSYSTEM_TEXT,
    REPRODIFF_DEBUG_HASH: REPRODIFF_SUBSYSTEM_HASH,
    REPRODIFF_DEBUG_COMMAND: REPRODIFF_SUBSYSTEM_COMMAND,
}

_debug_subsystems = set()

#: Default maximum depth of recursive archive inspection
DEFAULT_MAX_DEPTH = 3
#: Default memory limit for in-memory decompression (bytes)
DEFAULT_COMPRESS_MEMLIMIT = 10240000
#: Default limit for the size of an analysed archive (bytes)
DEFAULT_ARCHIVE_MAX_SIZE = 256000000
#: Default limit for the total size extracted from one archive (bytes)
DEFAULT_ARCHIVE_MAX_EXTRACTED_SIZE = 512000000
#: Default limit for the size of text files to diff (bytes)
DEFAULT_TEXT_MAX_SIZE = 262144
#: Default whole-file digest algorithm
DEFAULT_HASH_ALGORITHM = "sha256"

_SIZE_RE = re.compile(
    r"^(?P<sign>-?)(?P<size>[0-9]+)(?P<units>([KMGTPEZkmgtpez]i{,1})?[Bb]{,1})$"
)

#: All suffixes are expressed in powers of two.
_SIZE_SUFFIXES = {
    "B": 1,
    "K": 2**10,
    "M": 2**20,
    "G": 2**30,
    "T": 2**40,
    "P": 2**50,
    "E": 2**60,
    "Z": 2**70,
}


class SubsystemFilter(logging.Filter):
    """
    Filters DEBUG records based on a set of enabled subsystem names.
    Non-DEBUG records or DEBUG records without a 'subsystem' attribute
    are always passed through.
    """

    def __init__(self, name=""):
        super().__init__(name)
        self.enabled_subsystems = set(_debug_subsystems)

    def filter(self, record):
        # Always pass non-DEBUG messages.
        if record.levelno != logging.DEBUG:
            return True

        # Always pass DEBUG messages that aren't for a specific subsystem.
        if not hasattr(record, "subsystem"):
            return True

        return record.subsystem in self.enabled_subsystems

    def set_debug_subsystems(self, subsystems):
        """Sets the collection of subsystems to allow."""
        self.enabled_subsystems = set(subsystems)


def get_debug_mask():
    """
    Return the current debug mask for the ``reprodiff`` package.

    :returns: The current debug mask value
    :rtype: int
    """
    enabled_subsystems = set(_debug_subsystems)
    reprodiff_log = logging.getLogger("reprodiff")

    for handler in reprodiff_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                enabled_subsystems.update(f.enabled_subsystems)

    mask_map = {v: k for k, v in _DEBUG_MASK_TO_SUBSYSTEM.items()}
    mask = 0
    for subsystem_name in enabled_subsystems:
        mask |= mask_map.get(subsystem_name, 0)
    return mask


def set_debug_mask(mask):
    """
    Set the debug mask for the ``reprodiff`` package.

    :param mask: the logical OR of the ``REPRODIFF_DEBUG_*``
                 values to log.
    :rtype: None
    """
    # pylint: disable=global-statement
    global _debug_subsystems

    if mask < 0 or mask > REPRODIFF_DEBUG_ALL:
        raise ValueError(f"Invalid reprodiff debug mask: {mask}")

    enabled_subsystems = []
    for flag, subsystem_name in _DEBUG_MASK_TO_SUBSYSTEM.items():
        if mask & flag:
            enabled_subsystems.append(subsystem_name)

    reprodiff_log = logging.getLogger("reprodiff")
    for handler in reprodiff_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                f.set_debug_subsystems(enabled_subsystems)

    _debug_subsystems = set(enabled_subsystems)


#
# Reprodiff exception types
#


class ReprodiffError(Exception):
    """
    Base class for reprodiff errors.
    """


class ReprodiffNotFoundError(ReprodiffError):
    """
    An input file to compare does not exist.
    """

    def __init__(self, path):
        """
        Initialise a new ``ReprodiffNotFoundError`` exception.

        :param path: The path that could not be found.
        """
        self.path = path
        super().__init__(str(path))


class ReprodiffArgumentError(ReprodiffError):
    """
    An invalid argument was passed to a reprodiff API call.
    """


class ReprodiffLimitError(ReprodiffError):
    """
    A configured resource limit would be exceeded.
    """

    def __init__(self, written: int, limit: int):
        """
        Initialise a new ``ReprodiffLimitError`` exception.

        :param written: The number of bytes written when the limit tripped.
        :param limit: The limit that was exceeded.
        """
        self.written, self.limit = written, limit
        super().__init__(f"{written} bytes written exceeds limit of {limit} bytes")


def size_fmt(value):
    """
    Format a size in bytes as a human readable string.

    :param value: The integer value to format.
    :returns: A human readable string reflecting value.
    """
    suffixes = ["B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB", "ZiB"]
    if value == 0:
        return "0B"
    magnitude = math.floor(math.log(abs(value), 1024))
    val = value / math.pow(1024, magnitude)
    if magnitude > 7:
        return f"{val:.1f}YiB"
    return f"{val:3.1f}{suffixes[magnitude]}"


def parse_size_with_units(value):
    """
    Parse a size string with optional unit suffix and return a value in bytes.

    A leading minus sign is accepted so that negative "unlimited" values may
    be given on the command line.

    :param value: The size string to parse.
    :returns: an integer size in bytes.
    :raises: ``ReprodiffArgumentError`` if the string could not be parsed as
             a valid size value.
    """
    match = _SIZE_RE.search(value)
    if match is None:
        raise ReprodiffArgumentError(f"Malformed size expression: '{value}'")
    (size, unit) = (match.group("size"), match.group("units").upper())
    size_bytes = int(size) * _SIZE_SUFFIXES[unit[0] if unit else "B"]
    return -size_bytes if match.group("sign") else size_bytes


__all__ = [
    "REPRODIFF_DEBUG_REGISTRY",
    "REPRODIFF_DEBUG_ARCHIVE",
    "REPRODIFF_DEBUG_TEXT",
    "REPRODIFF_DEBUG_HASH",
    "REPRODIFF_DEBUG_COMMAND",
    "REPRODIFF_DEBUG_ALL",
    # Debug logging - subsystem name interface
    "SubsystemFilter",
    "REPRODIFF_SUBSYSTEM_REGISTRY",
    "REPRODIFF_SUBSYSTEM_ARCHIVE",
    "REPRODIFF_SUBSYSTEM_TEXT",
    "REPRODIFF_SUBSYSTEM_HASH",
    "REPRODIFF_SUBSYSTEM_COMMAND",
    "set_debug_mask",
    "get_debug_mask",
    # Defaults
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_COMPRESS_MEMLIMIT",
    "DEFAULT_ARCHIVE_MAX_SIZE",
    "DEFAULT_ARCHIVE_MAX_EXTRACTED_SIZE",
    "DEFAULT_TEXT_MAX_SIZE",
    "DEFAULT_HASH_ALGORITHM",
    # Exceptions
    "ReprodiffError",
    "ReprodiffNotFoundError",
    "ReprodiffArgumentError",
    "ReprodiffLimitError",
    "size_fmt",
    "parse_size_with_units",
]
