# Copyright Red Hat
#
# reprodiff/inspectors/options.py - Reproducible build differ options
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Inspection options.
"""
from dataclasses import dataclass, fields
from typing import Optional, Union
from argparse import Namespace
import logging

from reprodiff import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_COMPRESS_MEMLIMIT,
    DEFAULT_ARCHIVE_MAX_SIZE,
    DEFAULT_ARCHIVE_MAX_EXTRACTED_SIZE,
    DEFAULT_TEXT_MAX_SIZE,
    DEFAULT_HASH_ALGORITHM,
    ReprodiffArgumentError,
)

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


@dataclass(frozen=True)
class InspectOptions:
    """
    File and archive comparison options.
    """

    #: Keep going (hash the files) after a file size mismatch
    ignore_size: bool = False
    #: Maximum depth of recursive archive analysis
    max_depth: int = DEFAULT_MAX_DEPTH
    #: Memory limit for in-memory decompression (bytes)
    archive_compress_memlimit: int = DEFAULT_COMPRESS_MEMLIMIT
    #: Limit for the size of analysed archives (bytes, <= 0 for no limit)
    archive_max_size: int = DEFAULT_ARCHIVE_MAX_SIZE
    #: Limit for the total size extracted from one archive (<= 0 for no limit)
    archive_max_extracted_size: int = DEFAULT_ARCHIVE_MAX_EXTRACTED_SIZE
    #: Limit for the size of text files to diff (bytes, < 0 for no limit)
    text_max_size: int = DEFAULT_TEXT_MAX_SIZE
    #: Whole-file digest algorithm
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
    #: Directory for extracted archive members (``None`` for the default)
    temp_dir: Optional[str] = None

    def __post_init__(self):
        """
        Validate option values.

        :raises: ``ReprodiffArgumentError`` if an option is out of range.
        """
        if self.max_depth < 0:
            raise ReprodiffArgumentError(
                f"Maximum depth must be non-negative: {self.max_depth}"
            )
        if self.archive_compress_memlimit <= 0:
            raise ReprodiffArgumentError(
                "Compression memory limit must be positive: "
                f"{self.archive_compress_memlimit}"
            )

    def __str__(self):
        """
        Return a human readable string representation of this
        ``InspectOptions`` instance.

        :returns: A human readable string.
        :rtype: ``str``
        """
        return "\n".join(f"{key}={val}" for key, val in self.__dict__.items())

    @classmethod
    def from_cmd_args(cls, cmd_args: Namespace) -> "InspectOptions":
        """
        Initialise InspectOptions from command line arguments.

        Construct a new ``InspectOptions`` object from the command line
        arguments in ``cmd_args``. Arguments that are absent or ``None`` keep
        their default values.

        :param cmd_args: The command line selection arguments.
        :type cmd_args: ``Namespace``
        :returns: A new ``InspectOptions`` instance
        :rtype: ``InspectOptions``
        """

        def get_value(name: str) -> Union[bool, int, Optional[str]]:
            """
            Get a value from ``cmd_args``.

            :param name: The name of the argument.
            :type name: ``str``
            :returns: The argument value.
            :rtype: ``Union[bool, int, Optional[str]]``
            """
            return getattr(cmd_args, name)

        field_names = {f.name for f in fields(cls)}
        kwargs = {
            name: get_value(name)
            for name in field_names
            if getattr(cmd_args, name, None) is not None
        }
        options = cls(**kwargs)
        _log_debug("Initialised InspectOptions from arguments: %s", repr(options))
        return options
