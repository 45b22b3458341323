# Copyright Red Hat
#
# reprodiff/command.py - Reproducible build differ command interface
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``reprodiff.command`` module provides both the reprodiff command line
interface infrastructure, and a simple procedural interface to the
``reprodiff`` library modules.

The procedural interface is used by the ``reprodiff`` command line tool,
and may be used by application programs, or interactively in the
Python shell by users who do not require all the features present
in the reprodiff object API.
"""
from argparse import ArgumentParser, ArgumentTypeError
from typing import List, Optional
from os.path import basename
from json import dumps
import logging
import sys

from reprodiff import (
    REPRODIFF_DEBUG_REGISTRY,
    REPRODIFF_DEBUG_ARCHIVE,
    REPRODIFF_DEBUG_TEXT,
    REPRODIFF_DEBUG_HASH,
    REPRODIFF_DEBUG_COMMAND,
    REPRODIFF_DEBUG_ALL,
    REPRODIFF_SUBSYSTEM_COMMAND,
    DEFAULT_MAX_DEPTH,
    DEFAULT_COMPRESS_MEMLIMIT,
    DEFAULT_ARCHIVE_MAX_SIZE,
    DEFAULT_ARCHIVE_MAX_EXTRACTED_SIZE,
    DEFAULT_TEXT_MAX_SIZE,
    DEFAULT_HASH_ALGORITHM,
    ReprodiffArgumentError,
    ReprodiffNotFoundError,
    SubsystemFilter,
    set_debug_mask,
    parse_size_with_units,
    __version__,
)
from .inspectors import (
    ArchiveInspector,
    Finding,
    InspectOptions,
    InspectorRegistry,
    SizeHashInspector,
    TextDiffInspector,
    HASH_ALGORITHMS,
    make_hash_func,
)

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_command(msg, *args, **kwargs):
    """A wrapper for command subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": REPRODIFF_SUBSYSTEM_COMMAND}, **kwargs)


_DEFAULT_LOG_LEVEL = logging.WARNING
_CONSOLE_HANDLER = None

#: No differences were found
EXIT_SAME = 0
#: One or more differences were found
EXIT_DIFFERENT = 1
#: The comparison could not be completed
EXIT_ERROR = 2


def build_registry(options: Optional[InspectOptions] = None) -> InspectorRegistry:
    """
    Build an ``InspectorRegistry`` holding the standard inspectors configured
    from ``options``: size and hash, archive structure and text diff, in
    that order.

    :param options: The inspection options to use, or ``None`` for the
                    defaults.
    :type options: ``Optional[InspectOptions]``
    :returns: A new inspector registry.
    :rtype: ``InspectorRegistry``
    """
    options = options or InspectOptions()
    return InspectorRegistry(
        [
            SizeHashInspector(
                options.ignore_size, make_hash_func(options.hash_algorithm)
            ),
            ArchiveInspector(
                compress_memlimit=options.archive_compress_memlimit,
                archive_max_size=options.archive_max_size,
                max_extracted_size=options.archive_max_extracted_size,
                temp_dir=options.temp_dir,
            ),
            TextDiffInspector(options.text_max_size),
        ],
        max_depth=options.max_depth,
    )


def compare_files(
    left: str, right: str, options: Optional[InspectOptions] = None
) -> List[Finding]:
    """
    Compare the files ``left`` and ``right``, recursing into archives.

    :param left: Path of the left hand file.
    :type left: ``str``
    :param right: Path of the right hand file.
    :type right: ``str``
    :param options: The inspection options to use, or ``None`` for the
                    defaults.
    :type options: ``Optional[InspectOptions]``
    :returns: A list of findings, empty if the files are equivalent.
    :rtype: ``List[Finding]``
    :raises: ``ReprodiffNotFoundError`` if either file does not exist, or
             ``OSError`` if a file cannot be read.
    """
    registry = build_registry(options)
    return registry.compare_paths(left, right)


def print_findings(findings: List[Finding], json=False, out=None):
    """
    Print a list of findings.

    :param findings: The findings to print.
    :type findings: ``List[Finding]``
    :param json: Print the findings as a JSON array.
    :type json: ``bool``
    :param out: The stream to print to (defaults to ``sys.stderr``).
    """
    out = out or sys.stderr
    if json:
        print(dumps([finding.to_dict() for finding in findings], indent=4), file=out)
        return
    for finding in findings:
        print(f"{finding}\n", file=out)


def setup_logging(cmd_args):
    """
    Set up reprodiff logging.
    """
    # pylint: disable=global-statement
    global _CONSOLE_HANDLER
    level = _DEFAULT_LOG_LEVEL
    debug = cmd_args.debug or cmd_args.debug_subsystems
    if debug or (cmd_args.verbose and cmd_args.verbose > 1):
        level = logging.DEBUG
    elif cmd_args.verbose and cmd_args.verbose > 0:
        level = logging.INFO

    reprodiff_log = logging.getLogger("reprodiff")
    formatter = logging.Formatter("%(levelname)s - %(message)s")
    reprodiff_log.setLevel(level)
    if reprodiff_log.hasHandlers():
        reprodiff_log.handlers.clear()

    # Subsystem log filtering
    _reprodiff_subsystem_filter = SubsystemFilter("reprodiff")

    # Main console handler
    _CONSOLE_HANDLER = logging.StreamHandler(sys.stderr)

    _CONSOLE_HANDLER.setLevel(level)
    _CONSOLE_HANDLER.setFormatter(formatter)
    _CONSOLE_HANDLER.addFilter(_reprodiff_subsystem_filter)

    reprodiff_log.addHandler(_CONSOLE_HANDLER)


def shutdown_logging():
    """
    Shut down reprodiff logging.
    """
    logging.shutdown()


def set_debug(debug_arg):
    """
    Set debugging mask from command line argument.
    """
    if not debug_arg:
        return

    mask_map = {
        "registry": REPRODIFF_DEBUG_REGISTRY,
        "archive": REPRODIFF_DEBUG_ARCHIVE,
        "text": REPRODIFF_DEBUG_TEXT,
        "hash": REPRODIFF_DEBUG_HASH,
        "command": REPRODIFF_DEBUG_COMMAND,
        "all": REPRODIFF_DEBUG_ALL,
    }

    mask = 0
    for name in debug_arg.split(","):
        if name not in mask_map:
            raise ValueError(f"Unknown debug option: {name}")
        mask |= mask_map[name]
    set_debug_mask(mask)


def _size_arg(value: str) -> int:
    """
    Parse a size option value with an optional unit suffix.
    """
    try:
        return parse_size_with_units(value)
    except ReprodiffArgumentError as err:
        raise ArgumentTypeError(str(err)) from err


def _add_limit_args(parser):
    parser.add_argument(
        "--max-depth",
        type=int,
        metavar="N",
        help=f"Maximum depth of recursive analysis (default: {DEFAULT_MAX_DEPTH})",
    )
    parser.add_argument(
        "--archive-compress-memlimit",
        type=_size_arg,
        metavar="BYTES",
        help="Memory limit for in-memory archive operations "
        f"(default: {DEFAULT_COMPRESS_MEMLIMIT})",
    )
    parser.add_argument(
        "--archive-max-size",
        type=_size_arg,
        metavar="BYTES",
        help="Limit for the size of analyzed archives; zero or negative for no "
        f"limit (default: {DEFAULT_ARCHIVE_MAX_SIZE})",
    )
    parser.add_argument(
        "--archive-max-extracted-size",
        type=_size_arg,
        metavar="BYTES",
        help="Limit for the total size of files extracted from one archive; "
        f"zero or negative for no limit (default: {DEFAULT_ARCHIVE_MAX_EXTRACTED_SIZE})",
    )
    parser.add_argument(
        "--text-max-size",
        type=_size_arg,
        metavar="BYTES",
        help="Limit for the size of text files to diff; negative for no limit "
        f"(default: {DEFAULT_TEXT_MAX_SIZE})",
    )


def _add_json_arg(parser):
    parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Print differences in JSON notation",
    )


def _compare_cmd(cmd_args) -> int:
    """
    Compare the files named on the command line and print any differences.

    :param cmd_args: Command line arguments for the command.
    :returns: An exit status code.
    """
    try:
        options = InspectOptions.from_cmd_args(cmd_args)
    except ReprodiffArgumentError as err:
        print(f"Invalid argument: {err}", file=sys.stderr)
        return EXIT_ERROR

    _log_debug_command(
        "Comparing %s and %s with options:\n%s", cmd_args.left, cmd_args.right, options
    )
    try:
        findings = compare_files(cmd_args.left, cmd_args.right, options)
    except ReprodiffNotFoundError as err:
        print(f"File does not exist: {err.path}", file=sys.stderr)
        return EXIT_ERROR
    except FileNotFoundError as err:
        print(f"File does not exist: {err.filename}", file=sys.stderr)
        return EXIT_ERROR
    except PermissionError as err:
        print(f"Access denied: {err.filename}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as err:
        print(f"IO exception: {err}", file=sys.stderr)
        return EXIT_ERROR

    if not findings:
        _log_info("No differences found")
        return EXIT_SAME
    print_findings(findings, json=cmd_args.json)
    return EXIT_DIFFERENT


def main(args):
    """
    Main entry point for reprodiff.
    """
    parser = ArgumentParser(
        description="Reproducible build differ", prog=basename(args[0])
    )

    parser.add_argument("left", metavar="LEFT", help="Left file to compare")
    parser.add_argument("right", metavar="RIGHT", help="Right file to compare")
    parser.add_argument(
        "--ignore-size",
        action="store_true",
        help="Compare file hashes even if the file sizes differ",
    )
    _add_limit_args(parser)
    parser.add_argument(
        "--hash-algorithm",
        choices=HASH_ALGORITHMS,
        help=f"Whole-file digest algorithm (default: {DEFAULT_HASH_ALGORITHM})",
    )
    parser.add_argument(
        "--temp-dir",
        metavar="DIR",
        help="Directory for files extracted from archives",
    )
    _add_json_arg(parser)
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--debug-subsystems",
        metavar="DEBUGOPTS",
        type=str,
        help="A list of debug subsystems to enable: registry, archive, text, "
        "hash, command or all (default: all)",
    )
    parser.add_argument("-v", "--verbose", help="Enable verbose output", action="count")
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        help="Report the version number of reprodiff",
        version=__version__,
    )

    cmd_args = parser.parse_args(args[1:])

    if cmd_args.debug and not cmd_args.debug_subsystems:
        cmd_args.debug_subsystems = "all"

    try:
        set_debug(cmd_args.debug_subsystems)
    except ValueError as err:
        print(err, file=sys.stderr)
        parser.print_help()
        return EXIT_ERROR

    setup_logging(cmd_args)

    _log_debug_command("Parsed %s", " ".join(args[1:]))

    try:
        status = _compare_cmd(cmd_args)
    except KeyboardInterrupt:  # pragma: no cover
        _log_info("Exiting on user cancel")
        status = EXIT_ERROR

    shutdown_logging()
    return status


def run():
    """
    Console script entry point.
    """
    sys.exit(main(sys.argv))


# vim: set et ts=4 sw=4 :
