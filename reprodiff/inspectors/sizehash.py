# Copyright Red Hat
#
# reprodiff/inspectors/sizehash.py - Reproducible build differ size and hash
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Whole-file size and digest comparison.
"""
from hashlib import md5, sha1, sha256, sha512
from typing import BinaryIO, Callable, List
import logging
import os

from reprodiff import (
    DEFAULT_HASH_ALGORITHM,
    REPRODIFF_SUBSYSTEM_HASH,
    ReprodiffArgumentError,
    ReprodiffNotFoundError,
)

from .findings import Finding, FindingKind
from .registry import ComparisonRequest, InspectorBase, InspectorRegistry, gather

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_hash(msg, *args, **kwargs):
    """A wrapper for hash subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": REPRODIFF_SUBSYSTEM_HASH}, **kwargs)


_HASH_TYPES = {
    "md5": md5,
    "sha1": sha1,
    "sha256": sha256,
    "sha512": sha512,
}

#: Supported digest algorithm names.
HASH_ALGORITHMS = tuple(_HASH_TYPES.keys())

_HASH_CHUNK_SIZE = 65536

#: Computes a hex digest of a binary stream.
HashFunc = Callable[[BinaryIO], str]


def make_hash_func(algorithm: str = DEFAULT_HASH_ALGORITHM) -> HashFunc:
    """
    Return a function computing the ``algorithm`` hex digest of a stream.

    :param algorithm: One of ``HASH_ALGORITHMS``.
    :type algorithm: ``str``
    :returns: A stream digest function.
    :rtype: ``HashFunc``
    :raises: ``ReprodiffArgumentError`` if ``algorithm`` is not supported.
    """
    if algorithm not in _HASH_TYPES:
        raise ReprodiffArgumentError(f"Unknown hash algorithm: {algorithm}")
    hash_type = _HASH_TYPES[algorithm]

    def hash_stream(stream: BinaryIO) -> str:
        hasher = hash_type(usedforsecurity=False)
        for chunk in iter(lambda: stream.read(_HASH_CHUNK_SIZE), b""):
            hasher.update(chunk)
        return hasher.hexdigest()

    return hash_stream


class SizeHashInspector(InspectorBase):
    """
    Compare file sizes, then whole-file digests.
    """

    def __init__(self, ignore_size: bool = False, hash_func: HashFunc = None):
        """
        Initialise a new ``SizeHashInspector``.

        :param ignore_size: Compare digests even when the sizes differ.
        :type ignore_size: ``bool``
        :param hash_func: The stream digest function to use (defaults to
                          chunked sha256).
        :type hash_func: ``HashFunc``
        """
        self.ignore_size = ignore_size
        self.hash_func = hash_func or make_hash_func()

    def _hash_file(self, path: str) -> str:
        with open(path, "rb") as fp:
            return self.hash_func(fp)

    def inspect(
        self, request: ComparisonRequest, registry: InspectorRegistry
    ) -> List[Finding]:
        """
        Compare the sizes and digests of the two files named by ``request``.

        :param request: The pair of files to compare.
        :type request: ``ComparisonRequest``
        :param registry: The calling registry (unused).
        :type registry: ``InspectorRegistry``
        :returns: A size and/or hash mismatch finding, or an empty list.
        :rtype: ``List[Finding]``
        :raises: ``ReprodiffNotFoundError`` if either file does not exist.
        """
        paths = (request.left_path, request.right_path)
        for path in paths:
            if not os.path.exists(path):
                raise ReprodiffNotFoundError(path)

        findings = []
        left_size, right_size = (os.path.getsize(path) for path in paths)
        if left_size != right_size:
            findings.append(
                Finding(
                    FindingKind.SIZE_MISMATCH,
                    request.left_name,
                    request.right_name,
                    left_excerpt=f"{left_size} bytes",
                    right_excerpt=f"{right_size} bytes",
                )
            )
            if not self.ignore_size:
                return findings

        left_hash, right_hash = gather(
            [lambda path=path: self._hash_file(path) for path in paths],
            name="reprodiff-hash",
        )
        _log_debug_hash(
            "Hashed %s=%s %s=%s",
            request.left_name,
            left_hash,
            request.right_name,
            right_hash,
        )
        if left_hash != right_hash:
            findings.append(
                Finding(
                    FindingKind.HASH_MISMATCH,
                    request.left_name,
                    request.right_name,
                    left_excerpt=left_hash,
                    right_excerpt=right_hash,
                )
            )
        return findings
