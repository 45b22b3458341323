# Copyright Red Hat
#
# reprodiff/inspectors/registry.py - Reproducible build differ inspector registry
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Comparison requests, the inspector interface and the inspector registry.
"""
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, TypeVar
import logging
import os

from reprodiff import DEFAULT_MAX_DEPTH, REPRODIFF_SUBSYSTEM_REGISTRY

from .findings import Finding, FindingKind

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_registry(msg, *args, **kwargs):
    """A wrapper for registry subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": REPRODIFF_SUBSYSTEM_REGISTRY}, **kwargs)


T = TypeVar("T")


def gather(calls: Sequence[Callable[[], T]], name: str = "reprodiff") -> List[T]:
    """
    Run ``calls`` concurrently and return their results in call order.

    A new executor is used for each invocation so that nested calls never
    wait on workers held by their callers. The first exception raised by a
    call, in call order, propagates to the caller once all calls finish.

    :param calls: The zero-argument callables to run.
    :type calls: ``Sequence[Callable[[], T]]``
    :param name: A thread name prefix for the workers.
    :type name: ``str``
    :returns: The result of each call.
    :rtype: ``List[T]``
    """
    if not calls:
        return []
    with ThreadPoolExecutor(
        max_workers=len(calls), thread_name_prefix=name
    ) as executor:
        futures = [executor.submit(call) for call in calls]
        return [future.result() for future in futures]


@dataclass(frozen=True)
class ComparisonRequest:
    """
    A pair of files to compare, with their display names and the number of
    archive levels already descended into.
    """

    #: Path of the left hand file
    left_path: str
    #: Path of the right hand file
    right_path: str
    #: Display name of the left hand file
    left_name: str
    #: Display name of the right hand file
    right_name: str
    #: Nesting depth, 0 for the top-level pair
    depth: int = 0

    @classmethod
    def for_paths(
        cls,
        left_path: str,
        right_path: str,
        left_name: Optional[str] = None,
        right_name: Optional[str] = None,
    ) -> "ComparisonRequest":
        """
        Build a top-level request, naming each side after its file name
        unless a display name is given.

        :param left_path: Path of the left hand file.
        :type left_path: ``str``
        :param right_path: Path of the right hand file.
        :type right_path: ``str``
        :param left_name: Optional display name for the left file.
        :type left_name: ``Optional[str]``
        :param right_name: Optional display name for the right file.
        :type right_name: ``Optional[str]``
        :returns: A new depth 0 ``ComparisonRequest``.
        :rtype: ``ComparisonRequest``
        """
        left_path, right_path = str(left_path), str(right_path)
        return cls(
            left_path,
            right_path,
            left_name or os.path.basename(left_path),
            right_name or os.path.basename(right_path),
        )

    def descend(
        self, entry_name: str, left_path: str, right_path: str
    ) -> "ComparisonRequest":
        """
        Build the request comparing a matched pair of archive members.

        :param entry_name: The archive-relative member name.
        :type entry_name: ``str``
        :param left_path: The extracted left hand member.
        :type left_path: ``str``
        :param right_path: The extracted right hand member.
        :type right_path: ``str``
        :returns: A request one level deeper than this one.
        :rtype: ``ComparisonRequest``
        """
        return ComparisonRequest(
            left_path,
            right_path,
            f"{self.left_name}#/{entry_name}",
            f"{self.right_name}#/{entry_name}",
            self.depth + 1,
        )


class InspectorBase(ABC):
    """
    Base class for file pair inspectors.

    An inspector decides for itself whether it applies to a pair of files
    and returns an empty list when it does not.
    """

    @abstractmethod
    def inspect(
        self, request: ComparisonRequest, registry: "InspectorRegistry"
    ) -> List[Finding]:
        """
        Compare the two files named by ``request``.

        :param request: The pair of files to compare.
        :type request: ``ComparisonRequest``
        :param registry: The registry to use for nested comparisons.
        :type registry: ``InspectorRegistry``
        :returns: The findings for this pair, possibly empty.
        :rtype: ``List[Finding]``
        """

    @property
    def name(self) -> str:
        """
        A short name for this inspector used in log messages.
        """
        return self.__class__.__name__


class InspectorRegistry:
    """
    Runs every registered inspector against a pair of files and concatenates
    their findings in registration order.
    """

    def __init__(
        self,
        inspectors: Sequence[InspectorBase] = (),
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        """
        Initialise a new ``InspectorRegistry``.

        :param inspectors: The initial inspectors, in order.
        :type inspectors: ``Sequence[InspectorBase]``
        :param max_depth: The deepest nesting level that is still compared.
        :type max_depth: ``int``
        """
        self._inspectors = tuple(inspectors)
        self.max_depth = max_depth

    @property
    def inspectors(self):
        """
        The registered inspectors in registration order.
        """
        return self._inspectors

    def register(self, inspector: InspectorBase):
        """
        Register a new inspector. Inspectors should be registered before
        the first comparison is made.

        :param inspector: The inspector to add.
        :type inspector: ``InspectorBase``
        """
        _log_debug_registry("Registering inspector %s", inspector.name)
        self._inspectors = self._inspectors + (inspector,)

    def compare(self, request: ComparisonRequest) -> List[Finding]:
        """
        Compare the pair of files named by ``request`` with every registered
        inspector.

        :param request: The pair of files to compare.
        :type request: ``ComparisonRequest``
        :returns: All findings, grouped by inspector in registration order.
        :rtype: ``List[Finding]``
        """
        if request.depth > self.max_depth:
            _log_debug_registry(
                "Depth %d exceeds maximum %d for %s vs %s",
                request.depth,
                self.max_depth,
                request.left_name,
                request.right_name,
            )
            return [
                Finding(
                    FindingKind.DEPTH_EXCEEDED, request.left_name, request.right_name
                )
            ]

        _log_debug_registry(
            "Comparing %s vs %s at depth %d",
            request.left_name,
            request.right_name,
            request.depth,
        )
        inspectors = self._inspectors
        results = gather(
            [
                lambda inspector=inspector: inspector.inspect(request, self)
                for inspector in inspectors
            ],
            name="reprodiff-inspect",
        )
        findings = [finding for result in results for finding in result]
        _log_debug_registry(
            "Found %d differences between %s and %s",
            len(findings),
            request.left_name,
            request.right_name,
        )
        return findings

    def compare_paths(
        self,
        left_path: str,
        right_path: str,
        left_name: Optional[str] = None,
        right_name: Optional[str] = None,
    ) -> List[Finding]:
        """
        Compare two files from the top level.

        :param left_path: Path of the left hand file.
        :type left_path: ``str``
        :param right_path: Path of the right hand file.
        :type right_path: ``str``
        :param left_name: Optional display name for the left file.
        :type left_name: ``Optional[str]``
        :param right_name: Optional display name for the right file.
        :type right_name: ``Optional[str]``
        :returns: All findings for the pair.
        :rtype: ``List[Finding]``
        """
        return self.compare(
            ComparisonRequest.for_paths(left_path, right_path, left_name, right_name)
        )
