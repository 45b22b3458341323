# Copyright Red Hat
#
# reprodiff/inspectors/extract.py - Reproducible build differ extraction
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Archive format detection and budget-limited member extraction.

Archives may be wrapped in a single compression layer (gzip, bzip2, xz or
zstd). The container inside is one of ``zip``, ``tar`` or ``ar``.
"""
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from typing import BinaryIO, Callable, Iterator, Optional, Tuple
from uuid import uuid4
import logging
import tarfile
import tempfile
import zipfile
import stat
import bz2
import gzip
import lzma
import zlib
import io
import os

import arpy
import zstandard

from reprodiff import (
    DEFAULT_COMPRESS_MEMLIMIT,
    REPRODIFF_SUBSYSTEM_ARCHIVE,
    ReprodiffArgumentError,
    ReprodiffLimitError,
)

from .entries import (
    EntryRecord,
    ExtractionBudget,
    ExtractionResult,
    NO_COMPRESSED_SIZE,
)
from .findings import Finding, FindingKind, SIZE_LIMIT_LABEL

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_archive(msg, *args, **kwargs):
    """A wrapper for archive subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": REPRODIFF_SUBSYSTEM_ARCHIVE}, **kwargs)


#: Container format tags
FORMAT_ZIP = "zip"
FORMAT_TAR = "tar"
FORMAT_AR = "ar"

#: Compression layer tags
COMPRESSION_GZIP = "gzip"
COMPRESSION_BZIP2 = "bzip2"
COMPRESSION_XZ = "xz"
COMPRESSION_ZSTD = "zstd"

_COMPRESSION_MAGIC = (
    (COMPRESSION_GZIP, b"\x1f\x8b"),
    (COMPRESSION_BZIP2, b"BZh"),
    (COMPRESSION_XZ, b"\xfd7zXZ\x00"),
    (COMPRESSION_ZSTD, b"\x28\xb5\x2f\xfd"),
)
_COMPRESSION_MAGIC_SIZE = 6

_ZIP_MAGIC = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")
_AR_MAGIC = b"!<arch>\n"

_COPY_CHUNK_SIZE = 65536

# Window sizes accepted by zstandard.ZstdDecompressor
_ZSTD_MIN_WINDOW = 1 << 10
_ZSTD_MAX_WINDOW = 1 << 31

#: Errors raised by corrupt compressed streams or containers.
_DATA_ERRORS = (
    OSError,
    EOFError,
    zlib.error,
    lzma.LZMAError,
    zipfile.BadZipFile,
    tarfile.TarError,
    zstandard.ZstdError,
    arpy.ArchiveFormatError,
    arpy.ArchiveAccessError,
    # Encrypted or unsupported zip members
    RuntimeError,
    NotImplementedError,
    # Malformed numeric ar header fields
    ValueError,
)

#: Opens one member's content for reading.
MemberOpener = Callable[[], BinaryIO]


class _LzmaReader(io.RawIOBase):
    """
    Raw reader decompressing an xz stream under a decoder memory limit.
    ``lzma.LZMAFile`` does not accept ``memlimit``.
    """

    def __init__(self, fileobj: BinaryIO, memlimit: int):
        super().__init__()
        self._fileobj = fileobj
        self._decompressor = lzma.LZMADecompressor(
            format=lzma.FORMAT_XZ, memlimit=memlimit
        )

    def readable(self):
        return True

    def readinto(self, b):
        size = len(b)
        while True:
            if self._decompressor.eof:
                return 0
            chunk = b""
            if self._decompressor.needs_input:
                chunk = self._fileobj.read(_COPY_CHUNK_SIZE)
                if not chunk:
                    raise EOFError(
                        "Compressed file ended before the end-of-stream "
                        "marker was reached"
                    )
            data = self._decompressor.decompress(chunk, max_length=size)
            if data:
                b[: len(data)] = data
                return len(data)


def _read_head(stream: BinaryIO, size: int) -> bytes:
    """
    Read up to ``size`` bytes from ``stream``, tolerating short reads.

    :param stream: The stream to read.
    :param size: The number of bytes wanted.
    :returns: The bytes read (fewer than ``size`` only at end of stream).
    """
    head = b""
    while len(head) < size:
        buf = stream.read(size - len(head))
        if not buf:
            break
        head += buf
    return head


def _format_from_head(head: bytes) -> Optional[str]:
    """
    Identify a container format from its first block.

    :param head: Up to ``tarfile.BLOCKSIZE`` leading bytes.
    :returns: A container format tag or ``None``.
    """
    if head.startswith(_ZIP_MAGIC):
        return FORMAT_ZIP
    if head.startswith(_AR_MAGIC):
        return FORMAT_AR
    if len(head) >= tarfile.BLOCKSIZE:
        try:
            tarfile.TarInfo.frombuf(
                head[: tarfile.BLOCKSIZE], tarfile.ENCODING, "surrogateescape"
            )
            return FORMAT_TAR
        except tarfile.HeaderError:
            pass
    return None


def copy_with_limit(source: BinaryIO, dest: BinaryIO, limit: int) -> int:
    """
    Copy ``source`` to ``dest`` writing no more than ``limit`` bytes.

    :param source: The stream to read from.
    :type source: ``BinaryIO``
    :param dest: The stream to write to.
    :type dest: ``BinaryIO``
    :param limit: The maximum number of bytes to write, or a negative value
                  for no limit.
    :type limit: ``int``
    :returns: The number of bytes written.
    :rtype: ``int``
    :raises: ``ReprodiffLimitError`` as soon as more than ``limit`` bytes
             have been written.
    """
    count = 0
    while True:
        buf = source.read(_COPY_CHUNK_SIZE)
        if not buf:
            break
        dest.write(buf)
        count += len(buf)
        if 0 <= limit < count:
            raise ReprodiffLimitError(count, limit)
    return count


def _epoch_timestamp(mtime) -> str:
    try:
        return datetime.fromtimestamp(mtime, timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return str(mtime)


def _zip_timestamp(date_time: Tuple[int, int, int, int, int, int]) -> str:
    return "{:04d}-{:02d}-{:02d}T{:02d}:{:02d}:{:02d}".format(*date_time)


def _mode_str(mode: int) -> Optional[str]:
    return f"{mode:o}" if mode else None


class ArchiveExtractor:
    """
    Detect archive formats and extract archive members to randomly named
    files under a shared ``ExtractionBudget``.
    """

    def __init__(
        self,
        compress_memlimit: int = DEFAULT_COMPRESS_MEMLIMIT,
        max_spool_size: int = -1,
    ):
        """
        Initialise a new ``ArchiveExtractor``.

        :param compress_memlimit: The memory limit in bytes for decompression
                                  and for in-memory spooling of compressed
                                  zip and ar archives.
        :type compress_memlimit: ``int``
        :param max_spool_size: The largest decompressed zip or ar container
                               that may be spooled to disk; zero or less for
                               no limit beyond the extraction budget.
        :type max_spool_size: ``int``
        """
        self.compress_memlimit = compress_memlimit
        self.max_spool_size = max_spool_size

    def detect_compression(self, path: str) -> Optional[str]:
        """
        Detect the compression layer wrapping ``path``, if any.

        :param path: The file to check.
        :type path: ``str``
        :returns: A compression tag or ``None``.
        :rtype: ``Optional[str]``
        """
        with open(path, "rb") as fp:
            head = fp.read(_COMPRESSION_MAGIC_SIZE)
        for compression, signature in _COMPRESSION_MAGIC:
            if head.startswith(signature):
                return compression
        return None

    def _decompress(self, raw: BinaryIO, compression: str) -> BinaryIO:
        """
        Wrap ``raw`` in a decompressing reader for ``compression``.
        """
        if compression == COMPRESSION_GZIP:
            return gzip.GzipFile(fileobj=raw, mode="rb")
        if compression == COMPRESSION_BZIP2:
            return bz2.BZ2File(raw, mode="rb")
        if compression == COMPRESSION_XZ:
            return io.BufferedReader(_LzmaReader(raw, self.compress_memlimit))
        if compression == COMPRESSION_ZSTD:
            window = min(max(self.compress_memlimit, _ZSTD_MIN_WINDOW), _ZSTD_MAX_WINDOW)
            dctx = zstandard.ZstdDecompressor(max_window_size=window)
            return dctx.stream_reader(raw, closefd=False)
        raise ReprodiffArgumentError(f"Unknown compression: {compression}")

    @contextmanager
    def open_stream(self, path: str) -> Iterator[BinaryIO]:
        """
        Open ``path`` for reading through its compression layer, if any.

        :param path: The file to open.
        :type path: ``str``
        :returns: A context manager yielding the decompressed stream.
        """
        compression = self.detect_compression(path)
        with open(path, "rb") as raw:
            if compression is None:
                yield raw
                return
            _log_debug_archive("Opening %s with %s decompression", path, compression)
            stream = self._decompress(raw, compression)
            try:
                yield stream
            finally:
                stream.close()

    def detect_format(self, path: str) -> Optional[str]:
        """
        Detect the container format of ``path``.

        :param path: The file to check.
        :type path: ``str``
        :returns: One of ``"zip"``, ``"tar"`` or ``"ar"``, or ``None`` if
                  the file is not a supported archive.
        :rtype: ``Optional[str]``
        """
        with self.open_stream(path) as stream:
            try:
                head = _read_head(stream, tarfile.BLOCKSIZE)
            except _DATA_ERRORS as err:
                _log_debug_archive("Cannot read archive header from %s: %s", path, err)
                return None
        archive_format = _format_from_head(head)
        _log_debug_archive("Detected format %s for %s", archive_format, path)
        return archive_format

    def _spool_limit(self, budget: ExtractionBudget) -> int:
        """
        Return the most bytes a decompressed container may occupy when it
        is spooled, or -1 for no limit.
        """
        limits = [
            limit for limit in (budget.copy_limit, self.max_spool_size) if limit > 0
        ]
        return min(limits) if limits else -1

    def _seekable(
        self, stream: BinaryIO, compressed: bool, spool, limit: int
    ) -> BinaryIO:
        """
        Return a seekable view of ``stream``, spooling decompressed data into
        ``spool`` when necessary.

        :raises: ``ReprodiffLimitError`` if more than ``limit`` bytes of
                 decompressed data would be spooled.
        """
        if not compressed:
            return stream
        copy_with_limit(stream, spool, limit)
        spool.seek(0)
        return spool

    def _spool_finding(
        self, display_name: str, budget: ExtractionBudget, err: ReprodiffLimitError
    ) -> Finding:
        """
        Describe a container too large to spool for random access.
        """
        if not budget.unlimited and err.limit == budget.copy_limit:
            return Finding(
                FindingKind.EXTRACTION_BUDGET_EXCEEDED,
                display_name,
                suffix=f"(more than {budget.total_limit} bytes written)",
            )
        return Finding(
            FindingKind.ARCHIVE_TOO_LARGE,
            display_name,
            SIZE_LIMIT_LABEL,
            left_excerpt=f"more than {err.limit} bytes",
            right_excerpt=f"{err.limit} bytes",
        )

    def _zip_members(
        self, stream: BinaryIO
    ) -> Iterator[Tuple[EntryRecord, Optional[MemberOpener]]]:
        with zipfile.ZipFile(stream) as zf:
            for info in zf.infolist():
                mode = info.external_attr >> 16
                record = EntryRecord(
                    info.filename,
                    is_directory=info.is_dir(),
                    timestamp=_zip_timestamp(info.date_time),
                    compressed_size=info.compress_size,
                    uncompressed_size=info.file_size,
                    permissions=_mode_str(mode),
                )
                if info.is_dir() or stat.S_ISLNK(mode):
                    yield record, None
                else:
                    yield record, (lambda info=info: zf.open(info))

    def _tar_members(
        self, stream: BinaryIO
    ) -> Iterator[Tuple[EntryRecord, Optional[MemberOpener]]]:
        with tarfile.open(fileobj=stream, mode="r|") as tf:
            for member in tf:
                record = EntryRecord(
                    member.name,
                    is_directory=member.isdir(),
                    timestamp=_epoch_timestamp(member.mtime),
                    compressed_size=NO_COMPRESSED_SIZE,
                    uncompressed_size=member.size,
                    permissions=_mode_str(member.mode),
                )
                if member.isfile():
                    yield record, (lambda member=member: tf.extractfile(member))
                else:
                    yield record, None

    def _ar_members(
        self, stream: BinaryIO
    ) -> Iterator[Tuple[EntryRecord, Optional[MemberOpener]]]:
        archive = arpy.Archive(fileobj=stream)
        try:
            for member in archive:
                header = member.header
                record = EntryRecord(
                    header.name.decode("utf-8", "surrogateescape"),
                    timestamp=_epoch_timestamp(header.timestamp),
                    compressed_size=NO_COMPRESSED_SIZE,
                    uncompressed_size=header.size,
                    permissions=_mode_str(header.mode),
                )
                yield record, (lambda member=member: nullcontext(member))
        finally:
            archive.close()

    def _extract_member(
        self,
        record: EntryRecord,
        opener: MemberOpener,
        display_name: str,
        budget: ExtractionBudget,
        dest_dir: str,
    ):
        """
        Copy one member to a new randomly named file in ``dest_dir``,
        updating ``budget`` and attaching any finding to ``record``.
        """
        label = f"{display_name}#/{record.name}"
        if budget.exhausted:
            _log_debug_archive("Budget exhausted, skipping %s", label)
            record.add_finding(
                Finding(
                    FindingKind.EXTRACTION_BUDGET_EXCEEDED,
                    label,
                    suffix=f"(more than {budget.total_limit} bytes written)",
                )
            )
            return

        local_path = os.path.join(dest_dir, uuid4().hex)
        try:
            with opener() as source, open(local_path, "wb") as dest:
                count = copy_with_limit(source, dest, budget.copy_limit)
        except ReprodiffLimitError as err:
            _log_debug_archive("Extracting %s: %s", label, err)
            os.unlink(local_path)
            record.add_finding(
                Finding(
                    FindingKind.EXTRACTION_FAILED_FOR_ENTRY,
                    label,
                    suffix=f"(more than {budget.total_limit} bytes written)",
                )
            )
            return
        except _DATA_ERRORS as err:
            _log_warn("Failed to extract %s: %s", label, err)
            if os.path.exists(local_path):
                os.unlink(local_path)
            record.add_finding(
                Finding(FindingKind.EXTRACTION_FAILED_FOR_ENTRY, label, suffix=f"({err})")
            )
            return

        budget.consume(count)
        record.mark_extracted(local_path)
        _log_debug_archive("Extracted %s (%d bytes) to %s", label, count, local_path)

    def extract(
        self,
        path: str,
        display_name: str,
        budget: ExtractionBudget,
        dest_dir: str,
        archive_format: Optional[str] = None,
    ) -> ExtractionResult:
        """
        Read the entries of the archive at ``path`` in stream order and
        extract its regular files into ``dest_dir``.

        Directories and other non-regular members are recorded but never
        extracted. Extracted members are written to randomly named files,
        never to a name taken from the archive.

        :param path: The archive to read.
        :type path: ``str``
        :param display_name: The display name of the archive, used to label
                             extraction findings.
        :type display_name: ``str``
        :param budget: The byte budget shared by all entries of this archive.
        :type budget: ``ExtractionBudget``
        :param dest_dir: The directory to extract into.
        :type dest_dir: ``str``
        :param archive_format: The container format if already detected.
        :type archive_format: ``Optional[str]``
        :returns: One ``EntryRecord`` per archive member read, and any
                  findings for the archive as a whole.
        :rtype: ``ExtractionResult``
        """
        if archive_format is None:
            archive_format = self.detect_format(path)
        readers = {
            FORMAT_ZIP: self._zip_members,
            FORMAT_TAR: self._tar_members,
            FORMAT_AR: self._ar_members,
        }
        if archive_format not in readers:
            raise ReprodiffArgumentError(f"Not a supported archive: {path}")

        entries = []
        result = ExtractionResult(entries)
        compressed = self.detect_compression(path) is not None
        with self.open_stream(path) as stream, tempfile.SpooledTemporaryFile(
            max_size=self.compress_memlimit, dir=dest_dir
        ) as spool:
            try:
                if archive_format != FORMAT_TAR:
                    stream = self._seekable(
                        stream, compressed, spool, self._spool_limit(budget)
                    )
                for record, opener in readers[archive_format](stream):
                    if opener is not None:
                        self._extract_member(
                            record, opener, display_name, budget, dest_dir
                        )
                    entries.append(record)
            except ReprodiffLimitError as err:
                _log_debug_archive("Spooling %s: %s", display_name, err)
                result.findings.append(self._spool_finding(display_name, budget, err))
                result.aborted = True
            except _DATA_ERRORS as err:
                _log_warn(
                    "Error reading entries of %s after %d entries: %s",
                    display_name,
                    len(entries),
                    err,
                )
                result.findings.append(
                    Finding(
                        FindingKind.EXTRACTION_FAILED_FOR_ENTRY,
                        display_name,
                        suffix=f"(listing stopped after {len(entries)} entries: {err})",
                    )
                )
        _log_debug_archive(
            "Read %d entries from %s (%s)", len(entries), display_name, budget
        )
        return result
