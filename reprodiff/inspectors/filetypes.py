# Copyright Red Hat
#
# reprodiff/inspectors/filetypes.py - Reproducible build differ file types
#
# This file is part of the reprodiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
File type classification for the text inspector.

Files are classified twice: first by name (a cheap table lookup that rules
out obviously binary artifacts) and then by content using ``magic`` from
file-magic.
"""
from typing import Dict, Optional, Tuple
from pathlib import Path
import logging
import magic

from reprodiff import REPRODIFF_SUBSYSTEM_TEXT

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_text(msg, *args, **kwargs):
    """A wrapper for text subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": REPRODIFF_SUBSYSTEM_TEXT}, **kwargs)


#: MIME type returned when neither table knows a file name.
UNKNOWN_MIME_TYPE = "application/octet-stream"

#: Non ``text/*`` MIME types that are diffed as text.
EXTRA_TEXT_MIMES = (
    "image/svg+xml",
    "application/javascript",
    "application/ecmascript",
    "application/x-javascript",
    "application/x-ecmascript",
    "application/json",
    "application/xml",
    "application/yaml",
    "application/x-yaml",
    "application/toml",
    "application/x-sh",
    "application/x-shellscript",
    "application/x-pem-file",
)

# Name based guesses, grouped as (mime type, description, names). Extension
# groups list lower case suffixes; pattern groups list ``Path.match()``
# patterns applied to the lower case file name.
_TEXT_EXTENSIONS = (
    ("text/plain", "plain text", (".txt", ".list", ".service", ".desktop")),
    ("text/plain", "jar manifest or signature", (".mf", ".sf")),
    ("text/markdown", "markdown document", (".md",)),
    ("text/x-rst", "restructuredtext document", (".rst",)),
    ("text/html", "html document", (".html", ".htm")),
    ("text/css", "style sheet", (".css",)),
    ("text/troff", "manual page source", (".1", ".5", ".8")),
    ("image/svg+xml", "svg image", (".svg",)),
    ("application/json", "json document", (".json",)),
    ("application/xml", "xml document", (".xml", ".xsd", ".xsl")),
    ("text/xml", "maven project descriptor", (".pom",)),
    ("application/yaml", "yaml document", (".yaml", ".yml")),
    ("application/toml", "toml document", (".toml",)),
    ("text/x-config", "configuration file", (".ini", ".cfg", ".conf")),
    ("text/x-java-properties", "java properties", (".properties",)),
    ("text/csv", "csv table", (".csv",)),
    ("text/x-rpm-spec", "rpm spec file", (".spec",)),
    ("application/x-sh", "shell script", (".sh", ".bash")),
    ("text/javascript", "javascript source", (".js", ".mjs", ".cjs")),
    ("text/x-python", "python source", (".py", ".pyi")),
    ("text/x-perl", "perl source", (".pl", ".pm")),
    ("text/x-java-source", "java source", (".java",)),
    ("text/x-kotlin", "kotlin source", (".kt", ".kts")),
    ("text/x-gradle", "gradle build script", (".gradle",)),
    ("text/x-groovy", "groovy source", (".groovy",)),
    ("text/x-c", "c source", (".c", ".h")),
    ("text/x-c++", "c++ source", (".cc", ".cpp", ".hpp")),
    ("text/x-go", "go source", (".go",)),
    ("text/rust", "rust source", (".rs",)),
    ("text/x-makefile", "makefile fragment", (".mk", ".cmake")),
    ("text/x-diff", "patch", (".diff", ".patch")),
    ("application/x-pem-file", "pem certificate", (".pem",)),
)

_TEXT_PATTERNS = (
    ("text/x-makefile", "makefile", ("*makefile",)),
    ("text/x-dockerfile", "container build file", ("*dockerfile", "*containerfile")),
    (
        "text/plain",
        "project notice",
        ("*license", "*readme", "*changelog", "*copying", "*notice"),
    ),
    (
        "text/plain",
        "debian package metadata",
        ("*control", "*conffiles", "*md5sums", "*debian-binary"),
    ),
    ("text/plain", "python package metadata", ("*pkg-info", "*metadata", "*wheel")),
    ("text/csv", "python wheel record", ("*record",)),
)

_BINARY_EXTENSIONS = (
    ("application/octet-stream", "binary data", (".bin",)),
    ("application/x-object", "object file", (".o",)),
    ("application/x-archive", "static library", (".a",)),
    ("application/x-sharedlib", "shared library", (".so",)),
    (
        "application/vnd.microsoft.portable-executable",
        "windows binary",
        (".exe", ".dll"),
    ),
    ("application/java-vm", "java class", (".class",)),
    ("application/x-python-code", "python bytecode", (".pyc",)),
    ("application/wasm", "webassembly module", (".wasm",)),
    ("application/java-archive", "java archive", (".jar", ".war", ".ear", ".aar")),
    ("application/vnd.android.package-archive", "android package", (".apk",)),
    ("application/zip", "zip archive", (".zip", ".whl", ".egg", ".nupkg")),
    ("application/vnd.debian.binary-package", "debian package", (".deb",)),
    ("application/x-rpm", "rpm package", (".rpm",)),
    ("application/x-tar", "tar archive", (".tar",)),
    ("application/gzip", "gzip data", (".gz", ".tgz")),
    ("application/x-bzip2", "bzip2 data", (".bz2", ".tbz2")),
    ("application/x-xz", "xz data", (".xz", ".txz")),
    ("application/zstd", "zstandard data", (".zst",)),
    ("application/x-7z-compressed", "7-zip archive", (".7z",)),
    ("image/png", "png image", (".png",)),
    ("image/jpeg", "jpeg image", (".jpg", ".jpeg")),
    ("image/gif", "gif image", (".gif",)),
    ("image/x-icon", "icon", (".ico",)),
    ("image/webp", "webp image", (".webp",)),
    ("application/pdf", "pdf document", (".pdf",)),
    ("font/ttf", "font", (".ttf", ".otf", ".woff", ".woff2")),
    ("application/x-gettext-translation", "message catalog", (".mo",)),
    ("application/vnd.sqlite3", "sqlite database", (".sqlite",)),
)

_BINARY_PATTERNS = (
    ("application/x-sharedlib", "versioned shared library", ("*.so.*",)),
)


def _expand(groups) -> Dict[str, Tuple[str, str]]:
    """
    Flatten ``(mime_type, description, names)`` groups into a map of
    name to ``(mime_type, description)``.
    """
    return {
        name: (mime_type, description)
        for mime_type, description, names in groups
        for name in names
    }


TEXT_EXTENSION_MAP = _expand(_TEXT_EXTENSIONS)
TEXT_FILENAME_MAP = _expand(_TEXT_PATTERNS)
BINARY_EXTENSION_MAP = _expand(_BINARY_EXTENSIONS)
BINARY_FILENAME_MAP = _expand(_BINARY_PATTERNS)


def _generic_guess_file(
    file_path: Path,
    extension_map: Dict[str, Tuple[str, str]],
    filename_map: Dict[str, Tuple[str, str]],
    encoding: str,
) -> Optional[Tuple[str, str, str]]:
    """
    Attempt to guess a file's MIME type and description based on the file
    name and extension.

    :param file_path: A ``Path`` instance containing the file path to check.
    :type file_path: ``Path``
    :param extension_map: A map of ".extension": (mime_type, description)
                          tuples to use.
    :type extension_map: ``Dict[str, Tuple[str, str]]``
    :param filename_map: A map of "filename": (mime_type, description)
                         tuples to use.
    :returns: A 3-tuple containing (mime_type, description, encoding) if the
              type could be guessed or ``None`` otherwise.
    :rtype: ``Optional[Tuple[str, str, str]]``
    """
    for file_name_pattern in filename_map.keys():
        if Path(file_path.name.lower()).match(file_name_pattern):
            return (*filename_map[file_name_pattern], encoding)

    extension = file_path.suffix.lower()
    if extension and extension in extension_map:
        return (*extension_map[extension], encoding)

    return None


def _guess_file(file_path: Path) -> Tuple[str, str, str]:
    """
    Attempt to guess a file's MIME type and description based on the file name
    and extension.

    :param file_path: A ``Path`` instance containing the file path to check.
    :type file_path: ``Path``
    :returns: A 3-tuple containing (mime_type, description, encoding).
    :rtype: ``Tuple[str, str, str]``
    """
    guess = _generic_guess_file(
        file_path, BINARY_EXTENSION_MAP, BINARY_FILENAME_MAP, "binary"
    )
    if guess is not None:
        return guess

    guess = _generic_guess_file(
        file_path, TEXT_EXTENSION_MAP, TEXT_FILENAME_MAP, "utf-8"
    )
    if guess is not None:
        return guess

    return (UNKNOWN_MIME_TYPE, "unknown file type", "binary")


def mime_is_text(mime_type: str) -> bool:
    """
    Return ``True`` if ``mime_type`` names content that can be diffed line
    by line.

    :param mime_type: The MIME type string to check.
    :type mime_type: ``str``
    :returns: ``True`` for ``text/*`` and the extra text MIME types.
    :rtype: ``bool``
    """
    mime_type = mime_type.lower()
    return mime_type.startswith("text/") or mime_type in EXTRA_TEXT_MIMES


class FileTypeInfo:
    """
    Class representing file type information and encoding.
    """

    def __init__(
        self,
        mime_type: str,
        description: str,
        encoding: Optional[str] = None,
    ):
        """
        Initialise a new ``FileTypeInfo`` object.

        :param mime_type: The detected MIME type.
        :type mime_type: ``str``
        :param description: Type description.
        :type description: ``str``
        :param encoding: Optional file encoding.
        :type encoding: ``Optional[str]``
        """
        self.mime_type = mime_type
        self.description = description
        self.encoding = encoding

    @property
    def is_text(self) -> bool:
        """
        ``True`` if this type is diffable as text.
        """
        return mime_is_text(self.mime_type)

    @property
    def is_unknown(self) -> bool:
        """
        ``True`` if the type could not be narrowed beyond an opaque byte
        stream.
        """
        return self.mime_type == UNKNOWN_MIME_TYPE

    def __str__(self):
        """
        Return a string representation of this ``FileTypeInfo`` object.

        :returns: A human readable string describing this instance.
        :rtype: ``str``
        """
        return (
            f"MIME type: {self.mime_type}, "
            f"Encoding: {self.encoding if self.encoding else 'unknown'}, "
            f"Description: {self.description}"
        )


class FileTypeDetector:
    """
    Detect file types by name, or by content using ``magic`` from
    python3-file-magic.
    """

    def detect_by_name(self, file_path: Path) -> FileTypeInfo:
        """
        Guess the type of ``file_path`` from its name and extension alone.
        The file is not opened.

        :param file_path: The path (or display name) to classify.
        :type file_path: ``Path``
        :returns: A best-effort guess of the file type.
        :rtype: ``FileTypeInfo``
        """
        mime_type, description, encoding = _guess_file(Path(file_path))
        _log_debug_text("Guessed %s from name %s", mime_type, str(file_path))
        return FileTypeInfo(mime_type, description, encoding)

    def detect_by_content(self, file_path: Path) -> FileTypeInfo:
        """
        Detect the type of ``file_path`` by reading its content with libmagic.

        :param file_path: The path to the file to inspect.
        :type file_path: ``Path``
        :returns: File type information for ``file_path``.
        :rtype: ``FileTypeInfo``
        """
        # c9s magic does not have magic.error
        if hasattr(magic, "error"):
            magic_errors = (magic.error, OSError, ValueError)
        else:
            magic_errors = (OSError, ValueError)

        try:
            fm = magic.detect_from_filename(str(file_path))
        except magic_errors as err:
            _log_warn("Error detecting file type for %s: %s", str(file_path), err)
            return FileTypeInfo(UNKNOWN_MIME_TYPE, "unknown")

        _log_debug_text("Detected %s from content of %s", fm.mime_type, file_path)
        return FileTypeInfo(fm.mime_type, fm.name, fm.encoding)
