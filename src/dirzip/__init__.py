"""Compress directory trees into ZIP archives and extract them without zip-slip.

Example::

    from dirzip import compress, extract

    result = compress("docs")             # writes docs.zip
    extract(result.target, "restored")    # raises PathTraversalError on unsafe entries
"""

from __future__ import annotations

from .archiver import compress, compress_directory
from .config import ConfigStore, Settings, load_settings
from .errors import (
    ArchiveIOError,
    ConfigError,
    DirzipError,
    InvalidArgumentError,
    PathTraversalError,
)
from .extractor import extract, list_archive
from .models import ArchiveListing, OperationResult, SkippedEntry
from .operations import Operation, run_operation

__version__ = "0.1.0"

__all__ = [
    "ArchiveIOError",
    "ArchiveListing",
    "ConfigError",
    "ConfigStore",
    "DirzipError",
    "InvalidArgumentError",
    "Operation",
    "OperationResult",
    "PathTraversalError",
    "Settings",
    "SkippedEntry",
    "compress",
    "compress_directory",
    "extract",
    "list_archive",
    "load_settings",
    "run_operation",
]
