"""Entry-name normalisation and destination containment checks.

Archive entry names are untrusted input.  Every name read from an archive goes
through :func:`normalize_entry_name` (syntactic checks) and
:func:`resolve_destination` (canonical containment under the destination root)
before anything is written to disk.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from .errors import PathTraversalError

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


@dataclass(frozen=True)
class NormalizedEntryName:
    """A validated, normalised archive entry name."""

    raw: str
    normalized: str
    parts: tuple[str, ...]
    is_directory: bool


def normalize_entry_name(name: str) -> NormalizedEntryName:
    """Normalise and validate an entry name read from an archive.

    - Convert backslashes to slashes
    - Reject absolute names and drive letters
    - Reject any ``..`` segment
    - Strip ``./`` and empty segments
    """

    if not isinstance(name, str) or not name:
        raise PathTraversalError(str(name), "has an empty name")
    if "\x00" in name:
        raise PathTraversalError(name, "contains a NUL byte")

    path = name.replace("\\", "/")
    is_directory = path.endswith("/")

    if path.startswith("/") or _DRIVE_RE.match(path):
        raise PathTraversalError(name, "is an absolute path")

    parts: list[str] = []
    for part in PurePosixPath(path).parts:
        if part in {"", "."}:
            continue
        if part == "..":
            raise PathTraversalError(name, "contains a parent-directory segment")
        parts.append(part)

    if not parts and not is_directory:
        raise PathTraversalError(name, "has no path components")

    return NormalizedEntryName(
        raw=name,
        normalized="/".join(parts),
        parts=tuple(parts),
        is_directory=is_directory,
    )


def is_within(root: Path, candidate: Path) -> bool:
    """Return ``True`` if ``candidate`` equals or descends from ``root``.

    Both paths must already be canonical.  The comparison uses the path
    separator as a boundary so ``/dest`` does not contain ``/destination``.
    """

    root_str = str(root)
    candidate_str = str(candidate)
    if candidate_str == root_str:
        return True
    prefix = root_str if root_str.endswith(os.sep) else root_str + os.sep
    return candidate_str.startswith(prefix)


def resolve_destination(root: str | os.PathLike[str], entry: NormalizedEntryName) -> Path:
    """Return the canonical path ``entry`` extracts to beneath ``root``."""

    root_path = Path(root).resolve()
    candidate = root_path.joinpath(*entry.parts).resolve(strict=False)
    if not is_within(root_path, candidate):
        raise PathTraversalError(entry.raw, f"would extract outside {root_path}")
    return candidate


def entry_name_for(root: Path, path: Path) -> str:
    """Return the forward-slash entry name of ``path`` relative to ``root``."""

    return path.relative_to(root).as_posix()


def default_archive_path(source: str | os.PathLike[str], suffix: str) -> Path:
    """``docs`` -> ``docs.zip``, ``notes.txt`` -> ``notes.txt.zip``."""

    src = Path(source)
    if not src.name:
        src = src.resolve()
    return src.with_name(src.name + suffix)


def default_extract_path(archive: str | os.PathLike[str], suffix: str) -> Path:
    """``docs.zip`` -> ``docs``; names without ``suffix`` gain ``_extracted``."""

    arc = Path(archive)
    if suffix and arc.name.lower().endswith(suffix.lower()) and len(arc.name) > len(suffix):
        return arc.with_name(arc.name[: -len(suffix)])
    return arc.with_name(arc.name + "_extracted")


__all__ = [
    "NormalizedEntryName",
    "default_archive_path",
    "default_extract_path",
    "entry_name_for",
    "is_within",
    "normalize_entry_name",
    "resolve_destination",
]
