"""Directory (or single file) to ZIP archive serialisation."""

from __future__ import annotations

import logging
import os
import stat
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .config import Settings
from .errors import ArchiveIOError, InvalidArgumentError, PathTraversalError, describe_os_error
from .models import OperationResult, SkippedEntry
from .paths import default_archive_path, entry_name_for, normalize_entry_name

logger = logging.getLogger(__name__)

COMPRESSION_TYPES: dict[str, int] = {
    "deflate": zipfile.ZIP_DEFLATED,
    "store": zipfile.ZIP_STORED,
}

SKIP_SYMLINK = "symlink"
SKIP_NOT_REGULAR = "not a regular file"
SKIP_UNREPRESENTABLE = "unrepresentable name"
POLICY_SKIPS = frozenset({SKIP_SYMLINK, SKIP_NOT_REGULAR, SKIP_UNREPRESENTABLE})


@dataclass(frozen=True)
class SourceFile:
    """A file found while walking the source tree."""

    path: Path
    entry_name: str
    skip_reason: str | None = None


def _regular_file(path: Path, entry_name: str) -> SourceFile:
    # Names that extraction would reject or rewrite (drive letters, backslashes) cannot round-trip.
    try:
        representable = normalize_entry_name(entry_name).normalized == entry_name
    except PathTraversalError:
        representable = False
    return SourceFile(path, entry_name, None if representable else SKIP_UNREPRESENTABLE)


def iter_source_files(root: Path) -> Iterator[SourceFile]:
    """Yield every file beneath ``root`` in a deterministic order.

    Symbolic links are never followed.  Links and non-regular files are yielded
    with a ``skip_reason`` so callers can report them, as are files whose
    names would not survive extraction unchanged.  Directories that cannot be
    listed are reported the same way.
    """

    walk_errors: list[OSError] = []
    for current, dirnames, filenames in os.walk(root, onerror=walk_errors.append):
        while walk_errors:
            exc = walk_errors.pop(0)
            failed = Path(exc.filename) if exc.filename else Path(current)
            yield SourceFile(failed, _relative_name(root, failed), describe_os_error(exc))

        base = Path(current)
        dirnames.sort()
        for dirname in list(dirnames):
            candidate = base / dirname
            if candidate.is_symlink():
                dirnames.remove(dirname)
                yield SourceFile(candidate, entry_name_for(root, candidate), SKIP_SYMLINK)

        for filename in sorted(filenames):
            candidate = base / filename
            name = entry_name_for(root, candidate)
            try:
                mode = candidate.lstat().st_mode
            except OSError as exc:
                yield SourceFile(candidate, name, describe_os_error(exc))
                continue
            if stat.S_ISLNK(mode):
                yield SourceFile(candidate, name, SKIP_SYMLINK)
            elif not stat.S_ISREG(mode):
                yield SourceFile(candidate, name, SKIP_NOT_REGULAR)
            else:
                yield _regular_file(candidate, name)

    while walk_errors:
        exc = walk_errors.pop(0)
        failed = Path(exc.filename) if exc.filename else root
        yield SourceFile(failed, _relative_name(root, failed), describe_os_error(exc))


def _relative_name(root: Path, path: Path) -> str:
    try:
        return entry_name_for(root, path) or path.name
    except ValueError:
        return str(path)


def _open_source(path: Path) -> BinaryIO:
    return path.open("rb")


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Unable to remove incomplete archive %s: %s", path, exc)


class _Compressor:
    def __init__(self, zf: zipfile.ZipFile, settings: Settings, result: OperationResult) -> None:
        self.zf = zf
        self.settings = settings
        self.result = result
        self.compress_type = COMPRESSION_TYPES[settings.compression]

    def skip(self, item: SourceFile, reason: str, exc: OSError | None = None) -> None:
        # Links and special files are excluded by policy; only real failures trip strict mode.
        if self.settings.strict and reason not in POLICY_SKIPS:
            raise ArchiveIOError(f"Unable to compress {item.entry_name} ({reason})", path=item.path) from exc
        logger.warning("Skipping %s: %s", item.path, reason)
        self.result.skipped.append(SkippedEntry(path=str(item.path), reason=reason))

    def add(self, item: SourceFile) -> None:
        try:
            info = zipfile.ZipInfo.from_file(item.path, item.entry_name, strict_timestamps=False)
            source_fp = _open_source(item.path)
        except OSError as exc:
            self.skip(item, describe_os_error(exc), exc)
            return
        info.compress_type = self.compress_type

        # The entry header is already in the archive once zf.open() succeeds, so
        # any failure past this point leaves a broken entry behind.
        with source_fp:
            written = 0
            try:
                with self.zf.open(info, mode="w") as out_fp:
                    for chunk in iter(lambda: source_fp.read(self.settings.chunk_size), b""):
                        out_fp.write(chunk)
                        written += len(chunk)
            except OSError as exc:
                raise ArchiveIOError(
                    f"Failed while writing entry {item.entry_name} ({describe_os_error(exc)})",
                    path=item.path,
                ) from exc

        logger.debug("Added %s (%d bytes)", item.entry_name, written)
        self.result.entries.append(item.entry_name)
        self.result.bytes_processed += written


def compress(
    source: str | os.PathLike[str],
    output: str | os.PathLike[str] | None = None,
    *,
    settings: Settings | None = None,
) -> OperationResult:
    """Write ``source`` (a directory or a single file) into a ZIP archive.

    Directory sources produce one entry per regular file, named by its
    forward-slash path relative to ``source``; a file source produces a single
    entry named after the file.  Unreadable files are skipped and reported in
    the result unless ``settings.strict`` is set, in which case the first
    failure aborts and the partial archive is removed.
    """

    cfg = settings or Settings()
    src = Path(source)
    if src.is_dir():
        single_file = False
    elif src.is_file():
        single_file = True
    elif src.exists() or src.is_symlink():
        raise InvalidArgumentError(f"Source is neither a file nor a directory: {src}")
    else:
        raise InvalidArgumentError(f"Source does not exist: {src}")

    out = Path(output) if output else default_archive_path(src, cfg.archive_suffix)
    if out.is_dir():
        raise InvalidArgumentError(f"Output path is a directory: {out}")
    if single_file and out.resolve() == src.resolve():
        raise InvalidArgumentError(f"Output archive would overwrite its source: {out}")

    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        zf = zipfile.ZipFile(out, "w", compression=COMPRESSION_TYPES[cfg.compression], allowZip64=True)
    except OSError as exc:
        raise ArchiveIOError(f"Unable to create archive ({describe_os_error(exc)})", path=out) from exc

    out_canonical = out.resolve()
    result = OperationResult(operation="compress", source=str(src), target=str(out))
    compressor = _Compressor(zf, cfg, result)
    completed = False
    try:
        with zf:
            if single_file:
                item = _regular_file(src, src.name)
                if item.skip_reason:
                    compressor.skip(item, item.skip_reason)
                else:
                    compressor.add(item)
            else:
                for item in iter_source_files(src):
                    if item.skip_reason:
                        compressor.skip(item, item.skip_reason)
                        continue
                    if item.path.resolve() == out_canonical:
                        logger.info("Not adding the output archive %s to itself", item.path)
                        continue
                    compressor.add(item)
        completed = True
    except OSError as exc:
        raise ArchiveIOError(f"Unable to write archive ({describe_os_error(exc)})", path=out) from exc
    finally:
        if not completed:
            _discard(out)

    logger.info(
        "Compressed %s -> %s (entries=%d skipped=%d bytes=%d)",
        src,
        out,
        len(result.entries),
        len(result.skipped),
        result.bytes_processed,
    )
    return result


def compress_directory(
    source: str | os.PathLike[str],
    output: str | os.PathLike[str] | None = None,
    *,
    settings: Settings | None = None,
) -> OperationResult:
    """Like :func:`compress` but requires ``source`` to be a directory."""

    if not Path(source).is_dir():
        raise InvalidArgumentError(f"The input path must be a directory: {source}")
    return compress(source, output, settings=settings)


__all__ = [
    "COMPRESSION_TYPES",
    "SourceFile",
    "compress",
    "compress_directory",
    "iter_source_files",
]
