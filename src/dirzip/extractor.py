"""ZIP archive to directory extraction with zip-slip protection."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path

from .config import Settings
from .errors import ArchiveIOError, PathTraversalError, describe_os_error
from .models import ArchiveListing, OperationResult
from .paths import NormalizedEntryName, normalize_entry_name, resolve_destination

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedEntry:
    info: zipfile.ZipInfo
    name: NormalizedEntryName
    target: Path


def zipinfo_is_symlink(info: zipfile.ZipInfo) -> bool:
    """Detect symlink entries via the Unix mode stored in ``external_attr``."""

    mode = (info.external_attr >> 16) & 0o170000
    return mode == stat.S_IFLNK


def _open_archive(archive: Path) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(archive, "r")
    except zipfile.BadZipFile as exc:
        raise ArchiveIOError(f"Not a valid ZIP archive ({exc})", path=archive) from exc
    except OSError as exc:
        raise ArchiveIOError(f"Unable to open archive ({describe_os_error(exc)})", path=archive) from exc


def plan_extraction(zf: zipfile.ZipFile, destination: Path) -> list[PlannedEntry]:
    """Validate every entry of ``zf`` against ``destination`` before writing anything.

    Raises :class:`PathTraversalError` for the first entry, in archive order,
    whose canonical target is not contained in the destination.
    """

    plan: list[PlannedEntry] = []
    seen: set[str] = set()
    for info in zf.infolist():
        try:
            name = normalize_entry_name(info.filename)
            target = resolve_destination(destination, name)
        except PathTraversalError as exc:
            logger.error("Rejected archive entry %r: %s", info.filename, exc.reason)
            raise
        if name.normalized in seen and not name.is_directory:
            logger.warning("Duplicate archive entry %s; the later entry wins", name.normalized)
        seen.add(name.normalized)
        if info.flag_bits & 0x1:
            raise ArchiveIOError(
                f"Entry {name.normalized} is encrypted; encrypted archives are not supported"
            )
        if zipinfo_is_symlink(info):
            logger.warning("Entry %s is a symlink; extracting it as a regular file", name.normalized)
        plan.append(PlannedEntry(info=info, name=name, target=target))
    return plan


def _extract_entry(zf: zipfile.ZipFile, entry: PlannedEntry, destination: Path, chunk_size: int) -> int:
    if entry.name.is_directory:
        entry.target.mkdir(parents=True, exist_ok=True)
        return 0

    entry.target.parent.mkdir(parents=True, exist_ok=True)
    # Earlier entries may have changed the tree under destination; check again.
    target = resolve_destination(destination, entry.name)
    if target.is_dir():
        raise ArchiveIOError(f"Entry {entry.name.normalized} collides with a directory", path=target)

    with zf.open(entry.info, "r") as source, target.open("wb") as out_fp:
        shutil.copyfileobj(source, out_fp, chunk_size)
    return entry.info.file_size


def extract(
    archive: str | os.PathLike[str],
    destination: str | os.PathLike[str],
    *,
    settings: Settings | None = None,
) -> OperationResult:
    """Extract ``archive`` beneath ``destination``.

    The destination is created if missing.  Every entry name is validated
    before any file is written; a single unsafe entry raises
    :class:`PathTraversalError` and nothing from the archive is extracted.
    Any other failure aborts with :class:`ArchiveIOError`.
    """

    cfg = settings or Settings()
    arc = Path(archive)
    dest = Path(destination)

    try:
        dest.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ArchiveIOError(
            f"Unable to create destination directory ({describe_os_error(exc)})", path=dest
        ) from exc
    dest_root = dest.resolve()

    result = OperationResult(operation="decompress", source=str(arc), target=str(dest))
    with _open_archive(arc) as zf:
        plan = plan_extraction(zf, dest_root)
        for entry in plan:
            try:
                written = _extract_entry(zf, entry, dest_root, cfg.chunk_size)
            except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, zlib.error, NotImplementedError) as exc:
                raise ArchiveIOError(
                    f"Corrupt archive entry {entry.name.normalized} ({exc})", path=arc
                ) from exc
            except OSError as exc:
                raise ArchiveIOError(
                    f"Unable to extract {entry.name.normalized} ({describe_os_error(exc)})",
                    path=entry.target,
                ) from exc
            logger.debug("Extracted %s", entry.name.normalized or "./")
            if not entry.name.is_directory:
                result.entries.append(entry.name.normalized)
                result.bytes_processed += written

    logger.info(
        "Extracted %s -> %s (entries=%d bytes=%d)",
        arc,
        dest,
        len(result.entries),
        result.bytes_processed,
    )
    return result


def list_archive(archive: str | os.PathLike[str]) -> list[ArchiveListing]:
    """Return central-directory metadata for every entry, without extracting."""

    arc = Path(archive)
    with _open_archive(arc) as zf:
        return [
            ArchiveListing(
                name=info.filename,
                is_directory=info.is_dir(),
                size=info.file_size,
                compressed_size=info.compress_size,
            )
            for info in zf.infolist()
        ]


__all__ = [
    "PlannedEntry",
    "extract",
    "list_archive",
    "plan_extraction",
    "zipinfo_is_symlink",
]
