from __future__ import annotations

import os
import zipfile
from pathlib import Path

import pytest

import dirzip.archiver as archiver_module
from dirzip.archiver import compress, compress_directory, iter_source_files
from dirzip.config import Settings
from dirzip.errors import ArchiveIOError, InvalidArgumentError
from dirzip.extractor import extract


def _names(archive: Path) -> list[str]:
    with zipfile.ZipFile(archive) as zf:
        return zf.namelist()


def _fail_open_for(monkeypatch: pytest.MonkeyPatch, *names: str) -> None:
    original = archiver_module._open_source

    def fake_open(path: Path):
        if path.name in names:
            raise PermissionError(13, "Permission denied", str(path))
        return original(path)

    monkeypatch.setattr(archiver_module, "_open_source", fake_open)


def test_compress_directory_writes_relative_posix_names(sample_tree, tmp_path):
    out = tmp_path / "out.zip"
    result = compress(sample_tree, out)

    assert out.exists()
    assert sorted(_names(out)) == [
        "docs/nested/data.bin",
        "docs/nested/empty.txt",
        "docs/readme.md",
        "top.txt",
    ]
    assert result.operation == "compress"
    assert result.target == str(out)
    assert result.ok
    assert result.bytes_processed == 1024 + len("# readme\n") + len("top level\n")

    with zipfile.ZipFile(out) as zf:
        assert zf.read("docs/nested/data.bin") == bytes(range(256)) * 4
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())


def test_compress_does_not_write_directory_entries(sample_tree, tmp_path):
    out = tmp_path / "out.zip"
    compress(sample_tree, out)
    assert not any(name.endswith("/") for name in _names(out))


def test_compress_default_output_is_sibling_with_suffix(sample_tree):
    result = compress(sample_tree)
    expected = sample_tree.with_name("sample.zip")
    assert Path(result.target) == expected
    assert expected.exists()


def test_compress_single_file_has_one_entry_without_directory(tmp_path):
    source = tmp_path / "nested" / "notes.txt"
    source.parent.mkdir()
    source.write_bytes(b"hello world")

    result = compress(source)

    assert Path(result.target) == tmp_path / "nested" / "notes.txt.zip"
    assert _names(Path(result.target)) == ["notes.txt"]
    with zipfile.ZipFile(result.target) as zf:
        assert zf.read("notes.txt") == b"hello world"


def test_compress_empty_directory_has_zero_entries(tmp_path):
    source = tmp_path / "empty"
    source.mkdir()
    result = compress(source, tmp_path / "empty.zip")
    assert result.entries == []
    assert _names(tmp_path / "empty.zip") == []


def test_compress_store_method(sample_tree, tmp_path):
    out = tmp_path / "stored.zip"
    compress(sample_tree, out, settings=Settings(compression="store"))
    with zipfile.ZipFile(out) as zf:
        assert all(info.compress_type == zipfile.ZIP_STORED for info in zf.infolist())


def test_compress_best_effort_skips_unreadable_file(sample_tree, tmp_path, monkeypatch, caplog):
    _fail_open_for(monkeypatch, "readme.md")
    caplog.set_level("WARNING", logger="dirzip")
    out = tmp_path / "out.zip"

    result = compress(sample_tree, out)

    assert "docs/readme.md" not in _names(out)
    assert len(_names(out)) == 3
    assert not result.ok
    assert len(result.skipped) == 1
    assert result.skipped[0].path.endswith("readme.md")
    assert result.skipped[0].reason == "Permission denied"
    assert any("readme.md" in message for message in caplog.messages)


def test_compress_strict_aborts_and_removes_partial_archive(sample_tree, tmp_path, monkeypatch):
    _fail_open_for(monkeypatch, "readme.md")
    out = tmp_path / "out.zip"

    with pytest.raises(ArchiveIOError) as excinfo:
        compress(sample_tree, out, settings=Settings(strict=True))

    assert "docs/readme.md" in str(excinfo.value)
    assert excinfo.value.path is not None
    assert not out.exists()


def test_compress_mid_stream_failure_is_fatal(sample_tree, tmp_path, monkeypatch):
    class BrokenReader:
        def read(self, size=-1):
            raise OSError(5, "Input/output error")

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

    original = archiver_module._open_source
    monkeypatch.setattr(
        archiver_module,
        "_open_source",
        lambda path: BrokenReader() if path.name == "top.txt" else original(path),
    )
    out = tmp_path / "out.zip"

    with pytest.raises(ArchiveIOError, match="top.txt"):
        compress(sample_tree, out)
    assert not out.exists()


def test_compress_skips_output_inside_source(sample_tree):
    out = sample_tree / "self.zip"
    result = compress(sample_tree, out)
    assert "self.zip" not in _names(out)
    assert "self.zip" not in result.entries
    assert result.ok


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_compress_skips_symlinks(sample_tree, tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("secret", encoding="utf-8")
    (sample_tree / "linked-dir").symlink_to(outside, target_is_directory=True)
    (sample_tree / "linked-file.txt").symlink_to(outside / "secret.txt")

    out = tmp_path / "out.zip"
    result = compress(sample_tree, out)

    names = _names(out)
    assert not any(name.startswith("linked") for name in names)
    assert {Path(s.path).name for s in result.skipped} == {"linked-dir", "linked-file.txt"}
    assert {s.reason for s in result.skipped} == {"symlink"}


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_strict_mode_still_skips_symlinks(sample_tree, tmp_path):
    (sample_tree / "link.txt").symlink_to(sample_tree / "top.txt")
    result = compress(sample_tree, tmp_path / "out.zip", settings=Settings(strict=True))
    assert [s.reason for s in result.skipped] == ["symlink"]


def test_compress_rejects_missing_source(tmp_path):
    with pytest.raises(InvalidArgumentError, match="does not exist"):
        compress(tmp_path / "missing")


def test_compress_rejects_directory_output(sample_tree, tmp_path):
    target = tmp_path / "already-a-dir"
    target.mkdir()
    with pytest.raises(InvalidArgumentError, match="directory"):
        compress(sample_tree, target)


def test_compress_unwritable_output_raises_archive_io_error(sample_tree, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a dir", encoding="utf-8")
    with pytest.raises(ArchiveIOError):
        compress(sample_tree, blocker / "out.zip")


def test_compress_directory_requires_directory(tmp_path):
    source = tmp_path / "file.txt"
    source.write_text("x", encoding="utf-8")
    with pytest.raises(InvalidArgumentError, match="must be a directory"):
        compress_directory(source)


def test_iter_source_files_walks_top_down_in_sorted_order(sample_tree):
    names = [item.entry_name for item in iter_source_files(sample_tree) if not item.skip_reason]
    assert names == ["top.txt", "docs/readme.md", "docs/nested/data.bin", "docs/nested/empty.txt"]


@pytest.mark.parametrize("odd_name", ["c:notes.txt", "back\\slash.txt"])
def test_compress_skips_names_that_cannot_round_trip(sample_tree, tmp_path, odd_name):
    (sample_tree / odd_name).write_text("odd", encoding="utf-8")
    out = tmp_path / "out.zip"

    result = compress(sample_tree, out, settings=Settings(strict=True))

    assert odd_name not in _names(out)
    assert [(Path(s.path).name, s.reason) for s in result.skipped] == [
        (odd_name, "unrepresentable name")
    ]

    dest = tmp_path / "restored"
    extracted = extract(out, dest)
    assert sorted(extracted.entries) == sorted(result.entries)
    assert (dest / "top.txt").read_text(encoding="utf-8") == "top level\n"


def test_compress_single_file_with_unrepresentable_name(tmp_path):
    source = tmp_path / "c:notes.txt"
    source.write_text("odd", encoding="utf-8")

    result = compress(source, tmp_path / "single.zip")

    assert result.entries == []
    assert [s.reason for s in result.skipped] == ["unrepresentable name"]
    assert _names(tmp_path / "single.zip") == []


def _deny_listing(monkeypatch: pytest.MonkeyPatch, dirname: str) -> None:
    real_scandir = os.scandir

    def fake_scandir(path="."):
        if Path(path).name == dirname:
            raise PermissionError(13, "Permission denied", os.fspath(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", fake_scandir)


def test_compress_reports_unlistable_directory(sample_tree, tmp_path, monkeypatch):
    _deny_listing(monkeypatch, "docs")
    out = tmp_path / "out.zip"

    result = compress(sample_tree, out)

    assert _names(out) == ["top.txt"]
    assert [(Path(s.path).name, s.reason) for s in result.skipped] == [("docs", "Permission denied")]
    assert not result.ok


def test_compress_strict_aborts_on_unlistable_directory(sample_tree, tmp_path, monkeypatch):
    _deny_listing(monkeypatch, "docs")
    out = tmp_path / "out.zip"

    with pytest.raises(ArchiveIOError, match="docs"):
        compress(sample_tree, out, settings=Settings(strict=True))
    assert not out.exists()
