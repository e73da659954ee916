from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner


# Ensure the repository-local ``src`` directory is importable when the project is
# not installed as a package. Pytest executes from the repository root where the
# ``src`` layout is not on ``sys.path`` by default, so the dirzip package would
# otherwise be missing.
SRC_PATH = Path(__file__).resolve().parents[1] / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

import dirzip.config as config_module  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path_factory):
    """Point the config store at a throwaway file and drop DIRZIP_* overrides."""

    home = tmp_path_factory.mktemp("dirzip-home")
    monkeypatch.setenv("DIRZIP_HOME", str(home))
    monkeypatch.setattr(config_module, "DIRZIP_DIR", str(home), raising=False)
    monkeypatch.setattr(config_module, "CONFIG_PATH", str(home / "config.json"), raising=False)
    for name in config_module.setting_names():
        monkeypatch.delenv(config_module.env_var_for(name), raising=False)
    monkeypatch.delenv("DIRZIP_DEBUG", raising=False)
    yield home
    logger = logging.getLogger("dirzip")
    for handler in [h for h in logger.handlers if getattr(h, "_dirzip_handler", False)]:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def sample_tree(tmp_path):
    """A small nested tree with text and binary files."""

    root = tmp_path / "sample"
    (root / "docs" / "nested").mkdir(parents=True)
    (root / "empty-dir").mkdir()
    (root / "top.txt").write_text("top level\n", encoding="utf-8")
    (root / "docs" / "readme.md").write_text("# readme\n", encoding="utf-8")
    (root / "docs" / "nested" / "data.bin").write_bytes(bytes(range(256)) * 4)
    (root / "docs" / "nested" / "empty.txt").write_bytes(b"")
    return root
