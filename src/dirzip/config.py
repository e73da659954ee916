from __future__ import annotations

import json
import logging
import os
import stat
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .errors import ConfigError

logger = logging.getLogger(__name__)

DIRZIP_DIR = os.path.expanduser(os.getenv("DIRZIP_HOME", "~/.dirzip"))
CONFIG_PATH = os.path.join(DIRZIP_DIR, "config.json")

ENV_PREFIX = "DIRZIP_"
COMPRESSION_METHODS = ("deflate", "store")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_CHUNK_SIZE = 1024 * 1024


class Settings(BaseSettings):
    """Effective settings: ``DIRZIP_*`` variables win over values from the config file."""

    archive_suffix: str = ".zip"
    compression: str = "deflate"
    strict: bool = False
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)
    log_level: str = "WARNING"

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        extra="ignore",
        validate_assignment=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings

    @field_validator("archive_suffix")
    @classmethod
    def _check_suffix(cls, value: str) -> str:
        suffix = value.strip()
        if not suffix.startswith(".") or len(suffix) < 2 or "/" in suffix or "\\" in suffix:
            raise ValueError("must look like '.zip'")
        return suffix

    @field_validator("compression")
    @classmethod
    def _check_compression(cls, value: str) -> str:
        method = value.strip().lower()
        if method not in COMPRESSION_METHODS:
            raise ValueError(f"must be one of: {', '.join(COMPRESSION_METHODS)}")
        return method

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"must be one of: {', '.join(LOG_LEVELS)}")
        return level


def setting_names() -> list[str]:
    return list(Settings.model_fields)


def env_var_for(name: str) -> str:
    """Return the environment variable that overrides setting ``name``."""

    return f"{ENV_PREFIX}{name.upper()}"


def _config_error(exc: ValidationError, *, source: str) -> ConfigError:
    problems = []
    for error in exc.errors():
        name = ".".join(str(part) for part in error["loc"])
        env_var = env_var_for(name)
        label = env_var if os.getenv(env_var) else f"'{name}'"
        problems.append(f"{label}: {error['msg']}")
    return ConfigError(f"Invalid {source}: " + "; ".join(problems))


def coerce_setting(name: str, value: Any) -> Any:
    """Validate ``value`` for setting ``name`` and return it in its stored form."""

    if name not in Settings.model_fields:
        raise ConfigError(f"Unknown setting '{name}'")
    # model_construct skips the environment; assignment runs the field validators.
    candidate = Settings.model_construct()
    try:
        setattr(candidate, name, value)
    except ValidationError as exc:
        raise _config_error(exc, source="setting") from None
    return getattr(candidate, name)


def _secure_path(path: Path) -> None:
    if not path.exists() or os.name == "nt":
        return
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
        if mode & stat.S_IWOTH:
            logger.warning("Config file %s is world-writable; resetting to 0o644.", path)
            path.chmod(0o644)
    except PermissionError as exc:
        logger.warning("Unable to adjust permissions for %s: %s", path, exc)


class ConfigStore:
    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self.path = Path(path) if path else Path(CONFIG_PATH)

    def _ensure(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Config file {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {self.path} must contain a JSON object")
        return raw

    def _write(self, data: dict[str, Any]) -> None:
        self._ensure()
        tmp = self.path.with_suffix(".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)
        tmp.replace(self.path)
        _secure_path(self.path)

    def stored(self) -> dict[str, Any]:
        """Return the known settings present in the config file, without validation."""

        return {key: value for key, value in self._read().items() if key in Settings.model_fields}

    def load(self) -> Settings:
        """Return settings from the config file with ``DIRZIP_*`` overrides applied."""

        raw = self.stored()
        try:
            return Settings(**raw)
        except ValidationError as exc:
            raise _config_error(exc, source=f"settings in {self.path}") from None

    def save(self, settings: Settings) -> None:
        self._write(settings.model_dump())

    def update(self, **changes: Any) -> Settings:
        """Validate and persist ``changes`` on top of the stored settings."""

        data = self._read()
        for name, value in changes.items():
            data[name] = coerce_setting(name, value)
        self._write(data)
        return self.load()

    def reset(self) -> Settings:
        """Remove the stored config file and return the defaults."""

        if self.path.exists():
            self.path.unlink()
        return Settings()


def load_settings(store: ConfigStore | None = None) -> Settings:
    """Return the effective settings from ``store`` (the default config file if omitted)."""

    cfg_store = store or ConfigStore()
    return cfg_store.load()


__all__ = [
    "COMPRESSION_METHODS",
    "CONFIG_PATH",
    "ConfigStore",
    "DIRZIP_DIR",
    "ENV_PREFIX",
    "LOG_LEVELS",
    "Settings",
    "coerce_setting",
    "env_var_for",
    "load_settings",
    "setting_names",
]
