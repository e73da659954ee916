from __future__ import annotations

import os


class DirzipError(Exception):
    """Base error for dirzip."""


class ArchiveIOError(DirzipError):
    def __init__(self, message: str, *, path: str | os.PathLike[str] | None = None) -> None:
        super().__init__(f"{message}: {path}" if path is not None else message)
        self.path = os.fspath(path) if path is not None else None


class InvalidArgumentError(DirzipError, ValueError):
    pass


class PathTraversalError(DirzipError, ValueError):
    def __init__(self, entry_name: str, reason: str = "resolves outside the destination") -> None:
        super().__init__(f"Archive entry {entry_name!r} {reason}")
        self.entry_name = entry_name
        self.reason = reason


class ConfigError(DirzipError):
    pass


def describe_os_error(exc: BaseException) -> str:
    """Return the OS error text (``strerror``) when there is one, else ``str(exc)``."""

    if isinstance(exc, OSError) and exc.strerror:
        return exc.strerror
    return str(exc)
