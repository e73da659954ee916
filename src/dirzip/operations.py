"""Single entry point for callers that select the operation at runtime."""

from __future__ import annotations

import os
from enum import Enum

from .archiver import compress
from .config import Settings
from .errors import InvalidArgumentError
from .extractor import extract
from .models import OperationResult
from .paths import default_extract_path


class Operation(str, Enum):
    COMPRESS = "compress"
    DECOMPRESS = "decompress"

    @classmethod
    def parse(cls, value: str | Operation) -> Operation:
        if isinstance(value, Operation):
            return value
        normalized = str(value).strip().lower()
        if normalized == "extract":
            return cls.DECOMPRESS
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidArgumentError(
                f"Invalid operation {value!r}. Expected 'compress' or 'decompress'"
            ) from None


def run_operation(
    operation: str | Operation,
    input_path: str | os.PathLike[str],
    output_path: str | os.PathLike[str] | None = None,
    *,
    settings: Settings | None = None,
) -> OperationResult:
    """Dispatch ``operation`` on two already-validated paths.

    ``output_path`` defaults to the archive path derived from ``input_path``
    for compression, and to the archive name without its suffix for
    decompression.
    """

    cfg = settings or Settings()
    op = Operation.parse(operation)
    if op is Operation.COMPRESS:
        return compress(input_path, output_path, settings=cfg)
    destination = output_path or default_extract_path(input_path, cfg.archive_suffix)
    return extract(input_path, destination, settings=cfg)


__all__ = ["Operation", "run_operation"]
