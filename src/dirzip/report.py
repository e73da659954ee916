"""YAML reports describing a single compress or extract run.

A report lists every entry the operation touched as a numbered event so runs
can be diffed or audited later.  The layout is kept stable:

``operation`` / ``source`` / ``target``
    What ran and on which paths.

``events``
    One mapping per entry with a ``sequence`` number starting at 1, an
    ``action`` (``add``, ``extract`` or ``skip``) and the entry ``path``.
    Skipped files also carry a ``reason``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from .models import OperationResult

VALID_ACTIONS = frozenset({"add", "extract", "skip"})


class ReportVerificationError(ValueError):
    """Raised when a report file fails structural verification."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class ReportCheck:
    """A report file that passed verification."""

    path: Path
    events: int
    message: str = "OK"


def build_report(result: OperationResult) -> MutableMapping[str, Any]:
    """Return the YAML-ready document for ``result``."""

    now = datetime.now(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")
    action = "add" if result.operation == "compress" else "extract"

    events: list[MutableMapping[str, Any]] = []
    for name in result.entries:
        events.append({"sequence": len(events) + 1, "action": action, "path": name})
    for skipped in result.skipped:
        events.append(
            {
                "sequence": len(events) + 1,
                "action": "skip",
                "path": skipped.path,
                "reason": skipped.reason,
            }
        )

    return {
        "operation": result.operation,
        "source": result.source,
        "target": result.target,
        "generated_at": now,
        "ok": result.ok,
        "bytes_processed": result.bytes_processed,
        "events": events,
    }


def write_report(result: OperationResult, path: Path) -> Path:
    """Write the report for ``result`` to ``path`` and return the path."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as stream:
        yaml.safe_dump(build_report(result), stream, sort_keys=False)
    return path


def verify_report(path: Path) -> ReportCheck:
    """Verify the report at ``path``, raising :class:`ReportVerificationError`."""

    with path.open("r", encoding="utf-8") as stream:
        payload = yaml.safe_load(stream)

    if not isinstance(payload, Mapping):
        raise ReportVerificationError(2, "Report root must be a mapping")
    for key in ("operation", "source", "target"):
        if not isinstance(payload.get(key), str):
            raise ReportVerificationError(2, f"Report must include a string '{key}'")

    events = payload.get("events")
    if not isinstance(events, list):
        raise ReportVerificationError(3, "Report must include an 'events' list")

    previous_sequence = 0
    for item in events:
        if not isinstance(item, Mapping):
            raise ReportVerificationError(4, "Each event must be a mapping")
        sequence = item.get("sequence")
        if not isinstance(sequence, int) or isinstance(sequence, bool):
            raise ReportVerificationError(4, "Each event must define an integer 'sequence'")
        if sequence != previous_sequence + 1:
            message = f"Event sequences must increase by 1 (expected {previous_sequence + 1}, got {sequence})"
            raise ReportVerificationError(4, message)
        if item.get("action") not in VALID_ACTIONS:
            raise ReportVerificationError(5, f"Event #{sequence} has an unknown action")
        if not isinstance(item.get("path"), str):
            raise ReportVerificationError(5, f"Event #{sequence} is missing a string 'path'")
        previous_sequence = sequence

    return ReportCheck(path=path, events=len(events))


__all__ = [
    "ReportCheck",
    "ReportVerificationError",
    "build_report",
    "verify_report",
    "write_report",
]
