"""Diagnostic records and sinks for faults recovered inside the engine."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel

TELEMETRY_LOGGER = logging.getLogger("modkit.telemetry")

__all__ = [
    "Diagnostic",
    "DiagnosticKind",
    "DiagnosticSink",
    "RecordingSink",
    "describe_record",
    "log_diagnostic",
    "report",
]


class DiagnosticKind(str, Enum):
    """Categories of events surfaced while evaluating or applying instructions."""

    CONDITION_FAULT = "condition_fault"
    APPLICATION_FAULT = "application_fault"
    INSTRUCTION_SKIPPED = "instruction_skipped"
    INSTRUCTION_INVALID = "instruction_invalid"

    @property
    def is_fault(self) -> bool:
        return self in (DiagnosticKind.CONDITION_FAULT, DiagnosticKind.APPLICATION_FAULT)


@dataclass(slots=True, frozen=True)
class Diagnostic:
    """Single event reported to a diagnostic sink."""

    kind: DiagnosticKind
    message: str
    subject: Mapping[str, Any] | None = None
    error: str | None = None
    index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "subject": dict(self.subject) if self.subject is not None else None,
            "error": self.error,
            "index": self.index,
        }

    def render(self) -> str:
        location = f"#{self.index} " if self.index is not None else ""
        suffix = f" ({self.error})" if self.error else ""
        return f"{location}{self.kind.value}: {self.message}{suffix}"


DiagnosticSink = Callable[[Diagnostic], None]


def describe_record(record: Any) -> Mapping[str, Any] | None:
    """Return a JSON-friendly view of an instruction or condition."""
    if record is None:
        return None
    if isinstance(record, BaseModel):
        return record.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(record, Mapping):
        return {str(key): value for key, value in record.items()}
    return {"value": str(record)}


def log_diagnostic(diagnostic: Diagnostic) -> None:
    """Default sink: emit a compact JSON event on the telemetry logger."""
    level = logging.WARNING if diagnostic.kind.is_fault else logging.DEBUG
    if not TELEMETRY_LOGGER.isEnabledFor(level):
        return
    payload = {"event": diagnostic.kind.value, "timestamp": datetime.now(timezone.utc).isoformat()}
    payload.update(diagnostic.to_dict())
    try:
        message = json.dumps(payload, separators=(",", ":"), ensure_ascii=True)
    except (TypeError, ValueError):
        message = json.dumps(payload, separators=(",", ":"), ensure_ascii=True, default=str)
    TELEMETRY_LOGGER.log(level, message)


def report(sink: Optional[DiagnosticSink], diagnostic: Diagnostic) -> None:
    """Deliver ``diagnostic`` to ``sink``, falling back to the telemetry logger."""
    (sink or log_diagnostic)(diagnostic)


@dataclass(slots=True)
class RecordingSink:
    """Sink that keeps every diagnostic in memory and optionally forwards it."""

    diagnostics: list[Diagnostic] = field(default_factory=list)
    forward: Optional[DiagnosticSink] = log_diagnostic

    def __call__(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)
        if self.forward is not None:
            self.forward(diagnostic)

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [entry for entry in self.diagnostics if entry.kind == kind]

    @property
    def faults(self) -> list[Diagnostic]:
        return [entry for entry in self.diagnostics if entry.kind.is_fault]
