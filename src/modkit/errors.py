"""Exception hierarchy shared by the modkit engine and its hosts."""

from __future__ import annotations

from typing import Any, Mapping


class ModkitError(RuntimeError):
    """Base error carrying structured details for callers and logs."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class ImportFormatError(ModkitError):
    """Raised when an instruction document does not match the accepted shapes."""


class CompositionError(ModkitError):
    """Raised when a template or one of its module bundles cannot be resolved."""


class ArchiveError(ModkitError):
    """Raised when an archive cannot be opened, read, or written."""


class ConfigError(ModkitError):
    """Raised when the YAML configuration file is unreadable or malformed."""
