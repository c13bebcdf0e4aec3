"""Instruction and condition engine."""

from .applier import DEFAULT_HANDLERS, FileSet, TextHandler, apply_instructions, preview
from .conditions import count_matches, evaluate_condition, evaluate_group
from .diagnostics import Diagnostic, DiagnosticKind, DiagnosticSink, RecordingSink, log_diagnostic
from .props import insert_prop_handler

__all__ = [
    "DEFAULT_HANDLERS",
    "Diagnostic",
    "DiagnosticKind",
    "DiagnosticSink",
    "FileSet",
    "RecordingSink",
    "TextHandler",
    "apply_instructions",
    "count_matches",
    "evaluate_condition",
    "evaluate_group",
    "insert_prop_handler",
    "log_diagnostic",
    "preview",
]
