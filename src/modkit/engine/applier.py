"""Ordered, condition-gated application of instructions to a file set."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence

from pydantic import ValidationError

from ..schema import SINGLE_INSTRUCTION_ADAPTER, ActionKind, InstructionBase
from .conditions import evaluate_group
from .diagnostics import Diagnostic, DiagnosticKind, DiagnosticSink, describe_record, report

__all__ = [
    "DEFAULT_HANDLERS",
    "FileSet",
    "TextHandler",
    "apply_instructions",
    "preview",
]

LOGGER = logging.getLogger(__name__)

FileSet = Dict[str, str]
TextHandler = Callable[[str, Any], str]


def _prepend(existing: str, instruction: Any) -> str:
    return f"{instruction.content or ''}\n{existing}"


def _append(existing: str, instruction: Any) -> str:
    return f"{existing}\n{instruction.content or ''}"


def _insert_after(existing: str, instruction: Any) -> str:
    pattern = instruction.pattern
    if not pattern:
        return existing
    return existing.replace(pattern, f"{pattern}\n{instruction.content or ''}")


def _insert_before(existing: str, instruction: Any) -> str:
    pattern = instruction.pattern
    if not pattern:
        return existing
    return existing.replace(pattern, f"{instruction.content or ''}\n{pattern}")


def _replace_content(existing: str, instruction: Any) -> str:
    pattern = instruction.pattern
    if not pattern:
        return existing
    return existing.replace(pattern, instruction.replacement or "")


# Text transformations for actions that only touch files that already exist.
# INSERT_PROP has no built-in handler and is a no-op unless a caller supplies one.
DEFAULT_HANDLERS: Mapping[ActionKind, TextHandler] = {
    ActionKind.INSERT_IMPORT: _prepend,
    ActionKind.APPEND_TO_FILE: _append,
    ActionKind.INSERT_AFTER: _insert_after,
    ActionKind.INSERT_BEFORE: _insert_before,
    ActionKind.REPLACE_CONTENT: _replace_content,
}


def _apply_one(
    working: FileSet,
    instruction: InstructionBase,
    handlers: Mapping[ActionKind, TextHandler],
    *,
    index: int,
    sink: Optional[DiagnosticSink],
) -> None:
    path = instruction.path
    action = ActionKind(getattr(instruction, "action"))

    if action is ActionKind.CREATE_FILE:
        working[path] = getattr(instruction, "content", None) or ""
        return
    if action is ActionKind.DELETE_FILE:
        working.pop(path, None)
        return

    handler = handlers.get(action)
    if handler is None:
        report(
            sink,
            Diagnostic(
                kind=DiagnosticKind.INSTRUCTION_SKIPPED,
                message=f"No handler registered for {action.value}",
                subject=describe_record(instruction),
                index=index,
            ),
        )
        return

    existing = working.get(path)
    if existing is None:
        LOGGER.debug("Skipping %s on missing file %s", action.value, path)
        return

    updated = handler(existing, instruction)
    if not isinstance(updated, str):
        raise TypeError(f"handler for {action.value} returned {type(updated).__name__}, expected str")
    working[path] = updated


def _coerce_instruction(record: Any, *, index: int, sink: Optional[DiagnosticSink]) -> Optional[InstructionBase]:
    if isinstance(record, InstructionBase):
        return record
    problem = f"expected an instruction record, got {type(record).__name__}"
    if isinstance(record, Mapping):
        try:
            return SINGLE_INSTRUCTION_ADAPTER.validate_python(record)
        except ValidationError as error:
            problem = f"{error.error_count()} validation problem(s)"
    report(
        sink,
        Diagnostic(
            kind=DiagnosticKind.INSTRUCTION_INVALID,
            message="Instruction does not match the instruction schema",
            subject=describe_record(record),
            error=problem,
            index=index,
        ),
    )
    return None


def apply_instructions(
    files: Mapping[str, str],
    instructions: Sequence[InstructionBase | Mapping[str, Any]],
    module_names: Iterable[str] = (),
    *,
    sink: Optional[DiagnosticSink] = None,
    handlers: Optional[Mapping[ActionKind, TextHandler]] = None,
) -> FileSet:
    """Apply ``instructions`` in order and return a new file set.

    Each condition is evaluated against the working copy, so later instructions
    observe the effects of earlier ones. A faulty instruction is reported to
    ``sink`` and leaves the working copy as it was before that instruction.
    ``handlers`` adds or overrides text transformations per action; file
    creation and deletion are not overridable. Plain mappings are validated
    into instruction records; one that does not validate is reported invalid
    and skipped.
    """
    working: FileSet = dict(files)
    loaded = frozenset(module_names)
    active: Dict[ActionKind, TextHandler] = dict(DEFAULT_HANDLERS)
    if handlers:
        active.update({ActionKind(kind): handler for kind, handler in handlers.items()})

    for index, record in enumerate(instructions):
        instruction = _coerce_instruction(record, index=index, sink=sink)
        if instruction is None:
            continue
        if not instruction.path:
            report(
                sink,
                Diagnostic(
                    kind=DiagnosticKind.INSTRUCTION_INVALID,
                    message="Instruction has no path",
                    subject=describe_record(instruction),
                    index=index,
                ),
            )
            continue

        if instruction.condition is not None and not evaluate_group(
            instruction.condition, working, loaded, sink=sink
        ):
            report(
                sink,
                Diagnostic(
                    kind=DiagnosticKind.INSTRUCTION_SKIPPED,
                    message="Condition not met",
                    subject=describe_record(instruction),
                    index=index,
                ),
            )
            continue

        try:
            _apply_one(working, instruction, active, index=index, sink=sink)
        except Exception as error:  # noqa: BLE001 - one bad instruction must not abort the batch
            report(
                sink,
                Diagnostic(
                    kind=DiagnosticKind.APPLICATION_FAULT,
                    message="Instruction could not be applied",
                    subject=describe_record(instruction),
                    error=f"{type(error).__name__}: {error}",
                    index=index,
                ),
            )

    return working


def preview(
    files: Mapping[str, str],
    instructions: Sequence[InstructionBase | Mapping[str, Any]],
    *,
    sink: Optional[DiagnosticSink] = None,
    handlers: Optional[Mapping[ActionKind, TextHandler]] = None,
) -> FileSet:
    """Apply the editable instruction list with no modules loaded."""
    return apply_instructions(files, instructions, (), sink=sink, handlers=handlers)
