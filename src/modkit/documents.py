"""Import and export of instruction documents plus list editing helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Sequence

from pydantic import ValidationError

from .errors import ImportFormatError
from .schema import (
    INSTRUCTION_ADAPTER,
    ConditionGroup,
    FileCondition,
    Instruction,
    InstructionBase,
    PatternCondition,
    PatternCountCondition,
    UnknownCondition,
)

__all__ = [
    "append_instructions",
    "condition_to_dict",
    "dump_instruction_document",
    "instruction_to_dict",
    "load_instruction_document",
    "move_instruction",
    "parse_instruction_document",
    "parse_instructions",
    "remove_instruction",
    "replace_instruction",
]

_LEADING_FIELDS = ("path", "action")
_EXCLUDED_FIELDS = {"path", "action", "condition"}


def _describe_errors(error: ValidationError) -> list[str]:
    messages: list[str] = []
    for entry in error.errors():
        location = ".".join(str(part) for part in entry.get("loc", ()))
        messages.append(f"{location}: {entry.get('msg', 'invalid value')}" if location else entry.get("msg", ""))
    return messages


def parse_instructions(items: Sequence[Any]) -> List[Instruction]:
    """Validate a list of loose instruction mappings into typed instructions."""
    try:
        return INSTRUCTION_ADAPTER.validate_python(list(items))
    except ValidationError as error:
        raise ImportFormatError(
            "Instruction list does not match the instruction schema",
            details={"errors": _describe_errors(error)},
        ) from error


def parse_instruction_document(source: Any) -> List[Instruction]:
    """Parse ``{"instructions": [...]}`` or a bare array into instructions.

    ``source`` may be JSON text/bytes or an already decoded payload.
    """
    payload = source
    if isinstance(source, (str, bytes, bytearray)):
        try:
            payload = json.loads(source)
        except json.JSONDecodeError as error:
            raise ImportFormatError(
                f"Invalid JSON: {error.msg}",
                details={"line": error.lineno, "column": error.colno},
            ) from error

    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, Mapping) and isinstance(payload.get("instructions"), list):
        items = payload["instructions"]
    else:
        raise ImportFormatError("Expected an object with an 'instructions' array or a bare array of instructions")
    return parse_instructions(items)


def load_instruction_document(path: Path | str) -> List[Instruction]:
    """Read and parse an instruction document from disk."""
    document_path = Path(path)
    try:
        text = document_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as error:
        raise ImportFormatError(f"Unable to read {document_path}: {error}") from error
    return parse_instruction_document(text)


def condition_to_dict(condition: Any) -> dict[str, Any]:
    """Export a condition, omitting fields its type does not use."""
    if isinstance(condition, UnknownCondition):
        return condition.model_dump(mode="json", exclude_none=True)
    data: dict[str, Any] = {"type": condition.type}
    if condition.value:
        data["value"] = condition.value
    if isinstance(condition, PatternCountCondition):
        if condition.operator is not None:
            data["operator"] = condition.operator
        data["count"] = condition.count
    if isinstance(condition, (FileCondition, PatternCondition, PatternCountCondition)) and condition.target:
        data["target"] = condition.target
    return data


def _group_to_dict(group: ConditionGroup) -> dict[str, Any]:
    return {
        "conditions": [condition_to_dict(condition) for condition in group.conditions],
        "logic": group.logic.value,
    }


def instruction_to_dict(instruction: InstructionBase) -> dict[str, Any]:
    """Export an instruction with empty optional fields left out."""
    dumped = instruction.model_dump(mode="json", by_alias=True, exclude_none=True)
    data: dict[str, Any] = {key: dumped.get(key, "") for key in _LEADING_FIELDS}
    for key, value in dumped.items():
        if key in _EXCLUDED_FIELDS or value == "":
            continue
        data[key] = value
    if instruction.condition is not None and instruction.condition.conditions:
        data["condition"] = _group_to_dict(instruction.condition)
    return data


def dump_instruction_document(instructions: Iterable[InstructionBase], *, indent: int = 2) -> str:
    """Serialise instructions as ``{"instructions": [...]}`` JSON text."""
    payload = {"instructions": [instruction_to_dict(instruction) for instruction in instructions]}
    return json.dumps(payload, indent=indent, ensure_ascii=False)


def move_instruction(instructions: Sequence[Instruction], from_index: int, to_index: int) -> List[Instruction]:
    """Return a copy with one instruction moved; out-of-range moves change nothing."""
    moved = list(instructions)
    if not 0 <= from_index < len(moved) or not 0 <= to_index < len(moved):
        return moved
    item = moved.pop(from_index)
    moved.insert(to_index, item)
    return moved


def replace_instruction(instructions: Sequence[Instruction], index: int, instruction: Instruction) -> List[Instruction]:
    updated = list(instructions)
    if 0 <= index < len(updated):
        updated[index] = instruction
    return updated


def remove_instruction(instructions: Sequence[Instruction], index: int) -> List[Instruction]:
    return [item for position, item in enumerate(instructions) if position != index]


def append_instructions(instructions: Sequence[Instruction], extra: Iterable[Instruction]) -> List[Instruction]:
    """Append ``extra`` to the list, as when a module's raw instructions are loaded."""
    return [*instructions, *extra]
