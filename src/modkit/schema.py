"""Typed records for instructions, conditions, and template archive documents."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter

DEFAULT_PRIORITY = 999


class RecordModel(BaseModel):
    """Base Pydantic model: immutable, tolerant of unknown wire fields."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class ActionKind(str, Enum):
    """File mutations an instruction can request."""

    CREATE_FILE = "CREATE_FILE"
    DELETE_FILE = "DELETE_FILE"
    INSERT_IMPORT = "INSERT_IMPORT"
    INSERT_AFTER = "INSERT_AFTER"
    INSERT_BEFORE = "INSERT_BEFORE"
    REPLACE_CONTENT = "REPLACE_CONTENT"
    APPEND_TO_FILE = "APPEND_TO_FILE"
    INSERT_PROP = "INSERT_PROP"


class ConditionKind(str, Enum):
    """Predicates supported by the condition evaluator."""

    MODULE_EXISTS = "MODULE_EXISTS"
    MODULE_NOT_EXISTS = "MODULE_NOT_EXISTS"
    PATTERN_EXISTS = "PATTERN_EXISTS"
    PATTERN_NOT_EXISTS = "PATTERN_NOT_EXISTS"
    PATTERN_COUNT = "PATTERN_COUNT"
    FILE_EXISTS = "FILE_EXISTS"
    FILE_NOT_EXISTS = "FILE_NOT_EXISTS"


class CountOperator(str, Enum):
    """Comparisons available to ``PATTERN_COUNT`` conditions."""

    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    GREATER_OR_EQUAL = "GREATER_OR_EQUAL"
    LESS_OR_EQUAL = "LESS_OR_EQUAL"


class LogicOperator(str, Enum):
    """How a condition group combines its members."""

    AND = "AND"
    OR = "OR"


class ModuleCondition(RecordModel):
    """Membership test against the loaded module names."""

    type: Literal["MODULE_EXISTS", "MODULE_NOT_EXISTS"]
    value: str = ""


class FileCondition(RecordModel):
    """Presence test for ``target`` (falling back to ``value``) in the file set."""

    type: Literal["FILE_EXISTS", "FILE_NOT_EXISTS"]
    value: str = ""
    target: str = ""

    @property
    def target_path(self) -> str:
        return self.target or self.value


class PatternCondition(RecordModel):
    """Literal substring test inside the target file."""

    type: Literal["PATTERN_EXISTS", "PATTERN_NOT_EXISTS"]
    value: str = ""
    target: str = ""

    @property
    def target_path(self) -> str:
        return self.target or self.value


class PatternCountCondition(RecordModel):
    """Regex match count in the target file compared against ``count``.

    ``operator`` stays a plain string so unrecognised operators survive parsing
    and evaluate false instead of rejecting the whole document.
    """

    type: Literal["PATTERN_COUNT"]
    value: str = ""
    target: str = ""
    operator: Optional[str] = None
    count: int = 0

    @property
    def target_path(self) -> str:
        return self.target or self.value


class UnknownCondition(RecordModel):
    """Condition whose ``type`` is not recognised; it never blocks an instruction."""

    model_config = ConfigDict(extra="allow")

    type: str
    value: Optional[str] = None
    target: Optional[str] = None


_CONDITION_TAGS: dict[str, str] = {
    ConditionKind.MODULE_EXISTS.value: "module",
    ConditionKind.MODULE_NOT_EXISTS.value: "module",
    ConditionKind.FILE_EXISTS.value: "file",
    ConditionKind.FILE_NOT_EXISTS.value: "file",
    ConditionKind.PATTERN_EXISTS.value: "pattern",
    ConditionKind.PATTERN_NOT_EXISTS.value: "pattern",
    ConditionKind.PATTERN_COUNT.value: "pattern_count",
}


def _condition_tag(value: Any) -> str:
    if isinstance(value, Mapping):
        kind = value.get("type")
    else:
        kind = getattr(value, "type", None)
    if isinstance(kind, Enum):
        kind = kind.value
    if isinstance(kind, str):
        return _CONDITION_TAGS.get(kind, "unknown")
    return "unknown"


Condition = Annotated[
    Union[
        Annotated[ModuleCondition, Tag("module")],
        Annotated[FileCondition, Tag("file")],
        Annotated[PatternCondition, Tag("pattern")],
        Annotated[PatternCountCondition, Tag("pattern_count")],
        Annotated[UnknownCondition, Tag("unknown")],
    ],
    Discriminator(_condition_tag),
]


class ConditionGroup(RecordModel):
    """Ordered conditions combined with AND (default) or OR."""

    logic: LogicOperator = LogicOperator.AND
    conditions: Tuple[Condition, ...] = ()


CONDITION_ADAPTER: TypeAdapter[Condition] = TypeAdapter(Condition)


class InstructionBase(RecordModel):
    """Fields shared by every instruction variant."""

    path: str = ""
    condition: Optional[ConditionGroup] = None
    priority: Optional[int] = None


class CreateFileInstruction(InstructionBase):
    action: Literal["CREATE_FILE"] = "CREATE_FILE"
    content: Optional[str] = None


class DeleteFileInstruction(InstructionBase):
    action: Literal["DELETE_FILE"] = "DELETE_FILE"


class InsertImportInstruction(InstructionBase):
    action: Literal["INSERT_IMPORT"] = "INSERT_IMPORT"
    content: Optional[str] = None


class AppendToFileInstruction(InstructionBase):
    action: Literal["APPEND_TO_FILE"] = "APPEND_TO_FILE"
    content: Optional[str] = None


class InsertAfterInstruction(InstructionBase):
    action: Literal["INSERT_AFTER"] = "INSERT_AFTER"
    pattern: str = ""
    content: Optional[str] = None


class InsertBeforeInstruction(InstructionBase):
    action: Literal["INSERT_BEFORE"] = "INSERT_BEFORE"
    pattern: str = ""
    content: Optional[str] = None


class ReplaceContentInstruction(InstructionBase):
    action: Literal["REPLACE_CONTENT"] = "REPLACE_CONTENT"
    pattern: str = ""
    replacement: Optional[str] = None


class InsertPropInstruction(InstructionBase):
    action: Literal["INSERT_PROP"] = "INSERT_PROP"
    component_name: str = Field(default="", alias="componentName")
    prop_name: str = Field(default="", alias="propName")
    prop_value: Optional[str] = Field(default=None, alias="propValue")


Instruction = Annotated[
    Union[
        CreateFileInstruction,
        DeleteFileInstruction,
        InsertImportInstruction,
        AppendToFileInstruction,
        InsertAfterInstruction,
        InsertBeforeInstruction,
        ReplaceContentInstruction,
        InsertPropInstruction,
    ],
    Field(discriminator="action"),
]

INSTRUCTION_ADAPTER: TypeAdapter[List[Instruction]] = TypeAdapter(List[Instruction])
SINGLE_INSTRUCTION_ADAPTER: TypeAdapter[Instruction] = TypeAdapter(Instruction)


class ModuleBundle(RecordModel):
    """Named, prioritised set of instructions stored under ``.modules/``."""

    name: str = ""
    description: str = ""
    priority: Optional[int] = None
    instructions: Tuple[Instruction, ...]


class TemplateModuleRef(RecordModel):
    """Entry in a template's module catalogue."""

    name: str
    description: str = ""
    path: str = ""


class Template(RecordModel):
    """Base file tree plus the modules that can be layered on top of it."""

    name: str
    description: str = ""
    url: str
    modules: Tuple[TemplateModuleRef, ...] = ()


TemplatesManifest = Dict[str, Tuple[Template, ...]]

MANIFEST_ADAPTER: TypeAdapter[TemplatesManifest] = TypeAdapter(TemplatesManifest)


@dataclass(slots=True, frozen=True)
class ValidationIssue:
    """Structural problem detected in an instruction before it is applied."""

    index: int | None
    field: str
    message: str

    def render(self) -> str:
        prefix = f"#{self.index}: " if self.index is not None else ""
        return f"{prefix}{self.field}: {self.message}"


_CONTENT_ACTIONS = (InsertImportInstruction, AppendToFileInstruction, InsertAfterInstruction, InsertBeforeInstruction)
_PATTERN_ACTIONS = (InsertAfterInstruction, InsertBeforeInstruction, ReplaceContentInstruction)


def _validate_condition(condition: Any, position: str) -> list[tuple[str, str]]:
    problems: list[tuple[str, str]] = []
    if isinstance(condition, UnknownCondition):
        problems.append((position, f"unknown condition type {condition.type!r} is always treated as true"))
        return problems
    if isinstance(condition, ModuleCondition) and not condition.value:
        problems.append((f"{position}.value", "module name is required"))
    if isinstance(condition, (FileCondition, PatternCondition)) and not condition.target_path:
        problems.append((f"{position}.target", "target or value is required"))
    if isinstance(condition, PatternCondition) and not condition.value:
        problems.append((f"{position}.value", "pattern is required"))
    if isinstance(condition, PatternCountCondition):
        if not condition.value:
            problems.append((f"{position}.value", "pattern is required"))
        if condition.operator not in {operator.value for operator in CountOperator}:
            problems.append((f"{position}.operator", f"unsupported operator {condition.operator!r}"))
    return problems


def validate_instruction(instruction: InstructionBase, *, index: int | None = None) -> list[ValidationIssue]:
    """Report missing fields that would make ``instruction`` a silent no-op."""
    problems: list[tuple[str, str]] = []
    if not instruction.path.strip():
        problems.append(("path", "path is required"))
    if isinstance(instruction, _CONTENT_ACTIONS) and not instruction.content:
        problems.append(("content", "content is required"))
    if isinstance(instruction, _PATTERN_ACTIONS) and not instruction.pattern:
        problems.append(("pattern", "pattern is required"))
    if isinstance(instruction, InsertPropInstruction):
        if not instruction.component_name:
            problems.append(("componentName", "component name is required"))
        if not instruction.prop_name:
            problems.append(("propName", "prop name is required"))
    if instruction.condition is not None:
        for position, condition in enumerate(instruction.condition.conditions):
            problems.extend(_validate_condition(condition, f"condition.conditions[{position}]"))
    return [ValidationIssue(index=index, field=field, message=message) for field, message in problems]


def validate_instructions(instructions: Sequence[InstructionBase]) -> list[ValidationIssue]:
    """Validate every instruction, tagging issues with their list position."""
    issues: list[ValidationIssue] = []
    for index, instruction in enumerate(instructions):
        issues.extend(validate_instruction(instruction, index=index))
    return issues
