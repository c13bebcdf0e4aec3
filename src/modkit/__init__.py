"""Declarative, condition-gated file instructions and template composition."""

from .compose import CompositionResult, compose_template, merge_module_instructions
from .documents import dump_instruction_document, load_instruction_document, parse_instruction_document
from .engine import RecordingSink, apply_instructions, evaluate_condition, evaluate_group, preview
from .errors import ArchiveError, CompositionError, ConfigError, ImportFormatError, ModkitError
from .schema import (
    ActionKind,
    Condition,
    ConditionGroup,
    ConditionKind,
    CountOperator,
    Instruction,
    LogicOperator,
    ModuleBundle,
    Template,
)
from .tools import build_tree

__all__ = [
    "ActionKind",
    "ArchiveError",
    "CompositionError",
    "CompositionResult",
    "Condition",
    "ConditionGroup",
    "ConditionKind",
    "ConfigError",
    "CountOperator",
    "ImportFormatError",
    "Instruction",
    "LogicOperator",
    "ModkitError",
    "ModuleBundle",
    "RecordingSink",
    "Template",
    "apply_instructions",
    "build_tree",
    "compose_template",
    "dump_instruction_document",
    "evaluate_condition",
    "evaluate_group",
    "load_instruction_document",
    "merge_module_instructions",
    "parse_instruction_document",
    "preview",
]
