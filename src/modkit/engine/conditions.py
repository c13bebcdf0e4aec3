"""Condition evaluation over a file set and the loaded module names."""

from __future__ import annotations

import operator
import re
from typing import Any, Callable, Collection, Mapping, Optional

from pydantic import ValidationError

from ..schema import (
    CONDITION_ADAPTER,
    ConditionGroup,
    ConditionKind,
    CountOperator,
    FileCondition,
    LogicOperator,
    ModuleCondition,
    PatternCondition,
    PatternCountCondition,
    UnknownCondition,
)
from .diagnostics import Diagnostic, DiagnosticKind, DiagnosticSink, describe_record, report

__all__ = ["count_matches", "evaluate_condition", "evaluate_group"]

_COUNT_COMPARATORS: dict[str, Callable[[int, int], bool]] = {
    CountOperator.EQUALS.value: operator.eq,
    CountOperator.NOT_EQUALS.value: operator.ne,
    CountOperator.GREATER_THAN.value: operator.gt,
    CountOperator.LESS_THAN.value: operator.lt,
    CountOperator.GREATER_OR_EQUAL.value: operator.ge,
    CountOperator.LESS_OR_EQUAL.value: operator.le,
}


def count_matches(pattern: str, content: str) -> int:
    """Count non-overlapping regex matches of ``pattern`` across ``content``."""
    return sum(1 for _ in re.finditer(pattern, content))


def _evaluate(condition: Any, files: Mapping[str, str], module_names: Collection[str]) -> bool:
    if isinstance(condition, ModuleCondition):
        loaded = condition.value in module_names
        return loaded if condition.type == ConditionKind.MODULE_EXISTS else not loaded

    if isinstance(condition, FileCondition):
        present = condition.target_path in files
        return present if condition.type == ConditionKind.FILE_EXISTS else not present

    if isinstance(condition, PatternCondition):
        content = files.get(condition.target_path)
        if content is None:
            return condition.type == ConditionKind.PATTERN_NOT_EXISTS
        found = condition.value in content
        return found if condition.type == ConditionKind.PATTERN_EXISTS else not found

    if isinstance(condition, PatternCountCondition):
        content = files.get(condition.target_path)
        if content is None:
            return False
        comparator = _COUNT_COMPARATORS.get(condition.operator or "")
        if comparator is None:
            return False
        return comparator(count_matches(condition.value, content), condition.count)

    if isinstance(condition, UnknownCondition):
        return True
    raise TypeError(f"unsupported condition record: {type(condition).__name__}")


def evaluate_condition(
    condition: Any,
    files: Mapping[str, str],
    module_names: Collection[str] = (),
    *,
    sink: Optional[DiagnosticSink] = None,
) -> bool:
    """Return whether ``condition`` holds; faults evaluate false and are reported.

    Plain mappings are validated into condition records first. A mapping that
    does not validate, or a value that is no condition record at all, is a fault.
    """
    try:
        if isinstance(condition, Mapping):
            condition = CONDITION_ADAPTER.validate_python(condition)
        return _evaluate(condition, files, module_names)
    except Exception as error:  # noqa: BLE001 - evaluation must stay total
        report(
            sink,
            Diagnostic(
                kind=DiagnosticKind.CONDITION_FAULT,
                message="Condition could not be evaluated",
                subject=describe_record(condition),
                error=f"{type(error).__name__}: {error}",
            ),
        )
        return False


def evaluate_group(
    group: ConditionGroup | Mapping[str, Any] | None,
    files: Mapping[str, str],
    module_names: Collection[str] = (),
    *,
    sink: Optional[DiagnosticSink] = None,
) -> bool:
    """Combine a group's conditions with AND (default) or OR semantics.

    Every member is evaluated so faults are reported in order even when the
    outcome is already decided.
    """
    if isinstance(group, Mapping):
        try:
            group = ConditionGroup.model_validate(group)
        except ValidationError as error:
            report(
                sink,
                Diagnostic(
                    kind=DiagnosticKind.CONDITION_FAULT,
                    message="Condition group could not be validated",
                    subject=describe_record(group),
                    error=f"{type(error).__name__}: {error.error_count()} problem(s)",
                ),
            )
            return False
    if group is None or not group.conditions:
        return True
    results = [evaluate_condition(condition, files, module_names, sink=sink) for condition in group.conditions]
    if group.logic == LogicOperator.OR:
        return any(results)
    return all(results)
