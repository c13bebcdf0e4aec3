"""Opt-in INSERT_PROP handler that adds an attribute to markup component tags."""

from __future__ import annotations

import re
from typing import Any

from ..schema import InsertPropInstruction

__all__ = ["insert_prop_handler"]


def _format_attribute(name: str, value: str | None) -> str:
    return f"{name}={value}" if value else name


def insert_prop_handler(existing: str, instruction: Any) -> str:
    """Add ``propName=propValue`` to every ``<ComponentName`` opening tag.

    Tags that already carry the prop are left untouched. Matching is textual:
    the tag extends to the next ``>``.
    """
    if not isinstance(instruction, InsertPropInstruction):
        return existing
    component = instruction.component_name.strip()
    prop = instruction.prop_name.strip()
    if not component or not prop:
        return existing

    opening = re.compile(r"<" + re.escape(component) + r"(?=[\s/>])")
    existing_prop = re.compile(r"(?<![\w.-])" + re.escape(prop) + r"(?=\s*=|[\s/>]|$)")
    attribute = _format_attribute(prop, instruction.prop_value)

    def _inject(match: re.Match[str]) -> str:
        source = match.string
        tag_end = source.find(">", match.end())
        remainder = source[match.end() : tag_end if tag_end != -1 else len(source)]
        if existing_prop.search(remainder):
            return match.group(0)
        return f"{match.group(0)} {attribute}"

    return opening.sub(_inject, existing)
