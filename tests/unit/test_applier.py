from __future__ import annotations

import logging
from typing import Any

import pytest

from modkit.documents import parse_instructions
from modkit.engine import DiagnosticKind, RecordingSink, apply_instructions, preview
from modkit.schema import ActionKind


def _instructions(*items: dict[str, Any]) -> list[Any]:
    return parse_instructions(list(items))


def test_apply_is_deterministic() -> None:
    files = {"src/app.js": "console.log('hi');", "README.md": "# demo"}
    instructions = _instructions(
        {"path": "src/app.js", "action": "INSERT_IMPORT", "content": "import x from 'x';"},
        {"path": "src/app.js", "action": "APPEND_TO_FILE", "content": "export default x;"},
        {"path": "README.md", "action": "DELETE_FILE"},
    )

    first = apply_instructions(files, instructions, ["core"])
    second = apply_instructions(files, instructions, ["core"])

    assert first == second
    assert first == {"src/app.js": "import x from 'x';\nconsole.log('hi');\nexport default x;"}


def test_apply_never_aliases_input() -> None:
    files = {"a.txt": "hello"}

    result = apply_instructions(files, [])
    result["a.txt"] = "changed"
    result["b.txt"] = "new"

    assert result is not files
    assert files == {"a.txt": "hello"}


def test_false_condition_blocks_instruction() -> None:
    files = {"a.txt": "hello"}
    sink = RecordingSink(forward=None)
    instructions = _instructions(
        {
            "path": "a.txt",
            "action": "APPEND_TO_FILE",
            "content": "!",
            "condition": {"conditions": [{"type": "FILE_NOT_EXISTS", "target": "a.txt"}]},
        }
    )

    assert apply_instructions(files, instructions, sink=sink) == files
    [skipped] = sink.diagnostics
    assert skipped.kind is DiagnosticKind.INSTRUCTION_SKIPPED
    assert skipped.index == 0


def test_conditions_see_earlier_instructions() -> None:
    instructions = _instructions(
        {"action": "CREATE_FILE", "path": "x", "content": "A"},
        {
            "action": "APPEND_TO_FILE",
            "path": "x",
            "content": "B",
            "condition": {"conditions": [{"type": "FILE_EXISTS", "target": "x"}]},
        },
    )

    assert apply_instructions({}, instructions) == {"x": "A\nB"}


def test_delete_missing_file_is_idempotent() -> None:
    files = {"keep.txt": "1"}
    instructions = _instructions({"path": "gone.txt", "action": "DELETE_FILE"})

    assert apply_instructions(files, instructions) == files


def test_create_overwrites_and_defaults_to_empty() -> None:
    instructions = _instructions(
        {"path": "a.txt", "action": "CREATE_FILE", "content": "fresh"},
        {"path": "b.txt", "action": "CREATE_FILE"},
    )

    assert apply_instructions({"a.txt": "old"}, instructions) == {"a.txt": "fresh", "b.txt": ""}


def test_text_actions_skip_missing_files() -> None:
    instructions = _instructions(
        {"path": "missing.js", "action": "INSERT_IMPORT", "content": "import a;"},
        {"path": "missing.js", "action": "APPEND_TO_FILE", "content": "x"},
        {"path": "missing.js", "action": "REPLACE_CONTENT", "pattern": "a", "replacement": "b"},
    )

    assert apply_instructions({}, instructions) == {}


def test_literal_pattern_actions_touch_every_occurrence() -> None:
    files = {"app.js": "a.b;\na.b;\nacb;"}
    instructions = _instructions(
        {"path": "app.js", "action": "INSERT_AFTER", "pattern": "a.b;", "content": "// after"},
        {"path": "app.js", "action": "INSERT_BEFORE", "pattern": "acb;", "content": "// before"},
    )

    result = apply_instructions(files, instructions)

    assert result["app.js"] == "a.b;\n// after\na.b;\n// after\n// before\nacb;"


def test_replace_content_is_literal() -> None:
    files = {"app.js": "x.y = 1; xzy = 2; x.y = 3;"}
    instructions = _instructions({"path": "app.js", "action": "REPLACE_CONTENT", "pattern": "x.y", "replacement": "z"})

    assert apply_instructions(files, instructions)["app.js"] == "z = 1; xzy = 2; z = 3;"


def test_replace_without_replacement_removes_pattern() -> None:
    instructions = _instructions({"path": "a.txt", "action": "REPLACE_CONTENT", "pattern": "DEBUG "})

    assert apply_instructions({"a.txt": "DEBUG start"}, instructions) == {"a.txt": "start"}


def test_empty_pattern_is_a_no_op() -> None:
    instructions = _instructions({"path": "a.txt", "action": "INSERT_AFTER", "pattern": "", "content": "x"})

    assert apply_instructions({"a.txt": "abc"}, instructions) == {"a.txt": "abc"}


def test_missing_content_inserts_empty_text() -> None:
    instructions = _instructions({"path": "a.txt", "action": "APPEND_TO_FILE"})

    assert apply_instructions({"a.txt": "abc"}, instructions) == {"a.txt": "abc\n"}


def test_missing_path_is_reported_invalid() -> None:
    sink = RecordingSink(forward=None)
    instructions = _instructions({"action": "CREATE_FILE", "content": "x"})

    assert apply_instructions({}, instructions, sink=sink) == {}
    assert [entry.kind for entry in sink.diagnostics] == [DiagnosticKind.INSTRUCTION_INVALID]


def test_insert_prop_without_handler_is_skipped() -> None:
    sink = RecordingSink(forward=None)
    files = {"App.jsx": "<Button />"}
    instructions = _instructions(
        {"path": "App.jsx", "action": "INSERT_PROP", "componentName": "Button", "propName": "primary"}
    )

    assert apply_instructions(files, instructions, sink=sink) == files
    assert sink.of_kind(DiagnosticKind.INSTRUCTION_SKIPPED)


def test_faulty_handler_is_contained() -> None:
    sink = RecordingSink(forward=None)
    files = {"a.txt": "a"}

    def explode(existing: str, instruction: Any) -> str:
        raise ValueError("boom")

    instructions = _instructions(
        {"path": "a.txt", "action": "APPEND_TO_FILE", "content": "b"},
        {"path": "a.txt", "action": "REPLACE_CONTENT", "pattern": "a", "replacement": "z"},
        {"path": "a.txt", "action": "APPEND_TO_FILE", "content": "c"},
    )

    result = apply_instructions(files, instructions, sink=sink, handlers={ActionKind.REPLACE_CONTENT: explode})

    assert result == {"a.txt": "a\nb\nc"}
    [fault] = sink.faults
    assert fault.kind is DiagnosticKind.APPLICATION_FAULT
    assert fault.index == 1
    assert fault.error == "ValueError: boom"


def test_handler_must_return_text() -> None:
    sink = RecordingSink(forward=None)
    instructions = _instructions({"path": "a.txt", "action": "APPEND_TO_FILE", "content": "b"})

    result = apply_instructions(
        {"a.txt": "a"},
        instructions,
        sink=sink,
        handlers={ActionKind.APPEND_TO_FILE: lambda existing, instruction: None},
    )

    assert result == {"a.txt": "a"}
    assert sink.faults[0].error is not None and sink.faults[0].error.startswith("TypeError")


def test_module_names_gate_instructions() -> None:
    instructions = _instructions(
        {
            "path": "a.txt",
            "action": "APPEND_TO_FILE",
            "content": "auth",
            "condition": {"conditions": [{"type": "MODULE_EXISTS", "value": "auth"}]},
        }
    )

    assert apply_instructions({"a.txt": "x"}, instructions, ["auth"]) == {"a.txt": "x\nauth"}
    assert preview({"a.txt": "x"}, instructions) == {"a.txt": "x"}


def test_faults_default_to_telemetry_logger(caplog: pytest.LogCaptureFixture) -> None:
    instructions = _instructions({"path": "a.txt", "action": "APPEND_TO_FILE", "content": "b"})

    with caplog.at_level(logging.WARNING, logger="modkit.telemetry"):
        apply_instructions(
            {"a.txt": "a"},
            instructions,
            handlers={ActionKind.APPEND_TO_FILE: lambda existing, instruction: 1 / 0},
        )

    assert any('"event":"application_fault"' in record.getMessage() for record in caplog.records)


def test_plain_mapping_instructions_are_validated() -> None:
    sink = RecordingSink(forward=None)
    instructions = [
        {"path": "x", "action": "CREATE_FILE"},
        {"path": "x", "action": "APPEND_TO_FILE", "content": "B", "condition": {"conditions": [{"type": "FILE_EXISTS", "target": "x"}]}},
        {"path": "y", "action": "RENAME_FILE"},
        "DELETE_FILE x",
        {"path": "x", "action": "APPEND_TO_FILE", "content": "C", "condition": {"conditions": [{"type": "FILE_EXISTS", "target": "nope"}]}},
    ]

    result = apply_instructions({}, instructions, sink=sink)

    assert result == {"x": "\nB"}
    invalid = sink.of_kind(DiagnosticKind.INSTRUCTION_INVALID)
    assert [entry.index for entry in invalid] == [2, 3]
    assert [entry.index for entry in sink.of_kind(DiagnosticKind.INSTRUCTION_SKIPPED)] == [4]
