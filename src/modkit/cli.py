"""CLI commands for applying instructions and composing templates."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, NoReturn, Optional

import typer

from .compose import compose_template, find_template, list_module_bundles, load_module_instructions, load_templates_manifest
from .config import ModkitConfig, load_config
from .documents import dump_instruction_document, load_instruction_document
from .engine import RecordingSink, apply_instructions, insert_prop_handler
from .engine.applier import TextHandler
from .errors import ModkitError
from .schema import ActionKind, validate_instructions
from .tools.archive import load_fileset, open_archive, write_fileset
from .tools.tree import build_tree, render_tree

APP_HELP = "Apply declarative file instructions to archives and template bundles."

app = typer.Typer(help=APP_HELP)

_CONFIG_HELP = "Path to the modkit configuration file (defaults to ./modkit.yaml when present)."


def _settings(config: Optional[str], verbose: bool = False) -> ModkitConfig:
    """Load configuration and configure logging for the command."""
    try:
        settings = load_config(Path(config) if config else None)
    except ModkitError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error
    level = logging.DEBUG if verbose else settings.log_level_value
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("modkit").setLevel(level)
    return settings


def _handlers(settings: ModkitConfig, insert_prop: Optional[bool]) -> Dict[ActionKind, TextHandler]:
    enabled = settings.insert_prop if insert_prop is None else insert_prop
    return {ActionKind.INSERT_PROP: insert_prop_handler} if enabled else {}


def _fail(message: str, error: ModkitError) -> NoReturn:
    typer.echo(f"{message}: {error}")
    for key, value in error.details.items():
        typer.echo(f"  {key}: {value}")
    raise typer.Exit(code=1) from error


def _render_diagnostics(sink: RecordingSink) -> None:
    faults = sink.faults
    skipped = len(sink.diagnostics) - len(faults)
    if skipped:
        typer.echo(f"Skipped {skipped} instruction(s).")
    if faults:
        typer.echo("Faults:")
        for entry in faults:
            typer.echo(f"  - {entry.render()}")


@app.command()
def apply(
    archive: Path = typer.Argument(..., help="ZIP archive or directory holding the project files."),
    instructions: Path = typer.Argument(..., help="Instruction document (JSON)."),
    module: List[str] = typer.Option(
        None,
        "--module",
        "-m",
        help="Module name treated as loaded when evaluating conditions (repeatable).",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory, or a path ending in .zip.",
    ),
    insert_prop: Optional[bool] = typer.Option(
        None,
        "--insert-prop/--no-insert-prop",
        help="Enable the markup prop injector for INSERT_PROP instructions.",
    ),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug diagnostics."),
) -> None:
    """Apply an instruction document to a project archive."""
    settings = _settings(config, verbose)
    try:
        with open_archive(archive) as reader:
            files = load_fileset(reader)
        loaded = load_instruction_document(instructions)
    except ModkitError as error:
        _fail("Unable to load inputs", error)

    sink = RecordingSink()
    result = apply_instructions(files, loaded, module or [], sink=sink, handlers=_handlers(settings, insert_prop))

    try:
        destination = write_fileset(result, output or settings.output_directory)
    except ModkitError as error:
        _fail("Unable to write output", error)

    typer.echo(f"Applied {len(loaded)} instruction(s) to {len(files)} file(s); {len(result)} file(s) written to {destination}")
    _render_diagnostics(sink)


@app.command()
def compose(
    templates_archive: Path = typer.Argument(..., help="Templates archive containing templates.json."),
    template: str = typer.Option(..., "--template", "-t", help="Template name from templates.json."),
    environment: Optional[str] = typer.Option(None, "--environment", "-e", help="Environment holding the template."),
    module: List[str] = typer.Option(None, "--module", "-m", help="Module to layer on the template (repeatable)."),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory, or a path ending in .zip.",
    ),
    insert_prop: Optional[bool] = typer.Option(
        None,
        "--insert-prop/--no-insert-prop",
        help="Enable the markup prop injector for INSERT_PROP instructions.",
    ),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug diagnostics."),
) -> None:
    """Compose a template with selected modules and write the resulting files."""
    settings = _settings(config, verbose)
    sink = RecordingSink()
    try:
        with open_archive(templates_archive) as reader:
            manifest = load_templates_manifest(reader)
            selected = find_template(manifest, template, environment or settings.environment)
            result = compose_template(
                reader,
                selected,
                module or [],
                sink=sink,
                handlers=_handlers(settings, insert_prop),
            )
    except ModkitError as error:
        _fail("Composition failed", error)

    try:
        destination = write_fileset(result.files, output or settings.output_directory)
    except ModkitError as error:
        _fail("Unable to write output", error)

    typer.echo(f"Template {result.template.name} resolved at {result.root or '(archive root)'}")
    if result.modules:
        typer.echo(f"Modules: {', '.join(result.modules)} ({len(result.instructions)} instruction(s))")
    typer.echo(f"Wrote {len(result.files)} file(s) to {destination}")
    _render_diagnostics(sink)


@app.command()
def templates(
    templates_archive: Path = typer.Argument(..., help="Templates archive containing templates.json."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
) -> None:
    """List environments, templates, and their module catalogues."""
    _settings(config)
    try:
        with open_archive(templates_archive) as reader:
            manifest = load_templates_manifest(reader)
    except ModkitError as error:
        _fail("Unable to read templates", error)

    for environment, entries in manifest.items():
        typer.echo(f"{environment}:")
        for entry in entries:
            typer.echo(f"  - {entry.name} ({entry.url}): {entry.description}")
            for reference in entry.modules:
                typer.echo(f"      * {reference.name}: {reference.description}")


@app.command()
def modules(
    templates_archive: Path = typer.Argument(..., help="Templates archive with .modules/ bundles."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
) -> None:
    """List module bundles stored in a templates archive."""
    _settings(config)
    try:
        with open_archive(templates_archive) as reader:
            summaries = list_module_bundles(reader)
    except ModkitError as error:
        _fail("Unable to read modules", error)

    if not summaries:
        typer.echo("No modules found in archive.")
        raise typer.Exit(code=1)
    for summary in summaries:
        typer.echo(f"- {summary.name} [{summary.instructions_count} instruction(s)] {summary.path}: {summary.description}")


@app.command()
def load_module(
    templates_archive: Path = typer.Argument(..., help="Templates archive with .modules/ bundles."),
    module_path: str = typer.Argument(..., help="Archive path of the module bundle."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the instruction document here."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
) -> None:
    """Export one module's raw instructions as an editable instruction document."""
    _settings(config)
    try:
        with open_archive(templates_archive) as reader:
            loaded = load_module_instructions(reader, module_path)
    except ModkitError as error:
        _fail("Unable to load module", error)

    document = dump_instruction_document(loaded)
    if output is None:
        typer.echo(document)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(document + "\n", encoding="utf-8")
    typer.echo(f"Wrote {len(loaded)} instruction(s) to {output}")


@app.command()
def validate(
    instructions: Path = typer.Argument(..., help="Instruction document (JSON)."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
) -> None:
    """Check an instruction document for structural problems."""
    _settings(config)
    try:
        loaded = load_instruction_document(instructions)
    except ModkitError as error:
        _fail("Invalid instruction document", error)

    issues = validate_instructions(loaded)
    if not issues:
        typer.echo(f"{len(loaded)} instruction(s) OK.")
        return
    typer.echo(f"Found {len(issues)} issue(s):")
    for issue in issues:
        typer.echo(f"  - {issue.render()}")
    raise typer.Exit(code=1)


@app.command()
def tree(
    archive: Path = typer.Argument(..., help="ZIP archive or directory holding the project files."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
) -> None:
    """Print the folder/file tree of an archive."""
    _settings(config)
    try:
        with open_archive(archive) as reader:
            files = load_fileset(reader)
    except ModkitError as error:
        _fail("Unable to read archive", error)

    if not files:
        typer.echo("Archive contains no files.")
        return
    typer.echo(render_tree(build_tree(files)))


if __name__ == "__main__":
    app()
