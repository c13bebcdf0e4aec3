"""Resolve template roots inside an archive and layer selected modules on top."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from .engine.applier import TextHandler, apply_instructions
from .engine.diagnostics import DiagnosticSink
from .errors import ArchiveError, CompositionError
from .schema import (
    DEFAULT_PRIORITY,
    MANIFEST_ADAPTER,
    ActionKind,
    Instruction,
    InstructionBase,
    ModuleBundle,
    Template,
    TemplatesManifest,
)
from .tools.archive import ArchiveReader, is_metadata_entry

__all__ = [
    "CompositionResult",
    "ModuleSummary",
    "compose_template",
    "detect_archive_root",
    "effective_priority",
    "find_module_bundle",
    "find_template",
    "find_templates_manifest",
    "list_module_bundles",
    "load_module_bundle",
    "load_module_instructions",
    "load_templates_manifest",
    "merge_module_instructions",
    "resolve_template_root",
    "template_root_candidates",
]

LOGGER = logging.getLogger(__name__)

MANIFEST_NAME = "templates.json"
MODULES_DIR = ".modules"


@dataclass(slots=True, frozen=True)
class ModuleSummary:
    """Catalogue entry for a module bundle found inside an archive."""

    name: str
    description: str
    path: str
    instructions_count: int


@dataclass(slots=True)
class CompositionResult:
    """Outcome of composing a template with its selected modules."""

    template: Template
    root: str
    files: Dict[str, str]
    modules: Tuple[str, ...] = ()
    bundles: Tuple[str, ...] = ()
    instructions: Tuple[Instruction, ...] = field(default_factory=tuple)


def _file_entries(reader: ArchiveReader) -> List[str]:
    return [entry for entry in reader.entries if not reader.is_directory(entry) and not is_metadata_entry(entry)]


def _read(reader: ArchiveReader, path: str) -> str:
    try:
        return reader.read_text(path)
    except ArchiveError as error:
        raise CompositionError(str(error), details=error.details) from error


def find_templates_manifest(reader: ArchiveReader) -> str:
    """Return the first archive entry named ``templates.json``."""
    for entry in _file_entries(reader):
        if entry.endswith(MANIFEST_NAME):
            return entry
    raise CompositionError(
        f"{MANIFEST_NAME} not found in archive",
        details={"entries": list(reader.entries)[:30]},
    )


def load_templates_manifest(reader: ArchiveReader) -> TemplatesManifest:
    """Parse the archive's templates manifest (environment -> templates)."""
    manifest_path = find_templates_manifest(reader)
    text = _read(reader, manifest_path)
    try:
        return MANIFEST_ADAPTER.validate_json(text)
    except ValidationError as error:
        raise CompositionError(
            f"Invalid {MANIFEST_NAME}: {error.error_count()} problem(s)",
            details={"path": manifest_path, "errors": [entry.get("msg") for entry in error.errors()]},
        ) from error


def find_template(manifest: TemplatesManifest, name: str, environment: Optional[str] = None) -> Template:
    """Look up a template by name, optionally restricted to one environment."""
    if environment is not None:
        if environment not in manifest:
            raise CompositionError(
                f"Unknown environment {environment!r}",
                details={"environments": sorted(manifest)},
            )
        scopes: Iterable[Tuple[Template, ...]] = (manifest[environment],)
    else:
        scopes = manifest.values()
    for templates in scopes:
        for template in templates:
            if template.name == name:
                return template
    raise CompositionError(f"Template {name!r} not found", details={"environment": environment})


def detect_archive_root(entries: Sequence[str]) -> str:
    """Return ``"folder/"`` when every entry lives under the first entry's folder."""
    if not entries or "/" not in entries[0]:
        return ""
    folder = entries[0].split("/", 1)[0]
    prefix = f"{folder}/"
    if all(entry.startswith(prefix) or entry == folder for entry in entries):
        return prefix
    return ""


def template_root_candidates(url: str, archive_root: str = "") -> List[str]:
    """Candidate prefixes for a template's files, most specific first."""
    cleaned = url.strip().strip("/")
    segments = [segment for segment in cleaned.split("/") if segment]
    if not segments:
        return []
    name = segments[-1]
    parent = segments[-2] if len(segments) > 1 else None

    relative: List[str] = [f"{cleaned}/"]
    if parent is not None:
        relative.append(f"{parent}/{name}/")
    relative.append(f"{name}/")

    candidates: List[str] = []
    for prefix in ([archive_root] if archive_root else []) + [""]:
        for option in relative:
            candidate = f"{prefix}{option}"
            if candidate not in candidates:
                candidates.append(candidate)
    return candidates


def resolve_template_root(reader: ArchiveReader, template: Template) -> str:
    """Pick the first candidate prefix that contains at least one file."""
    entries = [entry for entry in reader.entries if not is_metadata_entry(entry)]
    files = [entry for entry in entries if not reader.is_directory(entry)]
    candidates = template_root_candidates(template.url, detect_archive_root(entries))
    for candidate in candidates:
        if any(entry.startswith(candidate) for entry in files):
            LOGGER.debug("Resolved template %s to %s", template.name, candidate)
            return candidate
    raise CompositionError(
        f"Template files not found for {template.name!r}",
        details={
            "url": template.url,
            "candidates": candidates,
            "top_level": sorted({entry.split("/", 1)[0] for entry in entries}),
        },
    )


def collect_template_files(reader: ArchiveReader, root: str) -> Dict[str, str]:
    """Load files below ``root`` relative to it, excluding the module bundles."""
    files: Dict[str, str] = {}
    for entry in _file_entries(reader):
        if not entry.startswith(root):
            continue
        relative = entry[len(root) :]
        if not relative or relative.startswith(f"{MODULES_DIR}/"):
            continue
        files[relative] = _read(reader, entry)
    if not files:
        raise CompositionError(f"No files found in template directory {root}")
    return files


def _is_bundle_entry(entry: str) -> bool:
    path = PurePosixPath(entry)
    return path.suffix == ".json" and MODULES_DIR in path.parts[:-1]


def load_module_bundle(reader: ArchiveReader, path: str) -> ModuleBundle:
    """Parse the module bundle stored at ``path``."""
    text = _read(reader, path)
    try:
        bundle = ModuleBundle.model_validate_json(text)
    except ValidationError as error:
        raise CompositionError(
            f"Invalid module bundle {path}",
            details={"path": path, "errors": [entry.get("msg") for entry in error.errors()]},
        ) from error
    if not bundle.name:
        bundle = bundle.model_copy(update={"name": PurePosixPath(path).stem})
    return bundle


def load_module_instructions(reader: ArchiveReader, path: str) -> List[Instruction]:
    """Return one bundle's instructions as stored, without sorting or merging."""
    return list(load_module_bundle(reader, path).instructions)


def list_module_bundles(reader: ArchiveReader) -> List[ModuleSummary]:
    """Describe every parsable bundle under a ``.modules/`` folder."""
    summaries: List[ModuleSummary] = []
    for entry in _file_entries(reader):
        if not _is_bundle_entry(entry):
            continue
        try:
            bundle = load_module_bundle(reader, entry)
        except CompositionError as error:
            LOGGER.warning("Skipping module bundle %s: %s", entry, error)
            continue
        summaries.append(
            ModuleSummary(
                name=bundle.name,
                description=bundle.description or "No description",
                path=entry,
                instructions_count=len(bundle.instructions),
            )
        )
    return summaries


def find_module_bundle(reader: ArchiveReader, file_name: str, root: str = "") -> Optional[str]:
    """Return the bundle entry named ``file_name`` inside a ``.modules`` folder.

    Bundles directly under ``root`` win; other ``.modules`` folders in the
    archive are searched only when ``root`` has no match.
    """
    matches = [
        entry
        for entry in _file_entries(reader)
        if PurePosixPath(entry).name == file_name and MODULES_DIR in PurePosixPath(entry).parts[:-1]
    ]
    if root:
        scoped = f"{root}{MODULES_DIR}/"
        for entry in matches:
            if entry.startswith(scoped):
                return entry
    return matches[0] if matches else None


def effective_priority(instruction: InstructionBase, bundle: ModuleBundle) -> int:
    """Instruction priority, else bundle priority, else the default."""
    if instruction.priority is not None:
        return instruction.priority
    if bundle.priority is not None:
        return bundle.priority
    return DEFAULT_PRIORITY


def merge_module_instructions(bundles: Sequence[ModuleBundle]) -> List[Instruction]:
    """Concatenate bundle instructions and stable-sort them by priority."""
    ranked = [(effective_priority(instruction, bundle), instruction) for bundle in bundles for instruction in bundle.instructions]
    ranked.sort(key=lambda item: item[0])
    return [instruction for _, instruction in ranked]


def compose_template(
    reader: ArchiveReader,
    template: Template,
    selected_modules: Iterable[str] = (),
    *,
    sink: Optional[DiagnosticSink] = None,
    handlers: Optional[Mapping[ActionKind, TextHandler]] = None,
) -> CompositionResult:
    """Load a template's files and apply its selected modules in priority order.

    Any unresolved root or missing/invalid bundle fails the whole composition.
    """
    selected = tuple(dict.fromkeys(selected_modules))
    root = resolve_template_root(reader, template)
    base_files = collect_template_files(reader, root)

    catalogue: Dict[str, str] = {}
    for reference in template.modules:
        catalogue.setdefault(reference.name, reference.path)

    bundles: List[ModuleBundle] = []
    bundle_paths: List[str] = []
    for name in selected:
        reference_path = catalogue.get(name)
        if not reference_path:
            LOGGER.warning("Module %s is not in the catalogue of template %s; ignoring", name, template.name)
            continue
        file_name = PurePosixPath(reference_path).name
        bundle_path = find_module_bundle(reader, file_name, root)
        if bundle_path is None:
            raise CompositionError(
                f"Module bundle not found: {file_name}",
                details={"module": name, "path": reference_path},
            )
        bundles.append(load_module_bundle(reader, bundle_path))
        bundle_paths.append(bundle_path)

    instructions = merge_module_instructions(bundles)
    LOGGER.info(
        "Composing %s from %s with %d instruction(s) across %d module(s)",
        template.name,
        root,
        len(instructions),
        len(bundles),
    )
    files = apply_instructions(base_files, instructions, selected, sink=sink, handlers=handlers)
    return CompositionResult(
        template=template,
        root=root,
        files=files,
        modules=selected,
        bundles=tuple(bundle_paths),
        instructions=tuple(instructions),
    )
