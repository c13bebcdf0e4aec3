from __future__ import annotations

import json
import sys
import textwrap
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


APP_SOURCE = textwrap.dedent(
    """
    import React from 'react';

    export default function App() {
      return <Button label="Go" />;
    }
    """
).lstrip()

ROUTER_BUNDLE: Dict[str, Any] = {
    "name": "router",
    "description": "Client-side routing",
    "priority": 2,
    "instructions": [
        {"path": "src/App.jsx", "action": "INSERT_IMPORT", "content": "import B from 'b';"},
        {"path": "src/routes.js", "action": "CREATE_FILE", "content": "export const routes = [];"},
    ],
}

THEME_BUNDLE: Dict[str, Any] = {
    "name": "theme",
    "priority": 1,
    "instructions": [
        {"path": "src/App.jsx", "action": "INSERT_IMPORT", "content": "import A from 'a';"},
        {
            "path": "src/routes.js",
            "action": "APPEND_TO_FILE",
            "content": "// themed routes",
            "condition": {
                "logic": "AND",
                "conditions": [
                    {"type": "MODULE_EXISTS", "value": "router"},
                    {"type": "FILE_EXISTS", "target": "src/routes.js"},
                ],
            },
        },
    ],
}

MANIFEST: Dict[str, Any] = {
    "react": [
        {
            "name": "basic",
            "description": "Basic React app",
            "url": "templates/react/basic",
            "modules": [
                {"name": "router", "description": "Client-side routing", "path": ".modules/router.json"},
                {"name": "theme", "description": "Theme tokens", "path": ".modules/theme.json"},
                {"name": "pathless", "description": "Catalogue entry without a bundle path"},
            ],
        }
    ],
    "vue": [
        {"name": "starter", "description": "Vue starter", "url": "templates/vue/starter", "modules": []},
    ],
}


@dataclass(slots=True)
class TemplateArchive:
    """Fixture payload describing a templates ZIP written under ``tmp_path``."""

    path: Path
    entries: Dict[str, str] = field(default_factory=dict)


def write_zip(path: Path, entries: Dict[str, str]) -> Path:
    """Write ``entries`` (name -> text; names ending in ``/`` are folders) to a ZIP."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as archive:
        for name, text in entries.items():
            archive.writestr(name, text)
    return path


@pytest.fixture()
def template_entries() -> Dict[str, str]:
    base = "bundle/templates/react/basic/"
    return {
        "bundle/": "",
        "bundle/templates.json": json.dumps(MANIFEST),
        f"{base}package.json": json.dumps({"name": "basic"}),
        f"{base}src/App.jsx": APP_SOURCE,
        f"{base}.modules/router.json": json.dumps(ROUTER_BUNDLE),
        f"{base}.modules/theme.json": json.dumps(THEME_BUNDLE),
        f"{base}.modules/broken.json": "{not json",
        "bundle/templates/vue/starter/index.html": "<div id=\"app\"></div>",
        "__MACOSX/bundle/._templates.json": "junk",
    }


@pytest.fixture()
def templates_zip(tmp_path: Path, template_entries: Dict[str, str]) -> TemplateArchive:
    """Create a templates archive with one root folder, a manifest, and module bundles."""

    path = write_zip(tmp_path / "templates.zip", template_entries)
    return TemplateArchive(path=path, entries=template_entries)


@pytest.fixture()
def project_zip(tmp_path: Path) -> Path:
    """Create a plain project archive whose files share one root folder."""

    return write_zip(
        tmp_path / "project.zip",
        {
            "project/": "",
            "project/src/App.jsx": APP_SOURCE,
            "project/README.md": "# Project",
            "__MACOSX/project/._README.md": "junk",
        },
    )
