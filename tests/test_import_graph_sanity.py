from __future__ import annotations

import ast
from pathlib import Path

import pytest

pytestmark = pytest.mark.repo_local


PACKAGE_ROOT = Path(__file__).resolve().parents[1] / "cldf"

# layer -> packages it must never import
FORBIDDEN = {
    "core": ("cldf.models", "cldf.protocol", "cldf.clid"),
    "models": ("cldf.protocol", "cldf.clid"),
}


def test_import_graph_sanity() -> None:
    # These should import without any circular dependency errors.
    import cldf.clid  # noqa: F401
    import cldf.protocol.archive_codec  # noqa: F401
    import cldf.protocol.merge  # noqa: F401
    import cldf.protocol.verify  # noqa: F401


def _imported_modules(path: Path) -> list[tuple[int, str]]:
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    out: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.ImportFrom) and node.module:
            out.append((node.lineno, node.module))
        elif isinstance(node, ast.Import):
            out.extend((node.lineno, alias.name) for alias in node.names)
    return out


@pytest.mark.parametrize("layer", sorted(FORBIDDEN))
def test_lower_layers_do_not_import_upward(layer: str) -> None:
    hits = []
    for path in sorted((PACKAGE_ROOT / layer).rglob("*.py")):
        for lineno, module in _imported_modules(path):
            if module.startswith(FORBIDDEN[layer]):
                hits.append(f"{path.relative_to(PACKAGE_ROOT).as_posix()}:{lineno}: {module}")
    assert hits == []


def test_document_schemas_ship_with_package() -> None:
    from cldf.protocol.archive_codec import DOCUMENTS, load_document_schema

    for spec in DOCUMENTS:
        schema = load_document_schema(spec.name)
        assert schema["type"] == "object"
    assert load_document_schema("checksums.json")["required"] == ["algorithm", "files"]
