from pathlib import Path
import ast

import pytest

SRC = Path(__file__).resolve().parents[1] / "services/pkgsmith/src/pkgsmith"

LAYER_DENY = {
    "domain": ["pkgsmith.ports", "pkgsmith.application", "pkgsmith.adapters", "pkgsmith.entrypoints"],
    "ports": ["pkgsmith.application", "pkgsmith.adapters", "pkgsmith.entrypoints"],
    "application": ["pkgsmith.entrypoints"],
    "adapters": ["pkgsmith.application", "pkgsmith.entrypoints"],
}


def _imports(path: Path) -> list[tuple[str, int]]:
    hits: list[tuple[str, int]] = []
    for node in ast.walk(ast.parse(path.read_text(encoding="utf-8"))):
        if isinstance(node, ast.Import):
            hits.extend((alias.name, node.lineno) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            hits.append((node.module, node.lineno))
    return hits


def _denied(name: str, deny: list[str]) -> bool:
    return any(name == entry or name.startswith(entry + ".") for entry in deny)


@pytest.mark.parametrize("layer", sorted(LAYER_DENY))
def test_layer_has_no_forbidden_imports(layer: str) -> None:
    files = sorted((SRC / layer).rglob("*.py"))
    assert files
    violations = [
        f"{path.relative_to(SRC)}:{lineno} forbidden import '{name}' in layer {layer}"
        for path in files
        for name, lineno in _imports(path)
        if _denied(name, LAYER_DENY[layer])
    ]
    assert not violations, "\n" + "\n".join(violations)
