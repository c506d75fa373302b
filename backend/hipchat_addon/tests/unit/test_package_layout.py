"""
Layering and packaging checks.

- Domain layers (credentials, services, integrations, platform) never import
  the api package; dependencies point from api to services, not back.
- Core dependencies hold only what the package imports; the ASGI server
  lives in the "server" extra.
"""

import ast
from pathlib import Path

import pytest

PACKAGE_DIR = Path(__file__).resolve().parents[2]
PROJECT_ROOT = PACKAGE_DIR.parents[1]

DOMAIN_LAYERS = ["credentials", "services", "integrations", "platform", "models", "config"]


def _imported_modules(path: Path) -> set[str]:
    tree = ast.parse(path.read_text(encoding="utf-8"))
    modules = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.ImportFrom) and node.module:
            modules.add(node.module)
        elif isinstance(node, ast.Import):
            modules.update(alias.name for alias in node.names)
    return modules


@pytest.mark.parametrize("layer", DOMAIN_LAYERS)
def test_domain_layer_does_not_import_api(layer):
    offenders = {
        str(path.relative_to(PACKAGE_DIR)): sorted(
            m for m in _imported_modules(path) if m.startswith("hipchat_addon.api")
        )
        for path in (PACKAGE_DIR / layer).rglob("*.py")
    }

    assert {k: v for k, v in offenders.items() if v} == {}


def test_install_payload_decoder_lives_with_credentials():
    from hipchat_addon.credentials import install_payload
    from hipchat_addon.services import lifecycle

    assert lifecycle.decode_install_payload is install_payload.decode_install_payload


def test_server_dependency_is_optional():
    tomllib = pytest.importorskip("tomllib")
    with open(PROJECT_ROOT / "pyproject.toml", "rb") as f:
        project = tomllib.load(f)["project"]

    core = [dep.lower() for dep in project["dependencies"]]
    assert not any(dep.startswith("uvicorn") for dep in core)
    assert any(dep.startswith("uvicorn") for dep in project["optional-dependencies"]["server"])
