"""setup.py metadata and package list."""

import ast
from pathlib import Path

from core.logging_utils import PACKAGE_ROOTS

ROOT = Path(__file__).resolve().parent.parent


def _setup_kwargs():
    tree = ast.parse((ROOT / "setup.py").read_text(encoding="utf-8"))
    call = next(
        node for node in ast.walk(tree)
        if isinstance(node, ast.Call) and getattr(node.func, "id", None) == "setup"
    )
    return {kw.arg: kw.value for kw in call.keywords}


def test_project_metadata():
    kwargs = _setup_kwargs()
    assert ast.literal_eval(kwargs["name"]) == "liquidity-radar"
    assert ast.literal_eval(kwargs["author"]) == "Liquidity Radar Developers"
    assert "author_email" not in kwargs


def test_every_package_is_installed():
    include = ast.literal_eval(_setup_kwargs()["packages"].keywords[0].value)
    packages = sorted(p.parent.name for p in ROOT.glob("*/__init__.py"))
    assert packages == sorted(PACKAGE_ROOTS)
    assert all(pkg in include for pkg in packages)
