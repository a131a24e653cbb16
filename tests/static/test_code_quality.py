"""Static checks over the source tree.

Validates that every module imports and that library code keeps to the
logging and error-handling conventions.

Run with: pytest tests/static/test_code_quality.py -v
"""

import ast
import importlib
from pathlib import Path

import pytest

pytestmark = pytest.mark.static

PROJECT_ROOT = Path(__file__).parent.parent.parent
SRC_FILES = sorted((PROJECT_ROOT / "src").rglob("*.py"))


def _module_name(py_file: Path) -> str:
    return ".".join(py_file.relative_to(PROJECT_ROOT).with_suffix("").parts)


def test_source_tree_not_empty():
    assert len(SRC_FILES) > 10


@pytest.mark.parametrize("py_file", SRC_FILES, ids=_module_name)
def test_module_imports(py_file):
    importlib.import_module(_module_name(py_file))


@pytest.mark.parametrize("py_file", SRC_FILES, ids=_module_name)
def test_no_print_calls(py_file):
    """Library code logs instead of printing."""
    tree = ast.parse(py_file.read_text(encoding="utf-8"))
    prints = [
        node.lineno
        for node in ast.walk(tree)
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id == "print"
    ]
    assert prints == [], f"print() at lines {prints}"


@pytest.mark.parametrize("py_file", SRC_FILES, ids=_module_name)
def test_no_bare_except(py_file):
    tree = ast.parse(py_file.read_text(encoding="utf-8"))
    bare = [
        node.lineno
        for node in ast.walk(tree)
        if isinstance(node, ast.ExceptHandler) and node.type is None
    ]
    assert bare == [], f"bare except at lines {bare}"
