"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from aiengine.models import cache as client_cache
from aiengine.tools import ToolRegistry

from tests.helpers import README_TEXT


@pytest.fixture
def workspace(tmp_path):
    """A workspace root holding a README and one nested source file."""
    root = tmp_path / "workspace"
    (root / "src").mkdir(parents=True)
    (root / "README.md").write_text(README_TEXT, encoding="utf-8")
    (root / "src" / "app.py").write_text("print('hi')\n", encoding="utf-8")
    return root


@pytest.fixture
def registry(workspace) -> ToolRegistry:
    return ToolRegistry(workspace)


@pytest.fixture(autouse=True)
def _clear_client_cache():
    client_cache.invalidate()
    yield
    client_cache.invalidate()
