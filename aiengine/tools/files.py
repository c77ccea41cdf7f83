"""Workspace file tools — read a file, or dry-run an edit as a line diff.

Paths are always relative to the workspace root handed in through the
RunnableConfig. Absolute paths and anything that resolves outside the root
(``..`` traversal, symlinks) are rejected. Nothing here writes to disk.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath, PureWindowsPath

from langchain_core.runnables import RunnableConfig
from langchain_core.tools import tool

from aiengine.errors import NotFound, PathRejected, ToolExecutionError
from aiengine.tools import register
from aiengine.tools.diff import diff_lines

logger = logging.getLogger(__name__)


def resolve_path(root: str | Path, file: str) -> Path:
    """Resolve ``file`` against ``root``, refusing anything outside it."""
    if not isinstance(file, str) or not file.strip():
        raise PathRejected("File path must be a non-empty string")
    if "\x00" in file:
        raise PathRejected(f"Invalid file path: {file!r}")
    if PurePosixPath(file).is_absolute() or PureWindowsPath(file).is_absolute():
        raise PathRejected(f"Absolute paths are not allowed: {file}")

    root_path = Path(root).resolve()
    full = (root_path / file).resolve()
    if not full.is_relative_to(root_path):
        logger.warning(f"Rejected path escaping workspace root: {file!r}")
        raise PathRejected(f"Path escapes the workspace root: {file}")
    return full


def _root_from(config: RunnableConfig | None) -> str:
    root = ((config or {}).get("configurable") or {}).get("root")
    if not root:
        raise ToolExecutionError("No workspace root configured for file tools")
    return root


def _read_text(path: Path, file: str) -> str:
    if not path.is_file():
        raise NotFound(f"File not found: {file}")
    return path.read_text(encoding="utf-8", errors="replace")


@register
@tool
async def read_file(file: str, config: RunnableConfig) -> str:
    """Read a text file from the workspace and return its raw contents.

    Args:
        file: Path relative to the workspace root (e.g. "README.md").
    """
    path = resolve_path(_root_from(config), file)
    return await asyncio.to_thread(_read_text, path, file)


@register
@tool
async def propose_edit(file: str, newContent: str, config: RunnableConfig) -> list[dict]:  # noqa: N803
    """Propose replacing a workspace file's contents. Dry run only.

    Returns the line-level diff between the current file and ``newContent``
    as a list of {kind, value, count} spans. The file is never modified.

    Args:
        file: Path relative to the workspace root.
        newContent: The complete proposed new file text.
    """
    path = resolve_path(_root_from(config), file)
    old = await asyncio.to_thread(_read_text, path, file)
    return [span.model_dump() for span in diff_lines(old, newContent)]
