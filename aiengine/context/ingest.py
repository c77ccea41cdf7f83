"""Repository ingestion — clone a repo and index its text files for retrieval.

Shallow-clones into ``{workdir}/{workspace}`` with the ``git`` CLI, walks
text-like files (by extension, skipping ``.git`` and oversized files), and
indexes each one under ``"{workspace}:{relative path}"``.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING

from aiengine.config import IngestConfig
from aiengine.errors import IngestionError, RetrievalUnavailable

if TYPE_CHECKING:
    from aiengine.context.retrieval import RetrievalService

logger = logging.getLogger(__name__)

_WORKSPACE_RE = re.compile(r"[^A-Za-z0-9_.-]")

# Remote transports only: no local paths, no file:// URLs.
ALLOWED_URL_PREFIXES = ("https://", "ssh://", "git://", "git@")


def workspace_dir(workdir: str, workspace: str) -> Path:
    """Checkout directory for a workspace; the name is sanitised to one path segment."""
    name = _WORKSPACE_RE.sub("_", workspace.strip()) or "default"
    if name in (".", ".."):
        name = "default"
    return Path(workdir) / name


async def clone_repo(repo_url: str, target: Path) -> None:
    """Shallow-clone ``repo_url`` into ``target``, replacing any previous checkout."""
    if not repo_url.startswith(ALLOWED_URL_PREFIXES):
        raise IngestionError(f"Invalid repository URL: {repo_url!r}")

    if target.exists():
        await asyncio.to_thread(shutil.rmtree, target)
    target.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Cloning {repo_url} → {target}")
    try:
        proc = await asyncio.create_subprocess_exec(
            "git", "clone", "--depth", "1", "--", repo_url, str(target),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise IngestionError("git executable not found") from e

    _, stderr = await proc.communicate()
    if proc.returncode != 0:
        message = stderr.decode(errors="replace").strip()
        raise IngestionError(f"git clone failed ({proc.returncode}): {message}")


def iter_text_files(root: Path, extensions: list[str], max_bytes: int) -> list[Path]:
    """Text-like files under ``root`` in a stable order."""
    wanted = {ext.lower() for ext in extensions}
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d != ".git")
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if path.suffix.lower() not in wanted or path.is_symlink():
                continue
            if path.stat().st_size > max_bytes:
                logger.debug(f"Skipping oversized file: {path}")
                continue
            found.append(path)
    return found


async def ingest_repo(
    repo_url: str,
    retrieval: RetrievalService,
    workspace: str = "default",
    config: IngestConfig | None = None,
    clone: Callable[[str, Path], Awaitable[None]] = clone_repo,
) -> int:
    """Clone, walk, and index a repository. Returns the number of files indexed."""
    config = config or IngestConfig()
    target = workspace_dir(config.workdir, workspace)
    await clone(repo_url, target)

    files = await asyncio.to_thread(
        iter_text_files, target, config.extensions, config.max_file_bytes
    )

    indexed = 0
    for path in files:
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Skipping non-UTF-8 file: {path}")
            continue
        key = f"{workspace}:{path.relative_to(target).as_posix()}"
        try:
            await retrieval.index(key, text)
        except RetrievalUnavailable as e:
            raise IngestionError(f"Indexing stopped after {indexed} files: {e.message}") from e
        indexed += 1

    logger.info(f"Ingested {repo_url}: {indexed} files indexed (workspace={workspace})")
    return indexed
