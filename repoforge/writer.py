"""Filesystem writer for generated projects.

Applies a batch of entries (files and directories) beneath a project base
directory. Writes are idempotent: applying the same batch twice leaves an
identical tree. Each file is replaced atomically, so an interrupted run
never leaves a half-written file behind. Every path is checked against the
base directory before anything in the batch is touched.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path

from repoforge.errors import PathTraversalError, WriteError


class ProjectWriter:
    """Writes files and directories beneath ``base_path`` only."""

    def __init__(self, base_path: str | Path) -> None:
        self.base_path = Path(base_path)

    def resolve(self, relative: str | Path) -> Path:
        """Return the absolute target for *relative*.

        Args:
            relative: Path relative to the base directory.

        Returns:
            The resolved absolute path.

        Raises:
            PathTraversalError: If the target is absolute or resolves
                (through ``..`` segments or symlinks) outside the base.
        """
        rel = Path(relative)
        base = self.base_path.resolve()
        if rel.is_absolute() or not str(relative).strip():
            raise PathTraversalError(str(relative), str(base))
        target = (base / rel).resolve()
        if target != base and not target.is_relative_to(base):
            raise PathTraversalError(str(relative), str(base))
        return target

    async def write_tree(self, entries: Mapping[str, str | None]) -> list[Path]:
        """Create every entry beneath the base directory.

        The whole batch is validated first; a single bad path rejects the
        batch before any write happens.

        Args:
            entries: Relative path to content. A ``str`` value is written as
                a file, ``None`` creates a directory.

        Returns:
            The written absolute paths, in entry order.

        Raises:
            PathTraversalError: If any entry escapes the base directory.
            WriteError: If the filesystem rejects a write.
        """
        targets = [(self.resolve(rel), content) for rel, content in entries.items()]
        written: list[Path] = []
        for target, content in targets:
            if content is None:
                await asyncio.to_thread(_make_dir, target)
            else:
                await asyncio.to_thread(_write_file, target, content)
            written.append(target)
        return written

    async def write_file(self, relative: str, content: str) -> Path:
        """Write a single file and return its absolute path.

        Same checks and errors as :meth:`write_tree`.
        """
        written = await self.write_tree({relative: content})
        return written[0]

    def relative(self, path: Path) -> str:
        """Return *path* relative to the base directory, POSIX-style."""
        return path.relative_to(self.base_path.resolve()).as_posix()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _make_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WriteError(f"Cannot create directory {path}: {exc}", path=str(path)) from exc


def _write_file(path: Path, content: str) -> None:
    """Synchronous helper: create parent dirs and atomically replace *path*."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(content)
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise WriteError(f"Cannot write {path}: {exc}", path=str(path)) from exc
