"""Deterministic file discovery for build stages."""

from __future__ import annotations

import os
from collections import deque
from pathlib import Path
from typing import Callable, List, Optional

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

WalkErrorHandler = Callable[[Path, OSError], None]


def iter_files(
    directory: Path,
    extension: str | None = None,
    *,
    on_error: Optional[WalkErrorHandler] = None,
) -> List[Path]:
    """Return every file below ``directory`` sorted by relative posix path.

    Directories are visited with an explicit work queue rather than
    recursion, so deeply nested trees cannot exhaust the interpreter stack.
    Symlinked directories are not followed. When ``extension`` is given only
    files whose name ends with it are returned.

    A directory that cannot be listed is passed to ``on_error(path, exc)``
    and skipped; without a handler the ``OSError`` propagates.
    """
    root = Path(directory)
    if not root.is_dir():
        return []

    found: List[tuple[str, Path]] = []
    pending: deque[Path] = deque([root])
    while pending:
        current = pending.popleft()
        try:
            with os.scandir(current) as entries:
                listed = list(entries)
        except OSError as exc:
            if on_error is None:
                raise
            on_error(current, exc)
            continue
        for entry in listed:
            if entry.is_dir(follow_symlinks=False):
                pending.append(Path(entry.path))
                continue
            if not entry.is_file():
                continue
            if entry.name in _EXCLUDED_FILES:
                continue
            if extension and not entry.name.endswith(extension):
                continue
            path = Path(entry.path)
            found.append((path.relative_to(root).as_posix(), path))

    found.sort(key=lambda item: item[0])
    return [path for _, path in found]


def relative_to(path: Path, root: Path) -> str:
    """Return ``path`` relative to ``root`` in posix form, or unchanged when outside it."""
    try:
        return Path(path).relative_to(root).as_posix()
    except ValueError:
        return Path(path).as_posix()


__all__ = ["WalkErrorHandler", "iter_files", "relative_to"]
