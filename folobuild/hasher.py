"""Content-addressed renaming of static assets."""

from __future__ import annotations

import hashlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .models import AssetManifest
from .walker import WalkErrorHandler, iter_files

HASHABLE_EXTENSIONS = frozenset(
    {".css", ".js", ".png", ".jpg", ".jpeg", ".gif", ".svg", ".woff", ".woff2"}
)
DEFAULT_HASH_LENGTH = 8


@dataclass
class HashOutcome:
    """Result of hashing one asset."""

    original: str
    hashed: Optional[str] = None
    error: Optional[str] = None


def content_hash(path: Path, length: int = DEFAULT_HASH_LENGTH) -> str:
    """Return the truncated MD5 hex digest of a file's bytes."""
    digest = hashlib.md5(usedforsecurity=False)
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()[:length]


def hashed_name(name: str, digest: str) -> str:
    """``app.css`` -> ``app.<digest>.css``; extensionless names get a trailing segment."""
    path = Path(name)
    if not path.suffix:
        return f"{name}.{digest}"
    return f"{path.stem}.{digest}{path.suffix}"


def is_hashable(path: Path, extensions: Iterable[str] = HASHABLE_EXTENSIONS) -> bool:
    return path.suffix.lower() in set(extensions)


def hash_assets(
    static_root: Path,
    manifest: AssetManifest,
    *,
    length: int = DEFAULT_HASH_LENGTH,
    workers: int = 1,
    extensions: Iterable[str] = HASHABLE_EXTENSIONS,
    on_warning: Callable[[str, str], None] | None = None,
    on_error: WalkErrorHandler | None = None,
) -> List[HashOutcome]:
    """Rename every eligible file under ``static_root`` to its content-hashed name.

    Manifest entries are added only for renames that succeeded. Failures leave
    the original file in place and are reported through ``on_warning(path,
    message)``; unreadable directories go to ``on_error``. Worker threads
    only hash and rename; outcomes are applied to the manifest by the
    caller's thread in sorted path order.
    """
    allowed = {ext.lower() for ext in extensions}
    candidates = [
        path for path in iter_files(static_root, on_error=on_error) if is_hashable(path, allowed)
    ]

    def _process(path: Path) -> HashOutcome:
        return _hash_and_rename(static_root, path, length)

    if workers > 1 and len(candidates) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(_process, candidates))
    else:
        outcomes = [_process(path) for path in candidates]

    for outcome in outcomes:
        if outcome.hashed is not None:
            manifest.add(outcome.original, outcome.hashed)
        elif on_warning is not None:
            on_warning(outcome.original, f"Failed to hash {outcome.original}: {outcome.error}")
    return outcomes


def _hash_and_rename(static_root: Path, path: Path, length: int) -> HashOutcome:
    original = path.relative_to(static_root).as_posix()
    try:
        digest = content_hash(path, length)
        target = path.with_name(hashed_name(path.name, digest))
        if target.exists():
            raise FileExistsError(f"target already exists: {target.name}")
        path.rename(target)
    except OSError as exc:
        return HashOutcome(original=original, error=str(exc))
    return HashOutcome(original=original, hashed=target.relative_to(static_root).as_posix())


__all__ = [
    "DEFAULT_HASH_LENGTH",
    "HASHABLE_EXTENSIONS",
    "HashOutcome",
    "content_hash",
    "hash_assets",
    "hashed_name",
    "is_hashable",
]
