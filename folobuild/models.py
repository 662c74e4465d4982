"""Core data models shared across build stages."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Tuple


@dataclass(frozen=True)
class BundleOptions:
    """Per-invocation bundling settings; never persisted."""

    format: str = "esm"
    platform: str = "node"
    minify: bool = True
    sourcemap: bool = False
    tree_shaking: bool = True
    external: Tuple[str, ...] = ()


class AssetManifest:
    """Original static path -> content-hashed path, relative to the static root."""

    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}
        self._lock = threading.Lock()

    def add(self, original: str, hashed: str) -> None:
        with self._lock:
            if original in self._entries:
                raise ValueError(f"Asset already recorded in manifest: {original}")
            self._entries[original] = hashed

    def get(self, original: str) -> str | None:
        return self._entries.get(original)

    def as_dict(self) -> Dict[str, str]:
        with self._lock:
            return {key: self._entries[key] for key in sorted(self._entries)}

    def __contains__(self, original: object) -> bool:
        return original in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.as_dict())

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class BuildMetadata:
    """Snapshot of a finished build, written once to ``build-metadata.json``."""

    build_time: str
    version: str
    runtime_version: str
    environment: str
    config: Mapping[str, Any] = field(default_factory=dict)
    stats: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buildTime": self.build_time,
            "version": self.version,
            "runtimeVersion": self.runtime_version,
            "environment": self.environment,
            "config": dict(self.config),
            "stats": dict(self.stats),
        }


__all__ = ["AssetManifest", "BuildMetadata", "BundleOptions"]
