"""Reading and pruning the application's package descriptor (package.json)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List

DEFAULT_VERSION = "1.0.0"

_PRUNED_KEYS = ("name", "version", "description", "type", "main", "engines", "dependencies", "license")


def load_package_descriptor(path: Path) -> Dict[str, Any]:
    """Return the parsed descriptor; raises ``OSError`` or ``ValueError`` when unusable."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"{path.name} must contain a JSON object")
    return payload


def missing_dependencies(descriptor: Dict[str, Any], required: Iterable[str]) -> List[str]:
    declared = descriptor.get("dependencies")
    if not isinstance(declared, dict):
        declared = {}
    return [name for name in required if name not in declared]


def package_version(descriptor: Dict[str, Any]) -> str:
    version = descriptor.get("version")
    return version if isinstance(version, str) and version else DEFAULT_VERSION


def package_name(descriptor: Dict[str, Any], fallback: str) -> str:
    name = descriptor.get("name")
    return name if isinstance(name, str) and name else fallback


def prune_descriptor(descriptor: Dict[str, Any], *, fallback_name: str) -> Dict[str, Any]:
    """Keep only what a production install needs: no dev dependencies, no scripts."""
    pruned: Dict[str, Any] = {
        "name": package_name(descriptor, fallback_name),
        "version": package_version(descriptor),
        "description": descriptor.get("description"),
        "type": descriptor.get("type") or "module",
        "main": "server.js",
        "engines": descriptor.get("engines"),
        "dependencies": descriptor.get("dependencies"),
        "license": descriptor.get("license"),
    }
    return {key: pruned[key] for key in _PRUNED_KEYS if pruned[key] is not None}


__all__ = [
    "DEFAULT_VERSION",
    "load_package_descriptor",
    "missing_dependencies",
    "package_name",
    "package_version",
    "prune_descriptor",
]
