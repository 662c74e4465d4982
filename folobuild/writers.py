"""Serialization of the manifest, metadata and other end-of-build documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping

from .config import BuildConfig
from .models import AssetManifest, BuildMetadata
from .stats import format_size
from .walker import iter_files

MANIFEST_FILENAME = "asset-manifest.json"
METADATA_FILENAME = "build-metadata.json"
SIZE_REPORT_FILENAME = "size-report.json"


def write_json(path: Path, payload: Mapping[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    return path


def write_manifest(
    output_dir: Path, manifest: AssetManifest, *, version: str, build_time: str
) -> Path:
    payload = {
        "version": version,
        "buildTime": build_time,
        "assets": manifest.as_dict(),
    }
    return write_json(output_dir / MANIFEST_FILENAME, payload)


def write_metadata(output_dir: Path, metadata: BuildMetadata) -> Path:
    return write_json(output_dir / METADATA_FILENAME, metadata.to_dict())


def write_package_descriptor(output_dir: Path, descriptor: Mapping[str, Any]) -> Path:
    return write_json(output_dir / "package.json", descriptor)


def write_readme(
    output_dir: Path,
    *,
    name: str,
    version: str,
    build_time: str,
    runtime_version: str,
) -> Path:
    content = f"""# {name} - Production Build

This is a production build of {name}.

## Deployment

1. Install dependencies:
   ```bash
   npm install --production
   ```

2. Set environment variables:
   ```bash
   cp .env.example .env
   # Edit .env with your production values
   ```

3. Start the server:
   ```bash
   NODE_ENV=production node server.js
   ```

## Build Info

- Build Time: {build_time}
- Version: {version}
- Build Runtime: Python {runtime_version}

Generated by folobuild
"""
    path = output_dir / "README.md"
    path.write_text(content, encoding="utf-8")
    return path


def directory_size(path: Path) -> int:
    if path.is_file():
        return path.stat().st_size
    return sum(item.stat().st_size for item in iter_files(path))


def write_size_report(config: BuildConfig, *, build_time: str) -> Path:
    """Summarise output size per category."""
    output = config.output_dir
    structure = config.structure
    categories = {
        "pages": output / structure.pages,
        "components": output / structure.components,
        "assets": output / structure.assets,
        "static": output / structure.static,
        "server": output / "server.js",
    }
    sizes: Dict[str, int] = {
        name: directory_size(path) for name, path in categories.items() if path.exists()
    }
    total = sum(sizes.values())
    breakdown = [
        {
            "category": name,
            "bytes": size,
            "size": format_size(size),
            "percentage": f"{(size / total * 100) if total else 0.0:.1f}%",
        }
        for name, size in sizes.items()
    ]
    payload = {
        "timestamp": build_time,
        "totalBytes": total,
        "totalSize": format_size(total),
        "breakdown": breakdown,
    }
    return write_json(output / SIZE_REPORT_FILENAME, payload)


__all__ = [
    "MANIFEST_FILENAME",
    "METADATA_FILENAME",
    "SIZE_REPORT_FILENAME",
    "directory_size",
    "write_json",
    "write_manifest",
    "write_metadata",
    "write_package_descriptor",
    "write_readme",
    "write_size_report",
]
