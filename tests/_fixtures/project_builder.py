"""Helper utilities for constructing throwaway application trees in tests."""

from __future__ import annotations

import json
import textwrap
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping

from folobuild.config import BuildConfig, default_config

SAMPLE_FILES: dict[str, str] = {
    "server.js": """
        // Production server entry
        import express from 'express';
        const app = express();
        app.listen(3000);
    """,
    "src/pages/home.js": """
        /* Home page */
        export default function home() {
            // render
            return '<h1>Home</h1>';
        }
    """,
    "src/components/Hero.js": """
        export function Hero(props) {
            return `<section>${props.title}</section>`;
        }
    """,
    "src/views/renderPage.js": """
        export function renderPage(body) { return body; }
    """,
    "src/api/products.js": """
        export const products = [];
    """,
    "src/fml/home.fml": """
        <page title="Home">{{ content }}</page>
    """,
    "src/fml/index.js": """
        export function render(template) { return template; }
    """,
    "public/style.css": """
        body { margin: 0; }
    """,
    "public/script.js": """
        console.log('hello');
    """,
    "public/robots.txt": """
        User-agent: *
    """,
}

SAMPLE_PACKAGE: dict[str, Any] = {
    "name": "sample-app",
    "version": "2.3.4",
    "description": "Sample application",
    "type": "module",
    "main": "src/index.js",
    "scripts": {"build": "folobuild"},
    "engines": {"node": ">=16"},
    "dependencies": {"express": "^4.18.0", "compression": "^1.7.4"},
    "devDependencies": {"esbuild": "^0.19.0"},
    "license": "MIT",
}


class ProjectBuilder:
    """Utility for writing files into a throwaway project and configuring a build for it."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "app"
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the project."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def write_bytes(self, relative: str, data: bytes) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def write_package(self, payload: Mapping[str, Any] | None = None) -> Path:
        path = self.root / "package.json"
        path.write_text(json.dumps(payload if payload is not None else SAMPLE_PACKAGE), encoding="utf-8")
        return path

    def seed(self, *, skip: tuple[str, ...] = ()) -> None:
        """Write the sample application, leaving out paths starting with any ``skip`` prefix."""
        self.write(
            {
                path: content
                for path, content in SAMPLE_FILES.items()
                if not any(path.startswith(prefix) for prefix in skip)
            }
        )
        self.write_package()

    def config(self, **changes: Any) -> BuildConfig:
        config = default_config(self.root)
        return replace(config, **changes) if changes else config

    @property
    def dist(self) -> Path:
        return self.root / "dist"


__all__ = ["ProjectBuilder", "SAMPLE_FILES", "SAMPLE_PACKAGE"]
