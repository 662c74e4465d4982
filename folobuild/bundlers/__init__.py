"""Bundler adapters and selection."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import Bundler
from .esbuild import EsbuildBundler
from .fallback import FallbackBundler, simple_minify

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..config import BuildConfig


def select_bundler(config: "BuildConfig") -> Bundler | None:
    """Return the external bundler when its executable is on PATH, else None."""
    candidate = EsbuildBundler(
        config.esbuild.command,
        timeout=config.esbuild.timeout,
        kill_grace=config.esbuild.kill_grace,
    )
    return candidate if candidate.is_available() else None


__all__ = ["Bundler", "EsbuildBundler", "FallbackBundler", "select_bundler", "simple_minify"]
