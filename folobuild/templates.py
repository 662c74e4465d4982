"""Template compiler seam used by the template stage."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class TemplateCompiler(Protocol):
    """Turns template source into its deployable form."""

    def compile(self, source: str, path: Path) -> str:
        ...


class IdentityCompiler:
    """Pass-through compiler; templates are shipped as written."""

    def compile(self, source: str, path: Path) -> str:
        return source


__all__ = ["IdentityCompiler", "TemplateCompiler"]
