"""Textual minifier used when the external bundler cannot run."""

from __future__ import annotations

import re
from pathlib import Path

from ..models import BundleOptions
from .base import Bundler

_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
_LINE_COMMENT = re.compile(r"//.*")
_WHITESPACE = re.compile(r"\s+")


def simple_minify(code: str) -> str:
    """Strip comments and collapse whitespace.

    Purely textual: comment delimiters inside string, template or regex
    literals are treated as comments, so ``"http://host"`` loses everything
    after ``//``. Callers rely on this exact behaviour; it is not a parser.
    """
    code = _BLOCK_COMMENT.sub("", code)
    code = _LINE_COMMENT.sub("", code)
    code = _WHITESPACE.sub(" ", code)
    return code.strip()


class FallbackBundler(Bundler):
    """Copies the source, minified textually when requested. Always available."""

    name = "fallback"

    def is_available(self) -> bool:
        return True

    def bundle(self, input_path: Path, output_path: Path, options: BundleOptions) -> int:
        content = input_path.read_text(encoding="utf-8")
        result = simple_minify(content) if options.minify else content
        output_path.parent.mkdir(parents=True, exist_ok=True)
        data = result.encode("utf-8")
        output_path.write_bytes(data)
        return len(data)


__all__ = ["FallbackBundler", "simple_minify"]
