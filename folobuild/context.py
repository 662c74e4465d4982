"""State passed explicitly through every build stage."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Sequence, Tuple

from .bundlers import Bundler, FallbackBundler
from .config import BuildConfig
from .events import BuildEvent, EventKind, EventSink
from .logging import get_logger
from .models import AssetManifest
from .stats import BuildStats
from .templates import IdentityCompiler, TemplateCompiler
from .walker import iter_files, relative_to

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .optimizers import OptimizationHook

_logger = get_logger("context")


@dataclass
class BuildContext:
    """Immutable configuration plus the mutable accumulators of one run.

    ``bundler`` is the external tool selected by the availability probe, or
    ``None`` when it is unavailable; ``fallback`` is always usable.
    """

    config: BuildConfig
    stats: BuildStats = field(default_factory=BuildStats)
    manifest: AssetManifest = field(default_factory=AssetManifest)
    events: EventSink = field(default_factory=EventSink)
    bundler: Bundler | None = None
    fallback: Bundler = field(default_factory=FallbackBundler)
    compiler: TemplateCompiler = field(default_factory=IdentityCompiler)
    hooks: Sequence["OptimizationHook"] = ()
    descriptor: Dict[str, Any] = field(default_factory=dict)
    build_time: str = ""
    runtime_version: Tuple[int, ...] = tuple(sys.version_info[:3])
    environment: str = "production"
    stage: str | None = None

    @property
    def runtime_version_string(self) -> str:
        return ".".join(str(part) for part in self.runtime_version)

    def rel(self, path: Path) -> str:
        """Project-relative posix path used in every user-facing message."""
        return relative_to(path, self.config.project_root)

    def out(self, *parts: str) -> Path:
        return self.config.output_dir.joinpath(*parts)

    def files(self, directory: Path, extension: str | None = None) -> List[Path]:
        """Walk ``directory``, recording each unreadable subdirectory as an error."""
        return iter_files(directory, extension, on_error=self.unreadable)

    def unreadable(self, path: Path, exc: OSError) -> None:
        rel = self.rel(path)
        self.error(f"Unable to read directory {rel}: {exc.strerror or exc}", path=rel)

    def warn(self, message: str, *, path: str | None = None) -> None:
        _logger.debug("warning recorded: %s", message)
        self.stats.add_warning(message)
        self.events.emit(
            BuildEvent(kind=EventKind.FILE_WARNING, stage=self.stage, message=message, path=path)
        )

    def error(self, message: str, *, path: str | None = None) -> None:
        _logger.debug("error recorded: %s", message)
        self.stats.add_error(message)
        self.events.emit(
            BuildEvent(kind=EventKind.FILE_ERROR, stage=self.stage, message=message, path=path)
        )


__all__ = ["BuildContext"]
