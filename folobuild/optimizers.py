"""Post-bundle optimization hooks and their discovery."""

from __future__ import annotations

import gzip
from abc import ABC, abstractmethod
from functools import partial
from importlib import metadata
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Sequence, Tuple

from .errors import HookDiscoveryError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .context import BuildContext

_ENTRY_POINT_GROUP = "folobuild.optimizers"

COMPRESSIBLE_EXTENSIONS = frozenset(
    {".js", ".mjs", ".css", ".html", ".svg", ".json", ".map", ".txt", ".xml", ".fml"}
)
_DERIVED_SUFFIXES = (".gz", ".map")


class OptimizationHook(ABC):
    """A step run over the finished output tree, after the manifest is written."""

    name: str = "hook"

    @abstractmethod
    def run(self, ctx: "BuildContext") -> None:
        """Inspect or extend the output tree, recording results in ``ctx``."""


class BudgetHook(OptimizationHook):
    """Flags output categories whose bundled size exceeds the configured budgets."""

    name = "budgets"

    def run(self, ctx: "BuildContext") -> None:
        structure = ctx.config.structure
        for budget in ctx.config.budgets:
            directory = ctx.out(getattr(structure, budget.name, budget.name))
            if not directory.is_dir():
                continue
            size = sum(
                path.stat().st_size
                for path in ctx.files(directory)
                if not path.name.endswith(_DERIVED_SUFFIXES)
            )
            if budget.error is not None and size > budget.error:
                ctx.error(
                    f"Budget exceeded for {budget.name}: {size} bytes > {budget.error} bytes",
                    path=budget.name,
                )
            elif budget.warning is not None and size > budget.warning:
                ctx.warn(
                    f"Budget warning for {budget.name}: {size} bytes > {budget.warning} bytes",
                    path=budget.name,
                )


class PrecompressHook(OptimizationHook):
    """Writes ``.gz`` siblings for compressible output files above the size threshold."""

    name = "precompress"

    def run(self, ctx: "BuildContext") -> None:
        settings = ctx.config.compression
        if not settings.enabled:
            return
        for path in ctx.files(ctx.config.output_dir):
            if path.suffix.lower() not in COMPRESSIBLE_EXTENSIONS:
                continue
            try:
                sizes = self._compress(path, settings.level, settings.threshold)
            except OSError as exc:
                rel = ctx.rel(path)
                ctx.error(f"Compression failed for {rel}: {exc}", path=rel)
                continue
            if sizes is not None:
                original, compressed = sizes
                ctx.stats.record_file(compressed, compressed=True, original=original)

    @staticmethod
    def _compress(path: Path, level: int, threshold: int) -> Tuple[int, int] | None:
        """Return ``(original bytes, gzip bytes)``, or None below the threshold."""
        data = path.read_bytes()
        if len(data) < threshold:
            return None
        # mtime=0 keeps repeated builds byte-identical.
        payload = gzip.compress(data, compresslevel=level, mtime=0)
        target = path.with_name(f"{path.name}.gz")
        target.write_bytes(payload)
        return len(data), len(payload)


_BUILTIN_FACTORIES: Dict[str, Callable[[], OptimizationHook]] = {
    "budgets": BudgetHook,
    "precompress": PrecompressHook,
}


def available_hooks() -> Dict[str, Callable[[], OptimizationHook]]:
    """Hook factories by name: built-ins first, then ``folobuild.optimizers`` entry points.

    An entry point cannot replace a built-in of the same name.
    """
    factories = dict(_BUILTIN_FACTORIES)
    for entry in _iter_entry_points():
        name = entry.name.lower()
        if name not in factories:
            factories[name] = partial(_load_hook, entry)
    return factories


def discover_hooks(names: Sequence[str] | None = None) -> List[OptimizationHook]:
    """Instantiate the hooks to run, in order.

    ``None`` selects every available hook; otherwise exactly ``names`` run, in
    the order given. Unknown or broken hooks raise ``HookDiscoveryError``.
    """
    factories = available_hooks()
    selected = list(factories) if names is None else [name.lower() for name in names]
    unknown = [name for name in selected if name not in factories]
    if unknown:
        raise HookDiscoveryError(f"Unknown optimization hooks requested: {', '.join(unknown)}")
    return [factories[name]() for name in dict.fromkeys(selected)]


def _load_hook(entry: metadata.EntryPoint) -> OptimizationHook:
    try:
        loaded = entry.load()
    except Exception as exc:
        raise HookDiscoveryError(f"Failed to load optimization hook '{entry.name}': {exc}") from exc
    if isinstance(loaded, OptimizationHook):
        return loaded
    if isinstance(loaded, type) and issubclass(loaded, OptimizationHook):
        return loaded()
    if callable(loaded):
        instance = loaded()
        if isinstance(instance, OptimizationHook):
            return instance
    raise HookDiscoveryError(
        f"Optimization hook '{entry.name}' is not an OptimizationHook subclass or factory"
    )


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "BudgetHook",
    "COMPRESSIBLE_EXTENSIONS",
    "OptimizationHook",
    "PrecompressHook",
    "available_hooks",
    "discover_hooks",
]
