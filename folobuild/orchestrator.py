"""Pipeline orchestration for production builds."""

from __future__ import annotations

import os
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from .bundlers import Bundler, FallbackBundler, select_bundler
from .config import BuildConfig
from .context import BuildContext
from .errors import FatalSetupError, HookDiscoveryError
from .events import BuildEvent, EventKind, EventSink, Reporter
from .logging import get_logger
from .models import AssetManifest
from .optimizers import OptimizationHook, discover_hooks
from .stages import (
    bundle_components,
    bundle_pages,
    check_output_location,
    clean_output,
    compile_templates,
    finalize_output,
    preflight,
    process_server,
    process_static,
    run_optimizations,
    scaffold_output,
    write_asset_manifest,
    write_build_metadata,
)
from .stats import BuildStats
from .templates import IdentityCompiler, TemplateCompiler

_AUTO_BUNDLER = object()


class BuildState(str, Enum):
    INIT = "INIT"
    PREFLIGHT = "PREFLIGHT"
    CLEANED = "CLEANED"
    SCAFFOLDED = "SCAFFOLDED"
    TEMPLATES_DONE = "TEMPLATES_DONE"
    PAGES_DONE = "PAGES_DONE"
    COMPONENTS_DONE = "COMPONENTS_DONE"
    SERVER_DONE = "SERVER_DONE"
    STATIC_DONE = "STATIC_DONE"
    MANIFEST_WRITTEN = "MANIFEST_WRITTEN"
    METADATA_WRITTEN = "METADATA_WRITTEN"
    DONE = "DONE"
    FAILED = "FAILED"


_FAILABLE_STATES = frozenset({BuildState.PREFLIGHT, BuildState.CLEANED, BuildState.SCAFFOLDED})

Stage = Callable[[BuildContext], None]

# (event label, stage, state entered once the stage completes; None keeps the state)
_APPLICATION_STAGES: Tuple[Tuple[str, Stage, Optional[BuildState]], ...] = (
    ("Compiling templates", compile_templates, BuildState.TEMPLATES_DONE),
    ("Bundling pages", bundle_pages, BuildState.PAGES_DONE),
    ("Bundling components", bundle_components, BuildState.COMPONENTS_DONE),
    ("Processing server files", process_server, BuildState.SERVER_DONE),
    ("Processing static assets", process_static, BuildState.STATIC_DONE),
    ("Writing asset manifest", write_asset_manifest, BuildState.MANIFEST_WRITTEN),
    ("Running optimization hooks", run_optimizations, None),
    ("Writing build metadata", write_build_metadata, BuildState.METADATA_WRITTEN),
    ("Finalizing output", finalize_output, BuildState.DONE),
)


class Orchestrator:
    """Runs the fixed build stage sequence over one configuration.

    Collaborators are injectable: pass ``bundler=None`` to force the
    fallback minifier, or a ``Bundler`` instance to skip the availability
    probe.
    """

    def __init__(
        self,
        *,
        bundler: Bundler | None | object = _AUTO_BUNDLER,
        fallback: Bundler | None = None,
        compiler: TemplateCompiler | None = None,
        hooks: Optional[Iterable[OptimizationHook]] = None,
        reporters: Optional[Sequence[Reporter]] = None,
        runtime_version: Tuple[int, ...] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._bundler_override = bundler
        self.fallback = fallback or FallbackBundler()
        self.compiler = compiler or IdentityCompiler()
        self._hook_overrides = list(hooks) if hooks is not None else None
        self.events = EventSink(reporters)
        self.runtime_version = tuple(runtime_version or sys.version_info[:3])
        self._env = env
        self.logger = get_logger("orchestrator")

        self.state = BuildState.INIT
        self.states: List[BuildState] = [BuildState.INIT]
        self.stats = BuildStats()
        self.manifest = AssetManifest()
        self.failure: FatalSetupError | None = None

    def build(self, config: BuildConfig) -> bool:
        """Run every stage; returns False on a fatal setup failure (or errors in strict mode)."""
        self._reset()
        environ = os.environ if self._env is None else self._env
        ctx = BuildContext(
            config=config,
            stats=self.stats,
            manifest=self.manifest,
            events=self.events,
            bundler=None,
            fallback=self.fallback,
            compiler=self.compiler,
            hooks=(),
            build_time=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            runtime_version=self.runtime_version,
            environment=environ.get("NODE_ENV") or "production",
        )
        self.logger.info("Starting production build of %s", config.project_root)

        staging: Path | None = None
        try:
            try:
                self._transition(BuildState.PREFLIGHT)
                self._run_stage(ctx, "Running pre-build checks", preflight)
                ctx.hooks = self._resolve_hooks(config)
                if config.atomic:
                    check_output_location(config)
                    staging = self._create_staging(config.output_dir)
                    ctx.config = replace(config, output_dir=staging)
                self._run_stage(ctx, "Cleaning output directory", clean_output)
                self._transition(BuildState.CLEANED)
                self._run_stage(ctx, "Creating output structure", scaffold_output)
                self._transition(BuildState.SCAFFOLDED)
            except FatalSetupError as exc:
                self._fail(exc)
                return False

            ctx.bundler = self._resolve_bundler(config)
            if ctx.bundler is None:
                self.logger.info("External bundler unavailable; using fallback minifier")

            for label, stage, next_state in _APPLICATION_STAGES:
                self._run_stage(ctx, label, stage, contain=True)
                if next_state is not None:
                    self._transition(next_state)

            delivered = True
            if staging is not None:
                try:
                    self._swap_into_place(staging, config.output_dir)
                except OSError as exc:
                    delivered = False
                    self.stats.add_error(
                        f"Unable to move staged build into {config.output_dir}: {exc}; "
                        f"the finished build is kept at {staging}"
                    )
                    staging = None
        finally:
            # Only an unswapped staging tree is still on disk here.
            if staging is not None and staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

        success = delivered and not (config.strict and self.stats.errors)
        message = "Build completed successfully" if success else "Build completed with errors"
        self.events.emit(
            BuildEvent(kind=EventKind.BUILD_FINISHED, message=message, stats=self.stats)
        )
        self.logger.info("Output directory: %s", config.output_dir)
        return success

    # ------------------------------------------------------------------
    # Internal helpers

    def _reset(self) -> None:
        self.state = BuildState.INIT
        self.states = [BuildState.INIT]
        self.stats = BuildStats()
        self.manifest = AssetManifest()
        self.failure = None

    def _transition(self, state: BuildState) -> None:
        if state is BuildState.FAILED and self.state not in _FAILABLE_STATES:
            raise RuntimeError(f"Cannot fail from state {self.state.value}")
        self.state = state
        self.states.append(state)

    def _fail(self, exc: FatalSetupError) -> None:
        self.failure = exc
        self._transition(BuildState.FAILED)
        self.events.emit(BuildEvent(kind=EventKind.BUILD_FAILED, message=str(exc)))

    def _run_stage(
        self, ctx: BuildContext, label: str, stage: Stage, *, contain: bool = False
    ) -> None:
        """Run one stage between its start and finish events.

        With ``contain`` an unexpected exception is recorded as a build error and
        the pipeline moves on; setup stages leave it to propagate.
        """
        ctx.stage = stage.__name__
        self.events.emit(BuildEvent(kind=EventKind.STAGE_STARTED, stage=ctx.stage, message=label))
        if contain:
            try:
                stage(ctx)
            except Exception as exc:
                self.logger.debug("Stage %s raised", ctx.stage, exc_info=True)
                ctx.error(f"{label} failed: {exc}")
        else:
            stage(ctx)
        self.events.emit(BuildEvent(kind=EventKind.STAGE_FINISHED, stage=ctx.stage, message=label))

    def _resolve_bundler(self, config: BuildConfig) -> Bundler | None:
        if self._bundler_override is _AUTO_BUNDLER:
            return select_bundler(config)
        return self._bundler_override  # type: ignore[return-value]

    def _resolve_hooks(self, config: BuildConfig) -> List[OptimizationHook]:
        if self._hook_overrides is not None:
            return list(self._hook_overrides)
        try:
            return discover_hooks(config.optimizations)
        except HookDiscoveryError as exc:
            raise FatalSetupError(str(exc)) from exc

    @staticmethod
    def _create_staging(output_dir: Path) -> Path:
        parent = output_dir.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix=f".{output_dir.name}.staging-", dir=parent))
        except OSError as exc:
            raise FatalSetupError(f"Unable to create staging directory next to {output_dir}: {exc}") from exc

    def _swap_into_place(self, staging: Path, output_dir: Path) -> None:
        """Replace ``output_dir`` with the finished staging tree."""
        if output_dir.exists():
            shutil.rmtree(output_dir)
        staging.rename(output_dir)
        self.logger.debug("Moved staged build %s into %s", staging, output_dir)


__all__ = ["BuildState", "Orchestrator"]
