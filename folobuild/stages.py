"""Build stages.

Each stage is a plain function over a :class:`BuildContext`. Setup stages
(``preflight``, ``clean_output``, ``scaffold_output``) raise
``FatalSetupError``; every later stage records per-file failures into the
context and keeps going.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable, Dict

from .config import BuildConfig
from .context import BuildContext
from .errors import BundlerError, FatalSetupError
from .hasher import hash_assets
from .logging import get_logger
from .models import BuildMetadata, BundleOptions
from .package import (
    load_package_descriptor,
    missing_dependencies,
    package_name,
    package_version,
    prune_descriptor,
)
from .writers import (
    METADATA_FILENAME,
    write_manifest,
    write_metadata,
    write_package_descriptor,
    write_readme,
    write_size_report,
)

logger = get_logger("stages")

REQUIRED_OUTPUTS = ("server.js", "package.json", METADATA_FILENAME)


# ----------------------------------------------------------------------
# Setup (fatal on failure)


def preflight(ctx: BuildContext) -> None:
    config = ctx.config
    if not config.source_dir.is_dir():
        raise FatalSetupError(f"Source directory not found: {ctx.rel(config.source_dir)}")

    if tuple(ctx.runtime_version) < tuple(config.min_runtime_version):
        required = ".".join(str(part) for part in config.min_runtime_version)
        raise FatalSetupError(
            f"Runtime {required} or higher is required (found {ctx.runtime_version_string})"
        )

    descriptor_path = config.package_descriptor
    try:
        ctx.descriptor = load_package_descriptor(descriptor_path)
    except FileNotFoundError:
        ctx.descriptor = {}
        ctx.warn(f"Package descriptor not found: {ctx.rel(descriptor_path)}", path=ctx.rel(descriptor_path))
    except (OSError, ValueError) as exc:
        ctx.descriptor = {}
        ctx.warn(
            f"Package descriptor unreadable ({ctx.rel(descriptor_path)}): {exc}",
            path=ctx.rel(descriptor_path),
        )
    else:
        for name in missing_dependencies(ctx.descriptor, config.required_dependencies):
            ctx.warn(f"Missing dependency: {name}", path=ctx.rel(descriptor_path))


def check_output_location(config: BuildConfig) -> None:
    """Refuse output directories that would take the project or its sources with them."""
    output = config.output_dir.resolve()
    protected = (config.project_root.resolve(), config.source_dir.resolve())
    for path in protected:
        if output == path or output in path.parents:
            raise FatalSetupError(
                f"Refusing to clean {output}: it contains the project or source directory"
            )


def clean_output(ctx: BuildContext) -> None:
    check_output_location(ctx.config)
    output = ctx.config.output_dir
    try:
        if output.is_symlink() or output.is_file():
            output.unlink()
        elif output.exists():
            shutil.rmtree(output)
    except OSError as exc:
        raise FatalSetupError(f"Unable to clean output directory {output}: {exc}") from exc


def scaffold_output(ctx: BuildContext) -> None:
    structure = ctx.config.structure
    directories = [
        ctx.config.output_dir,
        ctx.out(structure.pages),
        ctx.out(structure.components),
        ctx.out(structure.assets),
        ctx.out(structure.static),
        ctx.out("views"),
        ctx.out("api"),
        ctx.out("fml"),
    ]
    try:
        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FatalSetupError(f"Unable to create output structure: {exc}") from exc


# ----------------------------------------------------------------------
# Bundling helpers


def bundle_file(ctx: BuildContext, source: Path, target: Path, options: BundleOptions) -> int:
    """Bundle one file, degrading to the fallback minifier when the tool cannot run.

    Tool failures never propagate. Only I/O errors from the fallback itself do,
    and the calling stage records those as per-file errors.
    """
    rel_source = ctx.rel(source)
    target.parent.mkdir(parents=True, exist_ok=True)
    primary = ctx.bundler
    if primary is None:
        reason = "external bundler unavailable"
    else:
        try:
            size = primary.bundle(source, target, options)
        except BundlerError as exc:
            reason = f"{primary.name} failed ({exc})"
            logger.debug("Bundler %s failed for %s: %s", primary.name, rel_source, exc)
        else:
            ctx.stats.record_file(size)
            return size

    ctx.warn(f"Using fallback bundler for {rel_source}: {reason}", path=rel_source)
    size = ctx.fallback.bundle(source, target, options)
    ctx.stats.record_file(size)
    return size


def _bundle_tree(
    ctx: BuildContext,
    directory: Path,
    destination: Path,
    options: BundleOptions,
    *,
    label: str,
) -> int:
    if not directory.is_dir():
        ctx.warn(
            f"{label} directory not found, skipping: {ctx.rel(directory)}",
            path=ctx.rel(directory),
        )
        return 0

    bundled = 0
    for source in ctx.files(directory, ".js"):
        relative = source.relative_to(directory)
        try:
            bundle_file(ctx, source, destination / relative, options)
        except Exception as exc:
            ctx.error(f"{label} bundling failed for {ctx.rel(source)}: {exc}", path=ctx.rel(source))
            continue
        ctx.stats.record_processed()
        bundled += 1
    logger.info("Bundled %d %s file(s)", bundled, label.lower())
    return bundled


# ----------------------------------------------------------------------
# Application stages (best-effort)


def compile_templates(ctx: BuildContext) -> None:
    config = ctx.config
    templates_dir = config.templates_dir
    if not templates_dir.is_dir():
        ctx.warn(
            f"Templates directory not found, skipping: {ctx.rel(templates_dir)}",
            path=ctx.rel(templates_dir),
        )
        return

    destination = ctx.out("fml")
    sources = ctx.files(templates_dir)
    compiled = 0
    for source in (path for path in sources if path.name.endswith(config.template_extension)):
        target = destination / source.relative_to(templates_dir)
        try:
            result = ctx.compiler.compile(source.read_text(encoding="utf-8"), source)
            target.parent.mkdir(parents=True, exist_ok=True)
            data = result.encode("utf-8")
            target.write_bytes(data)
        except Exception as exc:
            ctx.error(f"Template compilation failed for {ctx.rel(source)}: {exc}", path=ctx.rel(source))
            continue
        ctx.stats.record_processed()
        ctx.stats.record_file(len(data))
        compiled += 1

    # The template engine's own modules ship next to the compiled templates.
    for source in (path for path in sources if path.suffix == ".js"):
        target = destination / source.relative_to(templates_dir)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as exc:
            ctx.error(f"Template engine copy failed for {ctx.rel(source)}: {exc}", path=ctx.rel(source))
            continue
        ctx.stats.record_file(target.stat().st_size)
    logger.info("Compiled %d template(s)", compiled)


def bundle_pages(ctx: BuildContext) -> None:
    config = ctx.config
    options = BundleOptions(
        minify=config.minify,
        sourcemap=config.source_maps,
        tree_shaking=config.treeshake,
    )
    _bundle_tree(ctx, config.pages_dir, ctx.out(config.structure.pages), options, label="Pages")


def bundle_components(ctx: BuildContext) -> None:
    config = ctx.config
    options = BundleOptions(
        minify=config.minify,
        sourcemap=config.source_maps,
        tree_shaking=config.treeshake,
    )
    _bundle_tree(
        ctx, config.components_dir, ctx.out(config.structure.components), options, label="Components"
    )


def process_server(ctx: BuildContext) -> None:
    config = ctx.config
    entry = config.server_entry
    if entry.is_file():
        options = BundleOptions(minify=config.minify, external=tuple(config.external))
        try:
            bundle_file(ctx, entry, ctx.out("server.js"), options)
        except Exception as exc:
            ctx.error(f"Server bundling failed for {ctx.rel(entry)}: {exc}", path=ctx.rel(entry))
        else:
            ctx.stats.record_processed()
    else:
        ctx.warn(f"Server entry not found, skipping: {ctx.rel(entry)}", path=ctx.rel(entry))

    plain = BundleOptions(minify=config.minify)
    _bundle_tree(ctx, config.views_dir, ctx.out("views"), plain, label="Views")
    _bundle_tree(ctx, config.api_dir, ctx.out("api"), plain, label="API")


def process_static(ctx: BuildContext) -> None:
    config = ctx.config
    public_dir = config.public_dir
    if not public_dir.is_dir():
        ctx.warn(
            f"Public directory not found, skipping: {ctx.rel(public_dir)}",
            path=ctx.rel(public_dir),
        )
        return

    static_root = ctx.out(config.structure.static)
    for source in ctx.files(public_dir):
        target = static_root / source.relative_to(public_dir)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
            size = target.stat().st_size
        except OSError as exc:
            ctx.error(f"Static copy failed for {ctx.rel(source)}: {exc}", path=ctx.rel(source))
            continue
        ctx.stats.record_processed()
        ctx.stats.record_file(size)

    if not config.hash_assets:
        return

    static_name = config.structure.static

    def _on_warning(original: str, message: str) -> None:
        ctx.warn(message, path=f"{static_name}/{original}")

    outcomes = hash_assets(
        static_root,
        ctx.manifest,
        length=config.hash_length,
        workers=config.hash_workers,
        on_warning=_on_warning,
        on_error=ctx.unreadable,
    )
    logger.info(
        "Hashed %d of %d eligible asset(s)",
        sum(1 for outcome in outcomes if outcome.hashed is not None),
        len(outcomes),
    )


def write_asset_manifest(ctx: BuildContext) -> None:
    try:
        write_manifest(
            ctx.config.output_dir,
            ctx.manifest,
            version=package_version(ctx.descriptor),
            build_time=ctx.build_time,
        )
    except OSError as exc:
        ctx.error(f"Asset manifest write failed: {exc}")


def run_optimizations(ctx: BuildContext) -> None:
    for hook in ctx.hooks:
        logger.debug("Running optimization hook %s", hook.name)
        try:
            hook.run(ctx)
        except Exception as exc:
            ctx.error(f"Optimization hook '{hook.name}' failed: {exc}")


def write_build_metadata(ctx: BuildContext) -> None:
    metadata = BuildMetadata(
        build_time=ctx.build_time,
        version=package_version(ctx.descriptor),
        runtime_version=ctx.runtime_version_string,
        environment=ctx.environment,
        config=ctx.config.effective_flags(),
        stats=ctx.stats.snapshot(),
    )
    try:
        write_metadata(ctx.config.output_dir, metadata)
    except OSError as exc:
        ctx.error(f"Build metadata write failed: {exc}")


def finalize_output(ctx: BuildContext) -> None:
    config = ctx.config
    fallback_name = config.project_root.name or "app"
    name = package_name(ctx.descriptor, fallback_name)
    version = package_version(ctx.descriptor)

    steps: Dict[str, Callable[[], object]] = {
        "package.json": lambda: write_package_descriptor(
            config.output_dir, prune_descriptor(ctx.descriptor, fallback_name=fallback_name)
        ),
        "README.md": lambda: write_readme(
            config.output_dir,
            name=name,
            version=version,
            build_time=ctx.build_time,
            runtime_version=ctx.runtime_version_string,
        ),
        "size-report.json": lambda: write_size_report(config, build_time=ctx.build_time),
    }
    env_example = config.project_root / ".env.example"
    if env_example.is_file():
        steps[".env.example"] = lambda: shutil.copyfile(env_example, ctx.out(".env.example"))

    for label, step in steps.items():
        try:
            step()
        except OSError as exc:
            ctx.error(f"Writing {label} failed: {exc}", path=label)

    for required in REQUIRED_OUTPUTS:
        if not ctx.out(required).exists():
            ctx.warn(f"Build output is missing {required}", path=required)


__all__ = [
    "REQUIRED_OUTPUTS",
    "bundle_components",
    "bundle_file",
    "bundle_pages",
    "check_output_location",
    "clean_output",
    "compile_templates",
    "finalize_output",
    "preflight",
    "process_server",
    "process_static",
    "run_optimizations",
    "scaffold_output",
    "write_asset_manifest",
    "write_build_metadata",
]
