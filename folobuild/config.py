"""Configuration loading for folobuild (.folobuild.yml)."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml

CONFIG_FILENAME = ".folobuild.yml"
_LEADING_DIGITS = re.compile(r"\d+")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass(frozen=True)
class OutputStructure:
    """Subdirectory names inside the output root."""

    pages: str = "pages"
    components: str = "components"
    assets: str = "assets"
    static: str = "static"


@dataclass(frozen=True)
class EsbuildConfig:
    """How the external bundling tool is invoked."""

    command: Tuple[str, ...] = ("npx", "--no-install", "esbuild")
    timeout: float = 60.0
    kill_grace: float = 5.0


@dataclass(frozen=True)
class CompressionConfig:
    """Pre-compression of output files."""

    enabled: bool = True
    level: int = 9
    threshold: int = 1024


@dataclass(frozen=True)
class Budget:
    """Size budget for one output category, in bytes."""

    name: str
    warning: Optional[int] = None
    error: Optional[int] = None


DEFAULT_BUDGETS: Tuple[Budget, ...] = (
    Budget(name="pages", warning=200_000, error=250_000),
    Budget(name="components", warning=150_000, error=200_000),
)


@dataclass(frozen=True)
class BuildConfig:
    """Effective settings for one build run. Never mutated once the run starts."""

    project_root: Path
    source_dir: Path
    output_dir: Path
    public_dir: Path
    pages_dir: Path
    components_dir: Path
    templates_dir: Path
    views_dir: Path
    api_dir: Path
    server_entry: Path
    structure: OutputStructure = field(default_factory=OutputStructure)
    minify: bool = True
    source_maps: bool = True
    treeshake: bool = True
    hash_assets: bool = True
    hash_length: int = 8
    hash_workers: int = 1
    compression: CompressionConfig = field(default_factory=CompressionConfig)
    external: Tuple[str, ...] = ("express", "compression")
    esbuild: EsbuildConfig = field(default_factory=EsbuildConfig)
    template_extension: str = ".fml"
    required_dependencies: Tuple[str, ...] = ("express", "compression")
    min_runtime_version: Tuple[int, ...] = (3, 11)
    budgets: Tuple[Budget, ...] = DEFAULT_BUDGETS
    # None runs every discovered optimization hook.
    optimizations: Optional[Tuple[str, ...]] = None
    atomic: bool = False
    strict: bool = False

    @property
    def package_descriptor(self) -> Path:
        return self.project_root / "package.json"

    def effective_flags(self) -> Dict[str, object]:
        """Flags recorded in build metadata."""
        return {
            "minify": self.minify,
            "sourceMaps": self.source_maps,
            "compression": self.compression.enabled,
            "hashAssets": self.hash_assets,
            "treeshake": self.treeshake,
        }


def default_config(project_root: Path) -> BuildConfig:
    """Return the built-in layout: ``src/`` sources, ``public/`` assets, ``dist/`` output."""
    root = Path(project_root).expanduser().resolve()
    source = root / "src"
    return BuildConfig(
        project_root=root,
        source_dir=source,
        output_dir=root / "dist",
        public_dir=root / "public",
        pages_dir=source / "pages",
        components_dir=source / "components",
        templates_dir=source / "fml",
        views_dir=source / "views",
        api_dir=source / "api",
        server_entry=root / "server.js",
    )


def load_config(
    project_root: Path,
    config_file: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> BuildConfig:
    """Load configuration from disk and apply environment overrides."""
    config = default_config(project_root)
    root = config.project_root
    path = Path(config_file).expanduser().resolve() if config_file else root / CONFIG_FILENAME

    if path.exists():
        data = _read_config(path)
        if not isinstance(data, dict):
            raise ConfigError(f"{path.name} must contain a mapping at the root")
        config = _apply_file_settings(config, data)
    elif config_file is not None:
        raise ConfigError(f"Configuration file not found: {path}")

    environ = os.environ if env is None else env
    if str(environ.get("SOURCE_MAPS", "")).strip().lower() == "false":
        config = replace(config, source_maps=False)
    return config


def apply_overrides(
    config: BuildConfig,
    *,
    minify: bool | None = None,
    source_maps: bool | None = None,
    hash_assets: bool | None = None,
    output_dir: Path | None = None,
    strict: bool | None = None,
) -> BuildConfig:
    """Return a copy of ``config`` with command-line overrides applied."""
    changes: Dict[str, Any] = {}
    if minify is not None:
        changes["minify"] = minify
    if source_maps is not None:
        changes["source_maps"] = source_maps
    if hash_assets is not None:
        changes["hash_assets"] = hash_assets
    if output_dir is not None:
        changes["output_dir"] = Path(output_dir).expanduser().resolve()
    if strict is not None:
        changes["strict"] = strict
    return replace(config, **changes) if changes else config


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _apply_file_settings(config: BuildConfig, data: Dict[str, Any]) -> BuildConfig:
    root = config.project_root
    changes: Dict[str, Any] = {}

    source_data = _as_dict(data.get("source"))
    source_root = _as_str(source_data.get("root"))
    if source_root:
        # Subdirectories default to living under the relocated source root.
        source = _resolve(root, source_root)
        changes.update(
            source_dir=source,
            pages_dir=source / "pages",
            components_dir=source / "components",
            templates_dir=source / "fml",
            views_dir=source / "views",
            api_dir=source / "api",
        )
    for key, attr in (
        ("pages", "pages_dir"),
        ("components", "components_dir"),
        ("templates", "templates_dir"),
        ("fml", "templates_dir"),
        ("views", "views_dir"),
        ("api", "api_dir"),
        ("public", "public_dir"),
        ("server", "server_entry"),
    ):
        value = _as_str(source_data.get(key))
        if value:
            changes[attr] = _resolve(root, value)

    output_data = _as_dict(data.get("output"))
    output_root = _as_str(output_data.get("root"))
    if output_root:
        changes["output_dir"] = _resolve(root, output_root)
    structure_data = _as_dict(output_data.get("structure"))
    if structure_data:
        current = config.structure
        changes["structure"] = OutputStructure(
            pages=_as_str(structure_data.get("pages")) or current.pages,
            components=_as_str(structure_data.get("components")) or current.components,
            assets=_as_str(structure_data.get("assets")) or current.assets,
            static=_as_str(structure_data.get("static")) or current.static,
        )

    build_data = _as_dict(data.get("build"))
    for key, attr in (
        ("minify", "minify"),
        ("source_maps", "source_maps"),
        ("treeshake", "treeshake"),
        ("hash_assets", "hash_assets"),
        ("atomic", "atomic"),
        ("strict", "strict"),
    ):
        flag = _as_bool(build_data.get(key))
        if flag is not None:
            changes[attr] = flag

    hash_length = _as_int(build_data.get("hash_length"))
    if hash_length is not None:
        if not 1 <= hash_length <= 32:
            raise ConfigError("build.hash_length must be between 1 and 32")
        changes["hash_length"] = hash_length
    hash_workers = _as_int(build_data.get("hash_workers"))
    if hash_workers is not None:
        changes["hash_workers"] = max(hash_workers, 1)

    if "external" in build_data:
        changes["external"] = tuple(_as_str_list(build_data.get("external")))
    if "optimizations" in build_data:
        hooks = build_data.get("optimizations")
        changes["optimizations"] = (
            None if hooks is None else tuple(name.lower() for name in _as_str_list(hooks))
        )

    compression_raw = build_data.get("compression")
    if isinstance(compression_raw, bool):
        changes["compression"] = replace(config.compression, enabled=compression_raw)
    elif isinstance(compression_raw, dict):
        current_compression = config.compression
        level = _as_int(compression_raw.get("level"))
        if level is not None and not 1 <= level <= 9:
            raise ConfigError("build.compression.level must be between 1 and 9")
        enabled = _as_bool(compression_raw.get("enabled"))
        threshold = _as_int(compression_raw.get("threshold"))
        changes["compression"] = CompressionConfig(
            enabled=current_compression.enabled if enabled is None else enabled,
            level=current_compression.level if level is None else level,
            threshold=current_compression.threshold if threshold is None else threshold,
        )

    esbuild_data = _as_dict(build_data.get("esbuild"))
    if esbuild_data:
        current_esbuild = config.esbuild
        command = _as_str_list(esbuild_data.get("command"))
        timeout = _as_float(esbuild_data.get("timeout"))
        kill_grace = _as_float(esbuild_data.get("kill_grace"))
        changes["esbuild"] = EsbuildConfig(
            command=tuple(command) or current_esbuild.command,
            timeout=current_esbuild.timeout if timeout is None else timeout,
            kill_grace=current_esbuild.kill_grace if kill_grace is None else kill_grace,
        )

    templates_data = _as_dict(data.get("templates"))
    extension = _as_str(templates_data.get("extension"))
    if extension:
        changes["template_extension"] = extension if extension.startswith(".") else f".{extension}"

    preflight_data = _as_dict(data.get("preflight"))
    if "required_dependencies" in preflight_data:
        changes["required_dependencies"] = tuple(
            _as_str_list(preflight_data.get("required_dependencies"))
        )
    min_version = _as_str(preflight_data.get("min_runtime_version"))
    if min_version:
        changes["min_runtime_version"] = parse_version(min_version)

    if "budgets" in data:
        changes["budgets"] = _parse_budgets(data.get("budgets"))

    return replace(config, **changes) if changes else config


def _parse_budgets(value: Any) -> Tuple[Budget, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError("budgets must be a list of mappings")
    budgets: List[Budget] = []
    for item in value:
        entry = _as_dict(item)
        name = _as_str(entry.get("name"))
        if not name:
            raise ConfigError("each budget requires a name")
        budgets.append(
            Budget(
                name=name,
                warning=_as_int(entry.get("warning")),
                error=_as_int(entry.get("error")),
            )
        )
    return tuple(budgets)


def parse_version(value: str) -> Tuple[int, ...]:
    """Parse ``"3.11"`` or ``"v16.2.0"`` into a tuple of integers."""
    cleaned = value.strip().lstrip("vV")
    parts: List[int] = []
    for piece in cleaned.split("."):
        match = _LEADING_DIGITS.match(piece)
        if match is None:
            break
        parts.append(int(match.group()))
    if not parts:
        raise ConfigError(f"Invalid version string: {value!r}")
    return tuple(parts)


def _resolve(root: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = root / path
    return path.resolve()


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "Budget",
    "DEFAULT_BUDGETS",
    "BuildConfig",
    "CompressionConfig",
    "ConfigError",
    "EsbuildConfig",
    "OutputStructure",
    "apply_overrides",
    "default_config",
    "load_config",
    "parse_version",
]
