"""Adapter for the esbuild command-line bundler."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import List, Sequence

from ..errors import BundlerError
from ..logging import get_logger
from ..models import BundleOptions
from .base import Bundler

_DEFAULT_COMMAND = ("npx", "--no-install", "esbuild")


class EsbuildBundler(Bundler):
    """Runs esbuild as a subprocess with an enforced timeout."""

    name = "esbuild"

    def __init__(
        self,
        command: Sequence[str] | None = None,
        *,
        timeout: float | None = 60.0,
        kill_grace: float = 5.0,
    ) -> None:
        self.command = tuple(command or _DEFAULT_COMMAND)
        if not self.command:
            raise ValueError("esbuild command must not be empty")
        self.timeout = timeout
        self.kill_grace = kill_grace
        self.logger = get_logger("bundlers.esbuild")

    def is_available(self) -> bool:
        return shutil.which(self.command[0]) is not None

    def build_args(self, input_path: Path, output_path: Path, options: BundleOptions) -> List[str]:
        args = [*self.command, str(input_path), "--bundle"]
        args.append(f"--format={options.format}")
        args.append(f"--platform={options.platform}")
        if options.minify:
            args.append("--minify")
        if options.sourcemap:
            args.append("--sourcemap")
        if options.tree_shaking:
            args.append("--tree-shaking=true")
        args.extend(f"--external:{module}" for module in options.external)
        args.append(f"--outfile={output_path}")
        return args

    def bundle(self, input_path: Path, output_path: Path, options: BundleOptions) -> int:
        args = self.build_args(input_path, output_path, options)
        self.logger.debug("Running %s", " ".join(args))
        try:
            process = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",
            )
        except (OSError, ValueError) as exc:
            raise BundlerError(
                f"Unable to launch '{self.command[0]}': {exc}", path=input_path
            ) from exc

        try:
            stdout, stderr = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired as exc:
            self._terminate(process)
            raise BundlerError(
                f"esbuild timed out after {self.timeout}s", path=input_path
            ) from exc

        if process.returncode != 0:
            message = (stderr or "").strip() or (stdout or "").strip() or f"exit code {process.returncode}"
            raise BundlerError(f"esbuild failed: {message}", path=input_path)

        try:
            return output_path.stat().st_size
        except FileNotFoundError as exc:
            raise BundlerError(
                f"esbuild reported success but produced no output at {output_path}",
                path=input_path,
            ) from exc

    def _terminate(self, process: subprocess.Popen) -> None:
        """Ask the child to stop, then kill it if it ignores the request."""
        process.terminate()
        try:
            process.communicate(timeout=self.kill_grace)
        except subprocess.TimeoutExpired:
            self.logger.warning("esbuild ignored terminate; killing pid %s", process.pid)
            process.kill()
            process.communicate()


__all__ = ["EsbuildBundler"]
