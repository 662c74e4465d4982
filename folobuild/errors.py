"""Exception types shared across build stages."""

from __future__ import annotations

from pathlib import Path


class FatalSetupError(RuntimeError):
    """Raised when the build cannot start or its output tree cannot be prepared."""


class BundlerError(RuntimeError):
    """Raised by a bundler adapter when it cannot produce an output file."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class HookDiscoveryError(RuntimeError):
    """Raised when a requested optimization hook is unknown or cannot be loaded."""


__all__ = ["BundlerError", "FatalSetupError", "HookDiscoveryError"]
