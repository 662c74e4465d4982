"""Base class for bundler adapters."""

from abc import ABC, abstractmethod
from pathlib import Path

from ..models import BundleOptions


class Bundler(ABC):
    """Contract for tools that turn one source file into one output file."""

    name: str = "bundler"

    @abstractmethod
    def is_available(self) -> bool:
        """Return True when the tool can be invoked in this environment."""

    @abstractmethod
    def bundle(self, input_path: Path, output_path: Path, options: BundleOptions) -> int:
        """Write ``output_path`` from ``input_path`` and return its size in bytes.

        Implementations raise ``BundlerError`` when no output could be produced.
        """
