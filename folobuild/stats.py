"""Counters and message lists accumulated over one build run."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, List


def format_size(num_bytes: int | float) -> str:
    """Render a byte count as ``B``, ``KB`` or ``MB``."""
    if num_bytes < 1024:
        return f"{int(num_bytes)} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.2f} KB"
    return f"{num_bytes / (1024 * 1024):.2f} MB"


@dataclass
class BuildStats:
    """Passive aggregation of build outcomes.

    Counters only ever grow. Errors and warnings keep insertion order so the
    end-of-run report is reproducible for identical inputs.
    """

    files_processed: int = 0
    files_generated: int = 0
    total_size: int = 0
    compressed_size: int = 0
    compressed_source_size: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    def record_file(self, size: int, compressed: bool = False, original: int | None = None) -> None:
        """Count one written file; compressed copies also pass the ``original`` byte count."""
        self.files_generated += 1
        if compressed:
            self.compressed_size += max(size, 0)
            self.compressed_source_size += max(size if original is None else original, 0)
        else:
            self.total_size += max(size, 0)

    def record_processed(self, count: int = 1) -> None:
        self.files_processed += max(count, 0)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    @property
    def duration(self) -> float:
        """Seconds elapsed since the stats were created."""
        return time.monotonic() - self.started_at

    @property
    def savings(self) -> float | None:
        """Percentage saved by compressed copies over the files they were made from."""
        if self.compressed_size <= 0 or self.compressed_source_size <= 0:
            return None
        return (1 - self.compressed_size / self.compressed_source_size) * 100

    def snapshot(self) -> Dict[str, object]:
        return {
            "filesProcessed": self.files_processed,
            "filesGenerated": self.files_generated,
            "totalSize": self.total_size,
            "compressedSize": self.compressed_size,
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "duration": round(self.duration * 1000),
        }


__all__ = ["BuildStats", "format_size"]
