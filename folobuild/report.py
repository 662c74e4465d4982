"""End-of-run report and the default logging reporter."""

from __future__ import annotations

from typing import List

from .events import BuildEvent, EventKind
from .logging import get_logger
from .stats import BuildStats, format_size

WARNING_PREVIEW = 5
_RULE = "=" * 60


def render_report(stats: BuildStats, *, warning_preview: int = WARNING_PREVIEW) -> List[str]:
    """Return report lines: duration, counts, sizes, capped warnings, then every error."""
    lines = [
        _RULE,
        "Build Statistics",
        _RULE,
        f"Duration: {stats.duration:.2f}s",
        f"Files Processed: {stats.files_processed}",
        f"Files Generated: {stats.files_generated}",
        f"Total Size: {format_size(stats.total_size)}",
    ]
    if stats.compressed_size > 0:
        savings = stats.savings
        suffix = f" ({savings:.1f}% smaller)" if savings is not None else ""
        lines.append(f"Compressed Size: {format_size(stats.compressed_size)}{suffix}")

    if stats.warnings:
        lines.append(f"Warnings: {len(stats.warnings)}")
        lines.extend(f"  - {warning}" for warning in stats.warnings[:warning_preview])
        hidden = len(stats.warnings) - warning_preview
        if hidden > 0:
            lines.append(f"  ... and {hidden} more")

    if stats.errors:
        lines.append(f"Errors: {len(stats.errors)}")
        lines.extend(f"  - {error}" for error in stats.errors)

    lines.append(_RULE)
    return lines


class LoggingReporter:
    """Writes build events to the folobuild logger."""

    def __init__(self) -> None:
        self.logger = get_logger("report")

    def handle(self, event: BuildEvent) -> None:
        if event.kind is EventKind.STAGE_STARTED:
            self.logger.info("%s...", event.message or event.stage)
        elif event.kind is EventKind.STAGE_FINISHED:
            self.logger.debug("Finished %s", event.stage)
        elif event.kind is EventKind.FILE_WARNING:
            self.logger.warning("%s", event.message)
        elif event.kind is EventKind.FILE_ERROR:
            self.logger.error("%s", event.message)
        elif event.kind is EventKind.BUILD_FAILED:
            self.logger.error("Build failed: %s", event.message)
        elif event.kind is EventKind.BUILD_FINISHED:
            if event.stats is not None:
                for line in render_report(event.stats):
                    self.logger.info("%s", line)
            self.logger.info("%s", event.message)


__all__ = ["LoggingReporter", "WARNING_PREVIEW", "render_report"]
