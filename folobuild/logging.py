"""Logging setup for folobuild builds."""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "folobuild"


class _ComponentFormatter(logging.Formatter):
    """Console formatter naming the emitting component (``stages``, ``bundlers.esbuild``...)."""

    def format(self, record: logging.LogRecord) -> str:
        _, _, component = record.name.partition(".")
        record.component = component or _LOGGER_NAME
        return super().format(record)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the folobuild hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def log_level(*, verbose: bool = False, quiet: bool = False) -> int:
    """DEBUG when verbose, WARNING when quiet (warnings and errors only), INFO otherwise."""
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def configure_logging(
    *, verbose: bool = False, quiet: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Route folobuild logs to the console and, optionally, a build log file.

    Verbose console lines carry the component name so stage, bundler and
    hook output can be told apart. The file sink always records at DEBUG.
    """
    level = log_level(verbose=verbose, quiet=quiet)
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.propagate = False

    # Reset handlers so repeated builds in one process do not duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_format = (
        "[folobuild:%(component)s] %(levelname)s %(message)s"
        if verbose
        else "[folobuild] %(levelname)s %(message)s"
    )
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(_ComponentFormatter(console_format))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger", "log_level"]
