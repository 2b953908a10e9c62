"""Unified logging configuration for skill ladder runs.

Long ladder runs spend hours inside tournaments and optimizer iterations, so
every entry point configures logging the same way: a console handler, an
optional file handler under the run's output directory, and quiet
third-party loggers.

Usage:
    from skillladder.core.logging_config import setup_logging

    logger = setup_logging("skill_ladder", level="DEBUG", log_dir="logs")
    logger.info("Starting ladder")
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

__all__ = [
    "COMPACT_FORMAT",
    "DEFAULT_FORMAT",
    "DETAILED_FORMAT",
    "STRUCTURED_FORMAT",
    "configure_third_party_loggers",
    "setup_logging",
]

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
COMPACT_FORMAT = "%(asctime)s %(levelname)s: %(message)s"
DETAILED_FORMAT = (
    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
)
STRUCTURED_FORMAT = (
    '{"time": "%(asctime)s", "level": "%(levelname)s", '
    '"logger": "%(name)s", "message": "%(message)s"}'
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_FORMATS = {
    "default": DEFAULT_FORMAT,
    "compact": COMPACT_FORMAT,
    "detailed": DETAILED_FORMAT,
    "structured": STRUCTURED_FORMAT,
}

NOISY_PACKAGES = (
    "urllib3",
    "asyncio",
    "prometheus_client",
    "matplotlib",
    "PIL",
)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if isinstance(resolved, int):
            return resolved
        return logging.INFO
    return level


def setup_logging(
    name: str,
    level: int | str = logging.INFO,
    log_file: str | Path | None = None,
    log_dir: str | Path | None = None,
    console: bool = True,
    format_style: str = "default",
    propagate: bool = False,
) -> logging.Logger:
    """Configure and return a named logger.

    Calling this twice for the same name returns the same logger without
    adding duplicate handlers; existing handlers take the new format.

    Args:
        name: Logger name (also used for the file name under ``log_dir``).
        level: Level as an int or a name such as ``"WARNING"``.
        log_file: Explicit log file path.
        log_dir: Directory in which ``<name>.log`` is created when
            ``log_file`` is not given.
        console: Attach a stderr stream handler.
        format_style: One of ``default``, ``compact``, ``detailed``,
            ``structured``; unknown styles fall back to ``default``.
        propagate: Whether records propagate to the root logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))
    logger.propagate = propagate

    formatter = logging.Formatter(
        _FORMATS.get(format_style, DEFAULT_FORMAT),
        datefmt=DATE_FORMAT,
    )
    for existing in logger.handlers:
        existing.setFormatter(formatter)

    if console and not any(
        type(h) is logging.StreamHandler for h in logger.handlers
    ):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if log_file is None and log_dir is not None:
        log_file = Path(log_dir) / f"{name}.log"

    if log_file is not None:
        log_path = Path(log_file).resolve()
        already_attached = any(
            isinstance(h, logging.FileHandler)
            and Path(h.baseFilename) == log_path
            for h in logger.handlers
        )
        if not already_attached:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def configure_third_party_loggers(
    quiet: bool = True,
    verbose_packages: list[str] | None = None,
) -> None:
    """Raise noisy third-party loggers to WARNING.

    Packages listed in ``verbose_packages`` are left untouched.
    """
    if not quiet:
        return
    keep = set(verbose_packages or [])
    for package in NOISY_PACKAGES:
        if package in keep:
            continue
        logging.getLogger(package).setLevel(logging.WARNING)

