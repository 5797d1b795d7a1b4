from __future__ import annotations

import logging
import os
from pathlib import Path

from .config import DEFAULT_LOG_PATH

OUTPUT_LOGGER = "rootfs_runner.output"


def _open_log_file(log_path: str) -> tuple[logging.Handler, str]:
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path), log_path
    except OSError:
        # Build hosts often run us unprivileged; keep a log next to the build.
        fallback = str(Path.cwd() / "rootfs-runner.log")
        return logging.FileHandler(fallback), fallback


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
    child_output: bool = True,
) -> str:
    """Configure root logging for rootfs-run.

    Child command output is logged through OUTPUT_LOGGER, one
    "<label> | <line>" record per line. child_output=False keeps those lines
    out of the log while CMD lines and teardown warnings still appear.

    Returns the log file path actually used.
    """

    logger = logging.getLogger()
    logger.setLevel(level)
    logging.getLogger(OUTPUT_LOGGER).setLevel(logging.NOTSET if child_output else logging.WARNING)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_rootfs_runner_configured", False):
        return getattr(logger, "_rootfs_runner_log_path", log_path)

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler, chosen_path = _open_log_file(log_path)
    handlers: list[logging.Handler] = [file_handler]
    if also_console:
        handlers.append(logging.StreamHandler())

    for h in handlers:
        h.setFormatter(fmt)
        logger.addHandler(h)

    setattr(logger, "_rootfs_runner_configured", True)
    setattr(logger, "_rootfs_runner_log_path", chosen_path)

    logging.getLogger(__name__).debug("Logging to %s (requested %s)", chosen_path, log_path)
    return chosen_path
