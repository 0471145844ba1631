"""Logger hierarchy for the merge pipeline.

Every module logs through ``stdlib_merger.<name>``. Console output goes to
stderr so the CLI summaries on stdout stay machine readable.
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

ROOT_LOGGER = "stdlib_merger"
CONSOLE_FORMAT = "[stdlib-merger] %(levelname)s %(message)s"
# parsing and ranking may run on worker threads
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """``get_logger("matcher")`` -> the ``stdlib_merger.matcher`` logger."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Attach the console handler (and a file sink when ``log_file`` is set).

    Calling it again replaces the previous handlers.
    """
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(level)
        sink.setFormatter(logging.Formatter(FILE_FORMAT))
        root.addHandler(sink)

    return root


@contextmanager
def log_stage(logger: logging.Logger, step: int, total: int, label: str) -> Iterator[None]:
    """Log entry into a numbered pipeline stage and its duration on exit."""
    logger.info("Step %d/%d: %s", step, total, label)
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.debug("%s finished in %.2fs", label, time.perf_counter() - started)


__all__ = ["configure_logging", "get_logger", "log_stage"]
