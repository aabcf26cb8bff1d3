"""Logging for pipeline runs.

``--verbose`` sets the terminal level; ``SURVEYFLOW_LOG_LEVEL`` sets the level
of the run log written next to the report.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

_LOG_FILE = Path(".surveyflow") / "surveyflow.log"
_MAX_BYTES = 1024 * 1024
_BACKUP_COUNT = 2


def _parse_log_level(level_str: str) -> int:
    numeric = getattr(logging, level_str.upper(), None)
    if isinstance(numeric, int):
        return numeric
    return logging.INFO


def log_path(output_dir: Path) -> Path:
    return output_dir / _LOG_FILE


def setup_logging(
    *,
    output_dir: Path | None = None,
    verbose: bool = False,
) -> None:
    """Replace the root handlers with a terminal handler and, given *output_dir*, a run log."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG)

    terminal = logging.StreamHandler()
    terminal.setLevel(logging.DEBUG if verbose else logging.WARNING)
    terminal.setFormatter(logging.Formatter("%(levelname)s | %(name)s | %(message)s"))
    root.addHandler(terminal)

    if output_dir is not None:
        path = log_path(output_dir)
        path.parent.mkdir(parents=True, exist_ok=True)
        run_log = RotatingFileHandler(
            path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8",
        )
        run_log.setLevel(_parse_log_level(os.environ.get("SURVEYFLOW_LOG_LEVEL", "INFO")))
        run_log.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        root.addHandler(run_log)

    logging.getLogger("openpyxl").setLevel(logging.WARNING)
