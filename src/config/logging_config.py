# src/config/logging_config.py

"""Per-run log files for listing_hub.

Every process start gets its own ``logs/run_<YYYYMMDD_HHMMSS>.log``.
All ``listing_hub.*`` loggers (cache, prober, images, crm, leads, ...)
propagate into it, so a single catalogue refresh or lead submission
can be read end to end in one file. Only warnings reach the terminal.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

ROOT_LOGGER_NAME = "listing_hub"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_CONSOLE_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _run_log_path(logs_dir: Path) -> Path:
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return logs_dir / f"run_{stamp}.log"


def setup_logging(
    logs_dir: Path | None = None,
    console_level: int = logging.WARNING,
) -> Path:
    """Attach the run's file and console handlers to ``listing_hub``.

    Safe to call more than once: when handlers are already attached
    they are kept and the path of the existing log file is returned.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    for handler in root_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)

    target_dir = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    log_file = _run_log_path(target_dir)

    to_file = logging.FileHandler(log_file, encoding="utf-8")
    to_file.setLevel(logging.DEBUG)
    to_file.setFormatter(logging.Formatter(_FILE_FORMAT, _DATE_FORMAT))

    to_console = logging.StreamHandler(sys.stderr)
    to_console.setLevel(console_level)
    to_console.setFormatter(logging.Formatter(_CONSOLE_FORMAT, _DATE_FORMAT))

    root_logger.addHandler(to_file)
    root_logger.addHandler(to_console)
    root_logger.debug("Run log opened at %s", log_file)
    return log_file
