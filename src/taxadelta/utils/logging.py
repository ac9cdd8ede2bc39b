"""
Logging Utilities
=================

Console and rotating-file logging for taxadelta runs, configured from the
``logging`` section of the analysis configuration:

    logging:
      level: DEBUG
      log_to_file: true
      log_to_console: false
      max_bytes: 10000000
      backup_count: 5
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from ..config.defaults import DEFAULT_CONFIG

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class _RunHandlerMixin:
    """Marks handlers installed by setup_logging so a second call can replace them."""


class _ConsoleHandler(_RunHandlerMixin, logging.StreamHandler):
    pass


class _FileHandler(_RunHandlerMixin, RotatingFileHandler):
    pass


def setup_logging(settings: Optional[Dict[str, Any]] = None,
                  log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure the root logger for one run.

    Handlers added by an earlier call are closed and replaced; handlers
    installed by anything else (e.g. a test harness) are left alone.

    Args:
        settings: The configuration's ``logging`` section; missing keys
            fall back to DEFAULT_CONFIG["logging"]
        log_file: Destination of the file log (logs/taxadelta_<timestamp>.log if None)

    Returns:
        Root logger instance
    """
    settings = {**DEFAULT_CONFIG["logging"], **(settings or {})}
    numeric_level = getattr(logging, str(settings["level"]).upper(), logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(numeric_level)

    for handler in [h for h in logger.handlers if isinstance(h, _RunHandlerMixin)]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if settings["log_to_console"]:
        console_handler = _ConsoleHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if settings["log_to_file"]:
        if log_file is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file = Path(f"logs/taxadelta_{timestamp}.log")

        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = _FileHandler(
            log_file,
            maxBytes=int(settings["max_bytes"]),
            backupCount=int(settings["backup_count"])
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")

    return logger
