"""
Logging setup for SedSim.

Modules log through ``logging.getLogger(__name__)``; applications (the CLI,
notebooks) call :func:`setup_logging` once to attach handlers.

Usage:
    from sedsim.core.logger import get_logger, setup_logging

    setup_logging(log_level="DEBUG")
    logger = get_logger(__name__)
    logger.warning("SpO2 alarm: %.1f%%", spo2)
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import colorlog

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
COLOR_FORMAT = '%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)s%(reset)s - %(message)s'

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}


def setup_logging(log_dir: Optional[Path] = None, log_level: str = 'INFO',
                  session_name: Optional[str] = None) -> None:
    """
    Configure the ``sedsim`` logger tree.

    Args:
        log_dir: Directory for log files. If None, only console logging is enabled.
        log_level: 'DEBUG', 'INFO', 'WARNING' or 'ERROR'.
        session_name: Log file stem; defaults to a timestamp.
    """
    level = getattr(logging, log_level.upper())

    root = logging.getLogger('sedsim')
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        COLOR_FORMAT,
        log_colors=LOG_COLORS,
        reset=True,
        style='%',
    ))
    root.addHandler(console_handler)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        stem = session_name or f"sedsim_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

        file_formatter = logging.Formatter(DEFAULT_FORMAT)
        file_handler = logging.FileHandler(log_dir / f"{stem}.log")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        root.addHandler(file_handler)

        # Alarms and rhythm changes are WARNING, so this doubles as an event log.
        event_handler = logging.FileHandler(log_dir / f"{stem}_events.log")
        event_handler.setLevel(logging.WARNING)
        event_handler.setFormatter(file_formatter)
        root.addHandler(event_handler)


def get_logger(name: str) -> logging.Logger:
    """Logger for a module (pass ``__name__``)."""
    return logging.getLogger(name)
