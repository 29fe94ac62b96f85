"""
Logging setup for Commentscope.

Components never read a global verbose flag. Each one receives a
LogConfig and asks it for a bound logger; the CLI calls configure()
once to install the loguru sinks.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger


CONSOLE_FORMAT = "<level>{level: <8}</level> | <cyan>{extra[component]}</cyan> - <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[component]} | {name}:{function}:{line} - {message}"


class InterceptHandler(logging.Handler):
    """Intercept standard logging messages toward Loguru sinks."""
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(component=record.name).log(
            level, record.getMessage()
        )


@dataclass
class LogConfig:
    """Logging options handed to every component."""
    verbose: bool = False
    log_file: Path | None = None

    @property
    def console_level(self) -> str:
        return "DEBUG" if self.verbose else "WARNING"

    def get_logger(self, component: str) -> Any:
        """Return a loguru logger tagged with the component name."""
        return logger.bind(component=component)

    def configure(self) -> None:
        """Install console/file sinks and route stdlib logging through loguru."""
        logger.remove()
        logger.configure(extra={"component": "-"})
        logger.add(sys.stderr, level=self.console_level, colorize=True, format=CONSOLE_FORMAT)

        if self.log_file is not None:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            logger.add(
                str(self.log_file),
                level="DEBUG",
                rotation="10 MB",
                retention="1 week",
                format=FILE_FORMAT,
            )

        logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
        # urllib3 logs every connection at DEBUG
        logging.getLogger("urllib3").setLevel(logging.DEBUG if self.verbose else logging.WARNING)
