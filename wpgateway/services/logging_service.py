# -*- coding: utf-8 -*-
"""Location: ./wpgateway/services/logging_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Logging Service.

Configures the root logger once for the whole process, either as JSON lines
(python-json-logger) for log shippers or as plain text for local runs.
Modules keep using ``logging.getLogger(__name__)``.

Examples:
    >>> service = LoggingService()
    >>> service.get_logger("wpgateway.test").name
    'wpgateway.test'
"""

# Standard
import logging
import sys
from typing import Optional

# Third-Party
from pythonjsonlogger import jsonlogger

# First-Party
from wpgateway.config import settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


class LoggingService:
    """Process-wide logging configuration."""

    def __init__(self) -> None:
        self._handler: Optional[logging.Handler] = None

    def build_formatter(self, log_format: str) -> logging.Formatter:
        """Formatter for the configured output format.

        Args:
            log_format: ``json`` or ``text``.

        Returns:
            logging.Formatter: The formatter.

        Examples:
            >>> type(LoggingService().build_formatter("json")).__name__
            'JsonFormatter'
            >>> type(LoggingService().build_formatter("text")).__name__
            'Formatter'
        """
        if log_format == "json":
            return jsonlogger.JsonFormatter(JSON_FORMAT, rename_fields={"levelname": "level", "name": "logger"})
        return logging.Formatter(TEXT_FORMAT)

    def initialize(self, level: Optional[str] = None, log_format: Optional[str] = None) -> None:
        """Install a stdout handler on the root logger.

        Calling it again replaces the handler installed by the previous call.

        Args:
            level: Log level name. Defaults to ``settings.log_level``.
            log_format: ``json`` or ``text``. Defaults to ``settings.log_format``.
        """
        root = logging.getLogger()
        if self._handler is not None:
            root.removeHandler(self._handler)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(self.build_formatter(log_format or settings.log_format))
        root.addHandler(handler)
        root.setLevel(level or settings.log_level)
        self._handler = handler
        # Quieten per-request access lines from dependencies.
        logging.getLogger("httpx").setLevel(logging.WARNING)

    def shutdown(self) -> None:
        """Remove the handler installed by :meth:`initialize`."""
        if self._handler is not None:
            logging.getLogger().removeHandler(self._handler)
            self._handler = None

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)
