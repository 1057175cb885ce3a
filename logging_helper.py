"""
Unified logging helper for consistent logging across the DataTables engine.

This module provides a centralized logging system that eliminates duplicate
logging patterns and ensures consistent formatting across the application.

Usage:
    from logging_helper import LoggingHelper, LogType

    # Get a logger instance
    logger = LoggingHelper.get_logger(LogType.MAIN)
    logger.info("Standard logging")

    # Use helper methods for common patterns
    LoggingHelper.log_error_with_trace("Operation failed", exception)
    LoggingHelper.log_user_action("Deleted record", "users #5")
"""

import logging
import os
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


class LogType(Enum):
    """Enum for different log types in the application."""
    MAIN = "datatables"
    USER_ACTION = "datatables.user_actions"


class LoggingHelper:
    """
    Unified logging helper for consistent logging across all processes.

    This class manages all loggers in the application and provides helper
    methods for common logging patterns to prevent duplicate/inconsistent logging.
    """

    _loggers = {}
    _initialized = False
    _log_dir = Path(os.getenv('DATATABLES_LOG_DIR', 'logs'))

    @classmethod
    def initialize(cls, log_dir: Optional[str] = None):
        """
        Initialize all loggers. Should be called once at application startup.

        Args:
            log_dir: Directory where log files will be stored
                     (default: DATATABLES_LOG_DIR or ./logs)
        """
        if cls._initialized:
            return

        if log_dir:
            cls._log_dir = Path(log_dir)

        cls._loggers[LogType.MAIN] = cls._setup_main_logger()
        cls._loggers[LogType.USER_ACTION] = cls._setup_user_action_logger()

        cls._initialized = True

    @classmethod
    def get_logger(cls, log_type: LogType = LogType.MAIN) -> logging.Logger:
        """
        Get a logger instance by type.

        Args:
            log_type: The type of logger to retrieve

        Returns:
            The requested logger instance
        """
        if not cls._initialized:
            cls.initialize()
        return cls._loggers.get(log_type, cls._loggers[LogType.MAIN])

    # =============================================================================
    # Helper methods for common logging patterns (prevents duplicate logging)
    # =============================================================================

    @classmethod
    def log_error_with_trace(cls, message: str, exception: Exception,
                            log_type: LogType = LogType.MAIN):
        """
        Log an error with full traceback in a single call.

        Args:
            message: Error message to log
            exception: The exception that occurred
            log_type: Which logger to use
        """
        logger = cls.get_logger(log_type)
        logger.error(f"{message}: {exception}", exc_info=True)

    @classmethod
    def log_user_action(cls, action: str, details: Optional[str] = None):
        """
        Log user actions consistently with USER_ACTION tag.

        Args:
            action: The action performed
            details: Optional additional details
        """
        logger = cls.get_logger(LogType.USER_ACTION)
        message = action
        if details:
            message += f" - {details}"
        logger.info(message)

    @staticmethod
    def sanitize_value(value, max_length: int = 50) -> str:
        """
        Sanitize an untrusted value for safe logging to prevent log injection.

        Args:
            value: The value to sanitize
            max_length: Maximum length before truncation

        Returns:
            Sanitized string safe for logging
        """
        if not isinstance(value, str):
            value = str(value)
        value = ''.join(char if char.isprintable() and char not in '\r\n' else '?' for char in value)
        if len(value) > max_length:
            value = value[:max_length] + '...'
        return value

    # =============================================================================
    # Private logger setup methods
    # =============================================================================

    @classmethod
    def _setup_main_logger(cls) -> logging.Logger:
        """Configure and return the main application logger."""
        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

        logger = logging.getLogger(LogType.MAIN.value)
        logger.setLevel(getattr(logging, log_level, logging.INFO))
        logger.handlers = []
        logger.propagate = False

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter('[%(levelname)s] %(message)s'))
        logger.addHandler(console_handler)

        try:
            cls._log_dir.mkdir(parents=True, exist_ok=True)

            # File handler for all logs (with timestamp)
            file_handler = RotatingFileHandler(
                cls._log_dir / 'datatables.log',
                maxBytes=10*1024*1024,  # 10MB
                backupCount=3,
                encoding='utf-8'
            )
            file_handler.setFormatter(
                logging.Formatter('%(asctime)s | %(levelname)s | %(message)s',
                                datefmt='%Y-%m-%d %H:%M:%S')
            )
            logger.addHandler(file_handler)

            # Separate error file handler
            error_handler = RotatingFileHandler(
                cls._log_dir / 'errors.log',
                maxBytes=10*1024*1024,  # 10MB
                backupCount=3,
                encoding='utf-8'
            )
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(
                logging.Formatter('%(asctime)s | %(levelname)s | %(message)s',
                                datefmt='%Y-%m-%d %H:%M:%S')
            )
            logger.addHandler(error_handler)

        except OSError as e:
            logger.warning(f"Could not create file handlers: {e}")

        return logger

    @classmethod
    def _setup_user_action_logger(cls) -> logging.Logger:
        """Configure user action logger so mutations can be filtered out of the main log."""
        logger = logging.getLogger(LogType.USER_ACTION.value)
        logger.setLevel(logging.INFO)
        logger.handlers = []
        logger.propagate = False

        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[USER_ACTION] %(message)s'))
        logger.addHandler(handler)

        return logger

