"""
Logging configuration and utilities for spotifetch
Provides colored console output and file logging with separation between user and technical messages
"""

import logging
import logging.handlers
import re
import sys
import time
from pathlib import Path
from typing import Optional
import colorama
from colorama import Fore, Back, Style

from ..config.settings import get_settings


# Initialize colorama for Windows compatibility
colorama.init()

FILE_FORMAT = '%(asctime)s | %(name)-30s | %(levelname)-8s | %(funcName)-20s | %(message)s'
EXTERNAL_LIBS = ['urllib3', 'requests', 'urllib3.connectionpool']


class ConsoleMessageFilter(logging.Filter):
    """Filter to allow only user-facing messages to console, or everything in verbose mode"""

    def __init__(self, verbose: bool = False):
        super().__init__()
        self.verbose = verbose

    def filter(self, record):
        if self.verbose:
            return True

        # Allow all WARNING+ messages
        if record.levelno >= logging.WARNING:
            return True

        # Allow messages explicitly marked for console
        if getattr(record, 'console_output', False):
            return True

        if record.name.endswith('.console'):
            return True

        return False


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colored output for console"""

    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Back.WHITE + Style.BRIGHT,
    }

    def __init__(self, fmt: Optional[str] = None, use_colors: bool = True):
        """
        Initialize colored formatter

        Args:
            fmt: Log format string
            use_colors: Whether to use colored output
        """
        super().__init__()
        self.use_colors = use_colors
        self.fmt = fmt or '%(message)s'

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors"""
        formatter = logging.Formatter(self.fmt)
        if self.use_colors and record.levelname in self.COLORS:
            # Copy so other handlers see the plain level name
            record_copy = logging.makeLogRecord(record.__dict__)
            record_copy.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{Style.RESET_ALL}"
            return formatter.format(record_copy)
        return formatter.format(record)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console_output: bool = True,
    colored_output: bool = True,
    max_size: str = "10MB",
    backup_count: int = 3,
    verbose: bool = False
) -> None:
    """
    Setup application logging configuration with separated console/file output

    Args:
        level: Logging level for the file handler, and for the console when verbose
        log_file: Path to log file (None to disable file logging)
        console_output: Enable console logging
        colored_output: Enable colored console output
        max_size: Maximum log file size before rotation
        backup_count: Number of backup log files to keep
        verbose: Send every record at `level` or above to the console as well
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture everything, filter at handler level
    root_logger.handlers.clear()

    # Console handler - only user-facing messages (WARNING+ or explicitly marked) unless verbose
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level if verbose else logging.DEBUG)
        console_handler.addFilter(ConsoleMessageFilter(verbose=verbose))
        console_fmt = '%(levelname)s %(name)s: %(message)s' if verbose else '%(message)s'
        console_handler.setFormatter(ColoredFormatter(fmt=console_fmt, use_colors=colored_output))
        root_logger.addHandler(console_handler)

    # File handler with full detail logging
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=parse_size(max_size),
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        root_logger.addHandler(file_handler)

    for lib in EXTERNAL_LIBS:
        logging.getLogger(lib).setLevel(logging.WARNING)

    logger = logging.getLogger('spotifetch')
    logger.info(f"Logging initialized - Level: {level}, Console: {console_output}, File: {log_file}")


def parse_size(size_str: str) -> int:
    """
    Parse size string to bytes

    Args:
        size_str: Size string like "10MB", "1GB", "500KB"

    Returns:
        Size in bytes
    """
    size_str = size_str.upper().strip()

    multipliers = {
        'B': 1,
        'KB': 1024,
        'MB': 1024 ** 2,
        'GB': 1024 ** 3,
    }

    match = re.match(r'^(\d+(?:\.\d+)?)\s*([KMG]?B)$', size_str)
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")

    number, unit = match.groups()
    return int(float(number) * multipliers[unit])


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance for a module

    The returned logger carries an extra `console_info` method for INFO
    messages that should reach the user's console, not just the log file.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance with enhanced methods
    """
    logger = logging.getLogger(name)

    def console_info(message: str):
        """Log message that should appear on console for user"""
        logger.info(message, extra={'console_output': True})

    logger.console_info = console_info

    return logger


def configure_from_settings(verbose: bool = False) -> None:
    """Configure logging from application settings; verbose also echoes log records to stderr"""
    settings = get_settings()

    log_file_path = None
    if settings.logging.file:
        if Path(settings.logging.file).is_absolute():
            log_file_path = settings.logging.file
        else:
            log_file_path = settings.get_config_directory() / settings.logging.file

    setup_logging(
        level=settings.logging.level,
        log_file=str(log_file_path) if log_file_path else None,
        console_output=settings.logging.console_output,
        colored_output=settings.logging.colored_output,
        max_size=settings.logging.max_size,
        backup_count=settings.logging.backup_count,
        verbose=verbose
    )


class OperationLogger:
    """Logger for tracking long-running operations such as multi-page walks"""

    def __init__(self, logger: logging.Logger, operation_name: str):
        """
        Initialize operation logger

        Args:
            logger: Base logger instance
            operation_name: Name of the operation
        """
        self.logger = logger
        self.operation_name = operation_name
        self.start_time = None

    def start(self, message: Optional[str] = None) -> None:
        """Start tracking operation"""
        self.start_time = time.time()
        self.logger.debug(message or f"Operation started: {self.operation_name}")

    def progress(self, message: str, current: Optional[int] = None, total: Optional[int] = None) -> None:
        """Log progress update"""
        if current is not None and total:
            self.logger.debug(f"{self.operation_name}: {message} ({current}/{total}, {(current / total) * 100:.1f}%)")
        else:
            self.logger.debug(f"{self.operation_name}: {message}")

    def complete(self, message: Optional[str] = None) -> None:
        """Mark operation as complete"""
        if self.start_time:
            duration = time.time() - self.start_time
            self.logger.info(f"{message or 'Operation completed'}: {self.operation_name} in {duration:.2f}s")
        else:
            self.logger.info(f"{message or 'Operation completed'}: {self.operation_name}")


def create_operation_logger(name: str, operation: str) -> OperationLogger:
    """
    Create operation logger for tracking long-running tasks

    Args:
        name: Logger name
        operation: Operation description

    Returns:
        OperationLogger instance
    """
    return OperationLogger(get_logger(name), operation)
