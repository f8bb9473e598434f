# utils/logger.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Logging utility for fabric simulation and trace checking with configurable levels

import logging
import sys
from enum import Enum
from typing import Optional


class LogLevel(Enum):
    """Log levels for fabric simulation."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR


class FabricLogger:
    """Centralized logger for the fabric and its checkers with structured output."""

    def __init__(self, name: str = "nuntius", level: LogLevel = LogLevel.INFO):
        """Initialize the fabric logger.

        Args:
            name: Logger name
            level: Default logging level
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level.value)

        # Remove existing handlers to avoid duplicates
        self.logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level.value)
        console_handler.setFormatter(FabricFormatter())

        self.logger.addHandler(console_handler)

        # Prevent propagation to root logger
        self.logger.propagate = False

    def set_level(self, level: LogLevel):
        """Change the logging level."""
        self.logger.setLevel(level.value)
        for handler in self.logger.handlers:
            handler.setLevel(level.value)

    # Core logging methods
    def debug(self, message: str, **kwargs):
        """Log debug message (detailed internal state)."""
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message (general progress)."""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message (unexpected but recoverable)."""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message (serious problems)."""
        self.logger.error(message, **kwargs)

    # Specialized methods for fabric events
    def tick_committed(self, tick: int, allocated: int, available: int):
        """Log a committed tick."""
        self.debug(f"Tick {tick} committed: {allocated} sent, {available} atoms left")

    def tick_failed(self, error):
        """Log a fatal tick error with its tick, kind and identifiers."""
        self.error(f"💥 {error.describe()}")

    def run_summary(self, tick: int, termination, detail: str = ""):
        """Log why a run stopped."""
        detail_str = f" ({detail})" if detail else ""
        self.info(f"Run stopped at tick {tick}: {termination}{detail_str}")

    def verdict_reported(self, property_name: str, verdict: str, witness: Optional[str] = None):
        """Log a property verdict."""
        witness_str = f" → {witness}" if witness else ""
        self.info(f"{property_name}: {verdict}{witness_str}")

    def validation_result(self, success: bool, message: str = ""):
        """Log validation results."""
        if success:
            self.debug(f"✅ {message}" if message else "✅ Validation successful")
        else:
            self.error(f"❌ {message}" if message else "❌ Validation failed")


class FabricFormatter(logging.Formatter):
    """Custom formatter for fabric logging with clean output."""

    def format(self, record):
        # For INFO level and above, show message only (clean output)
        if record.levelno >= logging.INFO:
            return record.getMessage()

        if record.levelno == logging.DEBUG:
            return f"[DEBUG] {record.getMessage()}"

        return f"[{record.levelname}] {record.getMessage()}"


# Global logger instance
_global_logger: Optional[FabricLogger] = None


def get_logger(name: str = "nuntius") -> FabricLogger:
    """Get or create the global fabric logger instance.

    Args:
        name: Logger name (default: "nuntius")

    Returns:
        FabricLogger instance
    """
    global _global_logger
    if _global_logger is None:
        _global_logger = FabricLogger(name)
    return _global_logger


def set_log_level(level: LogLevel):
    """Set the global log level.

    Args:
        level: New log level
    """
    get_logger().set_level(level)


def configure_logging(verbose: bool = False, debug: bool = False):
    """Configure logging based on command line flags.

    Args:
        verbose: Enable verbose (INFO) output
        debug: Enable debug output (overrides verbose)
    """
    if debug:
        set_log_level(LogLevel.DEBUG)
    elif verbose:
        set_log_level(LogLevel.INFO)
    else:
        set_log_level(LogLevel.WARNING)
