"""
Logging system for the position manager and its monitoring bots.
Provides structured, human-readable logs with file and console output.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

# ANSI color codes for terminal output
class Colors:
    RESET = "\033[0m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    BOLD = "\033[1m"


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.CYAN,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record):
        # Colour a copy; the record is shared with file handlers and ancestors
        colored = logging.makeLogRecord(record.__dict__)
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored.levelname = f"{color}{record.levelname}{Colors.RESET}"
        colored.msg = f"{color}{record.getMessage()}{Colors.RESET}"
        colored.args = None
        return super().format(colored)


class SynthLogger:
    """
    Central logging system.

    Features:
    - Console output with colors
    - Daily log files
    - Separate log files for position events and errors
    - Structured "[ACTION] | key=value" lines for easy parsing
    """

    _instance: Optional['SynthLogger'] = None
    _initialized: bool = False

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, log_dir: str = "logs", log_level: str = "INFO"):
        if SynthLogger._initialized:
            return

        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.main_logger = self._create_logger("synth", log_level)
        self.position_logger = self._create_logger("synth.positions", log_level, "positions")
        self.error_logger = self._create_logger("synth.errors", "ERROR", "errors")
        # Children would double every line through the parent's handlers
        self.position_logger.propagate = False
        self.error_logger.propagate = False

        SynthLogger._initialized = True

    def _create_logger(self, name: str, level: str, file_prefix: str = None) -> logging.Logger:
        """Create a configured logger instance."""
        logger = logging.getLogger(name)
        logger.setLevel(getattr(logging, level.upper()))
        logger.handlers.clear()

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(ColoredFormatter(
            "%(asctime)s | %(levelname)s | %(message)s",
            datefmt="%H:%M:%S"
        ))
        logger.addHandler(console_handler)

        prefix = file_prefix or "synth"
        log_file = self.log_dir / f"{prefix}_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        logger.addHandler(file_handler)

        return logger

    def info(self, msg: str, *args, **kwargs):
        """Log info message."""
        self.main_logger.info(msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        """Log debug message."""
        self.main_logger.debug(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        """Log warning message."""
        self.main_logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        """Log error message."""
        self.main_logger.error(msg, *args, **kwargs)
        self.error_logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        """Log critical message."""
        self.main_logger.critical(msg, *args, **kwargs)
        self.error_logger.critical(msg, *args, **kwargs)

    def position(self, action: str, sponsor: str, **kwargs):
        """
        Log a committed position operation with structured format.

        Args:
            action: CREATE, DEPOSIT, WITHDRAW, REDEEM, REQUEST_WITHDRAWAL, ...
            sponsor: Sponsor address
            **kwargs: Amounts and other fields (fee-adjusted)
        """
        parts = [f"[{action}]", f"sponsor={sponsor}"]
        for key, value in kwargs.items():
            parts.append(f"{key}={value}")

        msg = " | ".join(parts)
        self.position_logger.info(msg)
        self.main_logger.info(msg)

    def rejected(self, action: str, sponsor: str, code: str, reason: str):
        """Log an operation rejected before it changed any state."""
        self.main_logger.warning(f"[{action}:REJECTED] | sponsor={sponsor} | code={code} | {reason}")

    def alert(self, at: str, message: str, level: str = "warning", **kwargs):
        """
        Log a monitoring alert.

        Args:
            at: Component raising the alert (e.g., SyntheticPegMonitor)
            message: Alert headline
            level: Log level name (warning unless overridden)
            **kwargs: Context fields
        """
        parts = [f"[ALERT:{at}]", message]
        for key, value in kwargs.items():
            parts.append(f"{key}={value}")
        msg = " | ".join(parts)
        levelno = getattr(logging, level.upper())
        self.main_logger.log(levelno, msg)
        if levelno >= logging.ERROR:
            self.error_logger.log(levelno, msg)


# Global logger instance
_logger: Optional[SynthLogger] = None


def get_logger(log_dir: str = "logs", log_level: str = "INFO") -> SynthLogger:
    """Get or create the global logger instance."""
    global _logger
    if _logger is None:
        _logger = SynthLogger(log_dir, log_level)
        _configure_third_party_loggers()
    return _logger


def setup_logger(log_dir: str = "logs", log_level: str = "INFO") -> SynthLogger:
    """Initialize the logger with custom settings."""
    global _logger
    SynthLogger._initialized = False
    SynthLogger._instance = None
    _logger = SynthLogger(log_dir, log_level)
    _configure_third_party_loggers()
    return _logger


def _configure_third_party_loggers():
    """Keep HTTP client connection chatter out of the console."""
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
