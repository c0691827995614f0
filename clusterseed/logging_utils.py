# START OF FILE clusterseed/logging_utils.py
"""
Centralized logging configuration for ClusterSeed.

Console output is colored; optional file logs are dated with the pattern
{module_name}_{YYYYMMDD_HHMMSS}.log and can be written as structured JSON.

Usage:
    from clusterseed.logging_utils import setup_module_logging

    log_file = setup_module_logging("clusterseed", log_level="INFO")

    import logging
    logger = logging.getLogger(__name__)
    logger.info("Deploy started", extra={"context": {"component": "etcd"}})
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from clusterseed.config import Settings, settings as default_settings

# Attributes every LogRecord carries; anything else came in through `extra`
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "context", "taskName",
}


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs structured JSON logs.
    Includes timestamp, level, message, and optional context.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno
        }

        if hasattr(record, "context"):
            log_data["context"] = record.context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS:
                continue
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, OverflowError):
                pass

        return json.dumps(log_data)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Colored console formatter.
    Makes pipeline progress easier to follow in a terminal.
    """

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.COLORS.get(record.levelname, self.RESET)

        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        log_message = f"[{timestamp}] {record.levelname:<8} - {record.name} - {record.getMessage()}"

        context = getattr(record, "context", None)
        if context:
            pairs = " ".join(f"{k}={v}" for k, v in context.items())
            log_message = f"{log_message} [{pairs}]"

        formatted = f"{color}{log_message}{self.RESET}"

        if record.exc_info:
            formatted += f"\n{color}{self.formatException(record.exc_info)}{self.RESET}"

        return formatted


def setup_module_logging(
    module_name: str = "clusterseed",
    log_level: Optional[str] = None,
    log_dir: Optional[str] = None,
    enable_console: Optional[bool] = None,
    enable_file: Optional[bool] = None,
    enable_json: Optional[bool] = None,
    config: Optional[Settings] = None,
) -> Optional[Path]:
    """
    Setup logging for a ClusterSeed entry point.

    Arguments left as None fall back to the corresponding Settings value.

    Args:
        module_name: Name used for the log file names
        log_level: Minimum log level for console output
        log_dir: Directory for log files
        enable_console: Enable console output
        enable_file: Enable dated file output
        enable_json: Use JSON formatting for file logs
        config: Settings to read defaults from

    Returns:
        Path to main log file if file logging is enabled, None otherwise
    """
    config = config or default_settings
    log_level = log_level or config.log_level
    log_dir = log_dir or config.log_dir
    enable_console = config.enable_console_log if enable_console is None else enable_console
    enable_file = config.enable_file_log if enable_file is None else enable_file
    enable_json = config.enable_json_log if enable_json is None else enable_json

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_level = getattr(logging, log_level.upper(), logging.INFO)

    file_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)-8s - %(name)s - [%(filename)s:%(lineno)d] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(ColoredConsoleFormatter())
        root_logger.addHandler(console_handler)

    main_log_file = None
    if enable_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        main_log_file = log_path / f"{module_name}_{timestamp}.log"
        error_log_file = log_path / f"{module_name}_errors_{timestamp}.log"

        file_handler = logging.FileHandler(filename=main_log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredFormatter() if enable_json else file_formatter)
        root_logger.addHandler(file_handler)

        error_handler = logging.FileHandler(filename=error_log_file, encoding='utf-8')
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(StructuredFormatter() if enable_json else file_formatter)
        root_logger.addHandler(error_handler)

    # paramiko is chatty at DEBUG
    logging.getLogger("paramiko").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized for module: {module_name}")
    if main_log_file:
        logger.info(f"Log file: {main_log_file}")

    return main_log_file
