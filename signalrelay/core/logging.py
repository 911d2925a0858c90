"""
Centralized logging setup for the signaling relay.
"""
import json
import logging
import datetime
import os
import sys
import tempfile
from typing import Any, Optional


def _resolve_log_dir() -> str:
    """Determine a writable log directory."""
    candidates = []

    env_dir = os.environ.get("RELAY_LOG_DIR")
    if env_dir:
        candidates.append(env_dir)

    candidates.append(os.path.join(tempfile.gettempdir(), "signalrelay-logs"))

    for directory in candidates:
        try:
            os.makedirs(directory, exist_ok=True)
            if os.access(directory, os.W_OK):
                return directory
        except OSError:
            continue

    # Last resort: current working directory
    return os.getcwd()


def setup_logging(level: str = "INFO", log_file: Optional[str] = "signalrelay.log") -> logging.Logger:
    """Setup logging configuration with console and optional file output."""
    handlers = [logging.StreamHandler()]
    log_path = None

    if log_file:
        log_path = os.path.join(_resolve_log_dir(), log_file)
        try:
            handlers.append(logging.FileHandler(log_path, mode='a', encoding='utf-8'))
        except OSError as e:
            print(f"WARNING: Cannot write to log file {log_path}: {e}", file=sys.stderr)
            print("Logging to console only", file=sys.stderr)
            log_path = None

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S',
        handlers=handlers,
        force=True
    )

    logger = logging.getLogger("signalrelay")
    logger.info(f"Logging initialized - output will be written to: {log_path or 'console only'}")

    return logger


def _emit(logger: logging.Logger, level: str, message: str, data: Optional[Any] = None) -> None:
    log_level = getattr(logging, level.upper())
    if not logger.isEnabledFor(log_level):
        return

    timestamp = datetime.datetime.now().strftime("%H:%M:%S.%f")[:-3]

    if data:
        if isinstance(data, dict):
            data_str = json.dumps(data, indent=2, default=str)
            logger.log(log_level, f"[{timestamp}] {message}\nData: {data_str}")
        else:
            logger.log(log_level, f"[{timestamp}] {message} - {data}")
    else:
        logger.log(log_level, f"[{timestamp}] {message}")


def debug_log(message: str, data: Optional[Any] = None, level: str = "INFO") -> None:
    """
    Structured logging helper for module-level code.

    Args:
        message: The log message
        data: Optional data to log
        level: Log level (INFO, DEBUG, WARNING, ERROR)
    """
    _emit(logging.getLogger("signalrelay"), level, message, data)


class LoggerMixin:
    """Gives a class ``log_*`` helpers on a logger named after its module and class.

    Loggers live under ``signalrelay.*`` so they inherit the handlers set up
    by ``setup_logging`` and can be tuned per class.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    def log_debug(self, message: str, data: Optional[Any] = None):
        _emit(self.logger, "DEBUG", message, data)

    def log_info(self, message: str, data: Optional[Any] = None):
        _emit(self.logger, "INFO", message, data)

    def log_warning(self, message: str, data: Optional[Any] = None):
        _emit(self.logger, "WARNING", message, data)

    def log_error(self, message: str, data: Optional[Any] = None):
        _emit(self.logger, "ERROR", message, data)
