import os
import sys
import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_LEVELS = ["debug", "info", "warning", "error", "critical"]
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")

def setup_logging():
    """Route the app, server and pymongo loggers to one colored stdout handler."""
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    if log_level not in LOG_LEVELS:
        print(f"[Logger] Invalid LOG_LEVEL '{log_level}', defaulting to INFO")
        log_level = "info"

    level = getattr(logging, log_level.upper())

    formatter = ColorFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)

    # Root logger (affects everything)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [console_handler]

    for logger_name in SERVER_LOGGERS:
        server_logger = logging.getLogger(logger_name)
        server_logger.setLevel(level)
        server_logger.handlers = [console_handler]
        server_logger.propagate = False

    # pymongo is chatty at debug level (heartbeats, pool events)
    logging.getLogger("pymongo").setLevel(max(level, logging.WARNING))

    print(f"[Logger] Initialized ({log_level.upper()} mode, level={logging.getLevelName(level)})")

class Logger:
    def __init__(self, name: str = "app"):
        self.logger = logging.getLogger(name)

    def debug(self, msg, *args, **kwargs):
        self.logger.debug(msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self.logger.info(msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self.logger.warning(msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        self.logger.error(msg, *args, **kwargs)

class ColorFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[36m",   # Cyan
        "INFO": "\033[32m",    # Green
        "WARNING": "\033[33m", # Yellow
        "ERROR": "\033[31m",   # Red
        "CRITICAL": "\033[1;31m", # Bold Red
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname, self.RESET)
        message = super().format(record)
        return f"{color}{message}{self.RESET}"
