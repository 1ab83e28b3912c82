# logger.py
# Package logger with context and color formatting
import logging
import inspect
import sys
import os
from typing import Optional, Union

from .errors import ConfigurationError
from .extraconfig import ALPHA

PACKAGE_LOGGER = "discord_image_utils"

# Define custom log levels
SUCCESS_LEVEL = 25  # Between INFO (20) and WARNING (30)
EVENT_LEVEL = 15    # Below INFO (20)
SUCCESSTRACE_LEVEL = 14 # Below EVENT (15)
WARNINGTRACE_LEVEL = 13 # Below SUCCESSTRACE (14)
TRACE_LEVEL = 12     # Above DEBUG (10)

logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")
logging.addLevelName(TRACE_LEVEL, "TRACE")
logging.addLevelName(EVENT_LEVEL, "EVENT")
logging.addLevelName(SUCCESSTRACE_LEVEL, "S-TRACE")
logging.addLevelName(WARNINGTRACE_LEVEL, "W-TRACE")

DEFAULT_LEVEL = TRACE_LEVEL if ALPHA else EVENT_LEVEL

# short names accepted from config/env on top of the registered level names
_ALIASES = {
    "warn": logging.WARNING,
    "fatal": logging.CRITICAL,
    "successtrace": SUCCESSTRACE_LEVEL,
    "warningtrace": WARNINGTRACE_LEVEL,
}

# Custom auto-context color formatter
class ColoredFormatter(logging.Formatter):
    COLORS = {
        TRACE_LEVEL: "\033[90m",      # gray
        logging.DEBUG: "\033[90m",     # gray
        WARNINGTRACE_LEVEL: "\033[33m", # yellow
        SUCCESSTRACE_LEVEL: "\033[32m", # green
        logging.INFO: "\033[36m",      # cyan
        EVENT_LEVEL: "\033[96m",      # light blue
        SUCCESS_LEVEL: "\033[32m",  # green text
        logging.WARNING: "\033[33m",   # yellow
        logging.ERROR: "\033[31m",     # red
        logging.CRITICAL: "\033[41;97m",  # red bg with white text
    }
    RESET = "\033[0m"

    def __init__(self, *args, use_color: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, "") if self.use_color else ""
        reset = self.RESET if self.use_color else ""
        msecs = f"{record.msecs:03.0f}"

        formatted = f"[{msecs}ms] [{record.levelname:^8}] [{record.name}] {record.getMessage()}"

        if record.exc_info:
            if not record.exc_text:
                record.exc_text = self.formatException(record.exc_info)
            if record.exc_text:
                formatted += "\n" + record.exc_text

        return f"{color}{formatted}{reset}"


def parse_level(level: Union[str, int, None]) -> int:
    """
    Turn a level name ("debug", "warn", "S-TRACE", ...) or number into a numeric level.
    None means the package default (TRACE in alpha builds, EVENT otherwise).
    """
    if level is None:
        return DEFAULT_LEVEL
    if isinstance(level, bool):
        raise ConfigurationError(f"Invalid log level: {level!r}", "log_level")
    if isinstance(level, int):
        return level

    name = str(level).strip()
    if name.isdigit():
        return int(name)
    if name.lower() in _ALIASES:
        return _ALIASES[name.lower()]

    resolved = logging.getLevelName(name.upper())
    if isinstance(resolved, int):
        return resolved
    raise ConfigurationError(f"Unknown log level: {level!r}", "log_level")


_handler: Optional[logging.Handler] = None

def setup_logging(level: Union[str, int, None] = None, stream=None, use_color: Optional[bool] = None) -> logging.Logger:
    """
    Install the colored handler on the package logger and set its level.
    Meant to be called once at startup by whoever owns the process; calling it
    again swaps the handler instead of stacking a second one.
    """
    global _handler
    stream = stream or sys.stdout
    if use_color is None:
        use_color = hasattr(stream, "isatty") and stream.isatty()

    pkg_log = logging.getLogger(PACKAGE_LOGGER)
    if _handler is not None:
        pkg_log.removeHandler(_handler)

    _handler = logging.StreamHandler(stream)
    _handler.setFormatter(ColoredFormatter(use_color=use_color))
    pkg_log.addHandler(_handler)
    pkg_log.setLevel(parse_level(level))
    pkg_log.propagate = False
    return pkg_log


# Smart auto-context logger getter
def get_logger(name=None) -> logging.Logger:
    """
    Returns a contextual logger based on the caller's filename or module.
    If name is omitted, it automatically infers the calling module.
    Ergo: get_logger() from discord_image_utils/fetch.py yields "discord_image_utils.fetch"
    """
    if not name:
        frame = inspect.stack()[1]
        module = inspect.getmodule(frame[0])
        if module and hasattr(module, '__name__') and module.__name__ not in ("__main__",):
            name = module.__name__
        else:
            # fallback to file-based path
            path = frame.filename.replace(os.getcwd(), "").lstrip(os.sep)
            parts = path.split(os.sep)
            parts[-1] = os.path.splitext(parts[-1])[0]
            name = ".".join(parts)

    return logging.getLogger(name)

# Add convenience methods to Logger class
def success(self, message, *args, **kwargs):
    """Log a success message."""
    if self.isEnabledFor(SUCCESS_LEVEL):
        kwargs.setdefault('stacklevel', 2)
        self._log(SUCCESS_LEVEL, message, args, **kwargs)

def trace(self, message, *args, **kwargs):
    """Log a trace message (even more verbose than debug)."""
    if self.isEnabledFor(TRACE_LEVEL):
        kwargs.setdefault('stacklevel', 2)
        self._log(TRACE_LEVEL, message, args, **kwargs)

def event(self, message, *args, **kwargs):
    if self.isEnabledFor(EVENT_LEVEL):
        kwargs.setdefault('stacklevel', 2)
        self._log(EVENT_LEVEL, message, args, **kwargs)

def successtrace(self, message, *args, **kwargs):
    if self.isEnabledFor(SUCCESSTRACE_LEVEL):
        kwargs.setdefault('stacklevel', 2)
        self._log(SUCCESSTRACE_LEVEL, message, args, **kwargs)

def warningtrace(self, message, *args, **kwargs):
    if self.isEnabledFor(WARNINGTRACE_LEVEL):
        kwargs.setdefault('stacklevel', 2)
        self._log(WARNINGTRACE_LEVEL, message, args, **kwargs)

# Attach custom methods to Logger class
logging.Logger.success = success
logging.Logger.trace = trace
logging.Logger.event = event
logging.Logger.successtrace = successtrace
logging.Logger.warningtrace = warningtrace
