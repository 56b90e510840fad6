import json
import sys
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"


class Colors:
    """ANSI color codes for console output"""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'
    GREY = '\033[90m'
    RED = '\033[91m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'


LEVEL_STYLES = {
    LogLevel.DEBUG: (Colors.CYAN, "·"),
    LogLevel.INFO: (Colors.BLUE, "ℹ️"),
    LogLevel.WARNING: (Colors.YELLOW, "⚠️"),
    LogLevel.ERROR: (Colors.RED, "❌"),
    LogLevel.SUCCESS: (Colors.GREEN, "✅"),
}

MAX_EXTRA_LENGTH = 100


class ServiceLogger:
    """Console logger with a service tag, optional context and key=value extras.

    Output looks like:
        [12:00:01.123] ℹ️ [RELAY/STREAM] [INFO] Stream opened | conversation_id=abc
    """

    def __init__(self, service_name: str, enable_colors: bool = True, stream=None):
        self.service_name = service_name.upper()
        self.enable_colors = enable_colors
        self.stream = stream or sys.stdout

    def _paint(self, text: str, color: str) -> str:
        if not self.enable_colors:
            return text
        return f"{color}{text}{Colors.RESET}"

    def _tag(self, context: Optional[str]) -> str:
        tag = self.service_name
        if context:
            tag += f"/{context.upper()}"
        return self._paint(f"[{tag}]", Colors.GREY)

    @staticmethod
    def _format_extra(value: Any) -> str:
        if isinstance(value, (dict, list)):
            text = json.dumps(value, separators=(',', ':'), default=str)
        else:
            text = str(value)
        if len(text) > MAX_EXTRA_LENGTH:
            text = text[:MAX_EXTRA_LENGTH] + "..."
        return text

    def _write(self, line: str):
        print(line, file=self.stream)
        self.stream.flush()

    def _log(self, level: LogLevel, message: str, context: Optional[str] = None, **extras):
        color, icon = LEVEL_STYLES[level]
        timestamp = self._paint(f"[{datetime.now().strftime('%H:%M:%S.%f')[:-3]}]", Colors.DIM)
        level_text = self._paint(f"[{level.value}]", color + Colors.BOLD)
        line = f"{timestamp} {icon} {self._tag(context)} {level_text} {message}"

        if extras:
            pairs = ", ".join(f"{key}={self._format_extra(value)}" for key, value in extras.items())
            line += self._paint(f" | {pairs}", Colors.DIM)

        self._write(line)

    def debug(self, message: str, context: Optional[str] = None, **extras):
        self._log(LogLevel.DEBUG, message, context, **extras)

    def info(self, message: str, context: Optional[str] = None, **extras):
        self._log(LogLevel.INFO, message, context, **extras)

    def warning(self, message: str, context: Optional[str] = None, **extras):
        self._log(LogLevel.WARNING, message, context, **extras)

    def error(self, message: str, context: Optional[str] = None, **extras):
        self._log(LogLevel.ERROR, message, context, **extras)

    def success(self, message: str, context: Optional[str] = None, **extras):
        self._log(LogLevel.SUCCESS, message, context, **extras)


# Global logger instances for different services
relay_logger = ServiceLogger("RELAY")
api_logger = ServiceLogger("API")
auth_logger = ServiceLogger("AUTH")
db_logger = ServiceLogger("DATABASE")


def get_logger(service_name: str) -> ServiceLogger:
    """Get a logger instance for a specific service"""
    return ServiceLogger(service_name)
