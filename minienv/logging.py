"""Logging utilities for minienv with structured logging and console output."""

import json
import os
import sys
from datetime import datetime, UTC
from typing import Literal, Dict, Any, Optional
from enum import Enum

import typer


class LogLevel(Enum):
    """Log levels for structured logging."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


class StructuredLogger:
    """Structured logger for minienv diagnostics (always written to stderr)."""

    def __init__(self, component: str = "minienv"):
        """Initialize logger with component name."""
        self.component = component
        self.log_format = os.getenv("LOG_FORMAT", "text")
        self.log_level = os.getenv("LOG_LEVEL", "WARNING").upper()
        self._level_priority = {
            "DEBUG": 0,
            "INFO": 1,
            "WARNING": 2,
            "ERROR": 3,
            "FATAL": 4
        }

    def _should_log(self, level: LogLevel) -> bool:
        """Check if we should log at this level."""
        level_priority = self._level_priority.get(level.name, 1)
        current_priority = self._level_priority.get(self.log_level, 2)
        return level_priority >= current_priority

    def _format_message(
        self,
        level: LogLevel,
        message: str,
        fields: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None
    ) -> str:
        """Format log message based on LOG_FORMAT."""
        timestamp = datetime.now(UTC).isoformat()

        if self.log_format == "json":
            log_entry = {
                "timestamp": timestamp,
                "level": level.value,
                "component": self.component,
                "message": message
            }

            if fields:
                log_entry["fields"] = fields

            if error:
                log_entry["error"] = {
                    "type": type(error).__name__,
                    "message": str(error)
                }

            return json.dumps(log_entry, default=str)

        level_str = f"[{level.name}]"
        component_str = f"[{self.component}]"

        fields_str = ""
        if fields:
            field_pairs = [f"{k}={v}" for k, v in fields.items()]
            fields_str = f" {' '.join(field_pairs)}"

        error_str = ""
        if error:
            error_str = f" error={type(error).__name__}: {str(error)}"

        return f"{timestamp} {level_str} {component_str} {message}{fields_str}{error_str}"

    def _log(
        self,
        level: LogLevel,
        message: str,
        fields: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None
    ):
        """Internal log method."""
        if not self._should_log(level):
            return
        print(self._format_message(level, message, fields, error), file=sys.stderr)

    def debug(self, message: str, fields: Optional[Dict[str, Any]] = None):
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, fields)

    def info(self, message: str, fields: Optional[Dict[str, Any]] = None):
        """Log info message."""
        self._log(LogLevel.INFO, message, fields)

    def warning(self, message: str, fields: Optional[Dict[str, Any]] = None):
        """Log warning message."""
        self._log(LogLevel.WARNING, message, fields)

    def error(self, message: str, error: Optional[Exception] = None, fields: Optional[Dict[str, Any]] = None):
        """Log error message."""
        self._log(LogLevel.ERROR, message, fields, error)

    def with_component(self, component: str) -> "StructuredLogger":
        """Create a new logger with a different component name."""
        return StructuredLogger(component)


logger = StructuredLogger()


# Console output for operators. Colors follow the shell tooling this replaces:
# blue headers and info, green success, yellow warnings, red errors.

Color = Literal["red", "green", "yellow", "blue"]

_COLORS = {
    "red": typer.colors.RED,
    "green": typer.colors.GREEN,
    "yellow": typer.colors.BRIGHT_YELLOW,
    "blue": typer.colors.BLUE,
}


def _use_color() -> bool:
    return "NO_COLOR" not in os.environ


def print_color(color: Color, message: str, err: bool = False) -> None:
    """Print a message in the given color."""
    if _use_color():
        typer.secho(message, fg=_COLORS[color], err=err)
    else:
        typer.echo(message, err=err)


def echo(message: str = "", nl: bool = True) -> None:
    """Print plain console output."""
    typer.echo(message, nl=nl)


def print_header(title: str) -> None:
    """Print a section header."""
    echo()
    print_color("blue", "=" * 46)
    print_color("blue", title)
    print_color("blue", "=" * 46)


def print_success(message: str) -> None:
    print_color("green", f"✅ {message}")


def print_warning(message: str) -> None:
    print_color("yellow", f"⚠️  {message}")


def print_error(message: str) -> None:
    print_color("red", f"❌ {message}", err=True)


def print_info(message: str) -> None:
    print_color("blue", f"ℹ️  {message}")
