"""
Logging system for spacetimectl
Echoes CLI traffic to a rich console and optionally mirrors it to log files
"""

import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional, TextIO

from rich.console import Console
from rich.markup import escape

from spacetimectl.constants import (
    LOG_DATE_FORMAT,
    LOG_TIME_FORMAT,
    MAX_LOGGED_ERROR_SUMMARIES,
)

if TYPE_CHECKING:
    from spacetimectl.models.results import CliResult

_ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


class CliLogLevel(Enum):
    """How chatty the console side of the logger is."""

    INFO = "info"
    ERROR = "error"

    @classmethod
    def parse(cls, value: str) -> "CliLogLevel":
        return cls(str(value).strip().lower())


class CliLogger:
    """
    Logs CLI invocations and their results.

    - Writes every line to a log file when a log directory is configured
    - Shows inputs and outputs in the console at INFO level
    - Always shows warnings and errors
    """

    def __init__(
        self,
        operation: str = "cli",
        level: CliLogLevel = CliLogLevel.INFO,
        log_dir: Optional[Path] = None,
        console: Optional[Console] = None,
    ):
        """
        Initialize logger

        Args:
            operation: Operation name used in the log file name (e.g., 'publish')
            level: Console verbosity
            log_dir: Root directory for log files (None disables file logging)
            console: Rich console to print to (defaults to stderr)
        """
        self.operation = operation
        self.level = level
        self.console = console or Console(stderr=True)
        self.log_file: Optional[TextIO] = None
        self.log_path: Optional[Path] = None
        self.has_errors = False

        if log_dir is not None:
            # Structure: {log_dir}/{date}/{time}_{operation}.log
            now = datetime.now()
            day_dir = Path(log_dir).expanduser() / now.strftime(LOG_DATE_FORMAT)
            day_dir.mkdir(parents=True, exist_ok=True)
            self.log_path = day_dir / f"{now.strftime(LOG_TIME_FORMAT)}_{operation}.log"
            self.log_file = open(self.log_path, "w", buffering=1)

    @property
    def is_info(self) -> bool:
        return self.level == CliLogLevel.INFO

    def _write(self, line: str) -> None:
        if self.log_file:
            self.log_file.write(_ANSI_ESCAPE.sub("", line) + "\n")

    def log(self, message: str, level: str = "INFO"):
        """
        Log a message to file and, depending on level, the console

        Args:
            message: Message to log
            level: Log level (INFO, WARNING, ERROR, DEBUG)
        """
        timestamp = datetime.now().strftime("%H:%M:%S")
        self._write(f"[{timestamp}] [{level}] {message}")

        if level == "ERROR":
            self.has_errors = True
            self.console.print(f"[red]{escape(message)}[/red]")
        elif level == "WARNING":
            self.console.print(f"[yellow]{escape(message)}[/yellow]")
        elif level == "DEBUG":
            if self.is_info:
                self.console.print(f"[dim]{escape(message)}[/dim]")
        elif self.is_info:
            self.console.print(escape(message))

    def log_warning(self, message: str):
        self.log(message, "WARNING")

    def log_command(self, terminal: str, command_flag: str, arg_suffix: str):
        """Log a command being executed"""
        self._write(f"CLI Input: {terminal} {command_flag} \"{arg_suffix}\"")
        if self.is_info:
            self.console.print(
                f"CLI Input: [yellow]{escape(terminal)} {escape(command_flag)} "
                f"\"{escape(arg_suffix)}\"[/yellow]"
            )

    def log_output(self, output: str, stream: str = "stdout"):
        """
        Log command output

        Always written to the log file; shown in the console at INFO level.

        Args:
            output: Command output (single line or multiline)
            stream: Stream name (stdout, stderr)
        """
        if not output:
            return

        for line in _ANSI_ESCAPE.sub("", output).splitlines():
            self._write(f"  [{stream}] {line}")

        if self.is_info:
            self.console.print(f"CLI Output:\n[yellow]{escape(output.rstrip())}[/yellow]")

    def log_error(self, error: str, context: Optional[str] = None):
        """
        Log an error with context

        Args:
            error: Error message
            context: Additional context (e.g., command that failed)
        """
        self.has_errors = True
        self._write(f"ERROR: {error}")
        if context:
            self._write(f"Context: {context}")

        self.console.print(f"[bold red]✗ {escape(error)}[/bold red]")
        if context:
            self.console.print(f"  [color(208)]{escape(context)}[/color(208)]")

    def log_cli_result(self, result: "CliResult"):
        """Log a CLI result: output at INFO, errors always, plus short error summaries."""
        if not result.has_error:
            self.log_output(result.output)
            return

        # There may be only an error and no output, depending on the type of error
        if result.output:
            self._write_output_even_when_quiet(result.output)

        self.log_error(f"CLI Error: {result.error.strip()}")

        if result.has_errors_found and len(result.errors_found) < MAX_LOGGED_ERROR_SUMMARIES:
            for index, err in enumerate(result.errors_found):
                self.log(f"CLI Error Summary[{index}]: {err}", "ERROR")

    def _write_output_even_when_quiet(self, output: str):
        for line in _ANSI_ESCAPE.sub("", output).splitlines():
            self._write(f"  [stdout] {line}")
        self.console.print(f"CLI Output:\n[yellow]{escape(output.rstrip())}[/yellow]")

    def close(self):
        """Close log file"""
        if self.log_file:
            self.log_file.close()
            self.log_file = None
