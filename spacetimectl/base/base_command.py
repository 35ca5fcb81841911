"""
Base Command Class

Abstract base for all spacetimectl commands.
Provides the service, console output helpers and error handling.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Awaitable, Dict, Optional, TypeVar

from rich.console import Console
from rich.markup import escape

from spacetimectl.config import Settings
from spacetimectl.exceptions import SpacetimeCtlError
from spacetimectl.logger import CliLogger, CliLogLevel
from spacetimectl.services import SpacetimeService
from spacetimectl.state import PublishCache
from spacetimectl.ui_components import show_header

T = TypeVar("T")


def to_jsonable(value: Any) -> Any:
    """Dataclasses, enums and datetimes to plain JSON types."""
    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


class BaseCommand(ABC):
    """
    Abstract base command class.

    Provides:
    - Lazily created SpacetimeService and publish cache
    - Header display and colored messages
    - JSON output support
    - Consistent error handling and exit codes
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        verbose: bool = False,
        json_output: bool = False,
        service: Optional[SpacetimeService] = None,
    ):
        self.settings = settings or Settings()
        self.verbose = verbose
        self.json_output = json_output
        self.console = Console()
        self._service = service
        self.logger: Optional[CliLogger] = None

    @classmethod
    def from_context(cls, obj: Optional[Dict[str, Any]], **kwargs) -> "BaseCommand":
        """Build from the click context object set up by the root group."""
        obj = obj or {}
        return cls(
            settings=obj.get("settings"),
            verbose=obj.get("verbose", False),
            json_output=obj.get("json_output", False),
            service=obj.get("service"),
            **kwargs,
        )

    @property
    def service(self) -> SpacetimeService:
        if self._service is None:
            if self.json_output:
                level = CliLogLevel.ERROR
            elif self.verbose:
                level = CliLogLevel.INFO
            else:
                level = self.settings.cli_log_level
            self.logger = CliLogger(
                operation=type(self).__name__.replace("Command", "").lower() or "cli",
                level=level,
                log_dir=self.settings.log_dir_path,
            )
            self._service = SpacetimeService(self.settings, logger=self.logger)
        return self._service

    @property
    def publish_cache(self) -> PublishCache:
        return PublishCache(self.settings.state_file)

    def run_async(self, coro: Awaitable[T]) -> T:
        """Run a service coroutine to completion."""
        return asyncio.run(coro)

    def output_json(self, data: Any, exit_code: int = 0) -> None:
        """
        Output data as JSON and exit on error.

        Args:
            data: Data to output (dataclasses are converted)
            exit_code: Exit code (0 for success, non-zero for error)
        """
        print(json.dumps(to_jsonable(data), indent=2))
        if exit_code != 0:
            raise SystemExit(exit_code)

    def show_header(
        self, title: str, subtitle: Optional[str] = None, details: Optional[dict] = None
    ) -> None:
        """Show command header (skip in JSON mode)."""
        if not self.json_output:
            show_header(title=title, subtitle=subtitle, details=details, console=self.console)

    def print_success(self, message: str) -> None:
        """Print success message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[green]✓ {escape(message)}[/green]")

    def print_error(self, message: str) -> None:
        """Print error message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[red]✗ {escape(message)}[/red]")

    def print_warning(self, message: str) -> None:
        """Print warning message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[yellow]⚠ {escape(message)}[/yellow]")

    def print_dim(self, message: str) -> None:
        """Print dim message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[dim]{escape(message)}[/dim]")

    def exit_with_error(self, message: str, details: Optional[str] = None, code: int = 1) -> None:
        """
        Report an error (JSON or console) and exit.

        Args:
            message: Error message
            details: Optional CLI error text
            code: Exit code
        """
        if self.json_output:
            payload: Dict[str, Any] = {"error": message}
            if details:
                payload["details"] = details.strip()
            self.output_json(payload, exit_code=code)
        self.print_error(message)
        if details:
            self.print_dim(details.strip())
        raise SystemExit(code)

    @abstractmethod
    def execute(self, **kwargs) -> None:
        """
        Execute command logic.

        Must be implemented by subclasses.
        """

    def run(self, **kwargs) -> None:
        """
        Run command with error handling.

        Args:
            **kwargs: Command arguments
        """
        try:
            self.execute(**kwargs)
        except KeyboardInterrupt:
            self.console.print("\n[yellow]⚠️  Operation cancelled by user[/yellow]")
            raise SystemExit(130)
        except SystemExit:
            raise
        except SpacetimeCtlError as e:
            if self.json_output:
                self.output_json({"error": e.message, "details": e.context}, exit_code=1)
            self.console.print(f"\n[bold red]✗ {escape(e.message)}[/bold red]")
            if e.context:
                self.console.print(f"[dim]{escape(e.context)}[/dim]")
            if self.logger and self.logger.log_path:
                self.console.print(f"\n[dim]Logs saved to:[/dim] {self.logger.log_path}\n")
            raise SystemExit(1)
        finally:
            if self.logger:
                self.logger.close()
