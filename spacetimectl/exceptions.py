"""
spacetimectl Exception Hierarchy

Clean exception hierarchy for consistent error handling across the runner,
the service layer and the command line front end.

CLI-reported failures are never raised: they travel inside CliResult.
"""

from typing import Optional


class SpacetimeCtlError(Exception):
    """Base exception for all spacetimectl errors."""

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with optional context."""
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class ConfigurationError(SpacetimeCtlError):
    """Raised when configuration is invalid or missing."""

    pass


class ProcessStartError(SpacetimeCtlError):
    """Raised when the terminal process could not be started."""

    pass


class UnsupportedPlatformError(SpacetimeCtlError):
    """Raised when an operation has no command for the current OS."""

    def __init__(self, platform_name: str, operation: Optional[str] = None):
        self.platform_name = platform_name
        self.operation = operation
        if operation:
            message = f"'{operation}' is not supported on {platform_name}"
        else:
            message = f"Unsupported OS: {platform_name}"
        super().__init__(message)


class LocalServerStopError(SpacetimeCtlError):
    """Raised when the local server could not be stopped by port."""

    def __init__(self, port: int, cli_error: str):
        self.port = port
        self.cli_error = cli_error
        super().__init__(
            f"Failed to stop local server on port {port}", context=cli_error.strip()
        )


class InstallError(SpacetimeCtlError):
    """Raised when installing or configuring the SpacetimeDB CLI fails."""

    pass


class StateError(SpacetimeCtlError):
    """Raised when the publish cache cannot be read or written."""

    pass
