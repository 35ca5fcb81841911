"""
spacetimectl - UI Components
Standardized headers, tables and remediation hints
"""

from typing import Dict, Iterable, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from spacetimectl.constants import (
    DOCS_URL,
    DOTNET_INSTALL_URL,
    INSTALL_WASM_OPT_URL,
    MODULE_DOCS_URL,
)
from spacetimectl.models import IdentityRecord, PublishErrorKind, ReducerInfo, ServerRecord

LOGO = "spacetimectl"

# Color scheme
BRAND_COLOR = "cyan"
SUCCESS_COLOR = "green"
WARNING_COLOR = "yellow"
ERROR_COLOR = "red"

PUBLISH_ERROR_HINTS: Dict[PublishErrorKind, str] = {
    PublishErrorKind.RUNTIME_PREREQUISITE_MISSING: (
        f"Install the .NET 8 SDK, then publish again: {DOTNET_INSTALL_URL}"
    ),
    PublishErrorKind.INVALID_PROJECT_DIRECTORY: (
        f"The project path does not contain a server module project. See {MODULE_DOCS_URL}"
    ),
    PublishErrorKind.PERMISSION_DENIED_ON_UPDATE: (
        "The selected identity does not own this module. "
        "Pick the owning identity or publish under a new module name."
    ),
    PublishErrorKind.UNCLASSIFIED: "See the CLI error above for details.",
}

WASM_OPT_HINT = f"Published without wasm-opt; install it for smaller modules: {INSTALL_WASM_OPT_URL}"
INSTALL_HINT = f"Install the SpacetimeDB CLI with `spacetimectl install` or see {DOCS_URL}"


def show_header(
    title: str,
    subtitle: Optional[str] = None,
    details: Optional[dict] = None,
    console: Optional[Console] = None,
):
    """
    Display a standardized command header.

    Args:
        title: Main title (e.g., "Publish", "Servers")
        subtitle: Optional subtitle line
        details: Additional key-value pairs to display
        console: Rich Console instance (creates new if None)
    """
    if console is None:
        console = Console()

    prefix = f" [bold color(214)]{LOGO}[/bold color(214)] [dim]›[/dim]"
    console.print(f"{prefix} [bold white]{escape(title)}[/bold white]")
    if subtitle:
        console.print(f"{prefix} [dim]{escape(subtitle)}[/dim]")
    if details:
        for key, value in details.items():
            console.print(f"{prefix} {escape(str(key))}: [cyan]{escape(str(value))}[/cyan]")
    console.print()


def servers_table(servers: Iterable[ServerRecord]) -> Table:
    table = Table(title="Servers", title_justify="left", padding=(0, 1))
    table.add_column("Default", justify="center")
    table.add_column("Nickname", style="cyan", no_wrap=True)
    table.add_column("Host")
    for server in servers:
        table.add_row(
            "[green]***[/green]" if server.is_default else "",
            escape(server.nickname),
            escape(server.host_url),
        )
    return table


def identities_table(identities: Iterable[IdentityRecord]) -> Table:
    table = Table(title="Identities", title_justify="left", padding=(0, 1))
    table.add_column("Default", justify="center")
    table.add_column("Nickname", style="cyan", no_wrap=True)
    table.add_column("Identity", style="dim")
    table.add_column("Email")
    for identity in identities:
        table.add_row(
            "[green]***[/green]" if identity.is_default else "",
            escape(identity.nickname),
            escape(identity.identity),
            escape(identity.email),
        )
    return table


def reducers_table(reducers: Iterable[ReducerInfo]) -> Table:
    table = Table(title="Reducers", title_justify="left", padding=(0, 1))
    table.add_column("Reducer", style="cyan", no_wrap=True)
    table.add_column("Arity", justify="right")
    table.add_column("Arguments", style="dim")
    for reducer in reducers:
        table.add_row(
            escape(reducer.name),
            str(reducer.arity),
            escape(", ".join(reducer.syntax_hints())),
        )
    return table
