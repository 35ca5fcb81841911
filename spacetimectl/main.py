#!/usr/bin/env python3
"""spacetimectl - Main entry point"""

import functools
import os
import sys

from rich.console import Console
from rich.markup import escape

# Rich-Click: styled CLI help
import rich_click as click

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = False
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.MAX_WIDTH = 100

# COMMANDS: Bold cyan
click.rich_click.STYLE_COMMAND = "bold cyan"

# OPTIONS: Bold magenta
click.rich_click.STYLE_OPTION = "bold magenta"
click.rich_click.STYLE_SWITCH = "bold green"
click.rich_click.STYLE_ARGUMENT = "bold yellow"

# HEADERS: Bold cyan
click.rich_click.STYLE_HEADER_TEXT = "bold cyan"
click.rich_click.STYLE_USAGE = "bold yellow"
click.rich_click.STYLE_USAGE_COMMAND = "bold cyan"

# PANEL BORDERS: Cyan
click.rich_click.STYLE_OPTIONS_PANEL_BORDER = "cyan"
click.rich_click.STYLE_COMMANDS_PANEL_BORDER = "cyan"

from spacetimectl import __version__
from spacetimectl.commands import identities, modules, reducers, servers, status
from spacetimectl.config import load_settings
from spacetimectl.exceptions import SpacetimeCtlError

console = Console()


def handle_cli_errors(func):
    """Decorator to handle CLI errors gracefully."""
    from click.exceptions import ClickException

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ClickException as e:
            # Click's built-in exceptions (already formatted)
            e.show()
            sys.exit(e.exit_code)
        except SpacetimeCtlError as e:
            console.print(f"\n[bold red]✗ Error:[/bold red] {escape(e.message)}\n")
            if e.context:
                console.print(f"[dim]{escape(e.context)}[/dim]\n")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n\n[yellow]⚠️  Operation cancelled by user[/yellow]")
            sys.exit(130)
        except Exception as e:
            console.print(f"\n[bold red]✗ Unexpected error:[/bold red] {escape(str(e))}\n")
            if os.environ.get("DEBUG") or os.environ.get("VERBOSE"):
                import traceback

                console.print("[dim]Traceback:[/dim]")
                traceback.print_exc()
            sys.exit(1)

    return wrapper


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Config file")
@click.option("-v", "--verbose", is_flag=True, help="Echo every CLI call and its output")
@click.option("--json", "json_output", is_flag=True, help="Machine-readable output")
@click.pass_context
def cli(ctx: click.Context, config_path, verbose, json_output) -> None:
    """
    spacetimectl - drive the SpacetimeDB CLI from your terminal.

    \b
    Quick Start:
      spacetimectl install                 # Install the CLI (points at testnet)
      spacetimectl servers start           # Run a local server
      spacetimectl publish chat ./server   # Publish a module
      spacetimectl describe                # Reducers of the last publish
      spacetimectl call send_message '"hi"'
    """
    obj = ctx.ensure_object(dict)
    obj.setdefault("verbose", verbose)
    obj.setdefault("json_output", json_output)
    if "settings" not in obj:
        try:
            obj["settings"] = load_settings(config_path)
        except SpacetimeCtlError as e:
            console.print(f"[bold red]✗ {escape(e.message)}[/bold red]")
            if e.context:
                console.print(f"[dim]{escape(e.context)}[/dim]")
            ctx.exit(1)


cli.add_command(status.status)
cli.add_command(status.install)
cli.add_command(servers.servers)
cli.add_command(identities.identities)
cli.add_command(modules.publish)
cli.add_command(modules.generate)
cli.add_command(modules.logs)
cli.add_command(modules.forget)
cli.add_command(reducers.describe)
cli.add_command(reducers.call)


@handle_cli_errors
def main():
    """Main entry point with error handling."""
    cli()


if __name__ == "__main__":
    main()
