"""spacetimectl - status and install commands"""

import click

from spacetimectl.base import BaseCommand
from spacetimectl.ui_components import INSTALL_HINT, identities_table, servers_table


class StatusCommand(BaseCommand):
    """Installed CLI, servers, identities and default server reachability."""

    async def _collect(self):
        service = self.service
        installed = await service.check_installed()
        if not installed:
            return installed, None, None, None, None, None
        servers = await service.list_servers()
        default_server = await service.ensure_default_server(servers)
        identities = await service.list_identities()
        default_identity = await service.ensure_default_identity(identities)
        ping = await service.ping()
        return installed, servers, default_server, identities, default_identity, ping

    def execute(self) -> None:
        self.show_header(title="Status")
        installed, servers, default_server, identities, default_identity, ping = self.run_async(
            self._collect()
        )

        if not installed:
            if self.json_output:
                self.output_json({"installed": False}, exit_code=1)
            self.print_error("SpacetimeDB CLI not found")
            self.print_dim(INSTALL_HINT)
            raise SystemExit(1)

        if self.json_output:
            self.output_json(
                {
                    "installed": True,
                    "servers": servers.servers,
                    "default_server": default_server,
                    "identities": identities.identities,
                    "default_identity": default_identity,
                    "online": ping.is_online,
                    "host_url": ping.host_url,
                }
            )
            return

        self.print_success("SpacetimeDB CLI installed")
        if servers.has_any:
            self.console.print(servers_table(servers.servers))
        else:
            self.print_warning("No servers configured (run: spacetimectl servers list)")
        if identities.has_any:
            self.console.print(identities_table(identities.identities))
        else:
            self.print_warning("No identities yet (run: spacetimectl identities add)")

        if ping.is_online:
            self.print_success(f"Default server online: {ping.host_url or default_server}")
        else:
            self.print_warning("Default server is offline")


class InstallCommand(BaseCommand):
    """Install the SpacetimeDB CLI and point it at testnet."""

    def execute(self) -> None:
        self.show_header(title="Install SpacetimeDB CLI")
        outcome = self.run_async(self.service.install_and_configure())

        if self.json_output:
            self.output_json(
                {
                    "installed": outcome.already_installed or outcome.install.is_installed,
                    "already_installed": outcome.already_installed,
                    "needs_restart": outcome.needs_restart,
                    "install_dir": outcome.install.install_dir,
                },
                exit_code=0 if outcome.is_ready or outcome.needs_restart else 1,
            )
            return

        if outcome.already_installed:
            self.print_success("SpacetimeDB CLI is already installed")
            return
        if not outcome.install.is_installed:
            self.exit_with_error("Failed to install SpacetimeDB CLI", outcome.install.result.error)
        if outcome.needs_restart:
            self.print_warning(
                "Installed SpacetimeDB CLI, but it is not on PATH yet. "
                "Restart your shell to pick it up."
            )
            return
        self.print_success(f"Installed SpacetimeDB CLI to {outcome.install.install_dir}")
        self.print_success(f"Default server set to {self.settings.testnet_server_name}")


@click.command()
@click.pass_obj
def status(obj):
    """
    Show CLI install state, servers and identities
    """
    StatusCommand.from_context(obj).run()


@click.command()
@click.pass_obj
def install(obj):
    """
    Install the SpacetimeDB CLI

    Installs with the platform installer, validates the new binary
    and sets testnet as the default server.
    """
    InstallCommand.from_context(obj).run()
