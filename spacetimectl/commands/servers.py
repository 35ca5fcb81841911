"""spacetimectl - servers commands"""

from typing import Optional

import click

from spacetimectl.base import BaseCommand
from spacetimectl.models import AddServerRequest
from spacetimectl.ui_components import servers_table


class ServersListCommand(BaseCommand):
    """List servers, restoring the defaults when none exist."""

    async def _list(self):
        listing = await self.service.list_servers()
        if not listing.has_any and not listing.result.has_error:
            self.print_warning("No servers found, re-adding local and testnet")
            listing = await self.service.regenerate_default_servers()
        default = await self.service.ensure_default_server(listing)
        return listing, default

    def execute(self) -> None:
        listing, default = self.run_async(self._list())

        if listing.result.has_error and not listing.has_any:
            self.exit_with_error("Failed to list servers", listing.result.error)

        if self.json_output:
            self.output_json({"servers": listing.servers, "default": default})
            return

        self.show_header(title="Servers")
        self.console.print(servers_table(listing.servers))
        if listing.found_but_no_default and default is not None:
            self.print_warning(f"No default server was set; now using {default.nickname}")


class ServersAddCommand(BaseCommand):
    def execute(self, url: str, nickname: str, set_default: bool, fingerprint: bool) -> None:
        request = AddServerRequest(
            nickname=nickname, host_url=url, set_default=set_default, no_fingerprint=not fingerprint
        )
        outcome = self.run_async(self.service.add_server(request))
        if not outcome.is_success:
            self.exit_with_error(f"Failed to add server {nickname}", outcome.result.error)
        if self.json_output:
            self.output_json({"added": nickname, "host_url": url, "default": set_default})
            return
        self.print_success(f"Added server {nickname} ({url})")


class ServersSetDefaultCommand(BaseCommand):
    def execute(self, name: str) -> None:
        result = self.run_async(self.service.set_default_server(name))
        if result.has_error:
            self.exit_with_error(f"Failed to set default server to {name}", result.error)
        if self.json_output:
            self.output_json({"default": name})
            return
        self.print_success(f"Default server set to {name}")


class ServersPingCommand(BaseCommand):
    def execute(self, name: Optional[str], timeout: Optional[float], wait: bool) -> None:
        if wait:
            outcome = self.run_async(self.service.ping_until_online(name, timeout=timeout))
        else:
            outcome = self.run_async(self.service.ping(name, timeout=timeout))

        if self.json_output:
            self.output_json(
                {
                    "online": outcome.is_online,
                    "host_url": outcome.host_url,
                    "port": outcome.port,
                    "connection_refused": outcome.is_connection_refused,
                },
                exit_code=0 if outcome.is_online else 1,
            )
            return

        label = name or "default server"
        if outcome.is_online:
            self.print_success(f"{label} is online {outcome.host_url}".rstrip())
            return
        reason = "connection refused" if outcome.is_connection_refused else "no response"
        self.exit_with_error(f"{label} is offline ({reason})")


class ServersStartCommand(BaseCommand):
    def execute(self) -> None:
        outcome = self.run_async(self.service.start_local_server_and_wait())
        if self.json_output:
            self.output_json(
                {"online": outcome.is_online, "host_url": outcome.host_url},
                exit_code=0 if outcome.is_online else 1,
            )
            return
        if not outcome.is_online:
            self.exit_with_error(
                f"Local server did not come online within {self.settings.server_start_timeout}s"
            )
        self.print_success(f"Local server online {outcome.host_url}".rstrip())


class ServersStopCommand(BaseCommand):
    def execute(self, port: Optional[int]) -> None:
        port = port or self.settings.default_port
        self.run_async(self.service.force_stop_local_server(port))
        if self.json_output:
            self.output_json({"stopped": True, "port": port})
            return
        self.print_success(f"Stopped local server on port {port}")


class ServersFingerprintCommand(BaseCommand):
    def execute(self, name: str) -> None:
        result = self.run_async(self.service.create_fingerprint(name))
        if result.has_error:
            self.exit_with_error(f"Failed to save fingerprint for {name}", result.error)
        if self.json_output:
            self.output_json({"fingerprint": name})
            return
        self.print_success(f"Saved fingerprint for {name}")


@click.group()
def servers():
    """
    Manage SpacetimeDB servers
    """


@servers.command("list")
@click.pass_obj
def servers_list(obj):
    """
    List servers (re-adds local and testnet when none exist)
    """
    ServersListCommand.from_context(obj).run()


@servers.command("add")
@click.argument("url")
@click.argument("nickname")
@click.option("--default/--no-default", "set_default", default=True, help="Make it the default server")
@click.option("--fingerprint", is_flag=True, help="Fetch the server fingerprint now")
@click.pass_obj
def servers_add(obj, url, nickname, set_default, fingerprint):
    """
    Register a server
    """
    ServersAddCommand.from_context(obj).run(
        url=url, nickname=nickname, set_default=set_default, fingerprint=fingerprint
    )


@servers.command("set-default")
@click.argument("name")
@click.pass_obj
def servers_set_default(obj, name):
    """
    Set the default server
    """
    ServersSetDefaultCommand.from_context(obj).run(name=name)


@servers.command("ping")
@click.argument("name", required=False)
@click.option("--timeout", type=float, help="Deadline in seconds")
@click.option("--wait", is_flag=True, help="Keep pinging until online or timed out")
@click.pass_obj
def servers_ping(obj, name, timeout, wait):
    """
    Check whether a server is online
    """
    ServersPingCommand.from_context(obj).run(name=name, timeout=timeout, wait=wait)


@servers.command("start")
@click.pass_obj
def servers_start(obj):
    """
    Start the local server in the background
    """
    ServersStartCommand.from_context(obj).run()


@servers.command("stop")
@click.option("--port", type=int, help="Port the local server listens on")
@click.pass_obj
def servers_stop(obj, port):
    """
    Force-stop the local server by port
    """
    ServersStopCommand.from_context(obj).run(port=port)


@servers.command("fingerprint")
@click.argument("name")
@click.pass_obj
def servers_fingerprint(obj, name):
    """
    Save (and overwrite) a server fingerprint
    """
    ServersFingerprintCommand.from_context(obj).run(name=name)
