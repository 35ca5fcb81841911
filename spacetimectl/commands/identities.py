"""spacetimectl - identities commands"""

from typing import Optional

import click

from spacetimectl.base import BaseCommand
from spacetimectl.models import AddIdentityErrorKind, AddIdentityRequest
from spacetimectl.ui_components import identities_table


class IdentitiesListCommand(BaseCommand):
    async def _list(self):
        listing = await self.service.list_identities()
        default = await self.service.ensure_default_identity(listing)
        return listing, default

    def execute(self) -> None:
        listing, default = self.run_async(self._list())

        if listing.result.has_error and not listing.has_any:
            self.exit_with_error("Failed to list identities", listing.result.error)

        if self.json_output:
            self.output_json({"identities": listing.identities, "default": default})
            return

        self.show_header(title="Identities")
        if not listing.has_any:
            self.print_warning("No identities yet (run: spacetimectl identities add NICKNAME EMAIL)")
            return
        self.console.print(identities_table(listing.identities))
        if listing.found_but_no_default and default is not None:
            self.print_warning(f"No default identity was set; now using {default.nickname}")


class IdentitiesAddCommand(BaseCommand):
    def execute(self, nickname: str, email: str, set_default: bool) -> None:
        outcome = self.run_async(
            self.service.add_identity(AddIdentityRequest(nickname=nickname, email=email))
        )
        if outcome.error_kind == AddIdentityErrorKind.IDENTITY_ALREADY_EXISTS:
            self.exit_with_error(f"Identity {nickname} already exists", outcome.result.error)
        if not outcome.is_success:
            self.exit_with_error(f"Failed to add identity {nickname}", outcome.result.error)

        if set_default:
            result = self.run_async(self.service.set_default_identity(nickname))
            if result.has_error:
                self.exit_with_error(f"Added {nickname}, but could not make it default", result.error)

        if self.json_output:
            self.output_json({"added": nickname, "email": email, "default": set_default})
            return
        self.print_success(f"Added identity {nickname}")


class IdentitiesSetDefaultCommand(BaseCommand):
    def execute(self, name: str) -> None:
        result = self.run_async(self.service.set_default_identity(name))
        if result.has_error:
            self.exit_with_error(f"Failed to set default identity to {name}", result.error)
        if self.json_output:
            self.output_json({"default": name})
            return
        self.print_success(f"Default identity set to {name}")


class IdentitiesDatabasesCommand(BaseCommand):
    """Database addresses owned by an identity (default identity when omitted)."""

    async def _addresses(self, identity: Optional[str]):
        if not identity:
            listing = await self.service.list_identities()
            default = await self.service.ensure_default_identity(listing)
            if default is None:
                return None, None
            identity = default.identity or default.nickname
        return identity, await self.service.list_database_addresses(identity)

    def execute(self, identity: Optional[str]) -> None:
        identity, result = self.run_async(self._addresses(identity))
        if result is None:
            self.exit_with_error("No identity to list databases for")
        if result.result.has_error:
            self.exit_with_error(f"Failed to list databases for {identity}", result.result.error)

        if self.json_output:
            self.output_json({"identity": identity, "addresses": result.addresses})
            return

        self.show_header(title="Databases", details={"Identity": identity})
        if not result.has_addresses:
            self.print_warning("No databases published by this identity")
            return
        for address in result.addresses:
            self.console.print(f"  {address}")


@click.group()
def identities():
    """
    Manage SpacetimeDB identities
    """


@identities.command("list")
@click.pass_obj
def identities_list(obj):
    """
    List identities
    """
    IdentitiesListCommand.from_context(obj).run()


@identities.command("add")
@click.argument("nickname")
@click.argument("email")
@click.option("--default/--no-default", "set_default", default=True, help="Make it the default identity")
@click.pass_obj
def identities_add(obj, nickname, email, set_default):
    """
    Create a new identity
    """
    IdentitiesAddCommand.from_context(obj).run(nickname=nickname, email=email, set_default=set_default)


@identities.command("set-default")
@click.argument("name")
@click.pass_obj
def identities_set_default(obj, name):
    """
    Set the default identity
    """
    IdentitiesSetDefaultCommand.from_context(obj).run(name=name)


@identities.command("databases")
@click.argument("identity", required=False)
@click.pass_obj
def identities_databases(obj, identity):
    """
    List database addresses owned by an identity
    """
    IdentitiesDatabasesCommand.from_context(obj).run(identity=identity)
