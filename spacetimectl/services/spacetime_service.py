"""
SpacetimeDB Service

High-level CLI actions. Each one builds a fixed command, runs it through
the process runner (with automatic recovery) and parses the result.
"""

import asyncio
from typing import Optional

from spacetimectl import parsers
from spacetimectl.cancellation import CancelToken
from spacetimectl.config import Settings
from spacetimectl.constants import MAX_AUTO_RETRIES
from spacetimectl.exceptions import InstallError, LocalServerStopError
from spacetimectl.logger import CliLogger
from spacetimectl.models import (
    AddIdentityOutcome,
    AddIdentityRequest,
    AddServerOutcome,
    AddServerRequest,
    CallReducerRequest,
    CliInvocation,
    CliResult,
    DatabaseAddressesResult,
    EntityStructureResult,
    GenerateOutcome,
    GenerateRequest,
    IdentityListing,
    IdentityRecord,
    InstallConfigureOutcome,
    InstallOutcome,
    PingOutcome,
    PublishOutcome,
    PublishRequest,
    ReducerInfo,
    ServerListing,
    ServerRecord,
)
from spacetimectl.platforms import PlatformStrategy, detect_platform
from spacetimectl.services.process_runner import ProcessRunner
from spacetimectl.services.recovery import ErrorRecoveryPolicy, RecoveryContext


class SpacetimeService:
    """
    Typed wrapper around the `spacetime` command line tool.

    All actions are coroutines. CLI-reported failures come back inside the
    returned result; only process-level problems raise.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runner: Optional[ProcessRunner] = None,
        platform: Optional[PlatformStrategy] = None,
        logger: Optional[CliLogger] = None,
    ):
        self.settings = settings or Settings()
        # Only a logger built here is ours to close
        self._owns_logger = logger is None
        self.logger = logger or CliLogger(
            level=self.settings.cli_log_level, log_dir=self.settings.log_dir_path
        )
        if platform is None:
            platform = runner.platform if runner is not None else detect_platform()
        self.platform = platform
        self.runner = runner or ProcessRunner(
            platform,
            self.logger,
            poll_interval=self.settings.poll_interval,
            terminate_grace_period=self.settings.terminate_grace_period,
        )
        self.recovery = ErrorRecoveryPolicy(self.logger, self.settings.local_server_name)

    def close(self) -> None:
        """Close the log file of a logger this service created for itself."""
        if self._owns_logger:
            self.logger.close()

    def _cmd(self, args: str) -> str:
        return f"{self.settings.program} {args}"

    def _q(self, value: str) -> str:
        return self.platform.quote(str(value))

    async def run_cli(
        self,
        arg_suffix: str,
        cancel_token: Optional[CancelToken] = None,
        context: Optional[RecoveryContext] = None,
        run_in_background: bool = False,
        recover: bool = True,
    ) -> CliResult:
        """
        Run a command, recovering from known transient failures.

        Args:
            arg_suffix: Full command line run inside the platform terminal
            cancel_token: Optional cancellation signal
            context: Recovery state of the calling top-level invocation;
                a fresh one is created for top-level calls
            run_in_background: Return immediately, leaving the child running
            recover: Set False for probes (pings) that must not trigger repairs

        Returns:
            The last result: the retried command's when a retry happened
        """
        context = context or RecoveryContext()
        invocation = CliInvocation(arg_suffix, cancel_token, run_in_background)
        result = await self.runner.run(invocation)

        retries = 0
        while recover and retries < MAX_AUTO_RETRIES and self.recovery.match(result):
            if not await self.recovery.resolve(result, context, self):
                break
            retries += 1
            result = await self.runner.run(invocation)

        return result

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    async def check_installed(self, context: Optional[RecoveryContext] = None) -> bool:
        result = await self.run_cli(self._cmd("version"), context=context, recover=False)
        return parsers.parse_install_check(result)

    async def install(self) -> InstallOutcome:
        """
        Install the CLI with the platform's installer.

        Raises:
            UnsupportedPlatformError: If the OS has no install command
        """
        result = await self.run_cli(self.platform.install_command(), recover=False)
        outcome = parsers.parse_install(result, self.platform)
        if outcome.is_installed:
            self.logger.log(f"Installed SpacetimeDB CLI to {outcome.install_dir}")
        return outcome

    async def install_and_configure(self) -> InstallConfigureOutcome:
        """
        Install the CLI if missing, then point it at testnet.

        A CLI that installs fine but still cannot be found is reported as
        `needs_restart` (the new PATH is not visible to this process tree).

        Raises:
            InstallError: If post-install configuration fails
        """
        if await self.check_installed():
            installed = InstallOutcome(result=CliResult(), is_installed=True)
            return InstallConfigureOutcome(install=installed, already_installed=True)

        outcome = await self.install()
        if not outcome.is_installed:
            return InstallConfigureOutcome(install=outcome)

        if outcome.install_dir:
            self.runner.path_override = outcome.install_dir

        check = await self.run_cli(self._cmd("version"), recover=False)
        if check.has_error:
            if parsers.is_command_not_found(check.error, self.settings.program):
                self.logger.log_warning(
                    "Installed, but the CLI is not on PATH yet: restart your shell"
                )
                return InstallConfigureOutcome(install=outcome, needs_restart=True)
            raise InstallError("Installed CLI failed validation", context=check.error.strip())

        testnet = self.settings.testnet_server_name
        # Local needs a running server for its fingerprint, so only testnet here
        fingerprint = await self.create_fingerprint(testnet)
        if fingerprint.has_error:
            raise InstallError(
                f"Failed to set default fingerprint for `{testnet}`",
                context=fingerprint.error.strip(),
            )

        default = await self.set_default_server(testnet)
        if default.has_error:
            raise InstallError(
                f"Failed to set default server to `{testnet}` after a new install",
                context=default.error.strip(),
            )

        return InstallConfigureOutcome(install=outcome)

    # ------------------------------------------------------------------
    # Servers
    # ------------------------------------------------------------------

    async def list_servers(self) -> ServerListing:
        result = await self.run_cli(self._cmd("server list"))
        return parsers.parse_servers(result)

    async def add_server(self, request: AddServerRequest) -> AddServerOutcome:
        flags = ""
        if request.set_default:
            flags += " --default"
        if request.no_fingerprint:
            flags += " --no-fingerprint"
        result = await self.run_cli(
            self._cmd(f"server add {self._q(request.host_url)} {self._q(request.nickname)}{flags}")
        )
        return parsers.parse_add_server(result)

    async def set_default_server(self, server_name: str) -> CliResult:
        return await self.run_cli(self._cmd(f"server set-default {self._q(server_name)}"))

    async def ensure_default_server(self, listing: ServerListing) -> Optional[ServerRecord]:
        """
        Make sure one server is marked default.

        When servers exist but none is default, the first one is set as
        default through the CLI.

        Returns:
            The default server, or None if there are no servers
        """
        if not listing.has_any:
            return None
        if listing.has_default:
            return listing.default

        first = listing.servers[0]
        self.logger.log_warning(f"No default server found, defaulting to `{first.nickname}`")
        result = await self.set_default_server(first.nickname)
        if result.has_error:
            self.logger.log_warning(f"Could not set `{first.nickname}` as default server")
        return ServerRecord(nickname=first.nickname, host_url=first.host_url, is_default=True)

    async def regenerate_default_servers(self) -> ServerListing:
        """Re-add `local` and `testnet` (testnet last so it ends up default)."""
        s = self.settings
        await self.add_server(AddServerRequest(s.local_server_name, s.local_host_url))
        await self.add_server(AddServerRequest(s.testnet_server_name, s.testnet_host_url))
        return await self.list_servers()

    async def create_fingerprint(
        self, server_name: str, context: Optional[RecoveryContext] = None
    ) -> CliResult:
        return await self.run_cli(
            self._cmd(f"server fingerprint {self._q(server_name)} --force"), context=context
        )

    async def ping(
        self,
        server_name: Optional[str] = None,
        timeout: Optional[float] = None,
        cancel_token: Optional[CancelToken] = None,
        context: Optional[RecoveryContext] = None,
    ) -> PingOutcome:
        """
        Ping a server (the default one when no name is given).

        Args:
            server_name: Server nickname or URL
            timeout: Deadline in seconds (defaults to settings.ping_timeout)
            cancel_token: Optional parent cancellation
            context: Recovery state when called during recovery
        """
        suffix = "server ping" if not server_name else f"server ping {self._q(server_name)}"
        token = CancelToken.with_timeout(
            self.settings.ping_timeout if timeout is None else timeout, parent=cancel_token
        )
        try:
            result = await self.run_cli(
                self._cmd(suffix), cancel_token=token, context=context, recover=False
            )
        finally:
            token.dispose()
        return parsers.parse_ping(result)

    async def ping_until_online(
        self,
        server_name: Optional[str] = None,
        timeout: Optional[float] = None,
        cancel_token: Optional[CancelToken] = None,
        context: Optional[RecoveryContext] = None,
    ) -> PingOutcome:
        """
        Ping repeatedly until the server answers or the deadline passes.

        Each attempt gets `ping_iteration_timeout`; the overall deadline
        defaults to `ping_timeout`.

        Returns:
            The first online ping, or an offline "Canceled" outcome on timeout
        """
        overall = CancelToken.with_timeout(
            self.settings.ping_timeout if timeout is None else timeout, parent=cancel_token
        )
        try:
            while not overall.cancelled:
                outcome = await self.ping(
                    server_name,
                    timeout=self.settings.ping_iteration_timeout,
                    cancel_token=overall,
                    context=context,
                )
                if outcome.is_online:
                    return outcome
                if not overall.cancelled:
                    await asyncio.sleep(self.settings.poll_interval)
        finally:
            overall.dispose()

        return parsers.parse_ping(CliResult.cancelled())

    async def start_local_server_and_wait(
        self, context: Optional[RecoveryContext] = None
    ) -> PingOutcome:
        """Start `spacetime start` detached, then wait for it to answer pings."""
        self.runner.run_detached(self._cmd("start"))
        return await self.ping_until_online(
            self.settings.local_server_name,
            timeout=self.settings.server_start_timeout,
            context=context,
        )

    async def force_stop_local_server(self, port: Optional[int] = None) -> CliResult:
        """
        Kill whatever listens on the local server port.

        Raises:
            LocalServerStopError: If the kill command reported an error
        """
        port = port or self.settings.default_port
        result = await self.run_cli(self.platform.kill_by_port_command(port), recover=False)
        if result.has_error:
            raise LocalServerStopError(port, result.error)
        return result

    # ------------------------------------------------------------------
    # Identities
    # ------------------------------------------------------------------

    async def list_identities(self) -> IdentityListing:
        result = await self.run_cli(self._cmd("identity list"))
        return parsers.parse_identities(result)

    async def add_identity(self, request: AddIdentityRequest) -> AddIdentityOutcome:
        result = await self.run_cli(
            self._cmd(
                f"identity new --name {self._q(request.nickname)} --email {self._q(request.email)}"
            )
        )
        return parsers.parse_add_identity(result)

    async def set_default_identity(self, identity: str) -> CliResult:
        return await self.run_cli(self._cmd(f"identity set-default {self._q(identity)}"))

    async def ensure_default_identity(self, listing: IdentityListing) -> Optional[IdentityRecord]:
        """Same repair as `ensure_default_server`, for identities."""
        if not listing.has_any:
            return None
        if listing.has_default:
            return listing.default

        first = listing.identities[0]
        self.logger.log_warning(f"No default identity found, defaulting to `{first.nickname}`")
        result = await self.set_default_identity(first.nickname)
        if result.has_error:
            self.logger.log_warning(f"Could not set `{first.nickname}` as default identity")
        return IdentityRecord(
            nickname=first.nickname,
            is_default=True,
            identity=first.identity,
            email=first.email,
        )

    async def list_database_addresses(self, identity: str) -> DatabaseAddressesResult:
        result = await self.run_cli(self._cmd(f"list {self._q(identity)}"))
        return parsers.parse_database_addresses(result)

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    async def publish(
        self, request: PublishRequest, cancel_token: Optional[CancelToken] = None
    ) -> PublishOutcome:
        flags = ""
        if request.clear_data:
            flags += " --clear-database"
        if request.debug_mode:
            flags += " --debug"
        result = await self.run_cli(
            self._cmd(
                f"publish{flags} --project-path {self._q(request.project_path)} "
                f"{self._q(request.module_name)}"
            ),
            cancel_token=cancel_token,
        )
        return parsers.parse_publish(request, result)

    async def generate_client_files(self, request: GenerateRequest) -> GenerateOutcome:
        suffix = (
            f"generate --lang {self._q(request.language)} --out-dir {self._q(request.out_dir)} "
            f"--project-path {self._q(request.project_path)}"
        )
        if request.delete_outdated_files:
            suffix += " --delete-files"
        result = await self.run_cli(self._cmd(suffix))
        return parsers.parse_generate(request, result)

    async def describe_module(
        self, module_name: str, as_identity: Optional[str] = None
    ) -> EntityStructureResult:
        """[Slow] Reducers and tables of a published module."""
        suffix = f"describe {self._q(module_name)}"
        if as_identity:
            suffix += f" --as-identity {self._q(as_identity)}"
        result = await self.run_cli(self._cmd(suffix))
        return parsers.parse_entity_structure(result)

    async def get_logs(self, module_name: str) -> CliResult:
        return await self.run_cli(self._cmd(f"logs {self._q(module_name)}"))

    async def call_reducer(
        self, request: CallReducerRequest, reducer: Optional[ReducerInfo] = None
    ) -> CliResult:
        """
        Call a reducer on a published module.

        `request.args` is passed through as typed so multiple JSON
        arguments keep their own quoting. When `reducer` is known, a call
        missing required arguments is refused without running the CLI.
        """
        if reducer is not None and not reducer.accepts_input(request.args):
            return CliResult(
                error=(
                    f"Reducer `{reducer.name}` expects {reducer.arity} argument(s): "
                    f"{', '.join(reducer.syntax_hints())}"
                )
            )

        suffix = "call"
        if request.as_identity:
            suffix += f" --as-identity {self._q(request.as_identity)}"
        suffix += f" {self._q(request.module_name)} {self._q(request.reducer_name)}"
        if request.args and request.args.strip():
            suffix += f" {request.args.strip()}"
        return await self.run_cli(self._cmd(suffix))
