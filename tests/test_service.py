from __future__ import annotations

import asyncio
import io

import pytest
from rich.console import Console

from spacetimectl.exceptions import InstallError, LocalServerStopError, UnsupportedPlatformError
from spacetimectl.logger import CliLogger, CliLogLevel
from spacetimectl.models import (
    AddIdentityRequest,
    AddServerRequest,
    CallReducerRequest,
    CliResult,
    GenerateRequest,
    PublishErrorKind,
    PublishRequest,
    ReducerArg,
    ReducerInfo,
)
from spacetimectl.platforms import MacOSPlatform
from spacetimectl.services import SpacetimeService

from .conftest import FakeRunner

SERVERS_NO_DEFAULT = (
    " DEFAULT  HOSTNAME  PROTOCOL  NICKNAME\n"
    "          127.0.0.1:3000  http  local\n"
    "          testnet.spacetimedb.com  https  testnet\n"
)
NOT_FOUND = CliResult(error="/bin/bash: line 1: spacetime: command not found")


def test_publish_builds_command_with_flags(service, fake_runner):
    suffix = "spacetime publish --clear-database --debug --project-path '/work/my server' chat"
    fake_runner.script(suffix, CliResult(output="Created new database with address: 93dda09db9a56d8fa6c024d843e805d8"))
    request = PublishRequest("chat", "/work/my server", clear_data=True, debug_mode=True)

    outcome = asyncio.run(service.publish(request))

    assert fake_runner.calls == [suffix]
    assert outcome.is_success
    assert outcome.database_address == "93dda09db9a56d8fa6c024d843e805d8"


def test_publish_failure_is_classified(service, fake_runner):
    fake_runner.script(
        "spacetime publish --project-path /work/server chat",
        CliResult(error="You must install or update .NET to run this application."),
    )

    outcome = asyncio.run(service.publish(PublishRequest("chat", "/work/server")))

    assert not outcome.is_success
    assert outcome.error_kind == PublishErrorKind.RUNTIME_PREREQUISITE_MISSING


def test_generate_command(service, fake_runner):
    request = GenerateRequest(project_path="/work/server", out_dir="/work/client")

    outcome = asyncio.run(service.generate_client_files(request))

    assert fake_runner.calls == [
        "spacetime generate --lang csharp --out-dir /work/client --project-path /work/server --delete-files"
    ]
    assert outcome.is_success


def test_simple_command_templates(service, fake_runner):
    async def run_all():
        await service.check_installed()
        await service.list_servers()
        await service.list_database_addresses("c200")
        await service.describe_module("chat", as_identity="alice")
        await service.get_logs("chat")
        await service.set_default_identity("alice")
        await service.set_default_server("testnet")
        await service.create_fingerprint("testnet")
        await service.add_identity(AddIdentityRequest("alice", "alice@example.com"))
        await service.add_server(AddServerRequest("local", "http://127.0.0.1:3000"))
        await service.add_server(
            AddServerRequest("prod", "https://db.example.com", set_default=False, no_fingerprint=False)
        )

    asyncio.run(run_all())

    assert fake_runner.calls == [
        "spacetime version",
        "spacetime server list",
        "spacetime list c200",
        "spacetime describe chat --as-identity alice",
        "spacetime logs chat",
        "spacetime identity set-default alice",
        "spacetime server set-default testnet",
        "spacetime server fingerprint testnet --force",
        "spacetime identity new --name alice --email alice@example.com",
        "spacetime server add http://127.0.0.1:3000 local --default --no-fingerprint",
        "spacetime server add https://db.example.com prod",
    ]


def test_user_arguments_are_quoted(service, fake_runner):
    asyncio.run(service.get_logs("chat; rm -rf /"))

    assert fake_runner.calls == ["spacetime logs 'chat; rm -rf /'"]


def test_ping_default_server_online(service, fake_runner):
    fake_runner.script("spacetime server ping", CliResult(output="Server is online: http://127.0.0.1:3000"))

    outcome = asyncio.run(service.ping())

    assert outcome.is_online
    assert outcome.port == 3000
    assert fake_runner.invocations[0].cancel_token is not None


def test_ping_until_online_gives_up_at_deadline(service, fake_runner):
    fake_runner.script("spacetime server ping local", CliResult(error="connection refused"))

    outcome = asyncio.run(service.ping_until_online("local", timeout=0.05))

    assert not outcome.is_online
    assert outcome.result.is_cancelled
    assert len(fake_runner.calls) >= 1


def test_start_local_server_and_wait(service, fake_runner):
    fake_runner.script(
        "spacetime server ping local",
        CliResult(error="connection refused"),
        CliResult(output="Server is online: http://127.0.0.1:3000"),
    )

    outcome = asyncio.run(service.start_local_server_and_wait())

    assert fake_runner.detached == ["spacetime start"]
    assert outcome.is_online


def test_force_stop_uses_kill_by_port(service, fake_runner):
    asyncio.run(service.force_stop_local_server(3100))

    assert fake_runner.calls == ["lsof -ti:3100 | grep -v '^0$' | xargs -r kill -9"]


def test_force_stop_failure_raises(service, fake_runner):
    fake_runner.script(
        "lsof -ti:3000 | grep -v '^0$' | xargs -r kill -9",
        CliResult(error="kill: (1234): Operation not permitted"),
    )

    with pytest.raises(LocalServerStopError) as exc_info:
        asyncio.run(service.force_stop_local_server())

    assert exc_info.value.port == 3000


def test_ensure_default_server_sets_first_when_none_marked(service, fake_runner):
    fake_runner.script("spacetime server list", CliResult(output=SERVERS_NO_DEFAULT))

    async def flow():
        listing = await service.list_servers()
        return listing, await service.ensure_default_server(listing)

    listing, default = asyncio.run(flow())

    assert listing.found_but_no_default
    assert default.nickname == "local"
    assert default.is_default
    assert fake_runner.calls[-1] == "spacetime server set-default local"


def test_ensure_default_server_with_no_servers(service, fake_runner):
    async def flow():
        return await service.ensure_default_server(await service.list_servers())

    assert asyncio.run(flow()) is None
    assert fake_runner.calls == ["spacetime server list"]


def test_regenerate_default_servers_adds_testnet_last(service, fake_runner):
    asyncio.run(service.regenerate_default_servers())

    assert fake_runner.calls == [
        "spacetime server add http://127.0.0.1:3000 local --default --no-fingerprint",
        "spacetime server add https://testnet.spacetimedb.com testnet --default --no-fingerprint",
        "spacetime server list",
    ]


def test_call_reducer_with_identity_and_args(service, fake_runner):
    request = CallReducerRequest("chat", "send_message", args='"hello"', as_identity="alice")

    asyncio.run(service.call_reducer(request))

    assert fake_runner.calls == ['spacetime call --as-identity alice chat send_message "hello"']


def test_call_reducer_refuses_missing_arguments(service, fake_runner):
    reducer = ReducerInfo("send_message", arity=1, args=(ReducerArg("text", "String"),))

    result = asyncio.run(service.call_reducer(CallReducerRequest("chat", "send_message"), reducer))

    assert result.has_error
    assert "text: String" in result.error
    assert fake_runner.calls == []


def test_install_is_unsupported_on_linux(service):
    with pytest.raises(UnsupportedPlatformError):
        asyncio.run(service.install())


@pytest.fixture
def mac_runner() -> FakeRunner:
    return FakeRunner(platform=MacOSPlatform())


@pytest.fixture
def mac_service(settings, mac_runner, quiet_logger) -> SpacetimeService:
    return SpacetimeService(settings, runner=mac_runner, logger=quiet_logger)


def test_install_and_configure_when_already_installed(mac_service, mac_runner):
    outcome = asyncio.run(mac_service.install_and_configure())

    assert outcome.already_installed
    assert outcome.is_ready
    assert mac_runner.calls == ["spacetime version"]


def test_install_and_configure_fresh_install(mac_service, mac_runner):
    mac_runner.script("spacetime version", NOT_FOUND, CliResult(output="spacetime 0.8.2"))
    mac_runner.script(
        "brew install clockworklabs/tap/spacetime",
        CliResult(output="spacetime installed to /opt/tools/bin"),
    )

    outcome = asyncio.run(mac_service.install_and_configure())

    assert outcome.is_ready
    assert not outcome.already_installed
    assert mac_runner.path_override == "/opt/tools/bin"
    assert mac_runner.calls == [
        "spacetime version",
        "brew install clockworklabs/tap/spacetime",
        "spacetime version",
        "spacetime server fingerprint testnet --force",
        "spacetime server set-default testnet",
    ]


def test_install_and_configure_needs_restart_when_still_not_found(mac_service, mac_runner):
    mac_runner.script("spacetime version", NOT_FOUND)

    outcome = asyncio.run(mac_service.install_and_configure())

    assert outcome.needs_restart
    assert not outcome.is_ready
    assert "spacetime server fingerprint testnet --force" not in mac_runner.calls


def test_install_and_configure_fingerprint_failure_raises(mac_service, mac_runner):
    mac_runner.script("spacetime version", NOT_FOUND, CliResult(output="spacetime 0.8.2"))
    mac_runner.script(
        "spacetime server fingerprint testnet --force",
        CliResult(error="Error: could not reach testnet"),
    )

    with pytest.raises(InstallError):
        asyncio.run(mac_service.install_and_configure())


def test_install_failure_is_reported(mac_service, mac_runner):
    mac_runner.script("spacetime version", NOT_FOUND)
    mac_runner.script("brew install clockworklabs/tap/spacetime", CliResult(error="Error: No such tap"))

    outcome = asyncio.run(mac_service.install_and_configure())

    assert not outcome.install.is_installed
    assert not outcome.is_ready


def test_reducer_without_arguments_accepts_any_input():
    reducer = ReducerInfo("clear_all")

    assert not reducer.requires_arguments
    assert reducer.accepts_input("")
    assert ReducerInfo("send_message", arity=1).requires_arguments


def test_close_releases_log_file_of_own_logger(settings, tmp_path):
    settings.log_dir = str(tmp_path / "logs")
    service = SpacetimeService(settings, runner=FakeRunner())
    assert service.logger.log_file is not None

    service.close()

    assert service.logger.log_file is None
    assert service.logger.log_path.exists()


def test_close_leaves_injected_logger_open(settings, tmp_path):
    logger = CliLogger(level=CliLogLevel.ERROR, log_dir=tmp_path, console=Console(file=io.StringIO()))
    service = SpacetimeService(settings, runner=FakeRunner(), logger=logger)

    service.close()

    assert logger.log_file is not None
    logger.close()
