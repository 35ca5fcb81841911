from __future__ import annotations

import json
from datetime import datetime

from spacetimectl import parsers
from spacetimectl.models import (
    AddIdentityErrorKind,
    CliResult,
    GenerateRequest,
    PublishErrorKind,
    PublishRequest,
)
from spacetimectl.platforms import LinuxPlatform

SERVER_LIST = """\
 DEFAULT  HOSTNAME                   PROTOCOL  NICKNAME
 ***      127.0.0.1:3000             http      local
          testnet.spacetimedb.com    https     testnet
"""

IDENTITY_LIST = """\
Identities for testnet:
 DEFAULT  IDENTITY                                                          NAME
          93dda09db9a56d8fa6c024d843e805d8262191db3b4ba84c5efcd1ad451fed4e  alice
 ***      c2007ef1a5e3d4a6f0c5bd1e5c3e9f40b1a4d3e9d8c8b4a1f0e2d3c4b5a69788
"""


def _publish_request() -> PublishRequest:
    return PublishRequest(module_name="chat", project_path="/work/server")


def test_parse_servers_reads_rows_in_order_and_default():
    listing = parsers.parse_servers(CliResult(output=SERVER_LIST))

    assert [s.nickname for s in listing.servers] == ["local", "testnet"]
    assert listing.servers[0].host_url == "http://127.0.0.1:3000"
    assert listing.servers[1].host_url == "https://testnet.spacetimedb.com"
    assert listing.default.nickname == "local"
    assert listing.has_default
    assert not listing.found_but_no_default


def test_parse_servers_without_default_is_reported():
    output = SERVER_LIST.replace("***", "   ")
    listing = parsers.parse_servers(CliResult(output=output))

    assert len(listing.servers) == 2
    assert listing.default is None
    assert listing.found_but_no_default


def test_parse_servers_on_garbage_yields_no_records():
    listing = parsers.parse_servers(CliResult(output="", error="error: boom"))

    assert listing.servers == ()
    assert not listing.has_any
    assert not listing.found_but_no_default


def test_parse_identities_falls_back_to_identity_hash_for_nickname():
    listing = parsers.parse_identities(CliResult(output=IDENTITY_LIST))

    assert len(listing.identities) == 2
    alice, unnamed = listing.identities
    assert alice.nickname == "alice"
    assert not alice.is_default
    assert unnamed.is_default
    assert unnamed.nickname == unnamed.identity
    assert unnamed.identity.startswith("c2007ef1")


def test_parse_identities_picks_up_email():
    output = " DEFAULT  IDENTITY  NAME  EMAIL\n ***  abcdef0123456789abcd  bob  bob@example.com\n"
    listing = parsers.parse_identities(CliResult(output=output))

    assert listing.identities[0].email == "bob@example.com"
    assert listing.identities[0].nickname == "bob"


def test_parse_ping_online_keeps_url_and_port():
    outcome = parsers.parse_ping(CliResult(output="Server is online: http://127.0.0.1:3000"))

    assert outcome.is_online
    assert outcome.host_url == "http://127.0.0.1:3000"
    assert outcome.port == 3000
    assert not outcome.is_connection_refused


def test_parse_ping_refused_is_offline():
    error = (
        "Server could not be reached at http://127.0.0.1:3000: "
        "No connection could be made because the target machine actively refused it."
    )
    outcome = parsers.parse_ping(CliResult(error=error))

    assert not outcome.is_online
    assert outcome.is_connection_refused
    assert outcome.port == 3000


def test_parse_ping_cancelled_is_offline_but_not_refused():
    outcome = parsers.parse_ping(CliResult.cancelled())

    assert not outcome.is_online
    assert not outcome.is_connection_refused


def test_classify_publish_error_table():
    cases = {
        "You must install or update .NET to run this application.": PublishErrorKind.RUNTIME_PREREQUISITE_MISSING,
        "error NETSDK1045: The current .NET SDK does not support targeting .NET 8.0.": PublishErrorKind.RUNTIME_PREREQUISITE_MISSING,
        "MSBUILD : error MSB1003: Specify a project or solution file.": PublishErrorKind.INVALID_PROJECT_DIRECTORY,
        "Error: Database update rejected: identity is not authorized to update": PublishErrorKind.PERMISSION_DENIED_ON_UPDATE,
        "something else entirely": PublishErrorKind.UNCLASSIFIED,
        "": PublishErrorKind.UNCLASSIFIED,
    }
    for text, expected in cases.items():
        assert parsers.classify_publish_error(text) == expected, text


def test_parse_publish_success_extracts_host_and_address():
    output = (
        "Build finished successfully.\n"
        "Uploading to local => http://127.0.0.1:3000\n"
        "Created new database with domain: chat, address: 93dda09db9a56d8fa6c024d843e805d8\n"
    )
    now = datetime(2024, 1, 2, 3, 4, 5)
    outcome = parsers.parse_publish(_publish_request(), CliResult(output=output), now=now)

    assert outcome.is_success
    assert outcome.error_kind == PublishErrorKind.NONE
    assert outcome.uploaded_host == "http://127.0.0.1:3000"
    assert outcome.database_address == "93dda09db9a56d8fa6c024d843e805d8"
    assert outcome.published_at == now
    assert outcome.is_optimized


def test_parse_publish_success_despite_stderr_warnings():
    output = "Uploading to testnet => https://testnet.spacetimedb.com\nUpdated database with address: abcdef0123456789abcdef0123456789\n"
    error = "Could not find wasm-opt to optimise the module."
    outcome = parsers.parse_publish(_publish_request(), CliResult(output=output, error=error))

    assert outcome.is_success
    assert not outcome.is_optimized
    assert outcome.published_at is not None


def test_parse_publish_failure_is_classified():
    error = "MSBUILD : error MSB1003: Specify a project or solution file."
    outcome = parsers.parse_publish(_publish_request(), CliResult(error=error))

    assert not outcome.is_success
    assert outcome.error_kind == PublishErrorKind.INVALID_PROJECT_DIRECTORY
    assert outcome.database_address == ""


def test_parse_publish_cancelled_is_failure():
    outcome = parsers.parse_publish(_publish_request(), CliResult.cancelled())

    assert not outcome.is_success


def test_parse_generate_success_follows_stderr():
    request = GenerateRequest(project_path="/work/server", out_dir="/work/client")

    assert parsers.parse_generate(request, CliResult(output="Generate finished")).is_success
    assert not parsers.parse_generate(request, CliResult(error="error: no module")).is_success


def test_parse_database_addresses_keeps_only_hex_lines():
    output = (
        "Associated database addresses for c200:\n"
        "93dda09db9a56d8fa6c024d843e805d8\n"
        "not-an-address\n"
        "abcdef0123456789abcdef0123456789abcd\n"
    )
    result = parsers.parse_database_addresses(CliResult(output=output))

    assert result.addresses == (
        "93dda09db9a56d8fa6c024d843e805d8",
        "abcdef0123456789abcdef0123456789abcd",
    )
    assert result.has_addresses


def test_parse_add_identity_already_exists():
    outcome = parsers.parse_add_identity(CliResult(error="Error: An identity with that name already exists."))

    assert not outcome.is_success
    assert outcome.error_kind == AddIdentityErrorKind.IDENTITY_ALREADY_EXISTS


def test_extract_error_lines_from_both_streams():
    output = "Program.cs(10,5): error CS1002: ; expected\nBuild FAILED.\n"
    error = "Error: failed to build module\nwarning: unused\nerror: failed to build module\n"

    found = parsers.extract_error_lines(output, error)

    assert found == (
        "Program.cs(10,5): error CS1002: ; expected",
        "Error: failed to build module",
        "error: failed to build module",
    )


def test_build_cli_result_fills_errors_found():
    result = parsers.build_cli_result("ok", "error: nope")

    assert result.has_error
    assert result.errors_found == ("error: nope",)


def test_is_command_not_found_both_platforms():
    assert parsers.is_command_not_found("bash: spacetime: command not found", "spacetime")
    assert parsers.is_command_not_found(
        "'spacetime' is not recognized as an internal or external command,", "spacetime"
    )
    assert not parsers.is_command_not_found("error: something else", "spacetime")


def test_parse_install_reads_install_dir_or_platform_default():
    outcome = parsers.parse_install(CliResult(output="spacetime installed to /opt/tools/bin"))
    assert outcome.is_installed
    assert outcome.install_dir == "/opt/tools/bin"

    fallback = parsers.parse_install(CliResult(output="done"), LinuxPlatform())
    assert fallback.install_dir == LinuxPlatform().default_install_dir()

    failed = parsers.parse_install(CliResult(error="curl: (6) Could not resolve host"))
    assert not failed.is_installed
    assert failed.install_dir is None


def test_parse_entity_structure_tolerates_leading_noise():
    describe = {
        "entities": {
            "send_message": {
                "arity": 2,
                "schema": {
                    "elements": [
                        {"name": {"some": "text"}, "algebraic_type": {"Builtin": {"String": []}}},
                        {"name": None, "algebraic_type": {"Builtin": {"Array": {"Builtin": {"U8": []}}}}},
                    ]
                },
                "type": "reducer",
            },
            "init": {"arity": 0, "schema": {"elements": []}, "type": "reducer"},
            "Message": {"arity": 0, "schema": {}, "type": "table"},
        },
        "typespace": [],
    }
    output = "WARNING: this command is UNSTABLE\n" + json.dumps(describe)

    result = parsers.parse_entity_structure(CliResult(output=output))

    assert result.has_entity_structure
    send = result.structure.get_reducer("send_message")
    assert send.arity == 2
    assert send.syntax_hints() == ["text: String", "arg1: Array<U8>"]
    assert send.requires_arguments
    assert not send.accepts_input("  ")
    assert result.structure.get_reducer("init").accepts_input("")
    assert result.structure.tables == ("Message",)


def test_parse_entity_structure_on_invalid_json():
    result = parsers.parse_entity_structure(CliResult(output="{ not json"))

    assert not result.has_entity_structure
    assert result.structure.tables == ()


def test_format_server_logs_highlights_levels_and_escapes_markup():
    styled = parsers.format_server_logs("INFO: started [x]\nERROR: boom")

    assert "[blue][b]INFO:[/b][/blue]" in styled
    assert "[red][b]ERROR:[/b][/red]" in styled
    assert "\\[x]" in styled
