"""
CLI output parsers

Turn raw stdout/stderr from the `spacetime` tool into typed results.
Every parser is total: unexpected text degrades to "no records" or
"has error", it never raises.
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from rich.markup import escape

from spacetimectl.constants import DEFAULT_MARKER
from spacetimectl.models.requests import GenerateRequest, PublishRequest
from spacetimectl.models.results import (
    AddIdentityErrorKind,
    AddIdentityOutcome,
    AddServerOutcome,
    CliResult,
    DatabaseAddressesResult,
    EntityStructure,
    EntityStructureResult,
    GenerateOutcome,
    IdentityListing,
    IdentityRecord,
    InstallOutcome,
    PingOutcome,
    PublishErrorKind,
    PublishOutcome,
    ReducerArg,
    ReducerInfo,
    ServerListing,
    ServerRecord,
)

if TYPE_CHECKING:
    from spacetimectl.platforms import PlatformStrategy


# Ordered: first match wins
PUBLISH_ERROR_PATTERNS: Tuple[Tuple[str, PublishErrorKind], ...] = (
    ("MSB1003", PublishErrorKind.INVALID_PROJECT_DIRECTORY),
    ("Specify a project or solution file", PublishErrorKind.INVALID_PROJECT_DIRECTORY),
    ("NETSDK1045", PublishErrorKind.RUNTIME_PREREQUISITE_MISSING),
    ("You must install or update .NET", PublishErrorKind.RUNTIME_PREREQUISITE_MISSING),
    ("'dotnet' is not recognized", PublishErrorKind.RUNTIME_PREREQUISITE_MISSING),
    ("dotnet: command not found", PublishErrorKind.RUNTIME_PREREQUISITE_MISSING),
    ("Database update rejected", PublishErrorKind.PERMISSION_DENIED_ON_UPDATE),
    ("is not authorized to", PublishErrorKind.PERMISSION_DENIED_ON_UPDATE),
    ("403 Forbidden", PublishErrorKind.PERMISSION_DENIED_ON_UPDATE),
)

WASM_OPT_MISSING_PATTERNS = (
    "Could not find wasm-opt",
    "wasm-opt: command not found",
    "'wasm-opt' is not recognized",
)

_ERROR_LINE_RE = re.compile(
    r"^\s*(?:error|fatal)(?:\[[^\]]*\]|\s+[A-Z]+\d+)?\s*:\s*\S", re.IGNORECASE
)
_TOOL_ERROR_RE = re.compile(r":\s*error\s+[A-Z]+\d+\s*:\s*\S")
_URL_RE = re.compile(r"https?://[^\s'\"<>]+")
_HEX_ID_RE = re.compile(r"^[0-9a-fA-F]{16,}$")
_ADDRESS_LINE_RE = re.compile(r"^[0-9a-fA-F]{32,}$")
_PUBLISH_ADDRESS_RE = re.compile(r"(?:address|identity):\s*([0-9a-fA-F]{16,})")
_UPLOAD_RE = re.compile(r"Uploading to (\S+) => (\S+)")
_INSTALL_DIR_RE = re.compile(
    r"installed (?:to|at|in)[:\s]+['\"]?([^'\"\r\n]+?)['\"]?\s*$",
    re.IGNORECASE | re.MULTILINE,
)


def _lines(text: Optional[str]) -> List[str]:
    return (text or "").splitlines()


def extract_error_lines(*texts: Optional[str]) -> Tuple[str, ...]:
    """Pull individual `error: ...` style lines out of CLI output."""
    found: List[str] = []
    for text in texts:
        for line in _lines(text):
            if _ERROR_LINE_RE.search(line) or _TOOL_ERROR_RE.search(line):
                stripped = line.strip()
                if stripped not in found:
                    found.append(stripped)
    return tuple(found)


def build_cli_result(output: Optional[str], error: Optional[str]) -> CliResult:
    """Build a CliResult with error lines extracted from both streams."""
    output = output or ""
    error = error or ""
    return CliResult(
        output=output, error=error, errors_found=extract_error_lines(output, error)
    )


def is_command_not_found(error_text: Optional[str], command: str) -> bool:
    """True when the shell could not find `command` (Windows or POSIX wording)."""
    text = error_text or ""
    return any(
        pattern in text
        for pattern in (
            f"'{command}' is not recognized as an internal or external command",
            f"{command}: command not found",
            f"{command}: not found",
        )
    )


def parse_install_check(result: CliResult) -> bool:
    """Installed iff `spacetime version` produced no error text."""
    return not result.has_error


def parse_install(
    result: CliResult, platform: Optional["PlatformStrategy"] = None
) -> InstallOutcome:
    if result.has_error:
        return InstallOutcome(result=result, is_installed=False)

    install_dir = None
    match = _INSTALL_DIR_RE.search(result.output)
    if match:
        install_dir = match.group(1).strip()
    elif platform is not None:
        install_dir = platform.default_install_dir()

    if install_dir:
        candidate = Path(install_dir)
        # Installers sometimes report the binary instead of its folder
        if candidate.suffix.lower() in (".exe", "") and candidate.name.startswith("spacetime"):
            candidate = candidate.parent
        install_dir = str(candidate)

    return InstallOutcome(result=result, is_installed=True, install_dir=install_dir)


def _is_noise_line(stripped: str) -> bool:
    if not stripped:
        return True
    if set(stripped) <= set("-=|+ "):
        return True
    if stripped.endswith(":"):
        return True
    lowered = stripped.lower()
    return lowered.startswith(("warning", "error", "info:"))


def _is_header(tokens: List[str], *names: str) -> bool:
    upper = [token.upper() for token in tokens]
    return "DEFAULT" in upper and any(name in upper for name in names)


def _split_default(tokens: List[str]) -> Tuple[bool, List[str]]:
    if tokens and tokens[0] == DEFAULT_MARKER:
        return True, tokens[1:]
    return False, tokens


def parse_servers(result: CliResult) -> ServerListing:
    """
    Parse `spacetime server list`.

    Expected rows (after a DEFAULT/HOSTNAME/PROTOCOL/NICKNAME header):
        ***      127.0.0.1:3000             http      local
                 testnet.spacetimedb.com    https     testnet
    """
    servers: List[ServerRecord] = []
    for line in _lines(result.output):
        stripped = line.strip()
        if _is_noise_line(stripped):
            continue
        tokens = stripped.split()
        if _is_header(tokens, "HOSTNAME", "NICKNAME"):
            continue

        is_default, tokens = _split_default(tokens)
        if not tokens:
            continue

        host = tokens[0]
        if len(tokens) >= 3 and tokens[1].lower() in ("http", "https"):
            protocol, nickname = tokens[1].lower(), tokens[2]
        else:
            protocol, nickname = "", tokens[-1]

        if "://" not in host and protocol:
            host = f"{protocol}://{host}"

        servers.append(ServerRecord(nickname=nickname, host_url=host, is_default=is_default))

    return ServerListing(result=result, servers=tuple(servers))


def parse_identities(result: CliResult) -> IdentityListing:
    """
    Parse `spacetime identity list`.

    Expected rows (after a DEFAULT/IDENTITY/NAME header):
        ***      c2007ef1...    my-name    me@example.com
                 93dda09d...
    Identities without a name use the identity hash as their nickname.
    """
    identities: List[IdentityRecord] = []
    for line in _lines(result.output):
        stripped = line.strip()
        if _is_noise_line(stripped):
            continue
        tokens = stripped.split()
        if _is_header(tokens, "IDENTITY", "NAME"):
            continue

        is_default, tokens = _split_default(tokens)
        if not tokens:
            continue

        identity = tokens[0] if _HEX_ID_RE.match(tokens[0]) else ""
        rest = tokens[1:] if identity else tokens
        email = next((token for token in rest if "@" in token), "")
        names = [token for token in rest if token != email]
        nickname = names[0] if names else identity

        if not nickname:
            continue

        identities.append(
            IdentityRecord(
                nickname=nickname, is_default=is_default, identity=identity, email=email
            )
        )

    return IdentityListing(result=result, identities=tuple(identities))


def parse_ping(result: CliResult) -> PingOutcome:
    """Online iff no error text; the pinged URL is kept for later display."""
    host_url = ""
    match = _URL_RE.search(result.output) or _URL_RE.search(result.error)
    if match:
        host_url = match.group(0).rstrip(".,;:)")

    port = 0
    if host_url:
        try:
            port = urlparse(host_url).port or 0
        except ValueError:
            port = 0

    refused = "refused" in result.error
    return PingOutcome(
        result=result,
        is_online=not result.has_error,
        host_url=host_url,
        port=port,
        is_connection_refused=refused,
    )


def classify_publish_error(error_text: Optional[str]) -> PublishErrorKind:
    """Map stderr text to a publish error kind (first matching pattern)."""
    text = error_text or ""
    for pattern, kind in PUBLISH_ERROR_PATTERNS:
        if pattern in text:
            return kind
    return PublishErrorKind.UNCLASSIFIED


def parse_publish(
    request: PublishRequest, result: CliResult, now: Optional[datetime] = None
) -> PublishOutcome:
    """
    Parse `spacetime publish`.

    Success needs either a clean stderr or a reported database address;
    build tools write warnings to stderr even when the upload succeeds.
    """
    combined = f"{result.output}\n{result.error}"

    address = ""
    address_match = _PUBLISH_ADDRESS_RE.search(result.output)
    if address_match:
        address = address_match.group(1)

    host = ""
    upload_match = _UPLOAD_RE.search(result.output)
    if upload_match:
        host = upload_match.group(2)

    is_success = not result.is_cancelled and (bool(address) or not result.has_error)
    if not is_success:
        return PublishOutcome(
            request=request,
            result=result,
            is_success=False,
            error_kind=classify_publish_error(result.error),
        )

    is_optimized = not any(pattern in combined for pattern in WASM_OPT_MISSING_PATTERNS)
    return PublishOutcome(
        request=request,
        result=result,
        is_success=True,
        uploaded_host=host,
        database_address=address,
        published_at=now or datetime.now(),
        is_optimized=is_optimized,
    )


def parse_generate(request: GenerateRequest, result: CliResult) -> GenerateOutcome:
    return GenerateOutcome(request=request, result=result, is_success=not result.has_error)


def parse_database_addresses(result: CliResult) -> DatabaseAddressesResult:
    addresses: List[str] = []
    for line in _lines(result.output):
        candidate = line.strip().strip("|").strip()
        if _ADDRESS_LINE_RE.match(candidate) and candidate not in addresses:
            addresses.append(candidate)
    return DatabaseAddressesResult(result=result, addresses=tuple(addresses))


def parse_add_identity(result: CliResult) -> AddIdentityOutcome:
    if not result.has_error:
        return AddIdentityOutcome(result=result)
    if "already exists" in result.error:
        return AddIdentityOutcome(
            result=result, error_kind=AddIdentityErrorKind.IDENTITY_ALREADY_EXISTS
        )
    return AddIdentityOutcome(result=result, error_kind=AddIdentityErrorKind.UNCLASSIFIED)


def parse_add_server(result: CliResult) -> AddServerOutcome:
    return AddServerOutcome(result=result)


def _load_json_object(text: str) -> Optional[dict]:
    start = text.find("{")
    if start < 0:
        return None
    try:
        data, _ = json.JSONDecoder().raw_decode(text[start:])
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def describe_type(algebraic_type: Any) -> str:
    """Render an algebraic type from `spacetime describe` as a short name."""
    if isinstance(algebraic_type, str):
        return algebraic_type
    if not isinstance(algebraic_type, dict) or len(algebraic_type) != 1:
        return "?"

    key, value = next(iter(algebraic_type.items()))
    if key == "Builtin":
        return describe_type(value)
    if key == "Array":
        inner = value.get("elem_ty", value) if isinstance(value, dict) else value
        return f"Array<{describe_type(inner)}>"
    if key == "Map":
        if isinstance(value, dict):
            return f"Map<{describe_type(value.get('key_ty'))}, {describe_type(value.get('ty'))}>"
        return "Map"
    if key == "Ref":
        return f"Ref<{value}>"
    return str(key)


def _element_name(raw: Any, index: int) -> str:
    if isinstance(raw, dict):
        raw = raw.get("some")
    if isinstance(raw, str) and raw:
        return raw
    return f"arg{index}"


def _reducer_args(elements: Iterable[Any]) -> Tuple[ReducerArg, ...]:
    args = []
    for index, element in enumerate(elements):
        if not isinstance(element, dict):
            continue
        args.append(
            ReducerArg(
                name=_element_name(element.get("name"), index),
                type_name=describe_type(element.get("algebraic_type")),
            )
        )
    return tuple(args)


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int) and value >= 0:
        return value
    return default


def parse_entity_structure(result: CliResult) -> EntityStructureResult:
    """
    Parse the JSON printed by `spacetime describe <module>`.

    Both the `entities` mapping and the newer `reducers` list layouts are read.
    """
    data = _load_json_object(result.output)
    if data is None:
        return EntityStructureResult(result=result)

    reducers: List[ReducerInfo] = []
    tables: List[str] = []

    entities = data.get("entities")
    if isinstance(entities, dict):
        for name, entity in entities.items():
            if not isinstance(entity, dict):
                continue
            kind = str(entity.get("type", "")).lower()
            if kind == "table":
                tables.append(str(name))
                continue
            if kind != "reducer":
                continue
            schema = entity.get("schema") if isinstance(entity.get("schema"), dict) else {}
            elements = schema.get("elements") if isinstance(schema.get("elements"), list) else []
            args = _reducer_args(elements)
            reducers.append(
                ReducerInfo(
                    name=str(name),
                    arity=_as_int(entity.get("arity"), len(args)),
                    args=args,
                )
            )

    reducer_list = data.get("reducers")
    if isinstance(reducer_list, list):
        for entry in reducer_list:
            if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
                continue
            params = entry.get("params") if isinstance(entry.get("params"), dict) else {}
            elements = params.get("elements") if isinstance(params.get("elements"), list) else []
            args = _reducer_args(elements)
            reducers.append(ReducerInfo(name=entry["name"], arity=len(args), args=args))

    table_list = data.get("tables")
    if isinstance(table_list, list):
        for entry in table_list:
            if isinstance(entry, dict) and isinstance(entry.get("name"), str):
                tables.append(entry["name"])

    return EntityStructureResult(
        result=result,
        structure=EntityStructure(reducers=tuple(reducers), tables=tuple(tables)),
    )


def format_server_logs(text: Optional[str]) -> str:
    """Rich markup for `spacetime logs` output, with log levels highlighted."""
    styled = escape(text or "")
    return (
        styled.replace("INFO:", "[blue][b]INFO:[/b][/blue]")
        .replace("WARNING:", "[yellow][b]WARNING:[/b][/yellow]")
        .replace("ERROR:", "[red][b]ERROR:[/b][/red]")
    )
