"""
Result Models

Dataclass models for CLI results and the typed records parsed from them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from spacetimectl.constants import CANCELED_SENTINEL
from spacetimectl.models.requests import GenerateRequest, PublishRequest


@dataclass(frozen=True)
class CliResult:
    """Captured output of one CLI invocation."""

    output: str = ""
    error: str = ""
    errors_found: Tuple[str, ...] = ()

    @property
    def has_error(self) -> bool:
        """Any error text at all counts as a CLI error."""
        return bool(self.error)

    @property
    def has_errors_found(self) -> bool:
        return len(self.errors_found) > 0

    @property
    def is_cancelled(self) -> bool:
        return self.error == CANCELED_SENTINEL

    @classmethod
    def cancelled(cls, output: str = "") -> "CliResult":
        return cls(output=output, error=CANCELED_SENTINEL)

    def __repr__(self) -> str:
        return (
            f"CliResult(has_error={self.has_error}, "
            f"output_len={len(self.output)}, errors_found={len(self.errors_found)})"
        )


@dataclass(frozen=True)
class ServerRecord:
    """A server known to the CLI (`spacetime server list`)."""

    nickname: str
    host_url: str
    is_default: bool = False

    def __str__(self) -> str:
        marker = " (default)" if self.is_default else ""
        return f"{self.nickname}@{self.host_url}{marker}"


@dataclass(frozen=True)
class IdentityRecord:
    """An identity known to the CLI (`spacetime identity list`)."""

    nickname: str
    is_default: bool = False
    identity: str = ""
    email: str = ""

    def __str__(self) -> str:
        marker = " (default)" if self.is_default else ""
        return f"{self.nickname}{marker}"


@dataclass(frozen=True)
class _Listing:
    result: CliResult

    @property
    def records(self) -> tuple:
        raise NotImplementedError

    @property
    def has_any(self) -> bool:
        return len(self.records) > 0

    @property
    def has_default(self) -> bool:
        return any(record.is_default for record in self.records)

    @property
    def found_but_no_default(self) -> bool:
        """Records exist but none is marked default: the caller must repair this."""
        return self.has_any and not self.has_default

    @property
    def default(self):
        return next((record for record in self.records if record.is_default), None)


@dataclass(frozen=True)
class ServerListing(_Listing):
    servers: Tuple[ServerRecord, ...] = ()

    @property
    def records(self) -> Tuple[ServerRecord, ...]:
        return self.servers


@dataclass(frozen=True)
class IdentityListing(_Listing):
    identities: Tuple[IdentityRecord, ...] = ()

    @property
    def records(self) -> Tuple[IdentityRecord, ...]:
        return self.identities


@dataclass(frozen=True)
class PingOutcome:
    """Result of `spacetime server ping`."""

    result: CliResult
    is_online: bool = False
    host_url: str = ""
    port: int = 0
    is_connection_refused: bool = False

    def __str__(self) -> str:
        state = "online" if self.is_online else "offline"
        return f"{self.host_url or 'server'} ({state})"


class PublishErrorKind(Enum):
    """Known publish failures, each with its own remediation."""

    NONE = "none"
    RUNTIME_PREREQUISITE_MISSING = "runtime_prerequisite_missing"
    INVALID_PROJECT_DIRECTORY = "invalid_project_directory"
    PERMISSION_DENIED_ON_UPDATE = "permission_denied_on_update"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class PublishOutcome:
    """Result of `spacetime publish`."""

    request: PublishRequest
    result: CliResult
    is_success: bool = False
    error_kind: PublishErrorKind = PublishErrorKind.NONE
    uploaded_host: str = ""
    database_address: str = ""
    published_at: Optional[datetime] = None
    is_optimized: bool = False


@dataclass(frozen=True)
class GenerateOutcome:
    """Result of `spacetime generate`; the out dir comes from the request."""

    request: GenerateRequest
    result: CliResult
    is_success: bool = False


@dataclass(frozen=True)
class InstallOutcome:
    """Result of installing the CLI."""

    result: CliResult
    is_installed: bool = False
    install_dir: Optional[str] = None


@dataclass(frozen=True)
class InstallConfigureOutcome:
    """Install followed by validation and testnet setup."""

    install: InstallOutcome
    already_installed: bool = False
    needs_restart: bool = False

    @property
    def is_ready(self) -> bool:
        return (self.already_installed or self.install.is_installed) and not self.needs_restart


@dataclass(frozen=True)
class DatabaseAddressesResult:
    """Result of `spacetime list <identity>`."""

    result: CliResult
    addresses: Tuple[str, ...] = ()

    @property
    def has_addresses(self) -> bool:
        return len(self.addresses) > 0


class AddIdentityErrorKind(Enum):
    NONE = "none"
    IDENTITY_ALREADY_EXISTS = "identity_already_exists"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class AddIdentityOutcome:
    result: CliResult
    error_kind: AddIdentityErrorKind = AddIdentityErrorKind.NONE

    @property
    def is_success(self) -> bool:
        return not self.result.has_error


@dataclass(frozen=True)
class AddServerOutcome:
    result: CliResult

    @property
    def is_success(self) -> bool:
        return not self.result.has_error


@dataclass(frozen=True)
class ReducerArg:
    name: str
    type_name: str

    def __str__(self) -> str:
        return f"{self.name}: {self.type_name}"


@dataclass(frozen=True)
class ReducerInfo:
    """A remote-callable function exposed by a module."""

    name: str
    arity: int = 0
    args: Tuple[ReducerArg, ...] = ()

    @property
    def requires_arguments(self) -> bool:
        return self.arity > 0

    def syntax_hints(self) -> list[str]:
        """One `name: Type` hint per argument, padded to arity."""
        hints = [str(arg) for arg in self.args]
        while len(hints) < self.arity:
            hints.append(f"arg{len(hints)}")
        return hints

    def accepts_input(self, arg_text: str) -> bool:
        """No-arg reducers run as-is; others need some input."""
        if not self.requires_arguments:
            return True
        return bool(arg_text and arg_text.strip())


@dataclass(frozen=True)
class EntityStructure:
    reducers: Tuple[ReducerInfo, ...] = ()
    tables: Tuple[str, ...] = ()

    def get_reducer(self, name: str) -> Optional[ReducerInfo]:
        return next((r for r in self.reducers if r.name == name), None)


@dataclass(frozen=True)
class EntityStructureResult:
    """Result of `spacetime describe <module>`."""

    result: CliResult
    structure: EntityStructure = field(default_factory=EntityStructure)

    @property
    def has_entity_structure(self) -> bool:
        return len(self.structure.reducers) > 0
