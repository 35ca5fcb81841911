"""
spacetimectl Domain Models

Clean dataclass-based models for type-safe data handling.
"""

from .requests import (
    CliInvocation,
    PublishRequest,
    GenerateRequest,
    AddServerRequest,
    AddIdentityRequest,
    CallReducerRequest,
)
from .results import (
    CliResult,
    ServerRecord,
    IdentityRecord,
    ServerListing,
    IdentityListing,
    PingOutcome,
    PublishErrorKind,
    PublishOutcome,
    GenerateOutcome,
    InstallOutcome,
    InstallConfigureOutcome,
    DatabaseAddressesResult,
    AddIdentityErrorKind,
    AddIdentityOutcome,
    AddServerOutcome,
    ReducerArg,
    ReducerInfo,
    EntityStructure,
    EntityStructureResult,
)

__all__ = [
    # Requests
    "CliInvocation",
    "PublishRequest",
    "GenerateRequest",
    "AddServerRequest",
    "AddIdentityRequest",
    "CallReducerRequest",
    # Results
    "CliResult",
    "ServerRecord",
    "IdentityRecord",
    "ServerListing",
    "IdentityListing",
    "PingOutcome",
    "PublishErrorKind",
    "PublishOutcome",
    "GenerateOutcome",
    "InstallOutcome",
    "InstallConfigureOutcome",
    "DatabaseAddressesResult",
    "AddIdentityErrorKind",
    "AddIdentityOutcome",
    "AddServerOutcome",
    # Entities
    "ReducerArg",
    "ReducerInfo",
    "EntityStructure",
    "EntityStructureResult",
]
