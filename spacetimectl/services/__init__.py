"""Services layer: process execution, recovery and CLI actions"""

from spacetimectl.services.process_runner import ProcessRunner
from spacetimectl.services.recovery import (
    RECOVERY_SIGNATURES,
    ErrorRecoveryPolicy,
    RecoveryContext,
    RecoveryKind,
    RecoverySignature,
)
from spacetimectl.services.spacetime_service import SpacetimeService

__all__ = [
    "ProcessRunner",
    "ErrorRecoveryPolicy",
    "RecoveryContext",
    "RecoveryKind",
    "RecoverySignature",
    "RECOVERY_SIGNATURES",
    "SpacetimeService",
]
