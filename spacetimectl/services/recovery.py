"""
Error recovery

Two transient local-server failures are recognized in stderr and
repaired (start the local server, refresh its fingerprint) so the
original command can be retried once.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Tuple

from spacetimectl.constants import LOCAL_SERVER_NAME
from spacetimectl.logger import CliLogger
from spacetimectl.models.results import CliResult

if TYPE_CHECKING:
    from spacetimectl.services.spacetime_service import SpacetimeService


class RecoveryKind(Enum):
    LOCAL_FINGERPRINT_MISSING = "local_fingerprint_missing"
    LOCAL_SERVER_REFUSED = "local_server_refused"


@dataclass(frozen=True)
class RecoverySignature:
    """A stderr substring that marks a recoverable failure."""

    pattern: str
    kind: RecoveryKind


# Matched in order, case-sensitive
RECOVERY_SIGNATURES: Tuple[RecoverySignature, ...] = (
    RecoverySignature("without a saved fingerprint: local", RecoveryKind.LOCAL_FINGERPRINT_MISSING),
    RecoverySignature("target machine actively refused", RecoveryKind.LOCAL_SERVER_REFUSED),
)


@dataclass
class RecoveryContext:
    """
    Recovery state for one top-level invocation.

    Passed down to every sub-command issued on that invocation's behalf so
    a failing sub-command can never start a second recovery.
    """

    attempted: bool = False
    in_progress: bool = False

    @property
    def can_recover(self) -> bool:
        return not self.attempted and not self.in_progress


class ErrorRecoveryPolicy:
    """Detects recoverable failures and runs the repair sequence."""

    def __init__(
        self,
        logger: Optional[CliLogger] = None,
        local_server_name: str = LOCAL_SERVER_NAME,
        signatures: Tuple[RecoverySignature, ...] = RECOVERY_SIGNATURES,
    ):
        self.logger = logger or CliLogger()
        self.local_server_name = local_server_name
        self.signatures = signatures

    def match(self, result: CliResult) -> Optional[RecoverySignature]:
        """First signature found in the result's stderr, if any."""
        if not result.has_error or result.is_cancelled:
            return None
        for signature in self.signatures:
            if signature.pattern in result.error:
                return signature
        return None

    async def resolve(
        self,
        result: CliResult,
        context: RecoveryContext,
        actions: "SpacetimeService",
    ) -> bool:
        """
        Try to repair the failure behind `result`.

        Sequence: ping the local server, start it (detached) if it is
        offline, then force a fresh fingerprint.

        Args:
            result: The failed result
            context: Recovery state of the current top-level invocation
            actions: Service used for the repair sub-commands

        Returns:
            True if the original command should be retried once
        """
        signature = self.match(result)
        if signature is None or not context.can_recover:
            return False

        context.attempted = True
        context.in_progress = True
        self.logger.log_warning(
            f"Detected {signature.kind.value}, attempting to recover the local server"
        )

        try:
            ping = await actions.ping(self.local_server_name, context=context)
            if not ping.is_online:
                self.logger.log("Local server is offline, starting it", "INFO")
                started = await actions.start_local_server_and_wait(context=context)
                if not started.is_online:
                    self.logger.log_warning("Local server did not come online in time")

            fingerprint = await actions.create_fingerprint(self.local_server_name, context=context)
            if fingerprint.has_error:
                self.logger.log_warning("Recovery failed: could not create a local fingerprint")
                return False

            self.logger.log("Recovered, retrying the original command", "INFO")
            return True
        finally:
            context.in_progress = False
