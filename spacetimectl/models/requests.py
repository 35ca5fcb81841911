"""
Request Models

Inputs to the CLI invocations issued by the service layer.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from spacetimectl.constants import DEFAULT_CLIENT_LANGUAGE

if TYPE_CHECKING:
    from spacetimectl.cancellation import CancelToken


@dataclass
class CliInvocation:
    """One CLI call: the argument suffix run inside the platform shell."""

    arg_suffix: str
    cancel_token: Optional["CancelToken"] = None
    run_in_background: bool = False


@dataclass(frozen=True)
class PublishRequest:
    """Publish a server module."""

    module_name: str
    project_path: str
    clear_data: bool = False
    debug_mode: bool = False


@dataclass(frozen=True)
class GenerateRequest:
    """Generate client code from a server module."""

    project_path: str
    out_dir: str
    language: str = DEFAULT_CLIENT_LANGUAGE
    delete_outdated_files: bool = True


@dataclass(frozen=True)
class AddServerRequest:
    """Register a server with the CLI."""

    nickname: str
    host_url: str
    set_default: bool = True
    no_fingerprint: bool = True


@dataclass(frozen=True)
class AddIdentityRequest:
    """Create a new identity."""

    nickname: str
    email: str


@dataclass(frozen=True)
class CallReducerRequest:
    """Invoke a reducer on a published module."""

    module_name: str
    reducer_name: str
    args: str = ""
    as_identity: Optional[str] = None
