from __future__ import annotations

import io
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest
from rich.console import Console

from spacetimectl.config import Settings
from spacetimectl.logger import CliLogger, CliLogLevel
from spacetimectl.models import CliInvocation, CliResult
from spacetimectl.platforms import LinuxPlatform, PlatformStrategy
from spacetimectl.services import SpacetimeService

Response = Union[CliResult, Callable[[CliInvocation], CliResult]]


class FakeRunner:
    """
    Scripted stand-in for ProcessRunner.

    Each command suffix maps to a queue of responses; the last one repeats.
    Unscripted commands succeed with empty output.
    """

    def __init__(self, platform: Optional[PlatformStrategy] = None) -> None:
        self.platform = platform or LinuxPlatform()
        self.path_override: Optional[str] = None
        self.responses: Dict[str, List[Response]] = {}
        self.calls: List[str] = []
        self.invocations: List[CliInvocation] = []
        self.detached: List[str] = []

    def script(self, suffix: str, *responses: Response) -> "FakeRunner":
        self.responses.setdefault(suffix, []).extend(responses)
        return self

    async def run(self, invocation: CliInvocation) -> CliResult:
        self.calls.append(invocation.arg_suffix)
        self.invocations.append(invocation)
        queue = self.responses.get(invocation.arg_suffix)
        if not queue:
            return CliResult()
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        return response(invocation) if callable(response) else response

    def run_detached(self, arg_suffix: str) -> None:
        self.detached.append(arg_suffix)


@pytest.fixture
def quiet_logger() -> CliLogger:
    return CliLogger(level=CliLogLevel.ERROR, console=Console(file=io.StringIO()))


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        poll_interval=0.01,
        ping_timeout=0.05,
        ping_iteration_timeout=0.02,
        server_start_timeout=0.1,
        state_path=str(tmp_path / "state.yml"),
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def service(settings: Settings, fake_runner: FakeRunner, quiet_logger: CliLogger) -> SpacetimeService:
    return SpacetimeService(settings, runner=fake_runner, logger=quiet_logger)
