"""
Platform strategies

One strategy per supported OS, selected once at startup. Each knows the
terminal used to run CLI commands, the install command, the kill-by-port
pipeline, and how to start and stop child processes.
"""

from __future__ import annotations

import asyncio
import os
import platform as _platform
import shlex
import signal
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from spacetimectl.exceptions import UnsupportedPlatformError


class PlatformStrategy(ABC):
    """OS-specific pieces of CLI orchestration."""

    name: str = ""
    terminal: str = ""
    command_flag: str = ""
    path_env_key: str = "PATH"

    @abstractmethod
    def install_command(self) -> str: ...

    @abstractmethod
    def kill_by_port_command(self, port: int) -> str: ...

    @abstractmethod
    def quote(self, arg: str) -> str: ...

    @abstractmethod
    def capture_popen_kwargs(self) -> Dict[str, Any]: ...

    @abstractmethod
    def detached_popen_kwargs(self) -> Dict[str, Any]: ...

    @abstractmethod
    def request_stop(self, process: Any) -> None:
        """Ask the process (and its children) to exit."""

    @abstractmethod
    def force_kill(self, process: Any) -> None: ...

    def default_install_dir(self) -> Optional[str]:
        return None

    def shell_args(self, arg_suffix: str) -> Union[list[str], str]:
        """Process arguments that run `arg_suffix` through the terminal."""
        return [self.terminal, self.command_flag, arg_suffix]

    async def spawn(self, arg_suffix: str, **kwargs: Any) -> asyncio.subprocess.Process:
        """Start `arg_suffix` through the terminal as an asyncio child."""
        return await asyncio.create_subprocess_exec(*self.shell_args(arg_suffix), **kwargs)

    def popen(self, arg_suffix: str, **kwargs: Any) -> subprocess.Popen:
        """Start `arg_suffix` through the terminal as a plain Popen child."""
        return subprocess.Popen(self.shell_args(arg_suffix), **kwargs)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class _PosixPlatform(PlatformStrategy):
    terminal = "/bin/bash"
    command_flag = "-c"

    def kill_by_port_command(self, port: int) -> str:
        # pid 0 is filtered out so nothing outside the port owner is signalled
        return f"lsof -ti:{int(port)} | grep -v '^0$' | xargs -r kill -9"

    def quote(self, arg: str) -> str:
        return shlex.quote(arg)

    def capture_popen_kwargs(self) -> Dict[str, Any]:
        # Own process group so cancellation reaches grandchildren too
        return {"start_new_session": True}

    def detached_popen_kwargs(self) -> Dict[str, Any]:
        return {"start_new_session": True, "close_fds": True}

    def request_stop(self, process: Any) -> None:
        try:
            os.killpg(process.pid, signal.SIGTERM)
        except (ProcessLookupError, PermissionError):
            process.terminate()

    def force_kill(self, process: Any) -> None:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            process.kill()


class MacOSPlatform(_PosixPlatform):
    name = "macOS"

    def install_command(self) -> str:
        return "brew install clockworklabs/tap/spacetime"

    def default_install_dir(self) -> Optional[str]:
        for candidate in ("/opt/homebrew/bin", "/usr/local/bin"):
            if Path(candidate, "spacetime").exists():
                return candidate
        return "/opt/homebrew/bin"


class LinuxPlatform(_PosixPlatform):
    name = "Linux"

    def install_command(self) -> str:
        raise UnsupportedPlatformError(self.name, operation="install")

    def default_install_dir(self) -> Optional[str]:
        return str(Path.home() / ".local" / "bin")


class WindowsPlatform(PlatformStrategy):
    name = "Windows"
    terminal = "cmd.exe"
    command_flag = "/c"

    def install_command(self) -> str:
        return (
            'powershell -Command "iwr https://windows.spacetimedb.com '
            '-UseBasicParsing | iex"'
        )

    def kill_by_port_command(self, port: int) -> str:
        port = int(port)
        return (
            f"netstat -aon | findstr :{port} && for /f \"tokens=5\" %a "
            f"in ('netstat -aon ^| findstr :{port}') "
            f"do if not %a==0 taskkill /F /PID %a"
        )

    def quote(self, arg: str) -> str:
        return subprocess.list2cmdline([arg])

    def shell_args(self, arg_suffix: str) -> str:
        # cmd.exe takes the suffix verbatim between the outer quotes; a list
        # would go through list2cmdline and get its inner quotes escaped
        return f'{self.terminal} {self.command_flag} "{arg_suffix}"'

    async def spawn(self, arg_suffix: str, **kwargs: Any) -> asyncio.subprocess.Process:
        # asyncio only accepts a verbatim command line in shell mode, where
        # Popen builds the same `<comspec> /c "<suffix>"` line as shell_args
        return await asyncio.create_subprocess_shell(arg_suffix, **kwargs)

    def capture_popen_kwargs(self) -> Dict[str, Any]:
        return {"creationflags": subprocess.CREATE_NO_WINDOW}

    def detached_popen_kwargs(self) -> Dict[str, Any]:
        return {
            "creationflags": subprocess.DETACHED_PROCESS
            | subprocess.CREATE_NEW_PROCESS_GROUP,
            "close_fds": True,
        }

    def request_stop(self, process: Any) -> None:
        process.terminate()

    def force_kill(self, process: Any) -> None:
        process.kill()

    def default_install_dir(self) -> Optional[str]:
        local_app_data = os.environ.get("LOCALAPPDATA")
        if local_app_data:
            return str(Path(local_app_data) / "SpacetimeDB")
        return str(Path.home() / "SpacetimeDB")


_STRATEGIES = {
    "Windows": WindowsPlatform,
    "Darwin": MacOSPlatform,
    "Linux": LinuxPlatform,
}


def detect_platform(system: Optional[str] = None) -> PlatformStrategy:
    """
    Select the strategy for the running OS.

    Args:
        system: Override for platform.system() (tests, cross-checks)

    Raises:
        UnsupportedPlatformError: For any OS without a strategy
    """
    system = system or _platform.system()
    strategy_cls = _STRATEGIES.get(system)
    if strategy_cls is None:
        raise UnsupportedPlatformError(system or "unknown")
    return strategy_cls()
