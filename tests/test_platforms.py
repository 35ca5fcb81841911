from __future__ import annotations

import asyncio

import pytest

from spacetimectl.exceptions import UnsupportedPlatformError
from spacetimectl.platforms import (
    LinuxPlatform,
    MacOSPlatform,
    WindowsPlatform,
    detect_platform,
)


@pytest.mark.parametrize(
    "system, expected",
    [("Windows", WindowsPlatform), ("Darwin", MacOSPlatform), ("Linux", LinuxPlatform)],
)
def test_detect_platform(system, expected):
    assert isinstance(detect_platform(system), expected)


def test_detect_platform_rejects_unknown_os():
    with pytest.raises(UnsupportedPlatformError) as exc_info:
        detect_platform("SunOS")

    assert exc_info.value.platform_name == "SunOS"


def test_terminals():
    assert WindowsPlatform().shell_args("spacetime version") == 'cmd.exe /c "spacetime version"'
    assert MacOSPlatform().shell_args("spacetime version") == ["/bin/bash", "-c", "spacetime version"]


def test_install_commands():
    assert "iwr https://windows.spacetimedb.com -UseBasicParsing | iex" in WindowsPlatform().install_command()
    assert MacOSPlatform().install_command() == "brew install clockworklabs/tap/spacetime"

    with pytest.raises(UnsupportedPlatformError) as exc_info:
        LinuxPlatform().install_command()
    assert exc_info.value.operation == "install"


def test_kill_by_port_commands_skip_pid_zero():
    posix = LinuxPlatform().kill_by_port_command(3000)
    windows = WindowsPlatform().kill_by_port_command(3000)

    assert posix == "lsof -ti:3000 | grep -v '^0$' | xargs -r kill -9"
    assert "netstat -aon | findstr :3000" in windows
    assert "if not %a==0 taskkill /F /PID %a" in windows


def test_quoting():
    assert LinuxPlatform().quote("my module") == "'my module'"
    assert LinuxPlatform().quote("chat") == "chat"
    assert WindowsPlatform().quote("C:\\My Projects\\server") == '"C:\\My Projects\\server"'


def test_windows_command_line_keeps_inner_quotes():
    windows = WindowsPlatform()

    assert windows.shell_args(windows.kill_by_port_command(3000)) == (
        'cmd.exe /c "netstat -aon | findstr :3000 && for /f "tokens=5" %a '
        "in ('netstat -aon ^| findstr :3000') do if not %a==0 taskkill /F /PID %a\""
    )
    assert windows.shell_args(windows.install_command()) == (
        'cmd.exe /c "powershell -Command "iwr https://windows.spacetimedb.com '
        '-UseBasicParsing | iex""'
    )


def test_windows_spawn_passes_suffix_verbatim(monkeypatch):
    calls = []

    async def fake_shell(cmd, **kwargs):
        calls.append((cmd, kwargs))

    async def fake_exec(*args, **kwargs):
        raise AssertionError("argument lists are re-quoted on Windows")

    monkeypatch.setattr(asyncio, "create_subprocess_shell", fake_shell)
    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)

    asyncio.run(WindowsPlatform().spawn('for /f "tokens=5" %a in (x) do echo %a', env={}))

    assert calls == [('for /f "tokens=5" %a in (x) do echo %a', {"env": {}})]


def test_posix_spawn_uses_argument_list(monkeypatch):
    calls = []

    async def fake_exec(*args, **kwargs):
        calls.append(args)

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)

    asyncio.run(LinuxPlatform().spawn("spacetime version"))

    assert calls == [("/bin/bash", "-c", "spacetime version")]
