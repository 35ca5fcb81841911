"""
Process runner

Runs CLI commands inside the platform shell with captured output,
polling, cancellation and background execution.
"""

import asyncio
import os
import subprocess
from typing import Callable, Dict, List, Optional, Set

from spacetimectl.constants import (
    POLL_INTERVAL,
    STREAM_DRAIN_TIMEOUT,
    TERMINATE_GRACE_PERIOD,
)
from spacetimectl.exceptions import ProcessStartError
from spacetimectl.logger import CliLogger
from spacetimectl.models.requests import CliInvocation
from spacetimectl.models.results import CliResult
from spacetimectl.parsers import build_cli_result
from spacetimectl.platforms import PlatformStrategy


class ProcessRunner:
    """
    Launch `<terminal> <flag> <suffix>` and collect stdout/stderr.

    One external process per call; no pooling.
    """

    def __init__(
        self,
        platform: PlatformStrategy,
        logger: Optional[CliLogger] = None,
        poll_interval: float = POLL_INTERVAL,
        terminate_grace_period: float = TERMINATE_GRACE_PERIOD,
        drain_timeout: float = STREAM_DRAIN_TIMEOUT,
    ):
        self.platform = platform
        self.logger = logger or CliLogger()
        self.poll_interval = poll_interval
        self.terminate_grace_period = terminate_grace_period
        self.drain_timeout = drain_timeout
        # Set after a fresh install so children can find the new binary
        self.path_override: Optional[str] = None
        self._background_tasks: Set[asyncio.Task] = set()

    def build_env(self) -> Dict[str, str]:
        """Child environment: ours, with `path_override` appended to PATH."""
        env = os.environ.copy()
        if self.path_override:
            key = self.platform.path_env_key
            current = env.get(key, "")
            env[key] = (
                f"{current}{os.pathsep}{self.path_override}" if current else self.path_override
            )
        return env

    async def run(self, invocation: CliInvocation) -> CliResult:
        """
        Run one CLI invocation.

        Args:
            invocation: Argument suffix, optional cancel token, background flag

        Returns:
            CliResult with both streams. A cancelled run returns the
            "Canceled" sentinel as its error; a background run returns an
            empty result straight away and its token, if any, still stops
            the child.

        Raises:
            ProcessStartError: If the terminal could not be launched
        """
        token = invocation.cancel_token
        if token is not None and token.cancelled:
            self.logger.log_warning(f"Skipped, already cancelled: {invocation.arg_suffix}")
            return CliResult.cancelled()

        self.logger.log_command(self.platform.terminal, self.platform.command_flag, invocation.arg_suffix)

        try:
            process = await self.platform.spawn(
                invocation.arg_suffix,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.build_env(),
                **self.platform.capture_popen_kwargs(),
            )
        except OSError as e:
            self.logger.log_error(f"Failed to start {self.platform.terminal}: {e}", context=invocation.arg_suffix)
            raise ProcessStartError(
                f"Failed to start {self.platform.terminal}",
                context=f"Command: {invocation.arg_suffix}\nReason: {e}",
            ) from e

        stdout_chunks: List[bytes] = []
        stderr_chunks: List[bytes] = []
        readers = [
            asyncio.create_task(self._read_stream(process.stdout, stdout_chunks)),
            asyncio.create_task(self._read_stream(process.stderr, stderr_chunks)),
        ]

        stop_task: Optional[asyncio.Task] = None

        def on_cancel() -> None:
            nonlocal stop_task
            if stop_task is None and process.returncode is None:
                stop_task = asyncio.ensure_future(self._terminate(process))
                if invocation.run_in_background:
                    self._track(stop_task)

        unregister = token.register(on_cancel) if token is not None else None

        if invocation.run_in_background:
            self._track(
                asyncio.create_task(
                    self._finish_in_background(process, readers, invocation, unregister)
                )
            )
            return CliResult()

        wait_task = asyncio.create_task(process.wait())

        try:
            while not wait_task.done():
                if token is not None and token.cancelled:
                    break
                await asyncio.wait({wait_task}, timeout=self.poll_interval)

            if token is not None and token.cancelled:
                on_cancel()
                if stop_task is not None:
                    await stop_task
                await self._drain(readers)
                output = _decode(stdout_chunks)
                self.logger.log_warning(f"Cancelled: {invocation.arg_suffix}")
                return CliResult.cancelled(output=output)
        finally:
            if unregister is not None:
                unregister()
            if not wait_task.done():
                wait_task.cancel()

        await self._drain(readers)
        result = build_cli_result(_decode(stdout_chunks), _decode(stderr_chunks))
        self.logger.log_cli_result(result)
        return result

    def run_detached(self, arg_suffix: str) -> subprocess.Popen:
        """
        Start a command that outlives this process (e.g. `spacetime start`).

        Raises:
            ProcessStartError: If the process could not be launched
        """
        self.logger.log_command(self.platform.terminal, self.platform.command_flag, arg_suffix)
        try:
            return self.platform.popen(
                arg_suffix,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                env=self.build_env(),
                **self.platform.detached_popen_kwargs(),
            )
        except OSError as e:
            self.logger.log_error(f"Failed to start detached process: {e}", context=arg_suffix)
            raise ProcessStartError(
                "Failed to start detached process",
                context=f"Command: {arg_suffix}\nReason: {e}",
            ) from e

    async def wait_for_background(self) -> None:
        """Wait for every background run started by this runner."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def _track(self, task: asyncio.Task) -> None:
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    @staticmethod
    async def _read_stream(stream: Optional[asyncio.StreamReader], chunks: List[bytes]) -> None:
        if stream is None:
            return
        while True:
            data = await stream.read(4096)
            if not data:
                break
            chunks.append(data)

    async def _drain(self, readers: List[asyncio.Task]) -> None:
        # A grandchild holding the pipe open must not block the caller forever
        done, pending = await asyncio.wait(readers, timeout=self.drain_timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM-style stop, then a forced kill once the grace period runs out."""
        if process.returncode is not None:
            return
        try:
            self.platform.request_stop(process)
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=self.terminate_grace_period)
        except asyncio.TimeoutError:
            self.logger.log_warning(
                f"Process {process.pid} ignored stop request, killing it"
            )
            try:
                self.platform.force_kill(process)
            except ProcessLookupError:
                return
            await process.wait()

    async def _finish_in_background(
        self,
        process: asyncio.subprocess.Process,
        readers: List[asyncio.Task],
        invocation: CliInvocation,
        unregister: Optional[Callable[[], None]] = None,
    ) -> None:
        try:
            await process.wait()
        finally:
            if unregister is not None:
                unregister()
        await asyncio.gather(*readers, return_exceptions=True)
        self.logger.log(
            f"Background command finished ({process.returncode}): {invocation.arg_suffix}",
            "DEBUG",
        )


def _decode(chunks: List[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")
