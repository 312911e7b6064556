"""Stdio transport: spawn ``signal-cli jsonRpc`` and talk over its pipes.

Security Note: uses asyncio.create_subprocess_exec(); arguments are passed
as a list, never interpolated into a shell command. On Windows the
executable is a .bat/.cmd wrapper, so it is run through ``cmd.exe /c`` with
the path quoted to survive spaces.
"""

from __future__ import annotations

import asyncio
import re
import shutil
import sys

from signal_sdk.core.config import ClientConfig
from signal_sdk.core.context import ClientContext
from signal_sdk.core.errors import SignalConnectionError
from signal_sdk.transport.base import (
    STREAM_LIMIT,
    DiagnosticLine,
    Transport,
    TransportHandlers,
    pump_lines,
)

_LEVEL_RE = re.compile(r"^(ERROR|WARN|INFO|DEBUG)\s+")

# WARN lines signal-cli prints during normal operation and shutdown
BENIGN_WARN_MARKERS = (
    "Failed to get sender certificate",
    "ignoring: java.lang.InterruptedException",
    "Request was interrupted",
    "Connection reset",
    "Socket closed",
    "gracefully closing",
)
BENIGN_UNKNOWN_MARKERS = ("Daemon closed", "gracefully")

_DRAIN_TIMEOUT = 1.0


def classify_stderr_line(line: str) -> DiagnosticLine | None:
    """Classify one stderr line of the form ``LEVEL  Component - Message``.

    Returns:
        None for blank lines, otherwise the classified line. ERROR lines are
        never benign; INFO and DEBUG always are.
    """
    message = line.strip()
    if not message:
        return None
    match = _LEVEL_RE.match(message)
    level = match.group(1).lower() if match else "unknown"

    if level == "error":
        benign = False
    elif level == "warn":
        benign = any(marker in message for marker in BENIGN_WARN_MARKERS)
    elif level == "unknown":
        benign = any(marker in message for marker in BENIGN_UNKNOWN_MARKERS)
    else:
        benign = True
    return DiagnosticLine(level=level, message=message, benign=benign)


def build_daemon_args(config: ClientConfig) -> list[str]:
    """signal-cli arguments for stdio JSON-RPC mode."""
    args: list[str] = []
    if config.account:
        args += ["-a", config.account]
    if config.trust_new_identities != "on-first-use":
        args += ["--trust-new-identities", config.trust_new_identities]
    if config.disable_send_log:
        args.append("--disable-send-log")
    args.append("jsonRpc")
    return args


def build_command(
    path: str,
    args: list[str],
    platform: str = sys.platform,
) -> tuple[str, list[str]]:
    """Executable and argv for spawning ``path`` with ``args``.

    On Windows the path is wrapped as ``cmd.exe /c "<path>"`` so paths with
    spaces are passed as one token; elsewhere the path is executed directly.
    """
    if platform == "win32":
        return "cmd.exe", ["/c", f'"{path}"', *args]
    return path, list(args)


def resolve_executable(path: str) -> str:
    """Resolve ``path`` through PATH, falling back to the literal value."""
    return shutil.which(path) or path


class ProcessTransport(Transport):
    """Owns one ``signal-cli jsonRpc`` child process."""

    name = "process"

    def __init__(self, ctx: ClientContext, handlers: TransportHandlers) -> None:
        super().__init__(ctx, handlers)
        self._process: asyncio.subprocess.Process | None = None
        self._stdout_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._monitor_task: asyncio.Task[None] | None = None
        self._first_line: asyncio.Event = asyncio.Event()

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    async def open(self) -> None:
        config = self._ctx.config
        program, argv = build_command(
            resolve_executable(config.signal_cli_path),
            build_daemon_args(config),
        )
        self._first_line = asyncio.Event()

        self._logger.debug("process.starting", command=program, args_count=len(argv))
        try:
            process = await asyncio.create_subprocess_exec(
                program,
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            raise SignalConnectionError(f"Failed to start signal-cli ({program}): {e}") from e

        self._process = process
        assert process.stdout is not None and process.stderr is not None
        self._stdout_task = asyncio.create_task(
            pump_lines(process.stdout, self._on_stdout_line, self._logger, "process.stdout"),
            name="signal-cli-stdout",
        )
        self._stderr_task = asyncio.create_task(
            pump_lines(process.stderr, self._on_stderr_line, self._logger, "process.stderr"),
            name="signal-cli-stderr",
        )

        exited = asyncio.create_task(process.wait(), name="signal-cli-wait")
        ready = asyncio.create_task(self._first_line.wait(), name="signal-cli-ready")
        try:
            await asyncio.wait(
                {exited, ready},
                timeout=config.startup_grace_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except BaseException:
            await self._abort_startup(process, exited)
            raise
        finally:
            ready.cancel()

        if process.returncode is not None:
            exited.cancel()
            await self._drain_readers()
            raise SignalConnectionError(
                f"signal-cli exited during startup with code {process.returncode}"
            )

        self._mark_open()
        self._monitor_task = asyncio.create_task(self._monitor(exited), name="signal-cli-monitor")
        self._logger.info("process.started", pid=process.pid)

    async def send(self, line: str) -> None:
        self._require_open()
        assert self._process is not None and self._process.stdin is not None
        try:
            self._process.stdin.write(line.encode("utf-8"))
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise SignalConnectionError(f"signal-cli stdin closed: {e}") from e

    async def close(self, graceful: bool = True) -> None:
        process = self._process
        if process is None:
            return
        if process.returncode is None:
            if graceful:
                await self._terminate(process)
            else:
                self._kill(process)
                await process.wait()
        if self._monitor_task is not None:
            await asyncio.gather(self._monitor_task, return_exceptions=True)
        else:
            await self._drain_readers()
        self._process = None

    async def _monitor(self, exited: asyncio.Task[int]) -> None:
        code = await exited
        # Flush lines still buffered in the pipes before reporting the close
        await self._drain_readers()
        self._logger.info("process.exited", code=code)
        self._report_close(code)

    async def _abort_startup(self, process: asyncio.subprocess.Process, exited: asyncio.Task[int]) -> None:
        """Kill a child whose startup wait was interrupted and stop its readers."""
        self._logger.warning("process.startup_aborted", pid=process.pid)
        exited.cancel()
        self._kill(process)
        await process.wait()
        readers = [t for t in (self._stdout_task, self._stderr_task) if t is not None]
        for task in readers:
            task.cancel()
        await asyncio.gather(*readers, return_exceptions=True)
        self._process = None

    async def _drain_readers(self) -> None:
        tasks = {t for t in (self._stdout_task, self._stderr_task) if t is not None}
        if not tasks:
            return
        # A grandchild holding the pipes open must not block the close
        _, pending = await asyncio.wait(tasks, timeout=_DRAIN_TIMEOUT)
        for task in pending:
            task.cancel()

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM, then SIGKILL once the shutdown grace window passes."""
        grace = self._ctx.config.shutdown_grace_seconds
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=grace)
        except TimeoutError:
            self._logger.warning("process.kill_after_grace", pid=process.pid, grace_seconds=grace)
            self._kill(process)
            await process.wait()

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            pass

    def _on_stdout_line(self, line: str) -> None:
        self._first_line.set()
        self._handlers.on_line(line)

    def _on_stderr_line(self, line: str) -> None:
        diagnostic = classify_stderr_line(line)
        if diagnostic is not None:
            self._handlers.on_diagnostic(diagnostic)


__all__ = [
    "BENIGN_UNKNOWN_MARKERS",
    "BENIGN_WARN_MARKERS",
    "ProcessTransport",
    "build_command",
    "build_daemon_args",
    "classify_stderr_line",
    "resolve_executable",
]
