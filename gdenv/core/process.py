"""
External process execution for gdenv.

This module runs external commands (git, archive tools, elevation helpers)
as asyncio subprocesses. Every variant resolves to a ProcessResult:

- run(): raises ProcessError on a non-zero exit code
- run_unchecked(): returns the result whatever the exit code
- run_with_updates(): streams stdout/stderr lines to callbacks as they arrive
- stream(): async iterator of ProcessEvent values ending with an exit event
- run_with_io(): answers stdout prompts (e.g. passphrases) through stdin
- run_elevated_on_windows(): runs a command with administrator rights

Cancelling the awaiting task terminates the child process.

Usage:
    runner = ProcessRunner()
    result = await runner.run(Path("."), "git", ["status"])
    print(result.stdout)
"""

import asyncio
import getpass
import logging
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Callable, Optional, Sequence, Union

from gdenv.core.exceptions import ProcessError, UnsupportedOperationError
from gdenv.core.platform import SystemInfo, detect_system_info

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Seconds to wait for a terminated child before killing it
TERMINATE_GRACE_PERIOD = 5.0


@dataclass(frozen=True)
class ProcessResult:
    """External process execution result."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        """True if the process exited with code 0."""
        return self.exit_code == 0


class ProcessEventKind(Enum):
    STDOUT = "stdout"
    STDERR = "stderr"
    EXITED = "exited"


@dataclass(frozen=True)
class ProcessEvent:
    """One event of a streamed process: an output chunk or the exit code."""

    kind: ProcessEventKind
    text: str = ""
    exit_code: Optional[int] = None


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Terminate a child process, killing it if it does not exit in time."""
    if process.returncode is not None:
        return
    logger.debug(f"Terminating process {process.pid}")
    try:
        process.terminate()
        await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE_PERIOD)
    except ProcessLookupError:
        pass
    except asyncio.TimeoutError:
        logger.debug(f"Process {process.pid} ignored terminate, killing it")
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()


async def _pump_lines(
    reader: asyncio.StreamReader, kind: ProcessEventKind, queue: asyncio.Queue
) -> None:
    """Forward lines from a pipe to a queue; None marks end of stream."""
    try:
        while True:
            line = await reader.readline()
            if not line:
                break
            await queue.put(ProcessEvent(kind, _decode(line)))
    finally:
        await queue.put(None)


def prompt_passphrase(text: str) -> Optional[str]:
    """
    Default responder for run_with_io(): ask the user for a passphrase.

    Returns:
        The passphrase typed by the user if the output asks for one,
        otherwise None (nothing is written to stdin)
    """
    if "passphrase" not in text.lower():
        return None
    return getpass.getpass(text.strip() + " ")


class ProcessRunner:
    """
    Runs external processes asynchronously.

    Attributes:
        system_info: Host information, used to gate Windows-only operations
    """

    def __init__(self, system_info: Optional[SystemInfo] = None):
        self.system_info = system_info or detect_system_info()

    async def _spawn(
        self,
        working_dir: PathLike,
        exe: str,
        args: Sequence[str],
        stdin: Optional[int] = None,
    ) -> asyncio.subprocess.Process:
        logger.debug(f"Running in {working_dir}: {exe} {' '.join(args)}")
        try:
            return await asyncio.create_subprocess_exec(
                exe,
                *args,
                cwd=str(working_dir),
                stdin=stdin if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessError(exe, args, -1, stderr=str(e)) from e

    async def run(
        self, working_dir: PathLike, exe: str, args: Sequence[str]
    ) -> ProcessResult:
        """
        Run an external process and wait for it.

        Raises:
            ProcessError: If the process cannot start or exits non-zero
        """
        result = await self.run_unchecked(working_dir, exe, args)
        if not result.succeeded:
            raise ProcessError(exe, args, result.exit_code, result.stdout, result.stderr)
        return result

    async def run_unchecked(
        self, working_dir: PathLike, exe: str, args: Sequence[str]
    ) -> ProcessResult:
        """Run an external process; a non-zero exit code is not an error."""
        process = await self._spawn(working_dir, exe, args)
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            await _terminate(process)
            raise
        return ProcessResult(process.returncode, _decode(stdout), _decode(stderr))

    async def stream(
        self, working_dir: PathLike, exe: str, args: Sequence[str]
    ) -> AsyncIterator[ProcessEvent]:
        """
        Run an external process, yielding output events as they arrive.

        Stdout and stderr lines are yielded in arrival order; the last event
        is always an EXITED event carrying the exit code. Closing the
        iterator early terminates the process.
        """
        process = await self._spawn(working_dir, exe, args)
        queue: asyncio.Queue = asyncio.Queue()
        pumps = [
            asyncio.create_task(
                _pump_lines(process.stdout, ProcessEventKind.STDOUT, queue)
            ),
            asyncio.create_task(
                _pump_lines(process.stderr, ProcessEventKind.STDERR, queue)
            ),
        ]
        try:
            open_streams = len(pumps)
            while open_streams:
                event = await queue.get()
                if event is None:
                    open_streams -= 1
                    continue
                yield event
            exit_code = await process.wait()
            yield ProcessEvent(ProcessEventKind.EXITED, exit_code=exit_code)
        finally:
            for pump in pumps:
                pump.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)
            await _terminate(process)

    async def run_with_updates(
        self,
        working_dir: PathLike,
        exe: str,
        args: Sequence[str],
        on_stdout: Callable[[str], None],
        on_stderr: Callable[[str], None],
        check: bool = True,
    ) -> ProcessResult:
        """
        Run an external process, reporting output lines through callbacks.

        Args:
            on_stdout: Called with each stdout line
            on_stderr: Called with each stderr line
            check: Raise ProcessError on a non-zero exit code

        Returns:
            ProcessResult with the complete output
        """
        stdout_parts: list[str] = []
        stderr_parts: list[str] = []
        exit_code = -1

        async with aclosing(self.stream(working_dir, exe, args)) as events:
            async for event in events:
                if event.kind is ProcessEventKind.STDOUT:
                    on_stdout(event.text)
                    stdout_parts.append(event.text)
                elif event.kind is ProcessEventKind.STDERR:
                    on_stderr(event.text)
                    stderr_parts.append(event.text)
                else:
                    exit_code = event.exit_code

        result = ProcessResult(exit_code, "".join(stdout_parts), "".join(stderr_parts))
        if check and not result.succeeded:
            raise ProcessError(exe, args, result.exit_code, result.stdout, result.stderr)
        return result

    async def run_with_io(
        self,
        working_dir: PathLike,
        exe: str,
        args: Sequence[str],
        responder: Callable[[str], Optional[str]] = prompt_passphrase,
        on_output: Optional[Callable[[str], None]] = None,
    ) -> ProcessResult:
        """
        Run an interactive process that may prompt for input.

        Each stdout chunk is offered to ``responder``; when it returns a
        string, that string plus a newline is written to the process stdin.
        Chunks not answered are passed to ``on_output``.
        The responder runs in a worker thread so it may block on user input.
        If it raises, the process is terminated and the error propagates.

        Returns:
            ProcessResult (not checked for exit code)
        """
        process = await self._spawn(
            working_dir, exe, args, stdin=asyncio.subprocess.PIPE
        )
        stdout_parts: list[str] = []
        stderr_parts: list[str] = []

        async def read_stdout():
            while True:
                chunk = await process.stdout.read(1024)
                if not chunk:
                    break
                text = _decode(chunk)
                # Responders may block on the terminal (getpass)
                reply = await asyncio.to_thread(responder, text)
                if reply is not None:
                    process.stdin.write((reply + "\n").encode("utf-8"))
                    await process.stdin.drain()
                    continue
                stdout_parts.append(text)
                if on_output:
                    on_output(text)

        async def read_stderr():
            while True:
                chunk = await process.stderr.read(1024)
                if not chunk:
                    break
                text = _decode(chunk)
                stderr_parts.append(text)
                if on_output:
                    on_output(text)

        readers = [asyncio.create_task(read_stdout()), asyncio.create_task(read_stderr())]
        try:
            await asyncio.gather(*readers)
            exit_code = await process.wait()
        except BaseException:
            for reader in readers:
                reader.cancel()
            await asyncio.gather(*readers, return_exceptions=True)
            await _terminate(process)
            raise
        finally:
            if process.stdin and not process.stdin.is_closing():
                process.stdin.close()

        return ProcessResult(exit_code, "".join(stdout_parts), "".join(stderr_parts))

    async def run_elevated_on_windows(self, exe: str, args: str) -> ProcessResult:
        """
        Run a command that requires the administrator role on Windows.

        The user is prompted for elevation through UAC unless the current
        process is already elevated.

        Raises:
            UnsupportedOperationError: When not running on Windows
        """
        if not self.system_info.is_windows:
            raise UnsupportedOperationError(
                "run_elevated_on_windows is only supported on Windows."
            )

        if _is_elevated():
            return await self.run_unchecked(Path.cwd(), "cmd", ["/c", exe, args])

        def quote(value: str) -> str:
            return "'" + value.replace("'", "''") + "'"

        script = f"$p = Start-Process -FilePath {quote(exe)} -Verb RunAs -Wait -PassThru"
        if args:
            script += f" -ArgumentList {quote(args)}"
        script += "; exit $p.ExitCode"
        return await self.run_unchecked(
            Path.cwd(), "powershell", ["-NoProfile", "-NonInteractive", "-Command", script]
        )


def _is_elevated() -> bool:
    """Check whether the current Windows process has administrator rights."""
    import ctypes

    try:
        return ctypes.windll.shell32.IsUserAnAdmin() != 0
    except (AttributeError, OSError):
        return False


__all__ = [
    "ProcessResult",
    "ProcessEvent",
    "ProcessEventKind",
    "ProcessRunner",
    "prompt_passphrase",
]
