"""
Unit tests for the process module.

Child processes are real: the running Python interpreter executes small
inline scripts.
"""

import asyncio
import os
import sys
import threading
import time

import pytest

from gdenv.core.exceptions import ProcessError, UnsupportedOperationError
from gdenv.core.platform import SystemInfo
from gdenv.core.process import (
    ProcessEventKind,
    ProcessResult,
    ProcessRunner,
    prompt_passphrase,
)

PYTHON = sys.executable


def script(code):
    return ["-c", code]


class TestProcessResult:
    """Test ProcessResult."""

    def test_succeeded(self):
        """Test exit code 0 means success."""
        assert ProcessResult(0).succeeded
        assert not ProcessResult(1).succeeded


class TestRun:
    """Test run and run_unchecked."""

    def test_captures_output(self, tmp_path):
        """Test stdout and stderr are captured separately."""
        runner = ProcessRunner()
        result = asyncio.run(
            runner.run(
                tmp_path,
                PYTHON,
                script("import sys; print('out'); print('err', file=sys.stderr)"),
            )
        )

        assert result.exit_code == 0
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"

    def test_runs_in_working_directory(self, tmp_path):
        """Test the child runs in the given directory."""
        runner = ProcessRunner()
        result = asyncio.run(
            runner.run(tmp_path, PYTHON, script("import os; print(os.getcwd())"))
        )

        assert result.stdout.strip() == str(tmp_path.resolve())

    def test_nonzero_exit_raises(self, tmp_path):
        """Test run raises ProcessError with the exit code and stderr."""
        runner = ProcessRunner()

        with pytest.raises(ProcessError) as exc_info:
            asyncio.run(
                runner.run(
                    tmp_path,
                    PYTHON,
                    script("import sys; sys.stderr.write('boom'); sys.exit(3)"),
                )
            )

        assert exc_info.value.exit_code == 3
        assert exc_info.value.stderr == "boom"
        assert "boom" in str(exc_info.value)

    def test_unchecked_returns_failure(self, tmp_path):
        """Test run_unchecked returns non-zero results."""
        runner = ProcessRunner()
        result = asyncio.run(
            runner.run_unchecked(tmp_path, PYTHON, script("import sys; sys.exit(2)"))
        )

        assert result.exit_code == 2
        assert not result.succeeded

    def test_missing_executable(self, tmp_path):
        """Test a missing executable raises ProcessError."""
        runner = ProcessRunner()

        with pytest.raises(ProcessError) as exc_info:
            asyncio.run(runner.run(tmp_path, "gdenv-no-such-executable", []))

        assert exc_info.value.exit_code == -1

    def test_cancellation_terminates_child(self, tmp_path):
        """Test cancelling the awaiting task does not wait for the child."""
        runner = ProcessRunner()

        async def cancel_soon():
            task = asyncio.create_task(
                runner.run(tmp_path, PYTHON, script("import time; time.sleep(60)"))
            )
            await asyncio.sleep(0.5)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        start = time.monotonic()
        asyncio.run(cancel_soon())

        assert time.monotonic() - start < 30


class TestStreaming:
    """Test stream and run_with_updates."""

    def test_stream_ends_with_exit_event(self, tmp_path):
        """Test stream yields output lines then the exit code."""
        runner = ProcessRunner()

        async def collect():
            return [
                event
                async for event in runner.stream(
                    tmp_path, PYTHON, script("print('a'); print('b'); raise SystemExit(4)")
                )
            ]

        events = asyncio.run(collect())

        assert [e.text.strip() for e in events[:-1]] == ["a", "b"]
        assert events[-1].kind is ProcessEventKind.EXITED
        assert events[-1].exit_code == 4

    def test_run_with_updates_reports_lines(self, tmp_path):
        """Test callbacks receive each stdout and stderr line."""
        runner = ProcessRunner()
        out, err = [], []

        result = asyncio.run(
            runner.run_with_updates(
                tmp_path,
                PYTHON,
                script(
                    "import sys\n"
                    "print('one', flush=True)\n"
                    "print('two', flush=True)\n"
                    "print('warn', file=sys.stderr)"
                ),
                on_stdout=out.append,
                on_stderr=err.append,
            )
        )

        assert [line.strip() for line in out] == ["one", "two"]
        assert [line.strip() for line in err] == ["warn"]
        assert result.stdout.split() == ["one", "two"]

    def test_run_with_updates_checks_exit_code(self, tmp_path):
        """Test a failing process raises unless check is disabled."""
        runner = ProcessRunner()
        failing = script("raise SystemExit(1)")

        with pytest.raises(ProcessError):
            asyncio.run(
                runner.run_with_updates(
                    tmp_path, PYTHON, failing, on_stdout=print, on_stderr=print
                )
            )

        result = asyncio.run(
            runner.run_with_updates(
                tmp_path, PYTHON, failing, on_stdout=print, on_stderr=print, check=False
            )
        )
        assert result.exit_code == 1


class TestRunWithIo:
    """Test interactive processes."""

    def test_responder_answers_prompt(self, tmp_path):
        """Test the responder's reply is written to stdin."""
        runner = ProcessRunner()
        code = (
            "import sys\n"
            "sys.stdout.write('Enter passphrase:')\n"
            "sys.stdout.flush()\n"
            "answer = sys.stdin.readline().strip()\n"
            "print('got ' + answer)"
        )

        def responder(text):
            return "secret" if "passphrase" in text else None

        result = asyncio.run(
            runner.run_with_io(tmp_path, PYTHON, script(code), responder=responder)
        )

        assert result.succeeded
        assert "got secret" in result.stdout
        assert "passphrase" not in result.stdout

    def test_unanswered_output_is_forwarded(self, tmp_path):
        """Test output not answered goes to on_output."""
        runner = ProcessRunner()
        seen = []

        result = asyncio.run(
            runner.run_with_io(
                tmp_path,
                PYTHON,
                script("print('hello')"),
                responder=lambda text: None,
                on_output=seen.append,
            )
        )

        assert "hello" in "".join(seen)
        assert result.stdout.strip() == "hello"

    def test_responder_runs_off_the_event_loop(self, tmp_path):
        """Test a blocking responder does not run on the event loop thread."""
        runner = ProcessRunner()
        threads = []

        def responder(text):
            threads.append(threading.current_thread())
            return None

        asyncio.run(
            runner.run_with_io(tmp_path, PYTHON, script("print('hi')"), responder=responder)
        )

        assert threads
        assert all(thread is not threading.main_thread() for thread in threads)

    @pytest.mark.skipif(sys.platform == "win32", reason="os.kill(pid, 0) is POSIX only")
    def test_responder_error_terminates_process(self, tmp_path):
        """Test a raising responder kills the child and propagates its error."""
        runner = ProcessRunner()
        pid_file = tmp_path / "pid"
        code = (
            "import os, sys, time\n"
            f"open({str(pid_file)!r}, 'w').write(str(os.getpid()))\n"
            "sys.stdout.write('Enter passphrase:')\n"
            "sys.stdout.flush()\n"
            "time.sleep(30)"
        )

        def responder(text):
            raise RuntimeError("no terminal")

        start = time.monotonic()
        with pytest.raises(RuntimeError, match="no terminal"):
            asyncio.run(runner.run_with_io(tmp_path, PYTHON, script(code), responder=responder))

        assert time.monotonic() - start < 15
        with pytest.raises(ProcessLookupError):
            os.kill(int(pid_file.read_text()), 0)


class TestPromptPassphrase:
    """Test the default responder."""

    def test_ignores_other_output(self):
        """Test non-prompt output gets no reply."""
        assert prompt_passphrase("Cloning into 'addon'...") is None


class TestRunElevatedOnWindows:
    """Test run_elevated_on_windows gating."""

    def test_rejected_off_windows(self):
        """Test the operation is unsupported on other systems."""
        runner = ProcessRunner(SystemInfo("linux", "x64"))

        with pytest.raises(UnsupportedOperationError):
            asyncio.run(runner.run_elevated_on_windows("cmd", "/c echo hi"))
