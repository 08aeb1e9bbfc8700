"""
Pytest configuration and shared fixtures for gdenv tests.
"""

import asyncio
import shutil
from pathlib import Path

import pytest

from gdenv.core.exceptions import ProcessError
from gdenv.core.platform import LINUX, MACOS, WINDOWS, SystemInfo
from gdenv.core.process import ProcessResult


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require git or network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if config.getoption("--integration"):
        return
    skip_integration = pytest.mark.skip(reason="need --integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Fake git
# ============================================================================


class FakeGitRunner:
    """
    ProcessRunner stand-in that emulates the git commands gdenv runs.

    Remote repositories are plain directories registered in ``remotes``;
    cloning copies them. Revisions resolve through ``commits`` and the names
    in ``branches`` are reported as branches. Every call is recorded.

    Attributes:
        remotes: URL -> directory that a clone copies
        commits: Revision name -> commit hash
        branches: Revision names that are branches
        hanging: URLs whose clone never finishes (until cancelled)
        failing: Git subcommand -> stderr of a failure
        calls: (working_dir, args) of every call, in order
    """

    def __init__(self):
        self.remotes = {}
        self.commits = {"main": "a" * 40}
        self.branches = {"main"}
        self.hanging = set()
        self.failing = {}
        self.calls = []
        self.heads = {}
        self.running = 0
        self.max_running = 0

    def commands(self, name):
        """All recorded calls of one git subcommand."""
        return [call for call in self.calls if call[1][0] == name]

    async def _git(self, working_dir, exe, args):
        working_dir = Path(working_dir)
        args = list(args)
        self.calls.append((working_dir, args))
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            # Let other pipelines interleave like real processes would
            await asyncio.sleep(0)
            return await self._handle(working_dir, args)
        finally:
            self.running -= 1

    async def _handle(self, working_dir, args):
        command = args[0]
        if command in self.failing:
            return ProcessResult(128, stderr=self.failing[command])

        if command == "clone":
            url, name = args[-2], args[-1]
            if url in self.hanging:
                await asyncio.sleep(3600)
            if url not in self.remotes:
                return ProcessResult(128, stderr=f"fatal: repository '{url}' not found")
            destination = working_dir / name
            shutil.copytree(self.remotes[url], destination)
            (destination / ".git").mkdir()
            self.heads[destination] = self.commits["main"]
            return ProcessResult(0)

        if command == "rev-parse":
            revision = args[-1][: -len("^{commit}")]
            commit = (
                self.heads.get(working_dir)
                if revision == "HEAD"
                else self.commits.get(revision)
            )
            return ProcessResult(0, stdout=f"{commit}\n") if commit else ProcessResult(1)

        if command == "checkout":
            commit = self.commits.get(args[1])
            if commit is None:
                return ProcessResult(
                    1, stderr=f"error: pathspec '{args[1]}' did not match any file(s)"
                )
            self.heads[working_dir] = commit
            return ProcessResult(0)

        if command == "show-ref":
            ref = args[-1]
            name = ref.rsplit("/", 1)[-1]
            return ProcessResult(0 if name in self.branches else 1)

        # fetch, pull, submodule
        return ProcessResult(0)

    async def run(self, working_dir, exe, args):
        result = await self._git(working_dir, exe, args)
        if not result.succeeded:
            raise ProcessError(exe, args, result.exit_code, result.stdout, result.stderr)
        return result

    async def run_unchecked(self, working_dir, exe, args):
        return await self._git(working_dir, exe, args)

    async def run_with_io(self, working_dir, exe, args, responder=None, on_output=None):
        return await self._git(working_dir, exe, args)


@pytest.fixture
def fake_git():
    """Fake git process runner."""
    return FakeGitRunner()


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def gdenv_home(tmp_path, monkeypatch) -> Path:
    """Point GDENV_HOME at an isolated temporary directory."""
    home = tmp_path / "gdenv-home"
    home.mkdir()
    monkeypatch.setenv("GDENV_HOME", str(home))
    return home


@pytest.fixture
def linux_x64() -> SystemInfo:
    return SystemInfo(LINUX, "x64")


@pytest.fixture
def macos_arm64() -> SystemInfo:
    return SystemInfo(MACOS, "arm64")


@pytest.fixture
def windows_x64() -> SystemInfo:
    return SystemInfo(WINDOWS, "x64")


@pytest.fixture(autouse=True)
def reset_caches():
    """Reset module-level state between tests."""
    from gdenv.cli import utils
    from gdenv.core import platform

    platform.clear_system_info_cache()
    yield
    utils.set_display_emoji(True)
