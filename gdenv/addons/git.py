"""
Git operations used to mirror addon repositories.

All commands run through a ProcessRunner so they can be cancelled (the
child process is terminated) and replaced in tests. Network operations go
through ``run_with_io`` so SSH key passphrase prompts can be answered.
"""

import logging
from pathlib import Path
from typing import Optional

from gdenv.core.exceptions import ProcessError
from gdenv.core.process import ProcessResult, ProcessRunner

logger = logging.getLogger(__name__)

GIT = "git"


class GitClient:
    """
    Thin async wrapper over the git command line.

    Attributes:
        process_runner: Runs the git processes
    """

    def __init__(self, process_runner: Optional[ProcessRunner] = None):
        self.process_runner = process_runner or ProcessRunner()

    async def _run_interactive(self, working_dir: Path, args: list) -> ProcessResult:
        result = await self.process_runner.run_with_io(
            working_dir, GIT, args, on_output=lambda text: logger.debug(text.rstrip())
        )
        if not result.succeeded:
            raise ProcessError(GIT, args, result.exit_code, result.stdout, result.stderr)
        return result

    async def clone(self, url: str, destination: Path):
        """
        Clone a repository (with submodules) into destination.

        Raises:
            ProcessError: If git fails
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Cloning {url} into {destination}")
        await self._run_interactive(
            destination.parent,
            ["clone", "--recurse-submodules", url, destination.name],
        )

    async def fetch(self, repository: Path):
        """Fetch all remotes and tags."""
        logger.debug(f"Fetching updates in {repository}")
        await self._run_interactive(repository, ["fetch", "--all", "--tags"])

    async def checkout(self, repository: Path, revision: str):
        """Check out a branch, tag or commit."""
        logger.debug(f"Checking out {revision} in {repository}")
        await self.process_runner.run(repository, GIT, ["checkout", revision])

    async def pull(self, repository: Path):
        """Fast-forward the current branch to its upstream."""
        await self._run_interactive(repository, ["pull", "--ff-only"])

    async def update_submodules(self, repository: Path):
        await self.process_runner.run(
            repository, GIT, ["submodule", "update", "--init", "--recursive"]
        )

    async def resolve(self, repository: Path, revision: str) -> Optional[str]:
        """
        Resolve a revision to a commit hash using local refs only.

        Returns:
            The commit hash, or None if the revision is unknown locally
        """
        result = await self.process_runner.run_unchecked(
            repository, GIT, ["rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}"]
        )
        commit = result.stdout.strip()
        return commit if result.succeeded and commit else None

    async def head(self, repository: Path) -> Optional[str]:
        """Commit hash of HEAD."""
        return await self.resolve(repository, "HEAD")

    async def is_branch(self, repository: Path, revision: str) -> bool:
        """True if revision names a local or remote-tracking branch."""
        for ref in (f"refs/heads/{revision}", f"refs/remotes/origin/{revision}"):
            result = await self.process_runner.run_unchecked(
                repository, GIT, ["show-ref", "--verify", "--quiet", ref]
            )
            if result.succeeded:
                return True
        return False


__all__ = ["GitClient"]
