"""
Git client infrastructure for repokeeper.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic

A non-zero exit is an ordinary result (GitResult.succeeded is False).
Only a git binary that cannot be spawned at all raises, as GitNotFoundError.
"""

import os
import subprocess
import sys
from dataclasses import dataclass
from typing import Optional, List, Sequence
import logging

from ..exit_codes import GitNotFoundError, FilesystemError

logger = logging.getLogger(__name__)

# Keeps child processes from flashing a console window on Windows
CREATE_NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0x08000000)


@dataclass(frozen=True)
class GitResult:
    """Exit status and captured output of one git invocation."""
    succeeded: bool
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def output(self) -> str:
        """stdout decoded and stripped."""
        return self.stdout.decode("utf-8", errors="replace").strip()

    @property
    def error(self) -> str:
        """stderr decoded and stripped."""
        return self.stderr.decode("utf-8", errors="replace").strip()

    def lines(self) -> List[str]:
        """Non-empty, stripped stdout lines."""
        return [line.strip() for line in self.output.splitlines() if line.strip()]


class GitClient:
    """
    Abstraction over git commands.

    Provides methods for the handful of git operations repokeeper needs,
    with consistent error handling and return types.

    Example:
        client = GitClient()
        result = client.run("/path/to/repo", ["fetch", "--tags"])
        if not result.succeeded:
            print(result.error)
    """

    def __init__(self, executable: str = "git"):
        """
        Initialize GitClient.

        Args:
            executable: git binary name or path (default: "git")
        """
        self.executable = executable

    def _popen_kwargs(self) -> dict:
        env = os.environ.copy()
        # Fail on credential prompts instead of waiting on a terminal
        env.setdefault("GIT_TERMINAL_PROMPT", "0")
        kwargs = {"env": env, "stdin": subprocess.DEVNULL}
        if sys.platform == "win32":
            kwargs["creationflags"] = CREATE_NO_WINDOW
        return kwargs

    def run(self, cwd: str, args: Sequence[str]) -> GitResult:
        """
        Run a git command and capture both output streams.

        Args:
            cwd: Working directory
            args: Arguments after the git executable

        Returns:
            GitResult; succeeded is True iff git exited with status 0

        Raises:
            GitNotFoundError: git could not be spawned
            FilesystemError: cwd does not exist
        """
        if not os.path.isdir(cwd):
            raise FilesystemError(f"Working directory does not exist: {cwd}")

        cmd = [self.executable, *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                **self._popen_kwargs()
            )
        except OSError as e:
            raise GitNotFoundError(f"Cannot run {self.executable}: {e}") from e

        if result.returncode != 0:
            logger.debug(
                f"git {' '.join(args)} exited with {result.returncode} in {cwd}: "
                f"{result.stderr.decode('utf-8', errors='replace').strip()}"
            )

        return GitResult(
            succeeded=result.returncode == 0,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def clone(self, remote_url: str, target_dir: str, cwd: str = ".") -> GitResult:
        """Clone without progress, waiting for git to finish."""
        return self.run(cwd, ["clone", remote_url, target_dir])

    def spawn_clone(self, remote_url: str, target_dir: str, cwd: str = ".") -> subprocess.Popen:
        """
        Start `git clone --progress` with stderr piped for live decoding.

        stdout is discarded; git writes all progress to stderr.

        Raises:
            GitNotFoundError: git could not be spawned
        """
        cmd = [self.executable, "clone", "--progress", remote_url, target_dir]
        try:
            return subprocess.Popen(
                cmd,
                cwd=cwd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                **self._popen_kwargs()
            )
        except OSError as e:
            raise GitNotFoundError(f"Cannot run {self.executable}: {e}") from e

    def version(self) -> Optional[str]:
        """Return `git --version` output, or None if it failed."""
        result = self.run(".", ["--version"])
        if result.succeeded:
            return result.output
        return None

    def is_available(self) -> bool:
        """Check whether git can be run at all."""
        try:
            return self.version() is not None
        except GitNotFoundError:
            return False

    def is_git_directory(self, path: str) -> bool:
        """Check if path is inside a git work tree."""
        if not os.path.isdir(path):
            return False
        return self.run(path, ["rev-parse", "--is-inside-work-tree"]).succeeded

    def current_branch(self, path: str) -> Optional[str]:
        """Get current branch name."""
        result = self.run(path, ["rev-parse", "--abbrev-ref", "HEAD"])
        if result.succeeded and result.output:
            return result.output
        return None

    def remote_url(self, path: str) -> Optional[str]:
        """Get the origin remote URL, or None if not configured."""
        result = self.run(path, ["config", "--get", "remote.origin.url"])
        if result.succeeded and result.output:
            return result.output
        return None

    def remote_branches(self, path: str) -> Optional[List[str]]:
        """
        List remote-tracking branches as printed by `git branch -r`.

        Returns:
            Stripped lines (e.g. "origin/dev"), or None if git failed
        """
        result = self.run(path, ["branch", "-r"])
        if not result.succeeded:
            return None
        return result.lines()

    def tags(self, path: str) -> GitResult:
        """List tags, most recently created first."""
        return self.run(path, ["tag", "--sort=-creatordate"])

    def fetch_tags(self, path: str) -> bool:
        """Fetch tags from the default remote."""
        return self.run(path, ["fetch", "--tags"]).succeeded

    def pull(self, path: str) -> bool:
        """Pull the current branch."""
        return self.run(path, ["pull"]).succeeded

    def reset_hard(self, path: str) -> bool:
        """Discard all local modifications."""
        return self.run(path, ["reset", "--hard"]).succeeded

    def checkout(self, path: str, ref: str) -> GitResult:
        """Check out an existing branch or ref."""
        return self.run(path, ["checkout", ref])

    def checkout_tag(self, path: str, tag: str) -> GitResult:
        """Check out a tag (detached HEAD)."""
        return self.run(path, ["checkout", f"tags/{tag}"])

    def checkout_tracking_branch(self, path: str, branch: str) -> GitResult:
        """Create a local branch tracking origin/<branch> and check it out."""
        return self.run(path, ["checkout", "-b", branch, f"origin/{branch}"])

