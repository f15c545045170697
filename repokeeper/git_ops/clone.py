"""
Streaming clone worker.

CloneJob.run() executes on a worker thread: it spawns `git clone
--progress`, decodes stderr line by line and sends each ProgressEvent
through a ProgressChannel while git is still running.
"""

import logging
import subprocess
import threading
from collections import deque
from typing import Optional

from ..domain.progress import ProgressEvent
from ..infra.git_client import GitClient, GitResult
from .channel import ProgressChannel
from .progress import ProgressDecoder, iter_progress_lines

logger = logging.getLogger(__name__)

# stderr lines kept for the failure message
STDERR_TAIL_LINES = 20


class CloneJob:
    """
    One `git clone` with live progress.

    Example:
        job = CloneJob(git, url, "/repos/.tmp_name", channel, cwd="/repos")
        result = await loop.run_in_executor(pool, job.run)
    """

    def __init__(
        self,
        git: GitClient,
        remote_url: str,
        target_dir: str,
        channel: ProgressChannel[ProgressEvent],
        cwd: str = ".",
    ):
        self.git = git
        self.remote_url = remote_url
        self.target_dir = target_dir
        self.channel = channel
        self.cwd = cwd
        self._process: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def run(self) -> GitResult:
        """
        Run the clone to completion. Called on a worker thread.

        The channel is always finished on return, including when spawning
        git fails.

        Raises:
            GitNotFoundError: git could not be spawned
        """
        try:
            with self._lock:
                if self._cancelled:
                    return GitResult(succeeded=False, stderr=b"Clone cancelled")
                self._process = self.git.spawn_clone(self.remote_url, self.target_dir, cwd=self.cwd)
            process = self._process

            decoder = ProgressDecoder()
            tail: deque = deque(maxlen=STDERR_TAIL_LINES)

            assert process.stderr is not None
            with process.stderr:
                for line in iter_progress_lines(process.stderr):
                    tail.append(line)
                    event = decoder.feed(line)
                    if event is None:
                        continue
                    if not self.channel.send(event):
                        logger.info(f"Progress consumer went away, stopping clone of {self.remote_url}")
                        self.cancel()
                        break

            returncode = process.wait()
            stderr = "\n".join(tail).encode("utf-8")
            if self._cancelled:
                return GitResult(succeeded=False, stderr=b"Clone cancelled")
            return GitResult(succeeded=returncode == 0, stderr=stderr)
        finally:
            self.channel.finish()

    def cancel(self) -> None:
        """Kill the child process, if any. Safe from any thread."""
        with self._lock:
            self._cancelled = True
            process = self._process
        if process is not None and process.poll() is None:
            try:
                process.kill()
            except OSError as e:
                logger.debug(f"Could not kill clone process: {e}")
