"""Shared fixtures: scripted stand-ins for a running `git clone`."""

import io
import threading

import pytest


class FakeProcess:
    """Popen look-alike whose stderr replays canned clone output."""

    def __init__(self, stderr: bytes = b"", returncode: int = 0):
        self.stderr = io.BytesIO(stderr)
        self.returncode = returncode
        self.killed = False

    def wait(self):
        return self.returncode

    def poll(self):
        return self.returncode if self.killed else None

    def kill(self):
        self.killed = True
        self.returncode = -9


class _BlockingStream:
    """stderr that produces nothing until the process is killed."""

    def __init__(self, released: threading.Event):
        self.released = released

    def read1(self, size=-1):
        self.released.wait(timeout=10)
        return b""

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class HangingProcess(FakeProcess):
    """A clone that never finishes on its own."""

    def __init__(self):
        super().__init__()
        self._released = threading.Event()
        self.stderr = _BlockingStream(self._released)

    def kill(self):
        super().kill()
        self._released.set()


CLONE_OUTPUT = (
    b"Cloning into '.tmp_game'...\n"
    b"remote: Counting objects: 100% (3/3), done.\n"
    b"Receiving objects:  50% (1/2)\r"
    b"Receiving objects: 100% (2/2), 1.00 KiB | 1.00 MiB/s, done.\n"
    b"Resolving deltas: 100% (1/1), done.\n"
)


@pytest.fixture
def fake_process():
    return FakeProcess


@pytest.fixture
def hanging_process():
    return HangingProcess


@pytest.fixture
def clone_output():
    return CLONE_OUTPUT
