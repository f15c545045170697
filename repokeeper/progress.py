"""
Progress reporting utilities for repokeeper.

Provides consistent progress reporting that respects piping and redirection.
Clone notifications from the service are rendered here as a progress bar
on stderr, so stdout stays clean for data.
"""

import sys
import os
import time
from typing import Any, Dict, Optional
from enum import Enum

from .domain.progress import CLONE_PROGRESS, CLONE_COMPLETE


class LogLevel(Enum):
    """Log levels for progress messages."""
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    SUCCESS = 4


class ProgressReporter:
    """Handles progress reporting to stderr while keeping stdout clean for data."""

    def __init__(self, enabled: Optional[bool] = None, force_tty: bool = False,
                 use_unicode: Optional[bool] = None, use_colors: Optional[bool] = None):
        """
        Initialize progress reporter.

        Args:
            enabled: Explicitly enable/disable progress. None = auto-detect
            force_tty: Treat stderr as TTY even if it's not (for testing)
            use_unicode: Use Unicode characters for progress bars
            use_colors: Use ANSI colors in output
        """
        if enabled is None:
            # Auto-detect: show progress if stderr is a terminal
            self.enabled = sys.stderr.isatty() or force_tty
        else:
            self.enabled = enabled

        if use_unicode is None:
            encoding = getattr(sys.stderr, 'encoding', None) or ''
            self.use_unicode = encoding.lower() in ['utf-8', 'utf8']
        else:
            self.use_unicode = use_unicode

        if use_colors is None:
            self.use_colors = sys.stderr.isatty() and os.environ.get('NO_COLOR') is None
        else:
            self.use_colors = use_colors

        self.last_update: float = 0.0
        self.min_update_interval = 0.1  # Don't update more than 10x per second

        self.colors = {
            'reset': '\033[0m',
            'dim': '\033[2m',
            'red': '\033[31m',
            'green': '\033[32m',
            'yellow': '\033[33m',
            'cyan': '\033[36m',
        }

        if self.use_unicode:
            self.bar_chars = {
                'filled': '█',
                'empty': '░',
                'start': '│',
                'end': '│'
            }
        else:
            self.bar_chars = {
                'filled': '#',
                'empty': '-',
                'start': '[',
                'end': ']'
            }

    def _colorize(self, text: str, color: str) -> str:
        """Add color to text if colors are enabled."""
        if self.use_colors and color in self.colors:
            return f"{self.colors[color]}{text}{self.colors['reset']}"
        return text

    def __call__(self, message: str, force: bool = False, level: LogLevel = LogLevel.INFO):
        """
        Output progress message to stderr if enabled.

        Args:
            message: Progress message to display
            force: Force output even if disabled
            level: Log level for the message
        """
        if force or self.enabled:
            # Rate limit updates to avoid flooding
            current_time = time.time()
            if current_time - self.last_update >= self.min_update_interval:
                if level == LogLevel.ERROR:
                    message = self._colorize(f"✗ {message}", 'red')
                elif level == LogLevel.WARNING:
                    message = self._colorize(f"⚠ {message}", 'yellow')
                elif level == LogLevel.SUCCESS:
                    message = self._colorize(f"✓ {message}", 'green')
                elif level == LogLevel.DEBUG:
                    message = self._colorize(f"  {message}", 'dim')

                print(message, file=sys.stderr, flush=True)
                self.last_update = current_time

    def error(self, message: str):
        """Always output errors to stderr."""
        error_msg = self._colorize(f"ERROR: {message}", 'red')
        print(error_msg, file=sys.stderr, flush=True)

    def warning(self, message: str):
        """Output warnings to stderr if enabled."""
        if self.enabled:
            warning_msg = self._colorize(f"WARNING: {message}", 'yellow')
            print(warning_msg, file=sys.stderr, flush=True)

    def success(self, message: str):
        """Output success message if enabled."""
        if self.enabled:
            self(message, force=True, level=LogLevel.SUCCESS)

    def progress_bar(self, total: int = 100, description: str = "") -> 'ProgressBar':
        """
        Create a progress bar.

        Args:
            total: Value that means done (100 for percentages)
            description: Optional description

        Returns:
            ProgressBar instance
        """
        return ProgressBar(self, total, description)


# Global progress reporter instance
_progress = None


def get_progress(enabled: Optional[bool] = None) -> ProgressReporter:
    """
    Get the global progress reporter.

    Args:
        enabled: Override auto-detection of progress display

    Returns:
        ProgressReporter instance
    """
    global _progress
    if _progress is None or enabled is not None:
        _progress = ProgressReporter(enabled)
    return _progress


# Environment variable override
if os.environ.get('REPOKEEPER_PROGRESS') == '0':
    _progress = ProgressReporter(enabled=False)
elif os.environ.get('REPOKEEPER_PROGRESS') == '1':
    _progress = ProgressReporter(enabled=True)


class ProgressBar:
    """Single-line progress bar driven by absolute values."""

    WIDTH = 40

    def __init__(self, reporter: ProgressReporter, total: int = 100, description: str = ""):
        self.reporter = reporter
        self.total = total
        self.description = description
        self.current = 0
        self.last_update: float = 0.0
        self.last_decile = -1

    def set(self, value: int, item: str = ""):
        """Set progress to specific value."""
        self.current = min(value, self.total)
        self._render(item)

    def _render(self, item: str = ""):
        if not self.reporter.enabled:
            return

        percent = min(100, int(100 * self.current / self.total)) if self.total else 100

        if not sys.stderr.isatty():
            # Non-TTY: one line per ten percent
            decile = percent // 10
            if decile != self.last_decile or self.current == self.total:
                self.last_decile = decile
                print(f"{self.description}: {percent}% {item}".rstrip(), file=sys.stderr, flush=True)
            return

        # Rate limit redraws
        current_time = time.time()
        if current_time - self.last_update < 0.1 and self.current < self.total:
            return
        self.last_update = current_time

        filled = int(self.WIDTH * percent / 100)
        bar = self.reporter.bar_chars['start']
        bar += self.reporter.bar_chars['filled'] * filled
        bar += self.reporter.bar_chars['empty'] * (self.WIDTH - filled)
        bar += self.reporter.bar_chars['end']

        terminal_width = os.get_terminal_size().columns
        base_msg = f"{self.description} {bar} {percent:3d}%"

        available_space = terminal_width - len(base_msg) - 2
        if item and available_space > 10:
            if len(item) > available_space:
                item = item[:available_space-3] + "..."
            msg = f"{base_msg} {item}"
        else:
            msg = base_msg

        # Pad with spaces to clear any leftover characters
        print(f"\r{msg:<{terminal_width}}", end='', file=sys.stderr, flush=True)

    def close(self):
        """Finish the progress bar."""
        if self.reporter.enabled and sys.stderr.isatty():
            print(file=sys.stderr)  # New line


def format_bytes(size: int) -> str:
    """Human-readable byte count, e.g. 1536 -> '1.5 KiB'."""
    value = float(size)
    for unit in ('B', 'KiB', 'MiB'):
        if value < 1024:
            return f"{value:.1f} {unit}" if unit != 'B' else f"{int(value)} B"
        value /= 1024
    return f"{value:.1f} GiB"


class CloneProgressSink:
    """
    Event sink that draws clone notifications as a progress bar.

    Example:
        sink = CloneProgressSink(progress)
        service = RepositoryService(registry, sink=sink)
    """

    def __init__(self, reporter: ProgressReporter):
        self.reporter = reporter
        self.bars: Dict[str, ProgressBar] = {}
        self.completed: Dict[str, Dict[str, Any]] = {}

    def emit(self, name: str, payload: Dict[str, Any]) -> None:
        repo_name = payload.get('repoName', '')
        if name == CLONE_PROGRESS:
            bar = self.bars.get(repo_name)
            if bar is None:
                bar = self.reporter.progress_bar(100, f"Cloning {repo_name}")
                self.bars[repo_name] = bar
            bar.set(payload.get('percent', 0), self._describe(payload))
        elif name == CLONE_COMPLETE:
            self.completed[repo_name] = payload
            bar = self.bars.pop(repo_name, None)
            if bar is not None:
                bar.close()
            if payload.get('success'):
                self.reporter.success(f"Cloned {repo_name}")
            else:
                self.reporter.warning(f"Clone of {repo_name} failed: {payload.get('errorMessage', '')}")

    @staticmethod
    def _describe(payload: Dict[str, Any]) -> str:
        parts = [payload.get('stageMessage', '')]
        if 'receivedObjects' in payload and 'totalObjects' in payload:
            parts.append(f"({payload['receivedObjects']}/{payload['totalObjects']})")
        if 'receivedBytes' in payload:
            parts.append(format_bytes(payload['receivedBytes']))
        if 'speed' in payload:
            parts.append(f"| {payload['speed']}")
        return " ".join(p for p in parts if p)
