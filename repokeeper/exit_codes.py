"""
Standard exit codes and error kinds for repokeeper.

Following Unix/POSIX conventions for command-line tools. Every failure the
core can produce is one of the CommandError subclasses below; the CLI maps
each to its exit code at the command boundary.
"""
from typing import Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
NOT_FOUND = 64           # Unknown repository id
GIT_ERROR = 65           # git exited with a non-zero status
PERMISSION_ERROR = 67    # Insufficient permissions
FILESYSTEM_ERROR = 68    # Rename/delete of a repository directory failed
GIT_MISSING = 69         # git binary could not be spawned
DATA_ERROR = 70          # Validation error
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': GENERAL_ERROR,
    'PermissionError': PERMISSION_ERROR,
    'ValueError': DATA_ERROR,
    'KeyError': DATA_ERROR,
    'JSONDecodeError': DATA_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: Exception) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, CommandError):
        return exc.exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class ValidationError(CommandError):
    """Raised when input is rejected before any subprocess runs."""
    def __init__(self, message: str):
        super().__init__(message, DATA_ERROR)


class GitCommandError(CommandError):
    """Raised when git exits with a non-zero status."""
    def __init__(self, message: str, stderr: Optional[str] = None):
        super().__init__(message, GIT_ERROR)
        self.stderr = stderr or ""


class GitNotFoundError(CommandError):
    """Raised when the git binary cannot be located or spawned."""
    def __init__(self, message: str = "git executable not found"):
        super().__init__(message, GIT_MISSING)


class FilesystemError(CommandError):
    """Raised when moving or deleting a repository directory fails."""
    def __init__(self, message: str):
        super().__init__(message, FILESYSTEM_ERROR)


class RepositoryNotFoundError(CommandError):
    """Raised when an operation references an unknown repository id."""
    def __init__(self, repo_id: Optional[int] = None):
        super().__init__("Repository not found", NOT_FOUND)
        self.repo_id = repo_id

