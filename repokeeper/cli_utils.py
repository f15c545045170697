"""
Common CLI utilities and decorators for consistent command behavior.
"""

import asyncio
import json
import sys
import click
from functools import wraps
from typing import Awaitable, Callable, Generator, Optional, TypeVar

from .config import load_config, get_store_path
from .progress import get_progress, ProgressReporter, CloneProgressSink
from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError
)
from .format_utils import format_output, get_format_from_env, FORMATS
from .infra.file_store import FileStore
from .services.registry_service import RepositoryRegistry
from .services.repository_service import RepositoryService

T = TypeVar("T")


def standard_command(func):
    """
    Decorator that provides standard CLI behavior:
    - Progress reporting on stderr
    - Clean JSON output on stdout
    - Consistent error handling and exit codes

    The command returns a dict, a list of dicts, a generator of dicts, or
    None when it did its own output (tables).
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        verbose = kwargs.get('verbose', False)
        quiet = kwargs.get('quiet', False)
        output_format = kwargs.get('format', None)
        fields_str = kwargs.get('fields', None)
        fields = fields_str.split(',') if fields_str else None

        if output_format is None:
            output_format = get_format_from_env('jsonl')

        progress = get_progress(enabled=verbose or None)
        kwargs['progress'] = progress

        try:
            result = func(*args, **kwargs)

            if quiet:
                # In quiet mode, consume the generator but don't output
                if isinstance(result, Generator):
                    for _ in result:
                        pass
            elif result is None or output_format == 'table':
                # Command handles its own output
                pass
            elif isinstance(result, dict):
                for line in format_output(iter([result]), output_format, fields):
                    click.echo(line)
            elif isinstance(result, (Generator, list, tuple)):
                for line in format_output(iter(result), output_format, fields):
                    click.echo(line)
            else:
                click.echo(result)

            sys.exit(SUCCESS)

        except KeyboardInterrupt:
            progress.error("Interrupted by user")
            sys.exit(INTERRUPTED)
        except (click.ClickException, click.Abort):
            # Click exceptions already have their exit code
            raise
        except CommandError as e:
            progress.error(str(e))
            if not quiet:
                error_obj = {
                    "error": str(e),
                    "type": type(e).__name__,
                    "exit_code": e.exit_code
                }
                # git's own message, when there is one
                if getattr(e, 'stderr', None):
                    error_obj['stderr'] = e.stderr
                click.echo(json.dumps(error_obj, ensure_ascii=False))
            sys.exit(e.exit_code)
        except Exception as e:
            progress.error(f"Command failed: {e}")
            if not quiet:
                error_obj = {
                    "error": str(e),
                    "type": type(e).__name__
                }
                click.echo(json.dumps(error_obj, ensure_ascii=False))
            sys.exit(get_exit_code_for_exception(e))

    return wrapper


def open_registry(config: Optional[dict] = None) -> RepositoryRegistry:
    """Load the registry from the configured store."""
    config = config or load_config()
    return RepositoryRegistry.load(FileStore(get_store_path(config)))


def run_service(
    operation: Callable[[RepositoryService], Awaitable[T]],
    progress: Optional[ProgressReporter] = None,
) -> T:
    """
    Run one service operation on a fresh event loop.

    Clone notifications are drawn by `progress` when given.

    Example:
        record = run_service(lambda s: s.refresh_repository(3), progress)
    """
    config = load_config()
    registry = open_registry(config)
    sink = CloneProgressSink(progress) if progress is not None else None

    async def main():
        async with RepositoryService(registry, sink=sink, config=config) as service:
            return await operation(service)

    return asyncio.run(main())


# Standard options that many commands share
common_options = {
    'verbose': click.option('-v', '--verbose', is_flag=True,
                            help='Force progress output even when piped'),
    'quiet': click.option('-q', '--quiet', is_flag=True,
                          help='Suppress data output, show only progress'),
    'format': click.option('-f', '--format',
                           type=click.Choice(list(FORMATS)),
                           help='Output format (default: jsonl, or from REPOKEEPER_FORMAT env)'),
    'fields': click.option('--fields',
                           help='Comma-separated list of fields to include (for CSV/TSV)'),
    'table': click.option('--table/--no-table', default=None,
                          help='Display as formatted table (auto-detected by default)'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('verbose', 'quiet')
        def my_command(verbose, quiet):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator


def use_table(table: Optional[bool]) -> bool:
    """Resolve --table/--no-table; interactive terminals default to tables."""
    if table is None:
        return sys.stdout.isatty()
    return table
