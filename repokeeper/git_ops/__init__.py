"""
Git process orchestration for repokeeper.

- progress: decodes clone progress lines into ProgressEvent objects
- channel: bounded thread-to-asyncio hand-off for those events
- clone: worker that runs a streaming clone
- tags: dev/qa tag filtering and version labels
"""

from .progress import ProgressDecoder, parse_progress_line, parse_size, iter_progress_lines
from .channel import ProgressChannel, ChannelClosed
from .clone import CloneJob
from .tags import extract_version, format_tag_label, build_tag_entries, filtered_tags

__all__ = [
    'ProgressDecoder',
    'parse_progress_line',
    'parse_size',
    'iter_progress_lines',
    'ProgressChannel',
    'ChannelClosed',
    'CloneJob',
    'extract_version',
    'format_tag_label',
    'build_tag_entries',
    'filtered_tags',
]
