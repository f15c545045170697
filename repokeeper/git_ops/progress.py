"""
Decoder for git's clone progress output.

git reports clone progress on stderr as English phrases such as

    remote: Counting objects: 100% (12/12), done.
    Receiving objects:  45% (450/1000), 1.20 MiB | 2.40 MiB/s

This module turns such lines into ProgressEvent objects whose percent is
weighted by stage, so one clone moves through a single 0-100 scale:

    Counting     5
    Compressing  5-10
    Receiving   10-60
    Resolving   60-90

The marker phrases are the whole contract with git's output format; a
change there should only touch this module.
"""

import re
import string
from dataclasses import replace
from typing import BinaryIO, Iterator, Optional, Tuple

from ..domain.progress import CloneStage, ProgressEvent

RECEIVING_MARKER = "Receiving objects:"
RESOLVING_MARKER = "Resolving deltas:"
COUNTING_MARKERS = ("Counting objects:", "Enumerating objects:")
COMPRESSING_MARKER = "Compressing objects:"

COUNTING_PERCENT = 5
COMPRESSING_DEFAULT = 8
RECEIVING_DEFAULT = 10
RESOLVING_DEFAULT = 60

SIZE_UNITS = {
    "": 1,
    "b": 1,
    "kb": 1024,
    "kib": 1024,
    "mb": 1024 ** 2,
    "mib": 1024 ** 2,
    "gb": 1024 ** 3,
    "gib": 1024 ** 3,
}

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([A-Za-z]*)")
_LINE_BREAK = re.compile(rb"[\r\n]")


def raw_percent(line: str) -> Optional[int]:
    """
    Return the integer written directly before the first '%' in a line.

    Returns None when there is no '%' or no digits precede it.
    """
    end = line.find("%")
    if end < 0:
        return None
    start = end
    while start > 0 and line[start - 1] in string.digits:
        start -= 1
    if start == end:
        return None
    return min(int(line[start:end]), 100)


def parse_object_counts(line: str) -> Tuple[Optional[int], Optional[int]]:
    """Extract (received, total) from the first "(x/y)" group."""
    start = line.find("(")
    if start < 0:
        return None, None
    end = line.find(")", start)
    if end < 0:
        return None, None

    received, sep, total = line[start + 1:end].partition("/")
    if not sep:
        return None, None
    try:
        return int(received.strip()), int(total.strip())
    except ValueError:
        return None, None


def parse_size(text: str) -> Optional[int]:
    """
    Convert a human-readable size such as "1.5 MiB" into bytes.

    Units are case-insensitive. An unknown or missing unit counts as
    bytes. Returns None if the text does not start with a number.

    Example:
        >>> parse_size("1.5 MiB")
        1572864
    """
    match = _SIZE_RE.match(text)
    if not match:
        return None
    value = float(match.group(1))
    multiplier = SIZE_UNITS.get(match.group(2).lower(), 1)
    return int(value * multiplier)


def _parse_receiving(line: str) -> ProgressEvent:
    p = raw_percent(line)
    percent = RECEIVING_DEFAULT if p is None else 10 + p * 50 // 100
    received, total = parse_object_counts(line)

    received_bytes = None
    speed = None
    if ")," in line:
        rest = line.split("),", 1)[1]
        size_text, bar, speed_text = rest.partition("|")
        received_bytes = parse_size(size_text)
        if bar:
            # Only the padding around "|" is dropped
            speed = speed_text.strip()

    return ProgressEvent(
        stage=CloneStage.RECEIVING,
        percent=percent,
        received_objects=received,
        total_objects=total,
        received_bytes=received_bytes,
        speed=speed,
    )


def parse_progress_line(line: str) -> Optional[ProgressEvent]:
    """
    Classify one line of clone output.

    Markers are tested in a fixed order and the first match wins. Lines
    without a known marker produce None.
    """
    if RECEIVING_MARKER in line:
        return _parse_receiving(line)

    if RESOLVING_MARKER in line:
        p = raw_percent(line)
        percent = RESOLVING_DEFAULT if p is None else 60 + p * 30 // 100
        return ProgressEvent(stage=CloneStage.RESOLVING, percent=percent)

    if any(marker in line for marker in COUNTING_MARKERS):
        return ProgressEvent(stage=CloneStage.COUNTING, percent=COUNTING_PERCENT)

    if COMPRESSING_MARKER in line:
        p = raw_percent(line)
        percent = COMPRESSING_DEFAULT if p is None else 5 + p * 5 // 100
        return ProgressEvent(stage=CloneStage.COMPRESSING, percent=percent)

    return None


class ProgressDecoder:
    """
    Stateful decoder for the progress stream of a single clone.

    git restarts its own percentage at every stage and does not always
    report stages in order; the decoder never lets the overall percent go
    backwards.

    Example:
        decoder = ProgressDecoder()
        for line in iter_progress_lines(proc.stderr):
            event = decoder.feed(line)
            if event:
                publish(event)
    """

    def __init__(self):
        self.percent = 0

    def feed(self, line: str) -> Optional[ProgressEvent]:
        """Decode one line; returns None for lines that carry no progress."""
        event = parse_progress_line(line)
        if event is None:
            return None
        if event.percent < self.percent:
            event = replace(event, percent=self.percent)
        self.percent = event.percent
        return event


def _read_chunk(stream: BinaryIO, size: int) -> bytes:
    # read1 returns as soon as any data is available
    read1 = getattr(stream, "read1", None)
    if read1 is not None:
        return read1(size)
    return stream.read(size)


def iter_progress_lines(stream: BinaryIO, chunk_size: int = 4096) -> Iterator[str]:
    """
    Yield lines from a binary stream as soon as they are terminated.

    git redraws progress in place with '\\r', so both '\\r' and '\\n' end a
    line. Empty lines are skipped and bytes are decoded as UTF-8 with
    replacement.
    """
    buffer = b""
    while True:
        chunk = _read_chunk(stream, chunk_size)
        if not chunk:
            break
        buffer += chunk
        parts = _LINE_BREAK.split(buffer)
        buffer = parts.pop()
        for part in parts:
            if part:
                yield part.decode("utf-8", errors="replace")

    if buffer:
        yield buffer.decode("utf-8", errors="replace")
