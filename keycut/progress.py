"""Turn ffmpeg's stderr stats lines into fractional progress."""

import logging
import re
from typing import Callable

logger = logging.getLogger(__name__)

# frame=  180 fps= 30 q=-1.0 size=    1024kB time=00:00:06.00 bitrate= 139.8kbits/s
_STATS_LINE = re.compile(
    r"frame=\s*\S+\s+fps=\s*\S+\s+q=\s*\S+\s+(?:size|Lsize)=\s*\S+\s+time=\s*(\S+)\s+"
)
_TIMESTAMP = re.compile(r"(-)?(\d+):(\d{1,2}):(\d{1,2}(?:\.\d+)?)")


class ProgressParseError(ValueError):
    pass


def parse_timestamp(value: str) -> float:
    """Convert an ffmpeg ``HH:MM:SS.ms`` timestamp to seconds."""
    match = _TIMESTAMP.fullmatch(value)
    if match is None:
        raise ProgressParseError(f"Unparseable timestamp {value!r}")
    sign, hours, minutes, seconds = match.groups()
    total = int(hours) * 3600 + int(minutes) * 60 + float(seconds)
    return -total if sign else total


class ProgressParser:
    """Feeds ``on_progress(elapsed / duration)`` from ffmpeg stats lines.

    Progress is best effort: lines that do not match and timestamps that do
    not parse are skipped, and nothing raised here reaches the transcode.
    """

    def __init__(self, duration: float, on_progress: Callable[[float], None]):
        self.duration = duration
        self.on_progress = on_progress

    def parse_line(self, line: str) -> float | None:
        """Return the fraction reported by ``line``, or None."""
        match = _STATS_LINE.search(line)
        if match is None or self.duration <= 0:
            return None
        elapsed = parse_timestamp(match.group(1))
        return min(max(elapsed / self.duration, 0.0), 1.0)

    def feed(self, line: str) -> None:
        try:
            fraction = self.parse_line(line)
        except ProgressParseError as e:
            logger.debug("Failed to parse ffmpeg progress line: %s", e)
            return
        if fraction is None:
            return
        try:
            self.on_progress(fraction)
        except Exception:
            logger.warning("Progress callback failed", exc_info=True)
