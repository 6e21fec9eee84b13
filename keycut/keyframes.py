"""Keyframe index reading and stream-copy cut boundary resolution."""

import logging
from enum import Enum
from pathlib import Path

from keycut import ffutil
from keycut.models import CutSegment, MediaFrame

logger = logging.getLogger(__name__)

# Two timestamps closer than this are the same frame
SIGMA = 0.01

DEFAULT_WINDOW = 30.0


class Direction(str, Enum):
    NEXT = "next"
    PREV = "prev"


class KeyframeError(ValueError):
    """No boundary satisfies the stream-copy keyframe constraint."""


class InsufficientFramesError(KeyframeError):
    pass


class NoKeyframeFoundError(KeyframeError):
    pass


class TerminalFrameError(KeyframeError):
    pass


class NoPriorFrameError(KeyframeError):
    pass


class FirstFrameError(KeyframeError):
    pass


def read_frames(
    input_path: Path,
    around_time: float | None = None,
    window: float = DEFAULT_WINDOW,
    stream: str = "v:0",
) -> list[MediaFrame]:
    """Read packet timestamps and keyframe flags, sorted by time.

    With ``around_time`` only ``[around_time - window, around_time + window]``
    is scanned (clamped at 0).
    """
    interval_args: list[str] = []
    if around_time is not None:
        interval_args = [
            "-read_intervals",
            f"{max(around_time - window, 0)}%{around_time + window}",
        ]

    data = ffutil.run_ffprobe([
        "-v", "error",
        *interval_args,
        "-show_packets",
        "-select_streams", stream,
        "-show_entries", "packet=pts_time,flags",
        "-of", "json",
        str(input_path),
    ])

    frames = [
        MediaFrame(time=float(p["pts_time"]), is_keyframe=p.get("flags", "")[:1] == "K")
        for p in data.get("packets", [])
        if p.get("pts_time") not in (None, "N/A")
    ]
    return sorted(frames, key=lambda f: f.time)


def _last_index(frames: list[MediaFrame], predicate) -> int:
    for i in range(len(frames) - 1, -1, -1):
        if predicate(frames[i]):
            return i
    return -1


def resolve_keyframe_boundary(
    frames: list[MediaFrame], cut_time: float, direction: Direction
) -> float | None:
    """Find the smallest shift of ``cut_time`` that stream copy can cut at.

    ``Direction.NEXT`` (segment start) moves forward onto a keyframe.
    ``Direction.PREV`` (segment end) moves backward onto the frame right before
    a keyframe, so the preceding GOP stays whole. Returns None when
    ``cut_time`` is already a valid boundary.
    """
    if len(frames) < 2:
        raise InsufficientFramesError("Less than 2 frames found")

    def is_close(time: float) -> bool:
        return abs(time - cut_time) < SIGMA

    if direction == Direction.NEXT:
        index = next(
            (i for i, f in enumerate(frames) if f.is_keyframe and f.time >= cut_time - SIGMA),
            -1,
        )
        if index == -1:
            raise NoKeyframeFoundError(f"No keyframe at or after {cut_time}")
        if index >= len(frames) - 1:
            raise TerminalFrameError("Next keyframe is the last frame")
        time = frames[index].time
        if is_close(time):
            return None
        return time

    index = _last_index(frames, lambda f: f.time <= cut_time + SIGMA)
    if index == -1:
        raise NoPriorFrameError(f"No frame at or before {cut_time}")
    if index == 0:
        raise FirstFrameError("Cannot cut before the first frame")

    # Already the last frame, or the frame just before a keyframe
    if index == len(frames) - 1 or frames[index + 1].is_keyframe:
        return None

    index = _last_index(frames, lambda f: f.is_keyframe and f.time <= cut_time + SIGMA)
    if index == -1:
        raise NoPriorFrameError(f"No keyframe at or before {cut_time}")
    if index == 0:
        raise FirstFrameError("Preceding keyframe is the first frame")

    return frames[index - 1].time


def snap_segment(
    input_path: Path,
    segment: CutSegment,
    duration: float,
    stream: str = "v:0",
    window: float = DEFAULT_WINDOW,
) -> CutSegment:
    """Move a segment's boundaries onto stream-copy friendly frames."""
    cut_from, cut_to = segment.cut_from, segment.cut_to

    if cut_from > 0:
        frames = read_frames(input_path, around_time=cut_from, window=window, stream=stream)
        adjusted = resolve_keyframe_boundary(frames, cut_from, Direction.NEXT)
        if adjusted is not None:
            logger.debug("Start %.3f snapped to keyframe %.3f", cut_from, adjusted)
            cut_from = adjusted

    if cut_to < duration:
        frames = read_frames(input_path, around_time=cut_to, window=window, stream=stream)
        adjusted = resolve_keyframe_boundary(frames, cut_to, Direction.PREV)
        if adjusted is not None:
            logger.debug("End %.3f snapped to %.3f", cut_to, adjusted)
            cut_to = adjusted

    return CutSegment(cut_from=cut_from, cut_to=cut_to)
