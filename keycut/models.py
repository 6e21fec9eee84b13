"""Shared data types used across keycut."""

from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from pathlib import Path


class CodecType(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    SUBTITLE = "subtitle"
    DATA = "data"


@dataclass(frozen=True)
class MediaFrame:
    """A single packet timestamp from a probed time window."""

    time: float
    is_keyframe: bool


@dataclass
class StreamSelection:
    """Streams to copy out of one input file, in mapping order."""

    path: Path
    stream_ids: list[int] = field(default_factory=list)


@dataclass
class CutSegment:
    """A start/end time pair in seconds, relative to the source."""

    cut_from: float
    cut_to: float

    @property
    def duration(self) -> float:
        return self.cut_to - self.cut_from


@dataclass(frozen=True)
class StreamDescriptor:
    """One stream entry as reported by ffprobe."""

    index: int
    codec_name: str | None
    codec_type: str
    codec_tag_string: str | None = None
    avg_frame_rate: Fraction | None = None


@dataclass(frozen=True)
class OutputFormatDecision:
    """Container and file extension chosen for an output file."""

    container_id: str
    file_extension: str


@dataclass
class ProbeResult:
    """Container-level metadata extracted via ffprobe."""

    duration: float
    format_name: str
    streams: list[StreamDescriptor] = field(default_factory=list)
