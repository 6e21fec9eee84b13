"""Container/codec negotiation between ffprobe names and ffmpeg muxers.

ffmpeg only encodes some formats, and several names ffprobe detects differ
from the muxer names used for output (see ``ffmpeg -formats``).
"""

import logging
from pathlib import Path

import filetype

from keycut import ffutil
from keycut.models import CodecType, OutputFormatDecision, StreamDescriptor

logger = logging.getLogger(__name__)

# Bytes needed for magic-number sniffing
MAGIC_BYTES = 4100

DEFAULT_PROCESSED_CODEC_TYPES = (CodecType.VIDEO, CodecType.AUDIO, CodecType.SUBTITLE)

# Detected format -> muxer. "-c copy" and "-c copy -f ipod" write identical
# m4a files, so plain AAC and m4a both go through the ipod muxer.
FORMAT_REMAP: dict[str, str] = {
    "m4a": "ipod",
    "aac": "ipod",
}

FORMAT_EXTENSIONS: dict[str, str] = {
    "matroska": "mkv",
    "ipod": "m4a",
}

CODEC_CONTAINERS: dict[str, str] = {
    "mp3": "mp3",
    "opus": "opus",
    "vorbis": "ogg",
    "h264": "mp4",
    "hevc": "mp4",
    "eac3": "eac3",
    "subrip": "srt",
    "m4a": "ipod",
    "aac": "ipod",
}

TYPE_CONTAINERS: dict[str, OutputFormatDecision] = {
    CodecType.VIDEO.value: OutputFormatDecision("matroska", "mkv"),
    CodecType.AUDIO.value: OutputFormatDecision("matroska", "mka"),
    CodecType.SUBTITLE.value: OutputFormatDecision("matroska", "mks"),
    CodecType.DATA.value: OutputFormatDecision("data", "bin"),
}


def map_format(fmt: str | None) -> str | None:
    return FORMAT_REMAP.get(fmt, fmt) if fmt else fmt


def get_extension_for_format(fmt: str) -> str:
    return FORMAT_EXTENSIONS.get(fmt, fmt)


def determine_output_format(probed: list[str], detected_ext: str | None) -> str | None:
    """Prefer the probed candidate matching the sniffed type, else the first."""
    if detected_ext and detected_ext in probed:
        return detected_ext
    return probed[0] if probed and probed[0] else None


def sniff_extension(input_path: Path) -> str | None:
    """Guess the file type from its leading bytes."""
    with open(input_path, "rb") as f:
        head = f.read(MAGIC_BYTES)
    kind = filetype.guess(head)
    return kind.extension if kind is not None else None


def detect_format(input_path: Path) -> str | None:
    """Pick the ffmpeg output format matching ``input_path``'s container."""
    data = ffutil.run_ffprobe([
        "-of", "json",
        "-show_format",
        "-i", str(input_path),
    ])
    formats_str = data.get("format", {}).get("format_name") or ""
    probed = formats_str.split(",")
    logger.debug("ffprobe formats for %s: %s", input_path, formats_str)

    detected = sniff_extension(input_path)
    logger.debug("Magic bytes suggest %s", detected)

    return map_format(determine_output_format(probed, detected))


def choose_extraction_container(
    codec_name: str | None, codec_type: str
) -> OutputFormatDecision | None:
    """Standalone container for one extracted stream.

    Known codecs get a dedicated container; anything else falls back to a
    choice by stream type. None means the stream cannot be extracted.
    """
    fmt = CODEC_CONTAINERS.get(codec_name) if codec_name else None
    if fmt is not None:
        return OutputFormatDecision(fmt, get_extension_for_format(fmt))
    return TYPE_CONTAINERS.get(codec_type)


def get_stream_fps(stream: StreamDescriptor) -> float | None:
    """Average frame rate of a video stream, if ffprobe reported one."""
    if stream.codec_type != CodecType.VIDEO.value or stream.avg_frame_rate is None:
        return None
    return float(stream.avg_frame_rate)
