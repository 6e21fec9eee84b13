"""Stream extraction: copies each stream into its own standalone file."""

import logging
from pathlib import Path
from typing import Sequence

from keycut import ffutil
from keycut.formats import choose_extraction_container
from keycut.models import StreamDescriptor
from keycut.paths import get_out_path

logger = logging.getLogger(__name__)


def extract_streams(
    input_path: Path,
    streams: Sequence[StreamDescriptor],
    output_dir: Path | None = None,
) -> list[Path]:
    """Write every extractable stream to ``<input>-stream-<i>-<type>-<codec>.<ext>``.

    Streams with no container decision are skipped. All outputs come from a
    single ffmpeg invocation.
    """
    stream_args: list[str] = []
    outputs: list[Path] = []

    for s in streams:
        decision = choose_extraction_container(s.codec_name, s.codec_type)
        if decision is None:
            logger.warning("Skipping stream %d: no container for %s", s.index, s.codec_type)
            continue
        codec = s.codec_name or s.codec_tag_string or s.codec_type
        out = get_out_path(
            output_dir,
            input_path,
            f"stream-{s.index}-{s.codec_type}-{codec}.{decision.file_extension}",
        )
        stream_args += [
            "-map", f"0:{s.index}",
            "-c", "copy",
            "-f", decision.container_id,
            "-y", str(out),
        ]
        outputs.append(out)

    if not outputs:
        raise ValueError(f"No extractable streams in {input_path}")

    ffutil.run(ffutil.TRANSCODE, ["-i", str(input_path), *stream_args])
    return outputs
