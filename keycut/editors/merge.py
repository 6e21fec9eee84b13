"""Lossless concatenation of already-cut files."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Sequence

from send2trash import send2trash

from keycut import ffutil
from keycut.paths import get_out_path

logger = logging.getLogger(__name__)

TRASH_CONCURRENCY = 5


def concat_list(paths: Sequence[Path]) -> str:
    """Concat demuxer script, one ``file '<path>'`` line per input."""
    lines = []
    for path in paths:
        escaped = str(path).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    return "\n".join(lines)


def merge_files(paths: Sequence[Path], output_path: Path, all_streams: bool = False) -> Path:
    """Concatenate ``paths`` into ``output_path`` with stream copy.

    The file list goes to ffmpeg on stdin, so paths never need escaping on the
    command line and the pipe protocol must be whitelisted.
    """
    if not paths:
        raise ValueError("merge_files called with empty path list")

    logger.info("Merging %d files to %s", len(paths), output_path)
    args = [
        "-f", "concat", "-safe", "0", "-protocol_whitelist", "file,pipe", "-i", "-",
        "-c", "copy",
        *(["-map", "0"] if all_streams else []),
        "-map_metadata", "0",
        "-ignore_unknown",
        "-y", str(output_path),
    ]
    ffutil.run(ffutil.TRANSCODE, args, input_data=concat_list(paths).encode("utf-8"))
    return output_path


def merge_any_files(
    paths: Sequence[Path], output_dir: Path | None = None, all_streams: bool = False
) -> Path:
    """Merge into ``<first file>-merged<ext>``."""
    first = Path(paths[0])
    output_path = get_out_path(output_dir, first, f"merged{first.suffix}")
    return merge_files(paths, output_path, all_streams=all_streams)


def trash_files(paths: Sequence[Path]) -> None:
    with ThreadPoolExecutor(max_workers=TRASH_CONCURRENCY) as pool:
        list(pool.map(lambda p: send2trash(str(p)), paths))


def auto_merge_segments(
    source: Path, segment_paths: Sequence[Path], output_dir: Path | None = None
) -> Path:
    """Merge freshly cut segments, then move the segment files to the trash."""
    source = Path(source)
    stamp = int(time.time() * 1000)
    output_path = get_out_path(output_dir, source, f"cut-merged-{stamp}{source.suffix}")
    merge_files(segment_paths, output_path)
    trash_files(segment_paths)
    return output_path
