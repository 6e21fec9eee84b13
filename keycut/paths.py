"""Output naming and file timestamp helpers."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def format_duration(seconds: float, file_name_friendly: bool = False) -> str:
    """Format seconds as ``HH:MM:SS.mmm`` (``HH.MM.SS.mmm`` for file names)."""
    total_ms = round((seconds or 0.0) * 1000)
    total_s, ms = divmod(total_ms, 1000)
    minutes, secs = divmod(total_s, 60)
    hours, minutes = divmod(minutes, 60)
    delim = "." if file_name_friendly else ":"
    return f"{hours:02d}{delim}{minutes:02d}{delim}{secs:02d}.{ms:03d}"


def get_out_path(output_dir: Path | None, source: Path, suffix: str) -> Path:
    """``<output_dir or source dir>/<source file name>-<suffix>``."""
    source = Path(source)
    directory = Path(output_dir) if output_dir else source.parent
    return directory / f"{source.name}-{suffix}"


def transfer_timestamps(source: Path, target: Path) -> None:
    """Copy access/modification times from ``source`` onto ``target``."""
    st = os.stat(source)
    os.utime(target, ns=(st.st_atime_ns, st.st_mtime_ns))
    logger.debug("Copied timestamps of %s to %s", source, target)
