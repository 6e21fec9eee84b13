"""JSON manifest schema shared by the CLI, the web API and the engine."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from keycut.models import CutSegment, StreamSelection


@dataclass
class Manifest:
    """A cut job: one source, its segments and how to write them."""

    input: Path
    segments: list[CutSegment] = field(default_factory=list)
    version: str = "1"
    output_dir: Path | None = None
    # None means keep the detected input format
    output_format: str | None = None
    keyframe_cut: bool = True
    rotation: int | None = None
    # None means every video/audio/subtitle stream of the input
    streams: list[StreamSelection] | None = None
    auto_merge: bool = False
    snap_to_keyframes: bool = False


def _parse_segment(data: dict) -> CutSegment:
    return CutSegment(cut_from=float(data["cut_from"]), cut_to=float(data["cut_to"]))


def _parse_selection(data: dict) -> StreamSelection:
    return StreamSelection(
        path=Path(data["path"]),
        stream_ids=[int(i) for i in data.get("stream_ids", [])],
    )


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "input" not in data or "segments" not in data:
        raise ValueError("Manifest must contain 'input' and 'segments' fields")

    streams = data.get("streams")
    output_dir = data.get("output_dir")

    return Manifest(
        version=data.get("version", "1"),
        input=Path(data["input"]),
        segments=[_parse_segment(s) for s in data["segments"]],
        output_dir=Path(output_dir) if output_dir else None,
        output_format=data.get("output_format"),
        keyframe_cut=data.get("keyframe_cut", True),
        rotation=data.get("rotation"),
        streams=[_parse_selection(s) for s in streams] if streams is not None else None,
        auto_merge=data.get("auto_merge", False),
        snap_to_keyframes=data.get("snap_to_keyframes", False),
    )
