"""Orchestrator — runs multi-segment cut jobs defined by a Manifest."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from keycut import ffutil
from keycut.editors.cut import cut
from keycut.editors.merge import auto_merge_segments
from keycut.formats import DEFAULT_PROCESSED_CODEC_TYPES, detect_format, get_extension_for_format
from keycut.keyframes import snap_segment
from keycut.manifest import Manifest
from keycut.models import CutSegment, ProbeResult, StreamSelection
from keycut.paths import format_duration, get_out_path

logger = logging.getLogger(__name__)


@dataclass
class CutParams:
    """Settings shared by every segment of one batch."""

    input: Path
    duration: float
    output_format: str
    selections: list[StreamSelection]
    output_dir: Path | None = None
    rotation: int | None = None
    keyframe_cut: bool = True
    output_format_selected: bool = False


@dataclass
class EngineResult:
    output_paths: list[Path]
    merged_path: Path | None = None
    duration_original: float = 0.0
    output_format: str = ""
    segments: list[CutSegment] = field(default_factory=list)


def segment_output_path(params: CutParams, segment: CutSegment) -> Path:
    """``<input>-<from>-<to><ext>`` with file-name friendly times."""
    if params.output_format_selected:
        ext = f".{get_extension_for_format(params.output_format)}"
    else:
        ext = params.input.suffix
    times = (
        f"{format_duration(segment.cut_from, file_name_friendly=True)}"
        f"-{format_duration(segment.cut_to, file_name_friendly=True)}"
    )
    return get_out_path(params.output_dir, params.input, f"{times}{ext}")


class CutJob:
    """Cuts segments one after another and reports their mean progress.

    Only one ffmpeg process runs at a time; ``cancel`` terminates it and the
    batch then fails with ProcessAbortedError.
    """

    def __init__(
        self,
        params: CutParams,
        on_progress: Callable[[float], None] | None = None,
        append_command_log: Callable[[str], None] | None = None,
    ):
        self.params = params
        self.on_progress = on_progress
        self.append_command_log = append_command_log
        self._progresses: dict[int, float] = {}
        self._total = 0
        self._process: ffutil.FFProcess | None = None
        self._cancelled = False

    def _on_single_progress(self, index: int, fraction: float) -> None:
        self._progresses[index] = fraction
        if self.on_progress:
            self.on_progress(sum(self._progresses.values()) / self._total)

    def _on_start(self, process: ffutil.FFProcess) -> None:
        self._process = process
        if self._cancelled:
            process.terminate()

    def cancel(self) -> None:
        self._cancelled = True
        if self._process is not None:
            self._process.terminate()

    def run(self, segments: Sequence[CutSegment]) -> list[Path]:
        ordered = sorted(segments, key=lambda s: s.cut_from)
        self._progresses = {}
        self._total = len(ordered)
        p = self.params

        out_files: list[Path] = []
        for i, segment in enumerate(ordered):
            if self._cancelled:
                raise ffutil.ProcessAbortedError("Cut job was cancelled")
            out_path = segment_output_path(p, segment)
            cut(
                p.input,
                p.output_format,
                segment.cut_from,
                segment.cut_to,
                p.duration,
                p.selections,
                out_path,
                keyframe_cut=p.keyframe_cut,
                rotation=p.rotation,
                on_progress=lambda frac, i=i: self._on_single_progress(i, frac),
                append_command_log=self.append_command_log,
                on_start=self._on_start,
            )
            self._process = None
            # ffmpeg's last stats line can stop short of the segment end
            self._on_single_progress(i, 1.0)
            out_files.append(out_path)

        return out_files


def cut_multiple(
    segments: Sequence[CutSegment],
    params: CutParams,
    on_progress: Callable[[float], None] | None = None,
    append_command_log: Callable[[str], None] | None = None,
) -> list[Path]:
    """Cut every segment in start-time order; returns the output paths."""
    return CutJob(params, on_progress, append_command_log).run(segments)


def default_selections(input_path: Path, probe_result: ProbeResult) -> list[StreamSelection]:
    """Every video, audio and subtitle stream of ``input_path``."""
    wanted = {t.value for t in DEFAULT_PROCESSED_CODEC_TYPES}
    return [
        StreamSelection(
            path=input_path,
            stream_ids=[s.index for s in probe_result.streams if s.codec_type in wanted],
        )
    ]


def process(
    manifest: Manifest,
    on_progress: Callable[[str, float], None] | None = None,
    append_command_log: Callable[[str], None] | None = None,
    job_created: Callable[[CutJob], None] | None = None,
) -> EngineResult:
    """Execute a cut job.

    Args:
        manifest: Validated cut manifest.
        on_progress: Optional callback(stage_name, fraction_complete).
        append_command_log: Receives every ffmpeg command line of the cuts.
        job_created: Receives the CutJob before it starts, for cancellation.
    """

    def _progress(stage: str, frac: float) -> None:
        if on_progress:
            on_progress(stage, frac)

    def _sub_progress(stage: str, base: float, span: float):
        """Return a callback that maps ffmpeg's [0,1] to [base, base+span]."""
        def cb(frac: float) -> None:
            _progress(stage, base + frac * span)
        return cb

    _progress("Probing media", 0.0)
    probe_result = ffutil.probe(manifest.input)
    duration = probe_result.duration

    output_format = manifest.output_format or detect_format(manifest.input)
    if output_format is None:
        raise ValueError(f"Could not determine the container format of {manifest.input}")
    selections = manifest.streams
    if selections is None:
        selections = default_selections(manifest.input, probe_result)
    _progress("Probing media", 0.05)

    segments = list(manifest.segments)
    if manifest.snap_to_keyframes:
        _progress("Finding keyframes", 0.05)
        segments = [snap_segment(manifest.input, s, duration) for s in segments]

    params = CutParams(
        input=manifest.input,
        duration=duration,
        output_format=output_format,
        selections=selections,
        output_dir=manifest.output_dir,
        rotation=manifest.rotation,
        keyframe_cut=manifest.keyframe_cut,
        output_format_selected=manifest.output_format is not None,
    )
    job = CutJob(
        params,
        on_progress=_sub_progress(f"Cutting {len(segments)} segments", 0.1, 0.8),
        append_command_log=append_command_log,
    )
    if job_created:
        job_created(job)
    output_paths = job.run(segments)

    merged_path = None
    if manifest.auto_merge and len(output_paths) > 1:
        _progress("Merging segments", 0.9)
        merged_path = auto_merge_segments(manifest.input, output_paths, manifest.output_dir)

    _progress("Done", 1.0)
    return EngineResult(
        output_paths=output_paths,
        merged_path=merged_path,
        duration_original=duration,
        output_format=output_format,
        segments=sorted(segments, key=lambda s: s.cut_from),
    )
