"""Thin CLI entry point — builds a Manifest and calls the engine."""

import argparse
import logging
import sys
from pathlib import Path

from keycut import ffutil
from keycut.editors.extract import extract_streams
from keycut.editors.merge import merge_any_files
from keycut.editors.preview import html5ify, html5ify_dummy
from keycut.engine import process
from keycut.formats import detect_format, get_stream_fps
from keycut.manifest import Manifest, load_manifest
from keycut.models import CutSegment
from keycut.paths import get_out_path


def parse_segment(value: str) -> CutSegment:
    """Parse ``FROM-TO`` (seconds) into a CutSegment."""
    try:
        start, end = value.split("-", 1)
        return CutSegment(cut_from=float(start), cut_to=float(end))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected FROM-TO in seconds, got {value!r}")


def _cmd_cut(args: argparse.Namespace) -> None:
    if args.manifest:
        m = load_manifest(args.manifest)
    elif args.video:
        if not args.segment:
            print("Error: provide at least one --segment.", file=sys.stderr)
            sys.exit(1)
        m = Manifest(
            input=args.video,
            segments=args.segment,
            output_dir=args.output_dir,
            output_format=args.format,
            keyframe_cut=not args.accurate,
            rotation=args.rotation,
            auto_merge=args.merge,
            snap_to_keyframes=args.snap,
        )
    else:
        print("Error: provide either a VIDEO argument or --manifest.", file=sys.stderr)
        sys.exit(1)

    def on_progress(stage: str, frac: float) -> None:
        print(f"  [{frac:3.0%}] {stage}")

    def append_command_log(line: str) -> None:
        if args.verbose:
            print(f"  $ {line}", file=sys.stderr)

    result = process(m, on_progress=on_progress, append_command_log=append_command_log)

    print()
    print(f"Done! Format: {result.output_format}")
    for path in result.output_paths:
        print(f"  {path}")
    if result.merged_path:
        print(f"  Merged: {result.merged_path}")


def _cmd_probe(args: argparse.Namespace) -> None:
    result = ffutil.probe(args.video)
    print(f"Format:   {detect_format(args.video)} ({result.format_name})")
    print(f"Duration: {result.duration:.3f}s")
    for s in result.streams:
        fps = get_stream_fps(s)
        rate = f" {fps:.3f} fps" if fps else ""
        print(f"  #{s.index} {s.codec_type} {s.codec_name or s.codec_tag_string}{rate}")


def _cmd_merge(args: argparse.Namespace) -> None:
    out = merge_any_files(args.files, output_dir=args.output_dir, all_streams=args.all_streams)
    print(f"Merged: {out}")


def _cmd_extract(args: argparse.Namespace) -> None:
    streams = ffutil.get_all_streams(args.video)
    for out in extract_streams(args.video, streams, output_dir=args.output_dir):
        print(f"  {out}")


def _cmd_preview(args: argparse.Namespace) -> None:
    if args.dummy:
        out = get_out_path(args.output_dir, args.video, "html5ify-dummy.flac")
        html5ify_dummy(args.video, out)
    else:
        out = get_out_path(args.output_dir, args.video, "html5ify.mp4")
        html5ify(args.video, out, encode_video=not args.copy_video, encode_audio=not args.no_audio)
    print(f"Preview: {out}")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="keycut",
        description="keycut: lossless cutting, merging and stream extraction with ffmpeg.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log ffmpeg commands")
    sub = parser.add_subparsers(dest="command")

    cut = sub.add_parser("cut", help="Cut segments out of a media file")
    cut.add_argument("video", nargs="?", type=Path, help="Input media file")
    cut.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    cut.add_argument("--segment", "-s", type=parse_segment, action="append", help="FROM-TO in seconds (repeatable)")
    cut.add_argument("--output-dir", "-o", type=Path, help="Directory for output files")
    cut.add_argument("--format", "-f", type=str, help="Output container format (ffmpeg muxer name)")
    cut.add_argument("--accurate", action="store_true", help="Seek after the inputs instead of keyframe cutting")
    cut.add_argument("--rotation", type=int, choices=[0, 90, 180, 270], help="Rotation metadata for the video stream")
    cut.add_argument("--snap", action="store_true", help="Snap cut points onto keyframes")
    cut.add_argument("--merge", action="store_true", help="Merge the cut segments into one file")

    probe = sub.add_parser("probe", help="Show format and streams of a media file")
    probe.add_argument("video", type=Path)

    merge = sub.add_parser("merge", help="Concatenate files losslessly")
    merge.add_argument("files", nargs="+", type=Path)
    merge.add_argument("--output-dir", "-o", type=Path)
    merge.add_argument("--all-streams", action="store_true", help="Keep every stream, not only the defaults")

    extract = sub.add_parser("extract", help="Write every stream to its own file")
    extract.add_argument("video", type=Path)
    extract.add_argument("--output-dir", "-o", type=Path)

    preview = sub.add_parser("preview", help="Make a browser-playable proxy of a media file")
    preview.add_argument("video", type=Path)
    preview.add_argument("--output-dir", "-o", type=Path)
    preview.add_argument("--copy-video", action="store_true", help="Keep the video stream as is")
    preview.add_argument("--no-audio", action="store_true", help="Drop the audio")
    preview.add_argument("--dummy", action="store_true", help="Write a silent track with the input's duration instead")

    serve = sub.add_parser("serve", help="Launch the HTTP job API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from keycut.web import create_app
        app = create_app()
        print(f"keycut API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    handlers = {
        "cut": _cmd_cut,
        "probe": _cmd_probe,
        "merge": _cmd_merge,
        "extract": _cmd_extract,
        "preview": _cmd_preview,
    }
    try:
        handlers[args.command](args)
    except (ffutil.ProcessError, ffutil.ConfigurationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
