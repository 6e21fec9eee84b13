"""FFmpeg/ffprobe subprocess helpers."""

import io
import json
import logging
import os
import re
import shutil
import subprocess
import sys
import threading
from collections import deque
from fractions import Fraction
from pathlib import Path
from typing import Callable, Sequence

from keycut.models import ProbeResult, StreamDescriptor

logger = logging.getLogger(__name__)

PROBE = "ffprobe"
TRANSCODE = "ffmpeg"

BIN_DIR_ENV = "KEYCUT_BIN_DIR"

# Bundled binaries live under <bin root>/<platform subdir>
_PLATFORM_SUBPATHS = {
    "darwin": "darwin/x64/{}",
    "win32": "win32/x64/{}.exe",
    "linux": "linux/x64/{}",
}

_NEEDS_QUOTING = re.compile(r"[^0-9A-Za-z_-]")

STDERR_TAIL_LINES = 50


class ConfigurationError(RuntimeError):
    """The media engine cannot be located on this host."""


class FFmpegNotFoundError(ConfigurationError):
    pass


class ProcessError(RuntimeError):
    """An ffmpeg/ffprobe invocation failed to start or exited non-zero."""

    def __init__(
        self,
        message: str,
        cmd: Sequence[str] = (),
        returncode: int | None = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr


class ProcessAbortedError(ProcessError):
    """The process was terminated before it finished."""


def get_ff_command_line(cmd: str, args: Sequence[str]) -> str:
    """Render an invocation for logs, single-quoting unusual arguments."""
    def quote(arg: str) -> str:
        return f"'{arg}'" if _NEEDS_QUOTING.search(arg) else arg

    return " ".join([cmd, *(quote(str(a)) for a in args)])


def get_binary_path(
    kind: str, bin_root: str | Path | None = None, platform: str | None = None
) -> str:
    """Locate the ffmpeg or ffprobe binary.

    With a bundled binary root (argument or ``KEYCUT_BIN_DIR``) the binary is
    taken from the per-platform subdirectory; otherwise it is looked up on PATH.
    """
    platform = platform or sys.platform
    sub_path = _PLATFORM_SUBPATHS.get(platform)
    if sub_path is None:
        raise ConfigurationError(f"Unsupported platform {platform}")

    bin_root = bin_root or os.environ.get(BIN_DIR_ENV)
    if bin_root:
        return str(Path(bin_root) / sub_path.format(kind))

    found = shutil.which(kind)
    if found is None:
        raise FFmpegNotFoundError(f"{kind} not found on PATH")
    return found


def check_ffmpeg(bin_root: str | Path | None = None) -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe cannot be found."""
    for kind in (TRANSCODE, PROBE):
        path = get_binary_path(kind, bin_root)
        if not Path(path).exists():
            raise FFmpegNotFoundError(f"{kind} not found at {path}")


class FFProcess:
    """A running ffmpeg/ffprobe invocation.

    stdout is collected in the background and stderr is read line by line
    (``\\r`` counts as a line break, ffmpeg rewrites its stats line with it).
    Each stderr line goes to ``on_line`` and the last few are kept for error
    messages.
    """

    def __init__(
        self,
        kind: str,
        args: Sequence[str],
        popen: subprocess.Popen,
        on_line: Callable[[str], None] | None = None,
    ):
        self.kind = kind
        self.args = list(args)
        self.popen = popen
        self.stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self._on_line = on_line
        self._stdout = b""
        self._aborted = False

        self._stdout_thread = threading.Thread(target=self._read_stdout, daemon=True)
        self._stderr_thread = threading.Thread(target=self._read_stderr, daemon=True)
        self._stdout_thread.start()
        self._stderr_thread.start()

    def _read_stdout(self) -> None:
        self._stdout = self.popen.stdout.read()

    def _read_stderr(self) -> None:
        stream = io.TextIOWrapper(
            self.popen.stderr, encoding="utf-8", errors="replace", newline=None
        )
        for line in stream:
            line = line.rstrip("\n")
            self.stderr_tail.append(line)
            if self._on_line is not None:
                self._on_line(line)

    def feed_stdin(self, data: bytes) -> None:
        try:
            self.popen.stdin.write(data)
            self.popen.stdin.close()
        except BrokenPipeError:
            # exited before reading its input; wait() reports the failure
            logger.debug("%s closed stdin early", self.kind)

    def terminate(self) -> None:
        """Stop the process; ``wait`` then raises ProcessAbortedError."""
        if self.popen.poll() is None:
            self._aborted = True
            self.popen.terminate()

    def wait(self) -> subprocess.CompletedProcess:
        returncode = self.popen.wait()
        self._stdout_thread.join()
        self._stderr_thread.join()
        stderr = "\n".join(self.stderr_tail)
        cmd = [self.kind, *self.args]

        if self._aborted or returncode < 0:
            raise ProcessAbortedError(
                f"{self.kind} was terminated (rc={returncode})",
                cmd=cmd, returncode=returncode, stderr=stderr,
            )
        if returncode != 0:
            last = self.stderr_tail[-1] if self.stderr_tail else "no output"
            raise ProcessError(
                f"{self.kind} failed (rc={returncode}): {last}",
                cmd=cmd, returncode=returncode, stderr=stderr,
            )
        return subprocess.CompletedProcess(cmd, returncode, self._stdout, stderr)


def start(
    kind: str,
    args: Sequence[str],
    on_line: Callable[[str], None] | None = None,
    input_data: bytes | None = None,
) -> FFProcess:
    """Spawn ``kind`` with ``args`` and return the running process."""
    path = get_binary_path(kind)
    logger.info("%s", get_ff_command_line(kind, args))
    try:
        popen = subprocess.Popen(
            [path, *args],
            stdin=subprocess.PIPE if input_data is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        raise ProcessError(f"Failed to start {kind}: {e}", cmd=[kind, *args]) from e

    process = FFProcess(kind, args, popen, on_line=on_line)
    if input_data is not None:
        process.feed_stdin(input_data)
    return process


def run(
    kind: str, args: Sequence[str], input_data: bytes | None = None
) -> subprocess.CompletedProcess:
    """Run ``kind`` to completion; raises ProcessError on failure."""
    return start(kind, args, input_data=input_data).wait()


def run_ffprobe(args: Sequence[str]) -> dict:
    """Run ffprobe and decode its JSON output."""
    result = run(PROBE, args)
    return json.loads(result.stdout)


def parse_rational(value: str | None) -> Fraction | None:
    """Parse an ffprobe rate such as ``"30000/1001"``."""
    if not value:
        return None
    match = re.fullmatch(r"(\d+)/(\d+)", value)
    if match is None or int(match.group(2)) == 0:
        return None
    return Fraction(int(match.group(1)), int(match.group(2)))


def parse_stream(data: dict) -> StreamDescriptor:
    return StreamDescriptor(
        index=int(data["index"]),
        codec_name=data.get("codec_name"),
        codec_type=data.get("codec_type", "data"),
        codec_tag_string=data.get("codec_tag_string"),
        avg_frame_rate=parse_rational(data.get("avg_frame_rate")),
    )


def get_duration(input_path: Path) -> float:
    """Return the container duration in seconds."""
    data = run_ffprobe([
        "-i", str(input_path),
        "-show_entries", "format=duration",
        "-print_format", "json",
    ])
    return float(data["format"]["duration"])


def get_all_streams(input_path: Path) -> list[StreamDescriptor]:
    """Describe every stream in the file, in index order."""
    data = run_ffprobe([
        "-of", "json",
        "-show_entries", "stream",
        "-i", str(input_path),
    ])
    return [parse_stream(s) for s in data.get("streams", [])]


def probe(input_path: Path) -> ProbeResult:
    """Extract container and stream metadata via ffprobe."""
    data = run_ffprobe([
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ])
    fmt = data["format"]
    return ProbeResult(
        duration=float(fmt["duration"]),
        format_name=fmt.get("format_name", ""),
        streams=[parse_stream(s) for s in data.get("streams", [])],
    )
