"""Shared test fixtures."""

import io
import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


class FakeFF:
    """Stands in for ``subprocess.Popen``; replays queued results in order."""

    def __init__(self):
        self.results: list[tuple[bytes, bytes, int]] = []
        self.calls: list[list[str]] = []
        self.popens: list[MagicMock] = []

    def push(self, stdout=b"", stderr=b"", returncode=0) -> "FakeFF":
        if isinstance(stdout, (dict, list)):
            stdout = json.dumps(stdout).encode()
        if isinstance(stderr, str):
            stderr = stderr.encode()
        self.results.append((stdout, stderr, returncode))
        return self

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        stdout, stderr, returncode = self.results.pop(0) if self.results else (b"", b"", 0)
        popen = MagicMock()
        popen.stdout = io.BytesIO(stdout)
        popen.stderr = io.BytesIO(stderr)
        popen.wait.return_value = returncode
        popen.poll.return_value = None
        self.popens.append(popen)
        return popen

    @property
    def args(self) -> list[list[str]]:
        """Argument vectors without the binary path."""
        return [c[1:] for c in self.calls]


@pytest.fixture
def ff(monkeypatch) -> FakeFF:
    fake = FakeFF()
    monkeypatch.delenv("KEYCUT_BIN_DIR", raising=False)
    monkeypatch.setattr("keycut.ffutil.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr("keycut.ffutil.subprocess.Popen", fake)
    return fake
