# File: tests/conftest.py

import hashlib
import io
import sys
import zipfile
from pathlib import Path

import pytest
import requests

from ffconvert.config.acquisition import AcquisitionPolicy, executable_name
from ffconvert.domain.models import ConvertOptions, ExecutableHandle, Provenance

TEST_URL = "https://downloads.example.invalid/ffmpeg-release-essentials.zip"
TEST_VERSION = "8.0.1"


class FakeResponse:
    """Stands in for a streamed `requests.Response`."""

    def __init__(self, content: bytes = b"", status_code: int = 200, fail_after: int = None):
        self.content = content
        self.status_code = status_code
        self.fail_after = fail_after
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error", response=self)

    def iter_content(self, chunk_size=1):
        sent = 0
        for offset in range(0, len(self.content), chunk_size):
            chunk = self.content[offset:offset + chunk_size]
            yield chunk
            sent += len(chunk)
            if self.fail_after is not None and sent >= self.fail_after:
                raise requests.exceptions.ChunkedEncodingError("Connection broken")

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class FakeSession:
    """
    Records every GET and answers with a prepared response, or raises a prepared error.
    """

    def __init__(self, response: FakeResponse = None, error: Exception = None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, stream=False, timeout=None):
        self.calls.append({"url": url, "stream": stream, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


class NoNetworkSession:
    """A session that fails the test if anything tries to download."""

    def get(self, url, **kwargs):
        raise AssertionError(f"Unexpected network request to {url}")


def build_ffmpeg_zip(tools=("ffmpeg", "ffprobe"), root="ffmpeg-8.0.1-essentials_build") -> bytes:
    """Builds an in-memory archive laid out like the release build: <root>/bin/<tool>."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr(f"{root}/README.txt", "FFmpeg release build")
        for tool in tools:
            archive.writestr(f"{root}/bin/{executable_name(tool)}", f"#!/bin/sh\necho {tool}\n")
        archive.writestr(f"{root}/doc/ffmpeg.html", "<html></html>")
    return buffer.getvalue()


def policy_for(archive: bytes) -> AcquisitionPolicy:
    return AcquisitionPolicy(url=TEST_URL, version=TEST_VERSION, sha256=hashlib.sha256(archive).hexdigest())


def files_under(path: Path):
    return sorted(p for p in path.rglob("*") if p.is_file())


@pytest.fixture
def ffmpeg_zip() -> bytes:
    return build_ffmpeg_zip()


@pytest.fixture
def data_dir(tmp_path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def options() -> ConvertOptions:
    return ConvertOptions(
        width=1280,
        height=720,
        video_bitrate_k=3000,
        fps_mode="fixed",
        frame_rate=30.0,
        audio_codec="aac",
        audio_bitrate_k=128,
        crf=23,
        output_ext="mp4",
    )


@pytest.fixture
def input_video(tmp_path) -> Path:
    """A stand-in input file; only its existence matters to the converter."""
    path = tmp_path / "clip.mov"
    path.write_bytes(b"\x00\x00\x00\x18ftypqt  ")
    return path


@pytest.fixture
def make_fake_ffmpeg(tmp_path):
    """
    Returns a factory that writes an executable Python script posing as ffmpeg.

    The script body receives the arguments in `sys.argv[1:]`.
    """
    def _make(body: str, name: str = "fake-ffmpeg") -> Path:
        script = tmp_path / name
        script.write_text(f"#!{sys.executable} -u\nimport sys\n{body}\n", encoding="utf-8")
        script.chmod(0o755)
        return script

    return _make


@pytest.fixture
def handle_for():
    def _handle(ffmpeg_path: Path, ffprobe_path: Path = Path("ffprobe")) -> ExecutableHandle:
        return ExecutableHandle(
            ffmpeg_path=ffmpeg_path,
            ffprobe_path=ffprobe_path,
            version=TEST_VERSION,
            source=Provenance.CACHED,
        )

    return _handle
