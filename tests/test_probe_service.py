from pathlib import Path

import ffmpeg
import pytest

from ffconvert.domain.exceptions import (
    InputNotFoundException,
    ProbeException,
    ProbeParseException,
    ProcessStartException,
)
from ffconvert.services import probe_service
from ffconvert.services.probe_service import ProbeService, parse_frame_rate, parse_probe_report

SAMPLE_REPORT = {
    "streams": [
        {
            "index": 0,
            "codec_type": "video",
            "codec_name": "h264",
            "width": 1920,
            "height": 1080,
            "avg_frame_rate": "30000/1001",
            "bit_rate": "8000000",
        },
        {
            "index": 1,
            "codec_type": "audio",
            "codec_name": "opus",
            "bit_rate": "160000",
        },
        {
            "index": 2,
            "codec_type": "audio",
            "codec_name": "aac",
            "bit_rate": "96000",
        },
    ],
    "format": {"duration": "125.000000", "format_name": "mov,mp4,m4a,3gp,3g2,mj2"},
}


@pytest.fixture
def fake_probe(monkeypatch):
    """Replaces ffmpeg.probe; the test sets what it returns or raises."""
    calls = []
    behaviour = {"result": SAMPLE_REPORT, "error": None}

    def _probe(filename, cmd="ffprobe", **kwargs):
        calls.append({"filename": filename, "cmd": cmd, **kwargs})
        if behaviour["error"] is not None:
            raise behaviour["error"]
        return behaviour["result"]

    monkeypatch.setattr(probe_service.ffmpeg, "probe", _probe)
    return calls, behaviour


def test_probe_reads_first_video_and_audio_stream(fake_probe, input_video, handle_for):
    """
    Verifies that probing uses the resolved ffprobe and reduces the report to the
    fields the converter needs.
    """
    calls, _ = fake_probe
    handle = handle_for(Path("/opt/ffmpeg/bin/ffmpeg"), Path("/opt/ffmpeg/bin/ffprobe"))

    result = ProbeService().probe(handle, input_video)

    assert calls[0]["cmd"] == str(Path("/opt/ffmpeg/bin/ffprobe"))
    assert calls[0]["filename"] == str(input_video)
    assert result.width == 1920
    assert result.height == 1080
    assert result.frame_rate == pytest.approx(29.97, abs=0.01)
    assert result.video_bitrate_k == 8000
    assert result.audio_codec == "opus"
    assert result.audio_bitrate_k == 160
    assert result.duration_sec == 125.0


def test_missing_values_fall_back(fake_probe, input_video, handle_for):
    _, behaviour = fake_probe
    behaviour["result"] = {
        "streams": [{"codec_type": "video", "width": 640, "height": 360, "avg_frame_rate": "0/0"}],
        "format": {},
    }

    result = ProbeService().probe(handle_for(Path("ffmpeg")), input_video)
    options = result.to_convert_options()

    assert (result.width, result.height) == (640, 360)
    assert result.audio_codec == "aac"
    assert result.video_bitrate_k == 3000
    assert result.audio_bitrate_k == 128
    assert result.frame_rate == 30.0
    assert result.duration_sec == 0.0
    assert options.video_bitrate_k == 3000
    assert options.audio_bitrate_k == 128
    assert options.frame_rate == 30.0
    assert options.fps_mode == "variable"
    assert options.crf == 23
    assert options.output_ext == "mp4"


def test_missing_input_is_reported_before_running_ffprobe(fake_probe, tmp_path, handle_for):
    calls, _ = fake_probe

    with pytest.raises(InputNotFoundException) as exc_info:
        ProbeService().probe(handle_for(Path("ffmpeg")), tmp_path / "missing.mov")

    assert exc_info.value.code == "ERR_INPUT"
    assert calls == []


def test_ffprobe_error_exit(fake_probe, input_video, handle_for):
    _, behaviour = fake_probe
    behaviour["error"] = ffmpeg.Error("ffprobe", b"", b"clip.mov: Invalid data found when processing input")

    with pytest.raises(ProbeException) as exc_info:
        ProbeService().probe(handle_for(Path("ffmpeg")), input_video)

    assert exc_info.value.code == "ERR_PROBE"
    assert "Invalid data found" in str(exc_info.value)


def test_unparseable_ffprobe_output(fake_probe, input_video, handle_for):
    _, behaviour = fake_probe
    behaviour["error"] = ValueError("Expecting value: line 1 column 1 (char 0)")

    with pytest.raises(ProbeParseException) as exc_info:
        ProbeService().probe(handle_for(Path("ffmpeg")), input_video)

    assert exc_info.value.code == "ERR_PROBE_PARSE"


def test_ffprobe_that_cannot_start(fake_probe, input_video, handle_for):
    _, behaviour = fake_probe
    behaviour["error"] = FileNotFoundError(2, "No such file or directory")

    with pytest.raises(ProcessStartException) as exc_info:
        ProbeService().probe(handle_for(Path("ffmpeg")), input_video)

    assert exc_info.value.code == "ERR_START"


@pytest.mark.parametrize("report", [{}, {"streams": "nope"}, [], None])
def test_report_without_streams_is_rejected(report):
    with pytest.raises(ProbeParseException):
        parse_probe_report(report)


def test_malformed_stream_values_do_not_raise():
    result = parse_probe_report(
        {"streams": [{"codec_type": "video", "width": "wide", "bit_rate": "N/A"}], "format": {"duration": "N/A"}}
    )

    assert result.width == 0
    assert result.video_bitrate_k == 3000
    assert result.duration_sec == 0.0


@pytest.mark.parametrize(
    "value, expected",
    [("30000/1001", 30000 / 1001), ("25/1", 25.0), ("24", 24.0), ("0/0", 0.0), ("", 0.0), (None, 0.0), ("abc", 0.0)],
)
def test_parse_frame_rate(value, expected):
    assert parse_frame_rate(value) == pytest.approx(expected)


def test_report_without_audio_or_rates_uses_fallbacks():
    """
    Verifies that the probe result itself carries the fallback bitrates, codec and
    frame rate when ffprobe leaves them out.
    """
    result = parse_probe_report(
        {"streams": [{"codec_type": "video", "width": 640, "height": 360, "avg_frame_rate": "0/0"}], "format": {}}
    )

    assert result.video_bitrate_k == 3000
    assert result.audio_bitrate_k == 128
    assert result.audio_codec == "aac"
    assert result.frame_rate == 30.0
    assert (result.width, result.height, result.duration_sec) == (640, 360, 0.0)
