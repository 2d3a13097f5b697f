"""
This module runs ffprobe against an input file and turns its JSON report into a
`ProbeResult`.

Probing goes through the ffmpeg-python library (`ffmpeg.probe`), pointed at the
ffprobe executable that the BinaryResolver produced rather than whatever happens to
be on the PATH.
"""
import math
from pathlib import Path
from pprint import pformat
from typing import Any, Dict, Optional

import ffmpeg
from loguru import logger

from ..domain.exceptions import (
    InputNotFoundException,
    ProbeException,
    ProbeParseException,
    ProcessStartException,
)
from ..domain.models import (
    DEFAULT_AUDIO_BITRATE_K,
    DEFAULT_AUDIO_CODEC,
    DEFAULT_FRAME_RATE,
    DEFAULT_VIDEO_BITRATE_K,
    ExecutableHandle,
    ProbeResult,
)


def parse_frame_rate(value: Optional[str]) -> float:
    """
    Parses an ffprobe frame rate such as "30000/1001" or "25".

    Returns:
        The rate in frames per second, or 0.0 if it cannot be determined
        (ffprobe reports "0/0" for streams without a meaningful rate).
    """
    if not value:
        return 0.0
    try:
        if "/" in value:
            numerator, denominator = value.split("/", 1)
            den = float(denominator)
            return float(numerator) / den if den > 0 else 0.0
        return float(value)
    except ValueError:
        return 0.0


def _bitrate_kbps(stream: Dict[str, Any]) -> int:
    try:
        return int(stream.get("bit_rate")) // 1000
    except (TypeError, ValueError):
        return 0


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _duration_seconds(report: Dict[str, Any]) -> float:
    try:
        duration = float((report.get("format") or {}).get("duration"))
    except (TypeError, ValueError):
        return 0.0
    return duration if math.isfinite(duration) and duration > 0 else 0.0


def parse_probe_report(report: Any) -> ProbeResult:
    """
    Extracts the fields the converter needs from an ffprobe JSON report.

    Only the first video stream and the first audio stream are considered. Values
    ffprobe does not report fall back to 3000 kbps video, 128 kbps audio, `aac` and
    30 fps, so that a file without audio, or a container that does not report
    bitrates, still yields a usable result. Width, height and duration stay 0.

    Raises:
        ProbeParseException: If the report has no `streams` list.
    """
    if not isinstance(report, dict) or not isinstance(report.get("streams"), list):
        raise ProbeParseException("ffprobe output does not contain a streams list")

    streams = [s for s in report["streams"] if isinstance(s, dict)]
    video = next((s for s in streams if s.get("codec_type") == "video"), {})
    audio = next((s for s in streams if s.get("codec_type") == "audio"), {})

    return ProbeResult(
        width=_as_int(video.get("width")),
        height=_as_int(video.get("height")),
        frame_rate=parse_frame_rate(video.get("avg_frame_rate")) or DEFAULT_FRAME_RATE,
        video_bitrate_k=_bitrate_kbps(video) or DEFAULT_VIDEO_BITRATE_K,
        audio_bitrate_k=_bitrate_kbps(audio) or DEFAULT_AUDIO_BITRATE_K,
        audio_codec=audio.get("codec_name") or DEFAULT_AUDIO_CODEC,
        duration_sec=_duration_seconds(report),
    )


class ProbeService:
    """Reads media metadata with ffprobe."""

    def probe(self, executable: ExecutableHandle, input_path: Path) -> ProbeResult:
        """
        Probes one input file.

        Args:
            executable: The resolved FFmpeg installation; its ffprobe is used.
            input_path: The media file to analyse.

        Returns:
            The parsed `ProbeResult`.

        Raises:
            InputNotFoundException: The input file does not exist (ERR_INPUT).
            ProcessStartException: ffprobe could not be launched (ERR_START).
            ProbeException: ffprobe exited with an error (ERR_PROBE).
            ProbeParseException: ffprobe output was not valid metadata (ERR_PROBE_PARSE).
        """
        input_path = Path(input_path)
        if not input_path.is_file():
            raise InputNotFoundException(f"Input file does not exist: {input_path}")

        logger.debug(f"Probing {input_path.name} with {executable.ffprobe_path}")
        try:
            report = ffmpeg.probe(str(input_path), cmd=str(executable.ffprobe_path), v="error")
        except ffmpeg.Error as e:
            stderr = e.stderr.decode("utf-8", errors="replace").strip() if e.stderr else ""
            logger.error(f"ffprobe failed for {input_path}: {stderr}")
            raise ProbeException(f"ffprobe failed: {stderr}") from e
        except ValueError as e:
            # json.JSONDecodeError and UnicodeDecodeError both derive from ValueError.
            raise ProbeParseException(f"Could not parse ffprobe output: {e}") from e
        except OSError as e:
            raise ProcessStartException(f"Could not launch ffprobe '{executable.ffprobe_path}': {e}") from e

        logger.trace(f"Probe data for {input_path.name}:\n{pformat(report)}")
        result = parse_probe_report(report)
        logger.info(
            f"Probed {input_path.name}: {result.width}x{result.height} @ {result.frame_rate:.3f} fps, "
            f"v={result.video_bitrate_k}k, a={result.audio_codec}/{result.audio_bitrate_k}k, "
            f"duration={result.duration_sec:.2f}s"
        )
        return result
