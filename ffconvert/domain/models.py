"""
Value objects exchanged between the converter's components and its callers.

Each response record offers `to_dict()`, which renders the camelCase shape that
front ends consume (e.g. `{"outputPath": ..., "exitCode": ...}`).
"""
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum, unique
from pathlib import Path
from typing import Any, Dict, List, Optional

# Fallbacks substituted for metadata that ffprobe does not report.
DEFAULT_VIDEO_BITRATE_K = 3000
DEFAULT_AUDIO_BITRATE_K = 128
DEFAULT_AUDIO_CODEC = "aac"
DEFAULT_FRAME_RATE = 30.0
DEFAULT_CRF = 23
DEFAULT_OUTPUT_EXT = "mp4"


@unique
class Provenance(str, Enum):
    CACHED = "cached"
    DOWNLOADED = "downloaded"
    PATH_FALLBACK = "path-fallback"


@unique
class FpsMode(str, Enum):
    FIXED = "fixed"
    VARIABLE = "variable"


@dataclass(frozen=True)
class ExecutableHandle:
    """
    A resolved FFmpeg installation.

    Attributes:
        ffmpeg_path: Path (or bare command name for PATH binaries) of the ffmpeg executable.
        ffprobe_path: The matching ffprobe executable.
        version: The pinned version for managed builds; the reported version for PATH binaries.
        source: Which resolution path produced this handle.
    """
    ffmpeg_path: Path
    ffprobe_path: Path
    version: str
    source: Provenance

    @property
    def verified(self) -> bool:
        """False when the binary came from the system PATH without any hash guarantee."""
        return self.source is not Provenance.PATH_FALLBACK

    def to_ready(self) -> "FfmpegReady":
        return FfmpegReady(source=self.source.value, ffmpeg_path=normalize_path(self.ffmpeg_path), version=self.version)


@dataclass(frozen=True)
class FfmpegReady:
    source: str
    ffmpeg_path: str
    version: str

    def to_dict(self) -> Dict[str, str]:
        return {"source": self.source, "ffmpegPath": self.ffmpeg_path, "version": self.version}


@dataclass(frozen=True)
class ProbeResult:
    """
    Media metadata for one input file, as reported by ffprobe.

    Bitrates are in kbps and the duration is in seconds. Bitrates, frame rate and
    audio codec that ffprobe did not report hold the documented fallbacks; missing
    width, height and duration are 0.
    """
    width: int
    height: int
    frame_rate: float
    video_bitrate_k: int
    audio_bitrate_k: int
    audio_codec: str
    duration_sec: float

    def to_convert_options(self) -> "ConvertOptions":
        """
        Derives the initial conversion options for this file.

        Values ffprobe could not supply are replaced by the documented fallbacks
        (3000 kbps video, 128 kbps audio, `aac`, 30 fps). The frame rate mode starts
        as `variable`, CRF as 23 and the container as mp4.
        """
        return ConvertOptions(
            width=self.width,
            height=self.height,
            video_bitrate_k=self.video_bitrate_k or DEFAULT_VIDEO_BITRATE_K,
            fps_mode=FpsMode.VARIABLE.value,
            frame_rate=self.frame_rate or DEFAULT_FRAME_RATE,
            audio_codec=self.audio_codec or DEFAULT_AUDIO_CODEC,
            audio_bitrate_k=self.audio_bitrate_k or DEFAULT_AUDIO_BITRATE_K,
            crf=DEFAULT_CRF,
            output_ext=DEFAULT_OUTPUT_EXT,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "frameRate": self.frame_rate,
            "videoBitrateK": self.video_bitrate_k,
            "audioBitrateK": self.audio_bitrate_k,
            "audioFormat": self.audio_codec,
            "durationSec": self.duration_sec,
        }


# Wire names of ConvertOptions fields.
_OPTION_KEYS = {
    "width": "width",
    "height": "height",
    "video_bitrate_k": "videoBitrateK",
    "fps_mode": "fpsMode",
    "frame_rate": "frameRate",
    "audio_codec": "audioFormat",
    "audio_bitrate_k": "audioBitrateK",
    "crf": "crf",
    "output_ext": "outputExt",
}


@dataclass(frozen=True)
class ConvertOptions:
    """
    User-editable conversion parameters.

    Nothing is validated here; the command builder rejects bad values when a
    command is built, so a form can hold half-edited values in between.
    """
    width: int
    height: int
    video_bitrate_k: int
    fps_mode: str
    frame_rate: float
    audio_codec: str
    audio_bitrate_k: int
    crf: int
    output_ext: str

    def with_changes(self, **changes) -> "ConvertOptions":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {wire: getattr(self, attr) for attr, wire in _OPTION_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConvertOptions":
        """Accepts both camelCase wire keys and the attribute names."""
        values = {}
        for f in fields(cls):
            wire = _OPTION_KEYS[f.name]
            if wire in data:
                values[f.name] = data[wire]
            elif f.name in data:
                values[f.name] = data[f.name]
            else:
                raise KeyError(f"Missing conversion option '{wire}'")
        return cls(**values)


@dataclass(frozen=True)
class ConvertPreview:
    output_path: Path
    args: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"outputPath": normalize_path(self.output_path), "args": list(self.args)}


@dataclass(frozen=True)
class ConvertResult:
    output_path: Path
    exit_code: int

    def to_dict(self) -> Dict[str, Any]:
        return {"outputPath": normalize_path(self.output_path), "exitCode": self.exit_code}


@dataclass(frozen=True)
class CancelResult:
    requested: bool

    def to_dict(self) -> Dict[str, bool]:
        return {"requested": self.requested}


@dataclass(frozen=True)
class LogEvent:
    """A single line of process output, stamped when it was emitted."""
    message: str
    sequence: int
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, str]:
        return {"message": self.message}


@dataclass(frozen=True)
class ProgressEvent:
    percent: float

    def to_dict(self) -> Dict[str, float]:
        return {"percent": self.percent}


def normalize_path(path: Optional[Path]) -> str:
    """Renders a path with forward slashes for display, as front ends expect on every platform."""
    return str(path).replace("\\", "/") if path is not None else ""
