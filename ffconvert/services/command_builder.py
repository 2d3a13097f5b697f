"""
Builds the FFmpeg argument vector for a conversion.

`build()` is a pure function: it performs no I/O and, for the same input path and
the same option values, always returns a byte-identical argument vector. The
command shown to the user as a preview is therefore exactly the command that runs.
"""
import math
import re
from numbers import Real
from pathlib import Path
from typing import List, Optional

from ..domain.exceptions import InvalidOptionsException
from ..domain.models import ConvertOptions, ConvertPreview, FpsMode
from ..utils.format_utils import format_number

MIN_CRF = 0
MAX_CRF = 51
OUTPUT_SUFFIX = "_converted"

# Codec names and extensions end up as single argv entries; keep them to plain tokens.
_CODEC_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+$")
_EXTENSION_PATTERN = re.compile(r"^[A-Za-z0-9]+$")


def _require_int(name: str, value, minimum: int, maximum: Optional[int] = None) -> int:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidOptionsException(f"{name} must be a number, got {value!r}", field=name)
    if not math.isfinite(value) or not float(value).is_integer():
        raise InvalidOptionsException(f"{name} must be a finite whole number, got {value!r}", field=name)
    value = int(value)
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f"{minimum}-{maximum}" if maximum is not None else f">= {minimum}"
        raise InvalidOptionsException(f"{name} must be {bounds}, got {value}", field=name)
    return value


def validate_options(options: ConvertOptions) -> None:
    """
    Checks every field of the options.

    Raises:
        InvalidOptionsException: On the first field that is missing, non-finite or out of range.
    """
    _require_int("width", options.width, 1)
    _require_int("height", options.height, 1)
    _require_int("video_bitrate_k", options.video_bitrate_k, 1)
    _require_int("audio_bitrate_k", options.audio_bitrate_k, 1)
    _require_int("crf", options.crf, MIN_CRF, MAX_CRF)

    rate = options.frame_rate
    if isinstance(rate, bool) or not isinstance(rate, Real) or not math.isfinite(rate) or rate <= 0:
        raise InvalidOptionsException(f"frame_rate must be a finite number > 0, got {rate!r}", field="frame_rate")

    if options.fps_mode not in (FpsMode.FIXED.value, FpsMode.VARIABLE.value):
        raise InvalidOptionsException(
            f"fps_mode must be '{FpsMode.FIXED.value}' or '{FpsMode.VARIABLE.value}', got {options.fps_mode!r}",
            field="fps_mode",
        )
    if not isinstance(options.audio_codec, str) or not _CODEC_PATTERN.match(options.audio_codec):
        raise InvalidOptionsException(f"Invalid audio codec {options.audio_codec!r}", field="audio_codec")
    if not isinstance(options.output_ext, str) or not _EXTENSION_PATTERN.match(options.output_ext.lstrip(".")):
        raise InvalidOptionsException(f"Invalid output extension {options.output_ext!r}", field="output_ext")


def build_output_path(input_path: Path, output_ext: str) -> Path:
    """
    Derives the output file from the input file: same folder, `<stem>_converted.<ext>`.

    The extension is lower-cased. The suffix keeps a conversion to the same container
    from overwriting its own input.
    """
    ext = output_ext.lstrip(".").lower()
    return input_path.with_name(f"{input_path.stem}{OUTPUT_SUFFIX}.{ext}")


def build(input_path: Path, options: ConvertOptions) -> ConvertPreview:
    """
    Turns an input file and conversion options into an FFmpeg invocation.

    The vector encodes, in order: overwrite, input, the scale filter (plus an `fps`
    rate filter when the frame rate is fixed), video bitrate, CRF, audio codec,
    audio bitrate, constant-frame-rate forcing for fixed mode, and the output path.
    In variable mode no frame rate is forced and the source timing is kept.

    Args:
        input_path: The source video.
        options: The user's conversion options.

    Returns:
        A `ConvertPreview` holding the output path and the argument vector
        (without the executable itself).

    Raises:
        InvalidOptionsException: If any option fails validation (ERR_OPTIONS).
    """
    validate_options(options)
    input_path = Path(input_path)
    output_path = build_output_path(input_path, options.output_ext)
    fixed = options.fps_mode == FpsMode.FIXED.value

    video_filter = f"scale={int(options.width)}:{int(options.height)}"
    if fixed:
        video_filter += f",fps={format_number(options.frame_rate)}"

    args: List[str] = [
        "-y",
        "-i", str(input_path),
        "-vf", video_filter,
        "-b:v", f"{int(options.video_bitrate_k)}k",
        "-crf", str(int(options.crf)),
        "-c:a", options.audio_codec,
        "-b:a", f"{int(options.audio_bitrate_k)}k",
    ]
    if fixed:
        args += ["-fps_mode", "cfr"]
    args.append(str(output_path))

    return ConvertPreview(output_path=output_path, args=args)
