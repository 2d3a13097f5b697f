"""
Command-Line Interface (CLI) for the converter.

This module uses Python's `argparse` to define the subcommands and flags, and
dispatches them to a `ConverterCore`:

    ffconvert setup                      # make sure FFmpeg is installed and verified
    ffconvert probe clip.mov             # print the file's metadata
    ffconvert preview clip.mov --preset sns
    ffconvert convert clip.mov --crf 28 --resolution 720-landscape

Option flags that are not given keep the values derived from probing the input.
"""
import argparse
import concurrent.futures
import sys
from pathlib import Path
from typing import List, Optional

import yaml
from loguru import logger

from .config.common import (
    APP_LOG_FILE_NAME,
    APP_LOG_ROTATION,
    DATA_DIR,
    EVENT_CONVERT_LOG,
    EVENT_CONVERT_PROGRESS,
    LOGGER_FORMAT,
    log_dir,
)
from .config.presets import PRESETS, RESOLUTION_TEMPLATES, apply_preset, apply_resolution_template
from .domain.exceptions import ConverterException
from .domain.models import ConvertOptions, FfmpegReady, FpsMode, Provenance
from .pipeline.converter_core import ConverterCore
from .utils.ffmpeg_utils import display_command

# Maps CLI flags (argparse dest) to ConvertOptions fields.
_OPTION_FLAGS = {
    "width": "width",
    "height": "height",
    "video_bitrate": "video_bitrate_k",
    "fps_mode": "fps_mode",
    "frame_rate": "frame_rate",
    "audio_codec": "audio_codec",
    "audio_bitrate": "audio_bitrate_k",
    "crf": "crf",
    "ext": "output_ext",
}

# Seconds between checks for Ctrl+C while waiting on a conversion.
_WAIT_POLL_SECONDS = 0.5


def _add_option_flags(parser: argparse.ArgumentParser):
    group = parser.add_argument_group("conversion options")
    group.add_argument("--width", type=int, help="Output width in pixels.")
    group.add_argument("--height", type=int, help="Output height in pixels.")
    group.add_argument("--video-bitrate", type=int, metavar="KBPS", help="Video bitrate in kbps.")
    group.add_argument("--fps-mode", choices=[m.value for m in FpsMode], help="Force a constant frame rate or keep the source timing.")
    group.add_argument("--frame-rate", type=float, metavar="FPS", help="Frame rate used in fixed mode.")
    group.add_argument("--audio-codec", help="Audio codec, e.g. aac or libopus.")
    group.add_argument("--audio-bitrate", type=int, metavar="KBPS", help="Audio bitrate in kbps.")
    group.add_argument("--crf", type=int, help="Constant rate factor (0-51, lower is better quality).")
    group.add_argument("--ext", help="Output container extension, e.g. mp4 or mkv.")
    group.add_argument("--preset", choices=PRESETS, help="Apply a preset before the individual flags.")
    group.add_argument("--resolution", choices=sorted(RESOLUTION_TEMPLATES), help="Apply a resolution template.")


def get_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parses command-line arguments for the converter.

    Returns:
        argparse.Namespace: An object containing the parsed command-line
                            arguments as attributes.
    """
    parser = argparse.ArgumentParser(prog="ffconvert", description="Convert videos with a verified FFmpeg build.")
    parser.add_argument(
        "--log-level", type=str, default="INFO", choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging level."
    )
    parser.add_argument(
        "--log-file", action="store_true",
        help=f"Also write a rotating log file to <data-dir>/logs/{APP_LOG_FILE_NAME}."
    )
    parser.add_argument(
        "--data-dir", type=Path, default=None,
        help=f"Managed storage for FFmpeg builds and logs (default: {DATA_DIR})."
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup", help="Download and verify FFmpeg if it is not installed yet.")

    probe_parser = subparsers.add_parser("probe", help="Print the metadata of a video.")
    probe_parser.add_argument("input", type=Path)

    preview_parser = subparsers.add_parser("preview", help="Print the FFmpeg command a conversion would run.")
    preview_parser.add_argument("input", type=Path)
    _add_option_flags(preview_parser)

    convert_parser = subparsers.add_parser("convert", help="Convert a video. Press Ctrl+C to cancel.")
    convert_parser.add_argument("input", type=Path)
    _add_option_flags(convert_parser)

    return parser.parse_args(argv)


def configure_logging(args: argparse.Namespace):
    logger.remove()
    logger.add(sys.stderr, level=args.log_level, format=LOGGER_FORMAT)
    if args.log_file:
        logs = log_dir(args.data_dir)
        logs.mkdir(parents=True, exist_ok=True)
        logger.add(
            logs / APP_LOG_FILE_NAME,
            level=args.log_level,
            format=LOGGER_FORMAT,
            rotation=APP_LOG_ROTATION,
            encoding="utf-8",
        )


def build_options(args: argparse.Namespace, defaults: ConvertOptions) -> ConvertOptions:
    """Combines probe defaults, the preset, the resolution template and explicit flags, in that order."""
    options = defaults
    if args.preset:
        options = apply_preset(options, args.preset, defaults)
    if args.resolution:
        options = apply_resolution_template(options, args.resolution)
    changes = {field: getattr(args, dest) for dest, field in _OPTION_FLAGS.items() if getattr(args, dest) is not None}
    return options.with_changes(**changes) if changes else options


def _report_ready(ready: FfmpegReady):
    if ready.source == Provenance.PATH_FALLBACK.value:
        print(
            f"WARNING: using unverified FFmpeg {ready.version} from the system PATH ({ready.ffmpeg_path}).",
            file=sys.stderr,
        )


def _wait(future: concurrent.futures.Future, core: ConverterCore):
    """Waits for a conversion, turning Ctrl+C into a cancel request."""
    while True:
        try:
            return future.result(timeout=_WAIT_POLL_SECONDS)
        except concurrent.futures.TimeoutError:
            continue
        except KeyboardInterrupt:
            logger.warning("Interrupted, cancelling the conversion...")
            core.cancel_convert()


def _print_progress(payload: dict):
    print(f"\rProgress: {payload['percent']:6.2f}%", end="", file=sys.stderr, flush=True)


def run(args: argparse.Namespace, core: ConverterCore) -> int:
    ready = core.ensure_ffmpeg_ready().result()
    _report_ready(ready)

    if args.command == "setup":
        print(yaml.safe_dump(ready.to_dict(), sort_keys=False, allow_unicode=True), end="")
        return 0

    probe = core.probe_video(args.input).result()
    if args.command == "probe":
        print(yaml.safe_dump(probe.to_dict(), sort_keys=False, allow_unicode=True), end="")
        return 0

    options = build_options(args, probe.to_convert_options())
    if args.command == "preview":
        preview = core.preview_convert_command(args.input, options)
        print(display_command([ready.ffmpeg_path, *preview.args]))
        return 0

    core.subscribe(EVENT_CONVERT_LOG, lambda e: logger.debug(e["message"]))
    core.subscribe(EVENT_CONVERT_PROGRESS, _print_progress)
    try:
        result = _wait(core.run_convert(args.input, options), core)
    finally:
        print(file=sys.stderr)
    print(result.output_path)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Runs one CLI command.

    Returns:
        The process exit code: 0 on success, 1 when the converter reports an error.
    """
    args = get_args(argv)
    configure_logging(args)
    logger.debug(f"Parsed arguments: {args}")

    with ConverterCore(data_dir=args.data_dir) as core:
        try:
            return run(args, core)
        except ConverterException as e:
            logger.error(str(e))
            print(f"Error: {e}", file=sys.stderr)
            return 1
