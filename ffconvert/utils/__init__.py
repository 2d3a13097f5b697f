"""
Utilities Package for the converter.

This package contains helper modules that provide common, reusable functionality
across the application. They are not specific to any single component.

Modules:
    - ffmpeg_utils.py: Runs short external commands, finds tools on the system PATH
      and reads FFmpeg version banners.
    - format_utils.py: Formats durations, sizes and numbers, and parses FFmpeg
      timestamps.
    - single_flight.py: Shares one in-flight future between concurrent callers
      asking for the same work.
"""
