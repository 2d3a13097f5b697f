"""
Services Package for the converter.

This package contains the "service layer" of the application. A service is a class
or module performing one specific task; the `ConverterCore` in the pipeline package
coordinates them.

- **Binary Resolver (`BinaryResolver`):**
  Finds, downloads, verifies and installs the pinned FFmpeg build, falling back to
  the system PATH when the download server is unreachable.

- **Probe Service (`ProbeService`):**
  Runs ffprobe through ffmpeg-python and reduces its report to a `ProbeResult`.

- **Command Builder (`command_builder`):**
  Pure functions that validate options and build the FFmpeg argument vector.

- **Conversion Runner (`ConversionRunner`):**
  Spawns FFmpeg, streams its output, supports cancellation and settles each job.

- **Progress Tracker (`ProgressTracker`) and Event Channel (`EventChannel`):**
  Turn output lines into progress percentages and deliver events to subscribers.

- **Logging Service (`SuccessLog`, `ErrorLog`):**
  Structured run logs for completed conversions (YAML) and failures (plain text),
  separate from the real-time console logging.
"""
