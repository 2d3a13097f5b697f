"""FFmpeg progress parsing from `time=` markers."""

import math
import re
from typing import Optional

from ..utils.format_utils import parse_timestamp

# The value after the first `time=` marker, whatever it holds; parse_timestamp validates it.
_TIME_MARKER = re.compile(r"\btime=(\S*)")


class ProgressTracker:
    """
    Turns FFmpeg status lines into a completion percentage.

    Progress is a best-effort overlay: lines it cannot read are ignored and it never
    decides whether a job succeeded. It does not enforce monotonicity; every call
    reports the instantaneous ratio for that line.
    """

    @staticmethod
    def on_log_line(line: str, known_duration_seconds: float) -> Optional[float]:
        """
        Parses one line of FFmpeg output.

        Args:
            line: A line such as "frame=  120 fps= 60 ... time=00:01:05.00 bitrate=...".
            known_duration_seconds: Duration of the input as reported by the probe.

        Returns:
            The percentage elapsed, clamped to [0, 100], or None if the line has no
            `time=` marker, the first one is malformed, or the duration is unknown (<= 0).
        """
        if not known_duration_seconds or not math.isfinite(known_duration_seconds) or known_duration_seconds <= 0:
            return None

        match = _TIME_MARKER.search(line)
        if not match:
            return None
        elapsed = parse_timestamp(match.group(1))
        if elapsed is None or elapsed <= 0:
            return None

        percent = elapsed * 100.0 / known_duration_seconds
        return max(0.0, min(100.0, percent))
