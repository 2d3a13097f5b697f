"""
Defines custom exception types for the converter.

Every failure the core reports carries a stable `code` string (e.g. `ERR_HASH`) so
that callers can classify errors without inspecting prose. `str(exc)` renders as
`"<code>: <message>"`.

All custom exceptions inherit from the base `ConverterException`.
"""
from typing import Optional


class ConverterException(Exception):
    """Base class for all custom exceptions in the converter."""

    code: str = "ERR_UNKNOWN"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}" if self.message else self.code


# --- FFmpeg Acquisition Exceptions ---
class AcquisitionException(ConverterException):
    """Base class for failures while obtaining a verified FFmpeg executable."""

    pass


class DownloadException(AcquisitionException):
    """
    Raised when the FFmpeg archive cannot be transferred.

    This covers HTTP error statuses and interrupted transfers. A server that cannot
    be reached at all is not a download failure; it sends the resolver to the
    system PATH fallback instead.
    """

    code = "ERR_DOWNLOAD"


class HashMismatchException(AcquisitionException):
    """
    Raised when the downloaded archive does not match the pinned SHA-256 digest.

    The archive is discarded before this exception propagates.
    """

    code = "ERR_HASH"

    def __init__(self, expected: str, actual: str):
        super().__init__(f"SHA-256 mismatch: expected={expected}, actual={actual}")
        self.expected = expected
        self.actual = actual


class ExtractException(AcquisitionException):
    """Raised when a verified archive cannot be unpacked into managed storage."""

    code = "ERR_EXTRACT"


class FFmpegNotFoundException(AcquisitionException):
    """Raised when no usable FFmpeg binary is available through any resolution path."""

    code = "ERR_FFMPEG_NOT_FOUND"


# --- Input / Options Exceptions ---
class InputNotFoundException(ConverterException):
    code = "ERR_INPUT"


class InvalidOptionsException(ConverterException):
    """
    Raised when conversion options fail validation at command-build time.

    Attributes:
        field: Name of the offending option, if a single field is at fault.
    """

    code = "ERR_OPTIONS"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


# --- Process Exceptions ---
class ProcessStartException(ConverterException):
    """Raised when an FFmpeg or ffprobe process cannot be spawned."""

    code = "ERR_START"


class ProbeException(ConverterException):
    """Raised when ffprobe runs but exits with an error."""

    code = "ERR_PROBE"


class ProbeParseException(ProbeException):
    """Raised when ffprobe output is not valid structured metadata."""

    code = "ERR_PROBE_PARSE"


# --- Conversion Exceptions ---
class ConversionException(ConverterException):
    """Base class for outcomes of a conversion job other than success."""

    pass


class ConverterBusyException(ConversionException):
    """Raised when a conversion is requested while another job is still live."""

    code = "ERR_BUSY"


class ConversionFailedException(ConversionException):
    """
    Raised when FFmpeg exits with a non-zero code.

    Attributes:
        exit_code: The process exit code, kept for diagnostics.
    """

    code = "ERR_CONVERT"

    def __init__(self, exit_code: int, message: str = ""):
        super().__init__(message or f"ffmpeg failed: exit={exit_code}")
        self.exit_code = exit_code


class ConversionCancelledException(ConversionException):
    """
    Raised when a job ends because the user cancelled it.

    This outcome is authoritative: once cancellation was requested and the process
    is gone, the job reports this exception whatever the process's own exit code was.
    """

    code = "ERR_CANCELLED"
