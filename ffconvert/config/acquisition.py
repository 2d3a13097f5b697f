"""
The pinned FFmpeg acquisition policy.

The converter only ever installs the FFmpeg build described here. The archive
downloaded from `FFMPEG_ZIP_URL` is accepted only if its SHA-256 digest matches
`FFMPEG_ZIP_SHA256` exactly.

The pinned archive is a Windows build (it ships `bin/ffmpeg.exe`). Other platforms
either set the `acquisition` override in config.user.yaml to a build of their own,
or use FFmpeg from the system PATH.
"""
import sys
from dataclasses import dataclass, replace
from typing import Optional

from .common import ACQUISITION_OVERRIDES

FFMPEG_VERSION = "8.0.1"
FFMPEG_ZIP_URL = "https://www.gyan.dev/ffmpeg/builds/ffmpeg-release-essentials.zip"
FFMPEG_ZIP_SHA256 = "e2aaeaa0fdbc397d4794828086424d4aaa2102cef1fb6874f6ffd29c0b88b673"
# `sys.platform` value the pinned archive was built for.
FFMPEG_ZIP_PLATFORM = "win32"

# Name of the verification manifest written next to the extracted executables.
MANIFEST_FILE_NAME = "manifest.yaml"

# Chunk size used when streaming the archive to disk and when hashing files.
DOWNLOAD_CHUNK_SIZE = 65536


def executable_name(tool: str) -> str:
    """Returns the platform-specific file name of an FFmpeg tool (e.g. 'ffmpeg.exe' on Windows)."""
    return f"{tool}.exe" if sys.platform == "win32" else tool


@dataclass(frozen=True)
class AcquisitionPolicy:
    """
    Where the FFmpeg build comes from and how it is verified.

    Attributes:
        url: Download location of the release archive.
        version: Version string reported for cached and downloaded builds. It also
                 names the managed storage subdirectory.
        sha256: Lowercase hex SHA-256 digest the downloaded archive must match.
        platform: The `sys.platform` the build runs on, or None if it is not tied
                  to one. A build for another platform is never downloaded.
    """
    url: str = FFMPEG_ZIP_URL
    version: str = FFMPEG_VERSION
    sha256: str = FFMPEG_ZIP_SHA256
    platform: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "sha256", self.sha256.strip().lower())

    def supports_current_platform(self) -> bool:
        return self.platform is None or self.platform == sys.platform


def default_policy() -> AcquisitionPolicy:
    """
    Builds the policy in effect, applying any `acquisition` overrides from config.user.yaml.

    The pinned build is tied to Windows. An overridden URL points at a different
    build, which is only tied to a platform if the override names one.
    """
    policy = AcquisitionPolicy(platform=FFMPEG_ZIP_PLATFORM)
    overrides = {k: str(v) for k, v in ACQUISITION_OVERRIDES.items() if k in ("url", "version", "sha256") and v}
    if "url" in overrides:
        overrides["platform"] = ACQUISITION_OVERRIDES.get("platform") or None
    return replace(policy, **overrides) if overrides else policy
