"""
This module provides the BinaryResolver, which guarantees that a runnable FFmpeg
(and its companion ffprobe) is available before anything is probed or converted.

Resolution order:
1. A build previously downloaded into managed storage, re-verified against its
   manifest and the pinned archive digest.
2. A fresh download of the pinned archive, verified with SHA-256 and extracted.
3. If the download server cannot be reached, `ffmpeg`/`ffprobe` from the system
   PATH, reported with provenance `path-fallback` and no hash guarantee.
"""
import hashlib
import os
import shutil
import stat
import sys
import tempfile
import threading
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Tuple

import requests
import yaml
from loguru import logger

from ..config.acquisition import (
    DOWNLOAD_CHUNK_SIZE,
    MANIFEST_FILE_NAME,
    AcquisitionPolicy,
    default_policy,
    executable_name,
)
from ..config.common import DATA_DIR, NETWORK_TIMEOUT_SECONDS
from ..domain.exceptions import (
    DownloadException,
    ExtractException,
    FFmpegNotFoundException,
    HashMismatchException,
)
from ..domain.models import ExecutableHandle, Provenance
from ..utils.ffmpeg_utils import find_on_path, read_version
from ..utils.format_utils import formatted_size

TOOLS = ("ffmpeg", "ffprobe")


class _ServerUnreachable(Exception):
    """The download server could not be contacted at all (as opposed to a failed transfer)."""


def sha256_of_file(path: Path) -> str:
    with path.open("rb") as f:
        return hashlib.file_digest(f, "sha256").hexdigest()


class BinaryResolver:
    """
    Locates, acquires and verifies the FFmpeg executables.

    A verified handle (`cached` or `downloaded`) is kept for the lifetime of the
    resolver, so repeated calls to `ensure_ready()` return immediately. A
    `path-fallback` handle is not kept: the next call tries the download again in
    case connectivity has come back. Calls are serialized, so concurrent callers
    never trigger a second download.
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        policy: Optional[AcquisitionPolicy] = None,
        session: Optional[requests.Session] = None,
        timeout: float = NETWORK_TIMEOUT_SECONDS,
    ):
        self.policy = policy or default_policy()
        self.install_dir = (data_dir or DATA_DIR) / "ffmpeg" / self.policy.version
        self.bin_dir = self.install_dir / "bin"
        self.manifest_path = self.bin_dir / MANIFEST_FILE_NAME
        self.session = session or requests.Session()
        self.timeout = timeout
        self._handle: Optional[ExecutableHandle] = None
        self._lock = threading.Lock()

    @property
    def cached_handle(self) -> Optional[ExecutableHandle]:
        return self._handle

    def ensure_ready(self) -> ExecutableHandle:
        """
        Returns a handle to a runnable FFmpeg, acquiring one if necessary.

        Raises:
            DownloadException: The archive transfer failed (ERR_DOWNLOAD).
            HashMismatchException: The archive failed verification (ERR_HASH).
            ExtractException: The verified archive could not be unpacked (ERR_EXTRACT).
            FFmpegNotFoundException: The pinned build is unavailable (offline, or built for another
                platform) and no FFmpeg is on the PATH (ERR_FFMPEG_NOT_FOUND).
        """
        with self._lock:
            if self._handle is not None:
                return self._handle

            handle = self._resolve()
            if handle.verified:
                self._handle = handle
            logger.info(f"FFmpeg ready: source={handle.source.value}, version={handle.version}, path={handle.ffmpeg_path}")
            return handle

    def _resolve(self) -> ExecutableHandle:
        cached = self._load_cached()
        if cached is not None:
            return cached

        if not self.policy.supports_current_platform():
            logger.warning(
                f"The pinned FFmpeg build is for '{self.policy.platform}', not '{sys.platform}'. "
                f"Looking for FFmpeg on the system PATH."
            )
            return self._path_fallback(
                f"No FFmpeg build for '{sys.platform}' is configured (set 'acquisition' in config.user.yaml) "
                f"and none was found on the system PATH"
            )

        try:
            archive_path, digest = self._download()
        except _ServerUnreachable as e:
            logger.warning(f"FFmpeg download server unreachable ({e}). Looking for FFmpeg on the system PATH.")
            return self._path_fallback("Offline and not found on the system PATH")

        try:
            if digest != self.policy.sha256:
                logger.error(f"Downloaded archive failed verification: expected={self.policy.sha256}, actual={digest}")
                raise HashMismatchException(self.policy.sha256, digest)
            logger.info("Archive SHA-256 verified. Extracting executables...")
            return self._install(archive_path)
        finally:
            # The archive is never kept, whether it verified or not.
            archive_path.unlink(missing_ok=True)

    # --- Step 1: managed storage ---

    def _executable_paths(self) -> Dict[str, Path]:
        return {tool: self.bin_dir / executable_name(tool) for tool in TOOLS}

    def _load_cached(self) -> Optional[ExecutableHandle]:
        """
        Returns a handle to the installed build if it still verifies, else None.

        A build verifies when its manifest was written for the pinned archive digest
        and every executable still hashes to the digest recorded at extraction.
        A build that fails the check is deleted.
        """
        if not self.manifest_path.is_file():
            return None

        problem = self._verify_installation()
        if problem is None:
            paths = self._executable_paths()
            logger.debug(f"Using cached FFmpeg {self.policy.version} from {self.bin_dir}")
            return ExecutableHandle(
                ffmpeg_path=paths["ffmpeg"],
                ffprobe_path=paths["ffprobe"],
                version=self.policy.version,
                source=Provenance.CACHED,
            )

        logger.warning(f"Cached FFmpeg in '{self.bin_dir}' failed verification ({problem}). Discarding it.")
        shutil.rmtree(self.bin_dir, ignore_errors=True)
        return None

    def _verify_installation(self) -> Optional[str]:
        try:
            with self.manifest_path.open("r", encoding="utf-8") as f:
                manifest = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            return f"unreadable manifest: {e}"

        if not isinstance(manifest, dict) or manifest.get("archive_sha256") != self.policy.sha256:
            return "manifest does not match the pinned archive digest"

        recorded = manifest.get("executables")
        if not isinstance(recorded, dict):
            return "manifest has no executable digests"
        for tool, path in self._executable_paths().items():
            if not path.is_file():
                return f"{path.name} is missing"
            if recorded.get(tool) != sha256_of_file(path):
                return f"{path.name} does not match its recorded digest"
        return None

    # --- Step 2: download ---

    def _download(self) -> Tuple[Path, str]:
        """
        Streams the pinned archive into managed storage, hashing it on the way.

        Returns:
            A tuple of (temporary archive path, lowercase hex SHA-256 of its content).

        Raises:
            _ServerUnreachable: The server could not be contacted.
            DownloadException: The server answered but the transfer failed.
        """
        logger.info(f"Downloading FFmpeg {self.policy.version} from {self.policy.url}")
        try:
            response = self.session.get(self.policy.url, stream=True, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise _ServerUnreachable(str(e)) from e
        except requests.RequestException as e:
            raise DownloadException(f"FFmpeg download failed: {e}") from e

        self.install_dir.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix="download-", suffix=".zip.part", dir=self.install_dir)
        archive_path = Path(temp_name)
        sha256_hash = hashlib.sha256()
        downloaded = 0
        try:
            with response, os.fdopen(fd, "wb") as f:
                response.raise_for_status()
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        sha256_hash.update(chunk)
                        downloaded += len(chunk)
        except requests.HTTPError as e:
            archive_path.unlink(missing_ok=True)
            raise DownloadException(f"FFmpeg download failed: status={response.status_code}") from e
        except (requests.RequestException, OSError) as e:
            archive_path.unlink(missing_ok=True)
            raise DownloadException(f"Could not read the FFmpeg download: {e}") from e

        logger.info(f"Downloaded {formatted_size(downloaded)} to {archive_path.name}")
        return archive_path, sha256_hash.hexdigest()

    # --- Step 4: extraction ---

    def _install(self, archive_path: Path) -> ExecutableHandle:
        """
        Extracts ffmpeg and ffprobe from a verified archive into managed storage.

        Everything is written to a staging directory first. Only after both executables
        and the manifest are complete is the staging directory renamed to `bin/`, so
        an interrupted extraction never leaves a runnable half-written binary behind.
        """
        staging_dir = Path(tempfile.mkdtemp(prefix=".staging-", dir=self.install_dir))
        try:
            digests: Dict[str, str] = {}
            with zipfile.ZipFile(archive_path) as archive:
                for tool in TOOLS:
                    name = executable_name(tool)
                    member = self._find_member(archive, name)
                    target = staging_dir / name
                    with archive.open(member) as src, target.open("wb") as dst:
                        shutil.copyfileobj(src, dst)
                    digests[tool] = sha256_of_file(target)
                    logger.debug(f"Extracted {member.filename} -> {target}")

            if sys.platform != "win32":
                for tool in TOOLS:
                    target = staging_dir / executable_name(tool)
                    target.chmod(target.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

            manifest = {
                "version": self.policy.version,
                "source_url": self.policy.url,
                "archive_sha256": self.policy.sha256,
                "installed_at": datetime.now().isoformat(),
                "executables": digests,
            }
            with (staging_dir / MANIFEST_FILE_NAME).open("w", encoding="utf-8") as f:
                yaml.safe_dump(manifest, f, default_flow_style=False, sort_keys=False)

            if self.bin_dir.exists():
                shutil.rmtree(self.bin_dir)
            os.replace(staging_dir, self.bin_dir)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as e:
            raise ExtractException(f"Could not extract FFmpeg: {e}") from e
        finally:
            if staging_dir.exists():
                shutil.rmtree(staging_dir, ignore_errors=True)

        paths = self._executable_paths()
        logger.success(f"Installed FFmpeg {self.policy.version} into {self.bin_dir}")
        return ExecutableHandle(
            ffmpeg_path=paths["ffmpeg"],
            ffprobe_path=paths["ffprobe"],
            version=self.policy.version,
            source=Provenance.DOWNLOADED,
        )

    @staticmethod
    def _find_member(archive: zipfile.ZipFile, name: str) -> zipfile.ZipInfo:
        suffix = f"/bin/{name}"
        for info in archive.infolist():
            if not info.is_dir() and f"/{info.filename.lower()}".endswith(suffix):
                return info
        raise ExtractException(f"{name} not found in the FFmpeg archive")

    # --- Step 5: system PATH fallback ---

    def _path_fallback(self, not_found_message: str) -> ExecutableHandle:
        """
        Uses FFmpeg from the system PATH when the pinned build cannot be downloaded.

        This trades verification for availability: the binaries are whatever the
        system provides. The provenance says so, and a warning is logged every time.

        Args:
            not_found_message: Why the pinned build is unavailable, reported if
                               the PATH has no FFmpeg either.
        """
        ffmpeg_path = find_on_path("ffmpeg")
        ffprobe_path = find_on_path("ffprobe")
        if ffmpeg_path is None or ffprobe_path is None:
            missing = ", ".join(t for t, p in (("ffmpeg", ffmpeg_path), ("ffprobe", ffprobe_path)) if p is None)
            raise FFmpegNotFoundException(f"{not_found_message}: {missing}")

        version = read_version(ffmpeg_path)
        if version is None:
            raise FFmpegNotFoundException(f"'{ffmpeg_path}' was found on the PATH but does not run")

        logger.warning(
            f"Using UNVERIFIED FFmpeg {version} from the system PATH ({ffmpeg_path}). "
            f"It was not checked against the pinned SHA-256."
        )
        return ExecutableHandle(
            ffmpeg_path=ffmpeg_path,
            ffprobe_path=ffprobe_path,
            version=version,
            source=Provenance.PATH_FALLBACK,
        )
