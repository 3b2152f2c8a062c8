"""
Staging of remote files into the local upload directory.

A remote file is either an http(s) URL, a ``file://`` URL or a plain local
path. It is copied into a fresh directory below the upload temp dir,
keeping its base name, so it can then be handled like any other upload.
"""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TYPE_CHECKING
from urllib.parse import unquote, urlparse

import httpx
from django.conf import settings

from .errors import RemoteFetchError
from .paths import filename_from_url

if TYPE_CHECKING:
    from attachments.models import File

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_TIMEOUT = 30.0
DOWNLOAD_CHUNK_SIZE = 100000


@dataclass
class RemoteFileResult:
    """
    Outcome of preparing a remote file.

    Exactly one of ``file`` and ``error`` is set. A successful result owns
    the staged copy until ``discard()`` is called.
    """

    file: Optional['File'] = None
    error: Optional[Exception] = None
    staging_dir: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.file is not None

    @classmethod
    def success(cls, file: 'File', staging_dir: Optional[Path] = None) -> 'RemoteFileResult':
        return cls(file=file, staging_dir=staging_dir)

    @classmethod
    def failure(cls, error: Exception) -> 'RemoteFileResult':
        return cls(error=error)

    def discard(self) -> None:
        """Close the staged file and remove its staging directory."""
        if self.file is not None and self.file.file is not None:
            self.file.file.close()
        if self.staging_dir is not None:
            shutil.rmtree(self.staging_dir, ignore_errors=True)
            self.staging_dir = None


def get_upload_temp_dir() -> str:
    """
    Return the directory remote files are staged in.

    FILE_UPLOAD_TEMP_DIR is used when it exists and is writable, the
    system temp dir otherwise.
    """
    tmp_dir = getattr(settings, 'FILE_UPLOAD_TEMP_DIR', None)
    if not tmp_dir or not os.path.isdir(tmp_dir) or not os.access(tmp_dir, os.W_OK):
        tmp_dir = tempfile.gettempdir()
    return os.path.realpath(tmp_dir)


def _download(file_url: str, target: Path, timeout: float) -> None:
    with httpx.stream('GET', file_url, timeout=timeout, follow_redirects=True) as response:
        response.raise_for_status()
        with open(target, 'wb') as dest:
            for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                dest.write(chunk)


def stage_remote_file(file_url: str, tmp_dir: Optional[str] = None, timeout: Optional[float] = None) -> Path:
    """
    Copy a remote or local file into the upload temp dir.

    Args:
        file_url: http(s) URL, file:// URL or local path
        tmp_dir: Directory to stage into (defaults to get_upload_temp_dir())
        timeout: HTTP timeout in seconds (defaults to ATTACHMENT_REMOTE_TIMEOUT)

    Returns:
        Path of the staged copy; its name is the source's base name

    Raises:
        RemoteFetchError: If the source cannot be read or the copy fails
    """
    try:
        file_name = filename_from_url(file_url)
        parsed = urlparse(file_url)
    except ValueError as e:
        raise RemoteFetchError(f"Malformed file URL {file_url!r}: {e}") from e

    if not file_name:
        raise RemoteFetchError(f"Cannot determine a file name from {file_url!r}")

    if timeout is None:
        timeout = getattr(settings, 'ATTACHMENT_REMOTE_TIMEOUT', DEFAULT_REMOTE_TIMEOUT)

    staging_dir = Path(tempfile.mkdtemp(prefix='attachment_', dir=tmp_dir or get_upload_temp_dir()))
    target = staging_dir / file_name

    try:
        if parsed.scheme in ('http', 'https'):
            _download(file_url, target, timeout)
        else:
            source = unquote(parsed.path) if parsed.scheme == 'file' else file_url
            shutil.copyfile(source, target)
    except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError) as e:
        shutil.rmtree(staging_dir, ignore_errors=True)
        raise RemoteFetchError(f"Failed to fetch {file_url}: {e}") from e

    logger.info("Staged remote file %s as %s", file_url, target)
    return target
