"""
Storage key generation and path helpers for attachment storage
"""

import mimetypes
import os
import uuid
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlparse


def generate_storage_filename(extension: Optional[str] = None) -> str:
    """
    Generate a fresh, opaque storage key for an uploaded file.

    Args:
        extension: File extension without the leading dot

    Returns:
        Unique key such as ``3f2c...e1.pdf``
    """
    token = uuid.uuid4().hex
    if extension:
        return f"{token}.{extension}"
    return token


def guess_extension(filename: Optional[str], mime_type: Optional[str] = None) -> Optional[str]:
    """
    Determine the extension of a file.

    The suffix of the file name wins; the MIME type is only consulted
    for names without one.

    Returns:
        Lower-case extension without the dot, or None
    """
    if filename:
        suffix = Path(filename).suffix
        if suffix:
            return suffix[1:].lower()

    if mime_type:
        guessed = mimetypes.guess_extension(mime_type, strict=False)
        if guessed:
            return guessed[1:].lower()

    return None


def guess_mime_type(filename: Optional[str]) -> str:
    """Guess a MIME type from a file name, defaulting to octet-stream."""
    if filename:
        mime_type, _ = mimetypes.guess_type(filename, strict=False)
        if mime_type:
            return mime_type
    return 'application/octet-stream'


def filename_from_url(file_url: str) -> str:
    """
    Extract the file name from a URL or local path.

    Query strings and fragments are dropped, percent escapes are decoded.

    Args:
        file_url: Remote URL, ``file://`` URL or local filesystem path

    Returns:
        Base name of the referenced file (may be empty)
    """
    parsed = urlparse(file_url)
    if parsed.scheme in ('http', 'https', 'file'):
        path = unquote(parsed.path)
    else:
        path = file_url.split('?', 1)[0]

    return os.path.basename(path.rstrip('/'))


def get_absolute_path(data_dir: Union[str, Path], relative_path: str) -> Path:
    """
    Convert a storage key to an absolute filesystem path.

    Args:
        data_dir: Base data directory (ATTACHMENT_STORAGE_DIR)
        relative_path: Storage key

    Returns:
        Absolute Path object

    Raises:
        ValueError: If the key resolves outside of data_dir
    """
    data_dir = Path(data_dir)
    abs_path = (data_dir / relative_path).resolve()

    # Security check: ensure resolved path is still within data_dir
    try:
        abs_path.relative_to(data_dir.resolve())
    except ValueError:
        raise ValueError(f"Path traversal detected: {relative_path}")

    return abs_path
