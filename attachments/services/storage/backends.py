"""
Storage backends for attachment blobs.

A backend is a flat key/value store of byte blobs. Keys are the generated
storage filenames of File records. Three variants exist:

- LocalStorageBackend: files below a root directory
- InMemoryStorageBackend: a dict, used by tests and the test settings
- S3StorageBackend: an S3 compatible bucket through boto3

Backends that can tag objects (content type and the like) also implement
MetadataSupport. Concurrent writes to the same key are not coordinated.
"""

import logging
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, Optional, Union

import boto3
from botocore.exceptions import ClientError
from django.conf import settings

from .errors import AttachmentNotFound, AttachmentWriteError, StorageError
from .paths import get_absolute_path

logger = logging.getLogger(__name__)

# Writes to S3 stay in memory up to this size, then spill to disk
S3_SPOOL_MAX_SIZE = 5 * 1024 * 1024

# Process-wide store handed out for ATTACHMENT_STORAGE_BACKEND = 'memory'
_shared_memory_backend = None


class StorageBackend(ABC):
    """Minimal contract every attachment storage backend fulfils."""

    @abstractmethod
    def has(self, key: str) -> bool:
        """Return True if a blob is stored under key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete the blob stored under key."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """
        Return the content stored under key.

        Raises:
            AttachmentNotFound: If nothing is stored under key
        """

    @abstractmethod
    def open_write(self, key: str):
        """
        Open key for binary writing, creating or truncating the blob.

        Returns a context manager yielding a writable binary stream. The
        blob is complete once the context exits without an exception.
        """


class MetadataSupport:
    """
    Mixin for backends that can attach metadata to stored objects.

    Implementations keep a ``_metadata`` dict of key -> metadata.
    """

    _metadata: Dict[str, Dict[str, str]]

    def set_metadata(self, key: str, metadata: Dict[str, str]) -> None:
        self._metadata.setdefault(key, {}).update(metadata)

    def get_metadata(self, key: str) -> Dict[str, str]:
        return dict(self._metadata.get(key, {}))


class LocalStorageBackend(StorageBackend):
    """Stores blobs as files below a root directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return get_absolute_path(self.root, key)

    def has(self, key: str) -> bool:
        if not key:
            return False
        return self._path(key).is_file()

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError as e:
            raise AttachmentNotFound(f"Attachment file not found: {key}") from e

    def get(self, key: str) -> bytes:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError as e:
            raise AttachmentNotFound(f"Attachment file not found: {key}") from e

    @contextmanager
    def open_write(self, key: str) -> Iterator[BinaryIO]:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            dest = open(path, 'wb')
        except OSError as e:
            raise AttachmentWriteError(f"Cannot open {key} for writing: {e}") from e

        with dest:
            yield dest


class InMemoryStorageBackend(MetadataSupport, StorageBackend):
    """Keeps blobs in a dict. Nothing survives the process."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}
        self._metadata: Dict[str, Dict[str, str]] = {}

    def has(self, key: str) -> bool:
        return bool(key) and key in self._blobs

    def delete(self, key: str) -> None:
        try:
            del self._blobs[key]
        except KeyError as e:
            raise AttachmentNotFound(f"Attachment blob not found: {key}") from e
        self._metadata.pop(key, None)

    def get(self, key: str) -> bytes:
        try:
            return self._blobs[key]
        except KeyError as e:
            raise AttachmentNotFound(f"Attachment blob not found: {key}") from e

    def keys(self):
        return list(self._blobs)

    @contextmanager
    def open_write(self, key: str) -> Iterator[BinaryIO]:
        buffer = BytesIO()
        try:
            yield buffer
            # Only a completed write replaces the stored blob
            self._blobs[key] = buffer.getvalue()
        finally:
            buffer.close()


class S3StorageBackend(MetadataSupport, StorageBackend):
    """Stores blobs in an S3 compatible bucket (AWS S3, Cloudflare R2, MinIO)."""

    def __init__(self, bucket: str, client=None, prefix: str = '', **client_kwargs):
        """
        Args:
            bucket: Bucket name
            client: Pre-built boto3 S3 client (built from client_kwargs if omitted)
            prefix: Key prefix inside the bucket, e.g. ``attachments/``
            client_kwargs: Passed to boto3.client('s3', ...)
        """
        if client is None:
            client = boto3.client('s3', **client_kwargs)

        self.bucket = bucket
        self.client = client
        self.prefix = prefix
        self._metadata: Dict[str, Dict[str, str]] = {}

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    @staticmethod
    def _is_missing(error) -> bool:
        code = str(error.response.get('Error', {}).get('Code', ''))
        return code in ('404', 'NoSuchKey', 'NotFound')

    def has(self, key: str) -> bool:
        if not key:
            return False
        try:
            self.client.head_object(Bucket=self.bucket, Key=self._key(key))
        except ClientError as e:
            if self._is_missing(e):
                return False
            raise StorageError(f"Cannot check {key} in bucket {self.bucket}: {e}") from e
        return True

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=self._key(key))
        self._metadata.pop(key, None)

    def get(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self._key(key))
        except ClientError as e:
            if self._is_missing(e):
                raise AttachmentNotFound(f"Attachment object not found: {key}") from e
            raise StorageError(f"Cannot read {key} from bucket {self.bucket}: {e}") from e
        return response['Body'].read()

    def _extra_args(self, key: str) -> Dict[str, object]:
        metadata = dict(self._metadata.get(key, {}))
        extra_args: Dict[str, object] = {}
        content_type = metadata.pop('contentType', None)
        if content_type:
            extra_args['ContentType'] = content_type
        if metadata:
            extra_args['Metadata'] = metadata
        return extra_args

    @contextmanager
    def open_write(self, key: str) -> Iterator[BinaryIO]:
        with tempfile.SpooledTemporaryFile(max_size=S3_SPOOL_MAX_SIZE) as buffer:
            yield buffer
            buffer.seek(0)
            self.client.upload_fileobj(
                buffer,
                self.bucket,
                self._key(key),
                ExtraArgs=self._extra_args(key),
            )
            self._metadata.pop(key, None)
            logger.debug("Uploaded %s to bucket %s", key, self.bucket)


def get_storage_backend(name: Optional[str] = None) -> StorageBackend:
    """
    Build the storage backend configured in settings.

    Settings:
        ATTACHMENT_STORAGE_BACKEND: 'local' (default), 'memory' or 's3'
        ATTACHMENT_STORAGE_DIR: root directory for 'local'
        ATTACHMENT_S3_BUCKET, ATTACHMENT_S3_PREFIX, ATTACHMENT_S3_ENDPOINT_URL,
        ATTACHMENT_S3_ACCESS_KEY_ID, ATTACHMENT_S3_SECRET_ACCESS_KEY,
        ATTACHMENT_S3_REGION: connection details for 's3'

    Raises:
        ValueError: For an unknown backend name
    """
    name = name or getattr(settings, 'ATTACHMENT_STORAGE_BACKEND', 'local')

    if name == 'local':
        root = getattr(settings, 'ATTACHMENT_STORAGE_DIR', None) or Path(settings.BASE_DIR) / 'data' / 'attachments'
        return LocalStorageBackend(root)

    if name == 'memory':
        global _shared_memory_backend
        if _shared_memory_backend is None:
            _shared_memory_backend = InMemoryStorageBackend()
        return _shared_memory_backend

    if name == 's3':
        client_kwargs = {
            'endpoint_url': getattr(settings, 'ATTACHMENT_S3_ENDPOINT_URL', None),
            'aws_access_key_id': getattr(settings, 'ATTACHMENT_S3_ACCESS_KEY_ID', None),
            'aws_secret_access_key': getattr(settings, 'ATTACHMENT_S3_SECRET_ACCESS_KEY', None),
            'region_name': getattr(settings, 'ATTACHMENT_S3_REGION', None),
        }
        return S3StorageBackend(
            bucket=settings.ATTACHMENT_S3_BUCKET,
            prefix=getattr(settings, 'ATTACHMENT_S3_PREFIX', ''),
            **{k: v for k, v in client_kwargs.items() if v},
        )

    raise ValueError(f"Unknown attachment storage backend: {name}")
