"""
Attachment Storage

Token codec, storage backends and the AttachmentManager that keeps File
records and their stored blobs in sync.
"""

from .manager import AttachmentManager
from .backends import (
    StorageBackend,
    MetadataSupport,
    LocalStorageBackend,
    InMemoryStorageBackend,
    S3StorageBackend,
    get_storage_backend,
)
from .codec import (
    AccessType,
    AttachmentDescriptor,
    encode_attachment_token,
    decode_attachment_token,
)
from .errors import (
    StorageError,
    InvalidTokenError,
    AttachmentNotFound,
    AttachmentWriteError,
    RemoteFetchError,
)
from .formatting import human_readable_size, icon_class_for
from .remote import RemoteFileResult

__all__ = [
    'AttachmentManager',
    'StorageBackend',
    'MetadataSupport',
    'LocalStorageBackend',
    'InMemoryStorageBackend',
    'S3StorageBackend',
    'get_storage_backend',
    'AccessType',
    'AttachmentDescriptor',
    'encode_attachment_token',
    'decode_attachment_token',
    'StorageError',
    'InvalidTokenError',
    'AttachmentNotFound',
    'AttachmentWriteError',
    'RemoteFetchError',
    'human_readable_size',
    'icon_class_for',
    'RemoteFileResult',
]
