"""
Storage-specific exceptions
"""


class StorageError(Exception):
    """Base exception for storage-related errors"""
    pass


class InvalidTokenError(StorageError, ValueError):
    """Raised when an attachment URL token cannot be decoded"""
    pass


class AttachmentNotFound(StorageError):
    """Raised when an attachment blob cannot be found in storage"""
    pass


class AttachmentWriteError(StorageError):
    """Raised when an attachment cannot be written to storage"""
    pass


class RemoteFetchError(StorageError):
    """Raised when a remote file cannot be staged into the upload directory"""
    pass
