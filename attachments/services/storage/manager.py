"""
Attachment Manager

Keeps File records and their blobs in the attachment storage in sync and
builds the URLs attachments are served under.
"""

import logging
import os
from typing import BinaryIO, List, Mapping, Optional

from django.conf import settings
from django.core.files import File as DjangoFile
from django.core.files.uploadedfile import UploadedFile
from django.urls import reverse

from attachments.models import File
from .backends import MetadataSupport, StorageBackend, get_storage_backend
from .codec import AccessType, decode_attachment_token, encode_attachment_token
from .errors import AttachmentNotFound
from .formatting import get_file_icons, human_readable_size, icon_class_for
from .paths import generate_storage_filename, guess_extension, guess_mime_type
from .remote import RemoteFileResult, stage_remote_file

logger = logging.getLogger(__name__)

# Configuration constants
READ_COUNT = 100000  # Bytes per chunk when copying into storage
DEFAULT_IMAGE_WIDTH = 100
DEFAULT_IMAGE_HEIGHT = 100


class AttachmentManager:
    """
    Service for storing attachment files and linking to them.

    Example:
        >>> manager = AttachmentManager()
        >>> attachment = File(file=uploaded_file)
        >>> manager.pre_upload(attachment, owner=request.user)
        >>> attachment.save()
        >>> manager.upload(attachment)
        >>> manager.get_file_url(invoice, 'scan', attachment)
        '/attachments/files/Ymls...LnBkZg==.pdf'
    """

    def __init__(
        self,
        storage: Optional[StorageBackend] = None,
        file_icons: Optional[Mapping[str, str]] = None,
        tmp_dir: Optional[str] = None,
    ):
        """
        Initialize the manager.

        Args:
            storage: Storage backend (defaults to the one configured in settings)
            file_icons: Extension -> icon class mapping (defaults to ATTACHMENT_FILE_ICONS)
            tmp_dir: Directory remote files are staged in (defaults to FILE_UPLOAD_TEMP_DIR)
        """
        self.storage = storage or get_storage_backend()
        self.file_icons = file_icons or get_file_icons()
        self.tmp_dir = tmp_dir

    def prepare_remote_file(self, file_url: str, owner=None) -> RemoteFileResult:
        """
        Stage a remote file (or local path) and wrap it in a new File record.

        The record is not saved. Failures never raise, they come back as a
        failed result carrying the error.

        Args:
            file_url: http(s) URL, file:// URL or local path
            owner: User to stamp as the owner of the new record

        Returns:
            RemoteFileResult with the prepared File on success; call its
            discard() once the file has been uploaded
        """
        attachment = File()
        staged = RemoteFileResult()
        try:
            staged_path = stage_remote_file(file_url, tmp_dir=self.tmp_dir)
            staged = RemoteFileResult.success(attachment, staging_dir=staged_path.parent)
            attachment.file = DjangoFile(open(staged_path, 'rb'), name=staged_path.name)
            self.pre_upload(attachment, owner=owner)
        except Exception as e:
            staged.discard()
            logger.warning("Could not prepare remote file %s: %s", file_url, e)
            return RemoteFileResult.failure(e)

        return staged

    def pre_upload(self, entity: File, owner=None) -> None:
        """
        Update a File record before its pending file is uploaded.

        - A record flagged as emptied loses its blob, filename, extension
          and original filename.
        - A record with a pending file gets a fresh storage filename and the
          file's metadata; the blob stored under the old filename is removed.

        Args:
            entity: File record
            owner: User uploading the file; left unchanged when None
        """
        if entity.is_empty_file():
            self._delete_blob(entity.filename)
            entity.filename = None
            entity.extension = None
            entity.original_filename = None

        file = entity.file
        if file is None:
            return

        if owner is not None:
            entity.owner = owner

        self._delete_blob(entity.filename)

        if isinstance(file, UploadedFile):
            original_name = file.name
            mime_type = file.content_type or guess_mime_type(file.name)
        else:
            original_name = os.path.basename(file.name or '')
            mime_type = guess_mime_type(original_name)

        entity.original_filename = original_name
        entity.mime_type = mime_type
        entity.file_size = file.size
        entity.extension = guess_extension(original_name, mime_type)
        entity.filename = generate_storage_filename(entity.extension)

        if isinstance(self.storage, MetadataSupport):
            self.storage.set_metadata(entity.filename, {'contentType': entity.mime_type})

    def _delete_blob(self, key: Optional[str]) -> None:
        if key and self.storage.has(key):
            self.storage.delete(key)
            logger.debug("Deleted attachment blob %s", key)

    def upload(self, entity: File) -> None:
        """Copy the pending file of a record into storage under its filename."""
        file = entity.file
        if file is None:
            return

        if hasattr(file, 'temporary_file_path'):
            self.copy_local_file_to_storage(file.temporary_file_path(), entity.filename)
        else:
            file.open()
            self.copy_file_to_storage(file, entity.filename)

        logger.info("Uploaded attachment %s (%s bytes)", entity.filename, entity.file_size)

    def copy_local_file_to_storage(self, local_file_path: str, destination_file_name: str) -> None:
        """
        Copy a file from the local filesystem into storage under a new name.

        Raises:
            OSError: If the local file cannot be read
            StorageError: If the storage backend fails
        """
        with open(local_file_path, 'rb') as src:
            self.copy_file_to_storage(src, destination_file_name)

    def copy_file_to_storage(self, src: BinaryIO, destination_file_name: str) -> None:
        """
        Stream an open binary file into storage in READ_COUNT sized chunks.

        Any existing blob under destination_file_name is replaced. Errors
        propagate once the destination stream is closed.
        """
        with self.storage.open_write(destination_file_name) as dst:
            while chunk := src.read(READ_COUNT):
                dst.write(chunk)

    def get_content(self, entity: File) -> bytes:
        """
        Read the stored content of a record.

        Raises:
            AttachmentNotFound: If the record has no blob in storage
        """
        if not entity.filename:
            raise AttachmentNotFound(f"Attachment {entity.pk} has no stored file")
        return self.storage.get(entity.filename)

    def get_file_url(
        self,
        parent_entity,
        field_name: str,
        entity: File,
        access_type: str = AccessType.GET,
        absolute: bool = False,
        request=None,
    ) -> str:
        """
        Get the URL of a file attached to a model instance.

        Args:
            parent_entity: Model instance owning the attachment
            field_name: Name of the field on parent_entity holding the File
            entity: The File record
            access_type: 'get' to display inline, 'download' to force a download
            absolute: Return an absolute URL
            request: Request used to build absolute URLs
        """
        return self.get_attachment_url(
            parent_entity._meta.label,
            parent_entity.pk,
            field_name,
            entity,
            access_type=access_type,
            absolute=absolute,
            request=request,
        )

    def get_attachment_url(
        self,
        parent_class: str,
        parent_id: int,
        field_name: str,
        entity: File,
        access_type: str = AccessType.GET,
        absolute: bool = False,
        request=None,
    ) -> str:
        """Get the URL of an attachment given its owner's model label and id."""
        coded_string = encode_attachment_token(
            parent_class,
            field_name,
            parent_id,
            access_type,
            entity.original_filename or '',
        )

        if entity.extension:
            url = reverse(
                'attachments:file',
                kwargs={'coded_string': coded_string, 'extension': entity.extension},
            )
        else:
            url = reverse('attachments:file-noext', kwargs={'coded_string': coded_string})

        if absolute:
            return self._absolute(url, request)
        return url

    def _absolute(self, url: str, request=None) -> str:
        if request is not None:
            return request.build_absolute_uri(url)
        base_url = getattr(settings, 'ATTACHMENT_BASE_URL', '')
        return f"{base_url.rstrip('/')}{url}"

    def decode_attachment_url(self, url_string: str) -> List[str]:
        """
        Return the URL parameters from an encoded string.

        Returns:
            [parent class, field name, entity id, access type, original filename]

        Raises:
            InvalidTokenError: If the string is not a valid attachment token
        """
        return decode_attachment_token(url_string)

    def get_resized_image_url(
        self,
        entity: File,
        width: int = DEFAULT_IMAGE_WIDTH,
        height: int = DEFAULT_IMAGE_HEIGHT,
    ) -> str:
        return reverse(
            'attachments:resize',
            kwargs={
                'id': entity.pk,
                'width': width,
                'height': height,
                'filename': entity.original_filename,
            },
        )

    def get_filtered_image_url(self, entity: File, filter_name: str) -> str:
        """Get the URL of an image with a configured ATTACHMENT_IMAGE_FILTERS filter applied."""
        return reverse(
            'attachments:filtered',
            kwargs={
                'filter_name': filter_name,
                'id': entity.pk,
                'filename': entity.original_filename,
            },
        )

    def get_attachment_icon_class(self, entity: File) -> str:
        return icon_class_for(entity.extension, self.file_icons)

    def get_file_size(self, size_bytes: int) -> str:
        return human_readable_size(size_bytes)

    def check_on_delete(self, entity: File) -> bool:
        """
        Delete a record that was emptied in a form and has no file left.

        Returns:
            True if the record was deleted
        """
        if entity.is_empty_file() and entity.filename is None:
            if entity.pk is not None:
                entity.delete()
            return True
        return False
