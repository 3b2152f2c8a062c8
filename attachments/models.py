from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models


class File(models.Model):
    """
    A stored file.

    ``filename`` is the opaque key of the blob in attachment storage. The
    ``file`` and ``empty_file`` properties are transient: ``file`` holds a
    pending upload, ``empty_file`` marks a file the user cleared in a form.
    """
    filename = models.CharField(max_length=255, null=True, blank=True)
    extension = models.CharField(max_length=16, null=True, blank=True)
    mime_type = models.CharField(max_length=100, blank=True)
    original_filename = models.CharField(max_length=255, null=True, blank=True)
    file_size = models.BigIntegerField(null=True, blank=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='attachment_files',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['filename'], name='attachments_file_filename_idx'),
        ]

    def __str__(self):
        return f"{self.original_filename or 'empty file'} (ID: {self.id})"

    @property
    def file(self):
        return getattr(self, '_pending_file', None)

    @file.setter
    def file(self, value):
        self._pending_file = value

    @property
    def empty_file(self):
        return getattr(self, '_empty_file', False)

    @empty_file.setter
    def empty_file(self, value):
        self._empty_file = bool(value)

    def is_empty_file(self):
        return self.empty_file


class Attachment(models.Model):
    """A file attached to any other record, with an optional comment."""
    file = models.ForeignKey(File, on_delete=models.SET_NULL, null=True, blank=True, related_name='attachments')
    comment = models.TextField(blank=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='attachments',
    )
    target_content_type = models.ForeignKey(ContentType, on_delete=models.CASCADE, null=True, blank=True)
    target_object_id = models.PositiveIntegerField(null=True, blank=True)
    target = GenericForeignKey('target_content_type', 'target_object_id')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        name = self.file.original_filename if self.file else None
        return f"{name or 'Attachment'} -> {self.target}"
